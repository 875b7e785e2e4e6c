"""
Payment gate middleware.

Intercepts requests to paywalled routes and runs them through the
``PaymentGate`` before the route handler sees them. The verified payment is
attached as ``request.state.payment``.
"""

import logging
from typing import Callable, Iterable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from tictactoe402.errors import GameError, error_response
from tictactoe402.payment.encoding import (
    LEGACY_PAYMENT_HEADER,
    PAYMENT_HEADER,
    PAYMENT_REQUIRED_HEADER,
    PAYMENT_RESPONSE_HEADER,
    encode_header,
)
from tictactoe402.payment.gate import PaymentGate

logger = logging.getLogger(__name__)


class PaymentGateMiddleware(BaseHTTPMiddleware):
    """Requires an x402 payment on the configured routes."""

    def __init__(self, app, paywalled_routes: Iterable[str]):
        """Initialize payment middleware.

        Args:
            app: The ASGI application
            paywalled_routes: Route keys in "METHOD /path" form,
                e.g. "POST /api/session/start"
        """
        super().__init__(app)
        self.paywalled_routes = set(paywalled_routes)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if f"{request.method} {request.url.path}" not in self.paywalled_routes:
            return await call_next(request)

        gate: PaymentGate = request.app.state.payment_gate
        payment_header = request.headers.get(PAYMENT_HEADER) or request.headers.get(LEGACY_PAYMENT_HEADER)
        wallet_hint = None if payment_header else await self._wallet_hint(request)

        # errors raised in a BaseHTTPMiddleware skip the app's exception handlers
        try:
            async with gate.authorize(payment_header, wallet_hint) as payment:
                request.state.payment = payment
                response = await call_next(request)
        except GameError as e:
            return error_response(e)

        if response.status_code == 402 and PAYMENT_REQUIRED_HEADER not in response.headers:
            # the handler can still refuse, e.g. a restore whose session expired meanwhile
            response.headers.update(gate.required_headers("Payment required"))
        if payment.settlement is not None and response.status_code < 400:
            response.headers[PAYMENT_RESPONSE_HEADER] = encode_header(payment.settlement.to_dict())
        return response

    async def _wallet_hint(self, request: Request) -> Optional[str]:
        """``walletAddress`` from a JSON body, if the client sent one."""
        try:
            body = await request.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("walletAddress"), str):
            return body["walletAddress"]
        return None
