"""
Error taxonomy for the game service.

Every error carries an HTTP status, a machine-readable ``kind`` and a human
message, and is rendered as JSON by ``error_response``.
"""

from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


class GameError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    kind = "internal_error"
    title = "Internal Error"

    def __init__(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}
        self.headers = headers or {}

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.title, "kind": self.kind, "message": self.message}
        body.update(self.extra)
        return body


class ValidationError(GameError):
    """Bad input shape or range."""
    status_code = 400
    kind = "validation_error"
    title = "Bad Request"


class NotFoundError(GameError):
    """No live session for the wallet. Expired sessions land here too."""
    status_code = 404
    kind = "not_found"
    title = "Session not found"


class GameOverError(GameError):
    status_code = 400
    kind = "game_over"
    title = "Game over"


class PaymentRequiredError(GameError):
    """No usable payment artifact on a protected request."""
    status_code = 402
    kind = "payment_required"
    title = "Payment Required"


class InvalidPaymentError(PaymentRequiredError):
    """Artifact present but undecodable or rejected by the facilitator."""
    kind = "invalid_payment"
    title = "Invalid Payment"


class SettlementError(GameError):
    """Payment verified but the on-chain charge failed. Nothing was created, so retrying is safe."""
    status_code = 500
    kind = "settlement_failed"
    title = "Settlement Failed"


def error_response(error: GameError) -> JSONResponse:
    return JSONResponse(
        status_code=error.status_code,
        content=error.to_dict(),
        headers=error.headers or None,
    )
