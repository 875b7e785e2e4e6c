"""
Main FastAPI application entry point.

Builds the app: settings, payment requirement, session store and service,
payment gate middleware, routers, error handlers, and the background
session sweeper.
"""

import asyncio
import logging
import random
from contextlib import asynccontextmanager, suppress
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

# Load environment variables from .env file
load_dotenv()

from tictactoe402.config import Settings, get_settings
from tictactoe402.errors import GameError, ValidationError, error_response
from tictactoe402.game.routes import router as game_router
from tictactoe402.payment.encoding import PAYMENT_REQUIRED_HEADER, PAYMENT_RESPONSE_HEADER
from tictactoe402.payment.facilitator import Facilitator, HttpFacilitator
from tictactoe402.payment.gate import PaymentGate
from tictactoe402.payment.middleware import PaymentGateMiddleware
from tictactoe402.payment.requirements import build_payment_requirement, is_supported
from tictactoe402.payment.routes import router as payment_router
from tictactoe402.sessions.routes import router as session_router
from tictactoe402.sessions.service import SessionService
from tictactoe402.sessions.store import InMemorySessionStore, SessionStore
from tictactoe402.sessions.sweeper import run_sweeper

API_VERSION = "0.1.0"
SERVICE_NAME = "tictactoe402"

logger = logging.getLogger(__name__)


async def check_facilitator_support(app: FastAPI) -> None:
    """Fail start-up if the facilitator does not handle our scheme and network."""
    gate: PaymentGate = app.state.payment_gate
    kinds = await run_in_threadpool(gate.facilitator.supported)
    if not is_supported(gate.requirement, kinds):
        raise RuntimeError(
            f"Facilitator does not support {gate.requirement.scheme} payments on {gate.requirement.network}"
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    if settings.facilitator_check_supported:
        await check_facilitator_support(app)

    requirement = app.state.payment_gate.requirement
    logger.info(
        f"x402 payments: {requirement.price} on {settings.network} "
        f"({requirement.network}) to {requirement.pay_to_address}"
    )

    sweeper = asyncio.create_task(run_sweeper(app.state.session_store, settings.sweep_interval_seconds))
    try:
        yield
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper


def create_app(
    settings: Optional[Settings] = None,
    facilitator: Optional[Facilitator] = None,
    store: Optional[SessionStore] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Configuration, read from the environment when omitted
        facilitator: Payment facilitator, HTTP client to ``settings.facilitator_url`` when omitted
        store: Session store, in-memory when omitted
        rng: Random source for coin flips and bot moves

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    app = FastAPI(
        title="Tic-Tac-Toe x402",
        description="Pay-per-play tic-tac-toe gated by an x402 USDC micropayment",
        version=API_VERSION,
        lifespan=lifespan,
    )

    store = store or InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
    session_service = SessionService(store, settings.optimal_play_probability, rng)
    start_path = f"{settings.api_prefix}/session/start"

    app.state.settings = settings
    app.state.session_store = store
    app.state.session_service = session_service
    app.state.payment_gate = PaymentGate(
        requirement=build_payment_requirement(settings),
        facilitator=facilitator or HttpFacilitator(
            settings.facilitator_url, settings.facilitator_timeout_seconds
        ),
        sessions=session_service,
        resource_url=start_path,
        verify_signature_locally=settings.verify_signature_locally,
    )

    # x402 payment middleware (ADD FIRST - executes last)
    app.add_middleware(PaymentGateMiddleware, paywalled_routes=[f"POST {start_path}"])

    # CORS middleware (ADD LAST - executes first to handle OPTIONS)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            PAYMENT_REQUIRED_HEADER,
            PAYMENT_RESPONSE_HEADER,
            "X-Payment-Required",
            "Payment-Required",
        ],
    )

    @app.exception_handler(GameError)
    async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else "Invalid request body"
        return error_response(ValidationError(message))

    @app.get("/health")
    async def health_check() -> JSONResponse:
        """Health check endpoint for monitoring and load balancers."""
        return JSONResponse(
            content={
                "status": "ok",
                "service": SERVICE_NAME,
                "version": API_VERSION,
            }
        )

    app.include_router(session_router, prefix=settings.api_prefix)
    app.include_router(game_router, prefix=settings.api_prefix)
    app.include_router(payment_router, prefix=settings.api_prefix)

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run("tictactoe402.main:app", host="0.0.0.0", port=settings.port)


# Create the application instance
app = create_app()


if __name__ == "__main__":
    run()
