"""
Session API Routes

Endpoints:
- POST /session/start - Start or restore a game (x402 protected)
- GET /session/{walletAddress} - Read a live session
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request

from tictactoe402.errors import PaymentRequiredError
from tictactoe402.game.engine import Cell, GameStatus
from tictactoe402.schemas import ApiModel
from tictactoe402.sessions.service import SessionService

router = APIRouter(prefix="/session", tags=["session"])


class SessionResponse(ApiModel):
    """Session snapshot."""
    wallet_address: str
    board: List[Optional[Cell]]
    status: GameStatus
    player_first: bool
    expires_at: datetime


class StartSessionResponse(SessionResponse):
    opponent_move: Optional[int] = None
    restored: bool


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


@router.post("/start", response_model=StartSessionResponse)
async def start_session(
    request: Request,
    service: SessionService = Depends(get_session_service),
) -> StartSessionResponse:
    """
    Start a new game, or restore the wallet's running one.

    Reached only through the payment gate, which puts the verified payer in
    ``request.state.payment`` and holds the wallet's lock while this runs.
    """
    payment = getattr(request.state, "payment", None)
    if payment is None:
        raise PaymentRequiredError("x402 payment header missing")

    result = service.start(payment.wallet_address, restoring=payment.restoring)
    session = result.session
    return StartSessionResponse(
        wallet_address=session.wallet_address,
        board=session.board,
        status=session.status,
        player_first=session.player_first,
        expires_at=session.expires_at,
        opponent_move=result.opponent_move,
        restored=result.restored,
    )


@router.get("/{wallet_address}", response_model=SessionResponse)
async def get_session(
    wallet_address: str,
    service: SessionService = Depends(get_session_service),
) -> SessionResponse:
    session = service.get(wallet_address)
    return SessionResponse(
        wallet_address=session.wallet_address,
        board=session.board,
        status=session.status,
        player_first=session.player_first,
        expires_at=session.expires_at,
    )
