"""
Game API Routes

Endpoints:
- POST /game/move - Play a move; the bot answers in the same response
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import StrictInt

from tictactoe402.game.engine import Cell, GameStatus
from tictactoe402.schemas import ApiModel
from tictactoe402.sessions.routes import get_session_service
from tictactoe402.sessions.service import SessionService

router = APIRouter(prefix="/game", tags=["game"])


class MoveRequest(ApiModel):
    # both optional here so a missing field is a 400 from the service, not a 422
    wallet_address: Optional[str] = None
    position: Optional[StrictInt] = None


class MoveResponse(ApiModel):
    board: List[Optional[Cell]]
    opponent_move: Optional[int] = None
    status: GameStatus


@router.post("/move", response_model=MoveResponse)
async def make_move(
    request: MoveRequest,
    service: SessionService = Depends(get_session_service),
) -> MoveResponse:
    """
    Apply the player's move to their live session.

    **Request:**
    - `walletAddress`: Player wallet address
    - `position`: Cell 0-8, row by row

    **Response:**
    - `board`: Board after the player's move and the bot's reply
    - `opponentMove`: Cell the bot played, or null
    - `status`: `active`, `player_wins`, `ai_wins` or `draw`
    """
    result = await service.move(request.wallet_address, request.position)
    return MoveResponse(
        board=result.board,
        opponent_move=result.opponent_move,
        status=result.status,
    )
