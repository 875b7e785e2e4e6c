"""
Session Service - start, restore, read and play sessions.

Ties the session store to the board engine. Payment is handled before
``start`` is reached; by then the wallet address is the verified signer.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from tictactoe402.errors import GameOverError, NotFoundError, PaymentRequiredError, ValidationError
from tictactoe402.game.engine import (
    DEFAULT_OPTIMAL_PLAY_PROBABILITY,
    Board,
    Cell,
    GameStatus,
    board_status,
    is_valid_move,
    next_opponent_move,
)
from tictactoe402.sessions.models import Session, short_address
from tictactoe402.sessions.store import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class StartResult:
    session: Session
    opponent_move: Optional[int]
    restored: bool


@dataclass
class MoveResult:
    board: Board
    opponent_move: Optional[int]
    status: GameStatus


class SessionService:
    """Game lifecycle on top of a ``SessionStore``."""

    def __init__(
        self,
        store: SessionStore,
        optimal_probability: float = DEFAULT_OPTIMAL_PLAY_PROBABILITY,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.optimal_probability = optimal_probability
        self.rng = rng or random.Random()

    def live_session(self, wallet_address: str) -> Optional[Session]:
        """The wallet's session if it is neither expired nor finished."""
        session = self.store.get(wallet_address)
        if session is None or session.status.is_terminal:
            return None
        return session

    def start(self, wallet_address: str, restoring: bool = False) -> StartResult:
        """Restore the wallet's live session or create a new one.

        Must run while holding ``store.lock(wallet_address)``; the payment
        gate takes that lock before it decides whether to settle.

        Args:
            wallet_address: Verified payer address
            restoring: True when the gate skipped settlement because a live
                session existed at check time

        Returns:
            StartResult with the session snapshot and the bot's opening move

        Raises:
            PaymentRequiredError: A restore was authorized but the session
                expired before it could be returned
        """
        existing = self.live_session(wallet_address)
        if existing is not None:
            logger.info(f"Restoring session for {short_address(existing.wallet_address)}")
            return StartResult(session=existing, opponent_move=None, restored=True)

        if restoring:
            # no payment was taken for this request, so it cannot open a new game
            raise PaymentRequiredError(
                "Session expired while restoring. Sign a new payment to start a game."
            )

        player_first = self.rng.random() < 0.5
        session = self.store.create(wallet_address, player_first)
        opponent_move = None

        if not player_first:
            opponent_move = next_opponent_move(session.board, self.optimal_probability, self.rng)
            if opponent_move is not None:
                board = list(session.board)
                board[opponent_move] = Cell.THEIRS
                session = self.store.update(
                    wallet_address, board=board, status=board_status(board)
                ) or session

        logger.info(
            f"Session created for {short_address(session.wallet_address)} "
            f"(player_first={player_first}, expires_at={session.expires_at.isoformat()})"
        )
        return StartResult(session=session, opponent_move=opponent_move, restored=False)

    def get(self, wallet_address: str) -> Session:
        session = self.store.get(wallet_address)
        if session is None:
            raise NotFoundError("No active session for this wallet")
        return session

    async def move(self, wallet_address: Optional[str], position: Optional[int]) -> MoveResult:
        """Apply the human's move and, if the game goes on, the bot's reply.

        A move that ends the game deletes the session.
        """
        if not wallet_address or position is None:
            raise ValidationError("walletAddress and position are required")

        async with self.store.lock(wallet_address):
            session = self.store.get(wallet_address)
            if session is None:
                logger.info(f"Move rejected, no session: {short_address(wallet_address)}")
                raise NotFoundError("Please start a new game")

            if session.status.is_terminal:
                raise GameOverError("This game has already ended. Please start a new game.")

            if not is_valid_move(session.board, position):
                logger.info(f"Invalid move {position!r} from {short_address(session.wallet_address)}")
                raise ValidationError("Cell is already occupied or position is out of range")

            board = list(session.board)
            board[position] = Cell.MINE

            status = board_status(board)
            opponent_move = None
            if status is GameStatus.ACTIVE:
                opponent_move = next_opponent_move(board, self.optimal_probability, self.rng)
                if opponent_move is not None:
                    board[opponent_move] = Cell.THEIRS
                    status = board_status(board)

            if status.is_terminal:
                self.store.delete(wallet_address)
                logger.info(f"Game over for {short_address(session.wallet_address)}: {status.value}")
            elif self.store.update(wallet_address, board=board, status=status) is None:
                logger.info(f"Session expired during move: {short_address(session.wallet_address)}")
                raise NotFoundError("Please start a new game")

        return MoveResult(board=board, opponent_move=opponent_move, status=status)
