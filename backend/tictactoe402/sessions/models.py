"""
Session data model.

A session is keyed by a lower-cased wallet address and lives for a fixed
window after the payment that created it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from tictactoe402.game.engine import Board, GameStatus, empty_board


def normalize_address(wallet_address: str) -> str:
    """Store key for a wallet: addresses are compared case-insensitively."""
    return wallet_address.strip().lower()


@dataclass
class Session:
    """One paid game for one wallet."""
    wallet_address: str
    created_at: datetime
    expires_at: datetime
    board: Board = field(default_factory=empty_board)
    status: GameStatus = GameStatus.CREATED
    player_first: bool = True

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


def short_address(address: str) -> str:
    """Abbreviated address for log lines."""
    if len(address) <= 12:
        return address
    return f"{address[:6]}...{address[-4:]}"
