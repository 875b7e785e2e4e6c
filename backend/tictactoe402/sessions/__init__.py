"""
Sessions Module - per-wallet game sessions.

Exports:
- Session: Stored game state for one wallet
- SessionStore / InMemorySessionStore: Keyed store with expiry
- SessionService: Start / restore / read / move
"""

from tictactoe402.sessions.models import Session, normalize_address
from tictactoe402.sessions.service import MoveResult, SessionService, StartResult
from tictactoe402.sessions.store import InMemorySessionStore, SessionStore

__all__ = [
    "Session",
    "normalize_address",
    "SessionStore",
    "InMemorySessionStore",
    "SessionService",
    "StartResult",
    "MoveResult",
]
