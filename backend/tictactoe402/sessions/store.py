"""
Session Store - per-wallet game sessions with expiry.

``SessionStore`` is the interface the rest of the service talks to, so a
networked store can replace ``InMemorySessionStore`` without touching
callers. Every operation lower-cases the wallet address first.

Expiry happens two ways:
1. Lazily, when ``get`` reads an entry past its ``expires_at``
2. Periodically, through ``sweep_expired`` (driven by the sweeper task)

Deleting an absent key is a no-op, so the two never trip over each other.
"""

import dataclasses
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import AsyncContextManager, Callable, Dict, Optional

from tictactoe402.game.engine import GameStatus, empty_board
from tictactoe402.sessions.locks import KeyedLock
from tictactoe402.sessions.models import Session, normalize_address, short_address

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL_SECONDS = 5 * 60

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore(ABC):
    """Keyed store of sessions plus the per-wallet lock guarding them."""

    @abstractmethod
    def create(self, wallet_address: str, player_first: bool) -> Session:
        ...

    @abstractmethod
    def get(self, wallet_address: str) -> Optional[Session]:
        ...

    @abstractmethod
    def update(self, wallet_address: str, **fields) -> Optional[Session]:
        ...

    @abstractmethod
    def delete(self, wallet_address: str) -> None:
        ...

    @abstractmethod
    async def sweep_expired(self) -> int:
        ...

    @abstractmethod
    def lock(self, wallet_address: str) -> AsyncContextManager[None]:
        """Critical section for read-modify-write on one wallet's session."""


class InMemorySessionStore(SessionStore):
    """Process-local dict store. Sessions do not survive a restart."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_SESSION_TTL_SECONDS,
        clock: Optional[Clock] = None,
    ):
        """
        Args:
            ttl_seconds: Lifetime of a new session
            clock: Returns the current aware datetime; tests pass a fake
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or utc_now
        self._sessions: Dict[str, Session] = {}
        self._locks = KeyedLock()

    def create(self, wallet_address: str, player_first: bool) -> Session:
        """Start a fresh session, replacing whatever was stored for the wallet.

        Callers only do this when no live session exists.
        """
        key = normalize_address(wallet_address)
        now = self.clock()
        session = Session(
            wallet_address=key,
            created_at=now,
            expires_at=now + self.ttl,
            board=empty_board(),
            status=GameStatus.CREATED,
            player_first=player_first,
        )
        self._sessions[key] = session
        return _copy(session)

    def get(self, wallet_address: str) -> Optional[Session]:
        key = normalize_address(wallet_address)
        session = self._sessions.get(key)
        if session is None:
            return None
        if session.is_expired(self.clock()):
            self._sessions.pop(key, None)
            logger.info(f"Session expired on read: {short_address(key)}")
            return None
        return _copy(session)

    def update(self, wallet_address: str, **fields) -> Optional[Session]:
        """Merge ``fields`` into a live entry. Returns None when there is nothing to update."""
        unknown = set(fields) - {f.name for f in dataclasses.fields(Session)}
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        if self.get(wallet_address) is None:
            return None

        session = self._sessions[normalize_address(wallet_address)]
        for name, value in fields.items():
            if name == "board":
                value = list(value)
            setattr(session, name, value)
        return _copy(session)

    def delete(self, wallet_address: str) -> None:
        self._sessions.pop(normalize_address(wallet_address), None)

    async def sweep_expired(self) -> int:
        """Remove every expired entry. Returns how many were removed.

        Wallets whose lock is currently held are skipped; the holder is
        mid-request and lazy expiry (or the next sweep) will catch them.
        """
        now = self.clock()
        expired = [key for key, session in self._sessions.items() if session.is_expired(now)]
        removed = 0
        for key in expired:
            if self._locks.is_held(key):
                continue
            async with self._locks.hold(key):
                session = self._sessions.get(key)
                if session is not None and session.is_expired(self.clock()):
                    del self._sessions[key]
                    removed += 1
        return removed

    def lock(self, wallet_address: str) -> AsyncContextManager[None]:
        return self._locks.hold(normalize_address(wallet_address))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, wallet_address: str) -> bool:
        return normalize_address(wallet_address) in self._sessions


def _copy(session: Session) -> Session:
    return dataclasses.replace(session, board=list(session.board))
