"""Background task that periodically purges expired sessions."""

import asyncio
import logging

from tictactoe402.sessions.store import SessionStore

logger = logging.getLogger(__name__)


async def run_sweeper(store: SessionStore, interval_seconds: float) -> None:
    """Call ``store.sweep_expired()`` every ``interval_seconds`` until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await store.sweep_expired()
        except Exception:
            logger.exception("Session sweep failed")
            continue
        if removed:
            logger.info(f"Swept {removed} expired session(s)")
