import asyncio

import pytest

from tictactoe402.game.engine import Cell, GameStatus
from tictactoe402.sessions.locks import KeyedLock

from conftest import WALLET


def test_create_sets_defaults(store, clock):
    session = store.create(WALLET, player_first=True)

    assert session.wallet_address == WALLET.lower()
    assert session.status is GameStatus.CREATED
    assert session.board == [None] * 9
    assert session.created_at == clock.now
    assert (session.expires_at - session.created_at).total_seconds() == 300


def test_keys_are_case_insensitive(store):
    store.create(WALLET.upper().replace("0X", "0x"), player_first=False)

    assert store.get(WALLET.lower()) is not None
    assert WALLET in store


def test_get_returns_copies(store):
    store.create(WALLET, player_first=True)

    session = store.get(WALLET)
    session.board[0] = Cell.MINE

    assert store.get(WALLET).board[0] is None


def test_get_expires_lazily(store, clock):
    store.create(WALLET, player_first=True)

    clock.advance(minutes=5)
    assert store.get(WALLET) is not None  # exactly at expires_at is still live

    clock.advance(seconds=1)
    assert store.get(WALLET) is None
    assert WALLET not in store


def test_update_merges_fields(store):
    store.create(WALLET, player_first=True)
    board = [Cell.MINE] + [None] * 8

    updated = store.update(WALLET, board=board, status=GameStatus.ACTIVE)

    assert updated.board == board
    assert updated.status is GameStatus.ACTIVE
    assert store.get(WALLET).board[0] is Cell.MINE


def test_update_missing_or_expired_is_noop(store, clock):
    assert store.update(WALLET, status=GameStatus.ACTIVE) is None

    store.create(WALLET, player_first=True)
    clock.advance(minutes=6)
    assert store.update(WALLET, status=GameStatus.ACTIVE) is None
    assert len(store) == 0


def test_update_rejects_unknown_fields(store):
    store.create(WALLET, player_first=True)
    with pytest.raises(ValueError):
        store.update(WALLET, score=3)


def test_delete_is_idempotent(store):
    store.create(WALLET, player_first=True)
    store.delete(WALLET)
    store.delete(WALLET)
    assert store.get(WALLET) is None


def test_sweep_removes_only_expired(store, clock):
    store.create("0x" + "01" * 20, player_first=True)
    clock.advance(minutes=3)
    store.create("0x" + "02" * 20, player_first=True)
    clock.advance(minutes=3)

    removed = asyncio.run(store.sweep_expired())

    assert removed == 1
    assert "0x" + "01" * 20 not in store
    assert "0x" + "02" * 20 in store


def test_sweep_then_lazy_read_does_not_fail(store, clock):
    store.create(WALLET, player_first=True)
    clock.advance(minutes=10)

    assert asyncio.run(store.sweep_expired()) == 1
    assert store.get(WALLET) is None
    assert asyncio.run(store.sweep_expired()) == 0


def test_sweep_skips_sessions_locked_by_a_request(store, clock):
    store.create(WALLET, player_first=True)
    clock.advance(minutes=10)

    async def sweep_while_locked():
        async with store.lock(WALLET):
            return await store.sweep_expired()

    assert asyncio.run(sweep_while_locked()) == 0
    assert WALLET in store
    assert asyncio.run(store.sweep_expired()) == 1


def test_keyed_lock_serializes_and_cleans_up():
    locks = KeyedLock()
    order = []

    async def worker(name):
        async with locks.hold("a"):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    async def scenario():
        await asyncio.gather(worker("first"), worker("second"))

    asyncio.run(scenario())

    assert order == ["first-in", "first-out", "second-in", "second-out"]
    assert len(locks) == 0
    assert not locks.is_held("a")
