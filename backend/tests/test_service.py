import asyncio

import pytest

from tictactoe402.errors import GameOverError, NotFoundError, PaymentRequiredError, ValidationError
from tictactoe402.game.engine import Cell, GameStatus
from tictactoe402.sessions.service import SessionService

from conftest import WALLET, FixedRandom

X, O, _ = Cell.MINE, Cell.THEIRS, None


def test_start_player_first_leaves_board_empty(service):
    result = service.start(WALLET)

    assert result.restored is False
    assert result.opponent_move is None
    assert result.session.player_first is True
    assert result.session.status is GameStatus.CREATED
    assert result.session.board == [None] * 9


def test_start_bot_first_places_one_mark(store):
    # 0.9 loses the coin flip for the player but is still below probability 1.0
    service = SessionService(store, optimal_probability=1.0, rng=FixedRandom(0.9))

    result = service.start(WALLET)

    assert result.session.player_first is False
    assert result.opponent_move == 4
    assert result.session.board.count(O) == 1
    assert result.session.board[4] is O
    assert result.session.status is GameStatus.ACTIVE
    assert store.get(WALLET).board[4] is O


def test_start_twice_restores_unchanged_session(service):
    first = service.start(WALLET)
    asyncio.run(service.move(WALLET, 0))
    board_before = service.get(WALLET).board

    second = service.start(WALLET.lower())

    assert second.restored is True
    assert second.opponent_move is None
    assert second.session.board == board_before
    assert second.session.created_at == first.session.created_at


def test_restore_of_expired_session_does_not_create_one(service, store, clock):
    service.start(WALLET)
    clock.advance(minutes=6)

    with pytest.raises(PaymentRequiredError):
        service.start(WALLET, restoring=True)
    assert store.get(WALLET) is None


def test_get_missing_raises_not_found(service):
    with pytest.raises(NotFoundError):
        service.get(WALLET)


def test_move_requires_fields(service):
    with pytest.raises(ValidationError):
        asyncio.run(service.move(None, 3))
    with pytest.raises(ValidationError):
        asyncio.run(service.move(WALLET, None))


def test_move_without_session_is_not_found(service):
    with pytest.raises(NotFoundError):
        asyncio.run(service.move(WALLET, 0))


def test_first_move_activates_and_bot_replies(service):
    service.start(WALLET)

    result = asyncio.run(service.move(WALLET, 4))

    assert result.status is GameStatus.ACTIVE
    assert result.board[4] is X
    assert result.opponent_move in (0, 2, 6, 8)
    assert result.board[result.opponent_move] is O
    stored = service.get(WALLET)
    assert stored.status is GameStatus.ACTIVE
    assert stored.board == result.board


@pytest.mark.parametrize("position", [-1, 9, 4])
def test_invalid_move_leaves_board_unchanged(service, store, position):
    service.start(WALLET)
    store.update(WALLET, board=[_, _, _, _, O, _, _, _, _], status=GameStatus.ACTIVE)

    with pytest.raises(ValidationError):
        asyncio.run(service.move(WALLET, position))

    assert store.get(WALLET).board == [_, _, _, _, O, _, _, _, _]


def test_winning_move_deletes_session(service, store):
    service.start(WALLET)
    store.update(WALLET, board=[X, X, _, O, O, _, _, _, _], status=GameStatus.ACTIVE)

    result = asyncio.run(service.move(WALLET, 2))

    assert result.status is GameStatus.PLAYER_WINS
    assert result.opponent_move is None
    assert store.get(WALLET) is None
    with pytest.raises(NotFoundError):
        service.get(WALLET)


def test_bot_reply_can_end_the_game(service, store):
    service.start(WALLET)
    store.update(WALLET, board=[X, _, _, O, O, _, X, _, _], status=GameStatus.ACTIVE)

    result = asyncio.run(service.move(WALLET, 8))

    assert result.opponent_move == 5
    assert result.status is GameStatus.AI_WINS
    assert store.get(WALLET) is None


def test_draw_deletes_session(service, store):
    service.start(WALLET)
    store.update(WALLET, board=[X, O, X, X, O, O, O, X, _], status=GameStatus.ACTIVE)

    result = asyncio.run(service.move(WALLET, 8))

    assert result.status is GameStatus.DRAW
    assert result.opponent_move is None
    assert store.get(WALLET) is None


def test_move_on_finished_game_is_game_over(service, store):
    # a custom store might keep finished sessions around
    service.start(WALLET)
    store.update(WALLET, status=GameStatus.AI_WINS)

    with pytest.raises(GameOverError):
        asyncio.run(service.move(WALLET, 0))


def test_concurrent_moves_on_same_cell_do_not_both_apply(service, store):
    service.start(WALLET)

    async def race():
        return await asyncio.gather(
            service.move(WALLET, 0),
            service.move(WALLET, 0),
            return_exceptions=True,
        )

    results = asyncio.run(race())

    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], ValidationError)
    assert store.get(WALLET).board.count(X) == 1


def test_session_expiring_before_save_is_not_found(service, store, clock, monkeypatch):
    service.start(WALLET)
    clock.advance(seconds=300)
    save = store.update

    def update_a_second_later(wallet_address, **fields):
        clock.advance(seconds=1)
        return save(wallet_address, **fields)

    monkeypatch.setattr(store, "update", update_a_second_later)

    with pytest.raises(NotFoundError):
        asyncio.run(service.move(WALLET, 4))
    assert store.get(WALLET) is None
