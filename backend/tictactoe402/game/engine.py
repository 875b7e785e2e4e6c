"""
Board Engine - pure functions over a 9-cell tic-tac-toe board.

Cells hold ``Cell.MINE`` (the human's mark), ``Cell.THEIRS`` (the bot's mark)
or ``None`` for an empty slot. Positions are numbered 0-8, row by row.
"""

import random
from enum import Enum
from typing import List, Optional, Sequence


class Cell(str, Enum):
    """Mark occupying a board slot. Empty slots are ``None``."""
    MINE = "X"  # human player
    THEIRS = "O"  # bot


class GameStatus(str, Enum):
    CREATED = "created"
    ACTIVE = "active"
    PLAYER_WINS = "player_wins"
    AI_WINS = "ai_wins"
    DRAW = "draw"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({GameStatus.PLAYER_WINS, GameStatus.AI_WINS, GameStatus.DRAW})

Board = List[Optional[Cell]]

BOARD_SIZE = 9
CENTER = 4
CORNERS = (0, 2, 6, 8)
DEFAULT_OPTIMAL_PLAY_PROBABILITY = 0.7

WIN_LINES = (
    (0, 1, 2), (3, 4, 5), (6, 7, 8),  # rows
    (0, 3, 6), (1, 4, 7), (2, 5, 8),  # columns
    (0, 4, 8), (2, 4, 6),             # diagonals
)


def empty_board() -> Board:
    return [None] * BOARD_SIZE


def check_winner(board: Sequence[Optional[Cell]]) -> Optional[Cell]:
    """Return the mark owning a completed line, or None."""
    for a, b, c in WIN_LINES:
        if board[a] is not None and board[a] == board[b] == board[c]:
            return board[a]
    return None


def is_full(board: Sequence[Optional[Cell]]) -> bool:
    return all(cell is not None for cell in board)


def board_status(board: Sequence[Optional[Cell]]) -> GameStatus:
    """Classify a board. A completed line wins over a full board."""
    winner = check_winner(board)
    if winner is Cell.MINE:
        return GameStatus.PLAYER_WINS
    if winner is Cell.THEIRS:
        return GameStatus.AI_WINS
    if is_full(board):
        return GameStatus.DRAW
    return GameStatus.ACTIVE


def is_valid_move(board: Sequence[Optional[Cell]], position: object) -> bool:
    # bool is an int subclass; True must not pass as position 1
    if not isinstance(position, int) or isinstance(position, bool):
        return False
    return 0 <= position < BOARD_SIZE and board[position] is None


def empty_cells(board: Sequence[Optional[Cell]]) -> List[int]:
    return [idx for idx, cell in enumerate(board) if cell is None]


def _winning_cell(board: Sequence[Optional[Cell]], mark: Cell, candidates: List[int]) -> Optional[int]:
    for cell in candidates:
        trial = list(board)
        trial[cell] = mark
        if check_winner(trial) is mark:
            return cell
    return None


def next_opponent_move(
    board: Sequence[Optional[Cell]],
    optimal_probability: float = DEFAULT_OPTIMAL_PLAY_PROBABILITY,
    rng: Optional[random.Random] = None,
) -> Optional[int]:
    """Pick the bot's next position.

    With probability ``optimal_probability`` the bot plays a greedy move:
    win if it can, otherwise block the human's immediate win, otherwise take
    the center, otherwise a random free corner. The rest of the time (or when
    none of those apply) it picks uniformly among the free cells, which keeps
    the bot beatable.

    Args:
        board: Current board
        optimal_probability: Chance of taking the greedy branch (0.0-1.0)
        rng: Random source, ``random`` module functions when omitted

    Returns:
        Position 0-8, or None when the board is full
    """
    rng = rng or random
    free = empty_cells(board)
    if not free:
        return None

    if rng.random() < optimal_probability:
        move = _winning_cell(board, Cell.THEIRS, free)
        if move is not None:
            return move

        move = _winning_cell(board, Cell.MINE, free)
        if move is not None:
            return move

        if board[CENTER] is None:
            return CENTER

        corners = [c for c in CORNERS if board[c] is None]
        if corners:
            return rng.choice(corners)

    return rng.choice(free)
