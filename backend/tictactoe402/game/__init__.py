"""
Game Module - tic-tac-toe board rules and the move endpoint.
"""

from tictactoe402.game.engine import (
    Board,
    Cell,
    GameStatus,
    TERMINAL_STATUSES,
    board_status,
    check_winner,
    empty_board,
    is_full,
    is_valid_move,
    next_opponent_move,
)

__all__ = [
    "Board",
    "Cell",
    "GameStatus",
    "TERMINAL_STATUSES",
    "board_status",
    "check_winner",
    "empty_board",
    "is_full",
    "is_valid_move",
    "next_opponent_move",
]
