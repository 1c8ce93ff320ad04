"""
Square indexing shared by the engine and the turn controller.

Squares are numbered 0..63 as `col + 8 * row`:
* row is the rank, row 0 being rank 1.
* col runs from the h-file (col 0) to the a-file (col 7).

Drawn unrotated (row 0 at the top) this shows the board from black's side, rotated it shows it from white's side.
"""

import chess

BOARD_DIMENSIONS = (8, 8)
NUM_SQUARES = BOARD_DIMENSIONS[0] * BOARD_DIMENSIONS[1]


def index(row: int, col: int) -> int:
    return col + row * BOARD_DIMENSIONS[0]


def row_col(square: int) -> tuple[int, int]:
    """Inverse of index()"""
    return divmod(square, BOARD_DIMENSIONS[0])


def is_within_bounds(square: int) -> bool:
    return 0 <= square < NUM_SQUARES


def to_chess_square(square: int) -> chess.Square:
    """Convert into python-chess numbering (a1 = 0, b1 = 1, ..., h8 = 63)"""
    row, col = row_col(square)
    return chess.square(BOARD_DIMENSIONS[0] - 1 - col, row)


def from_chess_square(square: chess.Square) -> int:
    file = chess.square_file(square)
    rank = chess.square_rank(square)
    return index(rank, BOARD_DIMENSIONS[0] - 1 - file)


def from_algebraic(name: str) -> int:
    """Algebraic notation: 'h1' -> 0, 'a1' -> 7, 'a8' -> 63"""
    return from_chess_square(chess.parse_square(name))


def to_algebraic(square: int) -> str:
    return chess.square_name(to_chess_square(square))
