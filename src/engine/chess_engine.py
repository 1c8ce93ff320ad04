"""
The decision engine used by the desk: rules from python-chess, replies from src.engine.search.

All squares crossing this boundary use the 0..63 numbering of src.engine.squares.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

import chess

from src.core.exceptions import IllegalMoveError
from src.core.models import Board64, ComputedReply, MoveFlag
from src.core.shared_types import TerminalState
from src.engine import squares
from src.engine.protocol import KING_VALUE
from src.engine.search import mate_distance, search

logger = logging.getLogger(__name__)

DEFAULT_SECONDS_PER_MOVE = 1.5
DEFAULT_MAX_DEPTH = 6


@dataclass
class GameState:
    """The authoritative game: only ever touched while holding the lock of the SharedStateCell."""

    board: chess.Board = field(default_factory=chess.Board)
    # plies played since the last reset; the side to move is move_counter % 2
    move_counter: int = 0
    secs_per_move: float = DEFAULT_SECONDS_PER_MOVE
    max_depth: int = DEFAULT_MAX_DEPTH


def piece_code(piece: Optional[chess.Piece]) -> int:
    """Empty: 0, pawn .. king: 1 .. 6, negative for black."""
    if piece is None:
        return 0
    return piece.piece_type if piece.color == chess.WHITE else -piece.piece_type


class ChessEngine:
    """Implements the DecisionEngine protocol for classical chess."""

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.max_depth = max_depth

    def create_game(self) -> GameState:
        return GameState(max_depth=self.max_depth)

    def reset_in_place(self, state: GameState) -> None:
        state.board.reset()
        state.move_counter = 0

    def snapshot_board(self, state: GameState) -> Board64:
        return tuple(
            piece_code(state.board.piece_at(squares.to_chess_square(square)))
            for square in range(squares.NUM_SQUARES)
        )

    def legal_destinations(self, state: GameState, origin: int) -> Iterator[int]:
        """Generator: every destination once, even when several promotion choices lead there."""
        if not squares.is_within_bounds(origin):
            return
        from_square = squares.to_chess_square(origin)
        seen: set[int] = set()
        for move in state.board.generate_legal_moves(
            from_mask=chess.BB_SQUARES[from_square]
        ):
            destination = squares.from_chess_square(move.to_square)
            if destination not in seen:
                seen.add(destination)
                yield destination

    def is_legal_move(self, state: GameState, origin: int, destination: int) -> bool:
        return self._find_move(state.board, origin, destination) is not None

    def apply_move(
        self,
        state: GameState,
        origin: int,
        destination: int,
        promote_to: Optional[int] = None,
    ) -> MoveFlag:
        """Pawns reaching the last rank become a queen unless `promote_to` says otherwise."""
        board = state.board
        move = self._find_move(board, origin, destination, promote_to)
        if move is None:
            raise IllegalMoveError(f"Move not allowed: {origin=} {destination=}")

        san = board.san(move)
        is_capture = board.is_capture(move)
        board.push(move)
        state.move_counter += 1

        return MoveFlag(
            san=san,
            ply=len(board.move_stack),
            is_capture=is_capture,
            is_check=board.is_check(),
            is_checkmate=board.is_checkmate(),
            promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
        )

    def describe_move(
        self, state: GameState, origin: int, destination: int, flag: MoveFlag
    ) -> str:
        """e.g. '1. e4' for white, '1. ... e5' for black"""
        move_number = (flag.ply + 1) // 2
        prefix = f"{move_number}." if flag.ply % 2 == 1 else f"{move_number}. ..."
        return f"{prefix} {flag.san}"

    def compute_reply(self, state: GameState) -> ComputedReply:
        board = state.board
        terminal = self._terminal_state(board)
        if terminal is not TerminalState.PLAYING:
            logger.info("No reply to compute, game is over: %s", terminal.name.lower())
            score = -KING_VALUE if terminal is TerminalState.CHECKMATE else 0
            return ComputedReply(
                origin=0,
                destination=0,
                score=score,
                terminal_state=terminal,
                distance_to_forced_end=0,
            )

        result = search(board, state.secs_per_move, state.max_depth)
        if result.move is None:
            # unreachable as long as _terminal_state agrees with python-chess on legal moves
            raise IllegalMoveError("Search did not produce a move.")

        logger.info(
            "Reply %s, score %d, depth %d, %d nodes",
            result.move.uci(),
            result.score,
            result.depth,
            result.nodes,
        )
        return ComputedReply(
            origin=squares.from_chess_square(result.move.from_square),
            destination=squares.from_chess_square(result.move.to_square),
            score=result.score,
            terminal_state=TerminalState.PLAYING,
            distance_to_forced_end=mate_distance(result.score),
        )

    def move_list(self, state: GameState) -> list[str]:
        """Replay the game from its starting position: ['1. e4 e5', '2. Nf3', ...]"""
        replay = state.board.root()
        lines: list[str] = []
        for move in state.board.move_stack:
            san = replay.san(move)
            if replay.turn == chess.WHITE:
                lines.append(f"{replay.fullmove_number}. {san}")
            elif lines:
                lines[-1] = f"{lines[-1]} {san}"
            else:
                lines.append(f"{replay.fullmove_number}. ... {san}")
            replay.push(move)
        return lines

    # -- PRIVATE HELPERS ---
    def _find_move(
        self,
        board: chess.Board,
        origin: int,
        destination: int,
        promote_to: Optional[int] = None,
    ) -> Optional[chess.Move]:
        if not (squares.is_within_bounds(origin) and squares.is_within_bounds(destination)):
            return None
        from_square = squares.to_chess_square(origin)
        to_square = squares.to_chess_square(destination)
        wanted_promotion = promote_to or chess.QUEEN
        for move in board.generate_legal_moves(from_mask=chess.BB_SQUARES[from_square]):
            if move.to_square != to_square:
                continue
            if move.promotion is None or move.promotion == wanted_promotion:
                return move
        return None

    def _terminal_state(self, board: chess.Board) -> TerminalState:
        if board.is_checkmate():
            return TerminalState.CHECKMATE
        if board.is_stalemate():
            return TerminalState.STALEMATE
        if (
            board.is_insufficient_material()
            or board.is_seventyfive_moves()
            or board.is_fivefold_repetition()
        ):
            return TerminalState.DRAW
        return TerminalState.PLAYING
