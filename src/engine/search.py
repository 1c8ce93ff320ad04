"""
Move search for the computational player.
----

Iterative deepening negamax with alpha-beta pruning and a capture-only quiescence search.

* Scores are in centipawns, seen from the side to move.
* Mate scores are counted from the root: delivering mate with the root move scores KING_VALUE,
  every extra ply costs one point. That way shorter mates are preferred and the ply distance can be recovered.
* The search is time boxed. The deepest fully completed iteration wins; the first iteration always completes,
  so there is always a move to play.
"""

import logging
import time
from dataclasses import dataclass
from typing import Iterable, Optional

import chess

from src.engine.protocol import KING_VALUE, KING_VALUE_DIV_2

logger = logging.getLogger(__name__)

INFINITY = KING_VALUE + 1
NODES_BETWEEN_CLOCK_CHECKS = 1024
MAX_QUIESCENCE_PLY = 64

PIECE_VALUES: dict[chess.PieceType, int] = {
    chess.PAWN: 100,
    chess.KNIGHT: 320,
    chess.BISHOP: 330,
    chess.ROOK: 500,
    chess.QUEEN: 900,
    chess.KING: 0,
}

# Piece-square tables, written as seen from white with rank 8 on the first line.
# NOTE: a white piece on python-chess square `sq` reads entry `sq ^ 56`, a black piece reads entry `sq`.
# fmt: off
PIECE_SQUARE_TABLES: dict[chess.PieceType, tuple[int, ...]] = {
    chess.PAWN: (
         0,  0,  0,  0,  0,  0,  0,  0,
        50, 50, 50, 50, 50, 50, 50, 50,
        10, 10, 20, 30, 30, 20, 10, 10,
         5,  5, 10, 25, 25, 10,  5,  5,
         0,  0,  0, 20, 20,  0,  0,  0,
         5, -5,-10,  0,  0,-10, -5,  5,
         5, 10, 10,-20,-20, 10, 10,  5,
         0,  0,  0,  0,  0,  0,  0,  0,
    ),
    chess.KNIGHT: (
        -50,-40,-30,-30,-30,-30,-40,-50,
        -40,-20,  0,  0,  0,  0,-20,-40,
        -30,  0, 10, 15, 15, 10,  0,-30,
        -30,  5, 15, 20, 20, 15,  5,-30,
        -30,  0, 15, 20, 20, 15,  0,-30,
        -30,  5, 10, 15, 15, 10,  5,-30,
        -40,-20,  0,  5,  5,  0,-20,-40,
        -50,-40,-30,-30,-30,-30,-40,-50,
    ),
    chess.BISHOP: (
        -20,-10,-10,-10,-10,-10,-10,-20,
        -10,  0,  0,  0,  0,  0,  0,-10,
        -10,  0,  5, 10, 10,  5,  0,-10,
        -10,  5,  5, 10, 10,  5,  5,-10,
        -10,  0, 10, 10, 10, 10,  0,-10,
        -10, 10, 10, 10, 10, 10, 10,-10,
        -10,  5,  0,  0,  0,  0,  5,-10,
        -20,-10,-10,-10,-10,-10,-10,-20,
    ),
    chess.ROOK: (
         0,  0,  0,  0,  0,  0,  0,  0,
         5, 10, 10, 10, 10, 10, 10,  5,
        -5,  0,  0,  0,  0,  0,  0, -5,
        -5,  0,  0,  0,  0,  0,  0, -5,
        -5,  0,  0,  0,  0,  0,  0, -5,
        -5,  0,  0,  0,  0,  0,  0, -5,
        -5,  0,  0,  0,  0,  0,  0, -5,
         0,  0,  0,  5,  5,  0,  0,  0,
    ),
    chess.QUEEN: (
        -20,-10,-10, -5, -5,-10,-10,-20,
        -10,  0,  0,  0,  0,  0,  0,-10,
        -10,  0,  5,  5,  5,  5,  0,-10,
         -5,  0,  5,  5,  5,  5,  0, -5,
          0,  0,  5,  5,  5,  5,  0, -5,
        -10,  5,  5,  5,  5,  5,  0,-10,
        -10,  0,  5,  0,  0,  0,  0,-10,
        -20,-10,-10, -5, -5,-10,-10,-20,
    ),
    chess.KING: (
        -30,-40,-40,-50,-50,-40,-40,-30,
        -30,-40,-40,-50,-50,-40,-40,-30,
        -30,-40,-40,-50,-50,-40,-40,-30,
        -30,-40,-40,-50,-50,-40,-40,-30,
        -20,-30,-30,-40,-40,-30,-30,-20,
        -10,-20,-20,-20,-20,-20,-20,-10,
         20, 20,  0,  0,  0,  0, 20, 20,
         20, 30, 10,  0,  0, 10, 30, 20,
    ),
}
# fmt: on


class SearchTimeout(Exception):
    """Internal signal: the time budget ran out in the middle of an iteration."""


@dataclass
class SearchResult:
    move: Optional[chess.Move]
    score: int
    depth: int
    nodes: int


def evaluate(board: chess.Board) -> int:
    """Material + piece placement, from the point of view of the side to move."""
    total = 0
    for square, piece in board.piece_map().items():
        table = PIECE_SQUARE_TABLES[piece.piece_type]
        if piece.color == chess.WHITE:
            total += PIECE_VALUES[piece.piece_type] + table[square ^ 56]
        else:
            total -= PIECE_VALUES[piece.piece_type] + table[square]
    return total if board.turn == chess.WHITE else -total


def is_mate_score(score: int) -> bool:
    return abs(score) > KING_VALUE_DIV_2


def mate_distance(score: int) -> int:
    """
    Plies until the game ends by mate, plus one (so delivering mate right away gives 2).
    Zero if the score is not a mate score.
    """
    if not is_mate_score(score):
        return 0
    mating_ply = KING_VALUE - abs(score) + 1
    return mating_ply + 1


class Searcher:
    """Searches a private copy of the board: the caller's board is never touched."""

    def __init__(self, board: chess.Board, seconds: float, max_depth: int) -> None:
        self.board = board.copy()
        self.deadline = time.perf_counter() + seconds
        self.max_depth = max_depth
        self.nodes = 0
        self._interruptible = False

    def run(self) -> SearchResult:
        best = SearchResult(move=None, score=-INFINITY, depth=0, nodes=0)
        root_moves = list(self.board.legal_moves)
        if not root_moves:
            return best

        for depth in range(1, self.max_depth + 1):
            # the first iteration must finish, otherwise we might have no move at all
            self._interruptible = depth > 1
            try:
                move, score = self._search_root(root_moves, depth, best.move)
            except SearchTimeout:
                logger.debug("Search ran out of time during depth %d", depth)
                break

            best = SearchResult(move=move, score=score, depth=depth, nodes=self.nodes)
            logger.debug(
                "depth %d: %s score %d (%d nodes)", depth, move, score, self.nodes
            )
            if is_mate_score(score) and mate_distance(score) - 1 <= depth:
                # a forced mate found within the horizon cannot be improved by searching deeper
                break
            if time.perf_counter() > self.deadline:
                break

        best.nodes = self.nodes
        return best

    # -- internals --
    def _search_root(
        self, moves: list[chess.Move], depth: int, previous_best: Optional[chess.Move]
    ) -> tuple[chess.Move, int]:
        alpha = -INFINITY
        best_move = moves[0]
        for move in self._ordered(moves, previous_best):
            self.board.push(move)
            try:
                score = -self._negamax(depth - 1, 1, -INFINITY, -alpha)
            finally:
                self.board.pop()
            if score > alpha:
                alpha = score
                best_move = move
        return best_move, alpha

    def _negamax(self, depth: int, ply: int, alpha: int, beta: int) -> int:
        self._tick()
        board = self.board
        if (
            board.is_repetition(2)
            or board.halfmove_clock >= 100
            or board.is_insufficient_material()
        ):
            return 0

        moves = list(board.legal_moves)
        if not moves:
            # side to move has been mated on this ply (or it is stalemate)
            return -(KING_VALUE - (ply - 1)) if board.is_check() else 0

        if depth <= 0:
            return self._quiescence(ply, alpha, beta)

        best = -INFINITY
        for move in self._ordered(moves):
            board.push(move)
            try:
                score = -self._negamax(depth - 1, ply + 1, -beta, -alpha)
            finally:
                board.pop()
            best = max(best, score)
            alpha = max(alpha, score)
            if alpha >= beta:
                break
        return best

    def _quiescence(self, ply: int, alpha: int, beta: int) -> int:
        self._tick()
        stand_pat = evaluate(self.board)
        if stand_pat >= beta or ply >= MAX_QUIESCENCE_PLY:
            return stand_pat
        alpha = max(alpha, stand_pat)

        for move in self._ordered(self.board.generate_legal_captures()):
            self.board.push(move)
            try:
                score = -self._quiescence(ply + 1, -beta, -alpha)
            finally:
                self.board.pop()
            if score >= beta:
                return score
            alpha = max(alpha, score)
        return alpha

    def _ordered(
        self, moves: Iterable[chess.Move], first: Optional[chess.Move] = None
    ) -> list[chess.Move]:
        """Previous best move first, then captures (most valuable victim, least valuable attacker), then the rest."""

        def priority(move: chess.Move) -> int:
            if move == first:
                return 100_000
            score = 0
            if move.promotion:
                score += PIECE_VALUES[move.promotion]
            if self.board.is_capture(move):
                victim = self.board.piece_type_at(move.to_square) or chess.PAWN
                attacker = self.board.piece_type_at(move.from_square) or chess.PAWN
                score += 10 * PIECE_VALUES[victim] - PIECE_VALUES[attacker] + 1_000
            return score

        return sorted(moves, key=priority, reverse=True)

    def _tick(self) -> None:
        self.nodes += 1
        if (
            self._interruptible
            and self.nodes % NODES_BETWEEN_CLOCK_CHECKS == 0
            and time.perf_counter() > self.deadline
        ):
            raise SearchTimeout


def search(board: chess.Board, seconds: float, max_depth: int) -> SearchResult:
    """Pick a move for the side to move on `board` within roughly `seconds`."""
    return Searcher(board, seconds, max_depth).run()
