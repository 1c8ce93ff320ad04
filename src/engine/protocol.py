"""Protocol for the decision engine (the turn controller only ever talks to the engine through these calls)."""

from typing import Iterator, Optional, Protocol

from src.core.models import Board64, ComputedReply, MoveFlag
from src.core.shared_types import TerminalState


class GameStateLike(Protocol):
    """Just the parts of the game state the turn controller reads."""

    move_counter: int
    secs_per_move: float


class DecisionEngine(Protocol):
    """Owns the rules of the game: move generation, legality, move application and search."""

    def create_game(self) -> GameStateLike:
        """Fresh game in the starting position."""
        ...

    def reset_in_place(self, state: GameStateLike) -> None:
        """Put an existing game back into the starting position."""
        ...

    def snapshot_board(self, state: GameStateLike) -> Board64:
        """64 piece codes, one per square."""
        ...

    def legal_destinations(
        self, state: GameStateLike, origin: int
    ) -> Iterator[int]:
        """Squares the piece on origin may legally move to."""
        ...

    def is_legal_move(
        self, state: GameStateLike, origin: int, destination: int
    ) -> bool: ...

    def apply_move(
        self,
        state: GameStateLike,
        origin: int,
        destination: int,
        promote_to: Optional[int] = None,
    ) -> MoveFlag:
        """Play the move. Raises IllegalMoveError if the move is not allowed."""
        ...

    def describe_move(
        self, state: GameStateLike, origin: int, destination: int, flag: MoveFlag
    ) -> str:
        """Human readable description of a move that was just applied."""
        ...

    def compute_reply(self, state: GameStateLike) -> ComputedReply:
        """Long running: pick a move for the side to move."""
        ...

    def move_list(self, state: GameStateLike) -> list[str]:
        """Moves played so far, one entry per full move."""
        ...


# --- CONSTANTS SHARED WITH THE TURN CONTROLLER ---
# A reply carrying this marker means the side to move has already lost: no move is attached.
STATE_CHECKMATE = TerminalState.CHECKMATE

# Canonical maximal score: delivering mate with the move that is returned.
KING_VALUE = 20_000
KING_VALUE_DIV_2 = KING_VALUE // 2
