"""
Boundary layer data model(s).

These objects are exchanged between the decision engine, the turn controller and the presentation layer.
(Decouples the data model of the engine from the information needed to send across boundaries)
"""

from dataclasses import dataclass
from typing import Optional

from src.core.shared_types import TerminalState

Board64 = tuple[int, ...]


@dataclass(frozen=True)
class ComputedReply:
    """Result of a background computation. Produced at most once per dispatched worker."""

    origin: int
    destination: int
    score: int
    terminal_state: TerminalState
    distance_to_forced_end: int
    # generation of the shared state the reply was computed for (set by the worker)
    generation: int = 0


@dataclass(frozen=True)
class MoveFlag:
    """Metadata returned by applying a move, used to format the move description."""

    san: str
    ply: int
    is_capture: bool = False
    is_check: bool = False
    is_checkmate: bool = False
    promotion: Optional[str] = None


@dataclass(frozen=True)
class Frame:
    """Everything the presentation layer needs to draw one iteration."""

    board: Board64
    highlights: tuple[int, ...]
    status: str
    title: str
    rotated: bool
    thinking: bool
    # draw again soon even without input (a worker is busy)
    redraw: bool = False
