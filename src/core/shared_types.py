"""
Type definitions used across layers
"""

from enum import Enum, IntEnum, StrEnum, auto


class ActorKind(StrEnum):
    """Who is in charge of a side: a person clicking squares or the search running in the background."""

    INTERACTIVE = "interactive"
    COMPUTATIONAL = "computational"


class Side(IntEnum):
    """Side to move. The value is the parity of the move counter."""

    WHITE = 0
    BLACK = 1


class HighlightTag(IntEnum):
    """Annotation of a single square, consumed by the presentation layer."""

    SELECTED = -1
    NONE = 0
    REACHABLE = 1
    LAST_MOVE = 2


class TerminalState(Enum):
    """Outcome reported by the decision engine together with a computed reply."""

    PLAYING = auto()
    CHECKMATE = auto()
    STALEMATE = auto()
    DRAW = auto()
