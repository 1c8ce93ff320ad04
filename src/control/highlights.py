"""
Selection & Highlight Tracker
----

Derives the per-square highlight tags from the selected origin, its legal destinations, or the last move played.

The tags are stored in display orientation. Rotating the display mirrors both axes
(row -> 7 - row, col -> 7 - col), which for `index = col + 8 * row` is the same as reversing the list.
Hence toggling the rotation reverses the stored tags in place and nothing needs to be recomputed.
"""

from typing import Iterable, Optional

from src.core.shared_types import HighlightTag
from src.engine.squares import BOARD_DIMENSIONS, NUM_SQUARES

LAST_ROW = BOARD_DIMENSIONS[1] - 1
LAST_COL = BOARD_DIMENSIONS[0] - 1


def rotated_coords(rotated: bool, row: int, col: int) -> tuple[int, int]:
    """Display cell <-> logical square. The transform is its own inverse."""
    if rotated:
        return LAST_ROW - row, LAST_COL - col
    return row, col


def rotate_index(rotated: bool, square: int) -> int:
    return NUM_SQUARES - 1 - square if rotated else square


def mirror(tags: list[HighlightTag]) -> None:
    tags.reverse()


def empty_highlights() -> list[HighlightTag]:
    return [HighlightTag.NONE] * NUM_SQUARES


def derive_highlights(
    selected_origin: Optional[int] = None,
    destinations: Iterable[int] = (),
    last_move: Optional[tuple[int, int]] = None,
    rotated: bool = False,
) -> list[HighlightTag]:
    """
    Pure derivation of the highlight map.

    * a selected origin is tagged SELECTED and its destinations REACHABLE
    * otherwise, the two squares of the last move are tagged LAST_MOVE
    """
    tags = empty_highlights()
    if selected_origin is not None:
        for destination in destinations:
            tags[destination] = HighlightTag.REACHABLE
        tags[selected_origin] = HighlightTag.SELECTED
    elif last_move is not None:
        origin, destination = last_move
        tags[origin] = HighlightTag.LAST_MOVE
        tags[destination] = HighlightTag.LAST_MOVE

    if rotated:
        mirror(tags)
    return tags


class SelectionTracker:
    """Selected origin + highlight map, kept in sync with the display rotation."""

    def __init__(self, rotated: bool = False) -> None:
        self.rotated = rotated
        self.selected_origin: Optional[int] = None
        self.tags = empty_highlights()

    def select_origin(self, origin: int, destinations: Iterable[int]) -> None:
        self.selected_origin = origin
        self.tags = derive_highlights(
            selected_origin=origin, destinations=destinations, rotated=self.rotated
        )

    def record_move(self, origin: int, destination: int) -> None:
        self.selected_origin = None
        self.tags = derive_highlights(
            last_move=(origin, destination), rotated=self.rotated
        )

    def clear(self) -> None:
        self.selected_origin = None
        self.tags = empty_highlights()

    def toggle_rotation(self) -> None:
        self.rotated = not self.rotated
        mirror(self.tags)

    def snapshot(self) -> tuple[int, ...]:
        return tuple(int(tag) for tag in self.tags)
