"""
Presentation layer: a pygame window with the board on the right and a control panel on the left.

Drives the foreground loop: one TurnController.step() per frame. All game logic lives in the controller;
this module only draws Frames and turns mouse clicks into logical board coordinates.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import pygame

from src.control.controller import WINDOW_TITLE, TurnController
from src.control.highlights import rotate_index, rotated_coords
from src.core.config import MAX_SECONDS_PER_MOVE, MIN_SECONDS_PER_MOVE
from src.core.models import Frame
from src.core.shared_types import ActorKind, HighlightTag, Side
from src.engine.squares import BOARD_DIMENSIONS, index

logger = logging.getLogger(__name__)

WIDTH, HEIGHT = 1050, 800
PANEL_W = 250
SQUARE = min(WIDTH - PANEL_W, HEIGHT) // BOARD_DIMENSIONS[0]
BOARD_X = PANEL_W + (WIDTH - PANEL_W - SQUARE * BOARD_DIMENSIONS[0]) // 2
BOARD_Y = (HEIGHT - SQUARE * BOARD_DIMENSIONS[1]) // 2

# fps while idle / while a worker is thinking
IDLE_FPS = 20
BUSY_FPS = 60
SECONDS_STEP = 0.1

LIGHT_SQ = (255, 255, 255)
DARK_SQ = (205, 205, 205)
PANEL_BG = (235, 235, 240)
BUTTON_BG = (210, 210, 220)
TEXT = (0, 0, 0)

# darkening of the blue channel per highlight tag
SHADE: dict[int, int] = {
    HighlightTag.LAST_MOVE: 25,
    HighlightTag.REACHABLE: 50,
}

PIECE_LETTERS = " PNBRQK"


def piece_letter(code: int) -> str:
    """FEN style: upper case for white, lower case for black."""
    letter = PIECE_LETTERS[abs(code)]
    return letter if code > 0 else letter.lower()


def square_color(row: int, col: int, tag: int) -> tuple[int, int, int]:
    red, green, blue = LIGHT_SQ if (row + col) % 2 == 0 else DARK_SQ
    return red, green, blue - SHADE.get(tag, 0)


def display_cell_at(pos: tuple[int, int]) -> Optional[tuple[int, int]]:
    """(row, col) of the display cell under the mouse, None outside the board."""
    x, y = pos
    col = (x - BOARD_X) // SQUARE
    row = (y - BOARD_Y) // SQUARE
    if 0 <= row < BOARD_DIMENSIONS[1] and 0 <= col < BOARD_DIMENSIONS[0]:
        return row, col
    return None


def board_click(pos: tuple[int, int], rotated: bool) -> Optional[tuple[int, int]]:
    """Logical (row, col) under the mouse for the given display rotation, None outside the board."""
    cell = display_cell_at(pos)
    if cell is None:
        return None
    return rotated_coords(rotated, *cell)


@dataclass
class Button:
    rect: pygame.Rect
    label: Callable[[], str]
    action: Callable[[], None]


class DeskWindow:
    def __init__(self, controller: TurnController) -> None:
        self.controller = controller
        pygame.init()
        self.screen = pygame.display.set_mode((WIDTH, HEIGHT))
        pygame.display.set_caption(WINDOW_TITLE)
        self.clock = pygame.time.Clock()
        self.piece_font = pygame.font.SysFont("dejavusans", int(SQUARE * 0.7), bold=True)
        self.panel_font = pygame.font.SysFont("dejavusans", 18)
        self.buttons = self._build_buttons()
        self.frame: Frame = controller.frame()

    def run(self) -> None:
        running = True
        while running:
            click: Optional[tuple[int, int]] = None
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                    click = self._handle_click(event.pos) or click

            self.frame = self.controller.step(click)
            self._draw(self.frame)
            pygame.display.set_caption(self.frame.title)
            pygame.display.flip()
            self.clock.tick(BUSY_FPS if self.frame.redraw else IDLE_FPS)
        self.controller.shutdown()
        pygame.quit()

    # -- input --
    def _handle_click(self, pos: tuple[int, int]) -> Optional[tuple[int, int]]:
        for button in self.buttons:
            if button.rect.collidepoint(pos):
                button.action()
                return None
        # the rotation of the controller, not of the last frame: a Rotate click earlier in this batch counts
        return board_click(pos, self.controller.tracker.rotated)

    def _build_buttons(self) -> list[Button]:
        controller = self.controller

        def engine_label(side: Side) -> Callable[[], str]:
            def label() -> str:
                plays = controller.players.actor(side) == ActorKind.COMPUTATIONAL
                return f"[{'x' if plays else ' '}] Engine plays {side.name.lower()}"

            return label

        def toggle_engine(side: Side) -> Callable[[], None]:
            def action() -> None:
                plays = controller.players.actor(side) == ActorKind.COMPUTATIONAL
                controller.set_actor(
                    side, ActorKind.INTERACTIVE if plays else ActorKind.COMPUTATIONAL
                )

            return action

        def change_seconds(delta: float) -> Callable[[], None]:
            def action() -> None:
                seconds = round(controller.seconds_per_move + delta, 1)
                seconds = min(MAX_SECONDS_PER_MOVE, max(MIN_SECONDS_PER_MOVE, seconds))
                controller.set_seconds_per_move(seconds)

            return action

        entries: list[tuple[Callable[[], str], Callable[[], None]]] = [
            (lambda: f"Sec/move: {controller.seconds_per_move:.1f}  (+)", change_seconds(SECONDS_STEP)),
            (lambda: "Sec/move (-)", change_seconds(-SECONDS_STEP)),
            (lambda: "Rotate", controller.toggle_rotation),
            (lambda: "Print movelist", controller.print_move_list),
            (lambda: "New Game", controller.request_new_game),
            (engine_label(Side.WHITE), toggle_engine(Side.WHITE)),
            (engine_label(Side.BLACK), toggle_engine(Side.BLACK)),
        ]
        return [
            Button(pygame.Rect(15, 70 + 50 * number, PANEL_W - 30, 38), label, action)
            for number, (label, action) in enumerate(entries)
        ]

    # -- drawing --
    def _draw(self, frame: Frame) -> None:
        self.screen.fill(PANEL_BG)
        heading = self.panel_font.render(WINDOW_TITLE, True, TEXT)
        self.screen.blit(heading, (15, 20))
        for button in self.buttons:
            pygame.draw.rect(self.screen, BUTTON_BG, button.rect, border_radius=4)
            text = self.panel_font.render(button.label(), True, TEXT)
            self.screen.blit(text, text.get_rect(midleft=(button.rect.x + 10, button.rect.centery)))
        status = self.panel_font.render(frame.status, True, TEXT)
        self.screen.blit(status, (15, HEIGHT - 40))

        for row in range(BOARD_DIMENSIONS[1]):
            for col in range(BOARD_DIMENSIONS[0]):
                rect = pygame.Rect(BOARD_X + col * SQUARE, BOARD_Y + row * SQUARE, SQUARE, SQUARE)
                # highlights are stored in display orientation, the board in logical orientation
                tag = frame.highlights[index(row, col)]
                pygame.draw.rect(self.screen, square_color(row, col, tag), rect)
                if tag == HighlightTag.SELECTED:
                    pygame.draw.rect(self.screen, TEXT, rect, 2)

                code = frame.board[rotate_index(frame.rotated, index(row, col))]
                if code:
                    glyph = self.piece_font.render(piece_letter(code), True, TEXT)
                    self.screen.blit(glyph, glyph.get_rect(center=rect.center))


def run(controller: TurnController) -> None:
    DeskWindow(controller).run()
