"""
Command-line entry point: play chess against the engine (or watch it play itself).
"""

import argparse
import logging

from src.control.controller import TurnController
from src.core.config import PlayerAssignment, Settings
from src.core.shared_types import ActorKind
from src.engine.chess_engine import ChessEngine


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Tiny chess: click to move, the engine replies.")
    parser.add_argument(
        "--engine-white",
        action="store_true",
        help="The engine plays white (default: you do)",
    )
    parser.add_argument(
        "--human-black",
        action="store_true",
        help="You play black (default: the engine does)",
    )
    parser.add_argument(
        "--seconds", "-s",
        type=float,
        default=1.5,
        help="Seconds the engine may think per move (default: 1.5)",
    )
    parser.add_argument(
        "--depth", "-d",
        type=int,
        default=6,
        help="Maximum search depth in plies (default: 6)",
    )
    parser.add_argument(
        "--no-rotate",
        action="store_true",
        help="Show the board from black's side",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace) -> Settings:
    players = PlayerAssignment(
        white=ActorKind.COMPUTATIONAL if args.engine_white else ActorKind.INTERACTIVE,
        black=ActorKind.INTERACTIVE if args.human_black else ActorKind.COMPUTATIONAL,
    )
    return Settings(
        rotated=not args.no_rotate,
        seconds_per_move=args.seconds,
        players=players,
        max_depth=args.depth,
        log_level=args.log_level,
    )


def main(argv: list[str] | None = None) -> None:
    settings = build_settings(parse_args(argv))
    logging.basicConfig(
        level=settings.logging_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # imported here so the rest of the program (and its tests) does not need a display
    from src.ui.pygame_frontend import run

    controller = TurnController(ChessEngine(max_depth=settings.max_depth), settings)
    run(controller)


if __name__ == "__main__":
    main()
