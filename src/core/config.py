"""User configuration: who plays which side, how long the engine may think, and how the board is displayed."""

import logging

from pydantic import BaseModel, field_validator

from src.core.exceptions import InvalidRequestError
from src.core.shared_types import ActorKind, Side

# Bounds of the "seconds per move" dial
MIN_SECONDS_PER_MOVE = 0.1
MAX_SECONDS_PER_MOVE = 5.0
MAX_SEARCH_DEPTH = 32

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def validate_seconds_per_move(value: float) -> float:
    """Shared by the Settings validator and the runtime dial."""
    if not (MIN_SECONDS_PER_MOVE <= value <= MAX_SECONDS_PER_MOVE):
        raise InvalidRequestError(
            f"Seconds per move must lie between {MIN_SECONDS_PER_MOVE} and {MAX_SECONDS_PER_MOVE}, got {value!r}."
        )
    return value


class PlayerAssignment(BaseModel):
    white: ActorKind = ActorKind.INTERACTIVE
    black: ActorKind = ActorKind.COMPUTATIONAL

    def actor(self, side: Side) -> ActorKind:
        return self.white if side == Side.WHITE else self.black

    def with_actor(self, side: Side, kind: ActorKind) -> "PlayerAssignment":
        """Return a copy with one side reassigned."""
        field_name = "white" if side == Side.WHITE else "black"
        return self.model_copy(update={field_name: kind})


class Settings(BaseModel):
    rotated: bool = True
    seconds_per_move: float = 1.5
    players: PlayerAssignment = PlayerAssignment()
    max_depth: int = 6
    log_level: str = "INFO"

    @field_validator("seconds_per_move")
    @classmethod
    def validate_seconds(cls, value: float) -> float:
        return validate_seconds_per_move(value)

    @field_validator("max_depth")
    @classmethod
    def validate_depth(cls, value: int) -> int:
        if not (1 <= value <= MAX_SEARCH_DEPTH):
            raise InvalidRequestError(
                f"Search depth must lie between 1 and {MAX_SEARCH_DEPTH}, got {value!r}."
            )
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise InvalidRequestError(
                f"Unknown log level {value!r}. Pick one from {','.join(LOG_LEVELS)}"
            )
        return level

    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level)
