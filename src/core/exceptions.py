"""
Custom exceptions, shared by all layers.

Anything the application raises on purpose derives from GameError, so callers can catch a single type.
"""


class GameError(Exception):
    """Top level exception of the application."""


class IllegalMoveError(GameError):
    """The decision engine refused to play a move."""


class GameStateError(GameError):
    """An operation was requested that the current state does not allow."""


class InvalidRequestError(GameError):
    """User supplied configuration could not be validated."""
