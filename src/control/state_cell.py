"""
Shared State Cell
----

Holds the single authoritative game state, shared between the foreground loop and (at most) one background worker.

The state is only reachable through a scoped acquisition of the cell's lock:
* `locked()` blocks: used for mutations and collaborator calls, which must not be skipped.
* `try_locked()` does not block: used for best effort work (refreshing the board snapshot, applying a deferred reset).

A reset ("new game") is requested from the foreground and applied later, as soon as the lock is free.
Every applied reset bumps the generation, which lets the turn controller recognise replies computed for an old game.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Generic, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S")


class SharedStateCell(Generic[S]):
    def __init__(self, state: S) -> None:
        self._state = state
        self._lock = threading.Lock()
        self._reset_requested = threading.Event()
        self._generation = 0

    @property
    def generation(self) -> int:
        """Number of resets applied so far. Only changes while the lock is held."""
        return self._generation

    @property
    def reset_pending(self) -> bool:
        return self._reset_requested.is_set()

    @contextmanager
    def locked(self) -> Iterator[S]:
        with self._lock:
            yield self._state

    @contextmanager
    def try_locked(self) -> Iterator[Optional[S]]:
        """Yields None instead of waiting when somebody else holds the lock."""
        acquired = self._lock.acquire(blocking=False)
        try:
            yield self._state if acquired else None
        finally:
            if acquired:
                self._lock.release()

    def request_reset(self) -> None:
        self._reset_requested.set()

    def apply_pending_reset(self, reset: Callable[[S], None]) -> bool:
        """Apply a requested reset if the state is free right now. Returns True if a reset happened."""
        if not self._reset_requested.is_set():
            return False

        with self.try_locked() as state:
            if state is None:
                logger.debug("Reset deferred: the game state is busy")
                return False
            reset(state)
            self._generation += 1
            self._reset_requested.clear()

        logger.info("New game started (generation %d)", self._generation)
        return True
