"""
Worker Dispatcher
----

Runs the engine's "compute reply" on a background thread and hands the result back through a one-shot channel.

* The worker holds the state lock for its whole computation (the search needs a position that does not move).
  That is why only one worker may be in flight at a time.
* The foreground polls the receive handle without blocking.
* Nobody listening anymore (window closed, handle discarded)? The result is dropped silently.
* Worker threads are daemons: a running search never keeps the program alive.
"""

import logging
import queue
import threading
from dataclasses import dataclass, replace
from typing import Any, Generic, Optional, TypeVar

from src.control.state_cell import SharedStateCell
from src.core.exceptions import GameStateError
from src.core.models import ComputedReply
from src.engine.protocol import DecisionEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class WorkerFailure:
    """Sent instead of a reply when the engine raised inside the worker."""

    reason: str


WorkerOutcome = ComputedReply | WorkerFailure


class OneShotChannel(Generic[T]):
    """Single producer, single consumer, single slot."""

    def __init__(self) -> None:
        self._slot: queue.Queue[T] = queue.Queue(maxsize=1)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, value: T) -> bool:
        """Returns False (instead of raising) if the value could not be delivered."""
        if self._closed.is_set():
            return False
        try:
            self._slot.put_nowait(value)
        except queue.Full:
            return False
        return True

    def try_receive(self) -> Optional[T]:
        try:
            return self._slot.get_nowait()
        except queue.Empty:
            return None

    def close(self) -> None:
        self._closed.set()


class ReplyHandle:
    """Receive end of one dispatched computation. Its outcome can be taken exactly once."""

    def __init__(
        self, channel: OneShotChannel[WorkerOutcome], worker: threading.Thread, generation: int
    ) -> None:
        self._channel = channel
        self._worker = worker
        self._resolved = False
        # generation of the shared state at dispatch time
        self.generation = generation

    @property
    def resolved(self) -> bool:
        """True once the outcome was taken or the handle was discarded."""
        return self._resolved

    def poll(self) -> Optional[WorkerOutcome]:
        """Non-blocking. None while the worker is still busy (or once the outcome was already taken)."""
        if self._resolved:
            return None
        outcome = self._channel.try_receive()
        if outcome is not None:
            self._resolve()
        return outcome

    def discard(self) -> None:
        """Stop listening. A result sent afterwards is dropped by the worker."""
        self._resolve()

    def _resolve(self) -> None:
        self._resolved = True
        self._channel.close()


class WorkerDispatcher:
    """Spawns at most one outstanding computation at a time."""

    worker_class: type[threading.Thread] = threading.Thread

    def __init__(self, engine: DecisionEngine) -> None:
        self.engine = engine
        self._current: Optional[ReplyHandle] = None

    @property
    def in_flight(self) -> bool:
        return self._current is not None and not self._current.resolved

    def dispatch(self, cell: SharedStateCell[Any]) -> ReplyHandle:
        if self.in_flight:
            raise GameStateError(
                "A reply is already being computed. Wait for it (or discard it) before dispatching again."
            )

        # stamped here, not in the worker: a reset may be applied before the worker gets hold of the state
        generation = cell.generation
        channel: OneShotChannel[WorkerOutcome] = OneShotChannel()
        worker = self.worker_class(
            target=self._compute,
            args=(cell, channel, generation),
            name="reply-worker",
            daemon=True,
        )
        handle = ReplyHandle(channel, worker, generation)
        self._current = handle
        worker.start()
        logger.info("Dispatched reply computation (generation %d)", generation)
        return handle

    def discard_current(self) -> None:
        """Stop listening to the outstanding computation (if any), so a new one can be dispatched."""
        if self._current is None:
            return
        if not self._current.resolved:
            logger.warning("Abandoning reply computation of generation %d", self._current.generation)
        self._current.discard()
        self._current = None

    def _compute(
        self,
        cell: SharedStateCell[Any],
        channel: OneShotChannel[WorkerOutcome],
        generation: int,
    ) -> None:
        """Worker body: never raises, the outcome always goes through the channel."""
        outcome: WorkerOutcome
        try:
            with cell.locked() as state:
                reply = self.engine.compute_reply(state)
            outcome = replace(reply, generation=generation)
        except Exception as exc:
            logger.exception("Reply computation failed")
            outcome = WorkerFailure(reason=str(exc) or type(exc).__name__)

        if not channel.send(outcome):
            logger.debug("Reply dropped: nobody is listening anymore")
