"""
Orchestration of one foreground loop iteration: from a (possible) click to the next Frame.

Each call to `step()`:
1. applies a deferred reset and refreshes the board snapshot (both best effort, never blocking)
2. takes at most one click
3. turns the current phase + click / worker outcome into a single event, runs the pure transition
   and carries out its effects against the shared state and the highlight tracker
"""

import logging
from typing import Any, Callable, Optional

from src.control.dispatcher import ReplyHandle, WorkerDispatcher, WorkerFailure
from src.control.highlights import SelectionTracker
from src.control.state_cell import SharedStateCell
from src.control.turn_machine import (
    AbandonWorker,
    CHECKMATE_MESSAGE,
    INVALID_MOVE_MESSAGE,
    AnnounceTerminal,
    ApplyReply,
    AwaitingDestination,
    AwaitingOrigin,
    ClearSelection,
    Clicked,
    ConfigChanged,
    DecidingTurn,
    DiscardReply,
    Dispatch,
    Effect,
    Event,
    HandleMissing,
    Idle,
    PlayMove,
    RejectMove,
    ReplyReady,
    ReplyRefused,
    RequestRedraw,
    ResetApplied,
    SelectOrigin,
    SideToMove,
    StillThinking,
    TurnPhase,
    WorkerFailed,
    WorkerInFlight,
    reply_status,
    transition,
)
from src.core.config import Settings, validate_seconds_per_move
from src.core.exceptions import IllegalMoveError
from src.core.models import Board64, Frame
from src.core.shared_types import ActorKind, Side
from src.engine.protocol import DecisionEngine
from src.engine.squares import NUM_SQUARES, index

logger = logging.getLogger(__name__)

WINDOW_TITLE = "Tiny chess"
THINKING_TITLE = " ... one moment please, reply is:"


class TurnController:
    """Turn-taking between the interactive and the computational player, on top of one shared game state."""

    def __init__(
        self,
        engine: DecisionEngine,
        settings: Optional[Settings] = None,
        dispatcher: Optional[WorkerDispatcher] = None,
    ) -> None:
        settings = settings or Settings()
        self.engine = engine
        self.cell: SharedStateCell[Any] = SharedStateCell(engine.create_game())
        self.dispatcher = dispatcher or WorkerDispatcher(engine)
        self.tracker = SelectionTracker(rotated=settings.rotated)
        self.players = settings.players
        self.seconds_per_move = settings.seconds_per_move

        self.phase: TurnPhase = DecidingTurn()
        self.status = WINDOW_TITLE
        self.board: Board64 = (0,) * NUM_SQUARES
        self.handle: Optional[ReplyHandle] = None
        self._redraw = False

        self._effect_handlers: dict[type, Callable[[Any], None]] = {
            Dispatch: self._dispatch,
            SelectOrigin: self._select_origin,
            PlayMove: self._play_move,
            RejectMove: self._reject_move,
            ApplyReply: self._apply_reply,
            AnnounceTerminal: self._announce_terminal,
            DiscardReply: self._discard_reply,
            ClearSelection: self._clear_selection,
            RequestRedraw: self._request_redraw,
            AbandonWorker: self._abandon_worker,
        }

    # -- FOREGROUND LOOP ---
    def step(self, click: Optional[tuple[int, int]] = None) -> Frame:
        """One iteration. `click` is a (row, col) in logical (non-rotated) board coordinates."""
        self._redraw = False
        self._refresh()
        square = index(*click) if click is not None else None
        self._run(self._observe(square))
        return self.frame()

    def frame(self) -> Frame:
        thinking = isinstance(self.phase, WorkerInFlight)
        return Frame(
            board=self.board,
            highlights=self.tracker.snapshot(),
            status=self.status,
            title=THINKING_TITLE if thinking else self.status,
            rotated=self.tracker.rotated,
            thinking=thinking,
            redraw=self._redraw,
        )

    # -- CONFIGURATION ---
    def toggle_rotation(self) -> None:
        self.tracker.toggle_rotation()

    def set_actor(self, side: Side, kind: ActorKind) -> None:
        if self.players.actor(side) == kind:
            return
        self.players = self.players.with_actor(side, kind)
        logger.info("%s is now played by the %s player", side.name.lower(), kind)
        self._run(ConfigChanged())

    def set_seconds_per_move(self, seconds: float) -> None:
        """Pushed into the game state with the next snapshot refresh."""
        self.seconds_per_move = validate_seconds_per_move(seconds)

    def request_new_game(self) -> None:
        self.cell.request_reset()

    def shutdown(self) -> None:
        """Stop listening to a running computation. The worker is a daemon and dies with the program."""
        self.dispatcher.discard_current()
        self.handle = None

    def print_move_list(self) -> list[str]:
        """Log the moves played so far. Skipped while the engine is busy with the game state."""
        with self.cell.try_locked() as state:
            if state is None:
                logger.info("Move list unavailable while the engine is thinking")
                return []
            moves = self.engine.move_list(state)
        for line in moves:
            logger.info(line)
        return moves

    @property
    def selected_origin(self) -> Optional[int]:
        return self.tracker.selected_origin

    # -- INTERNALS ---
    def _refresh(self) -> None:
        if self.cell.apply_pending_reset(self.engine.reset_in_place):
            self.status = WINDOW_TITLE
            self._run(ResetApplied())

        with self.cell.try_locked() as state:
            if state is None:
                logger.debug("Game state busy, keeping the previous board snapshot")
                return
            self.board = self.engine.snapshot_board(state)
            state.secs_per_move = self.seconds_per_move

    def _observe(self, square: Optional[int]) -> Event:
        """Condense the world into the single event for the current phase."""
        phase = self.phase
        if isinstance(phase, DecidingTurn):
            # side to move always comes from the game itself, never from a counter of our own
            with self.cell.locked() as state:
                side = Side(state.move_counter % 2)
            return SideToMove(self.players.actor(side))

        if isinstance(phase, (AwaitingOrigin, AwaitingDestination)):
            return Clicked(square) if square is not None else Idle()

        if isinstance(phase, WorkerInFlight):
            if self.handle is None:
                logger.warning("Waiting for a reply without a receive handle, deciding turn again")
                return HandleMissing()
            handle = self.handle
            outcome = handle.poll()
            if outcome is None:
                return StillThinking()
            # the outcome is consumed exactly once
            self.handle = None
            if isinstance(outcome, WorkerFailure):
                return WorkerFailed(outcome.reason)
            return ReplyReady(outcome, stale=handle.generation != self.cell.generation)

        return Idle()

    def _run(self, event: Event) -> None:
        result = transition(self.phase, event)
        if result.state != self.phase:
            logger.debug(
                "%s --%s--> %s",
                type(self.phase).__name__,
                type(event).__name__,
                type(result.state).__name__,
            )
        self.phase = result.state
        for effect in result.effects:
            self._effect_handlers[type(effect)](effect)

    # -- EFFECTS ---
    def _dispatch(self, effect: Dispatch) -> None:
        self.handle = self.dispatcher.dispatch(self.cell)

    def _select_origin(self, effect: SelectOrigin) -> None:
        with self.cell.locked() as state:
            destinations = list(self.engine.legal_destinations(state, effect.square))
        self.tracker.select_origin(effect.square, destinations)

    def _play_move(self, effect: PlayMove) -> None:
        origin, destination = effect.origin, effect.destination
        with self.cell.locked() as state:
            legal = self.engine.is_legal_move(state, origin, destination)
        if not legal:
            self._reject_move(RejectMove())
            return

        description = self._apply(origin, destination)
        if description is None:
            self._reject_move(RejectMove())
            return
        self.tracker.record_move(origin, destination)
        self.status = description
        logger.info("Interactive move: %s", description)

    def _reject_move(self, effect: RejectMove) -> None:
        self.status = INVALID_MOVE_MESSAGE
        self.tracker.clear()

    def _apply_reply(self, effect: ApplyReply) -> None:
        reply = effect.reply
        description = self._apply(reply.origin, reply.destination)
        if description is None:
            self._run(ReplyRefused())
            return
        self.tracker.record_move(reply.origin, reply.destination)
        if effect.immediate_mate:
            self.status = CHECKMATE_MESSAGE
        else:
            self.status = reply_status(description, reply)
        logger.info("Computed move: %s", self.status)

    def _announce_terminal(self, effect: AnnounceTerminal) -> None:
        self.status = effect.message
        logger.info(effect.message)

    def _discard_reply(self, effect: DiscardReply) -> None:
        logger.debug(
            "Discarding reply computed for generation %d (current %d)",
            effect.reply.generation,
            self.cell.generation,
        )

    def _clear_selection(self, effect: ClearSelection) -> None:
        self.tracker.clear()

    def _request_redraw(self, effect: RequestRedraw) -> None:
        self._redraw = True

    def _abandon_worker(self, effect: AbandonWorker) -> None:
        self.dispatcher.discard_current()

    def _apply(self, origin: int, destination: int) -> Optional[str]:
        """Apply a move (blocking: must not be skipped) and describe it. None if the engine refused it."""
        try:
            with self.cell.locked() as state:
                flag = self.engine.apply_move(state, origin, destination)
        except IllegalMoveError as exc:
            logger.warning("Engine refused move: %s", exc)
            return None
        with self.cell.locked() as state:
            description = self.engine.describe_move(state, origin, destination, flag)
        return description.strip()
