"""Unit tests for src/control/controller.py"""

import threading

import pytest

from src.control.controller import THINKING_TITLE, WINDOW_TITLE, TurnController
from src.control.dispatcher import WorkerDispatcher
from src.control.turn_machine import (
    CHECKMATE_MESSAGE,
    ENGINE_FAILURE_MESSAGE,
    INVALID_MOVE_MESSAGE,
    AwaitingDestination,
    AwaitingOrigin,
    DecidingTurn,
    Terminal,
    WorkerInFlight,
)
from src.core.config import PlayerAssignment, Settings
from src.core.exceptions import InvalidRequestError
from src.core.models import ComputedReply
from src.core.shared_types import ActorKind, HighlightTag, Side, TerminalState
from src.engine.protocol import KING_VALUE
from src.engine.squares import row_col
from tests.fakes import DeferredDispatcher, FakeEngine, SynchronousDispatcher

HUMAN_VS_ENGINE = PlayerAssignment(white=ActorKind.INTERACTIVE, black=ActorKind.COMPUTATIONAL)
ENGINE_VS_HUMAN = PlayerAssignment(white=ActorKind.COMPUTATIONAL, black=ActorKind.INTERACTIVE)
E2, E4 = (1, 3), (3, 3)


def reply(
    score: int = 30,
    terminal_state: TerminalState = TerminalState.PLAYING,
    distance: int = 0,
    origin: int = 52,
    destination: int = 36,
) -> ComputedReply:
    return ComputedReply(
        origin=origin,
        destination=destination,
        score=score,
        terminal_state=terminal_state,
        distance_to_forced_end=distance,
    )


def tagged(frame, tag: HighlightTag) -> set[int]:
    return {square for square, value in enumerate(frame.highlights) if value == tag}


def make_controller(
    engine: FakeEngine,
    dispatcher: WorkerDispatcher,
    players: PlayerAssignment = HUMAN_VS_ENGINE,
    rotated: bool = False,
) -> TurnController:
    return TurnController(engine, Settings(players=players, rotated=rotated), dispatcher)


@pytest.fixture
def controller(fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher) -> TurnController:
    fake_engine.destinations = {11: [19, 27], 12: []}
    return make_controller(fake_engine, sync_dispatcher)


# --- INTERACTIVE PLAYER ---
def test_interactive_side_waits_for_origin(controller: TurnController) -> None:
    frame = controller.step()

    assert controller.phase == AwaitingOrigin()
    assert frame.status == WINDOW_TITLE
    assert frame.title == WINDOW_TITLE
    assert not frame.thinking


def test_selecting_origin_highlights_destinations(controller: TurnController) -> None:
    controller.step()
    frame = controller.step(E2)

    assert controller.phase == AwaitingDestination(11)
    assert controller.selected_origin == 11
    assert tagged(frame, HighlightTag.SELECTED) == {11}
    assert tagged(frame, HighlightTag.REACHABLE) == {19, 27}


def test_origin_without_destinations_then_any_click_is_rejected(controller: TurnController) -> None:
    controller.step()
    frame = controller.step((1, 4))
    assert tagged(frame, HighlightTag.SELECTED) == {12}
    assert tagged(frame, HighlightTag.NONE) == set(range(64)) - {12}

    frame = controller.step((2, 4))
    assert frame.status == INVALID_MOVE_MESSAGE
    assert set(frame.highlights) == {HighlightTag.NONE}
    assert controller.selected_origin is None
    with controller.cell.locked() as state:
        assert state.moves == []

    controller.step()
    assert controller.phase == AwaitingOrigin()


def test_clicking_origin_twice_is_rejected(controller: TurnController) -> None:
    controller.step()
    controller.step(E2)
    frame = controller.step(E2)

    assert frame.status == INVALID_MOVE_MESSAGE
    assert set(frame.highlights) == {HighlightTag.NONE}
    assert controller.phase == DecidingTurn()


def test_valid_move_is_applied(controller: TurnController) -> None:
    controller.step()
    controller.step(E2)
    frame = controller.step(E4)

    assert frame.status == "11-27"
    assert tagged(frame, HighlightTag.LAST_MOVE) == {11, 27}
    assert controller.phase == DecidingTurn()
    with controller.cell.locked() as state:
        assert state.moves == [(11, 27)]
        assert state.move_counter == 1


def test_highlights_follow_the_rotation(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.destinations = {11: [27]}
    controller = make_controller(fake_engine, sync_dispatcher, rotated=True)
    controller.step()
    controller.step(E2)
    frame = controller.step(E4)

    assert frame.rotated
    assert tagged(frame, HighlightTag.LAST_MOVE) == {63 - 11, 63 - 27}

    controller.toggle_rotation()
    frame = controller.frame()
    assert not frame.rotated
    assert tagged(frame, HighlightTag.LAST_MOVE) == {11, 27}


def test_move_refused_by_engine(controller: TurnController, fake_engine: FakeEngine) -> None:
    fake_engine.refused = {(11, 27)}
    controller.step()
    controller.step(E2)
    frame = controller.step(E4)

    assert frame.status == INVALID_MOVE_MESSAGE
    assert set(frame.highlights) == {HighlightTag.NONE}


# --- COMPUTATIONAL PLAYER ---
def test_reply_is_applied_after_interactive_move(
    controller: TurnController, fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply(score=-40)]
    controller.step()
    controller.step(E2)
    controller.step(E4)

    frame = controller.step()
    assert controller.phase == WorkerInFlight()
    assert frame.thinking
    assert frame.title == THINKING_TITLE
    assert sync_dispatcher.dispatch_count == 1

    frame = controller.step()
    assert frame.status == "52-36 (scr: -40)"
    assert tagged(frame, HighlightTag.LAST_MOVE) == {52, 36}
    assert controller.handle is None

    controller.step()
    assert controller.phase == AwaitingOrigin()
    with controller.cell.locked() as state:
        assert state.moves == [(11, 27), (52, 36)]


def test_still_thinking_requests_redraw(fake_engine: FakeEngine) -> None:
    fake_engine.gate = threading.Event()
    fake_engine.replies = [reply()]
    controller = make_controller(fake_engine, WorkerDispatcher(fake_engine), players=ENGINE_VS_HUMAN)

    controller.step()
    assert fake_engine.entered.wait(timeout=5)
    frame = controller.step()
    assert controller.phase == WorkerInFlight()
    assert frame.redraw
    assert frame.title == THINKING_TITLE

    fake_engine.gate.set()
    assert controller.handle is not None
    controller.handle._worker.join(timeout=5)
    frame = controller.step()
    assert controller.phase == DecidingTurn()
    assert not frame.redraw


def test_checkmate_ends_the_game(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply(score=-KING_VALUE, terminal_state=TerminalState.CHECKMATE)]
    controller = make_controller(fake_engine, sync_dispatcher, players=ENGINE_VS_HUMAN)

    controller.step()
    frame = controller.step()
    assert frame.status == CHECKMATE_MESSAGE
    assert controller.phase == Terminal()

    for _ in range(3):
        controller.step()
    assert sync_dispatcher.dispatch_count == 1
    assert controller.phase == Terminal()


def test_immediate_mate_ends_the_game(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply(score=KING_VALUE, distance=2)]
    controller = make_controller(fake_engine, sync_dispatcher, players=ENGINE_VS_HUMAN)

    controller.step()
    frame = controller.step()

    assert frame.status == CHECKMATE_MESSAGE
    assert "scr" not in frame.status
    assert controller.phase == Terminal()
    with controller.cell.locked() as state:
        assert state.moves == [(52, 36)]


def test_forced_end_is_announced(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply(score=KING_VALUE - 4, distance=6)]
    controller = make_controller(fake_engine, sync_dispatcher, players=ENGINE_VS_HUMAN)

    controller.step()
    frame = controller.step()

    assert frame.status == f"52-36 (scr: {KING_VALUE - 4}) Checkmate in 2"
    assert controller.phase == DecidingTurn()


def test_worker_failure_ends_the_game(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.error = RuntimeError("no legal moves cached")
    controller = make_controller(fake_engine, sync_dispatcher, players=ENGINE_VS_HUMAN)

    controller.step()
    frame = controller.step()

    assert frame.status == ENGINE_FAILURE_MESSAGE
    assert controller.phase == Terminal()


def test_missing_handle_decides_turn_again(fake_engine: FakeEngine) -> None:
    fake_engine.replies = [reply(), reply()]
    players = PlayerAssignment(white=ActorKind.COMPUTATIONAL, black=ActorKind.COMPUTATIONAL)
    dispatcher = WorkerDispatcher(fake_engine)
    controller = make_controller(fake_engine, dispatcher, players=players)

    controller.step()
    assert controller.phase == WorkerInFlight()
    lost = controller.handle
    controller.handle = None

    controller.step()
    assert controller.phase == DecidingTurn()
    assert lost is not None and lost.resolved

    # the next computation can be dispatched
    controller.step()
    assert controller.phase == WorkerInFlight()
    assert dispatcher.in_flight
    assert controller.handle is not None
    controller.handle._worker.join(timeout=5)
    lost._worker.join(timeout=5)


def test_engine_plays_both_sides(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply(), reply(score=-15)]
    players = PlayerAssignment(white=ActorKind.COMPUTATIONAL, black=ActorKind.COMPUTATIONAL)
    controller = make_controller(fake_engine, sync_dispatcher, players=players)

    for _ in range(4):
        controller.step()

    assert sync_dispatcher.dispatch_count == 2
    with controller.cell.locked() as state:
        assert state.move_counter == 2


# --- RESET ---
def test_reset_while_worker_in_flight_discards_the_reply(fake_engine: FakeEngine) -> None:
    fake_engine.gate = threading.Event()
    fake_engine.replies = [reply()]
    controller = make_controller(fake_engine, WorkerDispatcher(fake_engine), players=ENGINE_VS_HUMAN)

    controller.step()
    assert fake_engine.entered.wait(timeout=5)
    controller.request_new_game()

    # the worker holds the state: the reset has to wait
    controller.step()
    assert controller.cell.reset_pending
    assert controller.phase == WorkerInFlight()

    fake_engine.gate.set()
    assert controller.handle is not None
    controller.handle._worker.join(timeout=5)
    controller.step()

    assert controller.phase == DecidingTurn()
    assert controller.cell.generation == 1
    with controller.cell.locked() as state:
        assert state.resets == 1
        assert state.moves == []
        assert state.move_counter == 0


def test_reset_leaves_terminal(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply(terminal_state=TerminalState.STALEMATE)]
    controller = make_controller(fake_engine, sync_dispatcher, players=ENGINE_VS_HUMAN)
    controller.step()
    controller.step()
    assert controller.phase == Terminal()

    controller.set_actor(Side.WHITE, ActorKind.INTERACTIVE)
    assert controller.phase == Terminal()

    controller.request_new_game()
    frame = controller.step()
    assert frame.status == WINDOW_TITLE
    assert controller.phase == AwaitingOrigin()


def test_reset_clears_the_selection(controller: TurnController) -> None:
    controller.step()
    controller.step(E2)
    controller.request_new_game()
    frame = controller.step()

    assert controller.selected_origin is None
    assert set(frame.highlights) == {HighlightTag.NONE}
    assert controller.phase == AwaitingOrigin()


# --- CONFIGURATION ---
def test_switching_actor_while_awaiting_origin(
    controller: TurnController, fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply()]
    controller.step()
    controller.step(E2)

    controller.set_actor(Side.WHITE, ActorKind.COMPUTATIONAL)
    assert controller.phase == DecidingTurn()
    assert controller.selected_origin is None

    controller.step()
    assert controller.phase == WorkerInFlight()
    assert sync_dispatcher.dispatch_count == 1


def test_switching_actor_while_worker_in_flight(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply()]
    controller = make_controller(fake_engine, sync_dispatcher, players=ENGINE_VS_HUMAN)
    controller.step()

    controller.set_actor(Side.BLACK, ActorKind.COMPUTATIONAL)
    assert controller.phase == WorkerInFlight()
    assert controller.players.actor(Side.BLACK) == ActorKind.COMPUTATIONAL


def test_setting_same_actor_changes_nothing(controller: TurnController) -> None:
    controller.step()
    controller.step(E2)
    controller.set_actor(Side.WHITE, ActorKind.INTERACTIVE)

    assert controller.phase == AwaitingDestination(11)


def test_seconds_per_move_reach_the_game_state(controller: TurnController) -> None:
    controller.set_seconds_per_move(3.0)
    controller.step()

    with controller.cell.locked() as state:
        assert state.secs_per_move == 3.0


def test_seconds_per_move_out_of_bounds(controller: TurnController) -> None:
    with pytest.raises(InvalidRequestError):
        controller.set_seconds_per_move(9.0)
    assert controller.seconds_per_move == 1.5


def test_snapshot_is_kept_while_state_is_busy(controller: TurnController) -> None:
    controller.step()
    with controller.cell.locked() as state:
        state.board[0] = 4
        frame = controller.step()
    assert frame.board[0] == 0

    frame = controller.step()
    assert frame.board[0] == 4


def test_print_move_list(controller: TurnController) -> None:
    controller.step()
    controller.step(E2)
    controller.step(E4)

    assert controller.print_move_list() == ["11-27"]
    with controller.cell.locked():
        assert controller.print_move_list() == []


# --- INVARIANTS OVER SEVERAL TURNS ---
def test_exactly_two_last_move_squares_after_every_move(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.destinations = {11: [27], 12: [28], 1: [18]}
    interactive_moves = [(11, 27), (12, 28), (1, 18)]
    computed_moves = [(52, 36), (62, 45), (51, 35)]
    fake_engine.replies = [reply(origin=o, destination=d) for o, d in computed_moves]
    controller = make_controller(fake_engine, sync_dispatcher)

    for (origin, destination), computed in zip(interactive_moves, computed_moves):
        controller.step()
        assert controller.phase == AwaitingOrigin()
        controller.step(row_col(origin))
        frame = controller.step(row_col(destination))
        assert tagged(frame, HighlightTag.LAST_MOVE) == {origin, destination}

        controller.step()
        frame = controller.step()
        assert tagged(frame, HighlightTag.LAST_MOVE) == set(computed)

    with controller.cell.locked() as state:
        assert state.move_counter == 6


def test_reset_before_worker_started_discards_the_reply(fake_engine: FakeEngine) -> None:
    """The reply belongs to the game it was dispatched for, even if the worker only ran after the reset."""
    fake_engine.replies = [reply()]
    controller = make_controller(fake_engine, DeferredDispatcher(fake_engine))
    with controller.cell.locked() as state:
        state.move_counter = 1

    controller.step()
    assert controller.phase == WorkerInFlight()
    controller.request_new_game()
    controller.step()
    assert controller.cell.generation == 1

    assert controller.handle is not None
    controller.handle._worker.run_now()
    controller.step()

    assert controller.phase == DecidingTurn()
    with controller.cell.locked() as state:
        assert state.moves == []
        assert state.move_counter == 0
    controller.step()
    assert controller.phase == AwaitingOrigin()


def test_refused_immediate_mate_does_not_end_the_game(
    fake_engine: FakeEngine, sync_dispatcher: SynchronousDispatcher
) -> None:
    fake_engine.replies = [reply(score=KING_VALUE, distance=2)]
    fake_engine.refused = {(52, 36)}
    controller = make_controller(fake_engine, sync_dispatcher, players=ENGINE_VS_HUMAN)

    controller.step()
    frame = controller.step()

    assert frame.status == INVALID_MOVE_MESSAGE
    assert controller.phase == DecidingTurn()
    assert set(frame.highlights) == {HighlightTag.NONE}


def test_shutdown_stops_listening(fake_engine: FakeEngine) -> None:
    fake_engine.gate = threading.Event()
    fake_engine.replies = [reply()]
    dispatcher = WorkerDispatcher(fake_engine)
    controller = make_controller(fake_engine, dispatcher, players=ENGINE_VS_HUMAN)
    controller.step()
    handle = controller.handle

    controller.shutdown()

    assert controller.handle is None
    assert not dispatcher.in_flight
    assert handle is not None and handle.resolved
