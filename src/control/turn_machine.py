"""
Turn state machine
----

Pure transition function: `transition(phase, event) -> Transition(phase, effects)`.

The machine itself never touches the game state, the engine or the clock. The TurnController observes the world,
turns it into exactly one event per loop iteration, and carries out the returned effects.

Phases:
* Terminal: the game is over (only a reset leaves it)
* DecidingTurn: look at whose turn it is
* AwaitingOrigin / AwaitingDestination: the interactive player selects a move with two clicks
* WorkerInFlight: the computational player is thinking on a background thread
"""

from dataclasses import dataclass
from typing import Callable

from src.core.models import ComputedReply
from src.core.shared_types import ActorKind, TerminalState
from src.engine.protocol import KING_VALUE, KING_VALUE_DIV_2, STATE_CHECKMATE

CHECKMATE_MESSAGE = "Checkmate, game terminated!"
STALEMATE_MESSAGE = "Stalemate, game terminated!"
DRAW_MESSAGE = "Draw, game terminated!"
ENGINE_FAILURE_MESSAGE = "Engine failure, game terminated!"
INVALID_MOVE_MESSAGE = "invalid move, ignored."

TERMINAL_MESSAGES: dict[TerminalState, str] = {
    STATE_CHECKMATE: CHECKMATE_MESSAGE,
    TerminalState.STALEMATE: STALEMATE_MESSAGE,
    TerminalState.DRAW: DRAW_MESSAGE,
}


# --- PHASES ---
@dataclass(frozen=True)
class Terminal:
    pass


@dataclass(frozen=True)
class DecidingTurn:
    pass


@dataclass(frozen=True)
class AwaitingOrigin:
    pass


@dataclass(frozen=True)
class AwaitingDestination:
    origin: int


@dataclass(frozen=True)
class WorkerInFlight:
    pass


TurnPhase = Terminal | DecidingTurn | AwaitingOrigin | AwaitingDestination | WorkerInFlight


# --- EVENTS ---
@dataclass(frozen=True)
class Idle:
    """Nothing happened this iteration."""


@dataclass(frozen=True)
class Clicked:
    square: int


@dataclass(frozen=True)
class SideToMove:
    actor: ActorKind


@dataclass(frozen=True)
class ReplyReady:
    reply: ComputedReply
    # computed for a game that has been reset since
    stale: bool = False


@dataclass(frozen=True)
class StillThinking:
    pass


@dataclass(frozen=True)
class HandleMissing:
    """In WorkerInFlight without a receive handle. Should not happen."""


@dataclass(frozen=True)
class WorkerFailed:
    reason: str


@dataclass(frozen=True)
class ConfigChanged:
    pass


@dataclass(frozen=True)
class ResetApplied:
    pass


@dataclass(frozen=True)
class ReplyRefused:
    """The engine would not play the reply it computed itself."""


Event = (
    Idle
    | Clicked
    | SideToMove
    | ReplyReady
    | StillThinking
    | HandleMissing
    | WorkerFailed
    | ConfigChanged
    | ResetApplied
    | ReplyRefused
)


# --- EFFECTS ---
@dataclass(frozen=True)
class Dispatch:
    pass


@dataclass(frozen=True)
class SelectOrigin:
    square: int


@dataclass(frozen=True)
class PlayMove:
    origin: int
    destination: int


@dataclass(frozen=True)
class RejectMove:
    pass


@dataclass(frozen=True)
class ApplyReply:
    reply: ComputedReply
    immediate_mate: bool = False


@dataclass(frozen=True)
class AnnounceTerminal:
    message: str


@dataclass(frozen=True)
class DiscardReply:
    reply: ComputedReply


@dataclass(frozen=True)
class ClearSelection:
    pass


@dataclass(frozen=True)
class RequestRedraw:
    pass


@dataclass(frozen=True)
class AbandonWorker:
    pass


Effect = (
    Dispatch
    | SelectOrigin
    | PlayMove
    | RejectMove
    | ApplyReply
    | AnnounceTerminal
    | DiscardReply
    | ClearSelection
    | RequestRedraw
    | AbandonWorker
)


@dataclass(frozen=True)
class Transition:
    state: TurnPhase
    effects: tuple[Effect, ...] = ()


# --- REPLY CLASSIFICATION ---
def is_immediate_mate(reply: ComputedReply) -> bool:
    """The reply itself delivers mate."""
    return reply.distance_to_forced_end == 2 and reply.score == KING_VALUE


def forced_end_moves(reply: ComputedReply) -> int:
    """Convert the ply distance reported by the engine into 'mate in N' (after the reply was played)."""
    half = reply.distance_to_forced_end // 2
    return half - 1 if reply.score > 0 else half + 1


def reply_status(description: str, reply: ComputedReply) -> str:
    status = f"{description} (scr: {reply.score})"
    if reply.score > KING_VALUE_DIV_2 or reply.score < -KING_VALUE_DIV_2:
        status += f" Checkmate in {forced_end_moves(reply)}"
    return status


# --- TRANSITIONS PER PHASE ---
def _from_terminal(state: Terminal, event: Event) -> Transition:
    return Transition(state)


def _from_deciding_turn(state: DecidingTurn, event: Event) -> Transition:
    if not isinstance(event, SideToMove):
        return Transition(state)
    if event.actor == ActorKind.INTERACTIVE:
        return Transition(AwaitingOrigin())
    return Transition(WorkerInFlight(), (Dispatch(),))


def _from_awaiting_origin(state: AwaitingOrigin, event: Event) -> Transition:
    if not isinstance(event, Clicked):
        return Transition(state)
    return Transition(AwaitingDestination(event.square), (SelectOrigin(event.square),))


def _from_awaiting_destination(state: AwaitingDestination, event: Event) -> Transition:
    """An invalid destination aborts the half-turn: the player starts over by picking an origin."""
    if not isinstance(event, Clicked):
        return Transition(state)
    if event.square == state.origin:
        return Transition(DecidingTurn(), (RejectMove(),))
    return Transition(DecidingTurn(), (PlayMove(state.origin, event.square),))


def _from_worker_in_flight(state: WorkerInFlight, event: Event) -> Transition:
    if isinstance(event, StillThinking):
        return Transition(state, (RequestRedraw(),))
    if isinstance(event, HandleMissing):
        return Transition(DecidingTurn(), (AbandonWorker(),))
    if isinstance(event, WorkerFailed):
        return Transition(Terminal(), (AnnounceTerminal(ENGINE_FAILURE_MESSAGE),))
    if not isinstance(event, ReplyReady):
        return Transition(state)

    reply = event.reply
    if event.stale:
        return Transition(DecidingTurn(), (DiscardReply(reply),))
    if reply.terminal_state in TERMINAL_MESSAGES:
        return Transition(
            Terminal(), (AnnounceTerminal(TERMINAL_MESSAGES[reply.terminal_state]),)
        )
    if is_immediate_mate(reply):
        return Transition(Terminal(), (ApplyReply(reply, immediate_mate=True),))
    return Transition(DecidingTurn(), (ApplyReply(reply),))


# -- STRATEGY PATTERN: ONE TRANSITION RULE PER PHASE ---
TransitionFn = Callable[..., Transition]
TRANSITION_RULES: dict[type, TransitionFn] = {
    Terminal: _from_terminal,
    DecidingTurn: _from_deciding_turn,
    AwaitingOrigin: _from_awaiting_origin,
    AwaitingDestination: _from_awaiting_destination,
    WorkerInFlight: _from_worker_in_flight,
}


def transition(state: TurnPhase, event: Event) -> Transition:
    """Total function of (phase, event). Configuration changes, resets and refused replies are handled the same way for every phase."""

    if isinstance(event, ResetApplied):
        # the in-flight worker cannot be cancelled: keep waiting for it, its stale reply gets discarded
        if isinstance(state, WorkerInFlight):
            return Transition(state, (ClearSelection(),))
        return Transition(DecidingTurn(), (ClearSelection(),))

    if isinstance(event, ReplyRefused):
        # also undoes the Terminal entered for an immediate mate that was never played
        return Transition(DecidingTurn(), (RejectMove(),))

    if isinstance(event, ConfigChanged):
        # new player assignment is picked up by the next DecidingTurn
        if isinstance(state, (Terminal, WorkerInFlight)):
            return Transition(state)
        return Transition(DecidingTurn(), (ClearSelection(),))

    return TRANSITION_RULES[type(state)](state, event)
