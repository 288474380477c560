"""
Domain service: Pure state transitions of a game session.

`transition(session, event)` returns the next immutable GameSession or
raises InvalidTransition when the event is not legal in the current state.
It performs no I/O; the RoundController issues provider requests and feeds
their outcomes back in as events.
"""
from dataclasses import dataclass
from typing import Callable, Optional, Union

from arbor.domain.models import (
    Difficulty,
    GameSession,
    GameStatus,
    LoadingPhase,
    Round,
    Specimen,
)

ROUND_START_MESSAGE = "Isolating seasonal markers for the next specimen..."
REVEAL_MESSAGE = "Waiting for the first light of spring..."


def pool_start_message(difficulty: Difficulty) -> str:
    return f"Stepping onto the {difficulty.value.lower()} trail..."


class InvalidTransition(Exception):
    """Raised when an event is not accepted in the session's current state."""

    def __init__(self, status: GameStatus, event: "GameEvent", reason: str = ""):
        self.status = status
        self.event = event
        self.message = reason or f"{type(event).__name__} is not allowed in state {status.value}"
        super().__init__(self.message)


# ============================================================
# Events
# ============================================================

@dataclass(frozen=True)
class DifficultySelected:
    difficulty: Difficulty


@dataclass(frozen=True)
class PoolReceived:
    pool: tuple[Specimen, ...]


@dataclass(frozen=True)
class RoundReady:
    options: tuple[str, ...]
    before_image: str


@dataclass(frozen=True)
class LoadFailed:
    reason: str


@dataclass(frozen=True)
class OptionSelected:
    choice: str


@dataclass(frozen=True)
class RevealFinished:
    after_image: Optional[str]


@dataclass(frozen=True)
class AdvanceRequested:
    pass


@dataclass(frozen=True)
class FactRequested:
    pass


@dataclass(frozen=True)
class FactResolved:
    fact: Optional[str]


@dataclass(frozen=True)
class ReturnedToDifficultySelection:
    pass


GameEvent = Union[
    DifficultySelected,
    PoolReceived,
    RoundReady,
    LoadFailed,
    OptionSelected,
    RevealFinished,
    AdvanceRequested,
    FactRequested,
    FactResolved,
    ReturnedToDifficultySelection,
]


# ============================================================
# Handlers
# ============================================================

def _require(session: GameSession, event: GameEvent, status: GameStatus,
             phase: Optional[LoadingPhase] = None) -> None:
    if session.status != status or (phase is not None and session.loading_phase != phase):
        raise InvalidTransition(session.status, event)


def _on_difficulty_selected(session: GameSession, event: DifficultySelected) -> GameSession:
    _require(session, event, GameStatus.DIFFICULTY_SELECTION)
    return GameSession(
        session_id=session.session_id,
        status=GameStatus.LOADING,
        loading_phase=LoadingPhase.POOL_START,
        loading_message=pool_start_message(event.difficulty),
        difficulty=event.difficulty,
        score=0,
        epoch=session.epoch + 1,
        sequence=session.sequence + 1,
    )


def _on_pool_received(session: GameSession, event: PoolReceived) -> GameSession:
    _require(session, event, GameStatus.LOADING, LoadingPhase.POOL_START)
    if not event.pool:
        raise ValueError("A pool must contain at least one specimen")
    ids = [specimen.id for specimen in event.pool]
    if len(set(ids)) != len(ids):
        raise ValueError(f"Specimen ids must be unique within a pool: {ids}")
    return session.model_copy(update={
        "loading_phase": LoadingPhase.ROUND_START,
        "loading_message": ROUND_START_MESSAGE,
        "pool": tuple(event.pool),
        "position": 0,
        "current_round": None,
        "sequence": session.sequence + 1,
    })


def _on_round_ready(session: GameSession, event: RoundReady) -> GameSession:
    _require(session, event, GameStatus.LOADING, LoadingPhase.ROUND_START)
    target = session.target
    assert target is not None, "Round start without a target specimen"
    current_round = Round(
        target=target,
        options=event.options,
        before_image=event.before_image,
        fact=target.fun_fact,
    )
    return session.model_copy(update={
        "status": GameStatus.GUESSING,
        "loading_phase": None,
        "loading_message": "",
        "current_round": current_round,
    })


def _on_load_failed(session: GameSession, event: LoadFailed) -> GameSession:
    _require(session, event, GameStatus.LOADING)
    if session.loading_phase == LoadingPhase.REVEAL:
        raise InvalidTransition(session.status, event, "A failed reveal never ends the round")
    return session.model_copy(update={
        "status": GameStatus.ERROR,
        "loading_phase": None,
        "loading_message": "",
        "last_error": event.reason,
    })


def _on_option_selected(session: GameSession, event: OptionSelected) -> GameSession:
    current_round = session.current_round
    # Only the first guess of a round counts, later clicks are ignored
    if current_round is not None and current_round.selected_option is not None:
        return session
    _require(session, event, GameStatus.GUESSING)
    assert current_round is not None, "Guessing without a round"
    if event.choice not in current_round.options:
        raise ValueError(f"'{event.choice}' is not one of the offered options")

    correct = event.choice == current_round.target.common_name
    guessed = current_round.model_copy(update={
        "selected_option": event.choice,
        "is_correct": correct,
    })
    if not correct:
        return session.model_copy(update={
            "status": GameStatus.RESULT,
            "current_round": guessed,
        })
    return session.model_copy(update={
        "status": GameStatus.LOADING,
        "loading_phase": LoadingPhase.REVEAL,
        "loading_message": REVEAL_MESSAGE,
        "score": session.score + 1,
        "current_round": guessed,
    })


def _on_reveal_finished(session: GameSession, event: RevealFinished) -> GameSession:
    _require(session, event, GameStatus.LOADING, LoadingPhase.REVEAL)
    current_round = session.current_round
    assert current_round is not None, "Reveal without a round"
    revealed = current_round.model_copy(update={
        "after_image": event.after_image or current_round.before_image,
        "after_image_degraded": event.after_image is None,
    })
    return session.model_copy(update={
        "status": GameStatus.RESULT,
        "loading_phase": None,
        "loading_message": "",
        "current_round": revealed,
    })


def _on_advance_requested(session: GameSession, event: AdvanceRequested) -> GameSession:
    _require(session, event, GameStatus.RESULT)
    next_position = session.position + 1
    if next_position < len(session.pool):
        return session.model_copy(update={
            "status": GameStatus.LOADING,
            "loading_phase": LoadingPhase.ROUND_START,
            "loading_message": ROUND_START_MESSAGE,
            "position": next_position,
            "current_round": None,
            "sequence": session.sequence + 1,
        })
    # Pool exhausted: loop with a fresh pool for the same difficulty
    assert session.difficulty is not None, "Result without a difficulty"
    return session.model_copy(update={
        "status": GameStatus.LOADING,
        "loading_phase": LoadingPhase.POOL_START,
        "loading_message": pool_start_message(session.difficulty),
        "pool": (),
        "position": 0,
        "current_round": None,
        "sequence": session.sequence + 1,
    })


def _on_fact_requested(session: GameSession, event: FactRequested) -> GameSession:
    _require(session, event, GameStatus.RESULT)
    current_round = session.current_round
    assert current_round is not None, "Result without a round"
    if current_round.fact_loading:
        raise InvalidTransition(session.status, event, "A fact regeneration is already in progress")
    return session.model_copy(update={
        "current_round": current_round.model_copy(update={
            "fact_loading": True,
            "fact_failed": False,
        }),
    })


def _on_fact_resolved(session: GameSession, event: FactResolved) -> GameSession:
    _require(session, event, GameStatus.RESULT)
    current_round = session.current_round
    if current_round is None or not current_round.fact_loading:
        raise InvalidTransition(session.status, event, "No fact regeneration is in progress")
    update = {"fact_loading": False, "fact_failed": event.fact is None}
    if event.fact is not None:
        update["fact"] = event.fact
    return session.model_copy(update={
        "current_round": current_round.model_copy(update=update),
    })


def _on_returned(session: GameSession, event: ReturnedToDifficultySelection) -> GameSession:
    return GameSession(
        session_id=session.session_id,
        epoch=session.epoch + 1,
        sequence=session.sequence + 1,
    )


_HANDLERS: dict[type, Callable[[GameSession, GameEvent], GameSession]] = {
    DifficultySelected: _on_difficulty_selected,
    PoolReceived: _on_pool_received,
    RoundReady: _on_round_ready,
    LoadFailed: _on_load_failed,
    OptionSelected: _on_option_selected,
    RevealFinished: _on_reveal_finished,
    AdvanceRequested: _on_advance_requested,
    FactRequested: _on_fact_requested,
    FactResolved: _on_fact_resolved,
    ReturnedToDifficultySelection: _on_returned,
}


def transition(session: GameSession, event: GameEvent) -> GameSession:
    """
    Apply an event to a session.

    Args:
        session: Current session value
        event: Event to apply

    Returns:
        The next session value (the same object if the event is ignored)

    Raises:
        InvalidTransition: If the event is not legal in the current state
        ValueError: If the event carries data violating a domain invariant
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown game event: {event!r}")
    return handler(session, event)
