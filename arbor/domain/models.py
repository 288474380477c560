"""
Domain models for tree specimens, rounds and game sessions.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, web framework, etc.).
All of them are immutable; state changes produce new values.
"""
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional
from pydantic import BaseModel, Field, model_validator


class Difficulty(str, Enum):
    """Difficulty levels offered on the trailhead."""
    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class GameStatus(str, Enum):
    """Top-level states of the round lifecycle."""
    DIFFICULTY_SELECTION = "DIFFICULTY_SELECTION"
    LOADING = "LOADING"
    GUESSING = "GUESSING"
    RESULT = "RESULT"
    ERROR = "ERROR"


class LoadingPhase(str, Enum):
    """What a LOADING session is waiting for."""
    POOL_START = "POOL_START"
    ROUND_START = "ROUND_START"
    REVEAL = "REVEAL"


class Season(str, Enum):
    """Seasonal state of a specimen image."""
    AUTUMN = "autumn"
    SPRING = "spring"

    # The autumn image is shown before the guess, spring after it
    BEFORE = "autumn"
    AFTER = "spring"


class HabitatPoint(BaseModel):
    """A location where a specimen naturally grows."""
    lat: float = Field(ge=-90.0, le=90.0, description="Latitude in degrees")
    lng: float = Field(ge=-180.0, le=180.0, description="Longitude in degrees")
    label: Optional[str] = None

    class Config:
        frozen = True


class Specimen(BaseModel):
    """One identifiable tree species."""
    id: str
    common_name: str
    scientific_name: str
    autumn_description: str = Field(description="Prompt text for the before image")
    spring_description: str = Field(description="Prompt text for the after image")
    fun_fact: str
    habitats: tuple[HabitatPoint, ...] = Field(min_length=1)

    class Config:
        frozen = True


class Round(BaseModel):
    """
    One play of the game.

    The target is borrowed from the session pool. The displayed fact starts
    as the target's fun fact and may be replaced by fact regeneration.
    """
    target: Specimen
    options: tuple[str, ...]
    before_image: str
    after_image: Optional[str] = None
    after_image_degraded: bool = False
    selected_option: Optional[str] = None
    is_correct: Optional[bool] = None
    fact: str
    fact_loading: bool = False
    fact_failed: bool = False

    class Config:
        frozen = True

    @model_validator(mode="after")
    def _check_options(self) -> "Round":
        if len(set(self.options)) != len(self.options):
            raise ValueError(f"Duplicate option labels: {self.options}")
        if self.options.count(self.target.common_name) != 1:
            raise ValueError(
                f"Options {self.options} must contain '{self.target.common_name}' exactly once"
            )
        return self

    @property
    def revealed_image(self) -> str:
        """Image shown once the round is over."""
        if self.is_correct and self.after_image:
            return self.after_image
        return self.before_image


class RequestToken(NamedTuple):
    """Identity of the step an asynchronous request was issued for."""
    epoch: int
    sequence: int


class GameSession(BaseModel):
    """
    Whole play session.

    `epoch` changes whenever the session is reset or a difficulty is chosen,
    `sequence` whenever a new pool or round starts loading. Together they
    form the token a late provider response is checked against.
    """
    session_id: str
    status: GameStatus = GameStatus.DIFFICULTY_SELECTION
    loading_phase: Optional[LoadingPhase] = None
    loading_message: str = ""
    difficulty: Optional[Difficulty] = None
    score: int = Field(default=0, ge=0)
    pool: tuple[Specimen, ...] = ()
    position: int = 0
    current_round: Optional[Round] = None
    epoch: int = 0
    sequence: int = 0
    last_error: Optional[str] = None

    class Config:
        frozen = True

    @property
    def token(self) -> RequestToken:
        return RequestToken(self.epoch, self.sequence)

    @property
    def target(self) -> Optional[Specimen]:
        """Specimen at the current pool position, if a pool is loaded."""
        if 0 <= self.position < len(self.pool):
            return self.pool[self.position]
        return None

    @property
    def is_revealed(self) -> bool:
        """True once a correct guess has been fully resolved."""
        return (
            self.status == GameStatus.RESULT
            and self.current_round is not None
            and bool(self.current_round.is_correct)
        )


@dataclass(frozen=True)
class RotationState:
    """Globe orientation: longitudinal spin plus a fixed tilt, in degrees."""
    longitude: float = 0.0
    tilt: float = -15.0

    def advanced(self, step: float) -> "RotationState":
        return RotationState(longitude=(self.longitude + step) % 360.0, tilt=self.tilt)
