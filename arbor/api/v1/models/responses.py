"""
API response models using Pydantic.
"""
from typing import Annotated, List, Optional, Union
from pydantic import BaseModel, Field

from arbor.domain.models import (
    Difficulty,
    GameSession,
    GameStatus,
    HabitatPoint,
    LoadingPhase,
    Round,
)
from arbor.services.domain.globe_renderer import CirclePrimitive, GlobeRenderSession, PathPrimitive


class HabitatLocation(BaseModel):
    """Single habitat location."""
    latitude: float = Field(
        description="Latitude coordinate in degrees",
        examples=[45.5]
    )
    longitude: float = Field(
        description="Longitude coordinate in degrees",
        examples=[-73.6]
    )
    label: Optional[str] = None

    @classmethod
    def from_point(cls, point: HabitatPoint) -> "HabitatLocation":
        return cls(latitude=point.lat, longitude=point.lng, label=point.label)


class RevealedSpecimen(BaseModel):
    """Identity of the round's specimen, only sent once the round is over."""
    common_name: str
    scientific_name: str
    fun_fact: str = Field(description="Currently displayed fact")
    habitats: List[HabitatLocation]


class RoundResponse(BaseModel):
    """Current round as seen by the player."""
    options: List[str]
    before_image: str
    after_image: Optional[str] = None
    after_image_degraded: bool = Field(
        default=False,
        description="True when the after image could not be generated and the before image is reused"
    )
    revealed_image: Optional[str] = Field(
        default=None,
        description="Image to show with the result: the spring image after a correct guess, otherwise the autumn one"
    )
    selected_option: Optional[str] = None
    is_correct: Optional[bool] = None
    fact_loading: bool = False
    fact_failed: bool = False
    specimen: Optional[RevealedSpecimen] = None

    @classmethod
    def from_round(cls, current_round: Round, reveal: bool) -> "RoundResponse":
        specimen = None
        revealed_image = None
        if reveal:
            revealed_image = current_round.revealed_image
            target = current_round.target
            specimen = RevealedSpecimen(
                common_name=target.common_name,
                scientific_name=target.scientific_name,
                fun_fact=current_round.fact,
                habitats=[HabitatLocation.from_point(p) for p in target.habitats],
            )
        return cls(
            options=list(current_round.options),
            before_image=current_round.before_image,
            after_image=current_round.after_image,
            after_image_degraded=current_round.after_image_degraded,
            revealed_image=revealed_image,
            selected_option=current_round.selected_option,
            is_correct=current_round.is_correct,
            fact_loading=current_round.fact_loading,
            fact_failed=current_round.fact_failed,
            specimen=specimen,
        )


class SessionResponse(BaseModel):
    """Response model for every session endpoint."""
    session_id: str
    status: GameStatus
    loading_phase: Optional[LoadingPhase] = None
    loading_message: str = ""
    difficulty: Optional[Difficulty] = None
    score: int
    pool_size: int
    position: int
    round: Optional[RoundResponse] = None
    error: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "session_id": "3f1c0a8e9b2d4c7f8a6e5d4c3b2a1f0e",
                "status": "GUESSING",
                "loading_phase": None,
                "loading_message": "",
                "difficulty": "Easy",
                "score": 2,
                "pool_size": 3,
                "position": 0,
                "round": {
                    "options": ["Silver Birch", "Sugar Maple", "English Oak"],
                    "before_image": "data:image/png;base64,iVBORw0KGgo...",
                    "after_image": None,
                    "after_image_degraded": False,
                    "selected_option": None,
                    "is_correct": None,
                    "fact_loading": False,
                    "fact_failed": False,
                    "specimen": None,
                },
                "error": None,
            }
        }

    @classmethod
    def from_session(cls, session: GameSession) -> "SessionResponse":
        current_round = None
        if session.current_round is not None:
            reveal = session.status == GameStatus.RESULT
            current_round = RoundResponse.from_round(session.current_round, reveal)
        return cls(
            session_id=session.session_id,
            status=session.status,
            loading_phase=session.loading_phase,
            loading_message=session.loading_message,
            difficulty=session.difficulty,
            score=session.score,
            pool_size=len(session.pool),
            position=session.position,
            round=current_round,
            error=session.last_error,
        )


Primitive = Annotated[Union[CirclePrimitive, PathPrimitive], Field(discriminator="kind")]


class GlobeFrameResponse(BaseModel):
    """Latest frame of a session's habitat globe."""
    session_id: str
    running: bool
    rotation: float = Field(description="Current longitude rotation in degrees")
    tilt: float
    width: int
    height: int
    frame_count: int
    primitives: List[Primitive]

    @classmethod
    def from_globe(cls, session_id: str, globe: GlobeRenderSession) -> "GlobeFrameResponse":
        surface = globe.surface
        return cls(
            session_id=session_id,
            running=globe.is_running,
            rotation=globe.rotation.longitude,
            tilt=globe.rotation.tilt,
            width=surface.width,
            height=surface.height,
            frame_count=surface.frame_count,
            primitives=list(surface.frame),
        )
