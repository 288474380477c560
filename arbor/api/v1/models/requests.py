"""
API request models using Pydantic.
"""
from pydantic import BaseModel, Field

from arbor.domain.models import Difficulty


class DifficultyRequest(BaseModel):
    """Body of the difficulty selection endpoint."""
    difficulty: Difficulty = Field(
        description="Difficulty of the trail",
        examples=["Easy"]
    )


class GuessRequest(BaseModel):
    """Body of the guess endpoint."""
    choice: str = Field(
        min_length=1,
        description="Option label picked by the player",
        examples=["Sugar Maple"]
    )
