"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends, HTTPException, Path

from arbor.services.application.game_service import (
    GameService,
    SessionNotFound,
    get_game_service,
)
from arbor.services.domain.round_controller import RoundController


def get_round_controller(
    session_id: Annotated[str, Path(description="Unique identifier for the session")],
    game_service: Annotated[GameService, Depends(get_game_service)],
) -> RoundController:
    """
    Dependency factory for the RoundController of a session.

    Args:
        session_id: Session identifier from the path
        game_service: Game service (injected)

    Returns:
        RoundController instance

    Raises:
        HTTPException: If the session does not exist
    """
    try:
        return game_service.get_controller(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


# Type aliases for cleaner route signatures
GameServiceDep = Annotated[GameService, Depends(get_game_service)]
RoundControllerDep = Annotated[RoundController, Depends(get_round_controller)]
