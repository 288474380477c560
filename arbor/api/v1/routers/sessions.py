"""
API router for game session endpoints.
"""
from typing import Annotated
from fastapi import APIRouter, HTTPException, Path, Request, Response, status

from arbor.api.dependencies import GameServiceDep, RoundControllerDep
from arbor.api.rate_limit import GAME_ACTION_LIMIT, limiter
from arbor.api.v1.models.requests import DifficultyRequest, GuessRequest
from arbor.api.v1.models.responses import GlobeFrameResponse, SessionResponse
from arbor.services.application.game_service import SessionNotFound
from arbor.services.domain.game_state import InvalidTransition


router = APIRouter(
    prefix="/sessions",
    tags=["sessions"],
)

SESSION_RESPONSES = {
    404: {"description": "Session not found"},
    429: {"description": "Rate limit exceeded"},
}

ACTION_RESPONSES = {
    **SESSION_RESPONSES,
    400: {"description": "Invalid input for the current round"},
    409: {"description": "Action not allowed in the session's current state"},
}


def _conflict(e: InvalidTransition) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a new game session",
    responses={429: {"description": "Rate limit exceeded"}},
)
@limiter.limit(GAME_ACTION_LIMIT)
async def create_session(request: Request, game_service: GameServiceDep) -> SessionResponse:
    """
    Create a session waiting on the difficulty selection screen.

    Returns:
        SessionResponse of the new session
    """
    controller = game_service.create_session()
    return SessionResponse.from_session(controller.session)


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get session state",
    responses=SESSION_RESPONSES,
)
async def get_session(controller: RoundControllerDep) -> SessionResponse:
    """Current state of a session."""
    return SessionResponse.from_session(controller.session)


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="End a session",
    responses=SESSION_RESPONSES,
)
async def delete_session(
    session_id: Annotated[str, Path(description="Unique identifier for the session")],
    game_service: GameServiceDep,
) -> Response:
    """Cancel outstanding requests, stop the globe and forget the session."""
    try:
        game_service.delete_session(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{session_id}/difficulty",
    response_model=SessionResponse,
    summary="Choose a difficulty",
    description="""
    Choose a difficulty and start the trail.

    This endpoint:
    1. Resets the score and requests a new pool of specimens
    2. Requests the autumn image of the first specimen
    3. Returns the session in GUESSING state, or ERROR if generation failed
    """,
    responses=ACTION_RESPONSES,
)
@limiter.limit(GAME_ACTION_LIMIT)
async def select_difficulty(
    request: Request,
    body: DifficultyRequest,
    controller: RoundControllerDep,
) -> SessionResponse:
    try:
        session = await controller.select_difficulty(body.difficulty)
    except InvalidTransition as e:
        raise _conflict(e)
    return SessionResponse.from_session(session)


@router.post(
    "/{session_id}/guess",
    response_model=SessionResponse,
    summary="Guess the specimen",
    description="""
    Submit the player's guess. Only the first guess of a round counts.

    A correct guess scores a point and reveals the spring image, the
    specimen's identity, its fun fact and its habitats.
    """,
    responses=ACTION_RESPONSES,
)
@limiter.limit(GAME_ACTION_LIMIT)
async def submit_guess(
    request: Request,
    body: GuessRequest,
    controller: RoundControllerDep,
) -> SessionResponse:
    try:
        session = await controller.select_option(body.choice)
    except InvalidTransition as e:
        raise _conflict(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return SessionResponse.from_session(session)


@router.post(
    "/{session_id}/advance",
    response_model=SessionResponse,
    summary="Continue to the next specimen",
    responses=ACTION_RESPONSES,
)
@limiter.limit(GAME_ACTION_LIMIT)
async def advance(request: Request, controller: RoundControllerDep) -> SessionResponse:
    """Next specimen of the pool, or a fresh pool once the current one is exhausted."""
    try:
        session = await controller.advance()
    except InvalidTransition as e:
        raise _conflict(e)
    return SessionResponse.from_session(session)


@router.post(
    "/{session_id}/fact",
    response_model=SessionResponse,
    summary="Regenerate the fun fact",
    responses=ACTION_RESPONSES,
)
@limiter.limit(GAME_ACTION_LIMIT)
async def regenerate_fact(request: Request, controller: RoundControllerDep) -> SessionResponse:
    """Replace the displayed fact; on failure the previous fact is kept and flagged."""
    try:
        session = await controller.regenerate_fact()
    except InvalidTransition as e:
        raise _conflict(e)
    return SessionResponse.from_session(session)


@router.post(
    "/{session_id}/reset",
    response_model=SessionResponse,
    summary="Return to difficulty selection",
    responses=SESSION_RESPONSES,
)
async def reset(controller: RoundControllerDep) -> SessionResponse:
    """Discard pool, round and score. Always permitted."""
    return SessionResponse.from_session(controller.return_to_difficulty_selection())


@router.get(
    "/{session_id}/globe",
    response_model=GlobeFrameResponse,
    summary="Latest habitat globe frame",
    responses=SESSION_RESPONSES,
)
async def get_globe_frame(
    session_id: Annotated[str, Path(description="Unique identifier for the session")],
    game_service: GameServiceDep,
) -> GlobeFrameResponse:
    """
    Draw primitives of the most recent globe frame.

    The globe runs only while a correctly guessed round is shown; otherwise
    the last frame (possibly empty) is returned with `running` false.
    """
    try:
        globe = game_service.get_globe(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    return GlobeFrameResponse.from_globe(session_id, globe)
