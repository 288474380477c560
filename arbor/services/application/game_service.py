"""
Application service: Orchestration layer for game sessions.
"""
import logging
import uuid
from typing import Callable, Dict, Optional

from arbor.config import settings
from arbor.domain.models import GameSession
from arbor.infrastructure.content_provider import ContentProvider, get_content_provider
from arbor.infrastructure.land_boundaries import LandBoundaryProvider
from arbor.services.domain.distractor_selector import DistractorSelector
from arbor.services.domain.globe_renderer import FrameBufferSurface, GlobeRenderSession
from arbor.services.domain.round_controller import RoundController

logger = logging.getLogger(__name__)


class SessionNotFound(Exception):
    """Raised when a session id is unknown."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session '{session_id}' not found")


class GameService:
    """
    Application service for game sessions.

    Keeps sessions in memory, pairs each RoundController with a
    GlobeRenderSession and re-seeds the globe with the target's habitats
    whenever a round is revealed. No game rules live here.
    """

    def __init__(
        self,
        provider: ContentProvider,
        land_provider: LandBoundaryProvider,
        selector_factory: Callable[[], DistractorSelector] = DistractorSelector,
    ):
        """
        Initialize the service with dependencies.

        Args:
            provider: Content provider shared by all sessions
            land_provider: Source of land geometry for the globes
            selector_factory: Builds the option selector of each new session
        """
        self.provider = provider
        self.land_provider = land_provider
        self.selector_factory = selector_factory
        self._controllers: Dict[str, RoundController] = {}
        self._globes: Dict[str, GlobeRenderSession] = {}

    @property
    def session_count(self) -> int:
        return len(self._controllers)

    @property
    def has_land(self) -> bool:
        return self.land_provider.geometry is not None

    async def load_land_boundaries(self) -> None:
        """Fetch land geometry once; later globes share it."""
        await self.land_provider.fetch_land_boundaries()

    def create_session(self) -> RoundController:
        """
        Create a new session on the difficulty selection screen.

        Returns:
            RoundController driving the new session
        """
        session_id = uuid.uuid4().hex
        controller = RoundController(session_id, self.provider, self.selector_factory())
        globe = GlobeRenderSession(
            FrameBufferSurface(settings.globe_size, settings.globe_size),
            land=self.land_provider.geometry,
        )
        controller.subscribe(lambda session: self._sync_globe(globe, session))

        self._controllers[session_id] = controller
        self._globes[session_id] = globe
        logger.info(f"Created session {session_id}")
        return controller

    def get_controller(self, session_id: str) -> RoundController:
        """
        Raises:
            SessionNotFound: If the session does not exist
        """
        controller = self._controllers.get(session_id)
        if controller is None:
            raise SessionNotFound(session_id)
        return controller

    def get_globe(self, session_id: str) -> GlobeRenderSession:
        """
        Raises:
            SessionNotFound: If the session does not exist
        """
        globe = self._globes.get(session_id)
        if globe is None:
            raise SessionNotFound(session_id)
        return globe

    def delete_session(self, session_id: str) -> None:
        """
        Tear down a session: cancel its requests and stop its globe.

        Raises:
            SessionNotFound: If the session does not exist
        """
        controller = self.get_controller(session_id)
        controller.close()
        self._globes[session_id].stop()
        del self._controllers[session_id]
        del self._globes[session_id]
        logger.info(f"Deleted session {session_id}")

    async def close(self) -> None:
        """Tear down every session and close the content provider."""
        for session_id in list(self._controllers):
            self.delete_session(session_id)
        await self.provider.close()

    def _sync_globe(self, globe: GlobeRenderSession, session: GameSession) -> None:
        if session.is_revealed:
            habitats = session.current_round.target.habitats
            if not globe.is_running or globe.locations != habitats:
                globe.show(habitats)
        elif globe.is_running:
            globe.stop()


# Singleton instance
_game_service: Optional[GameService] = None


def get_game_service() -> GameService:
    """
    Get or create the singleton game service instance.

    Returns:
        GameService instance
    """
    global _game_service
    if _game_service is None:
        _game_service = GameService(
            provider=get_content_provider(),
            land_provider=LandBoundaryProvider(),
        )
    return _game_service
