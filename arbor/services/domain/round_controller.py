"""
Domain service: Round lifecycle controller.

The controller sequences content-provider requests with player input. It
holds the current immutable GameSession, applies every change through the
pure `transition` reducer and notifies subscribers of each new value.

Each provider call runs in its own slot (pool, image, fact) with at most
one task in flight per slot. A result is applied only if the session token
captured when the request was issued is still current; anything arriving
after a reset or a move to another round is discarded.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar

from arbor.domain.models import (
    Difficulty,
    GameSession,
    GameStatus,
    LoadingPhase,
    RequestToken,
    Season,
)
from arbor.infrastructure.content_provider import ContentProvider, ProviderError
from arbor.services.domain.distractor_selector import DistractorSelector
from arbor.services.domain.game_state import (
    AdvanceRequested,
    DifficultySelected,
    FactRequested,
    FactResolved,
    GameEvent,
    LoadFailed,
    OptionSelected,
    PoolReceived,
    ReturnedToDifficultySelection,
    RevealFinished,
    RoundReady,
    transition,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
SessionListener = Callable[[GameSession], None]


class RequestSlot(str, Enum):
    """Logical request slots; each holds at most one in-flight request."""
    POOL = "pool"
    IMAGE = "image"
    FACT = "fact"


class StaleResponse(Exception):
    """A request was cancelled because the session moved on."""
    pass


class RoundController:
    """
    State machine driving one game session.

    Operations return the session value after the operation has settled.
    Provider failures never escape: they end in ERROR (pool, before image)
    or in a degraded RESULT (after image, fact).
    """

    def __init__(
        self,
        session_id: str,
        provider: ContentProvider,
        selector: Optional[DistractorSelector] = None,
    ):
        """
        Initialize the controller with dependencies.

        Args:
            session_id: Identifier of the session this controller drives
            provider: Content provider for pools, images and facts
            selector: Option selector (a fresh unseeded one by default)
        """
        self.provider = provider
        self.selector = selector or DistractorSelector()
        self._session = GameSession(session_id=session_id)
        self._inflight: Dict[RequestSlot, "asyncio.Task"] = {}
        self._listeners: List[SessionListener] = []

    @property
    def session(self) -> GameSession:
        return self._session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a callback invoked with every new session value.

        Returns:
            Function removing the subscription
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _dispatch(self, event: GameEvent) -> GameSession:
        previous = self._session
        session = transition(previous, event)
        if session is not previous:
            self._session = session
            logger.debug(
                f"Session {session.session_id}: {type(event).__name__} "
                f"{previous.status.value} -> {session.status.value}"
            )
            for listener in list(self._listeners):
                listener(session)
        return session

    def _is_current(self, token: RequestToken) -> bool:
        return self._session.token == token

    def _apply(self, token: RequestToken, event: GameEvent) -> GameSession:
        """Dispatch a request outcome unless the session has moved on."""
        if not self._is_current(token):
            logger.info(
                f"Session {self._session.session_id}: discarding stale {type(event).__name__}"
            )
            return self._session
        return self._dispatch(event)

    async def _request(self, slot: RequestSlot, factory: Callable[[], Awaitable[T]]) -> T:
        """
        Run a provider call in its slot.

        Raises:
            StaleResponse: If the call was cancelled by a reset or a newer request
            ProviderError: If the provider call failed
        """
        stale = self._inflight.get(slot)
        if stale is not None and not stale.done():
            logger.info(f"Cancelling stale {slot.value} request")
            stale.cancel()

        task = asyncio.ensure_future(factory())
        self._inflight[slot] = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._inflight.get(slot) is task:
                del self._inflight[slot]

        if task.cancelled():
            raise StaleResponse(slot.value)
        return task.result()

    async def _load_pool(self) -> GameSession:
        session = self._session
        token = session.token
        difficulty = session.difficulty
        try:
            pool = await self._request(
                RequestSlot.POOL,
                lambda: self.provider.fetch_pool(difficulty),
            )
        except StaleResponse:
            return self._session
        except ProviderError as e:
            logger.warning(f"Pool request for {difficulty.value} failed: {e}")
            return self._apply(token, LoadFailed(str(e)))

        if not self._is_current(token):
            logger.info(f"Session {session.session_id}: discarding stale pool")
            return self._session
        self._dispatch(PoolReceived(tuple(pool)))
        return await self._start_round()

    async def _start_round(self) -> GameSession:
        session = self._session
        token = session.token
        target = session.target
        assert target is not None, "Round start without a target specimen"
        try:
            image = await self._request(
                RequestSlot.IMAGE,
                lambda: self.provider.fetch_image(target.autumn_description, Season.BEFORE),
            )
        except StaleResponse:
            return self._session
        except ProviderError as e:
            logger.warning(f"Before image for {target.id} failed: {e}")
            return self._apply(token, LoadFailed(str(e)))

        if not self._is_current(token):
            logger.info(f"Session {session.session_id}: discarding stale before image")
            return self._session
        options = self.selector.select_options(target, session.pool)
        return self._dispatch(RoundReady(options=options, before_image=image))

    # ------------------------------------------------------------------
    # Player operations
    # ------------------------------------------------------------------

    async def select_difficulty(self, difficulty: Difficulty) -> GameSession:
        """
        Start a new session for a difficulty: fetch a pool, then the first round.

        Raises:
            InvalidTransition: If not on the difficulty selection screen
        """
        self._dispatch(DifficultySelected(difficulty))
        logger.info(f"Session {self._session.session_id}: starting {difficulty.value} trail")
        return await self._load_pool()

    async def select_option(self, choice: str) -> GameSession:
        """
        Record the player's guess. Only the first guess of a round counts.

        A correct guess scores a point and fetches the after image; its
        failure reuses the before image instead of failing the round.

        Raises:
            InvalidTransition: If no round is awaiting a guess
            ValueError: If the choice is not one of the offered options
        """
        previous = self._session
        session = self._dispatch(OptionSelected(choice))
        if session is previous:
            logger.debug(f"Session {session.session_id}: ignoring repeated guess '{choice}'")
            return session
        if session.status != GameStatus.LOADING:
            return session

        token = session.token
        target = session.current_round.target
        after_image = None
        try:
            after_image = await self._request(
                RequestSlot.IMAGE,
                lambda: self.provider.fetch_image(target.spring_description, Season.AFTER),
            )
        except StaleResponse:
            return self._session
        except ProviderError as e:
            logger.warning(f"After image for {target.id} failed, reusing before image: {e}")
        return self._apply(token, RevealFinished(after_image))

    async def advance(self) -> GameSession:
        """
        Move to the next specimen in the pool, or to a fresh pool once exhausted.

        Raises:
            InvalidTransition: If the current round has no result yet
        """
        session = self._dispatch(AdvanceRequested())
        if session.loading_phase == LoadingPhase.POOL_START:
            logger.info(f"Session {session.session_id}: pool exhausted, requesting a new one")
            return await self._load_pool()
        return await self._start_round()

    async def regenerate_fact(self) -> GameSession:
        """
        Replace the displayed fact with a freshly generated one.

        On failure the previous fact stays and the round is flagged.

        Raises:
            InvalidTransition: If not in RESULT or a regeneration is outstanding
        """
        session = self._dispatch(FactRequested())
        token = session.token
        target = session.current_round.target
        fact = None
        try:
            fact = await self._request(
                RequestSlot.FACT,
                lambda: self.provider.fetch_fact(target.common_name, target.scientific_name),
            )
        except StaleResponse:
            return self._session
        except ProviderError as e:
            logger.warning(f"Fact regeneration for {target.id} failed: {e}")
        return self._apply(token, FactResolved(fact))

    def return_to_difficulty_selection(self) -> GameSession:
        """
        Discard pool, round and score. Always permitted.

        Outstanding requests are cancelled and their results discarded.
        """
        self._cancel_inflight()
        return self._dispatch(ReturnedToDifficultySelection())

    def close(self) -> None:
        """Cancel outstanding requests and drop subscribers."""
        self._cancel_inflight()
        self._listeners.clear()

    def _cancel_inflight(self) -> None:
        for slot, task in list(self._inflight.items()):
            if not task.done():
                logger.debug(f"Cancelling in-flight {slot.value} request")
                task.cancel()
        self._inflight.clear()
