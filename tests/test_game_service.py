"""
Unit tests for the game session service.

Tests cover:
- Session creation and lookup
- Globe re-seeding on reveal and stopping afterwards
- Session teardown
"""
import pytest

from arbor.domain.models import Difficulty, GameStatus
from arbor.services.application.game_service import SessionNotFound


class TestSessionRegistry:
    """Tests for creating, finding and deleting sessions."""

    def test_create_session(self, game_service):
        controller = game_service.create_session()

        assert controller.session.status == GameStatus.DIFFICULTY_SELECTION
        assert game_service.get_controller(controller.session.session_id) is controller
        assert game_service.session_count == 1

    def test_unknown_session_raises(self, game_service):
        with pytest.raises(SessionNotFound):
            game_service.get_controller("missing")
        with pytest.raises(SessionNotFound):
            game_service.get_globe("missing")

    def test_globe_without_land(self, game_service):
        session_id = game_service.create_session().session.session_id

        assert not game_service.get_globe(session_id).has_land

    @pytest.mark.asyncio
    async def test_close_deletes_sessions_and_provider(self, game_service, mock_provider):
        game_service.create_session()
        game_service.create_session()

        await game_service.close()

        assert game_service.session_count == 0
        mock_provider.close.assert_awaited_once()


class TestGlobeSync:
    """Tests for pairing the globe with the round state."""

    @pytest.mark.asyncio
    async def test_reveal_starts_globe_with_habitats(self, game_service, sample_pool):
        controller = game_service.create_session()
        globe = game_service.get_globe(controller.session.session_id)

        await controller.select_difficulty(Difficulty.EASY)
        assert not globe.is_running

        await controller.select_option("T1")

        assert globe.is_running
        assert globe.locations == sample_pool[0].habitats
        globe.stop()

    @pytest.mark.asyncio
    async def test_incorrect_guess_leaves_globe_idle(self, game_service):
        controller = game_service.create_session()
        globe = game_service.get_globe(controller.session.session_id)

        await controller.select_difficulty(Difficulty.EASY)
        await controller.select_option("T2")

        assert not globe.is_running

    @pytest.mark.asyncio
    async def test_advance_stops_globe(self, game_service):
        controller = game_service.create_session()
        globe = game_service.get_globe(controller.session.session_id)
        await controller.select_difficulty(Difficulty.EASY)
        await controller.select_option("T1")

        await controller.advance()

        assert not globe.is_running

    @pytest.mark.asyncio
    async def test_fact_regeneration_keeps_globe_running(self, game_service):
        controller = game_service.create_session()
        globe = game_service.get_globe(controller.session.session_id)
        await controller.select_difficulty(Difficulty.EASY)
        await controller.select_option("T1")
        handle = globe._handle

        await controller.regenerate_fact()

        assert globe.is_running
        assert globe._handle is handle
        globe.stop()

    @pytest.mark.asyncio
    async def test_delete_stops_globe(self, game_service):
        controller = game_service.create_session()
        session_id = controller.session.session_id
        globe = game_service.get_globe(session_id)
        await controller.select_difficulty(Difficulty.EASY)
        await controller.select_option("T1")

        game_service.delete_session(session_id)

        assert not globe.is_running
        with pytest.raises(SessionNotFound):
            game_service.get_controller(session_id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
