"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Sample specimens and pools
- Seeded option selector
- Mock content provider
- Game service wired to the mock provider
- FastAPI test client
"""
import pytest
import numpy as np
from typing import Iterator, Optional
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from arbor.main import app
from arbor.api.rate_limit import limiter
from arbor.domain.models import HabitatPoint, Season, Specimen
from arbor.infrastructure.content_provider import ContentProvider
from arbor.infrastructure.land_boundaries import LandBoundaryProvider
from arbor.services.application import game_service as game_service_module
from arbor.services.application.game_service import GameService
from arbor.services.domain.distractor_selector import DistractorSelector


def make_specimen(
    name: str,
    specimen_id: Optional[str] = None,
    habitats: Optional[list[HabitatPoint]] = None,
) -> Specimen:
    """Build a specimen whose descriptions are derived from its name."""
    return Specimen(
        id=specimen_id or f"tree-{name}",
        common_name=name,
        scientific_name=f"{name} scientifica",
        autumn_description=f"{name} in autumn",
        spring_description=f"{name} in spring",
        fun_fact=f"{name} is a tree.",
        habitats=tuple(habitats or [
            HabitatPoint(lat=45.0, lng=-75.0, label="Ottawa"),
            HabitatPoint(lat=51.5, lng=-0.1),
        ]),
    )


def image_handle(description: str, season: Season) -> str:
    """Deterministic image handle used by the mock provider."""
    return f"data:image/png;base64,{season.value}:{description}"


# ============================================================
# Sample Data Fixtures
# ============================================================

@pytest.fixture
def sample_pool() -> list[Specimen]:
    """Three specimens named T1, T2, T3."""
    return [make_specimen(f"T{i}") for i in range(1, 4)]


@pytest.fixture
def specimen_factory():
    """Factory building specimens from a name."""
    return make_specimen


@pytest.fixture
def seeded_selector() -> DistractorSelector:
    """Option selector with a fixed seed."""
    return DistractorSelector(rng=np.random.default_rng(42))


# ============================================================
# Mock Provider Fixtures
# ============================================================

@pytest.fixture
def mock_provider(sample_pool):
    """Create a mock content provider that always succeeds."""
    provider = AsyncMock(spec=ContentProvider)
    provider.fetch_pool.return_value = sample_pool
    provider.fetch_image.side_effect = image_handle
    provider.fetch_fact.return_value = "A brand new fact."
    return provider


@pytest.fixture
def mock_land_provider():
    """Land provider that yields no geometry."""
    land_provider = AsyncMock(spec=LandBoundaryProvider)
    land_provider.fetch_land_boundaries.return_value = None
    land_provider.geometry = None
    return land_provider


@pytest.fixture
def game_service(mock_provider, mock_land_provider, monkeypatch) -> GameService:
    """Game service installed as the application singleton."""
    service = GameService(
        provider=mock_provider,
        land_provider=mock_land_provider,
        selector_factory=lambda: DistractorSelector(rng=np.random.default_rng(7)),
    )
    monkeypatch.setattr(game_service_module, "_game_service", service)
    return service


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client(game_service) -> Iterator[TestClient]:
    """Test client running the app lifespan on a single event loop."""
    limiter.reset()
    with TestClient(app) as client:
        yield client
