"""
Unit tests for the rotating habitat globe.

Tests cover:
- Rotation advance per tick
- Frame contents (ocean, graticule, land, markers)
- Culling of habitat points on the far side
- Render loop lifecycle (start, stop, restart)
- Frame construction cost against the frame budget
"""
import asyncio
import time
import pytest
import numpy as np
from shapely.geometry import MultiPolygon, Point, box

from arbor.config import settings
from arbor.domain.models import HabitatPoint, RotationState
from arbor.services.domain.globe_renderer import (
    CirclePrimitive,
    FrameBufferSurface,
    GlobeRenderSession,
    PathPrimitive,
    RenderLoopAlreadyRunning,
)
from arbor.services.domain.marker_animator import MarkerAnimator


FACING = HabitatPoint(lat=0.0, lng=0.0, label="Gulf of Guinea")
HIDDEN = HabitatPoint(lat=0.0, lng=180.0, label="Pacific")


@pytest.fixture
def surface() -> FrameBufferSurface:
    return FrameBufferSurface(280, 280)


@pytest.fixture
def make_globe(surface):
    """Factory for globe sessions on a fixed clock."""
    def _make(**kwargs) -> GlobeRenderSession:
        kwargs.setdefault("rotation", RotationState(longitude=0.0, tilt=0.0))
        kwargs.setdefault("rotation_step", 0.25)
        kwargs.setdefault("frame_rate", 200)
        kwargs.setdefault("animator", MarkerAnimator(period_ms=2000.0))
        kwargs.setdefault("clock", lambda: 0.5)
        return GlobeRenderSession(surface, **kwargs)
    return _make


# ============================================================
# Tick Tests
# ============================================================

class TestTick:
    """Tests for a single animation step."""

    def test_tick_advances_rotation(self, make_globe, surface):
        globe = make_globe()

        globe.tick()
        globe.tick()

        assert globe.rotation.longitude == pytest.approx(0.5)
        assert globe.rotation.tilt == 0.0
        assert surface.frame_count == 2

    def test_rotation_wraps_at_360(self, make_globe):
        globe = make_globe(rotation=RotationState(longitude=359.9, tilt=-15.0))

        globe.tick()

        assert globe.rotation.longitude == pytest.approx(0.15)

    def test_non_positive_step_rejected(self, make_globe):
        with pytest.raises(ValueError):
            make_globe(rotation_step=0.0)


# ============================================================
# Frame Content Tests
# ============================================================

class TestFrame:
    """Tests for the primitives in a frame."""

    def test_ocean_then_graticule(self, make_globe):
        frame = make_globe().build_frame(0.0)

        ocean, grid = frame[0], frame[1]
        assert isinstance(ocean, CirclePrimitive)
        assert ocean.radius == pytest.approx(280 / 2.2)
        assert isinstance(grid, PathPrimitive)
        assert grid.subpaths

    def test_missing_land_degrades_to_ocean_and_grid(self, make_globe):
        globe = make_globe(land=None)

        frame = globe.build_frame(0.0)

        assert not globe.has_land
        assert len(frame) == 2

    def test_land_drawn_when_present(self, make_globe):
        land = MultiPolygon([box(-10.0, -10.0, 10.0, 10.0)])
        globe = make_globe(land=land)

        frame = globe.build_frame(0.0)

        assert globe.has_land
        land_path = frame[2]
        assert isinstance(land_path, PathPrimitive)
        assert land_path.closed
        assert len(land_path.subpaths) == 1

    def test_land_on_far_side_is_skipped(self, make_globe):
        land = MultiPolygon([box(170.0, -5.0, 179.0, 5.0)])
        globe = make_globe(land=land)

        frame = globe.build_frame(0.0)

        assert frame[2].subpaths == []

    def test_hidden_markers_are_culled(self, make_globe):
        """Only the facing habitat gets a dot and a ring."""
        globe = make_globe(locations=[FACING, HIDDEN])

        frame = globe.build_frame(0.0)
        markers = frame[2:]

        assert len(markers) == 2
        dot, ring = markers
        assert (dot.cx, dot.cy) == pytest.approx((140.0, 140.0))
        assert dot.radius == 4.0
        assert ring.radius == pytest.approx(4.0 + 15.0 * 0.5)

    def test_marker_style_follows_clock(self, make_globe):
        globe = make_globe(locations=[FACING])

        peak = globe.build_frame(500.0)

        assert peak[3].radius == pytest.approx(19.0)
        assert peak[3].opacity == pytest.approx(0.0)

    def test_frame_serialises_to_plain_data(self, make_globe):
        land = MultiPolygon([box(-10.0, -10.0, 10.0, 10.0)])
        globe = make_globe(land=land, locations=[FACING])

        dumped = [primitive.model_dump() for primitive in globe.build_frame(0.0)]

        assert [item["kind"] for item in dumped] == ["circle", "path", "path", "circle", "circle"]
        vertex = dumped[2]["subpaths"][0][0]
        assert len(vertex) == 2
        assert all(isinstance(value, float) for value in vertex)


# ============================================================
# Frame Cost Tests
# ============================================================

class TestFrameCost:
    """Tests that frame construction fits the render loop's frame budget."""

    @pytest.fixture
    def world_land(self) -> MultiPolygon:
        """About 140 land masses of 41 vertices each spread over the sphere."""
        return MultiPolygon([
            Point(float(lng), float(lat)).buffer(4.0, quad_segs=10)
            for lng in np.arange(-170.0, 180.0, 27.0)
            for lat in range(-60, 61, 12)
        ])

    def test_frame_built_within_half_the_budget(self, surface, world_land):
        habitats = [HabitatPoint(lat=float(lat), lng=float(lng)) for lat, lng in zip(range(-35, 45, 10), range(-70, 90, 20))]
        globe = GlobeRenderSession(
            surface,
            land=world_land,
            locations=habitats,
            rotation=RotationState(longitude=0.0, tilt=-15.0),
        )
        globe.tick()

        frames = 20
        started = time.perf_counter()
        for _ in range(frames):
            globe.tick()
        mean_ms = (time.perf_counter() - started) * 1000.0 / frames

        budget_ms = 1000.0 / settings.globe_frame_rate
        assert len(habitats) == 8
        assert mean_ms < budget_ms / 2

    def test_default_angular_speed(self):
        assert settings.globe_rotation_step * settings.globe_frame_rate == pytest.approx(15.0)


# ============================================================
# Render Loop Tests
# ============================================================

class TestRenderLoop:
    """Tests for the asyncio render loop lifecycle."""

    @pytest.mark.asyncio
    async def test_start_draws_frames(self, make_globe, surface):
        globe = make_globe(locations=[FACING])

        handle = globe.start()
        await asyncio.sleep(0.05)

        assert globe.is_running
        assert surface.frame_count > 0
        assert globe.rotation.longitude > 0.0

        handle.stop()
        await handle.wait_closed()

    @pytest.mark.asyncio
    async def test_double_start_raises(self, make_globe):
        globe = make_globe()
        handle = globe.start()

        with pytest.raises(RenderLoopAlreadyRunning):
            globe.start()

        handle.stop()
        await handle.wait_closed()

    @pytest.mark.asyncio
    async def test_stop_takes_effect_exactly_once(self, make_globe):
        globe = make_globe()
        handle = globe.start()
        await asyncio.sleep(0)

        assert globe.stop() is True
        assert globe.stop() is False
        assert handle.stop() is False
        assert not globe.is_running

        await handle.wait_closed()

    @pytest.mark.asyncio
    async def test_rotation_frozen_after_stop(self, make_globe, surface):
        globe = make_globe()
        handle = globe.start()
        await asyncio.sleep(0.02)

        globe.stop()
        await handle.wait_closed()
        rotation, frames = globe.rotation, surface.frame_count
        await asyncio.sleep(0.03)

        assert globe.rotation == rotation
        assert surface.frame_count == frames

    @pytest.mark.asyncio
    async def test_stop_without_start(self, make_globe):
        assert make_globe().stop() is False

    @pytest.mark.asyncio
    async def test_show_replaces_locations_and_restarts(self, make_globe):
        globe = make_globe(locations=[HIDDEN])
        first = globe.start()

        second = globe.show([FACING])
        await asyncio.sleep(0.02)

        assert not first.active
        assert second.active
        assert globe.locations == (FACING,)

        globe.stop()
        await first.wait_closed()
        await second.wait_closed()

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, make_globe):
        globe = make_globe()
        globe.start()
        globe.stop()

        handle = globe.start()

        assert globe.is_running
        handle.stop()
        await handle.wait_closed()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
