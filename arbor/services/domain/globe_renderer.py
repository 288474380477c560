"""
Domain service: Rotating habitat globe.

A GlobeRenderSession owns the globe rotation, the land geometry and the
active habitat points. Each tick advances the rotation, builds a list of
draw primitives (ocean disk, graticule, land, habitat markers) and submits
it to a render surface. The loop runs as an asyncio task until stopped.
"""
import asyncio
import logging
import time
from typing import Callable, Iterable, List, Literal, Optional, Protocol, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, Field
from shapely.geometry.base import BaseGeometry

from arbor.config import settings
from arbor.domain.models import HabitatPoint, RotationState
from arbor.services.domain.marker_animator import MarkerAnimator
from arbor.utils.geo_projection import GeoProjector, concatenate_parts, graticule

logger = logging.getLogger(__name__)

# Palette
OCEAN_FILL = "#020617"
ATMOSPHERE_GLOW = "rgba(163, 177, 138, 0.1)"
GRATICULE_STROKE = "rgba(163, 177, 138, 0.05)"
LAND_FILL = "#3a5a40"
LAND_STROKE = "#588157"
MARKER_FILL = "#a3b18a"
MARKER_GLOW = "#588157"


class CirclePrimitive(BaseModel):
    """Filled and/or stroked circle at pixel coordinates."""
    kind: Literal["circle"] = "circle"
    cx: float
    cy: float
    radius: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 0.0
    opacity: float = 1.0
    glow: Optional[str] = None
    glow_blur: float = 0.0


class PathPrimitive(BaseModel):
    """One or more sub-paths of pixel vertices drawn as a single shape."""
    kind: Literal["path"] = "path"
    subpaths: List[List[List[float]]] = Field(default_factory=list)
    closed: bool = False
    fill: Optional[str] = None
    stroke: Optional[str] = None
    line_width: float = 0.0


Primitive = Union[CirclePrimitive, PathPrimitive]


class RenderSurface(Protocol):
    """2-D drawing surface of a fixed logical size."""
    width: int
    height: int

    def draw(self, primitives: Sequence[Primitive]) -> None:
        ...


class FrameBufferSurface:
    """Render surface that keeps the most recent frame in memory."""

    def __init__(self, width: int, height: int):
        self.width = width
        self.height = height
        self.frame: List[Primitive] = []
        self.frame_count = 0

    def draw(self, primitives: Sequence[Primitive]) -> None:
        self.frame = list(primitives)
        self.frame_count += 1


class RenderLoopAlreadyRunning(RuntimeError):
    """Raised when a render loop is started twice for the same session."""
    pass


class RenderHandle:
    """Handle to a running render loop. `stop()` takes effect exactly once."""

    def __init__(self, task: "asyncio.Task[None]"):
        self._task = task
        self._stopped = False

    @property
    def active(self) -> bool:
        return not self._stopped and not self._task.done()

    def stop(self) -> bool:
        """
        Cancel the render loop.

        Returns:
            True if this call stopped the loop, False if it was already stopped
        """
        if self._stopped:
            return False
        self._stopped = True
        self._task.cancel()
        return True

    async def wait_closed(self) -> None:
        """Wait until the loop task has fully finished."""
        try:
            await self._task
        except asyncio.CancelledError:
            pass


def _land_rings(land: Optional[BaseGeometry]) -> List[np.ndarray]:
    """Extract exterior and interior rings of (multi)polygon land geometry."""
    if land is None or land.is_empty:
        return []
    polygons = getattr(land, "geoms", [land])
    rings = []
    for polygon in polygons:
        rings.append(np.asarray(polygon.exterior.coords))
        for interior in polygon.interiors:
            rings.append(np.asarray(interior.coords))
    return rings


class GlobeRenderSession:
    """
    Animated orthographic globe showing a set of habitat points.

    Rotation state is owned by this object; nothing else writes it.
    """

    def __init__(
        self,
        surface: RenderSurface,
        land: Optional[BaseGeometry] = None,
        locations: Iterable[HabitatPoint] = (),
        projector: Optional[GeoProjector] = None,
        animator: Optional[MarkerAnimator] = None,
        rotation: Optional[RotationState] = None,
        rotation_step: Optional[float] = None,
        frame_rate: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.surface = surface
        self.projector = projector or GeoProjector(
            surface.width, surface.height, settings.globe_scale_divisor
        )
        self.animator = animator or MarkerAnimator()
        self.rotation_step = rotation_step if rotation_step is not None else settings.globe_rotation_step
        self.frame_rate = frame_rate or settings.globe_frame_rate
        self._clock = clock
        self._rotation = rotation or RotationState(tilt=settings.globe_tilt)
        self._land, self._land_offsets = concatenate_parts(_land_rings(land))
        self._grid, self._grid_offsets = concatenate_parts(graticule(settings.globe_graticule_step))
        self._locations: Tuple[HabitatPoint, ...] = tuple(locations)
        self._handle: Optional[RenderHandle] = None

        if self.rotation_step <= 0:
            raise ValueError(f"Rotation step must be positive, got {self.rotation_step}")

    @property
    def rotation(self) -> RotationState:
        return self._rotation

    @property
    def locations(self) -> Tuple[HabitatPoint, ...]:
        return self._locations

    @property
    def has_land(self) -> bool:
        return len(self._land) > 0

    @property
    def is_running(self) -> bool:
        return self._handle is not None and self._handle.active

    # ------------------------------------------------------------------
    # Frame construction
    # ------------------------------------------------------------------

    def build_frame(self, now_ms: float) -> List[Primitive]:
        """
        Build the primitive list for the current rotation at `now_ms`.

        Graticule and land are each projected in one vectorised pass over
        their stacked vertices.
        """
        projector = self.projector
        rotation = self._rotation
        frame: List[Primitive] = [
            CirclePrimitive.model_construct(
                cx=projector.cx,
                cy=projector.cy,
                radius=projector.radius,
                fill=OCEAN_FILL,
                glow=ATMOSPHERE_GLOW,
                glow_blur=40.0,
            )
        ]

        frame.append(PathPrimitive.model_construct(
            subpaths=projector.project_lines(self._grid, self._grid_offsets, rotation),
            stroke=GRATICULE_STROKE,
            line_width=0.5,
        ))

        if self.has_land:
            frame.append(PathPrimitive.model_construct(
                subpaths=projector.project_rings(self._land, self._land_offsets, rotation),
                closed=True,
                fill=LAND_FILL,
                stroke=LAND_STROKE,
                line_width=0.3,
            ))

        style = self.animator.style(now_ms)
        for point in self._locations:
            projected = projector.project(point, rotation)
            if not projected.visible:
                continue
            frame.append(CirclePrimitive.model_construct(
                cx=projected.x,
                cy=projected.y,
                radius=style.dot_radius,
                fill=MARKER_FILL,
                glow=MARKER_GLOW,
                glow_blur=15.0,
            ))
            frame.append(CirclePrimitive.model_construct(
                cx=projected.x,
                cy=projected.y,
                radius=style.ring_radius,
                stroke=MARKER_FILL,
                line_width=2.0,
                opacity=style.ring_opacity,
            ))
        return frame

    def tick(self) -> List[Primitive]:
        """Advance the rotation by one step and draw a frame."""
        self._rotation = self._rotation.advanced(self.rotation_step)
        frame = self.build_frame(self._clock() * 1000.0)
        self.surface.draw(frame)
        return frame

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        interval = 1.0 / self.frame_rate
        while True:
            try:
                self.tick()
            except Exception:
                logger.exception("Globe frame failed, stopping render loop")
                raise
            await asyncio.sleep(interval)

    def start(self) -> RenderHandle:
        """
        Schedule the render loop on the running event loop.

        Raises:
            RenderLoopAlreadyRunning: If the loop is already active
        """
        if self.is_running:
            raise RenderLoopAlreadyRunning("Globe render loop is already running")
        task = asyncio.get_running_loop().create_task(self._run())
        self._handle = RenderHandle(task)
        logger.debug(f"Globe render loop started with {len(self._locations)} habitat points")
        return self._handle

    def stop(self) -> bool:
        """Stop the render loop if it is running."""
        if self._handle is None:
            return False
        stopped = self._handle.stop()
        if stopped:
            logger.debug("Globe render loop stopped")
        return stopped

    def show(self, locations: Iterable[HabitatPoint]) -> RenderHandle:
        """Swap the habitat set and (re)start the render loop."""
        self.stop()
        self._locations = tuple(locations)
        return self.start()
