"""
Orthographic globe projection utilities.

Rotation follows the d3 convention: a rotation of [lambda, phi] first spins
the sphere by lambda degrees of longitude, then tilts it by phi degrees, so
the coordinate facing the viewer (the sub-rotation point) is (-lambda, -phi).
"""
import math
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from arbor.domain.models import HabitatPoint, RotationState

HALF_PI = math.pi / 2


@dataclass(frozen=True)
class ProjectedPoint:
    """Surface coordinates of a projected point and whether it faces the viewer."""
    x: float
    y: float
    visible: bool


def geodesic_distance(
    a: Tuple[float, float],
    b: Tuple[float, float],
) -> float:
    """
    Great-circle angular distance between two coordinates.

    Args:
        a: (longitude, latitude) in degrees
        b: (longitude, latitude) in degrees

    Returns:
        Distance in radians, in [0, pi]
    """
    lng0, lat0 = math.radians(a[0]), math.radians(a[1])
    lng1, lat1 = math.radians(b[0]), math.radians(b[1])
    delta = lng1 - lng0
    cos_delta, sin_delta = math.cos(delta), math.sin(delta)
    sin_lat0, cos_lat0 = math.sin(lat0), math.cos(lat0)
    sin_lat1, cos_lat1 = math.sin(lat1), math.cos(lat1)
    x = cos_lat1 * sin_delta
    y = cos_lat0 * sin_lat1 - sin_lat0 * cos_lat1 * cos_delta
    z = sin_lat0 * sin_lat1 + cos_lat0 * cos_lat1 * cos_delta
    return math.atan2(math.sqrt(x * x + y * y), z)


def geodesic_distance_array(
    lngs: np.ndarray,
    lats: np.ndarray,
    origin: Tuple[float, float],
) -> np.ndarray:
    """Vectorised geodesic_distance from every (lng, lat) pair to origin."""
    lng0, lat0 = math.radians(origin[0]), math.radians(origin[1])
    delta = np.radians(lngs) - lng0
    lat1 = np.radians(lats)
    sin_lat0, cos_lat0 = math.sin(lat0), math.cos(lat0)
    x = np.cos(lat1) * np.sin(delta)
    y = cos_lat0 * np.sin(lat1) - sin_lat0 * np.cos(lat1) * np.cos(delta)
    z = sin_lat0 * np.sin(lat1) + cos_lat0 * np.cos(lat1) * np.cos(delta)
    return np.arctan2(np.sqrt(x * x + y * y), z)


def sub_rotation_point(rotation: RotationState) -> Tuple[float, float]:
    """
    Coordinate currently facing the viewer.

    Returns:
        (longitude, latitude) in degrees, longitude normalised to [-180, 180)
    """
    lng = (-rotation.longitude + 180.0) % 360.0 - 180.0
    return lng, -rotation.tilt


def graticule(step: float = 10.0, precision: float = 2.5) -> List[np.ndarray]:
    """
    Build meridians and parallels as polylines of [lng, lat] vertices.

    Minor meridians run between +/-80 degrees latitude. Meridians on
    multiples of 90 degrees are major lines and run pole to pole. Parallels
    are spaced `step` degrees apart and never include the poles.
    """
    lines = []
    minor_lats = np.arange(-80.0, 80.0 + precision / 2, precision)
    major_lats = np.arange(-90.0, 90.0 + precision / 2, precision)
    for lng in np.arange(-180.0, 180.0, step):
        lats = major_lats if lng % 90.0 == 0 else minor_lats
        lines.append(np.column_stack([np.full_like(lats, lng), lats]))

    lng_samples = np.arange(-180.0, 180.0 + precision / 2, precision)
    for lat in np.arange(-80.0, 80.0 + step / 2, step):
        lines.append(np.column_stack([lng_samples, np.full_like(lng_samples, lat)]))
    return lines


def concatenate_parts(parts: Sequence[np.ndarray]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Stack polylines into one array so they can be projected in a single pass.

    Empty parts are skipped.

    Returns:
        Tuple of:
            - (N, 2) array of every [lng, lat] vertex
            - offsets of length parts + 1; part i is coords[offsets[i]:offsets[i + 1]]
    """
    parts = [np.asarray(part, dtype=float).reshape(-1, 2) for part in parts if len(part)]
    if not parts:
        return np.empty((0, 2)), np.zeros(1, dtype=int)
    offsets = np.concatenate([[0], np.cumsum([len(part) for part in parts])])
    return np.vstack(parts), offsets


class GeoProjector:
    """
    Orthographic projection of the sphere onto a square render surface.

    The sphere is centred on the surface with radius `width / scale_divisor`
    and clipped at 90 degrees: only the hemisphere facing the viewer is drawn.
    """

    def __init__(self, width: int, height: int, scale_divisor: float = 2.2):
        self.width = width
        self.height = height
        self.cx = width / 2.0
        self.cy = height / 2.0
        self.radius = width / scale_divisor

    def _rotate(self, lngs, lats, rotation: RotationState):
        """Unit vectors in view space; the first component points at the viewer."""
        lam = np.radians(np.asarray(lngs, dtype=float) + rotation.longitude)
        phi = np.radians(np.asarray(lats, dtype=float))
        tilt = math.radians(rotation.tilt)
        x = np.cos(phi) * np.cos(lam)
        y = np.cos(phi) * np.sin(lam)
        z = np.sin(phi)
        depth = x * math.cos(tilt) - z * math.sin(tilt)
        up = z * math.cos(tilt) + x * math.sin(tilt)
        return depth, y, up

    def project(self, point: HabitatPoint, rotation: RotationState) -> ProjectedPoint:
        """
        Project a habitat point under the given rotation.

        The point is visible iff its geodesic distance to the sub-rotation
        point is strictly less than pi/2, which is exactly the 90 degree
        clip boundary of the projection.
        """
        distance = geodesic_distance((point.lng, point.lat), sub_rotation_point(rotation))
        _, across, up = self._rotate(point.lng, point.lat, rotation)
        return ProjectedPoint(
            x=float(self.cx + self.radius * across),
            y=float(self.cy - self.radius * up),
            visible=distance < HALF_PI,
        )

    def project_array(
        self,
        coords: np.ndarray,
        rotation: RotationState,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Project an (N, 2) array of [lng, lat] vertices.

        Vertices on the far hemisphere are pushed radially onto the limb of
        the disk so that filled shapes never extend outside it.

        Returns:
            Tuple of:
                - (N, 2) array of pixel coordinates
                - boolean mask of vertices on the visible hemisphere
        """
        coords = np.asarray(coords, dtype=float)
        lngs, lats = coords[:, 0], coords[:, 1]
        visible = geodesic_distance_array(lngs, lats, sub_rotation_point(rotation)) < HALF_PI
        _, across, up = self._rotate(lngs, lats, rotation)

        norm = np.hypot(across, up)
        safe_norm = np.where(norm > 0.0, norm, 1.0)
        across = np.where(visible, across, across / safe_norm)
        up = np.where(visible, up, up / safe_norm)

        pixels = np.column_stack([self.cx + self.radius * across, self.cy - self.radius * up])
        return pixels, visible


    def project_rings(
        self,
        coords: np.ndarray,
        offsets: np.ndarray,
        rotation: RotationState,
    ) -> List[List[List[float]]]:
        """
        Project closed rings stacked by `concatenate_parts`.

        Rings with no vertex on the visible hemisphere are dropped. Kept rings
        retain every vertex, with far-side ones pushed onto the limb.

        Returns:
            Pixel vertex lists rounded to 2 decimals, one per kept ring
        """
        if len(coords) == 0:
            return []
        pixels, visible = self.project_array(coords, rotation)
        points = np.round(pixels, 2).tolist()
        keep = np.logical_or.reduceat(visible, offsets[:-1]).tolist()
        bounds = zip(offsets[:-1].tolist(), offsets[1:].tolist(), keep)
        return [points[start:end] for start, end, kept in bounds if kept]

    def project_lines(
        self,
        coords: np.ndarray,
        offsets: np.ndarray,
        rotation: RotationState,
    ) -> List[List[List[float]]]:
        """
        Project open polylines stacked by `concatenate_parts`.

        Each line is cut into runs of consecutive visible vertices; runs
        shorter than two vertices are dropped.

        Returns:
            Pixel vertex lists rounded to 2 decimals, one per visible run
        """
        if len(coords) == 0:
            return []
        pixels, visible = self.project_array(coords, rotation)
        points = np.round(pixels, 2).tolist()

        line_start = np.zeros(len(visible), dtype=bool)
        line_start[offsets[:-1]] = True
        line_end = np.zeros(len(visible), dtype=bool)
        line_end[offsets[1:] - 1] = True
        previous = np.concatenate([[False], visible[:-1]])
        following = np.concatenate([visible[1:], [False]])

        starts = np.flatnonzero(visible & (line_start | ~previous)).tolist()
        ends = (np.flatnonzero(visible & (line_end | ~following)) + 1).tolist()
        return [points[start:end] for start, end in zip(starts, ends) if end - start >= 2]
