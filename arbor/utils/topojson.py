"""
TopoJSON decoding helpers.

Provides utilities for:
- Decoding quantized, delta-encoded arcs
- Stitching arcs into polygon rings
- Building shapely geometry from a named topology object
"""
from typing import Any, Dict, List, Sequence
import logging

import numpy as np
from shapely.geometry import MultiPolygon, Polygon

logger = logging.getLogger(__name__)


def decode_arcs(topology: Dict[str, Any]) -> List[np.ndarray]:
    """
    Decode the arcs of a topology into absolute [lng, lat] coordinates.

    Quantized topologies store each arc as a first position followed by
    deltas; they are accumulated and mapped back through the transform.

    Args:
        topology: Parsed TopoJSON document

    Returns:
        List of (N, 2) coordinate arrays, one per arc
    """
    transform = topology.get("transform")
    if transform:
        scale = np.asarray(transform["scale"], dtype=float)
        translate = np.asarray(transform["translate"], dtype=float)

    arcs = []
    for arc in topology["arcs"]:
        points = np.asarray(arc, dtype=float)[:, :2]
        if transform:
            points = np.cumsum(points, axis=0) * scale + translate
        arcs.append(points)
    return arcs


def stitch_ring(arc_indexes: Sequence[int], arcs: List[np.ndarray]) -> np.ndarray:
    """
    Join arcs into one ring.

    A negative index ~i refers to arc i traversed in reverse. Consecutive
    arcs share their junction point, which is kept only once.
    """
    pieces = []
    for position, index in enumerate(arc_indexes):
        arc = arcs[index] if index >= 0 else arcs[~index][::-1]
        pieces.append(arc if position == 0 else arc[1:])
    return np.vstack(pieces)


def _polygon(rings: Sequence[Sequence[int]], arcs: List[np.ndarray]):
    stitched = [stitch_ring(ring, arcs) for ring in rings]
    stitched = [ring for ring in stitched if len(ring) >= 4]
    if not stitched:
        return None
    return Polygon(shell=stitched[0], holes=stitched[1:])


def object_to_geometry(topology: Dict[str, Any], name: str) -> MultiPolygon:
    """
    Convert a named polygonal topology object into shapely geometry.

    Args:
        topology: Parsed TopoJSON document
        name: Key under `objects`, e.g. "land"

    Returns:
        MultiPolygon with one member per decoded polygon
    """
    arcs = decode_arcs(topology)
    obj = topology["objects"][name]
    geometries = obj["geometries"] if obj["type"] == "GeometryCollection" else [obj]

    polygons = []
    for geometry in geometries:
        kind = geometry.get("type")
        if kind == "Polygon":
            parts = [geometry["arcs"]]
        elif kind == "MultiPolygon":
            parts = geometry["arcs"]
        else:
            logger.debug(f"Skipping non-polygonal geometry of type {kind}")
            continue
        for rings in parts:
            polygon = _polygon(rings, arcs)
            if polygon is not None:
                polygons.append(polygon)

    logger.debug(f"Decoded {len(polygons)} polygons from topology object '{name}'")
    return MultiPolygon(polygons)
