"""
Infrastructure layer: Land boundary geometry for the habitat globe.
"""
import logging
from typing import Optional

import httpx
from shapely.geometry import MultiPolygon

from arbor.config import settings
from arbor.utils.topojson import object_to_geometry

logger = logging.getLogger(__name__)


class LandBoundaryProvider:
    """
    Fetches the world-atlas land topology and decodes it once.

    A failed fetch is not fatal: the globe then renders the ocean and
    graticule without landmasses.
    """

    def __init__(self, url: Optional[str] = None, object_name: str = "land"):
        self.url = url or settings.land_boundaries_url
        self.object_name = object_name
        self._geometry: Optional[MultiPolygon] = None
        self._loaded = False

    @property
    def geometry(self) -> Optional[MultiPolygon]:
        """Previously fetched geometry, or None."""
        return self._geometry

    async def fetch_land_boundaries(self) -> Optional[MultiPolygon]:
        """
        Fetch and decode land boundaries, at most once.

        Returns:
            MultiPolygon of land, or None if the fetch or decoding failed
        """
        if self._loaded:
            return self._geometry
        self._loaded = True

        try:
            async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
                response = await client.get(self.url)
                response.raise_for_status()
                topology = response.json()
            self._geometry = object_to_geometry(topology, self.object_name)
        except httpx.HTTPError as e:
            logger.warning(f"Land boundaries unavailable ({self.url}): {e}")
        except (ValueError, KeyError, TypeError, IndexError) as e:
            logger.warning(f"Land boundaries could not be decoded: {e}")
        else:
            logger.info(f"Loaded {len(self._geometry.geoms)} land polygons")
        return self._geometry
