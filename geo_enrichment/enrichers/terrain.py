"""Elevation, slope and aspect from a 3x3 Open-Meteo elevation grid.

Nine elevations are sampled on a square grid centred on the query
point with 90 m spacing.  Slope and aspect come from Horn's method::

    z1 z2 z3        dz/dx = ((z3 + 2 z6 + z9) - (z1 + 2 z4 + z7)) / (8 dx)
    z4 z5 z6        dz/dy = ((z7 + 2 z8 + z9) - (z1 + 2 z2 + z3)) / (8 dy)
    z7 z8 z9

Row 0 is the southern row (latitude increases with row index).
Aspect is the compass bearing (clockwise from north) of the downslope
direction, in ``[0, 360)``.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any

import numpy as np

from geo_enrichment.core.constants import FEET_PER_METER
from geo_enrichment.enrichers.base import Enricher

if TYPE_CHECKING:
    from geo_enrichment.models.geometry import Coordinate

logger = logging.getLogger(__name__)

OPEN_METEO_ELEVATION_URL = "https://api.open-meteo.com/v1/elevation"

GRID_SIZE = 3
GRID_SPACING_M = 90.0
METERS_PER_DEGREE = 111_000.0

COMPASS_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)  # fmt: skip

# Horn kernels; x gradient runs west→east, y gradient row 0→row 2.
_KERNEL_X = np.array([[-1, 0, 1], [-2, 0, 2], [-1, 0, 1]], dtype=float)
_KERNEL_Y = np.array([[-1, -2, -1], [0, 0, 0], [1, 2, 1]], dtype=float)


def grid_coordinates(origin: Coordinate, spacing_m: float = GRID_SPACING_M) -> tuple[list[float], list[float]]:
    """Return row-major latitudes and longitudes of the sampling grid."""
    half = GRID_SIZE // 2
    lon_scale = METERS_PER_DEGREE * math.cos(math.radians(origin.lat))
    lats: list[float] = []
    lons: list[float] = []
    for row in range(GRID_SIZE):
        lat = origin.lat + (row - half) * spacing_m / METERS_PER_DEGREE
        for col in range(GRID_SIZE):
            lats.append(lat)
            lons.append(origin.lon + (col - half) * spacing_m / lon_scale)
    return lats, lons


def horn_gradients(grid: np.ndarray, spacing_m: float = GRID_SPACING_M) -> tuple[float, float]:
    """Return ``(dz/dx, dz/dy)`` for a 3x3 elevation grid."""
    dzdx = float((grid * _KERNEL_X).sum() / (8 * spacing_m))
    dzdy = float((grid * _KERNEL_Y).sum() / (8 * spacing_m))
    return dzdx, dzdy


def slope_degrees(grid: np.ndarray, spacing_m: float = GRID_SPACING_M) -> float:
    dzdx, dzdy = horn_gradients(grid, spacing_m)
    return math.degrees(math.atan(math.hypot(dzdx, dzdy)))


def aspect_degrees(grid: np.ndarray, spacing_m: float = GRID_SPACING_M) -> float:
    """Compass bearing of the downslope direction (0 for a flat grid)."""
    dzdx, dzdy = horn_gradients(grid, spacing_m)
    if dzdx == 0 and dzdy == 0:
        return 0.0
    aspect = math.degrees(math.atan2(-dzdx, -dzdy))
    return aspect + 360.0 if aspect < 0 else aspect


def aspect_to_direction(aspect: float) -> str:
    """Map an aspect in degrees to a 16-point compass direction."""
    return COMPASS_POINTS[round(aspect / 22.5) % len(COMPASS_POINTS)]


class TerrainEnricher(Enricher):
    """Centre elevation plus Horn slope/aspect."""

    name = "terrain"

    def enrich(self, origin: Coordinate) -> dict[str, Any]:
        lats, lons = grid_coordinates(origin)
        body = self._get(
            OPEN_METEO_ELEVATION_URL,
            {
                "latitude": ",".join(f"{v:.6f}" for v in lats),
                "longitude": ",".join(f"{v:.6f}" for v in lons),
            },
        )
        values = body.get("elevation") if isinstance(body, dict) else None
        if not isinstance(values, list) or len(values) != GRID_SIZE * GRID_SIZE:
            raise self._fail("Invalid elevation data received")

        try:
            grid = np.array(values, dtype=float).reshape(GRID_SIZE, GRID_SIZE)
        except (TypeError, ValueError) as exc:
            msg = f"Non-numeric elevation data: {exc}"
            raise self._fail(msg) from exc
        if not np.isfinite(grid).all():
            raise self._fail("Elevation grid contains missing values")

        elevation_m = float(grid[1, 1])
        slope = slope_degrees(grid)
        aspect = aspect_degrees(grid)
        logger.debug(
            "Terrain computed | lat=%.5f | lon=%.5f | elevation_m=%.1f | slope=%.2f | aspect=%.1f",
            origin.lat,
            origin.lon,
            elevation_m,
            slope,
            aspect,
        )
        return {
            "terrain_elevation_m": elevation_m,
            "terrain_slope_deg": slope,
            "terrain_aspect_deg": aspect,
            "terrain_slope_direction": aspect_to_direction(aspect),
            "elevation_ft": elevation_m * FEET_PER_METER,
        }
