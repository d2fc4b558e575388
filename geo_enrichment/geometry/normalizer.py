"""Geometry CRS detection and normalisation to WGS 84 degrees.

Feature services return geometry in whatever spatial reference they
were published in.  Before any distance is computed every coordinate
pair is converted to canonical ``Coordinate(lat, lon)`` degrees.

CRS resolution order:
1. A declared ``spatialReference.wkid`` of 4326 means geographic;
   3857/102100/102113/900913 means Web Mercator.
2. Any other declared wkid is transformed with ``pyproj``.
3. Without a declaration, a magnitude heuristic decides: if any
   coordinate has ``|x| > 180`` or ``|y| > 90`` the geometry is treated
   as Web Mercator, otherwise as geographic.  The heuristic is
   ambiguous near the antimeridian and the poles; it is a known
   approximation.

Accepted raw shapes:
- ESRI JSON: ``{"x", "y"}``, ``{"paths"}``, ``{"rings"}``.
- GeoJSON: ``Point``, ``LineString``, ``MultiLineString``, ``Polygon``,
  single-part ``MultiPolygon``.
"""

from __future__ import annotations

import enum
import functools
import logging
import math
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from pyproj import Transformer
from pyproj.exceptions import CRSError

from geo_enrichment.core.constants import WEB_MERCATOR_EXTENT_M, WEB_MERCATOR_WKIDS, WGS84_WKID
from geo_enrichment.core.exceptions import GeometryError
from geo_enrichment.models.geometry import (
    Coordinate,
    Geometry,
    GeometryKind,
    ModelValidationError,
    Point,
    Polygon,
    Polyline,
)

logger = logging.getLogger(__name__)

Pair = tuple[float, float]
Transform = Callable[[float, float], Coordinate]

_GEOGRAPHIC_MAX_X = 180.0
_GEOGRAPHIC_MAX_Y = 90.0


class CRSKind(enum.Enum):
    """Coordinate reference system family of a raw geometry."""

    GEOGRAPHIC = "geographic"
    PROJECTED = "projected"


# ---------------------------------------------------------------------------
# Projection maths
# ---------------------------------------------------------------------------


def to_wgs84(x: float, y: float) -> Coordinate:
    """Convert Web Mercator metres to WGS 84 degrees."""
    lon = x / WEB_MERCATOR_EXTENT_M * 180.0
    lat = 180.0 / math.pi * (2.0 * math.atan(math.exp(y / WEB_MERCATOR_EXTENT_M * math.pi)) - math.pi / 2.0)
    return Coordinate(lat=lat, lon=lon)


def from_wgs84(coordinate: Coordinate) -> Pair:
    """Convert WGS 84 degrees to Web Mercator metres (inverse of ``to_wgs84``)."""
    x = coordinate.lon / 180.0 * WEB_MERCATOR_EXTENT_M
    y = math.log(math.tan((90.0 + coordinate.lat) * math.pi / 360.0)) / math.pi * WEB_MERCATOR_EXTENT_M
    return (x, y)


def _geographic(x: float, y: float) -> Coordinate:
    return Coordinate(lat=y, lon=x)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def detect_crs(raw: Mapping[str, Any]) -> CRSKind:
    """Classify a raw geometry as geographic or projected by magnitude.

    Raises:
        GeometryError: If the geometry cannot be parsed.
    """
    _kind, parts = _extract_parts(raw)
    return _detect_from_parts(parts)


def normalize(raw: Mapping[str, Any] | None) -> Geometry:
    """Convert a raw service geometry into canonical WGS 84 geometry.

    Args:
        raw: ESRI JSON or GeoJSON geometry dict.

    Returns:
        A ``Point``, ``Polyline`` or ``Polygon`` in degrees.

    Raises:
        GeometryError: If the geometry is missing, malformed, or
            converts to out-of-range coordinates.
    """
    if not raw:
        msg = "Feature has no geometry"
        raise GeometryError(msg)

    kind, parts = _extract_parts(raw)
    transform = _select_transform(raw, parts)

    try:
        converted = tuple(tuple(transform(x, y) for x, y in part) for part in parts)
        if kind is GeometryKind.POINT:
            return Point(converted[0][0])
        if kind is GeometryKind.POLYLINE:
            return Polyline(converted)
        return Polygon(converted)
    except ModelValidationError as exc:
        msg = f"Geometry converts to invalid coordinates: {exc}"
        raise GeometryError(msg) from exc


# ---------------------------------------------------------------------------
# CRS selection
# ---------------------------------------------------------------------------


def _detect_from_parts(parts: Sequence[Sequence[Pair]]) -> CRSKind:
    for part in parts:
        for x, y in part:
            if abs(x) > _GEOGRAPHIC_MAX_X or abs(y) > _GEOGRAPHIC_MAX_Y:
                return CRSKind.PROJECTED
    return CRSKind.GEOGRAPHIC


def _declared_wkid(raw: Mapping[str, Any]) -> int | None:
    """Return the declared spatial reference, preferring ``latestWkid``."""
    spatial_ref = raw.get("spatialReference")
    if not isinstance(spatial_ref, Mapping):
        return None
    for key in ("latestWkid", "wkid"):
        value = spatial_ref.get(key)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def _select_transform(raw: Mapping[str, Any], parts: Sequence[Sequence[Pair]]) -> Transform:
    wkid = _declared_wkid(raw)
    if wkid == WGS84_WKID:
        return _geographic
    if wkid in WEB_MERCATOR_WKIDS:
        return to_wgs84
    if wkid is not None:
        return _pyproj_transform(wkid)

    if _detect_from_parts(parts) is CRSKind.PROJECTED:
        return to_wgs84
    return _geographic


@functools.lru_cache(maxsize=32)
def _transformer_for(wkid: int) -> Transformer:
    """Return the (cached) pyproj transformer from *wkid* to WGS 84."""
    try:
        return Transformer.from_crs(f"EPSG:{wkid}", "EPSG:4326", always_xy=True)
    except CRSError as exc:
        msg = f"Unsupported spatial reference wkid={wkid}: {exc}"
        raise GeometryError(msg) from exc


def _pyproj_transform(wkid: int) -> Transform:
    """Build a transform from an arbitrary EPSG code to WGS 84."""
    transformer = _transformer_for(wkid)
    logger.debug("Reprojecting geometry | wkid=%d", wkid)

    def _transform(x: float, y: float) -> Coordinate:
        lon, lat = transformer.transform(x, y)
        return Coordinate(lat=lat, lon=lon)

    return _transform


# ---------------------------------------------------------------------------
# Raw geometry parsing
# ---------------------------------------------------------------------------


def _extract_parts(raw: Mapping[str, Any]) -> tuple[GeometryKind, list[list[Pair]]]:
    """Split a raw geometry into its kind and coordinate-pair parts."""
    if "rings" in raw:
        return GeometryKind.POLYGON, _polygon_parts(raw["rings"])
    if "paths" in raw:
        return GeometryKind.POLYLINE, _polyline_parts(raw["paths"])
    if "x" in raw and "y" in raw:
        return GeometryKind.POINT, [[_coerce_pair((raw["x"], raw["y"]), "point")]]
    if "type" in raw:
        return _geojson_parts(raw)
    msg = f"Unrecognised geometry keys: {sorted(raw)}"
    raise GeometryError(msg)


def _geojson_parts(raw: Mapping[str, Any]) -> tuple[GeometryKind, list[list[Pair]]]:
    geo_type = raw.get("type")
    coords = raw.get("coordinates")
    if geo_type == "Point":
        return GeometryKind.POINT, [[_coerce_pair(coords, "point")]]
    if geo_type == "LineString":
        return GeometryKind.POLYLINE, _polyline_parts([coords])
    if geo_type == "MultiLineString":
        return GeometryKind.POLYLINE, _polyline_parts(coords)
    if geo_type == "Polygon":
        return GeometryKind.POLYGON, _polygon_parts(coords)
    if geo_type == "MultiPolygon":
        if not isinstance(coords, list) or len(coords) != 1:
            msg = "Multi-part polygons are not supported"
            raise GeometryError(msg)
        return GeometryKind.POLYGON, _polygon_parts(coords[0])
    msg = f"Unsupported GeoJSON geometry type: {geo_type!r}"
    raise GeometryError(msg)


def _polyline_parts(paths: object) -> list[list[Pair]]:
    if not isinstance(paths, list | tuple) or not paths:
        msg = "Polyline has no paths"
        raise GeometryError(msg)
    parts = [_coerce_sequence(path, f"path {idx}") for idx, path in enumerate(paths)]
    parts = [part for part in parts if part]
    if not parts:
        msg = "Polyline paths contain no vertices"
        raise GeometryError(msg)
    return parts


def _polygon_parts(rings: object) -> list[list[Pair]]:
    if not isinstance(rings, list | tuple) or not rings:
        msg = "Polygon has no rings"
        raise GeometryError(msg)
    outer = _coerce_sequence(rings[0], "outer ring")
    if len(outer) < 3:
        msg = f"Outer ring needs at least 3 vertices, got {len(outer)}"
        raise GeometryError(msg)
    holes = [_coerce_sequence(ring, f"ring {idx}") for idx, ring in enumerate(rings[1:], start=1)]
    return [outer, *(hole for hole in holes if hole)]


def _coerce_sequence(raw_coords: object, context: str) -> list[Pair]:
    if not isinstance(raw_coords, list | tuple):
        msg = f"Malformed {context}: expected list, got {type(raw_coords).__name__}"
        raise GeometryError(msg)
    return [_coerce_pair(c, f"{context} vertex {idx}") for idx, c in enumerate(raw_coords)]


def _coerce_pair(c: object, context: str) -> Pair:
    """Convert one ``[x, y(, z)]`` element to floats, dropping altitude."""
    if not isinstance(c, list | tuple) or len(c) < 2:
        msg = f"Malformed coordinate in {context}: {c!r}"
        raise GeometryError(msg)
    try:
        x = float(c[0])
        y = float(c[1])
    except (TypeError, ValueError) as exc:
        msg = f"Malformed coordinate in {context}: cannot convert {c[0]!r}, {c[1]!r} to float"
        raise GeometryError(msg) from exc
    if not (math.isfinite(x) and math.isfinite(y)):
        msg = f"Non-finite coordinate in {context}: ({x}, {y})"
        raise GeometryError(msg)
    return (x, y)
