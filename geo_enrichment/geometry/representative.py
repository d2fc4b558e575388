"""Representative anchor points for presenting features on a map.

Callers that list a feature next to a marker need one lat/lon per
feature.  A polygon centroid can fall outside a concave polygon, so
shapely's ``representative_point`` is used instead: it is always
inside the geometry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from geo_enrichment.models.geometry import Coordinate, GeometryKind

if TYPE_CHECKING:
    from geo_enrichment.models.geometry import Geometry


def representative_point(geometry: Geometry) -> Coordinate:
    """Return a coordinate guaranteed to lie on *geometry*."""
    if geometry.kind is GeometryKind.POINT:
        return geometry.coordinate  # type: ignore[union-attr]

    from shapely.geometry import LineString, MultiLineString
    from shapely.geometry import Polygon as ShapelyPolygon

    if geometry.kind is GeometryKind.POLYLINE:
        lines = [[c.as_lon_lat() for c in path] for path in geometry.paths]  # type: ignore[union-attr]
        usable = [line for line in lines if len(line) >= 2]
        if not usable:
            return geometry.paths[0][0]  # type: ignore[union-attr]
        shape = LineString(usable[0]) if len(usable) == 1 else MultiLineString(usable)
    else:
        outer = [c.as_lon_lat() for c in geometry.outer]  # type: ignore[union-attr]
        holes = [[c.as_lon_lat() for c in ring] for ring in geometry.holes if len(ring) >= 3]  # type: ignore[union-attr]
        shape = ShapelyPolygon(outer, holes=holes or None)
        if not shape.is_valid:
            shape = shape.buffer(0)

    if shape.is_empty:
        return _first_vertex(geometry)
    point = shape.representative_point()
    return Coordinate(lat=point.y, lon=point.x)


def _first_vertex(geometry: Geometry) -> Coordinate:
    if geometry.kind is GeometryKind.POLYLINE:
        return geometry.paths[0][0]  # type: ignore[union-attr]
    return geometry.outer[0]  # type: ignore[union-attr]
