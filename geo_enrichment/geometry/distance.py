"""Geodesic distance and containment for points, polylines and polygons.

All inputs are canonical ``Coordinate`` values (WGS 84 degrees) and all
distances are statute miles on a sphere of radius 3958.8 mi.

Point-to-segment distances project the query point onto the segment
in planar (lon, lat) space and then measure the haversine distance to
the clamped projection.  This is accurate enough at municipal and
regional scale, which is all proximity enrichment needs.

No rounding is applied here; callers round at presentation time.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

from geo_enrichment.core.constants import EARTH_RADIUS_MILES
from geo_enrichment.core.exceptions import GeometryError
from geo_enrichment.models.geometry import Coordinate

if TYPE_CHECKING:
    from collections.abc import Sequence

# Squared planar segment length (degrees²) below which a segment is a point.
_DEGENERATE_SEGMENT_SQ = 1e-18


def haversine(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between *a* and *b* in miles."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlon = math.radians(b.lon - a.lon)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Floating error can push h a hair outside [0, 1].
    h = min(1.0, max(0.0, h))
    return EARTH_RADIUS_MILES * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def point_to_segment(p: Coordinate, s1: Coordinate, s2: Coordinate) -> float:
    """Distance in miles from *p* to the segment ``s1``–``s2``."""
    dx = s2.lon - s1.lon
    dy = s2.lat - s1.lat
    length_sq = dx * dx + dy * dy
    if length_sq < _DEGENERATE_SEGMENT_SQ:
        return min(haversine(p, s1), haversine(p, s2))

    t = ((p.lon - s1.lon) * dx + (p.lat - s1.lat) * dy) / length_sq
    t = max(0.0, min(1.0, t))
    closest = Coordinate(lat=s1.lat + t * dy, lon=s1.lon + t * dx)
    return haversine(p, closest)


def point_to_polyline(p: Coordinate, paths: Sequence[Sequence[Coordinate]]) -> float:
    """Minimum distance in miles from *p* to any segment of any path.

    A single-vertex path contributes the distance to that vertex.

    Raises:
        GeometryError: If no path has a vertex.
    """
    best = math.inf
    for path in paths:
        if len(path) == 1:
            best = min(best, haversine(p, path[0]))
            continue
        for s1, s2 in zip(path, path[1:]):
            best = min(best, point_to_segment(p, s1, s2))
    if best == math.inf:
        msg = "Polyline has no vertices"
        raise GeometryError(msg)
    return best


def point_in_ring(p: Coordinate, ring: Sequence[Coordinate]) -> bool:
    """Ray-casting test of *p* against a single ring (open or closed)."""
    inside = False
    x, y = p.lon, p.lat
    n = len(ring)
    j = n - 1
    for i in range(n):
        xi, yi = ring[i].lon, ring[i].lat
        xj, yj = ring[j].lon, ring[j].lat
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_polygon(p: Coordinate, rings: Sequence[Sequence[Coordinate]]) -> bool:
    """Whether *p* lies inside the outer ring and outside every hole."""
    if not rings or not point_in_ring(p, rings[0]):
        return False
    return not any(point_in_ring(p, hole) for hole in rings[1:])


def distance_to_polygon_boundary(p: Coordinate, rings: Sequence[Sequence[Coordinate]]) -> float:
    """Distance in miles from *p* to the polygon; 0 when *p* is inside.

    Raises:
        GeometryError: If the polygon has no edges.
    """
    if point_in_polygon(p, rings):
        return 0.0

    best = math.inf
    for ring in rings:
        if len(ring) < 2:
            continue
        # Close the ring explicitly; a repeated closing vertex yields a
        # zero-length edge, which the degenerate branch handles.
        for s1, s2 in zip(ring, [*ring[1:], ring[0]]):
            best = min(best, point_to_segment(p, s1, s2))
    if best == math.inf:
        msg = "Polygon has no edges"
        raise GeometryError(msg)
    return best
