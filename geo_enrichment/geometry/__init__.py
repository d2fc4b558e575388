"""Geometry normalisation and distance computation.

- normalizer: CRS detection and conversion to WGS 84 degrees
- distance: haversine, segment/polyline/polygon distance, containment
- representative: on-geometry anchor points for presentation
"""

from geo_enrichment.geometry.distance import (
    distance_to_polygon_boundary,
    haversine,
    point_in_polygon,
    point_to_polyline,
    point_to_segment,
)
from geo_enrichment.geometry.normalizer import CRSKind, detect_crs, from_wgs84, normalize, to_wgs84

__all__ = [
    "CRSKind",
    "detect_crs",
    "distance_to_polygon_boundary",
    "from_wgs84",
    "haversine",
    "normalize",
    "point_in_polygon",
    "point_to_polyline",
    "point_to_segment",
    "to_wgs84",
]
