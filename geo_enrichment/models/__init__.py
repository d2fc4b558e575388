"""Data models and schemas.

Defines the data structures used throughout the engine:
- Coordinate / Point / Polyline / Polygon: canonical WGS 84 geometry
- RawFeature: a feature as returned by a spatial source
- QuerySpec: what the caller asked for at one location
- AnnotatedFeature / ResultSet: classified and merged results
- PerformanceMetrics: orchestrator timing snapshot
"""

from geo_enrichment.models.feature import (
    AnnotatedFeature,
    AttributeBag,
    QuerySpec,
    RawFeature,
    ResultSet,
)
from geo_enrichment.models.geometry import (
    Coordinate,
    Geometry,
    GeometryKind,
    ModelValidationError,
    Point,
    Polygon,
    Polyline,
)
from geo_enrichment.models.metrics import PerformanceMetrics

__all__ = [
    "AnnotatedFeature",
    "AttributeBag",
    "Coordinate",
    "Geometry",
    "GeometryKind",
    "ModelValidationError",
    "PerformanceMetrics",
    "Point",
    "Polygon",
    "Polyline",
    "QuerySpec",
    "RawFeature",
    "ResultSet",
]
