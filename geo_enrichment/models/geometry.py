"""Canonical geometry models.

Every geometry the distance engine sees is expressed in WGS 84
degrees as ``Coordinate(lat, lon)`` values.  Raw service geometries
(ESRI JSON, GeoJSON, projected coordinates) are converted into these
types by ``geo_enrichment.geometry.normalizer``.

- ``Coordinate``: latitude/longitude pair with range invariants.
- ``Point``:      a single coordinate.
- ``Polyline``:   one or more paths, each a sequence of coordinates.
- ``Polygon``:    rings; ``rings[0]`` is the outer boundary, the rest are holes.

Design notes:
- All models are frozen dataclasses.
- Sequences are tuples so geometries are hashable and never mutated
  after normalisation.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Union

from geo_enrichment.core.exceptions import EnrichmentError

#: Minimum vertices for a ring to enclose an area.
MIN_RING_VERTICES = 3

# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ModelValidationError(ValueError, EnrichmentError):
    """Raised when a domain model is constructed with invalid field values.

    Attributes:
        model: Name of the model class that failed validation.
        field_name: The field that violated the invariant.
        value: The invalid value.
    """

    default_stage = "model_validation"
    default_code = "MODEL_VALIDATION_FAILED"

    def __init__(self, model: str, field_name: str, value: object, message: str) -> None:
        self.model = model
        self.field_name = field_name
        self.value = value
        formatted = f"{model}.{field_name}={value!r}: {message}"
        EnrichmentError.__init__(self, formatted)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class GeometryKind(enum.Enum):
    """Geometry variant tag used for distance dispatch."""

    POINT = "point"
    POLYLINE = "polyline"
    POLYGON = "polygon"


# ---------------------------------------------------------------------------
# Geometry models
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A WGS 84 position in decimal degrees.

    Attributes:
        lat: Latitude (-90 to 90).
        lon: Longitude (-180 to 180).
    """

    lat: float
    lon: float

    def __post_init__(self) -> None:
        check_range("Coordinate", "lat", self.lat, -90.0, 90.0)
        check_range("Coordinate", "lon", self.lon, -180.0, 180.0)

    def as_lon_lat(self) -> tuple[float, float]:
        """Return ``(lon, lat)``, the x/y order used by GIS libraries."""
        return (self.lon, self.lat)


@dataclass(frozen=True, slots=True)
class Point:
    """A single-position geometry."""

    coordinate: Coordinate

    @property
    def kind(self) -> GeometryKind:
        return GeometryKind.POINT


@dataclass(frozen=True, slots=True)
class Polyline:
    """A line geometry made of one or more paths.

    Attributes:
        paths: Each path is an ordered sequence of coordinates.
    """

    paths: tuple[tuple[Coordinate, ...], ...]

    def __post_init__(self) -> None:
        if not self.paths or not any(self.paths):
            raise ModelValidationError("Polyline", "paths", self.paths, "must contain a vertex")

    @property
    def kind(self) -> GeometryKind:
        return GeometryKind.POLYLINE


@dataclass(frozen=True, slots=True)
class Polygon:
    """An area geometry.

    Attributes:
        rings: ``rings[0]`` is the outer boundary; ``rings[1:]`` are holes.
            Rings may or may not repeat their first vertex at the end.
    """

    rings: tuple[tuple[Coordinate, ...], ...]

    def __post_init__(self) -> None:
        if not self.rings or len(self.rings[0]) < MIN_RING_VERTICES:
            raise ModelValidationError(
                "Polygon",
                "rings",
                len(self.rings[0]) if self.rings else 0,
                f"outer ring needs at least {MIN_RING_VERTICES} vertices",
            )

    @property
    def kind(self) -> GeometryKind:
        return GeometryKind.POLYGON

    @property
    def outer(self) -> tuple[Coordinate, ...]:
        """The outer boundary ring."""
        return self.rings[0]

    @property
    def holes(self) -> tuple[tuple[Coordinate, ...], ...]:
        """Interior rings."""
        return self.rings[1:]


Geometry = Union[Point, Polyline, Polygon]


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def check_range(model: str, field_name: str, value: float, lo: float, hi: float) -> None:
    """Raise `ModelValidationError` if *value* falls outside [lo, hi]."""
    if not lo <= value <= hi:
        raise ModelValidationError(model, field_name, value, f"must be between {lo} and {hi}")


def check_min(model: str, field_name: str, value: float | int, lo: float | int) -> None:
    """Raise `ModelValidationError` if *value* is below *lo*."""
    if value < lo:
        raise ModelValidationError(model, field_name, value, f"must be >= {lo}")


def check_non_empty(model: str, field_name: str, value: str) -> None:
    """Raise `ModelValidationError` if *value* is empty or blank."""
    if not value or not value.strip():
        raise ModelValidationError(model, field_name, value, "must not be empty")
