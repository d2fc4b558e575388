"""Feature and result models for the enrichment engine.

- ``RawFeature``:       one feature as returned by a spatial source page.
- ``QuerySpec``:        what a caller asked for at one location.
- ``AttributeBag``:     canonical attribute whitelist plus open extras.
- ``AnnotatedFeature``: a feature classified against the query origin.
- ``ResultSet``:        merged containing / nearby lists for one source.

Distances are kept at full precision; rounding happens only in
``to_dict`` at the presentation boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from geo_enrichment.models.geometry import (
    Coordinate,
    ModelValidationError,
    check_min,
    check_non_empty,
)

if TYPE_CHECKING:
    from geo_enrichment.models.geometry import Geometry


@dataclass(frozen=True, slots=True)
class RawFeature:
    """A feature exactly as a source returned it.

    Attributes:
        attributes: Open attribute map from the service.
        geometry: Raw geometry payload (ESRI JSON or GeoJSON dict), or
            ``None`` when the service omitted it.
        source_id: Dataset identifier of the source that produced it.
    """

    attributes: dict[str, Any]
    geometry: dict[str, Any] | None
    source_id: str


@dataclass(frozen=True, slots=True)
class QuerySpec:
    """A single proximity request against one source.

    Attributes:
        origin: Query location.
        radius_miles: Search radius; must be > 0 and within the source cap.
        want_containing: Run the point-in-polygon (intersects) query.
        want_nearby: Run the buffered proximity query.
    """

    origin: Coordinate
    radius_miles: float
    want_containing: bool = True
    want_nearby: bool = True

    def __post_init__(self) -> None:
        if not self.radius_miles > 0:
            raise ModelValidationError("QuerySpec", "radius_miles", self.radius_miles, "must be > 0")


@dataclass(frozen=True, slots=True)
class AttributeBag:
    """Canonical attributes resolved through the field-alias table.

    Attributes:
        name: Display name of the feature, if any alias carried one.
        type: Feature category/type.
        status: Status or access value.
        extra: Every raw attribute, unmodified.
    """

    name: str | None = None
    type: str | None = None
    status: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a raw attribute by its service field name."""
        return self.extra.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "attributes": dict(self.extra),
        }


@dataclass(frozen=True, slots=True)
class AnnotatedFeature:
    """A feature with its distance and containment status.

    Invariant: ``distance_miles == 0`` whenever ``is_containing``.

    Attributes:
        identity: Identity key for deduplication, or ``None`` (always unique).
        geometry: Normalised geometry in WGS 84 degrees.
        attributes: Canonical attributes plus raw extras.
        distance_miles: Distance from the origin (0 when containing).
        is_containing: Whether the origin lies inside this polygon.
        source_id: Dataset identifier.
    """

    identity: str | None
    geometry: Geometry
    attributes: AttributeBag
    distance_miles: float
    is_containing: bool
    source_id: str

    def __post_init__(self) -> None:
        check_non_empty("AnnotatedFeature", "source_id", self.source_id)
        check_min("AnnotatedFeature", "distance_miles", self.distance_miles, 0.0)
        if self.is_containing and self.distance_miles != 0:
            raise ModelValidationError(
                "AnnotatedFeature",
                "distance_miles",
                self.distance_miles,
                "must be 0 for a containing feature",
            )

    def to_dict(self, *, precision: int = 2) -> dict[str, Any]:
        """Serialise for callers, rounding the distance to *precision* places."""
        from geo_enrichment.geometry.representative import representative_point

        anchor = representative_point(self.geometry)
        return {
            "id": self.identity,
            "source": self.source_id,
            "geometry_type": self.geometry.kind.value,
            "is_containing": self.is_containing,
            "distance_miles": round(self.distance_miles, precision),
            "lat": anchor.lat,
            "lon": anchor.lon,
            **self.attributes.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class ResultSet:
    """Merged results for one source at one location.

    Invariants (enforced by the deduplicator):
        - ``nearby`` is ascending by ``distance_miles``.
        - No two entries across both lists share a non-null identity.

    ``truncated`` is set when pagination stopped before the source ran
    out of data, so the lists may be incomplete.
    """

    containing: tuple[AnnotatedFeature, ...] = ()
    nearby: tuple[AnnotatedFeature, ...] = ()
    truncated: bool = False

    @property
    def count(self) -> int:
        """Total features across both lists."""
        return len(self.containing) + len(self.nearby)

    def __iter__(self):
        yield from self.containing
        yield from self.nearby

    def to_dict(self, *, precision: int = 2) -> dict[str, Any]:
        return {
            "containing": [f.to_dict(precision=precision) for f in self.containing],
            "nearby": [f.to_dict(precision=precision) for f in self.nearby],
            "count": self.count,
        }
