"""SpatialSource abstract base class.

Defines the contract every spatial feature service adapter implements.
The engine talks exclusively to this interface; it never knows which
concrete service (ArcGIS FeatureServer, MapServer, a test double) is
behind it.

One call returns one page:

    ``query(request)`` → ``SourcePage(features, has_more)``

where ``request`` carries the query point, the spatial relation, an
optional buffer distance in metres, and an explicit integer page
offset.  Pagination state lives in the caller's offset, never in a
server session, so any page can be re-requested.
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from geo_enrichment.core.constants import DEFAULT_RADIUS_CAP_MILES
from geo_enrichment.core.exceptions import EnrichmentError
from geo_enrichment.models.geometry import (
    GeometryKind,
    ModelValidationError,
    check_min,
    check_non_empty,
)

if TYPE_CHECKING:
    from geo_enrichment.models.feature import RawFeature
    from geo_enrichment.models.geometry import Coordinate


class SpatialRelation(enum.Enum):
    """Spatial predicate applied by the service."""

    INTERSECTS = "intersects"
    CONTAINS = "contains"
    WITHIN = "within"


# ---------------------------------------------------------------------------
# Dataset configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class DatasetConfig:
    """Immutable description of one enrichment dataset.

    Attributes:
        id: Enrichment type key (e.g. ``"poi_fema_flood_zones"``).
        url: Layer endpoint (``.../FeatureServer/0``); ``/query`` is appended.
        title: Human-readable name.
        source_kind: Adapter registry key (``"arcgis"``).
        geometry_kind: Expected feature geometry, informational.
        default_radius_miles: Radius used when the caller supplies none.
        max_radius_miles: Cap applied to any requested radius.
        page_size: Service ``maxRecordCount``; ``None`` uses the engine default.
        supports_containing: Whether a point-in-polygon query makes sense.
        where: Attribute filter sent with every query.
        field_aliases: Per-dataset canonical → alias overrides.
    """

    id: str
    url: str
    title: str = ""
    source_kind: str = "arcgis"
    geometry_kind: GeometryKind | None = None
    default_radius_miles: float = 1.0
    max_radius_miles: float = DEFAULT_RADIUS_CAP_MILES
    page_size: int | None = None
    supports_containing: bool = True
    where: str = "1=1"
    field_aliases: dict[str, tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        check_non_empty("DatasetConfig", "id", self.id)
        check_non_empty("DatasetConfig", "url", self.url)
        check_non_empty("DatasetConfig", "source_kind", self.source_kind)
        if not self.max_radius_miles > 0:
            raise ModelValidationError(
                "DatasetConfig", "max_radius_miles", self.max_radius_miles, "must be > 0"
            )
        if not 0 < self.default_radius_miles <= self.max_radius_miles:
            raise ModelValidationError(
                "DatasetConfig",
                "default_radius_miles",
                self.default_radius_miles,
                f"must be > 0 and <= max_radius_miles ({self.max_radius_miles})",
            )
        if self.page_size is not None:
            check_min("DatasetConfig", "page_size", self.page_size, 1)

    def clamp_radius(self, requested: float | None) -> float:
        """Return *requested* (or the default) capped at ``max_radius_miles``."""
        if requested is None or requested <= 0:
            return self.default_radius_miles
        return min(requested, self.max_radius_miles)


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceRequest:
    """One page request against a spatial source.

    Attributes:
        geometry: Query point (used for both containment and proximity).
        spatial_rel: Spatial predicate.
        buffer_meters: Proximity buffer; ``None`` for pure containment.
        offset: Zero-based record offset of the page.
        page_size: Records requested per page.
    """

    geometry: Coordinate
    spatial_rel: SpatialRelation = SpatialRelation.INTERSECTS
    buffer_meters: float | None = None
    offset: int = 0
    page_size: int = 1000

    def __post_init__(self) -> None:
        check_min("SourceRequest", "offset", self.offset, 0)
        check_min("SourceRequest", "page_size", self.page_size, 1)
        if self.buffer_meters is not None:
            check_min("SourceRequest", "buffer_meters", self.buffer_meters, 0.0)

    def at_offset(self, offset: int) -> SourceRequest:
        """Return a copy of this request for another page."""
        return SourceRequest(
            geometry=self.geometry,
            spatial_rel=self.spatial_rel,
            buffer_meters=self.buffer_meters,
            offset=offset,
            page_size=self.page_size,
        )


@dataclass(frozen=True, slots=True)
class SourcePage:
    """One page of source results.

    Attributes:
        features: Raw features on this page, in service order.
        has_more: Explicit "more data available" signal from the service.
    """

    features: list[RawFeature] = field(default_factory=list)
    has_more: bool = False


# ---------------------------------------------------------------------------
# Abstract source
# ---------------------------------------------------------------------------


class SpatialSource(abc.ABC):
    """Abstract base class for spatial feature service adapters.

    Example usage::

        source = get_source("poi_fema_flood_zones", fetcher)
        page = source.query(SourceRequest(geometry=origin, buffer_meters=1609.34))
    """

    def __init__(self, config: DatasetConfig) -> None:
        self._config = config

    @property
    def source_id(self) -> str:
        """Dataset identifier from configuration."""
        return self._config.id

    @property
    def config(self) -> DatasetConfig:
        """Dataset configuration (read-only)."""
        return self._config

    @abc.abstractmethod
    def query(self, request: SourceRequest) -> SourcePage:
        """Fetch one page of features matching *request*.

        Raises:
            SourceError: If the service reports an error.
            NetworkError: If the service cannot be reached.
            ParseError: If the service body is not JSON.
        """


# ---------------------------------------------------------------------------
# Source exceptions
# ---------------------------------------------------------------------------


class SourceError(EnrichmentError):
    """A spatial source answered with an error or an unusable payload.

    Attributes:
        source_id: Dataset that raised the error.
    """

    default_stage = "source"
    default_code = "SOURCE_QUERY_FAILED"

    def __init__(self, source_id: str, message: str, *, retryable: bool = False) -> None:
        self.source_id = source_id
        super().__init__(message, retryable=retryable)

    def __str__(self) -> str:
        return f"[{self.source_id}] {self.message}"


class UnknownSourceError(SourceError):
    """No dataset or adapter is registered under the requested name."""

    default_code = "SOURCE_UNKNOWN"
