"""Proximity and containment entry points for a single source.

``query_proximity`` runs up to two paginated queries against the
source, both with the query point and ``intersects``:

1. containment: no buffer, returns features touching the point;
2. proximity: buffered by the radius converted to metres.

Both result lists are classified locally (the service buffer is only a
pre-filter) and merged so that containing features win over nearby
duplicates.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from geo_enrichment.core.config import EnrichmentConfig
from geo_enrichment.core.constants import METERS_PER_MILE
from geo_enrichment.models.feature import AnnotatedFeature, QuerySpec, ResultSet
from geo_enrichment.models.geometry import ModelValidationError
from geo_enrichment.query.classifier import classify_batch, merge_results
from geo_enrichment.query.paginator import PaginationResult, paginate_with_status
from geo_enrichment.sources.base import SourceRequest, SpatialRelation
from geo_enrichment.utils.fields import merge_aliases

if TYPE_CHECKING:
    from geo_enrichment.models.geometry import Coordinate
    from geo_enrichment.sources.base import SpatialSource

logger = logging.getLogger(__name__)


def miles_to_meters(miles: float) -> float:
    """Convert statute miles to metres (1 mi = 1609.34 m)."""
    return miles * METERS_PER_MILE


def build_query_spec(origin: Coordinate, radius_miles: float, source: SpatialSource) -> QuerySpec:
    """Validate *radius_miles* against the source cap and build a ``QuerySpec``.

    Raises:
        ModelValidationError: If the radius is not in ``(0, cap]``.
    """
    query_spec = QuerySpec(
        origin=origin,
        radius_miles=radius_miles,
        want_containing=source.config.supports_containing,
    )
    cap = source.config.max_radius_miles
    if radius_miles > cap:
        raise ModelValidationError(
            "QuerySpec",
            "radius_miles",
            radius_miles,
            f"must be <= {cap} for source {source.source_id!r}",
        )
    return query_spec


def query_proximity(
    origin: Coordinate,
    radius_miles: float,
    source: SpatialSource,
    *,
    config: EnrichmentConfig | None = None,
) -> ResultSet:
    """Return containing and nearby features of *source* around *origin*.

    Raises:
        ModelValidationError: If *radius_miles* is out of range.
        EnrichmentError: If the first page of either query fails.
    """
    config = config or EnrichmentConfig()
    query_spec = build_query_spec(origin, radius_miles, source)
    aliases = merge_aliases(source.config.field_aliases)
    start = time.monotonic()

    containing: list[AnnotatedFeature] = []
    truncated = False
    if query_spec.want_containing:
        result = _run(source, SourceRequest(geometry=origin), config)
        truncated |= result.truncated
        containing = classify_batch(origin, result.features, query_spec.radius_miles, aliases=aliases)

    nearby: list[AnnotatedFeature] = []
    if query_spec.want_nearby:
        request = SourceRequest(
            geometry=origin,
            spatial_rel=SpatialRelation.INTERSECTS,
            buffer_meters=miles_to_meters(query_spec.radius_miles),
        )
        result = _run(source, request, config)
        truncated |= result.truncated
        nearby = classify_batch(origin, result.features, query_spec.radius_miles, aliases=aliases)

    merged = merge_results(containing, nearby, truncated=truncated)
    logger.info(
        "Proximity query finished | source=%s | radius_mi=%s | containing=%d | nearby=%d | truncated=%s | elapsed_ms=%.0f",
        source.source_id,
        query_spec.radius_miles,
        len(merged.containing),
        len(merged.nearby),
        merged.truncated,
        (time.monotonic() - start) * 1000,
    )
    return merged


def query_containing(
    origin: Coordinate,
    source: SpatialSource,
    *,
    config: EnrichmentConfig | None = None,
) -> list[AnnotatedFeature]:
    """Return the features of *source* that contain *origin*, deduplicated."""
    config = config or EnrichmentConfig()
    aliases = merge_aliases(source.config.field_aliases)
    result = _run(source, SourceRequest(geometry=origin), config)
    candidates = [f for f in classify_batch(origin, result.features, aliases=aliases) if f.is_containing]
    return list(merge_results(candidates, ()).containing)


def _run(source: SpatialSource, request: SourceRequest, config: EnrichmentConfig) -> PaginationResult:
    page_size = source.config.page_size or config.page_size
    return paginate_with_status(source, request, page_size=page_size, max_offset=config.max_offset)
