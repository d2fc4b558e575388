"""Classify raw features against a query point and merge result sets.

Classification dispatches on the normalised geometry kind:

- ``Point``    → haversine distance;
- ``Polyline`` → minimum distance to any segment;
- ``Polygon``  → containment test, then boundary distance (0 inside).

A feature is kept for the nearby list iff its distance is within the
radius or it contains the query point.

Deduplication uses an identity key taken from the first non-null
identity attribute (``objectId``, ``OBJECTID``, ``FID``, ``GLOBALID``
...).  Features without one are never deduplicated within one
query, but the exact same record returned by both the containment and
proximity queries is kept once.  When the same identity appears
more than once the first containing occurrence wins, otherwise the first
occurrence in fetch order.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from geo_enrichment.core.exceptions import GeometryError
from geo_enrichment.geometry.distance import (
    distance_to_polygon_boundary,
    haversine,
    point_in_polygon,
    point_to_polyline,
)
from geo_enrichment.geometry.normalizer import normalize
from geo_enrichment.models.feature import AnnotatedFeature, ResultSet
from geo_enrichment.models.geometry import GeometryKind
from geo_enrichment.utils.fields import DEFAULT_FIELD_ALIASES, build_attribute_bag, resolve_field

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from geo_enrichment.models.feature import RawFeature
    from geo_enrichment.models.geometry import Coordinate, Geometry

logger = logging.getLogger(__name__)


def derive_identity(
    attributes: Mapping[str, object],
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> str | None:
    """Return the stringified identity key, or ``None`` if there is none."""
    value = resolve_field(attributes, "identity", aliases if aliases is not None else DEFAULT_FIELD_ALIASES)
    return None if value is None else str(value)


def measure(origin: Coordinate, geometry: Geometry) -> tuple[float, bool]:
    """Return ``(distance_miles, is_containing)`` for *geometry*."""
    if geometry.kind is GeometryKind.POINT:
        return haversine(origin, geometry.coordinate), False  # type: ignore[union-attr]
    if geometry.kind is GeometryKind.POLYLINE:
        return point_to_polyline(origin, geometry.paths), False  # type: ignore[union-attr]

    rings = geometry.rings  # type: ignore[union-attr]
    if point_in_polygon(origin, rings):
        return 0.0, True
    return distance_to_polygon_boundary(origin, rings), False


def classify(
    origin: Coordinate,
    feature: RawFeature,
    radius_miles: float | None = None,
    *,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> AnnotatedFeature | None:
    """Annotate *feature* with its distance and containment status.

    Args:
        origin: Query point.
        feature: Raw feature from a source page.
        radius_miles: Inclusion radius.  ``None`` keeps every feature.
        aliases: Field-alias table for identity and canonical attributes.

    Returns:
        The annotated feature, or ``None`` when it lies outside
        *radius_miles* and does not contain *origin*.

    Raises:
        GeometryError: If the feature geometry is missing or malformed.
    """
    geometry = normalize(feature.geometry)
    distance, containing = measure(origin, geometry)

    if radius_miles is not None and not containing and distance > radius_miles:
        return None

    return AnnotatedFeature(
        identity=derive_identity(feature.attributes, aliases),
        geometry=geometry,
        attributes=build_attribute_bag(feature.attributes, aliases),
        distance_miles=distance,
        is_containing=containing,
        source_id=feature.source_id,
    )


def classify_batch(
    origin: Coordinate,
    features: Iterable[RawFeature],
    radius_miles: float | None = None,
    *,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> list[AnnotatedFeature]:
    """Classify every feature, dropping those with unusable geometry."""
    annotated: list[AnnotatedFeature] = []
    dropped = 0
    for feature in features:
        try:
            result = classify(origin, feature, radius_miles, aliases=aliases)
        except GeometryError as exc:
            dropped += 1
            logger.warning(
                "Dropping feature with invalid geometry | source=%s | id=%s | error=%s",
                feature.source_id,
                derive_identity(feature.attributes, aliases),
                exc,
            )
            continue
        if result is not None:
            annotated.append(result)

    if dropped:
        logger.info("Classification finished | kept=%d | dropped=%d", len(annotated), dropped)
    return annotated


def merge_results(
    containing: Iterable[AnnotatedFeature],
    nearby: Iterable[AnnotatedFeature],
    *,
    truncated: bool = False,
) -> ResultSet:
    """Merge containing and nearby candidates into a deduplicated ``ResultSet``.

    Any candidate that contains the query point goes to ``containing``
    regardless of which query returned it.  Containing candidates are
    admitted first, so a containing occurrence always wins over a
    nearby one with the same identity.  ``nearby`` is sorted ascending
    by distance; the sort is stable, so ties keep fetch order.

    Candidates without an identity are never collapsed within one
    input list.  One that the other list already produced with the same
    geometry and attributes is the same record returned by both
    queries, and is kept once.
    """
    tagged = [(f, 0) for f in containing] + [(f, 1) for f in nearby]
    ordered = [t for t in tagged if t[0].is_containing] + [t for t in tagged if not t[0].is_containing]

    seen: set[str] = set()
    anonymous: dict[tuple[Any, ...], set[int]] = {}
    kept_containing: list[AnnotatedFeature] = []
    kept_nearby: list[AnnotatedFeature] = []
    for feature, origin_list in ordered:
        if feature.identity is not None:
            if feature.identity in seen:
                continue
            seen.add(feature.identity)
        else:
            lists = anonymous.setdefault(_fingerprint(feature), set())
            if lists and origin_list not in lists:
                continue
            lists.add(origin_list)
        (kept_containing if feature.is_containing else kept_nearby).append(feature)

    kept_nearby.sort(key=lambda f: f.distance_miles)
    return ResultSet(containing=tuple(kept_containing), nearby=tuple(kept_nearby), truncated=truncated)


def _fingerprint(feature: AnnotatedFeature) -> tuple[Any, ...]:
    """Exact-match key for a feature that carries no identity attribute."""
    extras = tuple(sorted((key, repr(value)) for key, value in feature.attributes.extra.items()))
    return feature.source_id, feature.geometry, extras
