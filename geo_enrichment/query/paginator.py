"""Offset-based pagination over a ``SpatialSource``.

The loop requests pages of ``N`` records (the page size), advancing
the offset by the number of records each page actually returned, and
continues while the source signals more data, either explicitly
(``has_more``) or implicitly by returning a full page.  It stops on:

- a short (or empty) page with no explicit "more" flag;
- the next offset exceeding ``max_offset``, or more than
  ``max_offset // N + 1`` pages, which guards against a source that
  reports "more" forever.  This records a ``PaginationSafetyError``
  and keeps what was accumulated.

A failure on the first page propagates so the caller can report the
source as failed.  A failure on a later page aborts the remaining
pages and returns the partial result with the error attached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from geo_enrichment.core.constants import DEFAULT_MAX_OFFSET
from geo_enrichment.core.exceptions import EnrichmentError, PaginationSafetyError

if TYPE_CHECKING:
    from geo_enrichment.models.feature import RawFeature
    from geo_enrichment.sources.base import SourceRequest, SpatialSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaginationResult:
    """Accumulated features plus how pagination ended.

    Attributes:
        features: Every feature from every page, in fetch order.
        pages: Number of page requests that succeeded.
        truncated: ``True`` when pagination stopped before the source
            ran out of data (safety bound or mid-pagination failure).
        error: The error that cut pagination short, if any.
    """

    features: list[RawFeature] = field(default_factory=list)
    pages: int = 0
    truncated: bool = False
    error: EnrichmentError | None = None


def paginate_with_status(
    source: SpatialSource,
    request: SourceRequest,
    *,
    page_size: int | None = None,
    max_offset: int = DEFAULT_MAX_OFFSET,
) -> PaginationResult:
    """Drive *source* page by page starting at ``request.offset``.

    Args:
        source: The spatial source to query.
        request: First-page request; its offset is the start offset.
        page_size: Page size override; defaults to ``request.page_size``.
        max_offset: Largest offset that may ever be requested.

    Returns:
        A ``PaginationResult``.

    Raises:
        EnrichmentError: If the first page fails.
    """
    size = page_size or request.page_size
    offset = request.offset
    features: list[RawFeature] = []
    pages = 0
    max_pages = max_offset // size + 1
    first_request = request if request.page_size == size else replace(request, page_size=size)

    while True:
        page_request = first_request.at_offset(offset)
        try:
            page = source.query(page_request)
        except EnrichmentError as exc:
            if pages == 0:
                raise
            logger.warning(
                "Pagination aborted | source=%s | offset=%d | pages=%d | kept=%d | error=%s",
                source.source_id,
                offset,
                pages,
                len(features),
                exc,
            )
            return PaginationResult(features=features, pages=pages, truncated=True, error=exc)

        pages += 1
        features.extend(page.features)
        logger.debug(
            "Page fetched | source=%s | offset=%d | returned=%d | has_more=%s",
            source.source_id,
            offset,
            len(page.features),
            page.has_more,
        )

        if not page.features:
            break
        if not (page.has_more or len(page.features) == size):
            break

        # A service capped below ``size`` returns short pages with
        # ``has_more``; advance by what arrived so no records are skipped.
        next_offset = offset + len(page.features)
        if next_offset > max_offset or pages >= max_pages:
            error = PaginationSafetyError(max(next_offset, request.offset + pages * size), max_offset)
            logger.warning(
                "Pagination safety bound reached | source=%s | pages=%d | kept=%d | %s",
                source.source_id,
                pages,
                len(features),
                error,
            )
            return PaginationResult(features=features, pages=pages, truncated=True, error=error)
        offset = next_offset

    return PaginationResult(features=features, pages=pages)


def paginate(
    source: SpatialSource,
    request: SourceRequest,
    *,
    page_size: int | None = None,
    max_offset: int = DEFAULT_MAX_OFFSET,
) -> list[RawFeature]:
    """Return every feature *source* yields for *request* (see ``paginate_with_status``)."""
    return paginate_with_status(
        source,
        request,
        page_size=page_size,
        max_offset=max_offset,
    ).features
