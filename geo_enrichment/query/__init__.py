"""Paginated source queries, classification and result merging.

- paginator: offset-based paging with a safety bound
- classifier: distance/containment annotation, identity dedup, sort
- engine: ``query_proximity`` / ``query_containing`` entry points
"""

from geo_enrichment.query.classifier import classify, classify_batch, derive_identity, merge_results
from geo_enrichment.query.engine import query_containing, query_proximity
from geo_enrichment.query.paginator import PaginationResult, paginate, paginate_with_status

__all__ = [
    "PaginationResult",
    "classify",
    "classify_batch",
    "derive_identity",
    "merge_results",
    "paginate",
    "paginate_with_status",
    "query_containing",
    "query_proximity",
]
