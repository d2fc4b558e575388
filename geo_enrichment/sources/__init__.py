"""Spatial feature source adapters.

- SpatialSource: abstract one-page-per-call query interface
- ArcGISFeatureSource: ArcGIS REST FeatureServer / MapServer layers
- catalog: packaged dataset definitions (YAML, validated with pydantic)
- factory: dataset id → configured source instance
"""

from geo_enrichment.sources.base import (
    DatasetConfig,
    SourceError,
    SourcePage,
    SourceRequest,
    SpatialRelation,
    SpatialSource,
    UnknownSourceError,
)
from geo_enrichment.sources.catalog import CatalogError, load_catalog, parse_catalog
from geo_enrichment.sources.factory import (
    ARCGIS,
    get_source,
    list_source_kinds,
    list_sources,
    register_source,
)

__all__ = [
    "ARCGIS",
    "CatalogError",
    "DatasetConfig",
    "SourceError",
    "SourcePage",
    "SourceRequest",
    "SpatialRelation",
    "SpatialSource",
    "UnknownSourceError",
    "get_source",
    "list_source_kinds",
    "list_sources",
    "load_catalog",
    "parse_catalog",
]
