"""Source factory: builds a ``SpatialSource`` for a dataset id.

Two lookups happen per call:

1. ``dataset_id`` → ``DatasetConfig`` in the catalog (packaged YAML by
   default, or one injected by the caller).
2. ``DatasetConfig.source_kind`` → adapter class in the registry.

Adapters are registered as lazy loader thunks so an adapter module is
only imported when a dataset of that kind is requested.

Usage::

    from geo_enrichment.sources.factory import get_source

    source = get_source("poi_wetlands", fetcher)
    page = source.query(request)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from geo_enrichment.sources.base import SpatialSource, UnknownSourceError
from geo_enrichment.sources.catalog import load_catalog

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from geo_enrichment.core.fetcher import ResilientFetcher
    from geo_enrichment.sources.base import DatasetConfig

logger = logging.getLogger(__name__)

ARCGIS = "arcgis"

# Adapter loaders receive (config, fetcher) through the returned class.
_ADAPTER_REGISTRY: dict[str, Callable[[], type[SpatialSource]]] = {}

_default_catalog: dict[str, DatasetConfig] | None = None


def _register_builtin_adapters() -> None:
    def _arcgis() -> type[SpatialSource]:
        from geo_enrichment.sources.arcgis import ArcGISFeatureSource

        return ArcGISFeatureSource

    _ADAPTER_REGISTRY[ARCGIS] = _arcgis


def _ensure_registry() -> None:
    """Initialise the adapter registry once (idempotent)."""
    if not _ADAPTER_REGISTRY:
        _register_builtin_adapters()


def default_catalog() -> dict[str, DatasetConfig]:
    """Return the packaged catalog, loading it on first use."""
    global _default_catalog
    if _default_catalog is None:
        _default_catalog = load_catalog()
    return _default_catalog


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def register_source(kind: str, loader: Callable[[], type[SpatialSource]]) -> None:
    """Register an adapter class for a ``source_kind``.

    Args:
        kind: Registry key matched against ``DatasetConfig.source_kind``.
        loader: Zero-argument callable returning the adapter class.

    Raises:
        ValueError: If *kind* is empty.
    """
    if not kind:
        msg = "Source kind must be non-empty"
        raise ValueError(msg)
    _ensure_registry()
    _ADAPTER_REGISTRY[kind] = loader
    logger.debug("Registered source adapter: %s", kind)


def get_source(
    dataset_id: str,
    fetcher: ResilientFetcher,
    *,
    catalog: Mapping[str, DatasetConfig] | None = None,
) -> SpatialSource:
    """Create the source adapter for *dataset_id*.

    Raises:
        UnknownSourceError: If the dataset is not in the catalog or its
            ``source_kind`` has no registered adapter.
    """
    _ensure_registry()
    datasets = catalog if catalog is not None else default_catalog()

    config = datasets.get(dataset_id)
    if config is None:
        msg = f"Unknown dataset {dataset_id!r}"
        raise UnknownSourceError(dataset_id, msg)

    loader = _ADAPTER_REGISTRY.get(config.source_kind)
    if loader is None:
        available = ", ".join(sorted(_ADAPTER_REGISTRY))
        msg = f"No adapter for source kind {config.source_kind!r}. Available: {available}"
        raise UnknownSourceError(dataset_id, msg)

    adapter_cls = loader()
    logger.debug("Creating source | dataset=%s | kind=%s", dataset_id, config.source_kind)
    return adapter_cls(config, fetcher)  # type: ignore[call-arg]


def list_sources(catalog: Mapping[str, DatasetConfig] | None = None) -> list[str]:
    """Return the dataset ids available in *catalog* (default: packaged)."""
    datasets = catalog if catalog is not None else default_catalog()
    return sorted(datasets)


def list_source_kinds() -> list[str]:
    """Return the registered adapter kinds."""
    _ensure_registry()
    return sorted(_ADAPTER_REGISTRY)
