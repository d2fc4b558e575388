"""Concurrent multi-source enrichment for one or many locations.

Fan-out / fan-in over a thread pool:

1. One task per selected dataset plus one per always-on enricher
   (weather, NWS alerts, terrain, census), all submitted together.
2. ``wait(ALL_COMPLETED)``: every task settles, success or failure.
3. Each task returns a flat ``dict``; a failed task contributes a single
   ``<type>_error`` entry.  Sibling tasks are never affected and
   ``enrich`` never raises.

Retries live in ``ResilientFetcher`` per HTTP call; the orchestrator
never retries a whole enrichment type.

Batch mode (many locations) is strictly sequential with a fixed delay
between locations, for upstreams that rate-limit a single client.

The only state shared between calls and threads is the performance
counter, guarded by a lock.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Any

from geo_enrichment.core.config import EnrichmentConfig
from geo_enrichment.core.constants import ALWAYS_ON_ENRICHERS
from geo_enrichment.enrichers import build_enrichers
from geo_enrichment.models.metrics import PerformanceMetrics
from geo_enrichment.query.engine import query_proximity
from geo_enrichment.sources.catalog import load_catalog
from geo_enrichment.sources.factory import get_source

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping, Sequence

    from geo_enrichment.core.fetcher import ResilientFetcher
    from geo_enrichment.enrichers.base import Enricher
    from geo_enrichment.models.geometry import Coordinate
    from geo_enrichment.sources.base import DatasetConfig, SpatialSource

    SourceFactory = Callable[..., SpatialSource]
    ProgressCallback = Callable[[int, int, float], None]

logger = logging.getLogger("geo_enrichment.orchestrators.enrichment")


class EnrichmentOrchestrator:
    """Run dataset queries and always-on enrichers for a location.

    Example usage::

        with ResilientFetcher.from_config(config) as fetcher:
            orchestrator = EnrichmentOrchestrator(fetcher, config=config)
            result = orchestrator.enrich(
                Coordinate(lat=29.76, lon=-95.37),
                {"poi_fema_flood_zones": 1.0},
                ["poi_fema_flood_zones", "houston_neighborhoods"],
            )
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        *,
        config: EnrichmentConfig | None = None,
        catalog: Mapping[str, DatasetConfig] | None = None,
        enrichers: Mapping[str, Enricher] | None = None,
        source_factory: SourceFactory = get_source,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._fetcher = fetcher
        self._config = config or EnrichmentConfig()
        self._catalog = (
            dict(catalog)
            if catalog is not None
            else load_catalog(default_cap_miles=self._config.default_radius_cap_miles)
        )
        self._enrichers = dict(enrichers) if enrichers is not None else build_enrichers(fetcher)
        self._source_factory = source_factory
        self._sleep = sleep

        self._metrics_lock = threading.Lock()
        self._total_queries = 0
        self._total_time_ms = 0.0
        self._parallel_queries = 0

    # ------------------------------------------------------------------
    # Single location
    # ------------------------------------------------------------------

    def enrich(
        self,
        origin: Coordinate,
        radius_by_type: Mapping[str, float] | None = None,
        selected_types: Iterable[str] = (),
    ) -> dict[str, Any]:
        """Enrich *origin* with every selected dataset plus the always-on set.

        Args:
            origin: Location to enrich.
            radius_by_type: Requested radius in miles per dataset id;
                missing entries use the dataset default.  Radii are
                clamped to the dataset cap.
            selected_types: Dataset ids (or enricher names) to run.

        Returns:
            A flat map of keyed values.  Failed tasks appear as
            ``<type>_error`` entries.
        """
        radii = dict(radius_by_type or {})
        task_names = _task_names(selected_types)
        start = time.monotonic()

        logger.info(
            "enrich started | lat=%.5f | lon=%.5f | tasks=%d | selected=%s",
            origin.lat,
            origin.lon,
            len(task_names),
            ",".join(task_names),
        )

        output: dict[str, Any] = {}
        workers = max(1, min(self._config.max_workers, len(task_names)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="enrich") as pool:
            futures = {pool.submit(self._run_task, name, origin, radii): name for name in task_names}
            wait(futures, return_when=ALL_COMPLETED)

        for future in futures:
            output.update(future.result())

        elapsed_ms = (time.monotonic() - start) * 1000
        self._record(elapsed_ms, len(task_names))
        error_count = sum(1 for key in output if key.endswith("_error"))
        logger.info(
            "enrich completed | tasks=%d | errors=%d | elapsed_ms=%.0f",
            len(task_names),
            error_count,
            elapsed_ms,
        )
        return output

    def resolve_radius(self, dataset: DatasetConfig, requested: float | None) -> float:
        """Return the requested radius (or default) clamped to the dataset cap."""
        return dataset.clamp_radius(requested)

    # ------------------------------------------------------------------
    # Batch mode
    # ------------------------------------------------------------------

    def enrich_batch(
        self,
        origins: Sequence[Coordinate],
        radius_by_type: Mapping[str, float] | None = None,
        selected_types: Iterable[str] = (),
        *,
        on_progress: ProgressCallback | None = None,
    ) -> list[dict[str, Any]]:
        """Enrich many locations one after another.

        Locations run strictly sequentially with ``batch_delay_s``
        between them.  A location that fails outright yields
        ``{"error": message}`` in its slot.

        *on_progress* is called after each location with
        ``(completed, total, estimated_seconds_remaining)``; the estimate
        is the mean time per completed location so far, delays included.
        """
        selected = list(selected_types)
        total = len(origins)
        results: list[dict[str, Any]] = []
        start = time.monotonic()

        logger.info("enrich_batch started | locations=%d | delay_s=%.2f", total, self._config.batch_delay_s)
        for index, origin in enumerate(origins):
            if index > 0 and self._config.batch_delay_s > 0:
                self._sleep(self._config.batch_delay_s)
            try:
                results.append(self.enrich(origin, radius_by_type, selected))
            except Exception as exc:
                logger.exception("enrich_batch location failed | index=%d | error=%s", index, exc)
                results.append({"error": str(exc)})
            if on_progress is not None:
                done = index + 1
                remaining_s = (time.monotonic() - start) / done * (total - done)
                on_progress(done, total, remaining_s)

        logger.info("enrich_batch completed | locations=%d", total)
        return results

    # ------------------------------------------------------------------
    # Performance counters
    # ------------------------------------------------------------------

    def performance_metrics(self) -> PerformanceMetrics:
        """Return a snapshot of the cumulative timing counters."""
        with self._metrics_lock:
            average = self._total_time_ms / self._total_queries if self._total_queries else 0.0
            return PerformanceMetrics(
                total_queries=self._total_queries,
                total_time_ms=self._total_time_ms,
                average_time_ms=average,
                parallel_queries=self._parallel_queries,
            )

    def log_performance_summary(self) -> None:
        metrics = self.performance_metrics()
        logger.info(
            "performance summary | total_queries=%d | total_time_ms=%.0f | average_time_ms=%.0f | parallel_queries=%d",
            metrics.total_queries,
            metrics.total_time_ms,
            metrics.average_time_ms,
            metrics.parallel_queries,
        )

    def _record(self, elapsed_ms: float, tasks: int) -> None:
        with self._metrics_lock:
            self._total_queries += 1
            self._total_time_ms += elapsed_ms
            self._parallel_queries += tasks

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def _run_task(self, name: str, origin: Coordinate, radii: Mapping[str, float]) -> dict[str, Any]:
        """Run one task; any failure becomes ``{"<name>_error": message}``."""
        try:
            enricher = self._enrichers.get(name)
            if enricher is not None:
                return enricher.enrich(origin)
            return self._query_dataset(name, origin, radii.get(name))
        except Exception as exc:
            logger.warning("task failed | type=%s | error=%s", name, exc, exc_info=True)
            return {f"{name}_error": str(exc)}

    def _query_dataset(self, dataset_id: str, origin: Coordinate, requested: float | None) -> dict[str, Any]:
        source = self._source_factory(dataset_id, self._fetcher, catalog=self._catalog)
        radius = self.resolve_radius(source.config, requested)
        result = query_proximity(origin, radius, source, config=self._config)

        serialised = result.to_dict()
        output: dict[str, Any] = {
            f"{dataset_id}_containing": serialised["containing"],
            f"{dataset_id}_nearby": serialised["nearby"],
            f"{dataset_id}_count": result.count,
            f"{dataset_id}_proximity_distance": radius,
        }
        if result.truncated:
            output[f"{dataset_id}_truncated"] = True
        return output


def _task_names(selected_types: Iterable[str]) -> list[str]:
    """Always-on enrichers first, then selected types, without duplicates."""
    return list(dict.fromkeys([*ALWAYS_ON_ENRICHERS, *selected_types]))
