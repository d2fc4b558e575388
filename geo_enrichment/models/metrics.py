"""Pydantic snapshot of orchestrator performance counters.

The orchestrator accumulates timing for every ``enrich`` call.  Callers
receive an immutable, JSON-serialisable snapshot of those counters.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PerformanceMetrics(BaseModel):
    """Cumulative enrichment timing.

    Attributes:
        total_queries: Number of completed ``enrich`` calls.
        total_time_ms: Wall-clock time spent across those calls.
        average_time_ms: ``total_time_ms / total_queries`` (0 before any call).
        parallel_queries: Total tasks launched across all calls.
    """

    model_config = ConfigDict(frozen=True)

    total_queries: int = Field(default=0, ge=0)
    total_time_ms: float = Field(default=0.0, ge=0)
    average_time_ms: float = Field(default=0.0, ge=0)
    parallel_queries: int = Field(default=0, ge=0)
