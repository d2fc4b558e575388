"""Enrichment orchestration (thread-pool fan-out / fan-in)."""

from geo_enrichment.orchestrators.enrichment import EnrichmentOrchestrator

__all__ = ["EnrichmentOrchestrator"]
