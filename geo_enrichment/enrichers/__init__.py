"""Always-on location enrichers.

- WeatherEnricher: Open-Meteo current conditions
- NWSAlertsEnricher: National Weather Service active alerts nearby
- TerrainEnricher: Open-Meteo elevation grid, Horn slope/aspect
- CensusEnricher: US Census geocoder geographies plus ACS demographics
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from geo_enrichment.enrichers.base import Enricher
from geo_enrichment.enrichers.census import CensusEnricher
from geo_enrichment.enrichers.nws_alerts import NWSAlertsEnricher
from geo_enrichment.enrichers.terrain import TerrainEnricher
from geo_enrichment.enrichers.weather import WeatherEnricher

if TYPE_CHECKING:
    from geo_enrichment.core.fetcher import ResilientFetcher

ENRICHER_CLASSES: dict[str, type[Enricher]] = {
    WeatherEnricher.name: WeatherEnricher,
    NWSAlertsEnricher.name: NWSAlertsEnricher,
    TerrainEnricher.name: TerrainEnricher,
    CensusEnricher.name: CensusEnricher,
}


def build_enrichers(fetcher: ResilientFetcher) -> dict[str, Enricher]:
    """Instantiate every known enricher against *fetcher*."""
    return {name: cls(fetcher) for name, cls in ENRICHER_CLASSES.items()}


__all__ = [
    "ENRICHER_CLASSES",
    "CensusEnricher",
    "Enricher",
    "NWSAlertsEnricher",
    "TerrainEnricher",
    "WeatherEnricher",
    "build_enrichers",
]
