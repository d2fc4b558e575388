"""Enricher abstract base class.

An enricher turns one location into a flat ``dict`` of keyed values
using a single upstream API (weather, elevation, census geography).
Unlike dataset sources there is no pagination or classification; the
orchestrator runs every enricher in the always-on set for every
location.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING, Any

import httpx

from geo_enrichment.core.exceptions import EnricherError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from geo_enrichment.core.fetcher import ResilientFetcher
    from geo_enrichment.models.geometry import Coordinate


class Enricher(abc.ABC):
    """Base class for always-on location enrichers.

    Subclasses set ``name`` and implement ``enrich``.
    """

    name: str = ""

    def __init__(self, fetcher: ResilientFetcher) -> None:
        self._fetcher = fetcher

    @abc.abstractmethod
    def enrich(self, origin: Coordinate) -> dict[str, Any]:
        """Return keyed values for *origin*.

        Raises:
            EnricherError: If the upstream answer is unusable.
            NetworkError: If the upstream cannot be reached.
            ParseError: If the upstream body is not JSON.
        """

    def _get(self, url: str, params: Mapping[str, Any]) -> Any:
        """Fetch ``url?params`` as JSON through the shared fetcher."""
        target = str(httpx.URL(url, params={k: str(v) for k, v in params.items()}))
        return self._fetcher.fetch_json(target)

    def _fail(self, message: str) -> EnricherError:
        return EnricherError(self.name, message)
