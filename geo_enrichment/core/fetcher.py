"""Resilient HTTP JSON fetching with ordered endpoint fallback.

A request is attempted against the direct URL first and then against
each configured proxy strategy, in order, with a fixed delay between
attempts.  A response is accepted only if its body is valid JSON;
proxies sometimes answer ``200 OK`` with an HTML error page, so a body
starting with an HTML document marker is rejected like any other
failure.

Strategies:
    - ``direct``: the URL itself.
    - ``prefix``: ``base + url`` (e.g. ``https://cors.isomorphic-git.org/``).
    - ``wrap``:   ``base + quote(url)`` (e.g. ``https://api.allorigins.win/raw?url=``).

Nothing is cached; every call walks the strategy list from the start.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from geo_enrichment.core.exceptions import NetworkError, ParseError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from geo_enrichment.core.config import EnrichmentConfig

logger = logging.getLogger(__name__)

STRATEGY_DIRECT = "direct"
STRATEGY_PREFIX = "prefix"
STRATEGY_WRAP = "wrap"

_PROXY_KINDS = frozenset({STRATEGY_PREFIX, STRATEGY_WRAP})

# Body prefixes (lower-cased, stripped) that mark an HTML error page.
_HTML_MARKERS = ("<html", "<!doctype")

# Characters of an offending body kept for diagnostics.
_SNIPPET_LENGTH = 100


@dataclass(frozen=True, slots=True)
class FetchStrategy:
    """One way of reaching a URL: directly or through a proxy.

    Attributes:
        kind: ``"direct"``, ``"prefix"`` or ``"wrap"``.
        base: Proxy base URL (empty for ``direct``).
    """

    kind: str
    base: str = ""

    def __post_init__(self) -> None:
        if self.kind == STRATEGY_DIRECT:
            return
        if self.kind not in _PROXY_KINDS:
            msg = f"Unknown fetch strategy kind {self.kind!r}"
            raise ValueError(msg)
        if not self.base:
            msg = f"Proxy strategy {self.kind!r} requires a base URL"
            raise ValueError(msg)

    def build_url(self, url: str) -> str:
        """Return the URL to request for *url* under this strategy."""
        if self.kind == STRATEGY_PREFIX:
            return self.base + url
        if self.kind == STRATEGY_WRAP:
            return self.base + quote(url, safe="")
        return url


DIRECT = FetchStrategy(kind=STRATEGY_DIRECT)


def parse_proxy_specs(text: str) -> tuple[FetchStrategy, ...]:
    """Parse a comma-separated ``kind:base`` list into proxy strategies.

    Example::

        parse_proxy_specs("prefix:https://p1/,wrap:https://p2/raw?url=")

    Raises:
        ValueError: If an entry has no ``kind:`` prefix or an unknown kind.
    """
    strategies: list[FetchStrategy] = []
    for entry in text.split(","):
        entry = entry.strip()
        if not entry:
            continue
        kind, sep, base = entry.partition(":")
        if not sep:
            msg = f"Proxy entry {entry!r} must look like 'prefix:<url>' or 'wrap:<url>'"
            raise ValueError(msg)
        kind = kind.strip().lower()
        if kind not in _PROXY_KINDS:
            msg = f"Proxy entry {entry!r} has unknown kind {kind!r}"
            raise ValueError(msg)
        strategies.append(FetchStrategy(kind=kind, base=base.strip()))
    return tuple(strategies)


class ResilientFetcher:
    """Fetch JSON from a URL, falling back through proxy strategies.

    The fetcher owns an ``httpx.Client`` unless one is injected, and is
    safe to share across worker threads.

    Example usage::

        with ResilientFetcher.from_config(EnrichmentConfig.from_env()) as fetcher:
            body = fetcher.fetch_json("https://example.org/query?f=json")
    """

    def __init__(
        self,
        *,
        proxies: Iterable[FetchStrategy] = (),
        use_proxies: bool = False,
        retry_delay_s: float = 0.2,
        timeout_s: float = 15.0,
        client: httpx.Client | None = None,
    ) -> None:
        self._proxies = tuple(proxies)
        self._use_proxies = use_proxies
        self._retry_delay_s = retry_delay_s
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=timeout_s,
            follow_redirects=True,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_config(
        cls,
        config: EnrichmentConfig,
        *,
        client: httpx.Client | None = None,
    ) -> ResilientFetcher:
        """Build a fetcher from an ``EnrichmentConfig``."""
        return cls(
            proxies=config.proxies,
            use_proxies=config.use_proxies,
            retry_delay_s=config.retry_delay_s,
            timeout_s=config.fetch_timeout_s,
            client=client,
        )

    @property
    def strategies(self) -> list[FetchStrategy]:
        """Ordered strategies tried for every request."""
        if self._use_proxies:
            return [DIRECT, *self._proxies]
        return [DIRECT]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def fetch_json(self, url: str) -> Any:
        """Return the parsed JSON body for *url*.

        Raises:
            NetworkError: If the last attempt failed at the HTTP layer.
            ParseError: If the last attempt returned an unparseable body.
        """
        strategies = self.strategies
        last_error: NetworkError | ParseError | None = None

        for attempt, strategy in enumerate(strategies, start=1):
            target = strategy.build_url(url)
            try:
                body = self._attempt(target)
            except (NetworkError, ParseError) as exc:
                last_error = exc
                logger.warning(
                    "fetch attempt failed | attempt=%d/%d | strategy=%s | url=%s | error=%s",
                    attempt,
                    len(strategies),
                    strategy.kind,
                    target,
                    exc,
                )
                if attempt < len(strategies) and self._retry_delay_s > 0:
                    time.sleep(self._retry_delay_s)
                continue

            logger.debug(
                "fetch succeeded | attempt=%d/%d | strategy=%s | url=%s",
                attempt,
                len(strategies),
                strategy.kind,
                target,
            )
            return body

        logger.error("fetch exhausted | attempts=%d | url=%s", len(strategies), url)
        if last_error is None:
            raise NetworkError("No fetch strategies configured", url=url)
        raise last_error

    def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> ResilientFetcher:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _attempt(self, url: str) -> Any:
        """Perform one HTTP request and parse the body as JSON."""
        try:
            response = self._client.get(url)
        except httpx.TimeoutException as exc:
            msg = f"Request timed out: {exc}"
            raise NetworkError(msg, url=url) from exc
        except httpx.HTTPError as exc:
            msg = f"Request failed: {exc}"
            raise NetworkError(msg, url=url) from exc

        if not response.is_success:
            msg = f"HTTP {response.status_code}"
            raise NetworkError(msg, url=url, status_code=response.status_code)

        return parse_json_body(response.text, url=url)


def parse_json_body(text: str, *, url: str = "") -> Any:
    """Parse a response body, rejecting HTML error pages.

    Raises:
        ParseError: If the body is HTML or not valid JSON.
    """
    stripped = text.strip()
    snippet = stripped[:_SNIPPET_LENGTH]
    if stripped.lower().startswith(_HTML_MARKERS):
        msg = "Received HTML instead of JSON"
        raise ParseError(msg, url=url, snippet=snippet)
    try:
        return json.loads(stripped)
    except ValueError as exc:
        msg = f"Invalid JSON response: {exc}"
        raise ParseError(msg, url=url, snippet=snippet) from exc
