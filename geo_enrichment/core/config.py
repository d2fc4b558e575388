"""Engine configuration loaded from environment variables.

All configuration values have sensible defaults for interactive,
single-location enrichment. The resulting ``EnrichmentConfig`` is an
immutable value injected into the fetcher, paginator and orchestrator
at call time, never read from module globals.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any numeric
    value is out of its valid range or the proxy list is malformed.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from geo_enrichment.core.constants import (
    DEFAULT_MAX_OFFSET,
    DEFAULT_PAGE_SIZE,
    DEFAULT_RADIUS_CAP_MILES,
)
from geo_enrichment.core.exceptions import EnrichmentError
from geo_enrichment.core.fetcher import FetchStrategy, parse_proxy_specs

DEFAULT_PROXIES: tuple[FetchStrategy, ...] = (
    FetchStrategy(kind="prefix", base="https://cors.isomorphic-git.org/"),
    FetchStrategy(kind="wrap", base="https://api.allorigins.win/raw?url="),
)

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


class ConfigValidationError(EnrichmentError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class EnrichmentConfig:
    """Immutable engine configuration.

    Attributes:
        fetch_timeout_s: Per-request HTTP timeout in seconds.
        retry_delay_s: Fixed delay between fetch attempts in seconds.
        use_proxies: Whether proxy strategies follow the direct URL.
        proxies: Ordered proxy strategies tried after the direct URL.
        page_size: Features requested per page from a feature service.
        max_offset: Pagination safety bound (largest offset ever requested).
        max_workers: Thread-pool size for concurrent source queries.
        batch_delay_s: Minimum delay between locations in batch mode.
        default_radius_cap_miles: Radius cap for datasets without their own.
    """

    fetch_timeout_s: float = 15.0
    retry_delay_s: float = 0.2
    use_proxies: bool = False
    proxies: tuple[FetchStrategy, ...] = DEFAULT_PROXIES
    page_size: int = DEFAULT_PAGE_SIZE
    max_offset: int = DEFAULT_MAX_OFFSET
    max_workers: int = 16
    batch_delay_s: float = 1.1
    default_radius_cap_miles: float = DEFAULT_RADIUS_CAP_MILES

    @classmethod
    def from_env(cls) -> EnrichmentConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a value is out of range or the
                proxy list cannot be parsed.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``ENRICH_PAGE_SIZE=abc``).
        """
        proxies_raw = os.getenv("ENRICH_PROXIES", "")
        try:
            proxies = parse_proxy_specs(proxies_raw) if proxies_raw else DEFAULT_PROXIES
        except ValueError as exc:
            raise ConfigValidationError("ENRICH_PROXIES", proxies_raw, str(exc)) from exc

        config = cls(
            fetch_timeout_s=float(os.getenv("ENRICH_FETCH_TIMEOUT_S", "15")),
            retry_delay_s=float(os.getenv("ENRICH_RETRY_DELAY_S", "0.2")),
            use_proxies=os.getenv("ENRICH_USE_PROXIES", "false").strip().lower() in _TRUE_VALUES,
            proxies=proxies,
            page_size=int(os.getenv("ENRICH_PAGE_SIZE", str(DEFAULT_PAGE_SIZE))),
            max_offset=int(os.getenv("ENRICH_MAX_OFFSET", str(DEFAULT_MAX_OFFSET))),
            max_workers=int(os.getenv("ENRICH_MAX_WORKERS", "16")),
            batch_delay_s=float(os.getenv("ENRICH_BATCH_DELAY_S", "1.1")),
            default_radius_cap_miles=float(
                os.getenv("ENRICH_DEFAULT_RADIUS_CAP_MILES", str(DEFAULT_RADIUS_CAP_MILES))
            ),
        )
        _validate(config)
        return config


def _validate(config: EnrichmentConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if config.fetch_timeout_s <= 0:
        raise ConfigValidationError(
            "ENRICH_FETCH_TIMEOUT_S",
            config.fetch_timeout_s,
            "must be > 0 (seconds)",
        )

    if config.retry_delay_s < 0:
        raise ConfigValidationError(
            "ENRICH_RETRY_DELAY_S",
            config.retry_delay_s,
            "must be >= 0 (seconds)",
        )

    if config.page_size <= 0:
        raise ConfigValidationError(
            "ENRICH_PAGE_SIZE",
            config.page_size,
            "must be > 0 (features)",
        )

    if config.max_offset < config.page_size:
        raise ConfigValidationError(
            "ENRICH_MAX_OFFSET",
            config.max_offset,
            f"must be >= ENRICH_PAGE_SIZE ({config.page_size})",
        )

    if config.max_workers <= 0:
        raise ConfigValidationError(
            "ENRICH_MAX_WORKERS",
            config.max_workers,
            "must be > 0 (threads)",
        )

    if config.batch_delay_s < 0:
        raise ConfigValidationError(
            "ENRICH_BATCH_DELAY_S",
            config.batch_delay_s,
            "must be >= 0 (seconds)",
        )

    if config.default_radius_cap_miles <= 0:
        raise ConfigValidationError(
            "ENRICH_DEFAULT_RADIUS_CAP_MILES",
            config.default_radius_cap_miles,
            "must be > 0 (miles)",
        )
