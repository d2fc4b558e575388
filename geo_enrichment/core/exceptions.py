"""Unified enrichment exception taxonomy.

Provides a shared base exception hierarchy for the fetcher, geometry
layer, paginator, sources and enrichers. Every domain exception
inherits from ``EnrichmentError`` and carries structured context
fields so that the orchestrator can turn any failure into a keyed
``<source>_error`` entry without losing detail.

Taxonomy categories
-------------------
- ``ValidationError``  : input/geometry violations, never retryable.
- ``TransientError``   : temporary failures (network, bad proxy body), retryable.
- ``PermanentError``   : unrecoverable failures, not retryable.
- ``ContractError``    : upstream payload drift, never retryable.

Concrete errors
---------------
- ``NetworkError``          : every fetch attempt exhausted.
- ``ParseError``            : non-JSON or HTML-masquerading-as-JSON body.
- ``GeometryError``         : missing/malformed rings or paths (feature dropped).
- ``PaginationSafetyError`` : offset exceeded the safety bound.
- ``EnricherError``         : an always-on enricher returned unusable data.

Every exception exposes ``to_error_dict()`` for a stable structured
payload suitable for logging and result annotation.
"""

from __future__ import annotations


class EnrichmentError(Exception):
    """Base exception for all enrichment-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Engine stage where the error occurred
            (e.g. ``"fetch"``, ``"paginate"``, ``"classify"``).
        code: Machine-readable error code (e.g. ``"FETCH_NETWORK_FAILED"``).
        retryable: Whether a caller could reasonably retry the operation.
        correlation_id: Request correlation identifier.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(EnrichmentError):
    """Input or domain-model validation failure. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(EnrichmentError):
    """Temporary failure that may succeed on retry."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(EnrichmentError):
    """Unrecoverable domain failure. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(EnrichmentError):
    """Upstream payload or schema drift. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Concrete engine errors
# ---------------------------------------------------------------------------


class NetworkError(TransientError):
    """All fetch attempts (direct URL and every proxy) were exhausted.

    Also raised for a single failed attempt (non-2xx status, timeout,
    transport failure); the fetcher surfaces the last one.

    Attributes:
        url: The URL of the attempt that failed.
        status_code: HTTP status code, or ``None`` for transport failures.
    """

    default_stage = "fetch"
    default_code = "FETCH_NETWORK_FAILED"

    def __init__(self, message: str, *, url: str = "", status_code: int | None = None) -> None:
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ParseError(TransientError):
    """Response body was not valid JSON (or was an HTML error page).

    Attributes:
        url: The URL whose body failed to parse.
        snippet: First characters of the offending body.
    """

    default_stage = "fetch"
    default_code = "FETCH_PARSE_FAILED"

    def __init__(self, message: str, *, url: str = "", snippet: str = "") -> None:
        self.url = url
        self.snippet = snippet
        super().__init__(message)


class GeometryError(ValidationError):
    """A feature geometry is missing or malformed. The feature is dropped."""

    default_stage = "normalize"
    default_code = "GEOMETRY_INVALID"


class PaginationSafetyError(PermanentError):
    """Pagination offset exceeded the configured safety bound.

    Attributes:
        offset: The offset that would have been requested next.
        max_offset: The configured bound.
    """

    default_stage = "paginate"
    default_code = "PAGINATION_SAFETY_BOUND"

    def __init__(self, offset: int, max_offset: int) -> None:
        self.offset = offset
        self.max_offset = max_offset
        super().__init__(f"Pagination offset {offset} exceeds safety bound {max_offset}")


class EnricherError(TransientError):
    """An always-on enricher (weather, alerts, terrain, census) could not produce data.

    Attributes:
        enricher: Name of the failing enricher.
    """

    default_stage = "enrich"
    default_code = "ENRICHER_FAILED"

    def __init__(self, enricher: str, message: str) -> None:
        self.enricher = enricher
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.enricher}] {self.message}"
