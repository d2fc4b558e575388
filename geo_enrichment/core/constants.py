"""Shared engine constants: the single source of truth.

Centralises the physical constants, unit conversions and default
limits that the geometry layer, sources and orchestrator share.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Geodesy
# ---------------------------------------------------------------------------

EARTH_RADIUS_MILES: float = 3958.8
"""Mean Earth radius used by the haversine formula."""

WEB_MERCATOR_EXTENT_M: float = 20037508.34
"""Half the Web Mercator world width in metres (EPSG:3857 ``R * π``)."""

METERS_PER_MILE: float = 1609.34
"""Statute mile to metre conversion at the engine boundary."""

FEET_PER_METER: float = 3.28084

# ---------------------------------------------------------------------------
# Spatial references
# ---------------------------------------------------------------------------

WGS84_WKID: int = 4326
WEB_MERCATOR_WKIDS: frozenset[int] = frozenset({3857, 102100, 102113, 900913})

# ---------------------------------------------------------------------------
# Enrichment defaults
# ---------------------------------------------------------------------------

DEFAULT_RADIUS_CAP_MILES: float = 5.0
"""Radius cap applied to datasets that do not declare their own."""

DEFAULT_PAGE_SIZE: int = 2000
DEFAULT_MAX_OFFSET: int = 50_000

ALWAYS_ON_ENRICHERS: tuple[str, ...] = ("weather", "nws_alerts", "terrain", "census")
"""Enrichers launched for every location regardless of selection."""

NWS_ALERT_RADIUS_MILES: float = 25.0
"""Radius within which active NWS weather alerts are reported."""

IDENTITY_FIELDS: tuple[str, ...] = (
    "objectId",
    "OBJECTID",
    "objectid",
    "FID",
    "fid",
    "GLOBALID",
    "GlobalID",
    "globalid",
    "ESRI_OID",
    "id",
)
"""Attribute names tried, in order, to derive a feature identity key."""
