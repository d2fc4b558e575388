"""Active weather alerts from the National Weather Service.

Reference:
    https://www.weather.gov/documentation/services-web-api (``/alerts/active``)

The API is asked for alerts at the query point; each returned alert is
then measured against the point with the same geometry engine used for
dataset features, and kept when it lies within ``radius_miles``.
Zone-based alerts carry no geometry; the point filter already places
them over the query location, so they are kept as containing.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import TYPE_CHECKING, Any

from geo_enrichment.core.constants import NWS_ALERT_RADIUS_MILES
from geo_enrichment.core.exceptions import GeometryError
from geo_enrichment.enrichers.base import Enricher
from geo_enrichment.geometry.normalizer import normalize
from geo_enrichment.query.classifier import measure

if TYPE_CHECKING:
    from geo_enrichment.core.fetcher import ResilientFetcher
    from geo_enrichment.models.geometry import Coordinate

logger = logging.getLogger(__name__)

NWS_ACTIVE_ALERTS_URL = "https://api.weather.gov/alerts/active"

_DETAIL_FIELDS: dict[str, tuple[str, str]] = {
    "event": ("event", "Unknown Event"),
    "severity": ("severity", "Unknown"),
    "urgency": ("urgency", "Unknown"),
    "certainty": ("certainty", "Unknown"),
    "headline": ("headline", "No headline"),
    "description": ("description", "No description"),
    "instruction": ("instruction", "No instructions"),
    "area_desc": ("areaDesc", "Unknown area"),
    "effective": ("effective", "Unknown"),
    "expires": ("expires", "Unknown"),
    "status": ("status", "Unknown"),
}


def alert_details(alert: dict[str, Any], distance_miles: float) -> dict[str, Any]:
    """Flatten one GeoJSON alert feature into a detail record."""
    properties = alert.get("properties") or {}
    details: dict[str, Any] = {"id": alert.get("id") or "Unknown"}
    for key, (field_name, default) in _DETAIL_FIELDS.items():
        details[key] = properties.get(field_name) or default
    details["distance_miles"] = round(distance_miles, 2)
    return details


def summarize(details: list[dict[str, Any]], severity_counts: Counter[str]) -> str:
    if not details:
        return "No active weather alerts"
    if len(details) == 1:
        return f"1 active weather alert: {details[0]['event']}"
    summary = f"{len(details)} active weather alerts"
    for severity in ("extreme", "severe"):
        if severity_counts[severity]:
            summary += f" ({severity_counts[severity]} {severity})"
    return summary


class NWSAlertsEnricher(Enricher):
    """Count, severity breakdown and details of nearby active alerts."""

    name = "nws_alerts"

    def __init__(self, fetcher: ResilientFetcher, radius_miles: float = NWS_ALERT_RADIUS_MILES) -> None:
        super().__init__(fetcher)
        self._radius_miles = radius_miles

    def enrich(self, origin: Coordinate) -> dict[str, Any]:
        body = self._get(NWS_ACTIVE_ALERTS_URL, {"point": f"{origin.lat:.6f},{origin.lon:.6f}"})
        if not isinstance(body, dict):
            raise self._fail("NWS alerts API returned a non-object body")

        features = body.get("features")
        if not isinstance(features, list):
            features = []

        details: list[dict[str, Any]] = []
        for alert in features:
            if not isinstance(alert, dict):
                continue
            distance = self._distance(origin, alert)
            if distance is not None and distance <= self._radius_miles:
                details.append(alert_details(alert, distance))

        details.sort(key=lambda d: d["distance_miles"])
        severity_counts = Counter(str(d["severity"]).lower() for d in details)
        logger.debug(
            "NWS alerts fetched | lat=%.5f | lon=%.5f | returned=%d | within_radius=%d",
            origin.lat,
            origin.lon,
            len(features),
            len(details),
        )
        return {
            "nws_weather_alerts_count": len(details),
            "nws_weather_alerts_summary": summarize(details, severity_counts),
            "nws_weather_alerts_details": details,
            "nws_weather_alerts_severity_breakdown": dict(severity_counts),
            "nws_weather_alerts_radius_miles": self._radius_miles,
        }

    def _distance(self, origin: Coordinate, alert: dict[str, Any]) -> float | None:
        """Miles from *origin* to the alert area; ``None`` if unusable."""
        geometry = alert.get("geometry")
        if geometry is None:
            return 0.0
        try:
            distance, _ = measure(origin, normalize(geometry))
        except GeometryError as exc:
            logger.warning("Skipping NWS alert with invalid geometry | id=%s | error=%s", alert.get("id"), exc)
            return None
        return distance
