"""ArcGIS REST feature layer adapter.

Concrete ``SpatialSource`` for ArcGIS FeatureServer / MapServer layers.
Every query goes to ``<layer url>/query`` with the query point as an
``esriGeometryPoint`` in WGS 84:

- containment mode: ``spatialRel=esriSpatialRelIntersects``, no buffer;
- proximity mode: the same relation with ``distance`` /
  ``units=esriSRUnit_Meter`` so the service applies the buffer.

Paging uses ``resultOffset`` / ``resultRecordCount``; the service sets
``exceededTransferLimit`` when more records remain.  An HTTP 200 body
carrying an ``error`` object is a failed query.

Reference:
    https://developers.arcgis.com/rest/services-reference/enterprise/query-feature-service-layer/
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from geo_enrichment.core.constants import WGS84_WKID
from geo_enrichment.models.feature import RawFeature
from geo_enrichment.sources.base import (
    SourceError,
    SourcePage,
    SourceRequest,
    SpatialRelation,
    SpatialSource,
)

if TYPE_CHECKING:
    from geo_enrichment.core.fetcher import ResilientFetcher
    from geo_enrichment.sources.base import DatasetConfig

logger = logging.getLogger(__name__)

_ESRI_SPATIAL_REL = {
    SpatialRelation.INTERSECTS: "esriSpatialRelIntersects",
    SpatialRelation.CONTAINS: "esriSpatialRelContains",
    SpatialRelation.WITHIN: "esriSpatialRelWithin",
}


class ArcGISFeatureSource(SpatialSource):
    """ArcGIS REST ``/query`` adapter.

    The adapter holds no state between pages; the offset travels in
    each ``SourceRequest``.
    """

    def __init__(self, config: DatasetConfig, fetcher: ResilientFetcher) -> None:
        super().__init__(config)
        self._fetcher = fetcher

    # ------------------------------------------------------------------
    # query
    # ------------------------------------------------------------------

    def query(self, request: SourceRequest) -> SourcePage:
        """Fetch one page from the layer.

        Raises:
            SourceError: If the service body carries an ``error`` object
                or is not a JSON object.
            NetworkError: If every fetch attempt failed.
            ParseError: If the body is not JSON.
        """
        url = self.build_query_url(request)
        logger.debug(
            "ArcGIS query | source=%s | offset=%d | buffer_m=%s | url=%s",
            self.source_id,
            request.offset,
            request.buffer_meters,
            url,
        )
        body = self._fetcher.fetch_json(url)
        return self._parse_page(body)

    def build_query_url(self, request: SourceRequest) -> str:
        """Return the full ``/query`` URL for *request*."""
        point = request.geometry
        params: dict[str, str] = {
            "f": "json",
            "where": self.config.where,
            "outFields": "*",
            "geometry": json.dumps(
                {"x": point.lon, "y": point.lat, "spatialReference": {"wkid": WGS84_WKID}},
                separators=(",", ":"),
            ),
            "geometryType": "esriGeometryPoint",
            "spatialRel": _ESRI_SPATIAL_REL[request.spatial_rel],
            "inSR": str(WGS84_WKID),
            "outSR": str(WGS84_WKID),
            "returnGeometry": "true",
            "resultOffset": str(request.offset),
            "resultRecordCount": str(request.page_size),
        }
        if request.buffer_meters:
            params["distance"] = repr(float(request.buffer_meters))
            params["units"] = "esriSRUnit_Meter"

        base = self.config.url.rstrip("/")
        return str(httpx.URL(f"{base}/query", params=params))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _parse_page(self, body: Any) -> SourcePage:
        if not isinstance(body, dict):
            msg = f"Expected a JSON object, got {type(body).__name__}"
            raise SourceError(self.source_id, msg)

        error = body.get("error")
        if error:
            raise SourceError(self.source_id, _describe_error(error))

        raw_features = body.get("features")
        if raw_features is None:
            logger.warning("ArcGIS response has no features array | source=%s", self.source_id)
            return SourcePage(features=[], has_more=False)
        if not isinstance(raw_features, list):
            msg = f"'features' must be a list, got {type(raw_features).__name__}"
            raise SourceError(self.source_id, msg)

        layer_sr = body.get("spatialReference")
        features: list[RawFeature] = []
        for item in raw_features:
            if not isinstance(item, dict):
                logger.warning("Skipping non-object feature | source=%s", self.source_id)
                continue
            attributes = item.get("attributes") or item.get("properties") or {}
            geometry = item.get("geometry")
            if isinstance(geometry, dict) and layer_sr and "spatialReference" not in geometry:
                geometry = {**geometry, "spatialReference": layer_sr}
            features.append(
                RawFeature(
                    attributes=dict(attributes),
                    geometry=geometry if isinstance(geometry, dict) else None,
                    source_id=self.source_id,
                )
            )

        return SourcePage(features=features, has_more=bool(body.get("exceededTransferLimit")))


def _describe_error(error: object) -> str:
    """Format an ArcGIS ``error`` object (``{code, message, details}``)."""
    if not isinstance(error, dict):
        return f"Service error: {error}"
    code = error.get("code", "?")
    message = error.get("message", "unknown error")
    details = error.get("details") or []
    suffix = f" ({'; '.join(str(d) for d in details)})" if details else ""
    return f"Service error {code}: {message}{suffix}"
