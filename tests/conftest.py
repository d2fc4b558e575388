"""Shared pytest fixtures for the geo_enrichment test suite."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import httpx
import pytest

from geo_enrichment.core.fetcher import ResilientFetcher
from geo_enrichment.models.feature import RawFeature
from geo_enrichment.models.geometry import Coordinate
from geo_enrichment.sources.base import (
    DatasetConfig,
    SourcePage,
    SourceRequest,
    SpatialSource,
)

# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


@pytest.fixture()
def origin() -> Coordinate:
    """Query point in southern New Hampshire."""
    return Coordinate(lat=43.0, lon=-71.5)


# ---------------------------------------------------------------------------
# Raw feature builders
# ---------------------------------------------------------------------------


def square_rings(lat: float, lon: float, half: float) -> list[list[list[float]]]:
    """ESRI ``rings`` for an axis-aligned square centred on (lat, lon)."""
    return [
        [
            [lon - half, lat - half],
            [lon - half, lat + half],
            [lon + half, lat + half],
            [lon + half, lat - half],
            [lon - half, lat - half],
        ]
    ]


@pytest.fixture()
def polygon_feature() -> Callable[..., RawFeature]:
    """Build a raw square-polygon feature."""

    def _build(
        lat: float,
        lon: float,
        half: float = 0.01,
        *,
        oid: int | None = None,
        source_id: str = "test_polygons",
        **attributes: Any,
    ) -> RawFeature:
        attrs = dict(attributes)
        if oid is not None:
            attrs["OBJECTID"] = oid
        return RawFeature(
            attributes=attrs,
            geometry={"rings": square_rings(lat, lon, half), "spatialReference": {"wkid": 4326}},
            source_id=source_id,
        )

    return _build


@pytest.fixture()
def point_feature() -> Callable[..., RawFeature]:
    """Build a raw point feature."""

    def _build(
        lat: float,
        lon: float,
        *,
        oid: int | None = None,
        source_id: str = "test_points",
        **attributes: Any,
    ) -> RawFeature:
        attrs = dict(attributes)
        if oid is not None:
            attrs["OBJECTID"] = oid
        return RawFeature(attributes=attrs, geometry={"x": lon, "y": lat}, source_id=source_id)

    return _build


# ---------------------------------------------------------------------------
# Fake spatial source
# ---------------------------------------------------------------------------


class FakeSource(SpatialSource):
    """In-memory source that answers from a callable and records requests."""

    def __init__(
        self,
        config: DatasetConfig,
        responder: Callable[[SourceRequest], SourcePage],
    ) -> None:
        super().__init__(config)
        self._responder = responder
        self.requests: list[SourceRequest] = []

    def query(self, request: SourceRequest) -> SourcePage:
        self.requests.append(request)
        return self._responder(request)


@pytest.fixture()
def make_source() -> Callable[..., FakeSource]:
    """Build a ``FakeSource`` from a responder or a fixed page list."""

    def _build(
        responder: Callable[[SourceRequest], SourcePage] | Sequence[SourcePage],
        *,
        dataset_id: str = "test_polygons",
        max_radius_miles: float = 5.0,
        default_radius_miles: float = 1.0,
        page_size: int | None = None,
        supports_containing: bool = True,
    ) -> FakeSource:
        config = DatasetConfig(
            id=dataset_id,
            url="https://example.test/arcgis/rest/services/Test/FeatureServer/0",
            max_radius_miles=max_radius_miles,
            default_radius_miles=default_radius_miles,
            page_size=page_size,
            supports_containing=supports_containing,
        )
        if callable(responder):
            return FakeSource(config, responder)

        pages = list(responder)

        def _from_list(request: SourceRequest) -> SourcePage:
            index = len(source.requests) - 1
            return pages[index] if index < len(pages) else SourcePage()

        source = FakeSource(config, _from_list)
        return source

    return _build


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture()
def mock_fetcher() -> Callable[..., ResilientFetcher]:
    """Build a ``ResilientFetcher`` over an ``httpx.MockTransport`` handler."""

    def _build(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> ResilientFetcher:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        kwargs.setdefault("retry_delay_s", 0.0)
        return ResilientFetcher(client=client, **kwargs)

    return _build
