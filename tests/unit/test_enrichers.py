"""Tests for the always-on enrichers (weather, NWS alerts, terrain, census)."""

from __future__ import annotations

import logging
import math
from unittest.mock import MagicMock

import httpx
import numpy as np
import pytest

from geo_enrichment.core.exceptions import EnricherError, NetworkError
from geo_enrichment.enrichers import ENRICHER_CLASSES, build_enrichers
from geo_enrichment.enrichers.census import CensusEnricher
from geo_enrichment.enrichers.nws_alerts import NWSAlertsEnricher
from geo_enrichment.enrichers.terrain import (
    GRID_SPACING_M,
    TerrainEnricher,
    aspect_degrees,
    aspect_to_direction,
    grid_coordinates,
    horn_gradients,
    slope_degrees,
)
from geo_enrichment.enrichers.weather import WeatherEnricher, celsius_to_fahrenheit, describe_weather_code
from geo_enrichment.models.geometry import Coordinate

ORIGIN = Coordinate(lat=29.76, lon=-95.37)


def fetcher_returning(body: object) -> MagicMock:
    fetcher = MagicMock()
    fetcher.fetch_json.return_value = body
    return fetcher


def requested_params(fetcher: MagicMock) -> httpx.QueryParams:
    (url,), _ = fetcher.fetch_json.call_args
    return httpx.URL(url).params


def tilted_grid(east: float = 0.0, north: float = 0.0, base: float = 100.0) -> np.ndarray:
    """Planar surface rising *east* / *north* metres per metre; row 0 is south."""
    return np.array(
        [
            [base + east * (col - 1) * GRID_SPACING_M + north * (row - 1) * GRID_SPACING_M for col in range(3)]
            for row in range(3)
        ]
    )


# ---------------------------------------------------------------------------
# Weather
# ---------------------------------------------------------------------------


class TestWeatherEnricher:
    BODY = {
        "timezone": "America/Chicago",
        "current_weather": {
            "temperature": 25.0,
            "windspeed": 10.0,
            "winddirection": 180,
            "weathercode": 2,
            "time": "2026-06-01T14:00",
        },
    }

    def test_keys_and_conversions(self) -> None:
        result = WeatherEnricher(fetcher_returning(self.BODY)).enrich(ORIGIN)

        assert result["weather_temperature_c"] == 25.0
        assert result["weather_temperature_f"] == pytest.approx(77.0)
        assert result["weather_windspeed_mph"] == pytest.approx(6.21371)
        assert result["weather_winddirection"] == 180
        assert result["weather_description"] == "Partly cloudy"
        assert result["weather_timezone"] == "America/Chicago"
        assert result["weather_time"] == "2026-06-01T14:00"
        assert result["weather_summary"] == "Current weather: Partly cloudy, 77.0°F, 6.2 mph wind"

    def test_request_params(self) -> None:
        fetcher = fetcher_returning(self.BODY)
        WeatherEnricher(fetcher).enrich(ORIGIN)
        params = requested_params(fetcher)
        assert params["latitude"] == "29.76"
        assert params["longitude"] == "-95.37"
        assert params["current_weather"] == "true"
        assert params["timezone"] == "auto"

    def test_unknown_code_and_timezone(self) -> None:
        body = {"current_weather": {"temperature": 0, "windspeed": 0, "weathercode": 42}}
        result = WeatherEnricher(fetcher_returning(body)).enrich(ORIGIN)
        assert result["weather_description"] == "Unknown weather condition"
        assert result["weather_timezone"] == "Unknown"

    @pytest.mark.parametrize(
        "body",
        [{}, {"current_weather": None}, {"current_weather": {"windspeed": 3}}, [], {"current_weather": {"temperature": "hot", "windspeed": 1}}],
    )
    def test_unusable_body_raises(self, body) -> None:
        with pytest.raises(EnricherError) as exc_info:
            WeatherEnricher(fetcher_returning(body)).enrich(ORIGIN)
        assert exc_info.value.enricher == "weather"
        assert str(exc_info.value).startswith("[weather]")

    def test_helpers(self) -> None:
        assert celsius_to_fahrenheit(-40.0) == -40.0
        assert describe_weather_code(None) == "Unknown weather condition"
        assert describe_weather_code(95) == "Thunderstorm"


# ---------------------------------------------------------------------------
# Terrain
# ---------------------------------------------------------------------------


class TestHornMethod:
    def test_flat_grid(self) -> None:
        grid = tilted_grid()
        assert slope_degrees(grid) == 0.0
        assert aspect_degrees(grid) == 0.0

    def test_gradients_recover_plane(self) -> None:
        dzdx, dzdy = horn_gradients(tilted_grid(east=0.05, north=-0.02))
        assert dzdx == pytest.approx(0.05)
        assert dzdy == pytest.approx(-0.02)

    def test_slope_of_ten_percent_grade(self) -> None:
        assert slope_degrees(tilted_grid(east=0.1)) == pytest.approx(math.degrees(math.atan(0.1)))

    @pytest.mark.parametrize(
        ("east", "north", "expected"),
        [
            (0.1, 0.0, 270.0),  # rises east, faces west
            (-0.1, 0.0, 90.0),
            (0.0, 0.1, 180.0),  # rises north, faces south
            (0.0, -0.1, 0.0),
            (-0.1, -0.1, 45.0),
        ],
    )
    def test_aspect_faces_downslope(self, east: float, north: float, expected: float) -> None:
        assert aspect_degrees(tilted_grid(east=east, north=north)) == pytest.approx(expected)

    @pytest.mark.parametrize(
        ("aspect", "direction"),
        [(0.0, "N"), (11.0, "N"), (12.0, "NNE"), (90.0, "E"), (180.0, "S"), (270.0, "W"), (340.0, "NNW"), (359.0, "N")],
    )
    def test_aspect_to_direction(self, aspect: float, direction: str) -> None:
        assert aspect_to_direction(aspect) == direction

    def test_grid_coordinates_centred_south_first(self) -> None:
        lats, lons = grid_coordinates(ORIGIN)
        assert len(lats) == len(lons) == 9
        assert lats[4] == pytest.approx(ORIGIN.lat)
        assert lons[4] == pytest.approx(ORIGIN.lon)
        assert lats[0] < lats[3] < lats[6]
        assert lons[0] < lons[1] < lons[2]


class TestTerrainEnricher:
    def test_result_keys(self) -> None:
        values = tilted_grid(east=0.1).flatten().tolist()
        fetcher = fetcher_returning({"elevation": values})

        result = TerrainEnricher(fetcher).enrich(ORIGIN)

        assert result["terrain_elevation_m"] == 100.0
        assert result["elevation_ft"] == pytest.approx(328.084)
        assert result["terrain_slope_deg"] == pytest.approx(5.71, abs=0.01)
        assert result["terrain_aspect_deg"] == pytest.approx(270.0)
        assert result["terrain_slope_direction"] == "W"

    def test_request_has_nine_points(self) -> None:
        fetcher = fetcher_returning({"elevation": [10.0] * 9})
        TerrainEnricher(fetcher).enrich(ORIGIN)
        params = requested_params(fetcher)
        assert len(params["latitude"].split(",")) == 9
        assert len(params["longitude"].split(",")) == 9

    @pytest.mark.parametrize(
        "body",
        [
            {},
            {"elevation": [1.0] * 8},
            {"elevation": "flat"},
            {"elevation": [1.0] * 8 + [None]},
            {"elevation": [1.0] * 8 + ["high"]},
            None,
        ],
    )
    def test_invalid_elevation_raises(self, body) -> None:
        with pytest.raises(EnricherError) as exc_info:
            TerrainEnricher(fetcher_returning(body)).enrich(ORIGIN)
        assert exc_info.value.enricher == "terrain"


# ---------------------------------------------------------------------------
# Census
# ---------------------------------------------------------------------------


class TestCensusEnricher:
    BODY = {
        "result": {
            "geographies": {
                "States": [{"STATE": "48", "NAME": "Texas"}],
                "Counties": [{"COUNTY": "201", "NAME": "Harris County"}],
                "Census Tracts": [{"GEOID": "48201310100"}],
                "2020 Census Blocks": [{"GEOID": "482013101001000"}],
                "Incorporated Places": [{"NAME": "Houston city"}],
            }
        }
    }

    def test_parses_geographies(self) -> None:
        result = CensusEnricher(fetcher_returning(self.BODY)).enrich(ORIGIN)
        assert result == {
            "fips_state": "48",
            "state_name": "Texas",
            "fips_county": "201",
            "county_name": "Harris County",
            "fips_tract": "48201310100",
            "fips_block": "482013101001000",
            "place_name": "Houston city",
        }

    def test_request_params(self) -> None:
        fetcher = fetcher_returning(self.BODY)
        CensusEnricher(fetcher).enrich(ORIGIN)
        params = requested_params(fetcher)
        assert params["x"] == "-95.37"
        assert params["y"] == "29.76"
        assert params["benchmark"] == "Public_AR_Current"
        assert params["format"] == "json"

    def test_unincorporated_location_has_no_place(self) -> None:
        body = {"result": {"geographies": {"States": [{"STATE": "48", "NAME": "Texas"}], "Incorporated Places": []}}}
        result = CensusEnricher(fetcher_returning(body)).enrich(ORIGIN)
        assert result == {"fips_state": "48", "state_name": "Texas"}

    def test_outside_us_returns_empty(self) -> None:
        assert CensusEnricher(fetcher_returning({"result": {}})).enrich(Coordinate(lat=51.5, lon=-0.12)) == {}

    @pytest.mark.parametrize("body", [["x"], {"errors": ["Invalid benchmark"]}])
    def test_error_body_raises(self, body) -> None:
        with pytest.raises(EnricherError):
            CensusEnricher(fetcher_returning(body)).enrich(ORIGIN)


class TestCensusRichGeographyAndACS:
    GEOGRAPHIES = {
        "result": {
            "geographies": {
                "States": [{"STATE": "48", "NAME": "Texas", "STUSAB": "TX", "GEOID": "48"}],
                "Counties": [{"COUNTY": "201", "NAME": "Harris County", "GEOID": "48201", "BASENAME": "Harris"}],
                "Census Tracts": [
                    {"GEOID": "48201310100", "TRACT": "310100", "NAME": "Census Tract 3101", "BASENAME": "3101"}
                ],
                "2020 Census Blocks": [
                    {"GEOID": "482013101001000", "NAME": "Block 1000", "BASENAME": "1000", "UR": "U"}
                ],
            }
        }
    }
    ACS = [
        ["B01003_001E", "B19013_001E", "B01002_001E", "NAME", "state", "county", "tract"],
        ["4123", "-666666666", "34.5", "Census Tract 3101; Harris County; Texas", "48", "201", "310100"],
    ]

    def test_rich_fields_and_acs(self) -> None:
        fetcher = MagicMock()
        fetcher.fetch_json.side_effect = [self.GEOGRAPHIES, self.ACS]

        result = CensusEnricher(fetcher).enrich(ORIGIN)

        assert result["state_code"] == "TX"
        assert result["county_basename"] == "Harris"
        assert result["fips_tract6"] == "310100"
        assert result["census_tract_name"] == "Census Tract 3101"
        assert result["census_block_urban_rural"] == "Urban"
        assert result["acs_population"] == 4123.0
        assert result["acs_median_hh_income"] is None
        assert result["acs_median_age"] == 34.5
        assert result["acs_name"].startswith("Census Tract 3101")

    def test_acs_request_params(self) -> None:
        fetcher = MagicMock()
        fetcher.fetch_json.side_effect = [self.GEOGRAPHIES, self.ACS]
        CensusEnricher(fetcher).enrich(ORIGIN)
        params = requested_params(fetcher)
        assert params["for"] == "tract:310100"
        assert params["in"] == "state:48 county:201"
        assert params["get"].split(",")[-1] == "NAME"

    def test_acs_failure_keeps_geography(self) -> None:
        fetcher = MagicMock()
        fetcher.fetch_json.side_effect = [self.GEOGRAPHIES, NetworkError("HTTP 503", status_code=503)]

        result = CensusEnricher(fetcher).enrich(ORIGIN)

        assert result["fips_state"] == "48"
        assert result["acs_error"] == "HTTP 503"
        assert "acs_population" not in result

    def test_acs_without_data_row_reported(self) -> None:
        fetcher = MagicMock()
        fetcher.fetch_json.side_effect = [self.GEOGRAPHIES, [self.ACS[0]]]
        result = CensusEnricher(fetcher).enrich(ORIGIN)
        assert "ACS API returned no data row" in result["acs_error"]


# ---------------------------------------------------------------------------
# NWS alerts
# ---------------------------------------------------------------------------


def alert(alert_id: str, geometry: dict | None, **properties) -> dict:
    return {"id": alert_id, "geometry": geometry, "properties": properties}


def square(lat: float, lon: float, half: float = 0.1) -> dict:
    ring = [
        [lon - half, lat - half],
        [lon + half, lat - half],
        [lon + half, lat + half],
        [lon - half, lat + half],
        [lon - half, lat - half],
    ]
    return {"type": "Polygon", "coordinates": [ring]}


class TestNWSAlertsEnricher:
    def test_filters_by_distance_and_summarises(self) -> None:
        body = {
            "features": [
                alert("far", square(31.0, -95.37), event="Heat Advisory", severity="Moderate"),
                alert("near", square(30.0, -95.37), event="Flood Warning", severity="Severe"),
                alert("over", square(29.76, -95.37), event="Tornado Warning", severity="Extreme"),
                alert("zone", None, event="Wind Advisory", severity="Minor"),
            ]
        }

        result = NWSAlertsEnricher(fetcher_returning(body)).enrich(ORIGIN)

        assert result["nws_weather_alerts_count"] == 3
        assert [d["id"] for d in result["nws_weather_alerts_details"]] == ["over", "zone", "near"]
        assert result["nws_weather_alerts_severity_breakdown"] == {"extreme": 1, "minor": 1, "severe": 1}
        assert result["nws_weather_alerts_summary"] == "3 active weather alerts (1 extreme) (1 severe)"
        assert result["nws_weather_alerts_radius_miles"] == 25.0

    def test_no_alerts(self) -> None:
        result = NWSAlertsEnricher(fetcher_returning({"features": []})).enrich(ORIGIN)
        assert result["nws_weather_alerts_count"] == 0
        assert result["nws_weather_alerts_summary"] == "No active weather alerts"
        assert result["nws_weather_alerts_details"] == []

    def test_single_alert_summary_and_defaults(self) -> None:
        body = {"features": [alert("a1", None, event="Dense Fog Advisory")]}
        details = NWSAlertsEnricher(fetcher_returning(body)).enrich(ORIGIN)
        assert details["nws_weather_alerts_summary"] == "1 active weather alert: Dense Fog Advisory"
        record = details["nws_weather_alerts_details"][0]
        assert record["severity"] == "Unknown"
        assert record["instruction"] == "No instructions"
        assert record["distance_miles"] == 0.0

    def test_invalid_geometry_skipped(self, caplog) -> None:
        body = {"features": [alert("bad", {"type": "Polygon", "coordinates": []}, event="X")]}
        with caplog.at_level(logging.WARNING):
            result = NWSAlertsEnricher(fetcher_returning(body)).enrich(ORIGIN)
        assert result["nws_weather_alerts_count"] == 0
        assert "Skipping NWS alert" in caplog.text

    def test_custom_radius(self) -> None:
        body = {"features": [alert("near", square(30.0, -95.37), event="Flood Warning")]}
        result = NWSAlertsEnricher(fetcher_returning(body), radius_miles=5.0).enrich(ORIGIN)
        assert result["nws_weather_alerts_count"] == 0

    def test_request_params(self) -> None:
        fetcher = fetcher_returning({"features": []})
        NWSAlertsEnricher(fetcher).enrich(ORIGIN)
        assert requested_params(fetcher)["point"] == "29.760000,-95.370000"

    def test_non_object_body_raises(self) -> None:
        with pytest.raises(EnricherError):
            NWSAlertsEnricher(fetcher_returning([])).enrich(ORIGIN)


def test_build_enrichers_covers_registry() -> None:
    fetcher = MagicMock()
    enrichers = build_enrichers(fetcher)
    assert set(enrichers) == set(ENRICHER_CLASSES) == {"weather", "nws_alerts", "terrain", "census"}
    assert all(e.name == name for name, e in enrichers.items())
