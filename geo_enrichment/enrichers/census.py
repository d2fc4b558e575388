"""Census geographies and ACS demographics for a location.

Two upstreams are used in sequence:

1. The Census geocoder returns the state, county, tract, block and
   incorporated place containing the point.
2. The American Community Survey 5-year API returns tract-level
   population, median household income and median age, keyed by the
   FIPS codes from step 1.

A failed ACS lookup does not fail the geography lookup; it is reported
as an ``acs_error`` entry next to the geography fields.

Reference:
    https://geocoding.geo.census.gov/geocoder/Geocoding_Services_API.html
    https://www.census.gov/data/developers/data-sets/acs-5year.html
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from geo_enrichment.core.exceptions import EnrichmentError
from geo_enrichment.enrichers.base import Enricher

if TYPE_CHECKING:
    from geo_enrichment.models.geometry import Coordinate

logger = logging.getLogger(__name__)

CENSUS_GEOGRAPHIES_URL = "https://geocoding.geo.census.gov/geocoder/geographies/coordinates"
ACS_URL = "https://api.census.gov/data/2022/acs/acs5"

_STATES = "States"
_COUNTIES = "Counties"
_TRACTS = "Census Tracts"
_BLOCKS = "2020 Census Blocks"
_PLACES = "Incorporated Places"

#: Output key -> geography attribute, per geocoder layer.
_LAYER_FIELDS: dict[str, dict[str, str]] = {
    _STATES: {
        "fips_state": "STATE",
        "state_name": "NAME",
        "state_code": "STUSAB",
        "state_geoid": "GEOID",
    },
    _COUNTIES: {
        "fips_county": "COUNTY",
        "county_name": "NAME",
        "county_geoid": "GEOID",
        "county_basename": "BASENAME",
    },
    _TRACTS: {
        "fips_tract": "GEOID",
        "fips_tract6": "TRACT",
        "census_tract_name": "NAME",
        "census_tract_basename": "BASENAME",
    },
    _BLOCKS: {
        "fips_block": "GEOID",
        "census_block_name": "NAME",
        "census_block_basename": "BASENAME",
    },
    _PLACES: {
        "place_name": "NAME",
        "place_geoid": "GEOID",
        "place_basename": "BASENAME",
        "place_functional_status": "FUNCSTAT",
    },
}

#: ACS variable -> output key.
ACS_VARIABLES: dict[str, str] = {
    "B01003_001E": "acs_population",
    "B19013_001E": "acs_median_hh_income",
    "B01002_001E": "acs_median_age",
}


def _first(geographies: dict[str, Any], layer: str) -> dict[str, Any] | None:
    entries = geographies.get(layer)
    if isinstance(entries, list) and entries and isinstance(entries[0], dict):
        return entries[0]
    return None


def _acs_value(raw: object) -> float | None:
    """Parse an ACS estimate; negative values are Census "no data" sentinels."""
    try:
        value = float(raw)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return None if value < 0 else value


class CensusEnricher(Enricher):
    """State/county/tract/block/place geography plus ACS demographics.

    Locations outside the US return an empty mapping rather than an
    error; the geocoder simply has no geographies there.
    """

    name = "census"

    def enrich(self, origin: Coordinate) -> dict[str, Any]:
        body = self._get(
            CENSUS_GEOGRAPHIES_URL,
            {
                "x": origin.lon,
                "y": origin.lat,
                "benchmark": "Public_AR_Current",
                "vintage": "Current_Current",
                "format": "json",
            },
        )
        if not isinstance(body, dict):
            raise self._fail("Census geocoder returned a non-object body")
        if body.get("errors"):
            raise self._fail(f"Census geocoder error: {body['errors']}")

        result = body.get("result")
        geographies = result.get("geographies") if isinstance(result, dict) else None
        if not isinstance(geographies, dict):
            logger.info("Census geocoder returned no geographies | lat=%.5f | lon=%.5f", origin.lat, origin.lon)
            return {}

        out: dict[str, Any] = {}
        for layer, fields in _LAYER_FIELDS.items():
            entry = _first(geographies, layer)
            if entry is None:
                continue
            for key, attribute in fields.items():
                if entry.get(attribute) is not None:
                    out[key] = entry[attribute]

        block = _first(geographies, _BLOCKS)
        if block and block.get("UR"):
            out["census_block_urban_rural"] = "Urban" if block["UR"] == "U" else "Rural"

        if all(out.get(k) for k in ("fips_state", "fips_county", "fips_tract6")):
            try:
                out.update(self.acs_demographics(out["fips_state"], out["fips_county"], out["fips_tract6"]))
            except EnrichmentError as exc:
                logger.warning("ACS lookup failed | tract=%s | error=%s", out.get("fips_tract"), exc)
                out["acs_error"] = str(exc)
        return out

    def acs_demographics(self, state: str, county: str, tract: str) -> dict[str, Any]:
        """Return tract-level ACS estimates keyed by ``ACS_VARIABLES``.

        Raises:
            EnricherError: If the ACS body is not a header/row table.
        """
        body = self._get(
            ACS_URL,
            {
                "get": ",".join([*ACS_VARIABLES, "NAME"]),
                "for": f"tract:{tract}",
                "in": f"state:{state} county:{county}",
            },
        )
        if not isinstance(body, list) or len(body) < 2 or not isinstance(body[0], list):
            raise self._fail("ACS API returned no data row")

        header, row = body[0], body[1]
        values = dict(zip(header, row, strict=False))
        out: dict[str, Any] = {key: _acs_value(values.get(variable)) for variable, key in ACS_VARIABLES.items()}
        out["acs_name"] = values.get("NAME")
        return out
