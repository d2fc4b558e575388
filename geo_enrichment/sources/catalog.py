"""Dataset catalog: packaged YAML validated with pydantic.

Dataset definitions (service URL, radius caps, field aliases) are data,
not code.  They ship as ``datasets.yaml`` inside this package and are
loaded once into immutable ``DatasetConfig`` values that callers inject
into sources.  A custom catalog file can be loaded instead for
deployments that add their own layers.
"""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from geo_enrichment.core.constants import DEFAULT_RADIUS_CAP_MILES
from geo_enrichment.core.exceptions import ContractError
from geo_enrichment.models.geometry import GeometryKind, ModelValidationError
from geo_enrichment.sources.base import DatasetConfig

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

CATALOG_RESOURCE = "datasets.yaml"


class CatalogError(ContractError):
    """The dataset catalog is malformed."""

    default_stage = "catalog"
    default_code = "CATALOG_INVALID"


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------


class DatasetEntry(BaseModel):
    """One ``datasets:`` entry as written in YAML."""

    id: str = Field(min_length=1)
    url: str = Field(min_length=1)
    title: str = ""
    source_kind: str = "arcgis"
    geometry_kind: Literal["point", "polyline", "polygon"] | None = None
    default_radius_miles: float = Field(default=1.0, gt=0)
    max_radius_miles: float | None = Field(default=None, gt=0)
    page_size: int | None = Field(default=None, ge=1)
    supports_containing: bool = True
    where: str = "1=1"
    field_aliases: dict[str, list[str]] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def _http_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            msg = "url must be http(s)"
            raise ValueError(msg)
        return value.rstrip("/")

    def to_config(self, default_cap_miles: float) -> DatasetConfig:
        return DatasetConfig(
            id=self.id,
            url=self.url,
            title=self.title or self.id,
            source_kind=self.source_kind,
            geometry_kind=GeometryKind(self.geometry_kind) if self.geometry_kind else None,
            default_radius_miles=self.default_radius_miles,
            max_radius_miles=self.max_radius_miles or default_cap_miles,
            page_size=self.page_size,
            supports_containing=self.supports_containing,
            where=self.where,
            field_aliases={k: tuple(v) for k, v in self.field_aliases.items()},
        )


class CatalogDocument(BaseModel):
    """Top-level catalog document."""

    datasets: list[DatasetEntry] = Field(default_factory=list)

    @field_validator("datasets")
    @classmethod
    def _unique_ids(cls, value: list[DatasetEntry]) -> list[DatasetEntry]:
        seen: set[str] = set()
        for entry in value:
            if entry.id in seen:
                msg = f"duplicate dataset id {entry.id!r}"
                raise ValueError(msg)
            seen.add(entry.id)
        return value


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_catalog(
    data: Mapping[str, Any] | None,
    *,
    default_cap_miles: float = DEFAULT_RADIUS_CAP_MILES,
) -> dict[str, DatasetConfig]:
    """Validate a decoded catalog document into ``DatasetConfig`` values.

    Raises:
        CatalogError: If the document fails schema validation or an
            entry violates ``DatasetConfig`` invariants.
    """
    try:
        document = CatalogDocument.model_validate(data or {})
    except PydanticValidationError as exc:
        msg = f"Dataset catalog failed validation: {exc}"
        raise CatalogError(msg) from exc

    catalog: dict[str, DatasetConfig] = {}
    for entry in document.datasets:
        try:
            catalog[entry.id] = entry.to_config(default_cap_miles)
        except ModelValidationError as exc:
            msg = f"Dataset {entry.id!r} is invalid: {exc}"
            raise CatalogError(msg) from exc
    return catalog


def load_catalog(
    path: str | Path | None = None,
    *,
    default_cap_miles: float = DEFAULT_RADIUS_CAP_MILES,
) -> dict[str, DatasetConfig]:
    """Load the dataset catalog from *path* or the packaged YAML.

    Raises:
        CatalogError: If the YAML cannot be parsed or fails validation.
    """
    if path is None:
        text = resources.files(__package__).joinpath(CATALOG_RESOURCE).read_text(encoding="utf-8")
        origin = f"package:{CATALOG_RESOURCE}"
    else:
        text = Path(path).read_text(encoding="utf-8")
        origin = str(path)

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Dataset catalog {origin} is not valid YAML: {exc}"
        raise CatalogError(msg) from exc

    catalog = parse_catalog(data, default_cap_miles=default_cap_miles)
    logger.info("Dataset catalog loaded | origin=%s | datasets=%d", origin, len(catalog))
    return catalog
