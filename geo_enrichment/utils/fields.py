"""Declarative attribute field-alias resolution.

Feature services name the same concept differently (``NAME``,
``Name``, ``name``, ``Unit_Nm`` ...).  Instead of repeating
``attributes.get("NAME") or attributes.get("Name") or ...`` in every
dataset adapter, each canonical field maps to an ordered alias list
and one generic lookup resolves it.  Datasets may prepend their own
aliases through ``DatasetConfig.field_aliases``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from geo_enrichment.core.constants import IDENTITY_FIELDS
from geo_enrichment.models.feature import AttributeBag

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

#: Canonical field → aliases tried in order.
DEFAULT_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "name": (
        "NAME",
        "Name",
        "name",
        "NAME_LABEL",
        "Unit_Nm",
        "SITE_NAME",
        "FACILITY_NAME",
        "LABEL",
        "label",
        "TITLE",
        "title",
    ),
    "type": (
        "TYPE",
        "Type",
        "type",
        "CATEGORY",
        "Category",
        "category",
        "FeatClass",
        "CLASS",
    ),
    "status": (
        "STATUS",
        "Status",
        "status",
        "Pub_Access",
    ),
    "identity": IDENTITY_FIELDS,
}

#: Canonical fields lifted out of the raw attributes into ``AttributeBag``.
CANONICAL_FIELDS: tuple[str, ...] = ("name", "type", "status")


def merge_aliases(
    overrides: Mapping[str, Sequence[str]] | None = None,
) -> dict[str, tuple[str, ...]]:
    """Return the default alias table with *overrides* taking precedence.

    Override aliases are tried before the defaults for the same
    canonical field; duplicates are dropped.
    """
    table = dict(DEFAULT_FIELD_ALIASES)
    for canonical, aliases in (overrides or {}).items():
        combined = [*aliases, *table.get(canonical, ())]
        table[canonical] = tuple(dict.fromkeys(combined))
    return table


def resolve_field(
    attributes: Mapping[str, Any],
    canonical: str,
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> Any:
    """Return the first non-null, non-blank value for a canonical field.

    Args:
        attributes: Raw feature attributes.
        canonical: Canonical field name (e.g. ``"name"``).
        aliases: Alias table; defaults to ``DEFAULT_FIELD_ALIASES``.

    Returns:
        The resolved value, or ``None`` if no alias carries a value.
    """
    table = aliases if aliases is not None else DEFAULT_FIELD_ALIASES
    for alias in table.get(canonical, (canonical,)):
        value = attributes.get(alias)
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def build_attribute_bag(
    attributes: Mapping[str, Any],
    aliases: Mapping[str, Sequence[str]] | None = None,
) -> AttributeBag:
    """Lift canonical fields out of *attributes*, keeping everything in ``extra``."""
    table = aliases if aliases is not None else DEFAULT_FIELD_ALIASES
    resolved = {name: resolve_field(attributes, name, table) for name in CANONICAL_FIELDS}
    return AttributeBag(
        name=_as_text(resolved["name"]),
        type=_as_text(resolved["type"]),
        status=_as_text(resolved["status"]),
        extra=dict(attributes),
    )


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value).strip()
