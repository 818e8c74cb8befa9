"""Catalog record model shared by the workspace, gateways and scorers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

# Semantic fields the workspace knows how to reason about. Remote catalogs may
# send more; those stay in ``Record.extras`` and round-trip untouched.
FIELD_NAME = "name"
FIELD_SLUG = "slug"
FIELD_DESCRIPTION = "description"
FIELD_SHORT_DESCRIPTION = "short_description"
FIELD_SKU = "sku"
FIELD_IMAGE = "image"
FIELD_STATUS = "status"
FIELD_PERMALINK = "permalink"
FIELD_SEO_TITLE = "rank_math_title"
FIELD_SEO_DESCRIPTION = "rank_math_description"
FIELD_FOCUS_KEYWORD = "rank_math_focus_keyword"
FIELD_SELLING_BULLETS = "selling_bullets"

OPTION_SLOTS = (1, 2, 3)

KNOWN_FIELDS: frozenset[str] = frozenset(
    {
        FIELD_NAME,
        FIELD_SLUG,
        FIELD_DESCRIPTION,
        FIELD_SHORT_DESCRIPTION,
        FIELD_SKU,
        FIELD_IMAGE,
        FIELD_STATUS,
        FIELD_PERMALINK,
        FIELD_SEO_TITLE,
        FIELD_SEO_DESCRIPTION,
        FIELD_FOCUS_KEYWORD,
        FIELD_SELLING_BULLETS,
    }
    | {f"option{slot}_{part}" for slot in OPTION_SLOTS for part in ("id", "name", "values")}
)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value if item is not None)
    return str(value)


@dataclass
class Record:
    """One catalog item: a stable id plus string-valued fields."""

    id: str
    fields: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, id_field: str = "id") -> "Record":
        raw_id = data.get(id_field)
        if raw_id in (None, ""):
            raise ValueError(f"Record is missing its '{id_field}' value")
        values = {
            str(key): _as_text(value)
            for key, value in data.items()
            if key != id_field
        }
        return cls(id=str(raw_id), fields=values)

    def get(self, name: str, default: str = "") -> str:
        value = self.fields.get(name)
        return default if value is None else value

    def copy(self) -> "Record":
        return Record(id=self.id, fields=dict(self.fields))

    def with_values(self, values: Mapping[str, Any]) -> "Record":
        updated = self.copy()
        for name, value in values.items():
            updated.fields[str(name)] = _as_text(value)
        return updated

    @property
    def known(self) -> Dict[str, str]:
        return {key: value for key, value in self.fields.items() if key in KNOWN_FIELDS}

    @property
    def extras(self) -> Dict[str, str]:
        return {key: value for key, value in self.fields.items() if key not in KNOWN_FIELDS}

    def to_dict(self) -> Dict[str, str]:
        data = {"id": self.id}
        data.update(self.fields)
        return data


def coerce_records(items: Iterable[Record | Mapping[str, Any]]) -> List[Record]:
    """Return copies of ``items`` as :class:`Record` objects."""

    records: List[Record] = []
    seen: set[str] = set()
    for item in items:
        record = item.copy() if isinstance(item, Record) else Record.from_mapping(item)
        if record.id in seen:
            raise ValueError(f"Duplicate record id: {record.id}")
        seen.add(record.id)
        records.append(record)
    return records


def field_names(records: Iterable[Record]) -> List[str]:
    """Return the union of field names in first-seen order."""

    names: List[str] = []
    seen: set[str] = set()
    for record in records:
        for name in record.fields:
            if name not in seen:
                seen.add(name)
                names.append(name)
    return names


def changed_field_names(current: Record, other: Optional[Record]) -> List[str]:
    """Return the fields whose values differ; a missing field reads as ``""``."""

    other = other if other is not None else Record(id=current.id)
    names = list(current.fields)
    names.extend(name for name in other.fields if name not in current.fields)
    return [name for name in names if current.get(name) != other.get(name)]
