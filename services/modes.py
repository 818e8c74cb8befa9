"""Optimization modes and the field-name heuristics that pick defaults."""

from __future__ import annotations

from enum import Enum
from typing import Callable, Iterable, List, Mapping, Sequence, Tuple


class OptimizationMode(str, Enum):
    PROFESSIONAL = "PROFESSIONAL"
    SEO_TITLE = "SEO_TITLE"
    SEO_DESCRIPTION = "SEO_DESCRIPTION"
    SEO_SLUG = "SEO_SLUG"
    SEO_KEYWORD = "SEO_KEYWORD"
    SHORT_BLURB = "SHORT_BLURB"
    BODY_CONTENT = "BODY_CONTENT"
    SELLING_POINTS = "SELLING_POINTS"
    FACTUAL = "FACTUAL"


MODE_LABELS: Mapping[OptimizationMode, str] = {
    OptimizationMode.PROFESSIONAL: "Professional marketing title",
    OptimizationMode.SEO_TITLE: "SEO meta title (keyword first)",
    OptimizationMode.SEO_DESCRIPTION: "SEO meta description",
    OptimizationMode.SEO_SLUG: "SEO slug / URL handle",
    OptimizationMode.SEO_KEYWORD: "Focus keyword research",
    OptimizationMode.SHORT_BLURB: "Short description (excerpt)",
    OptimizationMode.BODY_CONTENT: "Body content (designed HTML)",
    OptimizationMode.SELLING_POINTS: "Selling bullets",
    OptimizationMode.FACTUAL: "Plain factual translation",
}

DEFAULT_MODE = OptimizationMode.FACTUAL

# Fields that are shown with the record but never offered as editable columns.
HIDDEN_FIELDS: frozenset[str] = frozenset({"image", "status", "permalink"})

# Editable fields selected by default when the catalog exposes them.
DEFAULT_SELECTED_FIELDS: Tuple[str, ...] = (
    "name",
    "description",
    "slug",
    "rank_math_title",
    "rank_math_description",
    "rank_math_focus_keyword",
    "selling_bullets",
    "option1_name",
    "option1_values",
    "option2_name",
    "option2_values",
    "option3_name",
    "option3_values",
)

RECOMMENDED_PATTERNS: Tuple[str, ...] = (
    "title",
    "name",
    "content",
    "description",
    "excerpt",
    "rank_math",
    "yoast",
    "seo",
    "keyword",
    "body",
    "slug",
    "url",
    "uri",
    "permalink",
    "short",
)

TECHNICAL_PATTERNS: Tuple[str, ...] = (
    "id",
    "sku",
    "parent",
    "status",
    "date",
    "price",
    "stock",
    "weight",
    "dimensions",
    "score",
    "cursor",
)


def _contains_any(*needles: str) -> Callable[[str], bool]:
    return lambda name: any(needle in name for needle in needles)


def _contains_all(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda name: all(predicate(name) for predicate in predicates)


def _lacks(needle: str) -> Callable[[str], bool]:
    return lambda name: needle not in name


_SEO_MARKER = _contains_any("rank", "seo")

# Ordered (label, predicate, mode) rules; the first match wins. Field names
# often satisfy several predicates ("seo_short_description"), so the order
# below is part of the contract.
MODE_RULES: Tuple[Tuple[str, Callable[[str], bool], OptimizationMode], ...] = (
    ("selling points", _contains_any("selling", "bullets"), OptimizationMode.SELLING_POINTS),
    ("option/variant", _contains_any("option", "value", "שיוך"), OptimizationMode.FACTUAL),
    ("keyword", _contains_any("keyword"), OptimizationMode.SEO_KEYWORD),
    ("slug", _contains_any("slug"), OptimizationMode.SEO_SLUG),
    (
        "seo description",
        _contains_all(_SEO_MARKER, _contains_any("desc")),
        OptimizationMode.SEO_DESCRIPTION,
    ),
    ("seo", _SEO_MARKER, OptimizationMode.SEO_TITLE),
    (
        "long description",
        _contains_all(_contains_any("description"), _lacks("short")),
        OptimizationMode.BODY_CONTENT,
    ),
    ("short description", _contains_any("short"), OptimizationMode.SHORT_BLURB),
    ("name/title", _contains_any("name", "title"), OptimizationMode.PROFESSIONAL),
)


def detect_default_mode(field_name: str) -> OptimizationMode:
    """Return the default optimization mode for ``field_name``."""

    lowered = str(field_name or "").casefold()
    for _label, predicate, mode in MODE_RULES:
        if predicate(lowered):
            return mode
    return DEFAULT_MODE


def coerce_mode(value: object) -> OptimizationMode:
    """Return ``value`` as a mode, falling back to :data:`DEFAULT_MODE`."""

    if isinstance(value, OptimizationMode):
        return value
    if isinstance(value, str):
        try:
            return OptimizationMode(value.strip().upper())
        except ValueError:
            return DEFAULT_MODE
    return DEFAULT_MODE


def is_recommended(field_name: str) -> bool:
    lowered = str(field_name or "").casefold()
    return any(pattern in lowered for pattern in RECOMMENDED_PATTERNS)


def is_technical(field_name: str) -> bool:
    lowered = str(field_name or "").casefold()
    return any(pattern in lowered for pattern in TECHNICAL_PATTERNS)


def editable_columns(field_names: Iterable[str]) -> List[str]:
    """Return ``field_names`` without hidden fields, preserving order."""

    columns: List[str] = []
    for name in field_names:
        if name in HIDDEN_FIELDS or name == "id" or name in columns:
            continue
        columns.append(name)
    return columns


def default_selected_columns(columns: Sequence[str]) -> List[str]:
    """Pick the columns that are pre-selected after a load."""

    known = [column for column in columns if column in DEFAULT_SELECTED_FIELDS]
    if known:
        return known
    return [
        column
        for column in columns
        if is_recommended(column) and not is_technical(column)
    ]


def default_column_modes(columns: Iterable[str]) -> dict[str, OptimizationMode]:
    return {column: detect_default_mode(column) for column in columns}
