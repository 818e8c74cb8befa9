"""Helpers for parsing JSON payloads returned by LLM providers."""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Mapping


_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", flags=re.IGNORECASE)


def _sanitize_json_text(text: str) -> str:
    """Normalize minor formatting issues commonly produced by LLMs."""

    replacements = {
        "\u201c": '"',  # left double quotation mark
        "\u201d": '"',  # right double quotation mark
    }
    for bad, good in replacements.items():
        text = text.replace(bad, good)
    return _TRAILING_COMMA_RE.sub(r"\1", text)


def _outer_bounds(text: str) -> tuple[int, int]:
    """Return the span of the outermost object or array in ``text``."""

    brace = text.find("{")
    bracket = text.find("[")
    if brace != -1 and (bracket == -1 or brace < bracket):
        return brace, text.rfind("}")
    if bracket != -1:
        return bracket, text.rfind("]")
    return -1, -1


def _attempt_parse(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


def extract_json_value(s: object) -> dict | list | None:
    """Best-effort extraction of the JSON object or array embedded in ``s``.

    Markdown code fences, smart double quotes and dangling commas are
    tolerated. Returns ``None`` when nothing parseable is found.
    """

    if not isinstance(s, str):
        return None

    cleaned = _FENCE_RE.sub("", s).strip()
    if not cleaned:
        return None

    parsed = _attempt_parse(cleaned)
    if isinstance(parsed, (dict, list)):
        return parsed

    start, end = _outer_bounds(cleaned)
    if start == -1 or end <= start:
        return None

    candidate = _sanitize_json_text(cleaned[start : end + 1])
    parsed = _attempt_parse(candidate)
    if isinstance(parsed, (dict, list)):
        return parsed
    return None


def first_list_value(value: object) -> list | None:
    """Return ``value`` if it is a list, else the first list nested one level in."""

    if isinstance(value, list):
        return value
    if isinstance(value, Mapping):
        for item in value.values():
            if isinstance(item, list):
                return item
    return None


def pick_case_insensitive(data: object, keys: Iterable[str]) -> Any:
    """Return the first truthy value of ``keys`` in ``data`` ignoring case.

    Keys are tried in order; for each key an exact match wins over a
    case-insensitive one.
    """

    if not isinstance(data, Mapping):
        return None
    lowered = {str(key).casefold(): key for key in data.keys()}
    for key in keys:
        value = data.get(key)
        if value:
            return value
        actual = lowered.get(key.casefold())
        if actual is not None and data.get(actual):
            return data[actual]
    return None


def short_preview_of(value: object, *, max_len: int = 120) -> str:
    """Return a short preview string suitable for error messages."""

    if isinstance(value, str):
        text = re.sub(r"\s+", " ", value.strip())
    else:
        text = str(value or "").strip()

    if not text:
        return ""

    return text[:max_len]
