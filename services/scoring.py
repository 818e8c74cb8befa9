"""On-page SEO score for a single record.

Pure function of the record's current values; used for display only.
"""

from __future__ import annotations

import math
import re
from typing import List, Tuple
from urllib.parse import quote

from services.records import (
    FIELD_DESCRIPTION,
    FIELD_FOCUS_KEYWORD,
    FIELD_IMAGE,
    FIELD_NAME,
    FIELD_SEO_DESCRIPTION,
    FIELD_SEO_TITLE,
    FIELD_SLUG,
    Record,
)
from utils.html_sanitize import strip_html

MAX_SCORE = 100
NO_KEYWORD_SCORE = 10
MAX_SLUG_CHARS = 75
DENSITY_RANGE = (0.5, 2.5)


def score_record(record: Record) -> Tuple[int, List[str]]:
    """Return ``(score, issues)`` with ``score`` in ``[0, 100]``."""

    keyword = record.get(FIELD_FOCUS_KEYWORD).strip().lower()
    if not keyword:
        return NO_KEYWORD_SCORE, ["No focus keyword set"]

    title = (record.get(FIELD_SEO_TITLE) or record.get(FIELD_NAME)).lower()
    meta = record.get(FIELD_SEO_DESCRIPTION).lower()
    slug = record.get(FIELD_SLUG).lower()
    content = record.get(FIELD_DESCRIPTION).lower()
    text = strip_html(content)
    hyphenated = keyword.replace(" ", "-")

    score = 0
    issues: List[str] = []

    if keyword in title:
        score += 10
    elif hyphenated in title:
        score += 5
    else:
        issues.append("Focus keyword missing from title")

    if keyword in meta:
        score += 10
    else:
        issues.append("Focus keyword missing from meta description")

    if keyword in slug or hyphenated in slug or quote(keyword).lower() in slug:
        score += 10
    else:
        issues.append("Focus keyword missing from URL slug")

    intro = text[: math.ceil(len(text) * 0.1)]
    if keyword in intro:
        score += 15
    else:
        issues.append("Focus keyword missing from the first 10% of the content")

    if ("<h2" in content or "<h3" in content) and keyword in content:
        score += 10
    else:
        issues.append("No subheadings with the focus keyword")

    word_count = len(text.split())
    occurrences = len(re.findall(re.escape(keyword), text))
    if word_count:
        density = occurrences / word_count * 100
        low, high = DENSITY_RANGE
        if low <= density <= high:
            score += 10
        else:
            if density > 0:
                score += 4
            issues.append(f"Keyword density {density:.1f}% is outside {low}-{high}%")
    else:
        issues.append("Content is empty")

    if len(slug) < MAX_SLUG_CHARS:
        score += 5
    else:
        issues.append(f"URL slug is {MAX_SLUG_CHARS} characters or longer")

    if word_count > 250:
        score += 5
    else:
        issues.append("Content is shorter than 250 words")
    if word_count > 600:
        score += 5

    position = title.find(keyword)
    if position == 0 or position < len(title) / 2:
        score += 10
    else:
        issues.append("Focus keyword is not near the start of the title")

    if re.search(r"\d", title):
        score += 5
    else:
        issues.append("Title has no number")

    if "<ul" in content or "<ol" in content:
        score += 5
    else:
        issues.append("Content has no lists")

    if "<img" in content or record.get(FIELD_IMAGE):
        score += 5
    else:
        issues.append("No images")

    return min(MAX_SCORE, score), issues
