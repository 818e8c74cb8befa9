"""Utilities for sanitizing HTML fragments returned by LLM responses."""

from __future__ import annotations

import re

__all__ = ["sanitize_html", "strip_html"]


# Symbols that often appear before the HTML payload (BOM, emojis, whitespace).
_LEADING_JUNK = "\ufeff\u200b\u200c\u200d\ufe0f\u26a0⚠️ \t\n\r"
_FENCE_RE = re.compile(r"^```(?:html)?\s*|\s*```$", flags=re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")


def sanitize_html(html: str) -> str:
    """Return ``html`` without code fences, leading junk or unclosed ``<p>`` tags.

    Generated article bodies sometimes arrive wrapped in a markdown fence or
    prefixed with a BOM/emoji, and paragraphs are occasionally left open. The
    remote store accepts such markup but renders it badly, so the fence and
    prefix are removed and missing closing tags appended. Otherwise valid
    markup is left untouched.
    """

    if not isinstance(html, str):
        html = "" if html is None else str(html)

    sanitized = _FENCE_RE.sub("", html.strip())
    sanitized = sanitized.lstrip(_LEADING_JUNK)

    open_tags = len(
        re.findall(r"<p(?=[\s>])[^>]*>", sanitized, flags=re.IGNORECASE)
    )
    close_tags = len(re.findall(r"</p>", sanitized, flags=re.IGNORECASE))
    if close_tags < open_tags:
        sanitized += "</p>" * (open_tags - close_tags)

    return sanitized


def strip_html(html: object) -> str:
    """Return the text of ``html`` with tags replaced by spaces."""

    if html is None:
        return ""
    return _TAG_RE.sub(" ", str(html))
