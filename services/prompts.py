"""Per-field instruction builders for the batch transformation pipeline."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Sequence, Tuple

from services.modes import DEFAULT_MODE, OptimizationMode, coerce_mode
from services.records import (
    FIELD_FOCUS_KEYWORD,
    FIELD_NAME,
    FIELD_SHORT_DESCRIPTION,
    Record,
)

TITLE_MAX_CHARS = 60
META_DESCRIPTION_MAX_CHARS = 155


@dataclass(frozen=True)
class PromptSettings:
    language: str = "Hebrew"
    brand_terms: Tuple[str, ...] = ()


@dataclass(frozen=True)
class BatchItem:
    text: str
    mode: OptimizationMode
    field: str = ""

    def to_payload(self) -> Dict[str, str]:
        return {"text": self.text, "mode": self.mode.value, "columnName": self.field}


@dataclass(frozen=True)
class _Context:
    record: Record
    column: str
    content: str
    settings: PromptSettings = PromptSettings()

    @property
    def product(self) -> str:
        return _quote(self.record.get(FIELD_NAME))

    @property
    def keyword(self) -> str:
        return self.record.get(FIELD_FOCUS_KEYWORD).strip()

    @property
    def language(self) -> str:
        return self.settings.language

    @property
    def no_brand(self) -> str:
        clause = "Do NOT include the brand name"
        terms = [term for term in self.settings.brand_terms if term.strip()]
        if terms:
            clause += " (" + ", ".join(_quote(term) for term in terms) + ")"
        return clause + "."


def _quote(value: str) -> str:
    return json.dumps(value or "", ensure_ascii=False)


def _body_content(ctx: _Context) -> str:
    return (
        f"CONTEXT: {{ Product: {ctx.product}, CurrentKeyword: {_quote(ctx.keyword)} }} "
        f"SOURCE_CONTENT: {ctx.content}\n\n"
        "MANDATORY: Generate high-end designed HTML using the body template and the "
        "colour palette rules defined in the system instructions. STRICTLY NO MARKDOWN. "
        f"Write in {ctx.language}. {ctx.no_brand}"
    )


def _seo_slug(ctx: _Context) -> str:
    return (
        f"CONTEXT: {{ Product Name: {ctx.product}, Keyword: {_quote(ctx.keyword)} }} "
        f"TASK: Generate a short {ctx.language} URL slug, lowercase and hyphenated, "
        f"that contains the keyword. {ctx.no_brand}"
    )


def _seo_keyword(ctx: _Context) -> str:
    description = _quote(ctx.record.get(FIELD_SHORT_DESCRIPTION))
    return (
        f"CONTEXT: {{ Product: {ctx.product}, Desc: {description} }} "
        f"TASK: Generate 1 high-intent, specific commercial keyword (3-4 words) in "
        f"{ctx.language}. Avoid generic terms. Do NOT use words like \"price\" or \"buy\"."
    )


def _short_blurb(ctx: _Context) -> str:
    base = f"CONTEXT: {{ Product: {ctx.product}, Keyword: {_quote(ctx.keyword)} }} "
    if not ctx.content.strip():
        return (
            base
            + f"TASK: Generate a CTR-focused short description in {ctx.language} "
            f"(Benefit + CTA). {ctx.no_brand}"
        )
    return (
        base
        + f"TASK: Rewrite this short description in {ctx.language} as a CTR-focused "
        f"excerpt (Benefit + CTA). {ctx.no_brand} Input: {_quote(ctx.content)}"
    )


def _seo_title(ctx: _Context) -> str:
    keyword = ctx.keyword or "AUTO_DETECT"
    return (
        f"CONTEXT: {{ Product: {ctx.product}, Keyword: {_quote(keyword)} }} "
        "TASK: Generate the SEO meta title. CRITICAL: the title MUST start with the "
        f"exact keyword phrase {_quote(keyword)} character-for-character, prepositions "
        "included. Formula: {Exact Keyword} - {Feature}. "
        f"Max {TITLE_MAX_CHARS} chars. {ctx.no_brand}"
    )


def _seo_description(ctx: _Context) -> str:
    keyword = ctx.keyword or "AUTO_DETECT"
    description = _quote(ctx.record.get(FIELD_SHORT_DESCRIPTION))
    return (
        f"CONTEXT: {{ Product: {ctx.product}, Keyword: {_quote(keyword)}, "
        f"Desc: {description} }} "
        "TASK: Generate the meta description. Formula: {Keyword} + {Benefit} + {USP} "
        f"+ {{CTA}}. {ctx.no_brand} Max {META_DESCRIPTION_MAX_CHARS} chars."
    )


def _professional(ctx: _Context) -> str:
    if ctx.keyword:
        keyword = _quote(ctx.keyword)
        return (
            f"CONTEXT: {{ Product: {ctx.product}, Keyword: {keyword} }} "
            f"TASK: Generate a professional product title in {ctx.language}. "
            f"CRITICAL RULE: the title MUST begin with the EXACT keyword phrase {keyword}. "
            "Copy the keyword verbatim; do not drop or change any letter or preposition. "
            f"{ctx.no_brand}"
        )
    return (
        f"CONTEXT: {{ Product: {ctx.product} }} "
        f"TASK: Generate a professional product title in {ctx.language}. "
        f"Formula: {{Product Name}} - {{Main Feature}}. {ctx.no_brand}"
    )


def _selling_points(ctx: _Context) -> str:
    return (
        f"CONTEXT: {{ Product: {ctx.product}, Keyword: {_quote(ctx.keyword)} }} "
        f"TASK: Write 5 short, punchy selling bullets (benefits) in {ctx.language}. "
        "Format: plain text, one bullet per line, each starting with \"•\". "
        "Max 4 words per bullet. Focus on relief, comfort and innovation."
    )


def _factual(ctx: _Context) -> str:
    name = ctx.column.casefold()
    content = _quote(ctx.content)
    if name.startswith("option") or "name" in name or "value" in name:
        return (
            f"TASK: Translate these product option names/values to {ctx.language}. "
            "Examples: 'Small' -> small, 'Blue' -> blue, 'Size' -> size, 'Color' -> colour, "
            f"each in {ctx.language}. Maintain comma separation strictly. Input: {content}"
        )
    if "שיוך" in name:
        return (
            f"TASK: Translate these product option names/values to {ctx.language}. "
            f"Input: {content}"
        )
    return f"TASK: Translate to {ctx.language}. Preserve numbers. Input: {content}"


_BUILDERS: Mapping[OptimizationMode, Callable[[_Context], str]] = {
    OptimizationMode.BODY_CONTENT: _body_content,
    OptimizationMode.SEO_SLUG: _seo_slug,
    OptimizationMode.SEO_KEYWORD: _seo_keyword,
    OptimizationMode.SHORT_BLURB: _short_blurb,
    OptimizationMode.SEO_TITLE: _seo_title,
    OptimizationMode.SEO_DESCRIPTION: _seo_description,
    OptimizationMode.PROFESSIONAL: _professional,
    OptimizationMode.SELLING_POINTS: _selling_points,
    OptimizationMode.FACTUAL: _factual,
}


def build_instruction(
    record: Record,
    field_name: str,
    mode: OptimizationMode | str | None,
    settings: PromptSettings | None = None,
) -> str:
    """Return the instruction string for one field of ``record``."""

    resolved = coerce_mode(mode) if mode is not None else DEFAULT_MODE
    ctx = _Context(
        record=record,
        column=field_name,
        content=record.get(field_name),
        settings=settings or PromptSettings(),
    )
    return _BUILDERS[resolved](ctx).strip()


def build_batch_items(
    record: Record,
    fields: Sequence[str],
    modes: Mapping[str, OptimizationMode],
    settings: PromptSettings | None = None,
) -> List[BatchItem]:
    """Build the per-field items for one record, skipping empty instructions."""

    items: List[BatchItem] = []
    for field_name in fields:
        mode = coerce_mode(modes.get(field_name, DEFAULT_MODE))
        text = build_instruction(record, field_name, mode, settings)
        if not text:
            continue
        items.append(BatchItem(text=text, mode=mode, field=field_name))
    return items
