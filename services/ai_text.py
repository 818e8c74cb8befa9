"""Text transformation gateway backed by OpenAI-compatible chat completions."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence

import openai

from services.prompts import META_DESCRIPTION_MAX_CHARS, TITLE_MAX_CHARS, BatchItem
from utils.html_sanitize import sanitize_html
from utils.json_parse import (
    extract_json_value,
    first_list_value,
    pick_case_insensitive,
    short_preview_of,
)


_LOGGER = logging.getLogger(__name__)

PROVIDER_GEMINI = "gemini"
PROVIDER_OPENAI = "openai"
PROVIDERS = (PROVIDER_GEMINI, PROVIDER_OPENAI)

GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
GEMINI_BATCH_MODEL = "gemini-2.5-flash"
GEMINI_CONTENT_MODEL = "gemini-2.5-pro"
OPENAI_DEFAULT_MODEL = "gpt-4o"

TRANSIENT_STATUS_CODES = frozenset({429, 500, 503})
DEFAULT_TEMPERATURE = 0.5
DEFAULT_TIMEOUT = 120
MIN_BODY_CHARS = 20
UNTITLED_POST = "Untitled post"

POST_LIST_KEYS = ("posts", "articles", "blogs")
TITLE_KEYS = ("title", "headline", "name")
BODY_KEYS = ("content_html", "contentHtml", "body", "html", "content", "text")
TAG_KEYS = ("tags", "keywords")
EXCERPT_KEYS = ("excerpt", "summary", "description", "short")
META_KEYS = ("meta_description", "metaDescription", "seo_description", "meta", "description")

SYSTEM_INSTRUCTION = f"""Role: world-class direct response copywriter and UI designer.
Audience: online shoppers who decide quickly. Tone: confident, exciting, reassuring.
Write every result in the language requested by the item.

*** MODES ***
- BODY_CONTENT: a complete designed HTML product description using the BODY TEMPLATE below.
- PROFESSIONAL: product title. {{Keyword}} + {{Feature}}. MUST start with the focus keyword. Max {TITLE_MAX_CHARS} chars.
- SEO_TITLE: meta title. Starts with the exact keyword. Max {TITLE_MAX_CHARS} chars.
- SEO_DESCRIPTION: meta description. {{Keyword}} + {{Benefit}} + {{USP}} + {{CTA}}. Max {META_DESCRIPTION_MAX_CHARS} chars.
- SEO_SLUG: lowercase, hyphenated URL handle containing the keyword.
- SEO_KEYWORD: one high-intent commercial keyword. Never "price" or "buy".
- SHORT_BLURB: a CTR-focused excerpt, benefit plus call to action.
- SELLING_POINTS: five bullets, one per line, each starting with "•".
- FACTUAL: a direct translation. Keep numbers, units and comma separation.
Never include the brand name unless the item asks for it.

*** COLOUR PALETTES (pick one that matches the product) ***
1. Blue (tech, general): primary #3a7abf, light #bde2ff, secondary #4a9ed9, gradient linear-gradient(135deg,#f6fbff 0%,#e6f4ff 100%)
2. Pink/Purple (beauty): primary #ff5c97, light #ffd6e7, secondary #d63031, gradient linear-gradient(135deg,#ffd6e7 0%,#c8e9ff 100%)
3. Cyan (health, hygiene): primary #0096a3, light #bce5eb, secondary #1c4b57, gradient linear-gradient(135deg,#fafafa 0%,#f0f7f9 100%)
4. Green (nature, eco): primary #27ae60, light #a9dfbf, secondary #1e8449, gradient linear-gradient(135deg,#f0f9e8 0%,#e8f8f5 100%)
5. Orange (kids, fun): primary #e67e22, light #fad7a0, secondary #d35400, gradient linear-gradient(135deg,#fef9e7 0%,#fdebd0 100%)

*** BODY TEMPLATE ***
<div style="font-family:'Heebo',Arial,sans-serif; line-height:1.8; color:#1d1d1d; max-width:760px; margin:auto; padding:18px;">
  <div style="background:{{GRADIENT}}; border-radius:16px; padding:22px;">
    <h2 style="margin:0; color:{{PRIMARY}};">{{HEADLINE}}</h2>
    <p style="margin:10px 0 0; font-size:15.5px;">{{SALES_HOOK_PARAGRAPH}}</p>
  </div>
  <ul style="list-style:none; padding:0; margin:18px 0;">{{3_TO_5_BENEFIT_ITEMS_WITH_{{LIGHT}}_ICON_BADGES}}</ul>
  <table style="width:100%; border-collapse:collapse; margin:18px 0;">{{3_TO_4_COMPARISON_ROWS}}</table>
  <div style="background:#2f3640; color:#fff; padding:16px; border-radius:12px; text-align:center; margin-top:20px;">{{GUARANTEE_AND_CTA}}</div>
</div>
Use dir="rtl" and text-align:right on the outer div for right-to-left languages. No markdown.

*** OUTPUT FORMAT ***
Return ONLY a JSON object: {{"results": ["result1", "result2", ...]}}
with exactly one string per input item, in input order.
"""

CONTENT_SYSTEM_INSTRUCTION = (
    "You are an elite SEO editor. You write comprehensive, long-form content. "
    "You never output Markdown."
)

_CONTENT_STYLES = {
    "toc_box": "background-color:#f8fafc; border:1px solid #e2e8f0; border-radius:12px; padding:24px; margin-bottom:40px;",
    "pro_tip": "background-color:#f0fdf4; border-right:4px solid #22c55e; padding:20px 24px; border-radius:8px; margin:32px 0; color:#14532d;",
    "table": "width:100%; border-collapse:collapse; margin:30px 0; border:1px solid #e2e8f0;",
    "cta": "background:linear-gradient(135deg,#111 0%,#333 100%); color:#fff; padding:16px 36px; border-radius:50px; font-weight:700; text-decoration:none; display:inline-block;",
    "image": "margin:0 0 40px 0; width:100%; border-radius:12px; overflow:hidden;",
}


class ProviderError(RuntimeError):
    """Raised when the text provider call fails."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Rate limits and transient server errors; worth retrying."""


class PermanentProviderError(ProviderError):
    """Bad requests, auth failures and unusable answers; never retried."""


def classify_provider_error(exc: BaseException) -> ProviderError:
    """Map a raw client exception onto the transient/permanent taxonomy."""

    if isinstance(exc, ProviderError):
        return exc

    status = getattr(exc, "status_code", None)
    if not isinstance(status, int):
        response = getattr(exc, "response", None)
        status = getattr(response, "status_code", None)
    message = str(exc) or exc.__class__.__name__

    if isinstance(status, int):
        cls = TransientProviderError if status in TRANSIENT_STATUS_CODES else PermanentProviderError
        return cls(message, status_code=status)

    for code in sorted(TRANSIENT_STATUS_CODES):
        if re.search(rf"\b{code}\b", message):
            return TransientProviderError(message, status_code=code)
    return PermanentProviderError(message)


@dataclass
class ContentItem:
    title: str
    body_html: str
    tags: List[str] = field(default_factory=list)
    excerpt: str = ""
    meta_description: str = ""


def _message_content(response: object) -> str:
    """Return the first choice's message content of a chat completion."""

    if isinstance(response, Mapping):
        choices = response.get("choices") or []
        if choices and isinstance(choices[0], Mapping):
            message = choices[0].get("message") or {}
            if isinstance(message, Mapping):
                return str(message.get("content") or "")
        return ""

    choices = getattr(response, "choices", None)
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    if isinstance(message, Mapping):
        return str(message.get("content") or "")
    return str(getattr(message, "content", "") or "")


def _is_reasoning_model(model: str) -> bool:
    return model.startswith("o1") or model.startswith("gpt-5")


def _as_tag_list(value: object) -> List[str]:
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item or "").strip()]
    return []


def normalize_content_items(payload: object, count: int) -> List[ContentItem]:
    """Turn a loosely shaped model answer into at most ``count`` items."""

    raw_posts: list = []
    if isinstance(payload, list):
        raw_posts = payload
    elif isinstance(payload, Mapping):
        posts = pick_case_insensitive(payload, POST_LIST_KEYS)
        if isinstance(posts, list):
            raw_posts = posts
        elif pick_case_insensitive(payload, ("title",)):
            raw_posts = [payload]
        else:
            raw_posts = first_list_value(payload) or []

    items: List[ContentItem] = []
    for post in raw_posts:
        if not isinstance(post, Mapping):
            continue
        body = str(pick_case_insensitive(post, BODY_KEYS) or "")
        if len(body) <= MIN_BODY_CHARS:
            continue
        excerpt = str(pick_case_insensitive(post, EXCERPT_KEYS) or "")
        items.append(
            ContentItem(
                title=str(pick_case_insensitive(post, TITLE_KEYS) or UNTITLED_POST),
                body_html=sanitize_html(body),
                tags=_as_tag_list(pick_case_insensitive(post, TAG_KEYS)),
                excerpt=excerpt,
                meta_description=str(pick_case_insensitive(post, META_KEYS) or excerpt),
            )
        )
    return items[: max(count, 0)]


class TextTransformer:
    """Batched text-in/text-out gateway over an OpenAI-compatible client.

    ``provider="gemini"`` points the same client at Google's
    OpenAI-compatible endpoint.
    """

    def __init__(
        self,
        *,
        provider: str = PROVIDER_GEMINI,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        content_model: Optional[str] = None,
        language: str = "Hebrew",
        client: Any = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        if provider not in PROVIDERS:
            raise ValueError(f"Unknown provider: {provider}")
        self.provider = provider
        self.language = language
        self.timeout = timeout
        if provider == PROVIDER_GEMINI:
            self.model = model or GEMINI_BATCH_MODEL
            self.content_model = content_model or GEMINI_CONTENT_MODEL
        else:
            self.model = model or OPENAI_DEFAULT_MODEL
            self.content_model = content_model or self.model

        if client is None:
            if not api_key:
                label = "Gemini" if provider == PROVIDER_GEMINI else "OpenAI"
                raise PermanentProviderError(f"{label} API key is missing. Please check Settings.")
            if provider == PROVIDER_GEMINI:
                client = openai.OpenAI(api_key=api_key, base_url=GEMINI_OPENAI_BASE_URL)
            else:
                client = openai.OpenAI(api_key=api_key)
        self.client = client

    @classmethod
    def from_config(cls, config: Any, *, client: Any = None) -> "TextTransformer":
        """Build a transformer from an :class:`services.settings.AiConfig`."""

        gemini = config.provider == PROVIDER_GEMINI
        return cls(
            provider=config.provider,
            api_key=config.gemini_key if gemini else config.openai_key,
            model=None if gemini else (config.openai_model or None),
            language=config.language,
            client=client,
        )

    def _complete(self, system: str, prompt: str, model: str) -> str:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "response_format": {"type": "json_object"},
            "timeout": self.timeout,
        }
        if not _is_reasoning_model(model):
            kwargs["temperature"] = DEFAULT_TEMPERATURE

        _LOGGER.debug("Calling %s model %s", self.provider, model)
        try:
            response = self.client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise classify_provider_error(exc) from exc
        return _message_content(response)

    def transform_batch(self, items: Sequence[BatchItem]) -> List[str]:
        """Return one rewritten string per item, in input order."""

        if not items:
            return []
        payload = json.dumps([item.to_payload() for item in items], ensure_ascii=False, indent=2)
        prompt = (
            "Task: process these catalog items.\n\n"
            f"INPUT DATA:\n{payload}\n\n"
            "Follow the mode rules from the system instructions for every item. "
            'Return ONLY {"results": [...]} with one string per item.'
        )
        raw = self._complete(SYSTEM_INSTRUCTION, prompt, self.model)
        parsed = extract_json_value(raw)
        if parsed is None:
            raise PermanentProviderError(
                f"Provider returned invalid JSON: {short_preview_of(raw)!r}"
            )
        results = first_list_value(parsed)
        if results is None or len(results) != len(items):
            got = "no list" if results is None else f"{len(results)} results"
            raise PermanentProviderError(f"Expected {len(items)} results, got {got}")
        return ["" if value is None else str(value) for value in results]

    def generate_content_set(
        self,
        topic: str,
        target_url: str,
        image_url: str = "",
        count: int = 3,
    ) -> List[ContentItem]:
        """Ask for ``count`` distinct long-form posts about ``topic``."""

        image_block = ""
        if image_url:
            image_block = (
                f'Start the body with <div style="{_CONTENT_STYLES["image"]}">'
                f'<img src="{image_url}" alt="{topic}" style="width:100%;height:auto;display:block;"></div>.\n'
            )
        prompt = (
            f"Role: senior SEO content director.\nLanguage: {self.language}.\n"
            f'Product: "{topic}"\nTarget URL: "{target_url}"\n'
            f"Goal: write {count} DISTINCT long-form pillar blog posts (1200+ words of HTML each).\n"
            "Give each post its own angle: a how-to, a comparison, a best-of list or a deep review.\n\n"
            f"{image_block}"
            "Structure every post with:\n"
            "- a title containing a high-intent commercial keyword;\n"
            f"- meta_description of at most {META_DESCRIPTION_MAX_CHARS} chars and a feed excerpt;\n"
            f'- a table of contents box <div style="{_CONTENT_STYLES["toc_box"]}"> with anchor links;\n'
            f'- an intro that links to "{target_url}" within the first 100 words using the keyword as anchor;\n'
            "- education, product pivot and how-to sections as H2s;\n"
            f'- one pro tip box <div style="{_CONTENT_STYLES["pro_tip"]}">;\n'
            f'- a comparison table <table style="{_CONTENT_STYLES["table"]}">;\n'
            "- five FAQ entries;\n"
            f'- a closing button <a href="{target_url}" style="{_CONTENT_STYLES["cta"]}">.\n'
            f'Every link href MUST be exactly "{target_url}". Output raw HTML only, no markdown.\n\n'
            'OUTPUT FORMAT: {"posts": [{"title": "...", "content_html": "...", "tags": [], '
            '"excerpt": "...", "meta_description": "..."}]}'
        )
        raw = self._complete(CONTENT_SYSTEM_INSTRUCTION, prompt, self.content_model)
        parsed = extract_json_value(raw)
        if parsed is None:
            raise PermanentProviderError(
                f"Provider returned invalid JSON: {short_preview_of(raw)!r}"
            )
        items = normalize_content_items(parsed, count)
        if not items:
            _LOGGER.warning(
                "Content answer for %r held no usable posts: %s", topic, short_preview_of(raw)
            )
        return items
