"""Long-form content generation and publishing for selected records."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from connectors.shopify.client import CatalogError, ContentDraft
from services.ai_text import ContentItem, ProviderError
from services.records import FIELD_IMAGE, FIELD_NAME, FIELD_PERMALINK, FIELD_SLUG, Record
from services.transform import MAX_ATTEMPTS, RETRY_BASE_DELAY, call_with_retry
from services.workspace import TransformStatus, Workspace
from utils.http import normalize_shop_domain


_LOGGER = logging.getLogger(__name__)

DEFAULT_POSTS_PER_RECORD = 3
PREFERRED_CONTAINER = "news"


class ContentError(RuntimeError):
    """Raised when the content flow cannot produce any article."""


class ZeroResultError(ContentError):
    """Raised when the provider returns nothing usable for one record."""

    def __init__(self, record_id: str, name: str = ""):
        label = name or record_id
        super().__init__(
            f"AI generated 0 valid posts for product: {label}. "
            "Try reducing strictness or checking the AI key."
        )
        self.record_id = record_id


class ContentGenerator(Protocol):
    def generate_content_set(
        self, topic: str, target_url: str, image_url: str = "", count: int = 3
    ) -> List[ContentItem]: ...


class ContentSink(Protocol):
    def fetch_containers(self) -> List[Dict[str, str]]: ...

    def create_content(self, container_id: str, draft: ContentDraft) -> Dict[str, str]: ...


@dataclass
class PublishResult:
    container: Optional[Dict[str, str]] = None
    created: List[Dict[str, str]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def pick_container(containers: Sequence[Mapping[str, str]]) -> Dict[str, str]:
    """Return the ``news`` container if present, else the first one."""

    if not containers:
        raise ContentError(
            "No blogs found in the store. Make sure a blog exists and the token can read it."
        )
    for container in containers:
        handle = str(container.get("handle") or "")
        title = str(container.get("title") or "")
        if handle == PREFERRED_CONTAINER or title.lower() == PREFERRED_CONTAINER:
            return dict(container)
    return dict(containers[0])


def target_url_for(record: Record, shop: str = "") -> str:
    """Return the public URL articles about ``record`` should link to."""

    permalink = record.get(FIELD_PERMALINK).strip()
    if permalink:
        return permalink
    slug = record.get(FIELD_SLUG).strip()
    domain = normalize_shop_domain(shop)
    if slug and domain:
        return f"https://{domain}/products/{slug}"
    return "#"


class ContentPublisher:
    """Generate articles for each selected record and publish them.

    Shares the workspace processing indicator with the transformation
    pipeline, so the two never run at the same time. Working copy, history
    and sync status are left alone.
    """

    def __init__(
        self,
        workspace: Workspace,
        catalog: ContentSink,
        generator: ContentGenerator,
        *,
        shop: str = "",
        posts_per_record: int = DEFAULT_POSTS_PER_RECORD,
        max_attempts: int = MAX_ATTEMPTS,
        retry_base_delay: float = RETRY_BASE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.workspace = workspace
        self.catalog = catalog
        self.generator = generator
        self.shop = shop
        self.posts_per_record = posts_per_record
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.sleep = sleep

    def run(
        self,
        ids: Optional[Sequence[str]] = None,
        *,
        on_progress: Optional[Callable[[TransformStatus], None]] = None,
    ) -> PublishResult:
        ws = self.workspace
        target_ids = [rid for rid in (ids if ids is not None else ws.selected_ids) if rid in ws]
        ws.start_processing(len(target_ids) * self.posts_per_record)

        result = PublishResult()
        try:
            result.container = pick_container(self.catalog.fetch_containers())
            _LOGGER.info("Publishing articles to blog %s", result.container.get("title"))
            for record_id in target_ids:
                self._publish_for(ws.get(record_id), result, on_progress)
            if not result.created:
                raise ContentError("No articles were created.")
        except (ContentError, CatalogError, ProviderError) as exc:
            result.error = str(exc)
            _LOGGER.error("Content generation stopped: %s", exc)
        finally:
            ws.finish_processing(result.error)

        _LOGGER.info("Created %d articles", len(result.created))
        return result

    def _publish_for(
        self,
        record: Record,
        result: PublishResult,
        on_progress: Optional[Callable[[TransformStatus], None]],
    ) -> None:
        name = record.get(FIELD_NAME)
        url = target_url_for(record, self.shop)
        image = record.get(FIELD_IMAGE)
        posts = call_with_retry(
            lambda: self.generator.generate_content_set(
                name, url, image, self.posts_per_record
            ),
            attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            sleep=self.sleep,
            label=f"content for {record.id}",
        )
        if not posts:
            raise ZeroResultError(record.id, name)

        container_id = result.container["id"]
        for post in posts:
            draft = ContentDraft(
                title=post.title,
                body_html=post.body_html,
                tags=list(post.tags),
                excerpt=post.excerpt,
                image=image or None,
                seo_title=post.title,
                seo_description=post.meta_description,
            )
            created = self.catalog.create_content(container_id, draft)
            if not created or not created.get("id"):
                _LOGGER.error("Article creation for %s returned no id", record.id)
                continue
            result.created.append(created)
            status = self.workspace.advance(1)
            if on_progress is not None:
                on_progress(status)
