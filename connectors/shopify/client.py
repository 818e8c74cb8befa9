"""Client helpers for the Shopify Admin GraphQL API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import requests

from services.records import (
    FIELD_DESCRIPTION,
    FIELD_FOCUS_KEYWORD,
    FIELD_NAME,
    FIELD_SELLING_BULLETS,
    FIELD_SEO_DESCRIPTION,
    FIELD_SEO_TITLE,
    FIELD_SHORT_DESCRIPTION,
    FIELD_SLUG,
    OPTION_SLOTS,
    Record,
)
from utils.http import (
    DEFAULT_TIMEOUT,
    SHOPIFY_API_VERSION,
    GraphQLTransportError,
    build_graphql_url,
    build_shopify_headers,
    get_session,
    graphql_post,
    normalize_shop_domain,
)


_LOGGER = logging.getLogger(__name__)

METAFIELD_NAMESPACE = "custom"
KEYWORD_METAFIELD_KEYS = ("focus_keyword", "seo_keywords")
BULLETS_METAFIELD_KEY = "selling_bullets_a"
DEFAULT_PAGE_SIZE = 50

PRODUCTS_QUERY = """
query Products($first: Int!, $after: String) {
  products(first: $first, after: $after) {
    pageInfo { hasNextPage endCursor }
    edges {
      node {
        id
        title
        handle
        status
        descriptionHtml
        onlineStoreUrl
        featuredImage { url }
        variants(first: 1) { edges { node { sku } } }
        options { id name values }
        seo { title description }
        metafields(first: 20, namespace: "custom") {
          edges { node { key value namespace } }
        }
      }
    }
  }
}
"""

PRODUCT_UPDATE_MUTATION = """
mutation productUpdate($input: ProductInput!) {
  productUpdate(input: $input) {
    product { id title }
    userErrors { field message }
  }
}
"""

OPTION_UPDATE_MUTATION = """
mutation productOptionUpdate($productId: ID!, $option: OptionUpdateInput!) {
  productOptionUpdate(productId: $productId, option: $option) {
    userErrors { field message }
  }
}
"""

BLOGS_QUERY = """
{
  blogs(first: 20) {
    edges { node { id title handle } }
  }
}
"""

ARTICLE_CREATE_MUTATION = """
mutation articleCreate($article: ArticleCreateInput!) {
  articleCreate(article: $article) {
    article { id handle }
    userErrors { field message }
  }
}
"""


class CatalogError(RuntimeError):
    """Raised when the remote catalog rejects or cannot serve a request."""


class CatalogConnectionError(CatalogError):
    """Raised when the catalog is unreachable or answers with garbage."""


class CatalogValidationError(CatalogError):
    """Raised when a mutation comes back with ``userErrors``."""

    def __init__(self, message: str, errors: Sequence[str] = ()):
        super().__init__(message)
        self.errors = list(errors)


@dataclass
class ContentDraft:
    title: str
    body_html: str
    tags: List[str] = field(default_factory=list)
    excerpt: str = ""
    image: Optional[str] = None
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None


def _edges(container: object) -> List[dict]:
    if not isinstance(container, Mapping):
        return []
    edges = container.get("edges") or []
    return [edge.get("node") or {} for edge in edges if isinstance(edge, Mapping)]


def _user_error_messages(result: object) -> List[str]:
    if not isinstance(result, Mapping):
        return []
    messages: List[str] = []
    for error in result.get("userErrors") or []:
        if not isinstance(error, Mapping):
            continue
        message = str(error.get("message") or "").strip()
        field_path = error.get("field")
        if isinstance(field_path, list) and field_path:
            message = f"{'.'.join(str(part) for part in field_path)}: {message}"
        if message:
            messages.append(message)
    return messages


def map_product_node(node: Mapping[str, Any]) -> Record:
    """Convert a GraphQL product node into a workspace :class:`Record`."""

    seo = node.get("seo") or {}
    metafields = {
        str(meta.get("key")): meta.get("value") or ""
        for meta in _edges(node.get("metafields"))
    }
    keyword = next(
        (metafields[key] for key in KEYWORD_METAFIELD_KEYS if metafields.get(key)),
        "",
    )
    variants = _edges(node.get("variants"))
    featured = node.get("featuredImage") or {}

    fields: Dict[str, str] = {
        FIELD_NAME: node.get("title") or "",
        "status": str(node.get("status") or "").lower(),
        FIELD_SLUG: node.get("handle") or "",
        FIELD_DESCRIPTION: node.get("descriptionHtml") or "",
        FIELD_SHORT_DESCRIPTION: seo.get("description") or "",
        "sku": (variants[0].get("sku") if variants else "") or "",
        "image": featured.get("url") or "",
        FIELD_SEO_TITLE: seo.get("title") or "",
        FIELD_SEO_DESCRIPTION: seo.get("description") or "",
        FIELD_FOCUS_KEYWORD: keyword,
        FIELD_SELLING_BULLETS: metafields.get(BULLETS_METAFIELD_KEY, ""),
        "permalink": node.get("onlineStoreUrl") or "",
    }

    options = node.get("options") or []
    for slot in OPTION_SLOTS:
        option = options[slot - 1] if len(options) >= slot else None
        option = option if isinstance(option, Mapping) else {}
        fields[f"option{slot}_id"] = option.get("id") or ""
        fields[f"option{slot}_name"] = option.get("name") or ""
        fields[f"option{slot}_values"] = ", ".join(
            str(value) for value in option.get("values") or []
        )

    return Record(id=str(node.get("id") or ""), fields=fields)


def build_product_input(record_id: str, record: Record) -> Dict[str, Any]:
    """Build the ``ProductInput`` for ``productUpdate`` from a record."""

    values = record.fields
    product_input: Dict[str, Any] = {"id": record_id}
    if FIELD_NAME in values:
        product_input["title"] = values[FIELD_NAME]
    if FIELD_DESCRIPTION in values:
        product_input["descriptionHtml"] = values[FIELD_DESCRIPTION]
    if values.get(FIELD_SLUG):
        product_input["handle"] = values[FIELD_SLUG]
        product_input["redirectNewHandle"] = True

    seo_title = values.get(FIELD_SEO_TITLE)
    seo_description = values.get(FIELD_SEO_DESCRIPTION) or values.get(
        FIELD_SHORT_DESCRIPTION
    )
    if seo_title is not None or seo_description is not None:
        product_input["seo"] = {
            "title": seo_title or "",
            "description": seo_description or "",
        }

    metafields: List[Dict[str, str]] = []
    if values.get(FIELD_FOCUS_KEYWORD):
        metafields.append(
            {
                "namespace": METAFIELD_NAMESPACE,
                "key": KEYWORD_METAFIELD_KEYS[0],
                "value": values[FIELD_FOCUS_KEYWORD],
                "type": "single_line_text_field",
            }
        )
    if values.get(FIELD_SELLING_BULLETS):
        metafields.append(
            {
                "namespace": METAFIELD_NAMESPACE,
                "key": BULLETS_METAFIELD_KEY,
                "value": values[FIELD_SELLING_BULLETS],
                "type": "multi_line_text_field",
            }
        )
    if metafields:
        product_input["metafields"] = metafields
    return product_input


def option_renames(record: Record) -> List[Dict[str, str]]:
    """Return ``{id, name}`` pairs for every option slot with both set."""

    renames: List[Dict[str, str]] = []
    for slot in OPTION_SLOTS:
        option_id = record.get(f"option{slot}_id").strip()
        name = record.get(f"option{slot}_name").strip()
        if option_id and name:
            renames.append({"id": option_id, "name": name})
    return renames


class ShopifyCatalog:
    """Remote catalog gateway backed by the Shopify Admin GraphQL API.

    Calls go straight to ``https://<shop>/admin/api/<version>/graphql.json``
    unless ``proxy_url`` is given, in which case the query is wrapped as
    ``{"apiVersion", "query", "variables"}`` and sent to the proxy with an
    ``X-Proxy-Key`` header.
    """

    def __init__(
        self,
        shop: str,
        token: str,
        *,
        session: Optional[requests.Session] = None,
        api_version: str = SHOPIFY_API_VERSION,
        proxy_url: Optional[str] = None,
        proxy_key: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        author_name: str = "Store Team",
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.shop = normalize_shop_domain(shop)
        self.token = (token or "").strip()
        self.api_version = api_version
        self.proxy_url = (proxy_url or "").strip() or None
        self.proxy_key = proxy_key
        self.timeout = timeout
        self.author_name = author_name
        self.page_size = page_size
        self.session = session or get_session(self.token or None)

    def execute(self, query: str, variables: Optional[Mapping[str, Any]] = None) -> dict:
        """Run one GraphQL operation and return its ``data`` payload."""

        if self.proxy_url:
            url = self.proxy_url
            headers = {"Content-Type": "application/json"}
            if self.proxy_key:
                headers["X-Proxy-Key"] = self.proxy_key
            body: Dict[str, Any] = {
                "apiVersion": self.api_version,
                "query": query,
                "variables": dict(variables or {}),
            }
        else:
            url = build_graphql_url(self.shop, self.api_version)
            headers = build_shopify_headers(token=self.token)
            body = {"query": query, "variables": dict(variables or {})}

        try:
            payload = graphql_post(
                self.session, url, body, headers=headers, timeout=self.timeout
            )
        except GraphQLTransportError as exc:
            raise CatalogConnectionError(str(exc)) from exc

        errors = payload.get("errors")
        if errors:
            if isinstance(errors, list):
                message = " | ".join(
                    str(error.get("message") if isinstance(error, Mapping) else error)
                    for error in errors
                )
            else:
                message = str(errors)
            raise CatalogError(f"Shopify API Error: {message}")

        data = payload.get("data")
        return data if isinstance(data, dict) else {}

    def fetch_all(self) -> List[Record]:
        """Return every product of the shop as a workspace record."""

        records: List[Record] = []
        cursor: Optional[str] = None
        while True:
            data = self.execute(
                PRODUCTS_QUERY, {"first": self.page_size, "after": cursor}
            )
            products = data.get("products")
            if not isinstance(products, Mapping):
                raise CatalogConnectionError("Shopify response is missing 'products'")
            records.extend(map_product_node(node) for node in _edges(products))
            page_info = products.get("pageInfo") or {}
            cursor = page_info.get("endCursor")
            if not page_info.get("hasNextPage") or not cursor:
                break
        _LOGGER.info("Fetched %d products from %s", len(records), self.shop)
        return records

    def push(self, record_id: str, record: Record) -> None:
        """Write one record's editable fields back to the shop.

        The product fields go in one ``productUpdate``; option renames follow
        one at a time because they target shared sub-resources of the
        product. Every rename is attempted before rename failures are raised.
        """

        data = self.execute(
            PRODUCT_UPDATE_MUTATION, {"input": build_product_input(record_id, record)}
        )
        result = data.get("productUpdate")
        messages = _user_error_messages(result)
        if messages:
            raise CatalogValidationError(
                f"Shopify rejected update for {record_id}: {'; '.join(messages)}",
                messages,
            )

        rename_errors: List[str] = []
        for rename in option_renames(record):
            try:
                option_data = self.execute(
                    OPTION_UPDATE_MUTATION,
                    {"productId": record_id, "option": rename},
                )
            except CatalogError as exc:
                _LOGGER.warning(
                    "Failed to rename option %s to %s: %s", rename["id"], rename["name"], exc
                )
                rename_errors.append(f"{rename['name']}: {exc}")
                continue
            for message in _user_error_messages(option_data.get("productOptionUpdate")):
                rename_errors.append(f"{rename['name']}: {message}")

        if rename_errors:
            raise CatalogValidationError(
                f"Option rename failed for {record_id}: {'; '.join(rename_errors)}",
                rename_errors,
            )

    def fetch_containers(self) -> List[Dict[str, str]]:
        """Return the shop's blogs as ``{id, title, handle}`` mappings."""

        data = self.execute(BLOGS_QUERY)
        return [
            {
                "id": str(node.get("id") or ""),
                "title": str(node.get("title") or ""),
                "handle": str(node.get("handle") or ""),
            }
            for node in _edges(data.get("blogs"))
        ]

    def create_content(self, container_id: str, draft: ContentDraft) -> Dict[str, str]:
        """Publish ``draft`` as an article of blog ``container_id``."""

        article: Dict[str, Any] = {
            "blogId": container_id,
            "title": draft.title,
            "body": draft.body_html,
            "summary": draft.excerpt,
            "tags": list(draft.tags or []),
            "isPublished": True,
            "author": {"name": self.author_name},
        }
        if draft.image:
            article["image"] = {"url": draft.image, "altText": draft.title}
        seo_metafields = [
            {"namespace": "global", "key": key, "type": kind, "value": value}
            for key, kind, value in (
                ("title_tag", "single_line_text_field", draft.seo_title),
                ("description_tag", "multi_line_text_field", draft.seo_description),
            )
            if value
        ]
        if seo_metafields:
            article["metafields"] = seo_metafields

        data = self.execute(ARTICLE_CREATE_MUTATION, {"article": article})
        result = data.get("articleCreate") or {}
        created = result.get("article") if isinstance(result, Mapping) else None
        if not created:
            messages = _user_error_messages(result)
            if messages:
                raise CatalogValidationError(
                    f"Shopify API Validation Error: {', '.join(messages)}", messages
                )
            raise CatalogError("Shopify accepted request but returned no Article object.")
        return {"id": str(created.get("id") or ""), "handle": str(created.get("handle") or "")}
