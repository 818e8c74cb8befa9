from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

from connectors.shopify.client import (
    CatalogConnectionError,
    CatalogError,
    CatalogValidationError,
    ContentDraft,
    ShopifyCatalog,
    build_product_input,
    map_product_node,
    option_renames,
)
from services.records import Record


class DummyResponse:
    def __init__(self, payload: Any, status_code: int = 200, content_type: str = "application/json"):
        self._payload = payload
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        self.text = str(payload)

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class DummySession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: List[Dict[str, Any]] = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _node(**overrides):
    node = {
        "id": "gid://shopify/Product/1",
        "title": "Pillow",
        "handle": "pillow",
        "status": "ACTIVE",
        "descriptionHtml": "<p>Soft</p>",
        "onlineStoreUrl": "https://shop.example/products/pillow",
        "featuredImage": {"url": "https://cdn.example/p.png"},
        "variants": {"edges": [{"node": {"sku": "P-1"}}]},
        "options": [
            {"id": "gid://shopify/ProductOption/9", "name": "Size", "values": ["S", "L"]}
        ],
        "seo": {"title": "Pillow | Shop", "description": "Sleep better"},
        "metafields": {
            "edges": [
                {"node": {"key": "seo_keywords", "value": "memory pillow", "namespace": "custom"}},
                {"node": {"key": "selling_bullets_a", "value": "• Soft", "namespace": "custom"}},
            ]
        },
    }
    node.update(overrides)
    return node


def _products_page(nodes, has_next=False, cursor=None):
    return DummyResponse(
        {
            "data": {
                "products": {
                    "pageInfo": {"hasNextPage": has_next, "endCursor": cursor},
                    "edges": [{"node": node} for node in nodes],
                }
            }
        }
    )


def test_map_product_node_fields():
    record = map_product_node(_node())

    assert record.id == "gid://shopify/Product/1"
    assert record.get("name") == "Pillow"
    assert record.get("status") == "active"
    assert record.get("sku") == "P-1"
    assert record.get("rank_math_title") == "Pillow | Shop"
    assert record.get("short_description") == "Sleep better"
    assert record.get("rank_math_focus_keyword") == "memory pillow"
    assert record.get("selling_bullets") == "• Soft"
    assert record.get("option1_name") == "Size"
    assert record.get("option1_values") == "S, L"
    assert record.get("option2_id") == ""


def test_fetch_all_follows_cursor_pages():
    session = DummySession(
        _products_page([_node()], has_next=True, cursor="c1"),
        _products_page([_node(id="gid://shopify/Product/2")]),
    )
    catalog = ShopifyCatalog("https://shop.example/", "tok", session=session)

    records = catalog.fetch_all()

    assert [record.id for record in records] == [
        "gid://shopify/Product/1",
        "gid://shopify/Product/2",
    ]
    first, second = session.requests
    assert first["url"] == "https://shop.example/admin/api/2024-10/graphql.json"
    assert first["headers"]["X-Shopify-Access-Token"] == "tok"
    assert first["json"]["variables"] == {"first": 50, "after": None}
    assert second["json"]["variables"]["after"] == "c1"
    assert first["timeout"] == 30


def test_proxy_wraps_query():
    session = DummySession(_products_page([]))
    catalog = ShopifyCatalog(
        "shop.example",
        "tok",
        session=session,
        proxy_url="https://proxy.example/graphql",
        proxy_key="secret",
    )

    catalog.fetch_all()

    request = session.requests[0]
    assert request["url"] == "https://proxy.example/graphql"
    assert request["headers"]["X-Proxy-Key"] == "secret"
    assert request["json"]["apiVersion"] == "2024-10"
    assert "products" in request["json"]["query"]


@pytest.mark.parametrize(
    "response",
    [
        requests.Timeout("slow"),
        requests.ConnectionError("down"),
        DummyResponse("<html>login</html>", content_type="text/html"),
        DummyResponse({"errors": "Not Found"}, status_code=404),
        DummyResponse(ValueError("bad json")),
    ],
)
def test_transport_failures_raise_connection_error(response):
    catalog = ShopifyCatalog("shop.example", "tok", session=DummySession(response))
    with pytest.raises(CatalogConnectionError):
        catalog.fetch_all()


def test_graphql_errors_raise_catalog_error():
    session = DummySession(DummyResponse({"errors": [{"message": "Access denied"}]}))
    catalog = ShopifyCatalog("shop.example", "tok", session=session)

    with pytest.raises(CatalogError, match="Access denied"):
        catalog.fetch_all()


def _record(**fields):
    base = {
        "name": "Pillow",
        "description": "<p>Soft</p>",
        "slug": "pillow",
        "rank_math_title": "Title",
        "rank_math_description": "Meta",
        "rank_math_focus_keyword": "memory pillow",
        "selling_bullets": "",
        "option1_id": "gid://shopify/ProductOption/9",
        "option1_name": "Size",
    }
    base.update(fields)
    return Record(id="gid://shopify/Product/1", fields=base)


def test_build_product_input():
    product_input = build_product_input("gid://shopify/Product/1", _record())

    assert product_input["title"] == "Pillow"
    assert product_input["handle"] == "pillow"
    assert product_input["redirectNewHandle"] is True
    assert product_input["seo"] == {"title": "Title", "description": "Meta"}
    assert [meta["key"] for meta in product_input["metafields"]] == ["focus_keyword"]


def test_option_renames_need_id_and_name():
    record = _record(option2_id="gid://shopify/ProductOption/10", option2_name="")
    assert option_renames(record) == [{"id": "gid://shopify/ProductOption/9", "name": "Size"}]


def test_push_sends_update_then_option_renames():
    ok = DummyResponse({"data": {"productUpdate": {"userErrors": []}}})
    rename_ok = DummyResponse({"data": {"productOptionUpdate": {"userErrors": []}}})
    session = DummySession(ok, rename_ok)
    catalog = ShopifyCatalog("shop.example", "tok", session=session)

    catalog.push("gid://shopify/Product/1", _record())

    update, rename = session.requests
    assert update["json"]["variables"]["input"]["id"] == "gid://shopify/Product/1"
    assert rename["json"]["variables"]["option"] == {
        "id": "gid://shopify/ProductOption/9",
        "name": "Size",
    }


def test_push_raises_validation_error_on_user_errors():
    session = DummySession(
        DummyResponse(
            {
                "data": {
                    "productUpdate": {
                        "userErrors": [{"field": ["handle"], "message": "has already been taken"}]
                    }
                }
            }
        )
    )
    catalog = ShopifyCatalog("shop.example", "tok", session=session)

    with pytest.raises(CatalogValidationError) as excinfo:
        catalog.push("gid://shopify/Product/1", _record())

    assert excinfo.value.errors == ["handle: has already been taken"]
    assert len(session.requests) == 1


def test_push_collects_option_rename_failures():
    record = _record(
        option2_id="gid://shopify/ProductOption/10", option2_name="Colour"
    )
    session = DummySession(
        DummyResponse({"data": {"productUpdate": {"userErrors": []}}}),
        DummyResponse(
            {"data": {"productOptionUpdate": {"userErrors": [{"field": None, "message": "bad"}]}}}
        ),
        DummyResponse({"data": {"productOptionUpdate": {"userErrors": []}}}),
    )
    catalog = ShopifyCatalog("shop.example", "tok", session=session)

    with pytest.raises(CatalogValidationError) as excinfo:
        catalog.push("gid://shopify/Product/1", record)

    assert len(session.requests) == 3
    assert excinfo.value.errors == ["Size: bad"]


def test_fetch_containers():
    session = DummySession(
        DummyResponse(
            {
                "data": {
                    "blogs": {
                        "edges": [
                            {"node": {"id": "gid://shopify/Blog/1", "title": "News", "handle": "news"}}
                        ]
                    }
                }
            }
        )
    )
    catalog = ShopifyCatalog("shop.example", "tok", session=session)

    assert catalog.fetch_containers() == [
        {"id": "gid://shopify/Blog/1", "title": "News", "handle": "news"}
    ]


def test_create_content_sends_article_and_returns_id():
    session = DummySession(
        DummyResponse(
            {
                "data": {
                    "articleCreate": {
                        "article": {"id": "gid://shopify/Article/5", "handle": "post"},
                        "userErrors": [],
                    }
                }
            }
        )
    )
    catalog = ShopifyCatalog("shop.example", "tok", session=session, author_name="Editor")
    draft = ContentDraft(
        title="Post",
        body_html="<p>Body</p>",
        tags=["a"],
        excerpt="Ex",
        image="https://cdn.example/p.png",
        seo_description="Meta",
    )

    created = catalog.create_content("gid://shopify/Blog/1", draft)

    assert created == {"id": "gid://shopify/Article/5", "handle": "post"}
    article = session.requests[0]["json"]["variables"]["article"]
    assert article["blogId"] == "gid://shopify/Blog/1"
    assert article["author"] == {"name": "Editor"}
    assert article["image"] == {"url": "https://cdn.example/p.png", "altText": "Post"}
    assert [meta["key"] for meta in article["metafields"]] == ["description_tag"]


def test_create_content_without_article_is_an_error():
    session = DummySession(DummyResponse({"data": {"articleCreate": {"article": None, "userErrors": []}}}))
    catalog = ShopifyCatalog("shop.example", "tok", session=session)

    with pytest.raises(CatalogError):
        catalog.create_content("gid://shopify/Blog/1", ContentDraft(title="t", body_html="b"))
