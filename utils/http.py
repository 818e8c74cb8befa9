"""HTTP utilities for configuring reusable sessions and GraphQL calls."""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util import Retry

DEFAULT_STATUS_FORCELIST = (429, 500, 502, 503, 504)
DEFAULT_TIMEOUT = 30
SHOPIFY_API_VERSION = "2024-10"


_LOGGER = logging.getLogger(__name__)


class GraphQLTransportError(RuntimeError):
    """Raised when a GraphQL endpoint cannot be reached or answers garbage."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def normalize_shop_domain(shop: object) -> str:
    """Return ``shop`` without scheme, whitespace or trailing slashes."""

    text = str(shop or "").strip()
    text = re.sub(r"^https?://", "", text, flags=re.IGNORECASE)
    return text.rstrip("/")


def build_shopify_headers(*, token: Optional[str] = None) -> dict[str, str]:
    """Return default Admin API headers with an optional access token."""

    headers: dict[str, str] = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if token:
        headers["X-Shopify-Access-Token"] = token.strip()
    return headers


def build_graphql_url(shop: str, api_version: str = SHOPIFY_API_VERSION) -> str:
    """Construct the Admin GraphQL URL for ``shop``."""

    return f"https://{normalize_shop_domain(shop)}/admin/api/{api_version}/graphql.json"


def get_session(access_token: Optional[str] = None) -> requests.Session:
    """Return a configured :class:`requests.Session` with retries.

    Parameters
    ----------
    access_token:
        Admin API access token. When provided, the ``X-Shopify-Access-Token``
        header is configured automatically.
    """

    session = requests.Session()
    session.headers.update(build_shopify_headers(token=access_token))

    retry = Retry(
        total=3,
        status_forcelist=DEFAULT_STATUS_FORCELIST,
        backoff_factor=0.4,
        allowed_methods=("GET", "POST"),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(pool_connections=10, pool_maxsize=10, max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def graphql_post(
    session: requests.Session,
    url: str,
    body: Mapping[str, Any],
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: int = DEFAULT_TIMEOUT,
) -> dict:
    """POST ``body`` to a GraphQL endpoint and return the decoded JSON.

    Transport failures, timeouts, HTTP errors and non-JSON answers are all
    raised as :class:`GraphQLTransportError`. GraphQL-level ``errors`` are
    left in the returned payload for the caller to interpret.
    """

    _LOGGER.debug("graphql_post URL=%s", url)
    try:
        response = session.post(url, json=dict(body), headers=headers, timeout=timeout)
    except requests.Timeout as exc:
        raise GraphQLTransportError(
            f"Request to {url} timed out after {timeout}s"
        ) from exc
    except requests.RequestException as exc:
        raise GraphQLTransportError(f"Request to {url} failed: {exc}") from exc

    content_type = response.headers.get("Content-Type", "")
    if "json" not in content_type.lower():
        snippet = response.text[:200]
        raise GraphQLTransportError(
            f"Non-JSON from {url} (HTTP {response.status_code}): {snippet}",
            status_code=response.status_code,
        )

    try:
        payload = response.json()
    except ValueError as exc:
        raise GraphQLTransportError(
            f"Malformed JSON from {url}", status_code=response.status_code
        ) from exc

    if not response.ok:
        raise GraphQLTransportError(
            f"HTTP {response.status_code} from {url}: {str(payload)[:200]}",
            status_code=response.status_code,
        )

    if not isinstance(payload, dict):
        raise GraphQLTransportError(f"Unexpected payload from {url}: {str(payload)[:200]}")

    return payload
