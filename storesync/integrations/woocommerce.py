"""
WooCommerce platform integration.

Talks to the WooCommerce REST API (``wp-json/wc/v3``) for catalog data and to
the WordPress API (``wp-json/wp/v2``) for blog posts, authenticating with a
consumer key/secret pair over HTTP basic auth. Lists are page-number paginated;
the page token is the page number as a string.
"""
import asyncio
from typing import Any, Dict, Mapping, Optional, Tuple

import aiohttp

from storesync.config import PLATFORM_SETTINGS
from storesync.errors import PermanentError, PlatformError, TransientError, classify_http_status
from storesync.integrations.base import Page, PlatformClient
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import EntityBase
from storesync.services.mapping import from_payload
from storesync.utils import get_logger

logger = get_logger(__name__)

ENDPOINTS: Dict[EntityKind, str] = {
    EntityKind.PRODUCT: "products",
    EntityKind.COLLECTION: "products/categories",
    EntityKind.CUSTOMER: "customers",
    EntityKind.REVIEW: "products/reviews",
    EntityKind.SHIPPING_ZONE: "shipping/zones",
    EntityKind.BLOG_POST: "posts",
    EntityKind.PAGE: "pages",
}

# Kinds served by the WordPress API rather than wc/v3.
WORDPRESS_KINDS = {EntityKind.BLOG_POST, EntityKind.PAGE}

# Kinds that support the trash; everything else must be deleted with force=true.
TRASHABLE_KINDS = {EntityKind.PRODUCT, EntityKind.REVIEW, EntityKind.BLOG_POST, EntityKind.PAGE}

# Endpoints that return every record in one response.
UNPAGED_KINDS = {EntityKind.SHIPPING_ZONE}


class WooCommerceClient(PlatformClient):
    """WooCommerce REST client."""

    platform = PlatformName.WOOCOMMERCE

    def __init__(self, config: Dict[str, Any]):
        missing = [k for k in ("store_url", "consumer_key", "consumer_secret") if not config.get(k)]
        if missing:
            raise PermanentError(
                f"WooCommerce connection is missing {', '.join(missing)}",
                platform=self.platform.value,
            )
        settings = PLATFORM_SETTINGS["woocommerce"]
        self.store_url = str(config["store_url"]).rstrip("/")
        self.auth = aiohttp.BasicAuth(str(config["consumer_key"]), str(config["consumer_secret"]))
        self.api_path = settings["api_path"]
        self.wp_api_path = settings["wp_api_path"]
        self.max_page_size = int(settings["max_page_size"])
        self.timeout = aiohttp.ClientTimeout(total=float(settings["timeout_seconds"]))
        self.logger = get_logger(f"integration.{self.platform.value}")
        self._session: Optional[aiohttp.ClientSession] = None

    def _client_session(self) -> aiohttp.ClientSession:
        """Pooled session shared by every request this client makes; opened on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout, auth=self.auth)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, kind: EntityKind, entity_id: Optional[str] = None) -> str:
        api_path = self.wp_api_path if kind in WORDPRESS_KINDS else self.api_path
        url = f"{self.store_url}/{api_path}/{ENDPOINTS[kind]}"
        return f"{url}/{entity_id}" if entity_id is not None else url

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Tuple[Any, Mapping[str, str]]:
        """Perform one HTTP call and classify any failure."""
        self.logger.debug("Making WooCommerce API request", method=method, url=url, params=params)
        session = self._client_session()
        try:
            async with session.request(method, url, params=params, json=json_body) as response:
                if response.status >= 400:
                    body = await response.text()
                    self.logger.warning(
                        "WooCommerce API request failed",
                        method=method,
                        url=url,
                        status_code=response.status,
                        body=body[:500],
                    )
                    raise classify_http_status(
                        response.status,
                        f"WooCommerce returned {response.status} for {method} {url}: {body[:200]}",
                        platform=self.platform.value,
                    )
                data = await response.json(content_type=None)
                return data, response.headers
        except asyncio.TimeoutError as e:
            raise TransientError(f"WooCommerce request timed out: {method} {url}", platform=self.platform.value) from e
        except aiohttp.ClientError as e:
            raise TransientError(f"WooCommerce connection error: {e}", platform=self.platform.value) from e

    async def fetch_page(
        self,
        kind: EntityKind,
        page_token: Optional[str] = None,
        page_size: int = 100,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Page:
        page = int(page_token or 1)
        per_page = max(1, min(page_size, self.max_page_size))
        params: Dict[str, Any] = {"page": str(page), "per_page": str(per_page)}
        for key, value in (filters or {}).items():
            params[key] = str(value).lower() if isinstance(value, bool) else str(value)
        if kind in UNPAGED_KINDS:
            params = {}

        data, headers = await self._request("GET", self._url(kind), params=params or None)
        if not isinstance(data, list):
            raise PermanentError(f"Unexpected WooCommerce list response for {kind.value}", platform=self.platform.value)
        items = [from_payload(self.platform, kind, raw) for raw in data]

        next_token = None
        if kind not in UNPAGED_KINDS:
            total_pages = headers.get("X-WP-TotalPages")
            if total_pages is not None:
                if page < int(total_pages):
                    next_token = str(page + 1)
            elif len(data) >= per_page:
                next_token = str(page + 1)
        return Page(items=items, next_token=next_token)

    async def get_one(self, kind: EntityKind, entity_id: str) -> EntityBase:
        data, _ = await self._request("GET", self._url(kind, entity_id))
        return from_payload(self.platform, kind, data)

    async def create_one(self, kind: EntityKind, payload: Dict[str, Any]) -> str:
        data, _ = await self._request("POST", self._url(kind), json_body=payload)
        if not isinstance(data, dict) or data.get("id") is None:
            raise PermanentError(f"WooCommerce did not return an id for new {kind.value}", platform=self.platform.value)
        self.logger.info("WooCommerce entity created", kind=kind.value, entity_id=data["id"])
        return str(data["id"])

    async def update_one(self, kind: EntityKind, entity_id: str, payload: Dict[str, Any]) -> None:
        await self._request("PUT", self._url(kind, entity_id), json_body=payload)

    async def delete_one(self, kind: EntityKind, entity_id: str, hard_delete: bool = False) -> None:
        force = hard_delete or kind not in TRASHABLE_KINDS
        await self._request("DELETE", self._url(kind, entity_id), params={"force": "true" if force else "false"})
        self.logger.info("WooCommerce entity deleted", kind=kind.value, entity_id=entity_id, force=force)

    async def test_connection(self) -> bool:
        try:
            await self._request("GET", self._url(EntityKind.PRODUCT), params={"per_page": "1"})
        except PlatformError as e:
            self.logger.warning("WooCommerce connection test failed", store_url=self.store_url, error=str(e))
            return False
        return True
