"""
Shopify platform integration.

All traffic goes through the Admin GraphQL endpoint
``https://{store_domain}/admin/api/{version}/graphql.json`` with the
``X-Shopify-Access-Token`` header. Lists use cursor pagination: the page token
is the connection's ``endCursor`` and is only returned while ``hasNextPage``.

Shopify has no public reviews API and shipping zones are not exposed as a
standalone resource, so those kinds fail permanently.
"""
import asyncio
import copy
from typing import Any, Dict, Optional, Tuple

import aiohttp

from storesync.config import PLATFORM_SETTINGS
from storesync.errors import NotFoundError, PermanentError, PlatformError, TransientError, classify_http_status
from storesync.integrations import shopify_queries as q
from storesync.integrations.base import Page, PlatformClient
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import EntityBase
from storesync.services.mapping import from_payload, get_path
from storesync.utils import get_logger

logger = get_logger(__name__)

# kind -> (connection root, list query)
LIST_QUERIES: Dict[EntityKind, Tuple[str, str]] = {
    EntityKind.PRODUCT: ("products", q.LIST_PRODUCTS),
    EntityKind.COLLECTION: ("collections", q.LIST_COLLECTIONS),
    EntityKind.BLOG_POST: ("articles", q.LIST_ARTICLES),
    EntityKind.PAGE: ("pages", q.LIST_PAGES),
    EntityKind.CUSTOMER: ("customers", q.LIST_CUSTOMERS),
}

# kind -> (node root, get query)
GET_QUERIES: Dict[EntityKind, Tuple[str, str]] = {
    EntityKind.PRODUCT: ("product", q.GET_PRODUCT),
    EntityKind.COLLECTION: ("collection", q.GET_COLLECTION),
    EntityKind.BLOG_POST: ("article", q.GET_ARTICLE),
    EntityKind.PAGE: ("page", q.GET_PAGE),
    EntityKind.CUSTOMER: ("customer", q.GET_CUSTOMER),
}

GID_TYPES: Dict[EntityKind, str] = {
    EntityKind.PRODUCT: "Product",
    EntityKind.COLLECTION: "Collection",
    EntityKind.BLOG_POST: "Article",
    EntityKind.PAGE: "Page",
    EntityKind.CUSTOMER: "Customer",
}

# Products always carry one option; productSet needs it spelled out whenever variants are sent.
DEFAULT_OPTION = {"name": "Title", "values": [{"name": "Default Title"}]}
DEFAULT_OPTION_VALUE = {"optionName": "Title", "name": "Default Title"}


def to_gid(kind: EntityKind, entity_id: str) -> str:
    """Accept numeric legacy ids as well as global ids."""
    if entity_id.startswith("gid://"):
        return entity_id
    return f"gid://shopify/{GID_TYPES[kind]}/{entity_id}"


def split_product_payload(payload: Dict[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any], Optional[int]]:
    """Separate a mapped product payload into product fields, first-variant fields and stock.

    Stock is not part of any product or variant input; it is set per location
    with ``inventorySetQuantities``. Writing it requires a tracked inventory item.
    """
    product = copy.deepcopy(payload)
    variants = product.pop("variants", None) or [{}]
    variant = dict(variants[0] or {})
    quantity = variant.pop("inventoryQuantity", None)
    if quantity is not None:
        variant["inventoryItem"] = {**(variant.get("inventoryItem") or {}), "tracked": True}
    return product, variant, quantity


def build_product_set_input(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a mapped product payload into a ``ProductSetInput`` for creation.

    ``productSet`` replaces the whole product, so it is only used for new
    products; updates go through ``productUpdate`` and
    ``productVariantsBulkUpdate``.
    """
    product, variant, _ = split_product_payload(payload)
    variant["optionValues"] = [DEFAULT_OPTION_VALUE]
    product["productOptions"] = [DEFAULT_OPTION]
    product["variants"] = [variant]
    return product


class ShopifyClient(PlatformClient):
    """Shopify Admin GraphQL client."""

    platform = PlatformName.SHOPIFY

    def __init__(self, config: Dict[str, Any]):
        missing = [k for k in ("store_domain", "access_token") if not config.get(k)]
        if missing:
            raise PermanentError(
                f"Shopify connection is missing {', '.join(missing)}",
                platform=self.platform.value,
            )
        settings = PLATFORM_SETTINGS["shopify"]
        domain = str(config["store_domain"]).strip()
        for prefix in ("https://", "http://"):
            if domain.startswith(prefix):
                domain = domain[len(prefix):]
        self.store_domain = domain.rstrip("/")
        self.access_token = str(config["access_token"])
        self.api_version = str(config.get("api_version") or settings["api_version"])
        self.endpoint = f"https://{self.store_domain}/admin/api/{self.api_version}/graphql.json"
        self.blog_id: Optional[str] = config.get("blog_id")
        self.author_name = str(config.get("author_name") or "Store Admin")
        self.location_id: Optional[str] = config.get("location_id")
        self.max_page_size = int(settings["max_page_size"])
        self.timeout = aiohttp.ClientTimeout(total=float(settings["timeout_seconds"]))
        self.logger = get_logger(f"integration.{self.platform.value}")
        self._session: Optional[aiohttp.ClientSession] = None

    # ----------------------------- transport ----------------------------- #
    def _client_session(self) -> aiohttp.ClientSession:
        """Pooled session shared by every request this client makes; opened on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={
                    "X-Shopify-Access-Token": self.access_token,
                    "Content-Type": "application/json",
                },
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def _graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run one GraphQL document; returns the ``data`` object."""
        session = self._client_session()
        try:
            async with session.post(self.endpoint, json={"query": query, "variables": variables or {}}) as response:
                if response.status >= 400:
                    body = await response.text()
                    self.logger.warning(
                        "Shopify API request failed",
                        status_code=response.status,
                        endpoint=self.endpoint,
                        body=body[:500],
                    )
                    raise classify_http_status(
                        response.status,
                        f"Shopify returned {response.status}: {body[:200]}",
                        platform=self.platform.value,
                    )
                body = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise TransientError("Shopify request timed out", platform=self.platform.value) from e
        except aiohttp.ClientError as e:
            raise TransientError(f"Shopify connection error: {e}", platform=self.platform.value) from e

        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            raise self._classify_graphql_errors(errors)
        return (body or {}).get("data") or {}

    def _classify_graphql_errors(self, errors: Any) -> PlatformError:
        if isinstance(errors, str):
            return PermanentError(f"Shopify error: {errors}", platform=self.platform.value)
        messages = []
        throttled = False
        for err in errors:
            if not isinstance(err, dict):
                messages.append(str(err))
                continue
            messages.append(str(err.get("message", "")))
            if (err.get("extensions") or {}).get("code") == "THROTTLED":
                throttled = True
        message = "Shopify GraphQL error: " + "; ".join(m for m in messages if m)
        if throttled:
            return TransientError(message, platform=self.platform.value, status_code=429)
        return PermanentError(message, platform=self.platform.value)

    async def _mutate(self, query: str, variables: Dict[str, Any], root: str) -> Dict[str, Any]:
        data = await self._graphql(query, variables)
        result = data.get(root) or {}
        user_errors = result.get("userErrors") or []
        if user_errors:
            detail = "; ".join(
                f"{'.'.join(str(p) for p in (e.get('field') or []))}: {e.get('message')}".lstrip(": ")
                for e in user_errors
            )
            raise PermanentError(f"Shopify rejected {root}: {detail}", platform=self.platform.value, status_code=422)
        return result

    def _require_supported(self, kind: EntityKind) -> None:
        if kind not in GET_QUERIES:
            raise PermanentError(f"Shopify does not support {kind.value}", platform=self.platform.value)

    async def _resolve_blog_id(self) -> str:
        if self.blog_id:
            return self.blog_id
        data = await self._graphql(q.FIRST_BLOG_QUERY)
        edges = ((data.get("blogs") or {}).get("edges")) or []
        if not edges:
            raise PermanentError("Shopify store has no blog to publish articles into", platform=self.platform.value)
        self.blog_id = edges[0]["node"]["id"]
        return self.blog_id

    async def _resolve_location_id(self) -> str:
        if self.location_id:
            return self.location_id
        data = await self._graphql(q.FIRST_LOCATION_QUERY)
        edges = ((data.get("locations") or {}).get("edges")) or []
        if not edges:
            raise PermanentError("Shopify store has no location to hold inventory", platform=self.platform.value)
        self.location_id = edges[0]["node"]["id"]
        return self.location_id

    async def _first_variant(self, product_id: str) -> Dict[str, Any]:
        data = await self._graphql(q.GET_PRODUCT, {"id": product_id})
        product = data.get("product")
        if product is None:
            raise NotFoundError(f"product {product_id} not found", platform=self.platform.value, status_code=404)
        node = get_path(product, "variants.edges.0.node")
        if not node:
            raise PermanentError(f"product {product_id} has no variant to update", platform=self.platform.value)
        return node

    async def _set_inventory(self, inventory_item_id: Optional[str], quantity: int) -> None:
        """Set the available quantity of one inventory item at the sync location."""
        if not inventory_item_id:
            raise PermanentError("Shopify variant has no inventory item", platform=self.platform.value)
        location_id = await self._resolve_location_id()
        await self._mutate(
            q.INVENTORY_SET_QUANTITIES,
            {"input": {
                "name": "available",
                "reason": "correction",
                "ignoreCompareQuantity": True,
                "quantities": [{"inventoryItemId": inventory_item_id, "locationId": location_id, "quantity": int(quantity)}],
            }},
            "inventorySetQuantities",
        )

    async def _create_product(self, payload: Dict[str, Any]) -> Optional[str]:
        _, _, quantity = split_product_payload(payload)
        result = await self._mutate(q.PRODUCT_SET, {"input": build_product_set_input(payload)}, "productSet")
        product = result.get("product") or {}
        if quantity is not None and product.get("id"):
            await self._set_inventory(get_path(product, "variants.edges.0.node.inventoryItem.id"), quantity)
        return product.get("id")

    async def _update_product(self, gid: str, payload: Dict[str, Any]) -> None:
        """Partial product update: untouched fields, variants and media stay as they are."""
        product, variant, quantity = split_product_payload(payload)
        if product:
            await self._mutate(q.PRODUCT_UPDATE, {"input": {**product, "id": gid}}, "productUpdate")
        if not variant and quantity is None:
            return
        node = await self._first_variant(gid)
        if variant:
            await self._mutate(
                q.PRODUCT_VARIANTS_BULK_UPDATE,
                {"productId": gid, "variants": [{**variant, "id": node["id"]}]},
                "productVariantsBulkUpdate",
            )
        if quantity is not None:
            await self._set_inventory(get_path(node, "inventoryItem.id"), quantity)

    # ----------------------------- contract ----------------------------- #
    async def fetch_page(
        self,
        kind: EntityKind,
        page_token: Optional[str] = None,
        page_size: int = 100,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Page:
        self._require_supported(kind)
        root, query = LIST_QUERIES[kind]
        variables = {
            "first": max(1, min(page_size, self.max_page_size)),
            "after": page_token,
            "query": (filters or {}).get("query"),
        }
        data = await self._graphql(query, variables)
        connection = data.get(root) or {}
        items = [from_payload(self.platform, kind, edge["node"]) for edge in connection.get("edges") or []]
        page_info = connection.get("pageInfo") or {}
        next_token = page_info.get("endCursor") if page_info.get("hasNextPage") else None
        return Page(items=items, next_token=next_token)

    async def get_one(self, kind: EntityKind, entity_id: str) -> EntityBase:
        self._require_supported(kind)
        root, query = GET_QUERIES[kind]
        data = await self._graphql(query, {"id": to_gid(kind, entity_id)})
        node = data.get(root)
        if node is None:
            raise NotFoundError(f"{kind.value} {entity_id} not found", platform=self.platform.value, status_code=404)
        return from_payload(self.platform, kind, node)

    async def create_one(self, kind: EntityKind, payload: Dict[str, Any]) -> str:
        self._require_supported(kind)
        if kind == EntityKind.PRODUCT:
            new_id = await self._create_product(payload)
        elif kind == EntityKind.COLLECTION:
            result = await self._mutate(q.COLLECTION_CREATE, {"input": payload}, "collectionCreate")
            new_id = (result.get("collection") or {}).get("id")
        elif kind == EntityKind.BLOG_POST:
            article = {**payload, "blogId": await self._resolve_blog_id(), "author": {"name": self.author_name}}
            result = await self._mutate(q.ARTICLE_CREATE, {"article": article}, "articleCreate")
            new_id = (result.get("article") or {}).get("id")
        elif kind == EntityKind.PAGE:
            result = await self._mutate(q.PAGE_CREATE, {"page": payload}, "pageCreate")
            new_id = (result.get("page") or {}).get("id")
        else:
            result = await self._mutate(q.CUSTOMER_CREATE, {"input": payload}, "customerCreate")
            new_id = (result.get("customer") or {}).get("id")
        if not new_id:
            raise PermanentError(f"Shopify did not return an id for new {kind.value}", platform=self.platform.value)
        self.logger.info("Shopify entity created", kind=kind.value, entity_id=new_id)
        return str(new_id)

    async def update_one(self, kind: EntityKind, entity_id: str, payload: Dict[str, Any]) -> None:
        self._require_supported(kind)
        gid = to_gid(kind, entity_id)
        if kind == EntityKind.PRODUCT:
            await self._update_product(gid, payload)
        elif kind == EntityKind.COLLECTION:
            await self._mutate(q.COLLECTION_UPDATE, {"input": {**payload, "id": gid}}, "collectionUpdate")
        elif kind == EntityKind.BLOG_POST:
            await self._mutate(q.ARTICLE_UPDATE, {"id": gid, "article": payload}, "articleUpdate")
        elif kind == EntityKind.PAGE:
            await self._mutate(q.PAGE_UPDATE, {"id": gid, "page": payload}, "pageUpdate")
        else:
            await self._mutate(q.CUSTOMER_UPDATE, {"input": {**payload, "id": gid}}, "customerUpdate")

    async def delete_one(self, kind: EntityKind, entity_id: str, hard_delete: bool = False) -> None:
        self._require_supported(kind)
        gid = to_gid(kind, entity_id)
        if kind == EntityKind.PRODUCT:
            if hard_delete:
                await self._mutate(q.PRODUCT_DELETE, {"input": {"id": gid}}, "productDelete")
            else:
                # No trash on Shopify; archiving is the reversible option.
                await self._mutate(q.PRODUCT_UPDATE, {"input": {"id": gid, "status": "ARCHIVED"}}, "productUpdate")
        elif kind == EntityKind.COLLECTION:
            await self._mutate(q.COLLECTION_DELETE, {"input": {"id": gid}}, "collectionDelete")
        elif kind == EntityKind.BLOG_POST:
            await self._mutate(q.ARTICLE_DELETE, {"id": gid}, "articleDelete")
        elif kind == EntityKind.PAGE:
            await self._mutate(q.PAGE_DELETE, {"id": gid}, "pageDelete")
        else:
            await self._mutate(q.CUSTOMER_DELETE, {"input": {"id": gid}}, "customerDelete")
        self.logger.info("Shopify entity deleted", kind=kind.value, entity_id=gid, hard_delete=hard_delete)

    async def test_connection(self) -> bool:
        try:
            data = await self._graphql(q.SHOP_QUERY)
        except PlatformError as e:
            self.logger.warning("Shopify connection test failed", store_domain=self.store_domain, error=str(e))
            return False
        return bool(data.get("shop"))
