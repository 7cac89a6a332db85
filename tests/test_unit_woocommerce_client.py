import asyncio

import pytest

from storesync.errors import NotFoundError, PermanentError, TransientError, classify_http_status
from storesync.integrations.woocommerce import WooCommerceClient
from storesync.models.db.enums import EntityKind

CONFIG = {"store_url": "https://shop.example/", "consumer_key": "ck_x", "consumer_secret": "cs_x"}


class FakeTransport:
    """Stands in for WooCommerceClient._request and records each call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def __call__(self, method, url, *, params=None, json_body=None):
        self.calls.append((method, url, params, json_body))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def make_client(monkeypatch, *responses):
    client = WooCommerceClient(CONFIG)
    transport = FakeTransport(*responses)
    monkeypatch.setattr(client, "_request", transport)
    return client, transport


def test_missing_credentials_are_rejected():
    with pytest.raises(PermanentError) as exc:
        WooCommerceClient({"store_url": "https://shop.example"})
    assert "consumer_key" in str(exc.value)


def test_fetch_page_uses_total_pages_header(monkeypatch):
    raw = [{"id": 1, "name": "Mug", "sku": "MUG-1", "status": "publish"}]
    client, transport = make_client(monkeypatch, (raw, {"X-WP-TotalPages": "3"}))
    page = asyncio.run(client.fetch_page(EntityKind.PRODUCT, "2", 50, {"status": "publish"}))
    method, url, params, _ = transport.calls[0]
    assert method == "GET"
    assert url == "https://shop.example/wp-json/wc/v3/products"
    assert params == {"page": "2", "per_page": "50", "status": "publish"}
    assert page.next_token == "3"
    assert page.items[0].title == "Mug"
    assert page.items[0].status == "published"


def test_last_page_has_no_token(monkeypatch):
    client, _ = make_client(monkeypatch, ([{"id": 1, "name": "x"}], {"X-WP-TotalPages": "1"}))
    assert asyncio.run(client.fetch_page(EntityKind.PRODUCT)).next_token is None


def test_full_page_without_header_assumes_more(monkeypatch):
    data = [{"id": i, "name": f"c{i}"} for i in range(2)]
    client, _ = make_client(monkeypatch, (data, {}))
    page = asyncio.run(client.fetch_page(EntityKind.COLLECTION, None, 2))
    assert page.next_token == "2"


def test_page_size_is_capped(monkeypatch):
    client, transport = make_client(monkeypatch, ([], {}))
    asyncio.run(client.fetch_page(EntityKind.PRODUCT, None, 500))
    assert transport.calls[0][2]["per_page"] == "100"


def test_blog_posts_use_wordpress_api(monkeypatch):
    raw = [{"id": 5, "slug": "hello", "title": {"rendered": "Hello"}, "content": {"rendered": "x"}, "status": "draft"}]
    client, transport = make_client(monkeypatch, (raw, {"X-WP-TotalPages": "1"}))
    page = asyncio.run(client.fetch_page(EntityKind.BLOG_POST))
    assert transport.calls[0][1] == "https://shop.example/wp-json/wp/v2/posts"
    assert page.items[0].title == "Hello"


def test_shipping_zones_are_unpaged(monkeypatch):
    client, transport = make_client(monkeypatch, ([{"id": 0, "name": "Everywhere", "order": 0}], {}))
    page = asyncio.run(client.fetch_page(EntityKind.SHIPPING_ZONE))
    assert transport.calls[0][2] is None
    assert page.next_token is None
    assert page.items[0].name == "Everywhere"


def test_non_list_response_is_permanent(monkeypatch):
    client, _ = make_client(monkeypatch, ({"code": "oops"}, {}))
    with pytest.raises(PermanentError):
        asyncio.run(client.fetch_page(EntityKind.PRODUCT))


def test_create_returns_new_id(monkeypatch):
    client, transport = make_client(monkeypatch, ({"id": 77}, {}))
    new_id = asyncio.run(client.create_one(EntityKind.PRODUCT, {"name": "Mug"}))
    assert new_id == "77"
    assert transport.calls[0][0] == "POST"
    assert transport.calls[0][3] == {"name": "Mug"}


def test_create_without_id_is_permanent(monkeypatch):
    client, _ = make_client(monkeypatch, ({}, {}))
    with pytest.raises(PermanentError):
        asyncio.run(client.create_one(EntityKind.PRODUCT, {"name": "Mug"}))


def test_update_and_get_target_entity_url(monkeypatch):
    client, transport = make_client(
        monkeypatch,
        ({"id": 9}, {}),
        ({"id": 9, "email": "a@example.com", "first_name": "Ada", "billing": {"phone": "555"}}, {}),
    )
    asyncio.run(client.update_one(EntityKind.CUSTOMER, "9", {"first_name": "Ada"}))
    customer = asyncio.run(client.get_one(EntityKind.CUSTOMER, "9"))
    assert transport.calls[0][:2] == ("PUT", "https://shop.example/wp-json/wc/v3/customers/9")
    assert customer.phone == "555"


def test_delete_uses_trash_only_where_supported(monkeypatch):
    client, transport = make_client(monkeypatch, ({}, {}), ({}, {}), ({}, {}))
    asyncio.run(client.delete_one(EntityKind.PRODUCT, "1"))
    asyncio.run(client.delete_one(EntityKind.PRODUCT, "1", hard_delete=True))
    asyncio.run(client.delete_one(EntityKind.COLLECTION, "2"))
    assert [c[2]["force"] for c in transport.calls] == ["false", "true", "true"]


def test_connection_test_reports_failure(monkeypatch):
    client, _ = make_client(monkeypatch, TransientError("down", platform="woocommerce"))
    assert asyncio.run(client.test_connection()) is False
    client, _ = make_client(monkeypatch, ([], {}))
    assert asyncio.run(client.test_connection()) is True


@pytest.mark.parametrize(
    "status,expected",
    [(429, TransientError), (500, TransientError), (503, TransientError), (404, NotFoundError), (400, PermanentError), (401, PermanentError)],
)
def test_http_status_classification(status, expected):
    error = classify_http_status(status, "failed", platform="woocommerce")
    assert type(error) is expected
    assert error.status_code == status


def test_pages_use_wordpress_api_and_trash(monkeypatch):
    raw = [{"id": 9, "slug": "about", "title": {"rendered": "About"}, "content": {"rendered": "x"}, "status": "publish"}]
    client, transport = make_client(monkeypatch, (raw, {"X-WP-TotalPages": "1"}), ({}, {}))
    page = asyncio.run(client.fetch_page(EntityKind.PAGE))
    assert transport.calls[0][1] == "https://shop.example/wp-json/wp/v2/pages"
    assert page.items[0].slug == "about"
    asyncio.run(client.delete_one(EntityKind.PAGE, "9"))
    assert transport.calls[1][1] == "https://shop.example/wp-json/wp/v2/pages/9"
    assert transport.calls[1][2] == {"force": "false"}
