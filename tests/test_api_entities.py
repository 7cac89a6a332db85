import csv
import io

from storesync.errors import PermanentError
from storesync.models.db.enums import EntityKind, PlatformName

WOO = PlatformName.WOOCOMMERCE
SHOP = PlatformName.SHOPIFY


def test_orphans_are_destination_only_entities(client, seed, product_factory):
    seed(WOO, EntityKind.PRODUCT, [product_factory(sku="A")])
    seed(SHOP, EntityKind.PRODUCT, [product_factory(sku="a"), product_factory(sku="Z", title="Stray")])
    r = client.get("/api/v1/entities/product/orphans", params={"source_of_truth": "woocommerce"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["platform"] == "shopify"
    assert [o["title"] for o in data["orphans"]] == ["Stray"]


def test_duplicates_on_one_platform(client, seed, product_factory):
    ids = seed(SHOP, EntityKind.PRODUCT, [product_factory(sku="A"), product_factory(sku=" a "), product_factory(sku="B")])
    r = client.get("/api/v1/entities/product/duplicates", params={"platform": "shopify"})
    assert r.json()["data"] == {"platform": "shopify", "duplicates": {"a": ids[:2]}}


def test_delete_soft_and_hard(client, seed, shop, product_factory):
    ids = seed(SHOP, EntityKind.PRODUCT, [product_factory(), product_factory()])
    r = client.post("/api/v1/entities/product/delete", json={"platform": "shopify", "ids": [ids[0]]})
    assert r.json()["success"] is True
    assert shop.trashed(EntityKind.PRODUCT) == [ids[0]]

    r = client.post("/api/v1/entities/product/delete", json={"platform": "shopify", "ids": [ids[1], "missing"], "hard_delete": True})
    body = r.json()
    assert body["success"] is False
    assert [o["success"] for o in body["data"]["results"]] == [True, False]
    assert shop.records(EntityKind.PRODUCT) == {}
    assert shop.trashed(EntityKind.PRODUCT) == [ids[0]]


def test_delete_requires_ids(client):
    r = client.post("/api/v1/entities/product/delete", json={"platform": "shopify", "ids": []})
    assert r.status_code == 400


def test_delete_failure_is_isolated(client, seed, woo, product_factory):
    ids = seed(WOO, EntityKind.PRODUCT, [product_factory(), product_factory()])
    woo.fail_next("delete_one", PermanentError("locked", platform="woocommerce"))
    r = client.post("/api/v1/entities/product/delete", json={"platform": "woocommerce", "ids": ids})
    results = r.json()["data"]["results"]
    assert results[0] == {"id": ids[0], "success": False, "error_message": "locked"}
    assert results[1]["success"] is True


def test_export_csv(client, seed, product_factory):
    seed(WOO, EntityKind.PRODUCT, [product_factory(tags=["mugs", "sale"]), product_factory(status="draft")])
    r = client.get("/api/v1/entities/product/export", params={"platform": "woocommerce"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/csv")
    assert r.headers["content-disposition"] == 'attachment; filename="woocommerce-product-export.csv"'
    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert len(rows) == 2
    assert rows[0]["tags"] == "mugs, sale"
    assert rows[0]["platform"] == "woocommerce"


def test_export_json_with_status_filter(client, seed, product_factory):
    seed(WOO, EntityKind.PRODUCT, [product_factory(), product_factory(status="draft")])
    r = client.get("/api/v1/entities/product/export", params={"platform": "woocommerce", "format": "json", "status": "draft"})
    data = r.json()["data"]
    assert data["count"] == 1
    assert data["items"][0]["status"] == "draft"


def test_shipping_zones_export_but_do_not_sync(client, seed):
    seed(WOO, EntityKind.SHIPPING_ZONE, [{"name": "Domestic", "order": 0}])
    r = client.get("/api/v1/entities/shipping_zone/export", params={"platform": "woocommerce", "format": "json"})
    assert r.json()["data"]["items"][0]["name"] == "Domestic"
    r = client.get("/api/v1/entities/shipping_zone/orphans", params={"source_of_truth": "woocommerce"})
    assert r.status_code == 400


def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "healthy"
    r = client.get("/health/detailed")
    body = r.json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"] == "healthy"
    assert body["checks"]["queue"]["dispatch"]["depth"] == 0
    assert "X-Request-ID" in r.headers
