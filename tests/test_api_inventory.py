from storesync.errors import TransientError
from storesync.models.db.enums import EntityKind, PlatformName

WOO = PlatformName.WOOCOMMERCE
SHOP = PlatformName.SHOPIFY


def test_compare_then_sync_brings_destination_stock_in_line(client, seed, shop, product_factory):
    seed(WOO, EntityKind.PRODUCT, [
        product_factory(sku="A", inventory_quantity=8),
        product_factory(sku="B", inventory_quantity=2),
    ])
    seed(SHOP, EntityKind.PRODUCT, [
        product_factory(sku="A", inventory_quantity=1),
        product_factory(sku="B", inventory_quantity=2),
    ])

    r = client.post("/api/v1/inventory/compare", json={"source_of_truth": "woocommerce"})
    assert r.status_code == 200, r.text
    data = r.json()["data"]
    assert data["summary"]["matched"] == 2
    assert [d["matching_key"] for d in data["differences"]] == ["a"]
    diff = data["differences"][0]
    assert (diff["source_quantity"], diff["destination_quantity"], diff["difference"]) == (8, 1, 7)

    r = client.post("/api/v1/inventory/sync", json={"source_of_truth": "woocommerce", "items": data["differences"]})
    assert r.status_code == 200, r.text
    assert r.json()["success"] is True
    assert r.json()["data"]["summary"] == {"total": 1, "succeeded": 1, "failed": 0}
    assert shop.records(EntityKind.PRODUCT)[diff["destination_id"]]["inventory_quantity"] == 8

    r = client.post("/api/v1/inventory/compare", json={"source_of_truth": "woocommerce"})
    assert r.json()["data"]["differences"] == []


def test_sync_reports_per_item_failures(client, seed, woo, product_factory):
    ids = seed(WOO, EntityKind.PRODUCT, [product_factory(inventory_quantity=0)])
    items = [
        {"matching_key": "sku-1", "destination_id": ids[0], "source_quantity": 4},
        {"matching_key": "ghost", "destination_id": "nope", "source_quantity": 1},
    ]
    r = client.post("/api/v1/inventory/sync", json={"source_of_truth": "shopify", "items": items})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is False
    assert [x["success"] for x in body["data"]["results"]] == [True, False]
    assert body["data"]["results"][1]["error_kind"] == "not_found"
    assert woo.records(EntityKind.PRODUCT)[ids[0]]["inventory_quantity"] == 4


def test_inventory_requests_are_validated(client):
    r = client.post("/api/v1/inventory/compare", json={"source_of_truth": "magento"})
    assert r.status_code == 400
    r = client.post("/api/v1/inventory/sync", json={"source_of_truth": "shopify", "items": []})
    assert r.status_code == 400


def test_compare_platform_failure_is_bad_gateway(client, shop):
    shop.fail_next("fetch_page", *[TransientError("boom", platform="shopify")] * 3)
    r = client.post("/api/v1/inventory/compare", json={"source_of_truth": "woocommerce"})
    assert r.status_code == 502
