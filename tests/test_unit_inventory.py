import asyncio

import pytest

from storesync.errors import NotFoundError, TransientError, ValidationError
from storesync.integrations.memory import MemoryPlatformClient
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import Product
from storesync.models.schemas.inventory import InventoryItemIn
from storesync.services.inventory import compare_inventory, sync_inventory
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.utils.circuit_breaker import CircuitBreaker

WOO = PlatformName.WOOCOMMERCE
SHOP = PlatformName.SHOPIFY


async def _no_sleep(_seconds):
    return None


def make_fetcher():
    return PlatformFetcher(breaker=CircuitBreaker(), sleep=_no_sleep)


def woo_product(id, **kw):
    return Product(id=id, platform=WOO, **kw)


def shop_product(id, **kw):
    return Product(id=id, platform=SHOP, **kw)


def test_stock_differences_are_reported_for_matched_products_only():
    report = compare_inventory(
        [
            woo_product("1", title="Mug", sku="MUG-1", inventory_quantity=5),
            woo_product("2", title="Cap", sku="CAP-1", inventory_quantity=3),
            woo_product("3", title="Scarf", sku="SCARF-1", inventory_quantity=9),
        ],
        [
            shop_product("gid://shopify/Product/1", title="Mug", sku="mug-1", inventory_quantity=0),
            shop_product("gid://shopify/Product/2", title="Cap", sku="CAP-1", inventory_quantity=3),
        ],
        WOO,
        SHOP,
    )
    assert len(report.differences) == 1
    diff = report.differences[0]
    assert diff.matching_key == "mug-1"
    assert (diff.source_id, diff.destination_id) == ("1", "gid://shopify/Product/1")
    assert (diff.source_quantity, diff.destination_quantity, diff.difference) == (5, 0, 5)
    assert (diff.source_status, diff.destination_status) == ("instock", "outofstock")
    assert report.summary.matched == 2
    assert report.summary.with_differences == 1
    assert (report.summary.source_count, report.summary.destination_count) == (3, 2)


def test_products_without_sku_fall_back_to_title():
    report = compare_inventory(
        [woo_product("1", title="Blue Mug", slug="blue-mug", inventory_quantity=2)],
        [shop_product("9", title=" blue mug ", slug="mug-blue", inventory_quantity=7)],
        WOO,
        SHOP,
    )
    assert report.summary.matched == 1
    assert report.differences[0].destination_id == "9"
    assert report.differences[0].difference == -5


def test_untracked_stock_is_skipped_and_missing_side_counts_as_zero():
    report = compare_inventory(
        [woo_product("1", sku="A"), woo_product("2", sku="B", inventory_quantity=4)],
        [shop_product("10", sku="A"), shop_product("20", sku="B")],
        WOO,
        SHOP,
    )
    assert report.summary.untracked == 1
    assert [(d.matching_key, d.destination_quantity) for d in report.differences] == [("b", 0)]


def test_compare_rejects_same_platform():
    with pytest.raises(ValidationError):
        compare_inventory([], [], WOO, WOO)


def test_sync_writes_source_quantity_and_isolates_failures():
    shop = MemoryPlatformClient(SHOP)
    ids = shop.seed(EntityKind.PRODUCT, [{"title": "Mug", "inventory_quantity": 0}, {"title": "Cap", "inventory_quantity": 1}])
    items = [
        InventoryItemIn(matching_key="mug", destination_id=ids[0], source_quantity=5, destination_quantity=0, title="Mug"),
        InventoryItemIn(matching_key="gone", destination_id="missing", source_quantity=2),
        InventoryItemIn(matching_key="cap", destination_id=ids[1], source_quantity=4, destination_quantity=1),
    ]
    report = asyncio.run(sync_inventory(items, shop, make_fetcher()))

    assert [r.success for r in report.results] == [True, False, True]
    assert report.results[1].error_kind == "not_found"
    assert (report.results[0].old_quantity, report.results[0].new_quantity) == (0, 5)
    assert (report.summary.total, report.summary.succeeded, report.summary.failed) == (3, 2, 1)
    records = shop.records(EntityKind.PRODUCT)
    assert records[ids[0]]["inventory_quantity"] == 5
    assert records[ids[1]]["inventory_quantity"] == 4
    assert records[ids[0]]["title"] == "Mug"


def test_sync_retries_transient_stock_writes():
    woo = MemoryPlatformClient(WOO)
    ids = woo.seed(EntityKind.PRODUCT, [{"title": "Mug", "inventory_quantity": 0}])
    woo.fail_next("update_one", TransientError("busy", platform="woocommerce"))
    report = asyncio.run(sync_inventory(
        [InventoryItemIn(matching_key="mug", destination_id=ids[0], source_quantity=3)],
        woo,
        make_fetcher(),
    ))
    assert report.results[0].success
    assert report.results[0].attempts == 2


def test_sync_requires_items():
    with pytest.raises(ValidationError):
        asyncio.run(sync_inventory([], MemoryPlatformClient(SHOP), make_fetcher()))


def test_missing_destination_product_is_not_retried():
    shop = MemoryPlatformClient(SHOP)
    shop.fail_next("update_one", NotFoundError("gone", platform="shopify", status_code=404))
    report = asyncio.run(sync_inventory(
        [InventoryItemIn(matching_key="x", destination_id="1", source_quantity=1)],
        shop,
        make_fetcher(),
    ))
    assert report.results[0].attempts == 1
    assert [c[0] for c in shop.calls] == ["update_one"]
