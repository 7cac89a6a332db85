from storesync.models.db.enums import PlatformName

WOO_CONFIG = {"store_url": "https://shop.example", "consumer_key": "ck_live", "consumer_secret": "cs_live"}


def test_save_connection_without_test_masks_secrets(client):
    r = client.put("/api/v1/connections/woocommerce", json={"config": WOO_CONFIG, "test": False})
    assert r.status_code == 200, r.text
    connection = r.json()["data"]["connection"]
    assert connection["is_connected"] is True
    assert connection["last_tested"] is None
    assert connection["config"] == {"store_url": "https://shop.example", "consumer_key": "***", "consumer_secret": "***"}

    listed = client.get("/api/v1/connections").json()["data"]["connections"]
    assert [c["platform"] for c in listed] == ["woocommerce"]
    assert "cs_live" not in str(listed)


def test_incomplete_credentials_are_rejected(client, connection_store):
    r = client.put("/api/v1/connections/shopify", json={"config": {"store_domain": "demo.myshopify.com"}})
    assert r.status_code == 400
    assert "access_token" in r.json()["message"]
    assert connection_store.list_connections() == []


def test_unknown_platform_is_unprocessable(client):
    assert client.put("/api/v1/connections/magento", json={"config": {}}).status_code == 422


def test_sandbox_connection_is_tested(client, connection_store):
    r = client.put("/api/v1/connections/memory", json={"config": {"seed": {"product": [{"title": "Mug"}]}}})
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert r.json()["data"]["connection"]["last_tested"] is not None

    r = client.post("/api/v1/connections/memory/test")
    assert r.status_code == 200
    assert r.json()["message"] == "Connection OK"
    assert connection_store.get_connection(PlatformName.MEMORY).is_connected is True


def test_test_and_delete_unknown_connection(client):
    assert client.post("/api/v1/connections/shopify/test").status_code == 404
    assert client.delete("/api/v1/connections/shopify").status_code == 404


def test_disconnect(client, connection_store):
    client.put("/api/v1/connections/woocommerce", json={"config": WOO_CONFIG, "test": False})
    r = client.delete("/api/v1/connections/woocommerce")
    assert r.status_code == 200
    assert r.json()["success"] is True
    assert connection_store.get_connection(PlatformName.WOOCOMMERCE) is None
