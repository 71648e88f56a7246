from __future__ import annotations

import base64
import hashlib
import hmac
import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from ecocharge.api import main as api_main
from ecocharge.api.routes import get_admin_client, get_shop_settings
from ecocharge.api.webhooks import verify_hmac
from ecocharge.clients.admin_client import AdminApiError, AdminClient
from ecocharge.connectors.shop_settings import ShopSettings
from ecocharge.db import SessionLocal, get_offline_session, init_db, store_offline_session

SECRET = "test-secret"
SHOP = "example.myshopify.com"


@pytest.fixture
def client():
    init_db()
    api_main.app.dependency_overrides.clear()
    yield TestClient(api_main.app)
    api_main.app.dependency_overrides.clear()


@pytest.fixture
def admin():
    admin = MagicMock(spec=AdminClient)
    admin.shop = SHOP
    admin.list_functions.return_value = [
        {"id": "gid://shopify/ShopifyFunction/42", "title": "eco-fee-cart-transform", "apiType": "cart_transform"}
    ]
    admin.list_cart_transforms.return_value = []
    admin.get_shop_id.return_value = "gid://shopify/Shop/1"
    admin.get_jurisdiction.return_value = "AB"
    api_main.app.dependency_overrides[get_admin_client] = lambda: admin
    api_main.app.dependency_overrides[get_shop_settings] = lambda: ShopSettings(admin)
    return admin


def _sign(body: bytes, secret: str = SECRET) -> str:
    return base64.b64encode(hmac.new(secret.encode(), body, hashlib.sha256).digest()).decode()


# ---------- system & engine ----------

def test_health(client):
    payload = client.get("/health").json()
    assert payload["ok"] is True
    assert payload["db_ok"] is True
    assert payload["enabled_jurisdictions"] == ["AB", "BC", "SK"]


def test_cart_transform_run(client):
    body = {
        "shop": {"jurisdiction": {"value": "bc"}},
        "cart": {"lines": [{
            "id": "gid://shopify/CartLine/1",
            "cost": {"amountPerQuantity": {"amount": "199.00"}},
            "merchandise": {"__typename": "ProductVariant", "product": {
                "title": "Laser Printer",
                "ecoCategoryTags": [{"tag": "eco-category-printers", "hasTag": True}],
            }},
        }]},
    }
    resp = client.post("/cart-transform/run", json=body)

    assert resp.status_code == 200
    update = resp.json()["operations"][0]["lineUpdate"]
    assert update["price"]["adjustment"]["fixedPricePerUnit"]["amount"] == "205.50"
    assert update["title"] == "Laser Printer – ♻️ BC Environmental Fee: +$6.50 per unit"


@pytest.mark.parametrize("content", [b"", b"not json", b"[1, 2]", b"\xff\xfe", b"[" * 200000])
def test_cart_transform_run_never_fails_on_bad_input(client, content):
    resp = client.post("/cart-transform/run", content=content, headers={"Content-Type": "application/json"})
    assert resp.status_code == 200
    assert resp.json() == {"operations": []}


def test_list_jurisdictions(client):
    rows = {row["code"]: row for row in client.get("/api/jurisdictions").json()}
    assert len(rows) == 13
    assert rows["AB"]["fees"]["computers"] == "0.45"
    assert rows["NU"] == {"code": "NU", "label": "NU Environmental Fee", "enabled": False, "fees": {}}


# ---------- webhooks ----------

def test_verify_hmac():
    body = b'{"shop_id": 1}'
    assert verify_hmac(body, _sign(body), SECRET)
    assert not verify_hmac(body, _sign(body, "other"), SECRET)
    assert not verify_hmac(body, None, SECRET)
    assert not verify_hmac(body, _sign(body), "")


@pytest.mark.parametrize("topic", ["customers/data_request", "customers/redact", "orders/create"])
def test_webhook_acknowledges_signed_requests(client, topic):
    body = json.dumps({"shop_domain": SHOP}).encode()
    resp = client.post("/webhooks", content=body, headers={
        "X-Shopify-Hmac-Sha256": _sign(body),
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": SHOP,
    })
    assert resp.status_code == 200
    assert resp.text == "OK"


def test_webhook_rejects_bad_signature(client):
    body = b"{}"
    resp = client.post("/webhooks", content=body, headers={
        "X-Shopify-Hmac-Sha256": _sign(b"tampered"),
        "X-Shopify-Topic": "customers/redact",
    })
    assert resp.status_code == 401
    resp = client.post("/webhooks", content=body, headers={"X-Shopify-Topic": "shop/redact"})
    assert resp.status_code == 401


@pytest.mark.parametrize("topic", ["shop/redact", "app/uninstalled"])
def test_redact_and_uninstall_remove_stored_session(client, topic):
    with SessionLocal() as db:
        store_offline_session(db, SHOP, "shpat_abc", "write_cart_transforms")

    body = json.dumps({"shop_domain": SHOP}).encode()
    resp = client.post("/webhooks", content=body, headers={
        "X-Shopify-Hmac-Sha256": _sign(body),
        "X-Shopify-Topic": topic,
        "X-Shopify-Shop-Domain": SHOP,
    })

    assert resp.status_code == 200
    with SessionLocal() as db:
        assert get_offline_session(db, SHOP) is None


# ---------- settings ----------

def test_settings_require_installed_shop(client):
    assert client.get("/api/settings").status_code == 401
    assert client.get("/api/settings", headers={"X-Shop-Domain": "nobody.myshopify.com"}).status_code == 401


def test_read_settings(client, admin):
    resp = client.get("/api/settings", headers={"X-Shop-Domain": SHOP})
    payload = resp.json()
    assert resp.status_code == 200
    assert payload["current_province"] == "AB"
    assert payload["allowed_provinces"] == ["AB", "BC", "SK"]
    assert payload["transform"]["function_id"] == "42"
    assert payload["transform"]["active"] is False


def test_read_settings_admin_failure(client, admin):
    admin.get_jurisdiction.side_effect = AdminApiError("Admin API request failed: 503")
    assert client.get("/api/settings").status_code == 502


def test_save_jurisdiction(client, admin):
    resp = client.post("/api/settings/jurisdiction", json={"province": "SK"})
    assert resp.status_code == 200
    assert resp.json() == {"ok": True, "province": "SK"}
    admin.set_jurisdiction.assert_called_once_with("gid://shopify/Shop/1", "SK")


def test_save_invalid_jurisdiction(client, admin):
    resp = client.post("/api/settings/jurisdiction", json={"province": "ON"})
    assert resp.status_code == 422
    assert resp.json()["detail"] == "Invalid province selected."
    admin.set_jurisdiction.assert_not_called()


def test_activate_is_idempotent(client, admin):
    admin.create_cart_transform.return_value = "9"
    first = client.post("/api/settings/activate")
    assert first.json() == {"ok": True, "transform_id": "9"}

    admin.list_cart_transforms.return_value = [{"id": "gid://shopify/CartTransform/9", "functionId": "42"}]
    second = client.post("/api/settings/activate")
    assert second.json() == {"ok": True, "transform_id": "9"}
    admin.create_cart_transform.assert_called_once_with("42")


def test_activate_without_function(client, admin):
    admin.list_functions.return_value = []
    resp = client.post("/api/settings/activate")
    assert resp.status_code == 409


def test_bootstrap(client, admin):
    admin.get_shop_profile.return_value = {
        "name": "Example",
        "myshopifyDomain": SHOP,
        "billingAddress": {"countryCodeV2": "CA", "provinceCode": "SK"},
    }
    resp = client.get("/api/bootstrap")
    assert resp.headers["cache-control"] == "no-store"
    payload = resp.json()
    assert payload["jurisdiction_hint"] == "SK"
    assert payload["source"] == "shop.billingAddress"


def test_bootstrap_outside_enabled_jurisdictions(client, admin):
    admin.get_shop_profile.return_value = {"billingAddress": {"countryCodeV2": "CA", "provinceCode": "ON"}}
    assert client.get("/api/bootstrap").json()["jurisdiction_hint"] is None
