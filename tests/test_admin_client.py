from __future__ import annotations

import json

import httpx
import pytest

from ecocharge.clients.admin_client import AdminApiError, AdminClient, UserErrors, normalize_gid


def _client(handler) -> AdminClient:
    return AdminClient("example.myshopify.com", "shpat_test", api_version="2025-10",
                       transport=httpx.MockTransport(handler))


def test_graphql_posts_to_admin_endpoint_with_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["token"] = request.headers.get("X-Shopify-Access-Token")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": {"shop": {"metafield": {"value": "AB"}}}})

    with _client(handler) as client:
        assert client.get_jurisdiction() == "AB"

    assert seen["url"] == "https://example.myshopify.com/admin/api/2025-10/graphql.json"
    assert seen["token"] == "shpat_test"
    assert seen["body"]["variables"] == {"namespace": "synorai_ecocharge", "key": "jurisdiction"}


def test_missing_metafield_reads_as_none():
    with _client(lambda r: httpx.Response(200, json={"data": {"shop": {"metafield": None}}})) as client:
        assert client.get_jurisdiction() is None


def test_http_error_raises_admin_api_error():
    with _client(lambda r: httpx.Response(503, text="unavailable")) as client:
        with pytest.raises(AdminApiError, match="503"):
            client.list_functions()


def test_non_json_body_raises_admin_api_error():
    with _client(lambda r: httpx.Response(200, text="<html>maintenance</html>")) as client:
        with pytest.raises(AdminApiError, match="non-JSON"):
            client.list_functions()


def test_top_level_graphql_errors_raise():
    body = {"errors": [{"message": "Access denied for shopifyFunctions field."}]}
    with _client(lambda r: httpx.Response(200, json=body)) as client:
        with pytest.raises(AdminApiError, match="Access denied"):
            client.list_functions()


def test_user_errors_on_metafield_write():
    body = {"data": {"metafieldsSet": {"metafields": [], "userErrors": [
        {"field": ["metafields", "0", "value"], "message": "Value is invalid"},
        {"field": None, "message": "Owner not found"},
    ]}}}
    with _client(lambda r: httpx.Response(200, json=body)) as client:
        with pytest.raises(UserErrors) as exc:
            client.set_jurisdiction("gid://shopify/Shop/1", "AB")
    assert str(exc.value) == "Value is invalid, Owner not found"


def test_create_cart_transform_returns_normalized_id():
    body = {"data": {"cartTransformCreate": {
        "cartTransform": {"id": "gid://shopify/CartTransform/77", "functionId": "42", "blockOnFailure": False},
        "userErrors": [],
    }}}
    with _client(lambda r: httpx.Response(200, json=body)) as client:
        assert client.create_cart_transform("42") == "77"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("gid://shopify/ShopifyFunction/123", "123"),
        ("019bd31f-aaaa", "019bd31f-aaaa"),
        ("  42 ", "42"),
        ("gid://shopify/CartTransform/", None),
        ("", None),
        (None, None),
        (12, None),
    ],
)
def test_normalize_gid(raw, expected):
    assert normalize_gid(raw) == expected
