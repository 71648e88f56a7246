# src/ecocharge/clients/admin_client.py
"""
Admin GraphQL client for the settings collaborator.

Only the handful of queries the app needs: the jurisdiction metafield, the
deployed functions, cart transforms, and the shop profile used for
bootstrap. Transport and top-level GraphQL errors raise AdminApiError;
mutation userErrors raise UserErrors.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..settings import settings

logger = logging.getLogger(__name__)


class AdminApiError(RuntimeError):
    """Admin API request failed or returned top-level errors."""


class UserErrors(AdminApiError):
    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        super().__init__(", ".join(str(e.get("message", "")) for e in errors) or "user error")


def normalize_gid(value: Any) -> Optional[str]:
    """'gid://shopify/ShopifyFunction/123' -> '123'; plain ids pass through."""
    if not isinstance(value, str) or not value.strip():
        return None
    s = value.strip()
    if s.startswith("gid://"):
        return s.rsplit("/", 1)[-1] or None
    return s


GET_JURISDICTION = """
query GetSettings($namespace: String!, $key: String!) {
  shop {
    metafield(namespace: $namespace, key: $key) { value }
  }
}
"""

GET_SHOP_ID = "query GetShopId { shop { id } }"

SET_JURISDICTION = """
mutation SetComplianceProvince($metafields: [MetafieldsSetInput!]!) {
  metafieldsSet(metafields: $metafields) {
    metafields { namespace key value }
    userErrors { field message }
  }
}
"""

LIST_FUNCTIONS = """
query GetFunctions {
  shopifyFunctions(first: 50) {
    nodes { id title apiType }
  }
}
"""

LIST_CART_TRANSFORMS = """
query GetCartTransforms {
  cartTransforms(first: 50) {
    nodes { id functionId blockOnFailure }
  }
}
"""

CREATE_CART_TRANSFORM = """
mutation CreateCartTransform($functionId: String!) {
  cartTransformCreate(functionId: $functionId, blockOnFailure: false) {
    cartTransform { id functionId blockOnFailure }
    userErrors { field message }
  }
}
"""

SHOP_PROFILE = """
query BootstrapShop {
  shop {
    name
    myshopifyDomain
    primaryDomain { host }
    billingAddress { countryCodeV2 provinceCode }
  }
}
"""


class AdminClient:
    def __init__(
        self,
        shop: str,
        access_token: str,
        *,
        api_version: str | None = None,
        timeout: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.shop = shop
        self.api_version = api_version or settings.admin_api_version
        self.endpoint = f"https://{shop}/admin/api/{self.api_version}/graphql.json"
        self._client = httpx.Client(
            timeout=settings.request_timeout if timeout is None else timeout,
            transport=transport,
            headers={
                "X-Shopify-Access-Token": access_token,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "AdminClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ---------------- Transport ----------------

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        try:
            resp = self._client.post(self.endpoint, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise AdminApiError(
                f"Admin API request failed for {self.shop}: {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise AdminApiError(f"Admin API request failed for {self.shop}: {exc}") from exc

        try:
            body = resp.json()
        except ValueError as exc:
            raise AdminApiError("Admin API returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise AdminApiError("Admin API returned a non-object body")
        if body.get("errors"):
            errors = body["errors"]
            msg = errors if isinstance(errors, str) else "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors
            )
            raise AdminApiError(f"Admin API error: {msg}")
        return body.get("data") or {}

    # ---------------- Settings ----------------

    def get_jurisdiction(self) -> Optional[str]:
        data = self.graphql(GET_JURISDICTION, {
            "namespace": settings.metafield_namespace,
            "key": settings.metafield_key,
        })
        value = ((data.get("shop") or {}).get("metafield") or {}).get("value")
        return value if isinstance(value, str) else None

    def get_shop_id(self) -> Optional[str]:
        data = self.graphql(GET_SHOP_ID)
        shop_id = (data.get("shop") or {}).get("id")
        return shop_id if isinstance(shop_id, str) and shop_id else None

    def set_jurisdiction(self, shop_id: str, value: str) -> None:
        data = self.graphql(SET_JURISDICTION, {
            "metafields": [
                {
                    "ownerId": shop_id,
                    "namespace": settings.metafield_namespace,
                    "key": settings.metafield_key,
                    "type": "single_line_text_field",
                    "value": value,
                }
            ]
        })
        errors = (data.get("metafieldsSet") or {}).get("userErrors") or []
        if errors:
            raise UserErrors(errors)

    # ---------------- Functions / transforms ----------------

    def list_functions(self) -> List[Dict[str, Any]]:
        data = self.graphql(LIST_FUNCTIONS)
        return list((data.get("shopifyFunctions") or {}).get("nodes") or [])

    def list_cart_transforms(self) -> List[Dict[str, Any]]:
        data = self.graphql(LIST_CART_TRANSFORMS)
        return list((data.get("cartTransforms") or {}).get("nodes") or [])

    def create_cart_transform(self, function_id: str) -> Optional[str]:
        data = self.graphql(CREATE_CART_TRANSFORM, {"functionId": function_id})
        result = data.get("cartTransformCreate") or {}
        errors = result.get("userErrors") or []
        if errors:
            raise UserErrors(errors)
        created = normalize_gid((result.get("cartTransform") or {}).get("id"))
        logger.info("Created cart transform %s for %s", created, self.shop)
        return created

    # ---------------- Bootstrap ----------------

    def get_shop_profile(self) -> Dict[str, Any]:
        data = self.graphql(SHOP_PROFILE)
        return data.get("shop") or {}
