# src/ecocharge/connectors/shop_settings.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, TypeVar

from ..clients.admin_client import AdminClient, normalize_gid
from ..rules.fee_schedule import enabled_codes
from ..rules.jurisdiction import resolve
from ..settings import settings

logger = logging.getLogger(__name__)

CART_TRANSFORM_API_TYPE = "cart_transform"

# Only jurisdictions with an enabled fee schedule can be selected.
ALLOWED_JURISDICTIONS: Tuple[str, ...] = tuple(code.value for code in enabled_codes())

T = TypeVar("T")


class ShopSettingsError(RuntimeError):
    """Settings could not be read, written or provisioned."""


class InvalidJurisdiction(ShopSettingsError, ValueError):
    pass


@dataclass
class TransformStatus:
    function_id: Optional[str]
    transform_id: Optional[str]
    message: str

    @property
    def active(self) -> bool:
        return bool(self.transform_id)


def get_or_create(find: Callable[[], Optional[T]], create: Callable[[], Optional[T]]) -> Tuple[T, bool]:
    """
    Query-before-create: return ``(existing, False)`` when ``find`` yields a
    resource, otherwise ``(create(), True)``. A creation that yields nothing
    is an error.
    """
    existing = find()
    if existing is not None:
        return existing, False
    created = create()
    if created is None:
        raise ShopSettingsError("creation returned no identifier")
    return created, True


def validate_jurisdiction(value: object) -> str:
    code = value.strip() if isinstance(value, str) else ""
    if not code or code not in ALLOWED_JURISDICTIONS:
        raise InvalidJurisdiction("Invalid province selected.")
    return code


class ShopSettings:
    """Jurisdiction setting and cart transform provisioning for one shop."""

    def __init__(self, client: AdminClient, *, function_title: str | None = None):
        self.client = client
        self.function_title = (function_title or settings.function_title).lower()

    # ---------- Jurisdiction ----------

    def current_jurisdiction(self) -> Optional[str]:
        raw = self.client.get_jurisdiction()
        code = resolve(raw)
        if code is None or code.value not in ALLOWED_JURISDICTIONS:
            return None
        return code.value

    def save_jurisdiction(self, value: object) -> str:
        code = validate_jurisdiction(value)
        shop_id = self.client.get_shop_id()
        if not shop_id:
            raise ShopSettingsError("Unable to resolve Shop ID for metafield owner.")
        self.client.set_jurisdiction(shop_id, code)
        logger.info("Jurisdiction for %s set to %s", self.client.shop, code)
        return code

    # ---------- Cart transform ----------

    def find_function_id(self) -> Optional[str]:
        for fn in self.client.list_functions():
            api_type = str(fn.get("apiType") or "").lower()
            title = str(fn.get("title") or "").lower()
            if api_type == CART_TRANSFORM_API_TYPE and title == self.function_title:
                return normalize_gid(fn.get("id"))
        return None

    def find_transform_id(self, function_id: str) -> Optional[str]:
        for node in self.client.list_cart_transforms():
            if normalize_gid(node.get("functionId")) == function_id:
                return normalize_gid(node.get("id"))
        return None

    def transform_status(self) -> TransformStatus:
        function_id = self.find_function_id()
        if not function_id:
            return TransformStatus(
                function_id=None,
                transform_id=None,
                message=(
                    "Cart transform function not found. Ensure the function is deployed "
                    f"and titled '{self.function_title}'."
                ),
            )
        transform_id = self.find_transform_id(function_id)
        return TransformStatus(
            function_id=function_id,
            transform_id=transform_id,
            message=(
                "Cart Transform is active on this store."
                if transform_id
                else "Cart Transform is not active yet. Activate it to apply eco fees."
            ),
        )

    def activate_transform(self) -> str:
        """Provision the cart transform; returns the existing id when already active."""
        function_id = self.find_function_id()
        if not function_id:
            raise ShopSettingsError(
                f"Unable to locate the '{self.function_title}' function for activation."
            )
        transform_id, created = get_or_create(
            lambda: self.find_transform_id(function_id),
            lambda: self.client.create_cart_transform(function_id),
        )
        if not created:
            logger.info("Cart transform already active for %s (%s)", self.client.shop, transform_id)
        return transform_id
