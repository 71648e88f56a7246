# src/ecocharge/api/routes.py
"""
Settings and bootstrap routes for the embedded admin.

Notes:
- The shop is identified by the X-Shop-Domain header; its offline token
  comes from the session store.
- Invalid jurisdiction selections are 422 with the descriptive message;
  Admin API failures surface as 502.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response
from pydantic import BaseModel, Field

from ..clients.admin_client import AdminApiError, AdminClient
from ..connectors.shop_settings import (
    ALLOWED_JURISDICTIONS,
    InvalidJurisdiction,
    ShopSettings,
    ShopSettingsError,
)
from ..db import SessionLocal, get_offline_session

logger = logging.getLogger("ecocharge-api")

router = APIRouter(prefix="/api", tags=["Settings"])

# ============ Pydantic Models ============

class JurisdictionIn(BaseModel):
    province: str = Field(..., example="AB")


class TransformStatusOut(BaseModel):
    function_id: Optional[str] = None
    transform_id: Optional[str] = None
    active: bool = False
    message: str = ""


class SettingsOut(BaseModel):
    shop: str
    current_province: Optional[str] = None
    allowed_provinces: list[str] = Field(default_factory=lambda: list(ALLOWED_JURISDICTIONS))
    transform: TransformStatusOut


# ============ Dependencies ============

def get_admin_client(x_shop_domain: Optional[str] = Header(None)) -> Iterator[AdminClient]:
    shop = (x_shop_domain or "").strip().lower()
    if not shop:
        raise HTTPException(status_code=401, detail="missing shop")
    with SessionLocal() as db:
        stored = get_offline_session(db, shop)
        token = stored.access_token if stored else None
    if not token:
        raise HTTPException(status_code=401, detail=f"shop {shop} is not installed")
    client = AdminClient(shop, token)
    try:
        yield client
    finally:
        client.close()


def get_shop_settings(client: AdminClient = Depends(get_admin_client)) -> ShopSettings:
    return ShopSettings(client)


# ============ Routes ============

@router.get("/settings", response_model=SettingsOut)
def read_settings(svc: ShopSettings = Depends(get_shop_settings)) -> SettingsOut:
    try:
        current = svc.current_jurisdiction()
        status = svc.transform_status()
    except AdminApiError as exc:
        logger.exception("Failed to load settings for %s", svc.client.shop)
        raise HTTPException(status_code=502, detail=str(exc))
    return SettingsOut(
        shop=svc.client.shop,
        current_province=current,
        transform=TransformStatusOut(
            function_id=status.function_id,
            transform_id=status.transform_id,
            active=status.active,
            message=status.message,
        ),
    )


@router.post("/settings/jurisdiction")
def save_jurisdiction(body: JurisdictionIn, svc: ShopSettings = Depends(get_shop_settings)) -> Dict[str, Any]:
    try:
        province = svc.save_jurisdiction(body.province)
    except InvalidJurisdiction as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except (AdminApiError, ShopSettingsError) as exc:
        logger.exception("Failed to save jurisdiction for %s", svc.client.shop)
        raise HTTPException(status_code=502, detail=str(exc))
    return {"ok": True, "province": province}


@router.post("/settings/activate")
def activate_transform(svc: ShopSettings = Depends(get_shop_settings)) -> Dict[str, Any]:
    try:
        transform_id = svc.activate_transform()
    except ShopSettingsError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except AdminApiError as exc:
        logger.exception("Cart transform activation failed for %s", svc.client.shop)
        raise HTTPException(status_code=502, detail=str(exc))
    return {"ok": True, "transform_id": transform_id}


@router.get("/bootstrap")
def bootstrap(response: Response, client: AdminClient = Depends(get_admin_client)) -> Dict[str, Any]:
    """Shop identity plus the billing-address jurisdiction signal."""
    try:
        shop = client.get_shop_profile()
    except AdminApiError as exc:
        logger.exception("Bootstrap query failed for %s", client.shop)
        raise HTTPException(status_code=502, detail=str(exc))

    billing = shop.get("billingAddress") or {}
    country = billing.get("countryCodeV2")
    province = billing.get("provinceCode")
    hint = province if country == "CA" and province in ALLOWED_JURISDICTIONS else None

    response.headers["Cache-Control"] = "no-store"
    return {
        "ok": True,
        "shop_name": shop.get("name"),
        "myshopify_domain": shop.get("myshopifyDomain"),
        "country_code": country,
        "province_code": province,
        "jurisdiction_hint": hint,
        "source": "shop.billingAddress",
    }
