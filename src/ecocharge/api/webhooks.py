# src/ecocharge/api/webhooks.py
"""
Mandatory privacy compliance webhooks.

EcoCharge stores no customer personal data, so customer data requests and
redactions are acknowledged without action. Shop redaction and uninstall
drop the shop's stored offline token. A missing or invalid HMAC signature
is rejected with 401, never acknowledged.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Request, Response

from ..db import SessionLocal, delete_sessions
from ..settings import settings

logger = logging.getLogger("ecocharge-api")

router = APIRouter(tags=["Webhooks"])

CUSTOMERS_DATA_REQUEST = "customers/data_request"
CUSTOMERS_REDACT = "customers/redact"
SHOP_REDACT = "shop/redact"
APP_UNINSTALLED = "app/uninstalled"

KNOWN_TOPICS = {CUSTOMERS_DATA_REQUEST, CUSTOMERS_REDACT, SHOP_REDACT, APP_UNINSTALLED}


def verify_hmac(body: bytes, signature: Optional[str], secret: str) -> bool:
    if not signature or not secret:
        return False
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    expected = base64.b64encode(digest)
    return hmac.compare_digest(expected, signature.strip().encode("utf-8"))


@router.post("/webhooks")
async def receive_webhook(request: Request) -> Response:
    body = await request.body()
    if not verify_hmac(body, request.headers.get("X-Shopify-Hmac-Sha256"), settings.api_secret):
        logger.warning("Webhook HMAC verification failed")
        return Response("Unauthorized", status_code=401)

    topic = (request.headers.get("X-Shopify-Topic") or "").strip().lower()
    shop = (request.headers.get("X-Shopify-Shop-Domain") or "").strip().lower()
    logger.info("Webhook received: topic=%s shop=%s", topic, shop)

    if topic in (SHOP_REDACT, APP_UNINSTALLED) and shop:
        with SessionLocal() as db:
            delete_sessions(db, shop)
    elif topic not in KNOWN_TOPICS:
        logger.debug("Acknowledging unhandled webhook topic %s", topic)

    return Response("OK", status_code=200)
