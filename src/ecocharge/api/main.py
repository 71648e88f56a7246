from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from .routes import router as settings_router
from .webhooks import router as webhooks_router
from ..db import SessionLocal, init_db
from ..rules.fee_engine import CartTransformEngine, NO_CHANGES, run_cart_transform, to_operations
from ..rules.fee_schedule import FEE_SCHEDULES, enabled_codes
from ..settings import settings

# ---------------- Logging ----------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("ecocharge-api")

API_VERSION = "1.0.0"

# ---------- App ----------
app = FastAPI(
    title="EcoCharge",
    version=API_VERSION,
    description="Per-line environmental fees for checkout carts, by shop jurisdiction",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
)

app.include_router(settings_router)
app.include_router(webhooks_router)

# ----- CORS -----
allow_origins: List[str] = settings.origins
allow_all = (len(allow_origins) == 1 and allow_origins[0] == "*")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    # Browsers disallow credentials with "*"; use regex echo when fully open.
    allow_credentials=not allow_all,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_origin_regex=".*" if allow_all else None,
)

_engine = CartTransformEngine()

# ----- Startup -----
@app.on_event("startup")
def _startup():
    """Create the session store tables; never blocks startup."""
    try:
        init_db()
        logger.info("Startup complete, DB initialized.")
    except Exception:
        logger.exception("DB init failed during startup; continuing without blocking app.")

# ----- System -----
@app.get("/health", tags=["System"])
def health() -> Dict[str, Any]:
    db_ok = True
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1")).scalar()
    except Exception:
        db_ok = False
    return {
        "ok": True,
        "version": API_VERSION,
        "db_ok": db_ok,
        "enabled_jurisdictions": [code.value for code in enabled_codes()],
    }

# ----- Cart transform -----
@app.post("/cart-transform/run", tags=["Cart Transform"])
async def cart_transform_run(request: Request) -> Dict[str, Any]:
    """
    Evaluate a cart transform run input and return line update operations.

    Malformed bodies and carts never fail the request; they produce the empty
    operations result so checkout proceeds without fees.
    """
    try:
        payload = json.loads(await request.body() or b"null")
    except (ValueError, RecursionError):
        logger.warning("Cart transform input is not valid JSON; returning no changes")
        return to_operations(NO_CHANGES)
    return run_cart_transform(payload, _engine)

# ----- Fee schedules -----
@app.get("/api/jurisdictions", tags=["Fee Schedules"])
def list_jurisdictions() -> List[Dict[str, Any]]:
    return [
        {
            "code": code.value,
            "label": schedule.label,
            "enabled": schedule.enabled,
            "fees": {cat.value: f"{amount:.2f}" for cat, amount in schedule.fee_by_category.items()},
        }
        for code, schedule in FEE_SCHEDULES.items()
    ]
