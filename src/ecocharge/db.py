# src/ecocharge/db.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import ShopSession
from .settings import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        # in-memory databases live per connection; share one
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "connect_args": {
            "options": "-c statement_timeout=30000",  # 30 second timeout
            "prepare_threshold": 0,
        },
    }


_url = settings.sqlalchemy_url
engine = create_engine(_url, **_engine_kwargs(_url))

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def init_db() -> None:
    # Safe if tables already exist
    from .models import Base

    Base.metadata.create_all(bind=engine)


def get_offline_session(db: Session, shop: str) -> Optional[ShopSession]:
    return db.execute(select(ShopSession).where(ShopSession.shop == shop)).scalar_one_or_none()


def store_offline_session(db: Session, shop: str, access_token: str, scope: Optional[str] = None) -> ShopSession:
    """Insert or refresh the offline token for ``shop``."""
    row = get_offline_session(db, shop)
    if row is None:
        row = ShopSession(shop=shop, access_token=access_token, scope=scope)
        db.add(row)
    else:
        row.access_token = access_token
        row.scope = scope
    db.commit()
    return row


def delete_sessions(db: Session, shop: str) -> int:
    result = db.execute(delete(ShopSession).where(ShopSession.shop == shop))
    db.commit()
    removed = result.rowcount or 0
    if removed:
        logger.info("Removed %d stored session(s) for %s", removed, shop)
    return removed
