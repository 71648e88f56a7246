from __future__ import annotations
from typing import Optional
import datetime

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Text, DateTime

class Base(DeclarativeBase):
    pass


class ShopSession(Base):
    """Offline Admin API access token for an installed shop."""

    __tablename__ = "shop_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)
    shop: Mapped[str] = mapped_column(String(255), unique=True)   # example.myshopify.com
    access_token: Mapped[str] = mapped_column(String(255))
    scope: Mapped[Optional[str]] = mapped_column(Text)
    installed_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.datetime.now(datetime.timezone.utc),
    )
