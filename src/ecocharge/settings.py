from __future__ import annotations
import logging
from pydantic_settings import BaseSettings
from pydantic import Field
from urllib.parse import urlparse

logger = logging.getLogger("ecocharge-api")

class Settings(BaseSettings):
    # Offline session store; SQLite locally, Postgres in production.
    database_url: str = Field(default="sqlite:///./ecocharge.db", alias="DATABASE_URL")

    # Shared secret used by the platform to sign webhook payloads.
    api_secret: str = Field(default="", alias="SHOPIFY_API_SECRET")
    admin_api_version: str = Field(default="2025-10", alias="SHOPIFY_ADMIN_API_VERSION")
    request_timeout: int = Field(default=30, alias="REQUEST_TIMEOUT")

    metafield_namespace: str = Field(default="synorai_ecocharge", alias="ECOCHARGE_METAFIELD_NAMESPACE")
    metafield_key: str = Field(default="jurisdiction", alias="ECOCHARGE_METAFIELD_KEY")
    function_title: str = Field(default="eco-fee-cart-transform", alias="CART_TRANSFORM_FUNCTION_TITLE")

    allow_origins: str = Field(default="*", alias="ALLOW_ORIGINS")

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def sqlalchemy_url(self) -> str:
        url = self.database_url
        parsed = urlparse(url)
        if parsed.scheme.startswith("postgres"):
            logger.info(f"DB target → user={parsed.username} host={parsed.hostname} port={parsed.port} db={parsed.path.lstrip('/')}")
            # psycopg 3 driver
            if url.startswith("postgres://"):
                url = "postgresql://" + url[len("postgres://"):]
            if url.startswith("postgresql+psycopg2://"):
                url = url.replace("postgresql+psycopg2://", "postgresql+psycopg://", 1)
            elif url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+psycopg://", 1)
        return url

    @property
    def origins(self) -> list[str]:
        return [o.strip() for o in self.allow_origins.split(",") if o.strip()] or ["*"]

settings = Settings()
