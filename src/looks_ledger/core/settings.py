"""Application settings and configuration.

This module defines all configuration options for the Looks Ledger service.
Settings are loaded from environment variables with sensible defaults.
"""

import json
from typing import Annotated, Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Looks Ledger", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./looks_ledger.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Bearer tokens are issued by the external identity provider
    jwt_secret: str = Field(alias="JWT_SECRET")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_audience: str | None = Field(default="authenticated", alias="JWT_AUDIENCE")

    # RevenueCat (billing system of record)
    revenuecat_api_key: str | None = Field(default=None, alias="REVENUECAT_API_KEY")
    revenuecat_base_url: str = Field(
        default="https://api.revenuecat.com/v1",
        alias="REVENUECAT_BASE_URL",
    )
    revenuecat_timeout_seconds: float = Field(default=10.0, alias="REVENUECAT_TIMEOUT_SECONDS")
    # JSON list or comma-separated: REVENUECAT_ENTITLEMENT_KEYS=creator,atelier,Studio
    revenuecat_entitlement_keys: Annotated[list[str], NoDecode] = Field(
        default=["creator", "atelier", "Studio"],
        alias="REVENUECAT_ENTITLEMENT_KEYS",
    )
    revenuecat_webhook_secret: str | None = Field(
        default=None,
        alias="REVENUECAT_WEBHOOK_SECRET",
    )

    # Credit packs: product id fragment -> looks granted. JSON object or
    # comma-separated pairs: LOOKS_PACK_PRODUCTS=10looks:10,30looks:30
    looks_pack_products: Annotated[dict[str, int], NoDecode] = Field(
        default={"10looks": 10, "30looks": 30, "100looks": 100},
        alias="LOOKS_PACK_PRODUCTS",
    )

    # Rolling generation limit
    daily_generation_limit: int = Field(default=20, alias="DAILY_GENERATION_LIMIT")
    daily_limit_window_hours: int = Field(default=24, alias="DAILY_LIMIT_WINDOW_HOURS")

    # CORS configuration for the mobile client and tooling
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @field_validator("revenuecat_entitlement_keys", mode="before")
    @classmethod
    def split_entitlement_keys(cls, v: Any) -> Any:
        """Accept a JSON list or a comma-separated string."""
        if not isinstance(v, str):
            return v
        text = v.strip()
        if text.startswith("["):
            return json.loads(text)
        return [key.strip() for key in text.split(",") if key.strip()]

    @field_validator("looks_pack_products", mode="before")
    @classmethod
    def parse_pack_products(cls, v: Any) -> Any:
        """Accept a JSON object or ``fragment:looks`` pairs separated by commas."""
        if not isinstance(v, str):
            return v
        text = v.strip()
        if text.startswith("{"):
            return json.loads(text)
        packs: dict[str, str] = {}
        for item in filter(None, (part.strip() for part in text.split(","))):
            fragment, sep, looks = item.partition(":")
            if not sep:
                raise ValueError(f"Pack entry '{item}' must look like fragment:looks")
            packs[fragment.strip()] = looks.strip()
        return packs

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous operations such as
        Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def revenuecat_enabled(self) -> bool:
        """Return True when server-side subscription verification is possible."""
        return bool(self.revenuecat_api_key)


settings = Settings()  # type: ignore[call-arg]
