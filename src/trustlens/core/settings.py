"""Application settings and configuration.

This module defines all configuration options for the TrustLens application.
Settings are loaded from environment variables with sensible defaults.
"""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="TrustLens", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    app_url: str = Field(default="http://localhost:3000", alias="APP_URL")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Security and authentication
    secret_key: str = Field(alias="SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(
        default=60 * 24 * 7,
        alias="ACCESS_TOKEN_EXPIRE_MINUTES",
    )

    # Database configuration
    database_url: str = Field(default="sqlite:///./trustlens.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Redis is only used when the quota ledger runs with the redis backend
    redis_url: str = Field(default="redis://localhost:6379", alias="REDIS_URL")
    quota_backend: Literal["memory", "redis"] = Field(default="memory", alias="QUOTA_BACKEND")

    # Free quota and cache windows
    free_lookup_limit: int = Field(default=3, ge=0, alias="FREE_LOOKUP_LIMIT")
    free_lookup_window_seconds: int = Field(
        default=60 * 60,
        gt=0,
        alias="FREE_LOOKUP_WINDOW_SECONDS",
    )
    cache_freshness_seconds: int = Field(
        default=24 * 60 * 60,
        gt=0,
        alias="CACHE_FRESHNESS_SECONDS",
    )
    pending_expiry_seconds: int = Field(default=120, gt=0, alias="PENDING_EXPIRY_SECONDS")
    funding_preference: Literal["quota_first", "credits_first"] = Field(
        default="quota_first",
        alias="FUNDING_PREFERENCE",
    )

    # Upstream profile provider (twitterapi.io)
    twitter_api_key: str | None = Field(default=None, alias="TWITTER_API_KEY")
    twitter_api_base_url: str = Field(
        default="https://api.twitterapi.io",
        alias="TWITTER_API_BASE_URL",
    )
    provider_timeout_seconds: float = Field(default=10.0, gt=0, alias="PROVIDER_TIMEOUT_SECONDS")

    # Push notifications for callers waiting on a pending lookup
    notify_max_wait_seconds: float = Field(default=25.0, gt=0, alias="NOTIFY_MAX_WAIT_SECONDS")

    # Honour X-Forwarded-For when deployed behind a trusted proxy
    trust_forwarded_for: bool = Field(default=False, alias="TRUST_FORWARDED_FOR")

    # Stripe checkout for credit packs
    stripe_secret_key: str | None = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: str | None = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")
    stripe_credit_packs: dict[str, int] = Field(
        default_factory=dict,
        alias="STRIPE_CREDIT_PACKS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _check_fetch_fits_claim(self) -> "Settings":
        # A fetch outliving its claim lets a second request start the same fetch.
        if self.provider_timeout_seconds >= self.pending_expiry_seconds:
            raise ValueError("PROVIDER_TIMEOUT_SECONDS must be below PENDING_EXPIRY_SECONDS")
        return self

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.

        Returns:
            Database URL compatible with synchronous database drivers
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides.

        Returns:
            The active database URL (test database if in testing mode, otherwise production)
        """
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url


settings = Settings()  # type: ignore[call-arg]
