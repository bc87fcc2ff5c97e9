# forexhub/config.py
"""
Centralized configuration with validation.

Uses pydantic-settings to load and validate all environment variables at
startup. Configuration is read once; changing DATABASE_URL requires a
restart. A missing or unusable DATABASE_URL is not an error: the service
boots on the volatile store and reports degraded health.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from forexhub.database import normalize_database_url


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str | None = Field(
        default=None,
        description="Durable store URL (PostgreSQL in production). Unset = volatile only.",
    )
    DB_POOL_SIZE: int = Field(
        default=5,
        ge=1,
        description="Connection pool size for the durable adapter",
    )
    DB_AUTO_CREATE_TABLES: bool = Field(
        default=False,
        description="Create missing tables on durable initialization (local dev; use Alembic elsewhere)",
    )

    # Storage selection
    PROBE_TIMEOUT_SECONDS: float = Field(
        default=2.0,
        gt=0,
        description="Hard timeout for one connectivity probe",
    )
    RECONCILE_INTERVAL_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Background reconcile interval while on the volatile store",
    )
    REQUEST_RECONCILE_MIN_INTERVAL_SECONDS: float = Field(
        default=5.0,
        ge=0,
        description="Minimum seconds between request-triggered reconciles (0 = every request)",
    )
    SEED_VOLATILE_STORE: bool = Field(
        default=True,
        description="Seed default categories into the volatile store at startup",
    )

    # Authentication
    ADMIN_API_KEY: str | None = Field(
        default=None,
        description="API key for admin endpoints. Unset = admin endpoints reject every request.",
    )
    BYPASS_AUTH_IN_NON_PROD: bool = Field(
        default=False,
        description="Skip admin key checks outside production (local development only)",
    )

    # CORS
    CORS_ORIGINS: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins",
    )

    # Application
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment: development, staging, production",
    )

    # Logging
    LOG_JSON: bool = Field(
        default=True,
        description="Emit JSON log lines (False = human-readable)",
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level",
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_database_url(cls, v: str | None) -> str | None:
        """Blank means unset; hosted Postgres URLs need the psycopg2 driver name."""
        if v is None or not v.strip():
            return None
        return normalize_database_url(v.strip())

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached application settings. Call at startup to validate config."""
    return Settings()
