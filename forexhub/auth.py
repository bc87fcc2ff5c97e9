# forexhub/auth.py
"""
Shared authentication dependencies.

The admin key and the development bypass are resolved once at startup into
an AuthConfig stored on app.state, so the security decision lives in one
place instead of environment lookups scattered through handlers.
"""

import secrets
from dataclasses import dataclass

from fastapi import Header, HTTPException, Request

from forexhub.config import Settings


@dataclass(frozen=True)
class AuthConfig:
    admin_api_key: str | None
    environment: str = "development"
    bypass_auth_in_non_prod: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        return cls(
            admin_api_key=settings.ADMIN_API_KEY,
            environment=settings.ENVIRONMENT,
            bypass_auth_in_non_prod=settings.BYPASS_AUTH_IN_NON_PROD,
        )

    @property
    def bypass_active(self) -> bool:
        """Bypass never applies in production, whatever the flag says."""
        return self.bypass_auth_in_non_prod and self.environment.lower() != "production"


def require_admin_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Validate admin API key. Fails closed if ADMIN_API_KEY is not set."""
    config: AuthConfig = request.app.state.auth_config

    if config.bypass_active:
        return

    if not config.admin_api_key:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: admin authentication not configured",
        )

    if not x_api_key or not secrets.compare_digest(x_api_key, config.admin_api_key):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key",
        )
