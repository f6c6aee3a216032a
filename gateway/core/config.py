"""Gateway settings, read from the environment (and ``.env`` when present)."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder values shipped in examples and docker-compose files.
_PLACEHOLDER_SECRETS = frozenset(
    {
        "dev-secret-change-in-production",
        "dev-pepper-change-in-production",
        "change-me",
        "changeme",
    }
)
_MIN_SECRET_LENGTH = 32


def _is_weak(secret: str) -> bool:
    return secret in _PLACEHOLDER_SECRETS or len(secret) < _MIN_SECRET_LENGTH


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    environment: Literal["development", "production"] = "development"
    database_url: str
    slow_query_ms: float = 0

    # Bearer tokens for the admin surface are minted by the identity provider;
    # only verification happens here.
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 30

    api_key_pepper: str = "dev-pepper-change-in-production"
    api_key_prefix: str = "bdk_"
    api_key_default_rate_limit: int = 1000
    rate_limit_enforced: bool = True
    rate_limit_window_minutes: int = 60
    usage_retention_days: int = 90

    webhook_user_agent: str = "BuildDesk-Webhooks/1.0"
    webhook_signature_header: str = "X-Webhook-Signature"
    webhook_default_timeout_seconds: int = 30
    webhook_response_body_limit: int = 2000

    api_docs_enabled: bool | None = None
    metrics_token: str | None = None

    cors_allow_origins: list[str] = ["http://localhost:3000"]
    cors_allow_methods: list[str] = ["GET", "POST", "PATCH", "OPTIONS"]
    cors_allow_headers: list[str] = [
        "Accept",
        "Authorization",
        "Content-Type",
        "X-Request-ID",
        "X-API-Key",
        "X-Metrics-Token",
    ]
    cors_allow_credentials: bool = True

    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str | None = None

    @field_validator("cors_allow_origins", "cors_allow_methods", "cors_allow_headers", mode="before")
    @classmethod
    def split_csv(cls, value):
        """Accept ``a, b, c`` from the environment as well as JSON lists."""
        if value is None:
            return []
        if not isinstance(value, str):
            return value
        return [part.strip() for part in value.split(",") if part.strip()]

    @model_validator(mode="after")
    def _refuse_unsafe_production(self) -> Settings:
        if self.environment == "production":
            if _is_weak(self.jwt_secret):
                raise ValueError("JWT_SECRET must be a strong secret in production")
            if _is_weak(self.api_key_pepper):
                raise ValueError("API_KEY_PEPPER must be a strong secret in production")
            for name in ("cors_allow_origins", "cors_allow_methods", "cors_allow_headers"):
                if "*" in getattr(self, name):
                    raise ValueError(f"{name.upper()} cannot contain '*' in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, parsed once."""
    return Settings()
