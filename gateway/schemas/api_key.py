"""Pydantic schemas for API key issuance and validation."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CreateApiKeyRequest(BaseModel):
    """Body of POST /create-key.

    Scope names and expiry are checked by the key authority so the error
    taxonomy stays in one place.
    """

    key_name: str = Field(..., min_length=1, max_length=100)
    permissions: list[str] = Field(default_factory=list)
    expires_at: datetime | None = None
    rate_limit_per_hour: int | None = None

    @field_validator("key_name")
    @classmethod
    def key_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("key_name cannot be empty")
        return v.strip()


class CreatedApiKeyResponse(BaseModel):
    """The only response that ever carries a plaintext key."""

    id: UUID
    key_name: str
    api_key: str
    api_key_prefix: str
    permissions: list[str]
    expires_at: datetime | None
    rate_limit_per_hour: int
    created_at: datetime


class ApiKeyResponse(BaseModel):
    """Stored key as listed to tenant admins (no secret, no digest)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    key_name: str
    api_key_prefix: str
    permissions: list[str]
    expires_at: datetime | None
    rate_limit_per_hour: int
    is_active: bool
    revoked_at: datetime | None
    last_used_at: datetime | None
    created_at: datetime


class ApiKeyListResponse(BaseModel):
    items: list[ApiKeyResponse]
    total: int


class ValidateKeyResponse(BaseModel):
    """Body of a successful POST /validate-key."""

    valid: bool = True
    tenant_id: UUID
    permissions: list[str]
    rate_limit: int
