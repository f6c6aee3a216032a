"""Key authority: issuance, revocation and rotation of gateway API keys."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.config import get_settings
from gateway.core.errors import NotFound, Unauthorized, ValidationError
from gateway.core.security import digest_key, display_prefix, generate_api_key
from gateway.models.api_key import ApiKey
from gateway.models.base import as_utc
from gateway.models.enums import KNOWN_SCOPES, AuditAction
from gateway.models.user import User
from gateway.services.audit_service import AuditService


@dataclass(frozen=True)
class NewApiKey:
    """A freshly issued key.

    This is the only type that carries the plaintext secret, and only
    ``KeyAuthority.issue``/``rotate`` construct it. Everywhere else the
    gateway handles ``ApiKey`` rows, which hold the digest alone.
    """

    plaintext: str
    record: ApiKey


def normalize_permissions(permissions: list[str]) -> list[str]:
    """Deduplicate while keeping order; reject empty or unknown scopes."""
    cleaned: list[str] = []
    for permission in permissions:
        permission = permission.strip()
        if permission and permission not in cleaned:
            cleaned.append(permission)

    if not cleaned:
        raise ValidationError("At least one permission is required")

    unknown = [p for p in cleaned if p not in KNOWN_SCOPES]
    if unknown:
        raise ValidationError(
            f"Unknown permissions: {', '.join(unknown)}",
            details={"unknown": unknown, "allowed": sorted(KNOWN_SCOPES)},
        )
    return cleaned


class KeyAuthority:
    """Generates keys, stores their digests and never re-emits plaintext."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.settings = get_settings()
        self.audit_service = AuditService(db)

    async def issue(
        self,
        current_user: User,
        key_name: str,
        permissions: list[str],
        expires_at: datetime | None = None,
        rate_limit_per_hour: int | None = None,
        ip_address: str | None = None,
    ) -> NewApiKey:
        """Issue a new key for the caller's tenant.

        Raises:
            Unauthorized: caller is not an admin of the tenant
            ValidationError: empty/unknown permissions, past expiry, bad limit
        """
        if not current_user.is_tenant_admin:
            raise Unauthorized()

        scopes = normalize_permissions(permissions)

        expires_at = as_utc(expires_at)
        if expires_at is not None and expires_at <= datetime.now(UTC):
            raise ValidationError("expires_at must be in the future")

        if rate_limit_per_hour is None:
            rate_limit_per_hour = self.settings.api_key_default_rate_limit
        if rate_limit_per_hour < 1:
            raise ValidationError("rate_limit_per_hour must be at least 1")

        plaintext = generate_api_key()
        record = ApiKey(
            org_id=current_user.org_id,
            key_name=key_name,
            api_key_hash=digest_key(plaintext),
            api_key_prefix=display_prefix(plaintext),
            permissions=scopes,
            expires_at=expires_at,
            rate_limit_per_hour=rate_limit_per_hour,
            is_active=True,
            created_by=current_user.id,
        )
        self.db.add(record)

        try:
            await self.db.flush()
        except IntegrityError:
            await self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="API key collision; please retry",
            ) from None

        await self.db.refresh(record)
        await self.audit_service.api_key_event(
            AuditAction.API_KEY_CREATE,
            record.id,
            current_user.org_id,
            current_user.id,
            ip_address,
            key_name=key_name,
            permissions=scopes,
        )
        return NewApiKey(plaintext=plaintext, record=record)

    async def get(self, key_id: UUID, org_id: UUID) -> ApiKey:
        result = await self.db.execute(
            select(ApiKey).where(ApiKey.id == key_id).where(ApiKey.org_id == org_id)
        )
        key = result.scalar_one_or_none()
        if not key:
            raise NotFound("API key not found")
        return key

    async def list_keys(self, org_id: UUID) -> list[ApiKey]:
        result = await self.db.execute(
            select(ApiKey).where(ApiKey.org_id == org_id).order_by(ApiKey.created_at.desc())
        )
        return list(result.scalars().all())

    async def revoke(
        self,
        key_id: UUID,
        org_id: UUID,
        user_id: UUID | None = None,
        ip_address: str | None = None,
    ) -> ApiKey:
        """Deactivate a key. Revoking an already revoked key is a no-op."""
        key = await self.get(key_id, org_id)
        if not key.is_active:
            return key

        key.is_active = False
        key.revoked_at = datetime.now(UTC)
        await self.db.flush()
        await self.audit_service.api_key_event(AuditAction.API_KEY_REVOKE, key.id, org_id, user_id, ip_address)
        return key

    async def rotate(
        self,
        key_id: UUID,
        current_user: User,
        ip_address: str | None = None,
    ) -> NewApiKey:
        """Replace a key with a new secret carrying the same scope and limits.

        Rotation is issue + revoke in the caller's transaction; the old row is
        kept for audit.
        """
        if not current_user.is_tenant_admin:
            raise Unauthorized()

        old = await self.get(key_id, current_user.org_id)
        if not old.is_active:
            raise ValidationError("Cannot rotate a revoked key")
        if old.expires_at is not None and as_utc(old.expires_at) <= datetime.now(UTC):
            raise ValidationError("Cannot rotate an expired key; issue a new one")

        new_key = await self.issue(
            current_user=current_user,
            key_name=old.key_name,
            permissions=list(old.permissions),
            expires_at=old.expires_at,
            rate_limit_per_hour=old.rate_limit_per_hour,
            ip_address=ip_address,
        )
        await self.revoke(old.id, current_user.org_id, current_user.id, ip_address)
        await self.audit_service.api_key_event(
            AuditAction.API_KEY_ROTATE,
            old.id,
            current_user.org_id,
            current_user.id,
            ip_address,
            replaced_by=str(new_key.record.id),
        )
        return new_key
