"""Request authorizer: the single choke point for API-key access."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.errors import Forbidden, InvalidCredential, MissingCredential
from gateway.core.security import digest_key
from gateway.models.api_key import ApiKey
from gateway.models.base import as_utc


@dataclass(frozen=True)
class AuthContext:
    """What a route may know about an authorized caller."""

    key_id: UUID
    key_hash: str
    org_id: UUID
    permissions: tuple[str, ...]
    rate_limit_per_hour: int

    @property
    def tenant_id(self) -> UUID:
        return self.org_id


def key_is_usable(key: ApiKey, now: datetime | None = None) -> bool:
    """Active and not past its expiry."""
    if not key.is_active:
        return False
    expires_at = as_utc(key.expires_at)
    if expires_at is None:
        return True
    return (now or datetime.now(UTC)) < expires_at


class RequestAuthorizer:
    """Resolves a presented key to a tenant and scope set.

    Has no side effects: callers record usage once the outcome is known so
    rejected calls are audited exactly like accepted ones.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authorize(
        self,
        presented_key: str | None,
        required_permission: str | None = None,
    ) -> AuthContext:
        """Authorize a presented key for one permission.

        Args:
            presented_key: Raw value of the ``x-api-key`` header
            required_permission: Scope such as ``projects:write``; ``None``
                only checks that the key is valid

        Raises:
            MissingCredential: no key presented
            InvalidCredential: unknown, revoked or expired key (same error for all)
            Forbidden: valid key without ``required_permission``
        """
        if not presented_key:
            raise MissingCredential()

        key_hash = digest_key(presented_key)
        result = await self.db.execute(select(ApiKey).where(ApiKey.api_key_hash == key_hash))
        key = result.scalar_one_or_none()

        if key is None or not key_is_usable(key):
            raise InvalidCredential()

        permissions = tuple(key.permissions or ())
        if required_permission is not None and required_permission not in permissions:
            raise Forbidden()

        return AuthContext(
            key_id=key.id,
            key_hash=key_hash,
            org_id=key.org_id,
            permissions=permissions,
            rate_limit_per_hour=key.rate_limit_per_hour,
        )
