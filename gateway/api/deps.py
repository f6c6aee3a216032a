"""FastAPI dependencies for identity, authorization and gateway services."""

from collections.abc import Callable
from uuid import UUID

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gateway.core.database import get_db, get_session_factory
from gateway.core.security import decode_token
from gateway.models.enums import UserRole
from gateway.models.user import User
from gateway.services.usage_service import UsageRecorder
from gateway.services.webhook_dispatcher import WebhookDispatcher

# auto_error=False so a missing header yields our 401 rather than Starlette's 403
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Verify the bearer token and resolve the caller's tenant and role.

    Raises:
        HTTPException: 401 if the token is missing/invalid or the user unknown
        HTTPException: 403 if the account is inactive
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization required",
        )

    payload = decode_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization",
        )

    result = await db.execute(select(User).where(User.id == _parse_subject(payload["sub"])))
    user = result.scalar_one_or_none()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    return user


def _parse_subject(sub: str) -> UUID:
    try:
        return UUID(str(sub))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization",
        ) from None


def require_role(minimum_role: UserRole) -> Callable:
    """Dependency factory for role-based access control.

    Example:
        @router.post("/webhooks")
        async def create_webhook(user: User = Depends(require_role(UserRole.ADMIN))):
            ...
    """

    async def check_role(
        current_user: User = Depends(get_current_user),
    ) -> User:
        if not current_user.role.has_permission(minimum_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return check_role


def require_admin() -> Callable:
    """Tenant admin (``admin`` or ``root_admin``)."""
    return require_role(UserRole.ADMIN)


def get_usage_recorder(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> UsageRecorder:
    return UsageRecorder(session_factory)


def get_webhook_transport() -> httpx.AsyncBaseTransport | None:
    """Outbound transport for webhook calls; ``None`` means real network I/O."""
    return None


def get_webhook_dispatcher(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    transport: httpx.AsyncBaseTransport | None = Depends(get_webhook_transport),
) -> WebhookDispatcher:
    return WebhookDispatcher(session_factory, transport=transport)


def client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None
