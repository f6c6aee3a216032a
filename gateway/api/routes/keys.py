"""API key issuance, validation and administration routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import client_ip, get_current_user, get_usage_recorder, require_admin
from gateway.core.database import get_db
from gateway.core.errors import GatewayError
from gateway.core.security import digest_key
from gateway.models.api_key import ApiKey
from gateway.models.user import User
from gateway.schemas.api_key import (
    ApiKeyListResponse,
    ApiKeyResponse,
    CreateApiKeyRequest,
    CreatedApiKeyResponse,
    ValidateKeyResponse,
)
from gateway.schemas.errors import ErrorResponse
from gateway.services.authorizer import RequestAuthorizer
from gateway.services.key_service import KeyAuthority, NewApiKey
from gateway.services.usage_service import UsageRecorder

router = APIRouter()


def _created_response(new_key: NewApiKey) -> CreatedApiKeyResponse:
    record: ApiKey = new_key.record
    return CreatedApiKeyResponse(
        id=record.id,
        key_name=record.key_name,
        api_key=new_key.plaintext,
        api_key_prefix=record.api_key_prefix,
        permissions=list(record.permissions),
        expires_at=record.expires_at,
        rate_limit_per_hour=record.rate_limit_per_hour,
        created_at=record.created_at,
    )


@router.post(
    "/validate-key",
    response_model=ValidateKeyResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Validate an API key (x-api-key header)",
)
async def validate_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    db: AsyncSession = Depends(get_db),
    recorder: UsageRecorder = Depends(get_usage_recorder),
) -> ValidateKeyResponse:
    """Report the tenant, scopes and hourly ceiling behind a key."""
    key_hash = digest_key(x_api_key) if x_api_key else None
    try:
        context = await RequestAuthorizer(db).authorize(x_api_key)
    except GatewayError as exc:
        await recorder.record(
            key_hash,
            "/validate-key",
            "POST",
            exc.status_code,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
        raise

    await recorder.record(
        key_hash,
        "/validate-key",
        "POST",
        status.HTTP_200_OK,
        org_id=context.org_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return ValidateKeyResponse(
        valid=True,
        tenant_id=context.org_id,
        permissions=list(context.permissions),
        rate_limit=context.rate_limit_per_hour,
    )


@router.post(
    "/create-key",
    response_model=CreatedApiKeyResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
    summary="Issue an API key for the caller's tenant (key shown once)",
)
async def create_key(
    request: Request,
    body: CreateApiKeyRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    recorder: UsageRecorder = Depends(get_usage_recorder),
) -> CreatedApiKeyResponse:
    """Issue a key; only tenant admins may call this."""
    authority = KeyAuthority(db)
    new_key = await authority.issue(
        current_user=current_user,
        key_name=body.key_name,
        permissions=body.permissions,
        expires_at=body.expires_at,
        rate_limit_per_hour=body.rate_limit_per_hour,
        ip_address=client_ip(request),
    )
    await db.commit()

    await recorder.record(
        new_key.record.api_key_hash,
        "/create-key",
        "POST",
        status.HTTP_201_CREATED,
        org_id=current_user.org_id,
        ip_address=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return _created_response(new_key)


@router.get(
    "/keys",
    response_model=ApiKeyListResponse,
    summary="List the tenant's API keys (admin only)",
)
async def list_keys(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
) -> ApiKeyListResponse:
    keys = await KeyAuthority(db).list_keys(current_user.org_id)
    items = [ApiKeyResponse.model_validate(k) for k in keys]
    return ApiKeyListResponse(items=items, total=len(items))


@router.post(
    "/keys/{key_id}/revoke",
    response_model=ApiKeyResponse,
    summary="Revoke an API key (admin only, idempotent)",
)
async def revoke_key(
    request: Request,
    key_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
) -> ApiKeyResponse:
    key = await KeyAuthority(db).revoke(
        key_id=key_id,
        org_id=current_user.org_id,
        user_id=current_user.id,
        ip_address=client_ip(request),
    )
    await db.commit()
    return ApiKeyResponse.model_validate(key)


@router.post(
    "/keys/{key_id}/rotate",
    response_model=CreatedApiKeyResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Rotate an API key: issue a replacement and revoke the old key",
)
async def rotate_key(
    request: Request,
    key_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
) -> CreatedApiKeyResponse:
    new_key = await KeyAuthority(db).rotate(
        key_id=key_id,
        current_user=current_user,
        ip_address=client_ip(request),
    )
    await db.commit()
    return _created_response(new_key)
