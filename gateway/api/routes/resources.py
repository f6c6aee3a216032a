"""API-key access to projects, estimates and invoices.

Every handler authorizes first, touches the record store only through a
``RecordStore`` bound to the authorized tenant, and records exactly one usage
row whatever the outcome.
"""

from __future__ import annotations

import json
import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import client_ip, get_usage_recorder
from gateway.core.config import get_settings
from gateway.core.database import get_db
from gateway.core.errors import GatewayError, InternalError, RateLimitExceeded, ValidationError
from gateway.core.security import digest_key
from gateway.core.structured_logging import log_json
from gateway.models.enums import READ, WRITE, ApiResource
from gateway.schemas.resources import (
    EstimateCreate,
    EstimateOut,
    InvoiceCreate,
    InvoiceOut,
    ProjectCreate,
    ProjectOut,
)
from gateway.services.authorizer import AuthContext, RequestAuthorizer
from gateway.services.record_store import RecordStore
from gateway.services.usage_service import UsageRecorder

router = APIRouter()
logger = logging.getLogger(__name__)
settings = get_settings()

# resource -> (create schema, output schema, singular response key)
RESOURCE_SCHEMAS: dict[ApiResource, tuple[type[BaseModel], type[BaseModel], str]] = {
    ApiResource.PROJECTS: (ProjectCreate, ProjectOut, "project"),
    ApiResource.ESTIMATES: (EstimateCreate, EstimateOut, "estimate"),
    ApiResource.INVOICES: (InvoiceCreate, InvoiceOut, "invoice"),
}

MAX_PAGE_SIZE = 500


def _page(request: Request) -> tuple[int, int]:
    try:
        limit = int(request.query_params.get("limit", 100))
        offset = int(request.query_params.get("offset", 0))
    except ValueError:
        raise ValidationError("limit and offset must be integers") from None
    if not 1 <= limit <= MAX_PAGE_SIZE or offset < 0:
        raise ValidationError(f"limit must be 1..{MAX_PAGE_SIZE} and offset >= 0")
    return limit, offset


async def _parse_body(request: Request, schema: type[BaseModel]) -> dict[str, Any]:
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Request body must be valid JSON") from None
    if not isinstance(raw, dict):
        raise ValidationError("Request body must be a JSON object")

    try:
        parsed = schema.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid request body",
            details=json.loads(e.json(include_url=False)),
        ) from None
    return parsed.model_dump()


async def _enforce_rate_limit(context: AuthContext, recorder: UsageRecorder) -> None:
    if not settings.rate_limit_enforced:
        return
    used = await recorder.requests_in_window(
        context.key_hash, timedelta(minutes=settings.rate_limit_window_minutes)
    )
    if used >= context.rate_limit_per_hour:
        raise RateLimitExceeded()


async def _serve(
    request: Request,
    resource: ApiResource,
    action: str,
    db: AsyncSession,
    recorder: UsageRecorder,
) -> JSONResponse:
    endpoint = f"/api/{resource.value}"
    presented = request.headers.get("x-api-key")
    key_hash = digest_key(presented) if presented else None
    org_id = None
    create_schema, out_schema, singular = RESOURCE_SCHEMAS[resource]

    async def record(status_code: int) -> None:
        await recorder.record(
            key_hash,
            endpoint,
            request.method,
            status_code,
            org_id=org_id,
            ip_address=client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )

    try:
        context = await RequestAuthorizer(db).authorize(presented, resource.scope(action))
        org_id = context.org_id
        await _enforce_rate_limit(context, recorder)
        store = RecordStore(db, context.org_id)

        if action == READ:
            limit, offset = _page(request)
            records = await store.list_records(resource, limit=limit, offset=offset)
            status_code = status.HTTP_200_OK
            content = {
                resource.value: [out_schema.model_validate(r).model_dump(mode="json") for r in records]
            }
        else:
            data = await _parse_body(request, create_schema)
            created = await store.create_record(resource, data)
            await db.commit()
            status_code = status.HTTP_201_CREATED
            content = {singular: out_schema.model_validate(created).model_dump(mode="json")}
    except GatewayError as exc:
        await record(exc.status_code)
        raise
    except Exception as exc:
        log_json(
            logger,
            logging.ERROR,
            "resource_store_error",
            resource=resource.value,
            method=request.method,
            org_id=str(org_id) if org_id else None,
            error=str(exc),
            exception=exc.__class__.__name__,
        )
        await db.rollback()
        await record(status.HTTP_500_INTERNAL_SERVER_ERROR)
        raise InternalError() from exc

    await record(status_code)
    return JSONResponse(status_code=status_code, content=content)


def _register(resource: ApiResource) -> None:
    path = f"/api/{resource.value}"

    async def list_records(
        request: Request,
        db: AsyncSession = Depends(get_db),
        recorder: UsageRecorder = Depends(get_usage_recorder),
    ) -> JSONResponse:
        return await _serve(request, resource, READ, db, recorder)

    async def create_record(
        request: Request,
        db: AsyncSession = Depends(get_db),
        recorder: UsageRecorder = Depends(get_usage_recorder),
    ) -> JSONResponse:
        return await _serve(request, resource, WRITE, db, recorder)

    router.add_api_route(
        path,
        list_records,
        methods=["GET"],
        name=f"list_{resource.value}",
        summary=f"List {resource.value} ({resource.scope(READ)})",
    )
    router.add_api_route(
        path,
        create_record,
        methods=["POST"],
        status_code=status.HTTP_201_CREATED,
        name=f"create_{resource.value}",
        summary=f"Create a record in {resource.value} ({resource.scope(WRITE)})",
    )


for _resource in ApiResource:
    _register(_resource)
