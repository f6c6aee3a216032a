"""Webhook delivery and endpoint registry routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.api.deps import client_ip, get_webhook_dispatcher, require_admin
from gateway.core.database import get_db
from gateway.models.user import User
from gateway.schemas.errors import ErrorResponse
from gateway.schemas.webhook import (
    BroadcastEventRequest,
    BroadcastResponse,
    CreatedWebhookResponse,
    CreateWebhookRequest,
    DeliveryLogItem,
    DeliveryLogListResponse,
    DeliveryResultResponse,
    TriggerWebhookRequest,
    UpdateWebhookRequest,
    WebhookListResponse,
    WebhookResponse,
    WebhookTestRequest,
)
from gateway.services.webhook_dispatcher import DeliveryResult, WebhookDispatcher
from gateway.services.webhook_service import WebhookService

router = APIRouter()

_DISPATCH_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


def _result_response(result: DeliveryResult) -> DeliveryResultResponse:
    return DeliveryResultResponse(
        success=result.success,
        status=result.status,
        processing_time_ms=result.processing_time_ms,
        delivery_id=result.delivery_id,
        webhook_id=result.webhook_id,
        error=result.error,
    )


@router.post(
    "/webhook/trigger",
    response_model=DeliveryResultResponse,
    responses=_DISPATCH_ERRORS,
    summary="Deliver one event to one webhook endpoint",
)
async def trigger_webhook(
    body: TriggerWebhookRequest,
    current_user: User = Depends(require_admin()),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> DeliveryResultResponse:
    """Single delivery attempt; a failed delivery is reported as ``success: false``."""
    result = await dispatcher.dispatch_shielded(
        endpoint_id=body.webhook_id,
        event_type=body.event_type,
        payload=body.payload,
        org_id=current_user.org_id,
    )
    return _result_response(result)


@router.post(
    "/webhook/test",
    response_model=DeliveryResultResponse,
    responses=_DISPATCH_ERRORS,
    summary="Send the reserved webhook.test event",
)
async def test_webhook(
    body: WebhookTestRequest,
    current_user: User = Depends(require_admin()),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> DeliveryResultResponse:
    result = await dispatcher.send_test(body.webhook_id, org_id=current_user.org_id)
    return _result_response(result)


@router.post(
    "/webhook/broadcast",
    response_model=BroadcastResponse,
    summary="Deliver an event to every subscribed endpoint of the tenant",
)
async def broadcast_event(
    body: BroadcastEventRequest,
    current_user: User = Depends(require_admin()),
    dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher),
) -> BroadcastResponse:
    results = await dispatcher.broadcast(current_user.org_id, body.event_type, body.payload)
    return BroadcastResponse(results=[_result_response(r) for r in results])


@router.post(
    "/webhooks",
    response_model=CreatedWebhookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a webhook endpoint (secret shown once)",
)
async def create_webhook(
    request: Request,
    body: CreateWebhookRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
) -> CreatedWebhookResponse:
    endpoint = await WebhookService(db).create(
        current_user=current_user,
        name=body.name,
        url=str(body.url),
        events=body.events,
        timeout_seconds=body.timeout_seconds,
        secret_token=body.secret_token,
        ip_address=client_ip(request),
    )
    await db.commit()
    return CreatedWebhookResponse.model_validate(endpoint)


@router.get(
    "/webhooks",
    response_model=WebhookListResponse,
    summary="List the tenant's webhook endpoints",
)
async def list_webhooks(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
) -> WebhookListResponse:
    endpoints = await WebhookService(db).list_endpoints(current_user.org_id)
    items = [WebhookResponse.model_validate(e) for e in endpoints]
    return WebhookListResponse(items=items, total=len(items))


@router.patch(
    "/webhooks/{webhook_id}",
    response_model=WebhookResponse,
    summary="Update or disable a webhook endpoint",
)
async def update_webhook(
    request: Request,
    webhook_id: UUID,
    body: UpdateWebhookRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
) -> WebhookResponse:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("url") is not None:
        changes["url"] = str(changes["url"])
    endpoint = await WebhookService(db).update(
        webhook_id, current_user, changes, ip_address=client_ip(request)
    )
    await db.commit()
    return WebhookResponse.model_validate(endpoint)


@router.get(
    "/webhooks/{webhook_id}/deliveries",
    response_model=DeliveryLogListResponse,
    summary="Delivery history for a webhook endpoint",
)
async def list_deliveries(
    webhook_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin()),
) -> DeliveryLogListResponse:
    logs, total = await WebhookService(db).list_deliveries(
        webhook_id, current_user.org_id, limit=limit, offset=offset
    )
    return DeliveryLogListResponse(
        items=[DeliveryLogItem.model_validate(log) for log in logs],
        total=total,
        limit=limit,
        offset=offset,
    )
