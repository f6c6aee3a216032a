"""Webhook endpoint registry for tenant admins."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.config import get_settings
from gateway.core.errors import NotFound
from gateway.core.security import generate_webhook_secret
from gateway.models.enums import AuditAction
from gateway.models.user import User
from gateway.models.webhook_delivery_log import WebhookDeliveryLog
from gateway.models.webhook_endpoint import WebhookEndpoint
from gateway.services.audit_service import AuditService, field_diff

_UPDATABLE_FIELDS = ("name", "url", "events", "timeout_seconds", "is_active")


class WebhookService:
    """CRUD for webhook endpoints, always scoped to the caller's tenant.

    Counters (``failure_count``, ``last_*_at``) are owned by the dispatcher and
    cannot be edited here.
    """

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit_service = AuditService(db)

    async def create(
        self,
        current_user: User,
        name: str,
        url: str,
        events: list[str],
        timeout_seconds: int | None,
        secret_token: str | None = None,
        ip_address: str | None = None,
    ) -> WebhookEndpoint:
        endpoint = WebhookEndpoint(
            org_id=current_user.org_id,
            name=name,
            url=url,
            events=events,
            timeout_seconds=timeout_seconds or get_settings().webhook_default_timeout_seconds,
            secret_token=secret_token or generate_webhook_secret(),
            is_active=True,
            failure_count=0,
            created_by=current_user.id,
        )
        self.db.add(endpoint)
        await self.db.flush()
        await self.db.refresh(endpoint)

        await self.audit_service.webhook_event(
            AuditAction.WEBHOOK_CREATE,
            endpoint.id,
            current_user.org_id,
            current_user.id,
            {"url": url, "events": events},
            ip_address,
        )
        return endpoint

    async def get(self, endpoint_id: UUID, org_id: UUID) -> WebhookEndpoint:
        result = await self.db.execute(
            select(WebhookEndpoint)
            .where(WebhookEndpoint.id == endpoint_id)
            .where(WebhookEndpoint.org_id == org_id)
        )
        endpoint = result.scalar_one_or_none()
        if not endpoint:
            raise NotFound("Webhook not found")
        return endpoint

    async def list_endpoints(self, org_id: UUID) -> list[WebhookEndpoint]:
        result = await self.db.execute(
            select(WebhookEndpoint)
            .where(WebhookEndpoint.org_id == org_id)
            .order_by(WebhookEndpoint.created_at.desc())
        )
        return list(result.scalars().all())

    async def update(
        self,
        endpoint_id: UUID,
        current_user: User,
        changes: dict[str, Any],
        ip_address: str | None = None,
    ) -> WebhookEndpoint:
        """Apply a partial update and audit the before/after values."""
        endpoint = await self.get(endpoint_id, current_user.org_id)

        diff = field_diff(endpoint, changes, _UPDATABLE_FIELDS)
        for field, values in diff.items():
            setattr(endpoint, field, values["after"])

        if diff:
            await self.db.flush()
            await self.db.refresh(endpoint)
            await self.audit_service.webhook_event(
                AuditAction.WEBHOOK_UPDATE,
                endpoint.id,
                current_user.org_id,
                current_user.id,
                diff,
                ip_address,
            )
        return endpoint

    async def list_deliveries(
        self,
        endpoint_id: UUID,
        org_id: UUID,
        limit: int,
        offset: int,
    ) -> tuple[list[WebhookDeliveryLog], int]:
        """Delivery history for one endpoint, newest first."""
        await self.get(endpoint_id, org_id)

        total = await self.db.scalar(
            select(func.count())
            .select_from(WebhookDeliveryLog)
            .where(WebhookDeliveryLog.webhook_endpoint_id == endpoint_id)
        )
        result = await self.db.execute(
            select(WebhookDeliveryLog)
            .where(WebhookDeliveryLog.webhook_endpoint_id == endpoint_id)
            .order_by(WebhookDeliveryLog.attempted_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), int(total or 0)
