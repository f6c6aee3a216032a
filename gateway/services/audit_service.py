"""Audit trail for API key and webhook endpoint administration."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from gateway.models.audit_event import AuditEvent
from gateway.models.enums import AuditAction

API_KEY = "api_key"
WEBHOOK_ENDPOINT = "webhook_endpoint"


def field_diff(target: object, changes: Mapping[str, Any], fields: Iterable[str]) -> dict[str, dict[str, Any]]:
    """``{field: {"before": ..., "after": ...}}`` for the fields ``changes`` actually alters.

    ``None`` in ``changes`` means "leave as is".
    """
    diff: dict[str, dict[str, Any]] = {}
    for field in fields:
        after = changes.get(field)
        if after is None:
            continue
        before = getattr(target, field)
        if before != after:
            diff[field] = {"before": before, "after": after}
    return diff


class AuditService:
    """Appends audit events inside the caller's transaction.

    An event is only visible once the surrounding change commits, so a rolled
    back issue or update leaves no trace.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        org_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: UUID,
        user_id: UUID | None = None,
        diff_json: dict[str, Any] | None = None,
        ip_address: str | None = None,
    ) -> AuditEvent:
        event = AuditEvent(
            org_id=org_id,
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            diff_json=diff_json,
            ip_address=ip_address,
        )
        self.db.add(event)
        await self.db.flush()
        return event

    async def api_key_event(
        self,
        action: AuditAction,
        key_id: UUID,
        org_id: UUID,
        user_id: UUID | None,
        ip_address: str | None = None,
        **detail: Any,
    ) -> AuditEvent:
        return await self.log(
            org_id=org_id,
            action=action,
            entity_type=API_KEY,
            entity_id=key_id,
            user_id=user_id,
            diff_json=detail or None,
            ip_address=ip_address,
        )

    async def webhook_event(
        self,
        action: AuditAction,
        endpoint_id: UUID,
        org_id: UUID,
        user_id: UUID | None,
        diff: dict[str, Any],
        ip_address: str | None = None,
    ) -> AuditEvent:
        return await self.log(
            org_id=org_id,
            action=action,
            entity_type=WEBHOOK_ENDPOINT,
            entity_id=endpoint_id,
            user_id=user_id,
            diff_json=diff,
            ip_address=ip_address,
        )
