"""Tenant-bound access to the external record store."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.models.enums import ApiResource
from gateway.models.records import Estimate, Invoice, Project, TenantRecord

RECORD_MODELS: dict[ApiResource, type[TenantRecord]] = {
    ApiResource.PROJECTS: Project,
    ApiResource.ESTIMATES: Estimate,
    ApiResource.INVOICES: Invoice,
}


class RecordStore:
    """Reads and writes business records for exactly one tenant.

    The tenant is fixed at construction from an authorized context, and every
    statement this class builds carries ``org_id == tenant``. There is no
    unscoped query path.
    """

    def __init__(self, db: AsyncSession, org_id: UUID):
        if org_id is None:
            raise ValueError("RecordStore requires a tenant id")
        self.db = db
        self.org_id = org_id

    async def list_records(
        self,
        resource: ApiResource,
        limit: int = 100,
        offset: int = 0,
    ) -> list[TenantRecord]:
        model = RECORD_MODELS[resource]
        query = (
            select(model)
            .where(model.org_id == self.org_id)
            .order_by(model.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def create_record(self, resource: ApiResource, data: dict[str, Any]) -> TenantRecord:
        """Insert a record owned by this tenant.

        ``org_id`` and ``id`` in ``data`` are overwritten/ignored; ownership
        always comes from the authorized context.
        """
        model = RECORD_MODELS[resource]
        values = {k: v for k, v in data.items() if k not in ("id", "org_id")}
        record = model(**values, org_id=self.org_id)
        self.db.add(record)
        await self.db.flush()
        await self.db.refresh(record)
        return record
