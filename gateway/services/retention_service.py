"""Usage-record retention.

Only ``api_usage`` rows expire. API keys, audit events and webhook delivery
logs are kept for as long as their tenant exists.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from gateway.core.config import get_settings
from gateway.models.api_usage import ApiUsageRecord

PURGE_BATCH_SIZE = 5000


class UsageRetentionService:
    def __init__(self, db: AsyncSession, batch_size: int = PURGE_BATCH_SIZE):
        self.db = db
        self.batch_size = batch_size

    @staticmethod
    def cutoff(retention_days: int) -> datetime:
        return datetime.now(UTC) - timedelta(days=retention_days)

    async def cleanup(self, retention_days: int | None = None) -> int:
        """Delete usage rows older than the window and return how many went.

        Rows are removed in id batches so a large backlog does not hold one
        long lock on the table the request path appends to.
        """
        if retention_days is None:
            retention_days = get_settings().usage_retention_days
        expired = ApiUsageRecord.created_at < self.cutoff(int(retention_days))

        deleted = 0
        while True:
            ids = list(
                (await self.db.scalars(select(ApiUsageRecord.id).where(expired).limit(self.batch_size))).all()
            )
            if not ids:
                return deleted
            await self.db.execute(delete(ApiUsageRecord).where(ApiUsageRecord.id.in_(ids)))
            await self.db.flush()
            deleted += len(ids)
