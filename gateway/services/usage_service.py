"""Usage recorder for API-key calls."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gateway.core.metrics import USAGE_RECORD_FAILURES_TOTAL
from gateway.core.structured_logging import log_json
from gateway.models.api_key import ApiKey
from gateway.models.api_usage import ApiUsageRecord

logger = logging.getLogger(__name__)

# Only record-store calls count against a key's hourly ceiling.
METERED_PREFIX = "/api/"


class UsageRecorder:
    """Appends one usage row per gateway call.

    Rows are written through a dedicated session so they survive a rolled-back
    request, and any failure is logged and swallowed: losing a usage row
    degrades accounting, never the request itself.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        key_hash: str | None,
        endpoint: str,
        method: str,
        status: int,
        org_id: UUID | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        try:
            async with self.session_factory() as session:
                session.add(
                    ApiUsageRecord(
                        api_key_hash=key_hash,
                        org_id=org_id,
                        endpoint=endpoint,
                        method=method,
                        ip_address=ip_address,
                        user_agent=user_agent[:512] if user_agent else None,
                        response_status=status,
                    )
                )
                if key_hash and status < 400:
                    await session.execute(
                        update(ApiKey)
                        .where(ApiKey.api_key_hash == key_hash)
                        .values(last_used_at=datetime.now(UTC))
                    )
                await session.commit()
        except Exception as exc:
            USAGE_RECORD_FAILURES_TOTAL.inc()
            log_json(
                logger,
                logging.ERROR,
                "usage_record_failed",
                endpoint=endpoint,
                method=method,
                status_code=status,
                error=str(exc),
                exception=exc.__class__.__name__,
            )

    async def requests_in_window(self, key_hash: str, window: timedelta) -> int:
        """Count metered (``/api/...``) calls made with a key over the trailing window, at the store.

        Key validation and the issuing ``/create-key`` row are not metered.
        """
        cutoff = datetime.now(UTC) - window
        async with self.session_factory() as session:
            count = await session.scalar(
                select(func.count())
                .select_from(ApiUsageRecord)
                .where(ApiUsageRecord.api_key_hash == key_hash)
                .where(ApiUsageRecord.endpoint.startswith(METERED_PREFIX))
                .where(ApiUsageRecord.created_at >= cutoff)
            )
        return int(count or 0)
