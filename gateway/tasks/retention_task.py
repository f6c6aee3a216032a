"""Nightly purge of expired API usage records."""

import asyncio
import logging
import time

from gateway.core.database import AsyncSessionLocal
from gateway.core.structured_logging import log_json
from gateway.services.retention_service import UsageRetentionService
from gateway.tasks.celery_app import USAGE_RETENTION_TASK, celery_app

logger = logging.getLogger(__name__)


async def purge(retention_days: int | None = None) -> int:
    async with AsyncSessionLocal() as session, session.begin():
        return await UsageRetentionService(session).cleanup(retention_days)


@celery_app.task(name=USAGE_RETENTION_TASK)
def purge_usage_records(retention_days: int | None = None) -> int:
    """Delete usage rows older than USAGE_RETENTION_DAYS (or ``retention_days``)."""
    started = time.perf_counter()

    def elapsed_ms() -> float:
        return round((time.perf_counter() - started) * 1000, 2)

    try:
        deleted = asyncio.run(purge(retention_days))
    except Exception as exc:
        log_json(
            logger,
            logging.ERROR,
            "usage_retention_failed",
            retention_days=retention_days,
            duration_ms=elapsed_ms(),
            error=str(exc),
            exception=exc.__class__.__name__,
        )
        raise

    log_json(logger, logging.INFO, "usage_retention_done", deleted=deleted, duration_ms=elapsed_ms())
    return deleted
