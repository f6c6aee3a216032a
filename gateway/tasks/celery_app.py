"""Celery worker and beat wiring for gateway housekeeping."""

from __future__ import annotations

import logging
from contextvars import Token

from celery import Celery
from celery.schedules import crontab
from celery.signals import task_postrun, task_prerun

from gateway.core.config import get_settings
from gateway.core.request_context import reset_request_id, set_request_id

logger = logging.getLogger(__name__)

USAGE_RETENTION_TASK = "gateway.tasks.retention_task.purge_usage_records"


def create_celery_app() -> Celery:
    settings = get_settings()
    app = Celery(
        "gateway",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend or settings.celery_broker_url,
        include=["gateway.tasks.retention_task"],
    )
    app.conf.timezone = "UTC"
    app.conf.enable_utc = True
    app.conf.beat_schedule = {
        "usage-retention-daily": {"task": USAGE_RETENTION_TASK, "schedule": crontab(hour=2, minute=30)},
    }
    return app


celery_app = create_celery_app()

# task id -> token restoring the correlation id bound before the task ran
_bound: dict[str, Token[str | None]] = {}


@task_prerun.connect
def _bind_task_id(task_id: str | None = None, **_: object) -> None:
    """Log lines emitted by a task carry its task id as correlation id."""
    if task_id:
        _bound[task_id] = set_request_id(task_id)


@task_postrun.connect
def _unbind_task_id(task_id: str | None = None, **_: object) -> None:
    token = _bound.pop(task_id, None) if task_id else None
    if token is None:
        return
    try:
        reset_request_id(token)
    except ValueError:
        logger.exception("Failed to reset task correlation ID")
