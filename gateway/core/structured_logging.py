"""JSON log lines for the gateway.

Every line carries a UTC timestamp, the level name, the event name and, when
one is bound, the request or task correlation ID. Fields whose value is
``None`` are left out so optional context (``org_id`` before authorization,
``status_code`` after a transport failure) does not clutter the line.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from gateway.core.request_context import get_request_id


def _render(level: int, event: str, fields: dict[str, Any]) -> str:
    line: dict[str, Any] = {
        "ts": datetime.now(UTC).isoformat(timespec="milliseconds"),
        "level": logging.getLevelName(level).lower(),
        "event": event,
        "request_id": get_request_id(),
    }
    line.update(fields)
    return json.dumps(
        {key: value for key, value in line.items() if value is not None},
        default=str,
        separators=(",", ":"),
    )


def log_json(logger: logging.Logger, level: int, event: str, **fields: Any) -> None:
    if logger.isEnabledFor(level):
        logger.log(level, _render(level, event, fields))
