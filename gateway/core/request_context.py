"""Correlation IDs for API requests, webhook dispatches and Celery tasks."""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar, Token
from uuid import uuid4

_MAX_REQUEST_ID_LENGTH = 128

_request_id_var: ContextVar[str | None] = ContextVar("gateway_request_id", default=None)


def get_request_id() -> str | None:
    return _request_id_var.get()


def set_request_id(request_id: str | None) -> Token[str | None]:
    """Bind a correlation ID and return the token needed to unbind it."""
    return _request_id_var.set(request_id)


def reset_request_id(token: Token[str | None]) -> None:
    _request_id_var.reset(token)


def accept_request_id(candidate: str | None) -> str:
    """Reuse a caller-supplied correlation ID when it is safe to log, else mint one.

    Header values longer than 128 characters or containing line breaks are
    discarded so they cannot forge log lines.
    """
    if candidate:
        candidate = candidate.strip()
        if (
            candidate
            and len(candidate) <= _MAX_REQUEST_ID_LENGTH
            and "\n" not in candidate
            and "\r" not in candidate
        ):
            return candidate
    return str(uuid4())


@contextmanager
def request_id_context(request_id: str | None):
    token = set_request_id(request_id)
    try:
        yield
    finally:
        reset_request_id(token)
