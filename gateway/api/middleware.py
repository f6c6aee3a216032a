"""HTTP middleware: response hardening and per-request logging/metrics."""

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from gateway.core.config import get_settings
from gateway.core.metrics import observe_http_request
from gateway.core.request_context import accept_request_id, request_id_context
from gateway.core.structured_logging import log_json

logger = logging.getLogger(__name__)

_HSTS = "max-age=63072000; includeSubDomains"


def _credential_kind(request: Request) -> str | None:
    """Which credential the caller presented; the credential itself is never logged."""
    if request.headers.get("x-api-key"):
        return "api_key"
    if request.headers.get("authorization", "").lower().startswith("bearer "):
        return "bearer"
    return None


def _route_label(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers on every response.

    Responses may carry freshly issued keys or webhook secrets, so nothing is
    cacheable.
    """

    HEADERS = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "no-referrer",
        "Cache-Control": "no-store",
    }

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in self.HEADERS.items():
            response.headers.setdefault(name, value)

        forwarded = request.headers.get("x-forwarded-proto", request.url.scheme)
        if get_settings().is_production and forwarded == "https":
            response.headers.setdefault("Strict-Transport-Security", _HSTS)
        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One ``request`` log line and one metrics sample per request.

    The correlation ID (``X-Request-ID``, or ``X-Correlation-ID``) stays bound
    while the request is handled, so webhook dispatches and usage writes it
    starts log under the same ID.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = accept_request_id(
            request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")
        )
        request.state.request_id = request_id
        context = {
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "credential": _credential_kind(request),
        }
        started = time.perf_counter()

        with request_id_context(request_id):
            try:
                response = await call_next(request)
            except Exception as exc:
                log_json(
                    logger,
                    logging.ERROR,
                    "request_error",
                    status_code=500,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    error=str(exc),
                    exception=exc.__class__.__name__,
                    **context,
                )
                raise

            elapsed_ms = (time.perf_counter() - started) * 1000
            response.headers.setdefault("X-Request-ID", request_id)
            observe_http_request(
                method=request.method,
                route=_route_label(request),
                status_code=response.status_code,
                duration_ms=elapsed_ms,
            )
            log_json(
                logger,
                _level_for(response.status_code),
                "request",
                status_code=response.status_code,
                duration_ms=round(elapsed_ms, 2),
                **context,
            )
            return response
