"""Prometheus scrape endpoint."""

from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from gateway.core.config import get_settings

router = APIRouter()


def _presented_token(authorization: str | None, header_token: str | None) -> str | None:
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials.strip():
            return credentials.strip()
    return header_token


async def require_scrape_token(
    authorization: str | None = Header(default=None),
    x_metrics_token: str | None = Header(default=None, alias="X-Metrics-Token"),
) -> None:
    """Production scrapes need METRICS_TOKEN; without one configured the endpoint is hidden."""
    settings = get_settings()
    if not settings.is_production:
        return
    if not settings.metrics_token:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    token = _presented_token(authorization, x_metrics_token)
    if token is None or not hmac.compare_digest(token, settings.metrics_token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


@router.get("/metrics", include_in_schema=False, dependencies=[Depends(require_scrape_token)])
async def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
