"""Pydantic schemas for webhook endpoints and deliveries."""

import re
from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator

from gateway.models.enums import DeliveryStatus

# Event types travel in the X-Webhook-Event header, which must stay ASCII.
EVENT_TYPE_PATTERN = r"^[A-Za-z0-9_.:-]+$"
_EVENT_TYPE_RE = re.compile(EVENT_TYPE_PATTERN)


def _clean_events(v: list[str] | None) -> list[str] | None:
    if v is None:
        return v
    cleaned: list[str] = []
    for item in v:
        item = item.strip()
        if not item:
            raise ValueError("event types cannot be empty")
        if not _EVENT_TYPE_RE.fullmatch(item):
            raise ValueError(f"invalid event type {item!r}: use letters, digits, '.', '_', ':' or '-'")
        if item not in cleaned:
            cleaned.append(item)
    return cleaned


class CreateWebhookRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    url: AnyHttpUrl
    events: list[str] = Field(..., min_length=1)
    timeout_seconds: int | None = Field(None, ge=1, le=120)
    secret_token: str | None = Field(None, min_length=16, max_length=255)

    @field_validator("events")
    @classmethod
    def events_unique(cls, v):
        return _clean_events(v)


class UpdateWebhookRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""

    name: str | None = Field(None, min_length=1, max_length=100)
    url: AnyHttpUrl | None = None
    events: list[str] | None = Field(None, min_length=1)
    timeout_seconds: int | None = Field(None, ge=1, le=120)
    is_active: bool | None = None

    @field_validator("events")
    @classmethod
    def events_unique(cls, v):
        return _clean_events(v)


class WebhookResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    url: str
    events: list[str]
    timeout_seconds: int
    is_active: bool
    failure_count: int
    last_success_at: datetime | None
    last_failure_at: datetime | None
    created_at: datetime


class CreatedWebhookResponse(WebhookResponse):
    """Creation response; the signing secret is shown here only."""

    secret_token: str


class WebhookListResponse(BaseModel):
    items: list[WebhookResponse]
    total: int


class TriggerWebhookRequest(BaseModel):
    webhook_id: UUID
    event_type: str = Field(..., min_length=1, max_length=100, pattern=EVENT_TYPE_PATTERN)
    payload: dict[str, Any] = Field(default_factory=dict)


class WebhookTestRequest(BaseModel):
    webhook_id: UUID


class BroadcastEventRequest(BaseModel):
    event_type: str = Field(..., min_length=1, max_length=100, pattern=EVENT_TYPE_PATTERN)
    payload: dict[str, Any] = Field(default_factory=dict)


class DeliveryResultResponse(BaseModel):
    success: bool
    status: int | None
    processing_time_ms: int
    delivery_id: UUID
    webhook_id: UUID
    error: str | None = None


class BroadcastResponse(BaseModel):
    results: list[DeliveryResultResponse]


class DeliveryLogItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    delivery_status: DeliveryStatus
    response_status: int | None
    response_body: str | None
    error_message: str | None
    duration_ms: int
    attempted_at: datetime
    delivered_at: datetime | None


class DeliveryLogListResponse(BaseModel):
    items: list[DeliveryLogItem]
    total: int
    limit: int
    offset: int
