"""SQLAlchemy models."""

from gateway.models.api_key import ApiKey
from gateway.models.api_usage import ApiUsageRecord
from gateway.models.audit_event import AuditEvent
from gateway.models.base import Base, BaseModel
from gateway.models.enums import (
    KNOWN_SCOPES,
    ApiResource,
    AuditAction,
    DeliveryStatus,
    UserRole,
)
from gateway.models.organization import Organization
from gateway.models.records import Estimate, Invoice, Project
from gateway.models.user import User
from gateway.models.webhook_delivery_log import WebhookDeliveryLog
from gateway.models.webhook_endpoint import WebhookEndpoint

__all__ = [
    "Base",
    "BaseModel",
    "KNOWN_SCOPES",
    "ApiResource",
    "AuditAction",
    "DeliveryStatus",
    "UserRole",
    "Organization",
    "User",
    "ApiKey",
    "ApiUsageRecord",
    "AuditEvent",
    "Project",
    "Estimate",
    "Invoice",
    "WebhookEndpoint",
    "WebhookDeliveryLog",
]
