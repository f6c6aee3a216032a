"""Webhook endpoint model."""

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from gateway.models.base import BaseModel, JSONType


class WebhookEndpoint(BaseModel):
    """Registered receiver for outbound events.

    ``failure_count`` counts consecutive failed deliveries and is reset by the
    next success. It is only ever changed through UPDATE expressions.
    """

    __tablename__ = "webhook_endpoints"

    org_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(String(100), nullable=False)
    url = Column(Text, nullable=False)
    secret_token = Column(String(255), nullable=False)
    events = Column(JSONType, nullable=False, default=list)
    timeout_seconds = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, nullable=False, default=True)
    failure_count = Column(Integer, nullable=False, default=0)
    last_success_at = Column(DateTime(timezone=True), nullable=True)
    last_failure_at = Column(DateTime(timezone=True), nullable=True)
    created_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    deliveries = relationship(
        "WebhookDeliveryLog",
        back_populates="endpoint",
        order_by="WebhookDeliveryLog.attempted_at.desc()",
    )

    __table_args__ = (
        CheckConstraint("timeout_seconds > 0", name="webhook_timeout_positive"),
        CheckConstraint("failure_count >= 0", name="webhook_failure_count_non_negative"),
    )

    def subscribes_to(self, event_type: str) -> bool:
        return event_type in (self.events or [])

    def __repr__(self) -> str:
        return f"<WebhookEndpoint(id={self.id}, url={self.url}, active={self.is_active})>"
