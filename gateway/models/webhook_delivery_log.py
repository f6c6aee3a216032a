"""Webhook delivery log model."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from gateway.models.base import BaseModel, JSONType
from gateway.models.enums import DeliveryStatus


class WebhookDeliveryLog(BaseModel):
    """Outcome of one delivery attempt (immutable record)."""

    __tablename__ = "webhook_delivery_logs"

    webhook_endpoint_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("webhook_endpoints.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type = Column(String(100), nullable=False)
    payload = Column(JSONType, nullable=False)
    delivery_status = Column(
        SQLEnum(
            DeliveryStatus,
            name="delivery_status",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    response_status = Column(Integer, nullable=True)
    response_body = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    duration_ms = Column(Integer, nullable=False, default=0)
    attempted_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    delivered_at = Column(DateTime(timezone=True), nullable=True)

    endpoint = relationship("WebhookEndpoint", back_populates="deliveries")

    __table_args__ = (
        Index("idx_webhook_deliveries_endpoint_time", "webhook_endpoint_id", "attempted_at"),
        Index("idx_webhook_deliveries_status", "delivery_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<WebhookDeliveryLog(id={self.id}, event={self.event_type}, "
            f"status={self.delivery_status})>"
        )
