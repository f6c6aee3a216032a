"""Audit events for key and webhook administration."""

from sqlalchemy import Column, ForeignKey, Index, String, Uuid
from sqlalchemy import Enum as SQLEnum

from gateway.models.base import BaseModel, JSONType
from gateway.models.enums import AuditAction


class AuditEvent(BaseModel):
    """Who issued, revoked or rotated a key, or changed a webhook endpoint.

    ``entity_type`` is ``api_key`` or ``webhook_endpoint``; ``diff_json``
    holds the scopes of an issued key, the replacement of a rotated one, or
    the before/after values of an endpoint update. Rows are never updated.
    Plaintext keys and webhook secrets never appear here.
    """

    __tablename__ = "audit_events"

    org_id = Column(Uuid(as_uuid=True), ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    action = Column(
        SQLEnum(AuditAction, name="audit_action", values_callable=lambda enum: [m.value for m in enum]),
        nullable=False,
    )
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False)
    diff_json = Column(JSONType, nullable=True)
    ip_address = Column(String(64), nullable=True)

    __table_args__ = (
        Index("idx_audit_events_org_created", "org_id", "created_at"),
        Index("idx_audit_events_entity", "entity_type", "entity_id"),
        Index("idx_audit_events_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<AuditEvent {self.action} {self.entity_type}:{self.entity_id}>"
