"""Gateway API key model."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Uuid

from gateway.models.base import BaseModel, JSONType


class ApiKey(BaseModel):
    """Tenant-scoped API key.

    Only the keyed digest and a short display prefix are stored. Revoked keys
    stay in the table for audit; rows are never deleted.
    """

    __tablename__ = "api_keys"

    org_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    key_name = Column(String(100), nullable=False)
    api_key_hash = Column(String(64), nullable=False, unique=True)
    api_key_prefix = Column(String(20), nullable=False)
    permissions = Column(JSONType, nullable=False, default=list)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    rate_limit_per_hour = Column(Integer, nullable=False, default=1000)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, prefix={self.api_key_prefix}, active={self.is_active})>"
