"""API usage record model."""

from sqlalchemy import Column, Index, Integer, String, Uuid

from gateway.models.base import BaseModel


class ApiUsageRecord(BaseModel):
    """One row per gateway call, written for accepted and rejected calls alike."""

    __tablename__ = "api_usage_logs"

    # NULL when the caller presented no key at all
    api_key_hash = Column(String(64), nullable=True)
    org_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    endpoint = Column(String(255), nullable=False)
    method = Column(String(10), nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    response_status = Column(Integer, nullable=False)

    __table_args__ = (
        Index("idx_api_usage_key_created", "api_key_hash", "created_at"),
        Index("idx_api_usage_created", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<ApiUsageRecord(endpoint={self.endpoint}, status={self.response_status})>"
