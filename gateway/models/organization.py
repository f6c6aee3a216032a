"""Organization (tenant) model."""

from sqlalchemy import CheckConstraint, Column, String
from sqlalchemy.orm import relationship

from gateway.models.base import BaseModel


class Organization(BaseModel):
    """Tenant boundary.

    API keys, webhook endpoints and business records all carry an ``org_id``;
    nothing owned by one organization is reachable with another's credentials.
    """

    __tablename__ = "organizations"
    __table_args__ = (CheckConstraint("LENGTH(name) > 0", name="organization_name_not_empty"),)

    name = Column(String(255), nullable=False, unique=True, index=True)

    users = relationship("User", back_populates="organization", cascade="all, delete-orphan")
    # Read-side only; keys and endpoints are always queried with an explicit org_id filter.
    api_keys = relationship("ApiKey", viewonly=True, lazy="raise")
    webhook_endpoints = relationship("WebhookEndpoint", viewonly=True, lazy="raise")

    def __repr__(self) -> str:
        return f"<Organization {self.name!r} ({self.id})>"
