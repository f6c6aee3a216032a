"""User model."""

from sqlalchemy import Boolean, Column, ForeignKey, String, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from gateway.models.base import BaseModel
from gateway.models.enums import UserRole


class User(BaseModel):
    """Tenant member as known to the gateway.

    Credentials live with the identity provider; the gateway only needs the
    tenant and role behind a verified bearer token.
    """

    __tablename__ = "users"

    org_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    email = Column(String(255), nullable=False)
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=lambda x: [e.value for e in x]),
        nullable=False,
        default=UserRole.VIEWER,
    )
    is_active = Column(Boolean, nullable=False, default=True)

    organization = relationship("Organization", back_populates="users")

    @property
    def is_tenant_admin(self) -> bool:
        return self.role.has_permission(UserRole.ADMIN)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
