"""Business records owned by the external record store.

The gateway only reads and appends these rows; their full schemas belong to
the construction-management application.
"""

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, Uuid

from gateway.models.base import BaseModel


class TenantRecord(BaseModel):
    """Abstract base for records filtered by tenant on every query."""

    __abstract__ = True

    org_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )


class Project(TenantRecord):
    __tablename__ = "projects"

    name = Column(String(255), nullable=False)
    status = Column(String(50), nullable=False, default="planning")
    budget = Column(Numeric(14, 2), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    completion_percentage = Column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name})>"


class Estimate(TenantRecord):
    __tablename__ = "estimates"

    estimate_number = Column(String(50), nullable=False)
    client_name = Column(String(255), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String(50), nullable=False, default="draft")

    def __repr__(self) -> str:
        return f"<Estimate(id={self.id}, number={self.estimate_number})>"


class Invoice(TenantRecord):
    __tablename__ = "invoices"

    invoice_number = Column(String(50), nullable=False)
    client_name = Column(String(255), nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    status = Column(String(50), nullable=False, default="draft")
    due_date = Column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<Invoice(id={self.id}, number={self.invoice_number})>"
