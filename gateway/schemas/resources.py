"""Pydantic schemas for the business-record API."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProjectCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=255)
    status: str = Field("planning", max_length=50)
    budget: Decimal | None = Field(None, ge=0)
    start_date: date | None = None
    end_date: date | None = None
    completion_percentage: int = Field(0, ge=0, le=100)

    @model_validator(mode="after")
    def dates_in_order(self) -> "ProjectCreate":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ProjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    status: str
    budget: Decimal | None
    start_date: date | None
    end_date: date | None
    completion_percentage: int
    created_at: datetime


class EstimateCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    estimate_number: str = Field(..., min_length=1, max_length=50)
    client_name: str = Field(..., min_length=1, max_length=255)
    total_amount: Decimal = Field(Decimal("0"), ge=0)
    status: str = Field("draft", max_length=50)


class EstimateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    estimate_number: str
    client_name: str
    total_amount: Decimal
    status: str
    created_at: datetime


class InvoiceCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    invoice_number: str = Field(..., min_length=1, max_length=50)
    client_name: str = Field(..., min_length=1, max_length=255)
    total_amount: Decimal = Field(Decimal("0"), ge=0)
    status: str = Field("draft", max_length=50)
    due_date: date | None = None


class InvoiceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    invoice_number: str
    client_name: str
    total_amount: Decimal
    status: str
    due_date: date | None
    created_at: datetime
