"""Schemas for rent payment endpoints."""
from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from rentledger.models import PaymentSource, PaymentStatus


class PaymentCreate(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=36)
    amount_pence: int = Field(..., gt=0)
    due_date: date
    paid_date: date | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    source: PaymentSource = PaymentSource.MANUAL
    external_reference: str | None = Field(default=None, max_length=128)

    @model_validator(mode="after")
    def _paid_needs_date(self) -> "PaymentCreate":
        if self.status is PaymentStatus.PAID and self.paid_date is None:
            raise ValueError("paid_date is required when status is 'paid'")
        return self


class PaymentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    period: str
    amount_pence: int
    due_date: date | None
    paid_date: date | None
    status: str
    source: str
    is_verified: bool
    external_reference: str | None = None
    superseded_by_id: str | None = None
    created_at: datetime


__all__ = ["PaymentCreate", "PaymentRead"]
