"""Rent payment ORM model."""
from __future__ import annotations

import enum
from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models.base import Base, TimestampMixin, new_id


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    LATE = "late"
    MISSED = "missed"


class PaymentSource(str, enum.Enum):
    BANK = "bank"
    MANUAL = "manual"


def period_for(due_date: date) -> str:
    """Return the ``YYYY-MM`` billing period a due date falls in."""
    return f"{due_date.year:04d}-{due_date.month:02d}"


class RentPayment(TimestampMixin, Base):
    """A single rent instalment as synced from a bank feed or logged by the tenant.

    ``status`` and ``source`` are stored as plain strings: bank feeds are not
    trusted to send known values and the ledger reader reports bad rows instead
    of refusing to store them.
    """

    __tablename__ = "rent_payments"
    __table_args__ = (
        UniqueConstraint("property_id", "period", "source", name="uq_rent_payments_property_period_source"),
        Index("ix_rent_payments_tenant_id", "tenant_id"),
        Index("ix_rent_payments_property_due", "property_id", "due_date"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    amount_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    paid_date: Mapped[date | None] = mapped_column(Date)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PaymentStatus.PENDING.value)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default=PaymentSource.MANUAL.value)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    external_reference: Mapped[str | None] = mapped_column(String(128))
    superseded_by_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("rent_payments.id", ondelete="SET NULL"), nullable=True
    )

    property = relationship("Property", back_populates="payments")


__all__ = ["PaymentSource", "PaymentStatus", "RentPayment", "period_for"]
