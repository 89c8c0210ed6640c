"""Rented property ORM model."""
from __future__ import annotations

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models.base import Base, TimestampMixin, new_id


class Property(TimestampMixin, Base):
    """A tenancy registered by a tenant, optionally linked to a landlord account."""

    __tablename__ = "properties"
    __table_args__ = (
        Index("ix_properties_tenant_id", "tenant_id"),
        Index("ix_properties_landlord_id", "landlord_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    landlord_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    address: Mapped[str] = mapped_column(Text, nullable=False)
    city: Mapped[str] = mapped_column(String(128), nullable=False)
    postcode: Mapped[str] = mapped_column(String(16), nullable=False)
    monthly_rent_pence: Mapped[int] = mapped_column(Integer, nullable=False)
    landlord_name: Mapped[str | None] = mapped_column(String(255))
    landlord_email: Mapped[str | None] = mapped_column(String(320))
    landlord_phone: Mapped[str | None] = mapped_column(String(32))
    tenancy_start_date: Mapped[date | None] = mapped_column(Date)
    tenancy_end_date: Mapped[date | None] = mapped_column(Date)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    tenant = relationship("User", back_populates="properties", foreign_keys=[tenant_id])
    landlord = relationship("User", foreign_keys=[landlord_id])
    payments = relationship("RentPayment", back_populates="property", cascade="all, delete-orphan")

    @property
    def full_address(self) -> str:
        return f"{self.address}, {self.city} {self.postcode}"


__all__ = ["Property"]
