"""Achievement badge ORM model."""
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rentledger.models.base import Base, TimestampMixin, new_id


class TenantBadge(TimestampMixin, Base):
    """A badge unlocked by a tenant. One row per (tenant, badge type), never deleted."""

    __tablename__ = "tenant_badges"
    __table_args__ = (
        UniqueConstraint("tenant_id", "badge_type", name="uq_tenant_badges_tenant_badge_type"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    badge_type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    icon_name: Mapped[str] = mapped_column(String(32), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    earned_at: Mapped[date] = mapped_column(Date, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON)
    # Unset until the badge.earned event has been accepted by Kafka.
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    tenant = relationship("User", back_populates="badges")


__all__ = ["TenantBadge"]
