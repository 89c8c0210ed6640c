"""Report snapshot and share link ORM models."""
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, JSON, String, event, func
from sqlalchemy.orm import Mapped, mapped_column, object_session, relationship

from rentledger.models.base import Base, new_id


class ReportType(str, enum.Enum):
    CREDIT = "credit"
    RENTAL = "rental"
    LANDLORD = "landlord"


class RecipientType(str, enum.Enum):
    LANDLORD = "landlord"
    LENDER = "lender"
    AGENCY = "agency"


class ImmutableReportError(RuntimeError):
    """Raised when code attempts to modify a stored report snapshot."""


class Report(Base):
    """Point-in-time attestation of a tenant's payment record. Insert-only."""

    __tablename__ = "reports"
    __table_args__ = (
        Index("ix_reports_tenant_id", "tenant_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    tenant_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    property_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    report_type: Mapped[str] = mapped_column(String(16), nullable=False)
    rent_score: Mapped[int] = mapped_column(Integer, nullable=False)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    body: Mapped[dict] = mapped_column(JSON, nullable=False)


class ReportShare(Base):
    """A time-limited public link to a report. The report itself is never touched."""

    __tablename__ = "report_shares"
    __table_args__ = (
        Index("ix_report_shares_report_id", "report_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    report_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("reports.id", ondelete="CASCADE"), nullable=False
    )
    share_token: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    share_url: Mapped[str] = mapped_column(String(512), nullable=False)
    recipient_email: Mapped[str | None] = mapped_column(String(320))
    recipient_type: Mapped[str | None] = mapped_column(String(16))
    access_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    report = relationship("Report")


@event.listens_for(Report, "before_update")
def _reject_report_update(mapper, connection, target: Report) -> None:  # type: ignore[no-untyped-def]
    session = object_session(target)
    if session is not None and not session.is_modified(target, include_collections=False):
        return
    raise ImmutableReportError(f"Report '{target.id}' is immutable once generated")


__all__ = [
    "ImmutableReportError",
    "RecipientType",
    "Report",
    "ReportShare",
    "ReportType",
]
