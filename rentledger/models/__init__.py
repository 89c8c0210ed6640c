"""ORM models package."""
from .audit_log import AuditLog
from .badge import TenantBadge
from .base import Base, TimestampMixin
from .property import Property
from .rent_payment import PaymentSource, PaymentStatus, RentPayment, period_for
from .report import ImmutableReportError, RecipientType, Report, ReportShare, ReportType
from .user import User, UserRole, UserStatus

__all__ = [
    "AuditLog",
    "Base",
    "ImmutableReportError",
    "PaymentSource",
    "PaymentStatus",
    "Property",
    "RecipientType",
    "RentPayment",
    "Report",
    "ReportShare",
    "ReportType",
    "TenantBadge",
    "TimestampMixin",
    "User",
    "UserRole",
    "UserStatus",
    "period_for",
]
