"""Pydantic schemas package."""

from .achievement import AchievementsResponse, BadgeRead, DashboardStatsResponse, StreakRead, UpcomingBadge
from .audit import AuditLogRead
from .payment import PaymentCreate, PaymentRead
from .report import (
    ReportGenerateRequest,
    ReportRead,
    ReportSummary,
    SharedReportRead,
    ShareRead,
    ShareRequest,
)

__all__ = [
    "AchievementsResponse",
    "AuditLogRead",
    "BadgeRead",
    "DashboardStatsResponse",
    "PaymentCreate",
    "PaymentRead",
    "ReportGenerateRequest",
    "ReportRead",
    "ReportSummary",
    "ShareRead",
    "ShareRequest",
    "SharedReportRead",
    "StreakRead",
    "UpcomingBadge",
]
