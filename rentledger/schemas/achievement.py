"""Schemas for achievements and dashboard statistics."""
from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict


class BadgeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    badge_type: str
    title: str
    description: str
    icon_name: str
    level: int
    earned_at: date


class StreakRead(BaseModel):
    current_streak: int
    longest_streak: int


class UpcomingBadge(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    badge_type: str
    title: str
    description: str
    icon: str
    progress: int
    target: int


class AchievementsResponse(BaseModel):
    badges: list[BadgeRead]
    streak: StreakRead
    upcoming: list[UpcomingBadge]
    rent_score: int


class DashboardStatsResponse(BaseModel):
    """Amounts are in pence."""

    model_config = ConfigDict(from_attributes=True)

    payment_streak: int
    total_paid: int
    total_awaiting: int
    awaiting_verification_count: int
    on_time_percentage: float
    next_payment_due: date | None
    rent_score: int
    on_time_score: int
    verification_score: int
    rent_to_income_score: int
    monthly_rent_paid: int
    verification_status: Literal["verified", "partially_verified", "unverified"]
    verified: int
    pending_verification_count: int
    rent_score_growth: int


__all__ = [
    "AchievementsResponse",
    "BadgeRead",
    "DashboardStatsResponse",
    "StreakRead",
    "UpcomingBadge",
]
