"""Achievement badges and dashboard statistics."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from rentledger.api.deps import get_clock, get_db_session, get_notification_publisher, today
from rentledger.api.routes.auth import AuthenticatedUser, require_role
from rentledger.core.config import get_settings
from rentledger.schemas import (
    AchievementsResponse,
    BadgeRead,
    DashboardStatsResponse,
    StreakRead,
    UpcomingBadge,
)
from rentledger.services.badges import AchievementService
from rentledger.services.errors import NotFoundError
from rentledger.services.ledger import load_payment_history
from rentledger.services.notification_events import NotificationEventPublisher
from rentledger.services.scoring import ScoringPolicy, compute_dashboard_stats

router = APIRouter()


@router.get("/achievements", response_model=AchievementsResponse)
def get_achievements(
    session: Session = Depends(get_db_session),
    publisher: NotificationEventPublisher = Depends(get_notification_publisher),
    now: datetime = Depends(get_clock),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> AchievementsResponse:
    """Recompute streaks, issue any newly earned badges and return the full set."""

    service = AchievementService(session, publisher=publisher, settings=get_settings())
    try:
        summary = service.recompute(user.user_id, now=today(now))
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    return AchievementsResponse(
        badges=[BadgeRead.model_validate(badge) for badge in summary.badges],
        streak=StreakRead(
            current_streak=summary.metrics.current_streak,
            longest_streak=summary.metrics.longest_streak,
        ),
        upcoming=[
            UpcomingBadge(
                badge_type=item.badge_type.value,
                title=item.title,
                description=item.description,
                icon=item.icon.value,
                progress=item.progress,
                target=item.target,
            )
            for item in summary.upcoming
        ],
        rent_score=summary.metrics.rent_score,
    )


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
def get_dashboard_stats(
    session: Session = Depends(get_db_session),
    now: datetime = Depends(get_clock),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> DashboardStatsResponse:
    try:
        history = load_payment_history(session, user.user_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    stats = compute_dashboard_stats(
        history.events,
        now=today(now),
        policy=ScoringPolicy.from_settings(get_settings()),
    )
    return DashboardStatsResponse.model_validate(stats)
