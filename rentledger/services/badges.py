"""Achievement badges: threshold rules, evaluation and at-most-once issuance."""
from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Literal

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rentledger.core.config import Settings, get_settings
from rentledger.models import PaymentStatus, TenantBadge
from rentledger.models.base import new_id
from rentledger.obs import BADGES_AWARDED_COUNTER, SCORE_COMPUTATION_SECONDS, traced
from rentledger.services.errors import BadgeConflict
from rentledger.services.ledger import PaymentEvent, PaymentLedgerReader
from rentledger.services.notification_events import NotificationEventPublisher
from rentledger.services.scoring import RentMetrics, ScoringPolicy, compute_metrics, streak_timeline

logger = logging.getLogger(__name__)


class BadgeType(str, enum.Enum):
    FIRST_PAYMENT = "first_payment"
    STREAK_3 = "streak_3"
    STREAK_6 = "streak_6"
    STREAK_12 = "streak_12"


class BadgeIcon(str, enum.Enum):
    TROPHY = "Trophy"
    AWARD = "Award"
    STAR = "Star"
    TARGET = "Target"
    TRENDING_UP = "TrendingUp"

    @classmethod
    def resolve(cls, name: str | None) -> "BadgeIcon":
        """Return the icon called ``name``, or ``TROPHY`` for anything unknown."""
        if name is None:
            return cls.TROPHY
        try:
            return cls(name)
        except ValueError:
            return cls.TROPHY


Criterion = Literal["paid_periods", "current_streak"]


@dataclass(frozen=True, slots=True)
class BadgeRule:
    badge_type: BadgeType
    title: str
    description: str
    icon: BadgeIcon
    criterion: Criterion
    threshold: int
    level: int


BADGE_RULES: tuple[BadgeRule, ...] = (
    BadgeRule(
        badge_type=BadgeType.FIRST_PAYMENT,
        title="First Payment",
        description="Recorded your first rent payment",
        icon=BadgeIcon.TARGET,
        criterion="paid_periods",
        threshold=1,
        level=1,
    ),
    BadgeRule(
        badge_type=BadgeType.STREAK_3,
        title="3-Month Streak",
        description="Paid rent on time for 3 months in a row",
        icon=BadgeIcon.AWARD,
        criterion="current_streak",
        threshold=3,
        level=2,
    ),
    BadgeRule(
        badge_type=BadgeType.STREAK_6,
        title="6-Month Streak",
        description="Paid rent on time for 6 months in a row",
        icon=BadgeIcon.STAR,
        criterion="current_streak",
        threshold=6,
        level=3,
    ),
    BadgeRule(
        badge_type=BadgeType.STREAK_12,
        title="1-Year Streak",
        description="Paid rent on time for 12 months in a row",
        icon=BadgeIcon.TROPHY,
        criterion="current_streak",
        threshold=12,
        level=4,
    ),
)


@dataclass(frozen=True, slots=True)
class EarnedBadge:
    badge_type: BadgeType
    title: str
    description: str
    icon: BadgeIcon
    level: int
    earned_at: date
    period: str


@dataclass(frozen=True, slots=True)
class BadgeProgress:
    badge_type: BadgeType
    title: str
    description: str
    icon: BadgeIcon
    progress: int
    target: int


def _owned_types(prior_badges: Iterable[object]) -> set[str]:
    owned: set[str] = set()
    for badge in prior_badges:
        value = getattr(badge, "badge_type", badge)
        owned.add(value.value if isinstance(value, enum.Enum) else str(value))
    return owned


def _criterion_value(rule: BadgeRule, metrics: RentMetrics) -> int:
    if rule.criterion == "paid_periods":
        return metrics.paid_count
    return metrics.current_streak


def evaluate_badges(
    prior_badges: Iterable[object],
    metrics: RentMetrics,
    history: Iterable[PaymentEvent],
    *,
    rules: Sequence[BadgeRule] = BADGE_RULES,
    policy: ScoringPolicy | None = None,
    now: date | None = None,
) -> list[EarnedBadge]:
    """Return badges that are newly earned given ``metrics``.

    ``prior_badges`` may hold badge type strings, ``BadgeType`` members or
    anything with a ``badge_type`` attribute. Owned types are never returned
    again, whatever the streak has done since.

    The earned date is the due date of the period that crossed the threshold:
    the first paid period for payment-count rules, and the period at which the
    current run reached the threshold for streak rules.
    """

    owned = _owned_types(prior_badges)
    pending_rules = [rule for rule in rules if rule.badge_type.value not in owned]
    if not pending_rules:
        return []

    timeline = streak_timeline(history, policy or ScoringPolicy(), now)
    paid = [
        (event.due_date, event.period)
        for point in timeline
        for event in point.events
        if event.status is PaymentStatus.PAID
    ]

    earned: list[EarnedBadge] = []
    for rule in pending_rules:
        if _criterion_value(rule, metrics) < rule.threshold:
            continue
        crossing: tuple[date, str] | None
        if rule.criterion == "paid_periods":
            crossing = paid[rule.threshold - 1] if len(paid) >= rule.threshold else None
        else:
            crossing = next(
                ((point.due_date, point.period) for point in reversed(timeline) if point.run_length == rule.threshold),
                None,
            )
        if crossing is None:
            logger.warning(
                "badge threshold met but no crossing period found",
                extra={"badge_type": rule.badge_type.value},
            )
            continue
        earned.append(
            EarnedBadge(
                badge_type=rule.badge_type,
                title=rule.title,
                description=rule.description,
                icon=rule.icon,
                level=rule.level,
                earned_at=crossing[0],
                period=crossing[1],
            )
        )
    return earned


def badge_progress(
    prior_badges: Iterable[object],
    metrics: RentMetrics,
    *,
    rules: Sequence[BadgeRule] = BADGE_RULES,
) -> list[BadgeProgress]:
    """Progress towards each badge the tenant does not own yet."""

    owned = _owned_types(prior_badges)
    return [
        BadgeProgress(
            badge_type=rule.badge_type,
            title=rule.title,
            description=rule.description,
            icon=rule.icon,
            progress=min(_criterion_value(rule, metrics), rule.threshold),
            target=rule.threshold,
        )
        for rule in rules
        if rule.badge_type.value not in owned
    ]


class BadgeAwarder:
    """Persists earned badges so that each type is issued at most once per tenant."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _insert(self, tenant_id: str, badge: EarnedBadge) -> str:
        row_id = new_id()
        values = {
            "id": row_id,
            "tenant_id": tenant_id,
            "badge_type": badge.badge_type.value,
            "title": badge.title,
            "description": badge.description,
            "icon_name": badge.icon.value,
            "level": badge.level,
            "earned_at": badge.earned_at,
            "details": {"period": badge.period},
        }

        dialect = self._session.get_bind().dialect.name
        if dialect in {"sqlite", "postgresql"}:
            insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            statement = insert(TenantBadge).values(**values).on_conflict_do_nothing(
                index_elements=["tenant_id", "badge_type"]
            )
            if self._session.execute(statement).rowcount == 0:
                raise BadgeConflict(f"Badge '{badge.badge_type.value}' already issued to '{tenant_id}'")
            return row_id

        try:
            with self._session.begin_nested():
                self._session.add(TenantBadge(**values))
        except IntegrityError as exc:
            raise BadgeConflict(f"Badge '{badge.badge_type.value}' already issued to '{tenant_id}'") from exc
        return row_id

    def award(self, tenant_id: str, earned: Iterable[EarnedBadge]) -> list[TenantBadge]:
        """Insert ``earned`` badges and return only the rows this call created."""

        inserted_ids: list[str] = []
        for badge in earned:
            try:
                inserted_ids.append(self._insert(tenant_id, badge))
            except BadgeConflict:
                logger.debug(
                    "badge already issued",
                    extra={"tenant_id": tenant_id, "badge_type": badge.badge_type.value},
                )
                continue
            BADGES_AWARDED_COUNTER.labels(badge_type=badge.badge_type.value).inc()

        if not inserted_ids:
            return []
        statement = select(TenantBadge).where(TenantBadge.id.in_(inserted_ids))
        return sorted(self._session.scalars(statement).all(), key=lambda row: (row.earned_at, row.level))


@dataclass(slots=True)
class AchievementSummary:
    metrics: RentMetrics
    badges: list[TenantBadge]
    newly_earned: list[TenantBadge] = field(default_factory=list)
    upcoming: list[BadgeProgress] = field(default_factory=list)


class AchievementService:
    """Recomputes a tenant's metrics and issues any newly earned badges."""

    def __init__(
        self,
        session: Session,
        *,
        publisher: NotificationEventPublisher | None = None,
        settings: Settings | None = None,
        rules: Sequence[BadgeRule] = BADGE_RULES,
    ) -> None:
        self._session = session
        self._publisher = publisher
        self._settings = settings or get_settings()
        self._rules = rules

    @property
    def policy(self) -> ScoringPolicy:
        return ScoringPolicy.from_settings(self._settings)

    def owned_badges(self, tenant_id: str) -> list[TenantBadge]:
        statement = (
            select(TenantBadge)
            .where(TenantBadge.tenant_id == tenant_id)
            .order_by(TenantBadge.earned_at, TenantBadge.level)
        )
        return list(self._session.scalars(statement).all())

    def recompute(self, tenant_id: str, *, now: date | None = None) -> AchievementSummary:
        policy = self.policy
        with traced("rentledger.achievements.recompute", tenant_id=tenant_id), SCORE_COMPUTATION_SECONDS.time():
            history = PaymentLedgerReader(self._session).load(tenant_id)
            metrics = compute_metrics(history.events, policy=policy, now=now)

        prior = self.owned_badges(tenant_id)
        earned = evaluate_badges(prior, metrics, history.events, rules=self._rules, policy=policy, now=now)
        inserted = BadgeAwarder(self._session).award(tenant_id, earned)
        if inserted:
            self._session.commit()
            logger.info(
                "badges awarded",
                extra={"tenant_id": tenant_id, "badge_types": [row.badge_type for row in inserted]},
            )
        if self._publisher is not None:
            self._announce(tenant_id, self._publisher)

        badges = self.owned_badges(tenant_id)
        return AchievementSummary(
            metrics=metrics,
            badges=badges,
            newly_earned=inserted,
            upcoming=badge_progress(badges, metrics, rules=self._rules),
        )

    def _announce(self, tenant_id: str, publisher: NotificationEventPublisher) -> None:
        """Publish ``badge.earned`` for every badge Kafka has not accepted yet.

        Badges whose event fails stay unannounced and are retried on the next
        recomputation.
        """
        statement = (
            select(TenantBadge)
            .where(TenantBadge.tenant_id == tenant_id, TenantBadge.notified_at.is_(None))
            .order_by(TenantBadge.earned_at, TenantBadge.level)
        )
        pending = list(self._session.scalars(statement).all())
        if not pending:
            return
        delivered = 0
        for row in pending:
            if publisher.badge_earned(tenant_id, badge_type=row.badge_type, title=row.title, earned_at=row.earned_at):
                row.notified_at = datetime.now(timezone.utc)
                delivered += 1
        if delivered:
            self._session.commit()
        if delivered < len(pending):
            logger.warning(
                "badge notifications deferred",
                extra={"tenant_id": tenant_id, "undelivered": len(pending) - delivered},
            )


__all__ = [
    "AchievementService",
    "AchievementSummary",
    "BADGE_RULES",
    "BadgeAwarder",
    "BadgeIcon",
    "BadgeProgress",
    "BadgeRule",
    "BadgeType",
    "EarnedBadge",
    "badge_progress",
    "evaluate_badges",
]
