"""Streak and Rent Score computation.

Everything in this module is a pure function of the payment history passed
in. The only clock input is the optional ``now`` argument, which excludes
periods that are not yet due.

Score model::

    payment history component = on-time rate x 10          (0-1000)
    verification component    = verification rate x 10     (0-1000)
    streak component          = min(streak, cap) / cap x 1000
    rent score = round(0.6 x history + 0.2 x verification + 0.2 x streak)
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from rentledger.core.config import Settings
from rentledger.models import PaymentSource, PaymentStatus
from rentledger.services.ledger import PaymentEvent

PAYMENT_HISTORY_WEIGHT = Decimal("0.6")
VERIFICATION_WEIGHT = Decimal("0.2")
STREAK_WEIGHT = Decimal("0.2")
MAX_SCORE = 1000

VerificationStatus = Literal["verified", "partially_verified", "unverified"]


@dataclass(frozen=True, slots=True)
class ScoringPolicy:
    """Product rules that parameterise the engine."""

    grace_days: int = 3
    streak_cap: int = 12
    require_manual_verification: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScoringPolicy":
        return cls(
            grace_days=settings.grace_period_days,
            streak_cap=settings.streak_cap_months,
            require_manual_verification=settings.require_manual_verification,
        )


DEFAULT_POLICY = ScoringPolicy()


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    """Each component normalised to 0-1000 before weighting."""

    payment_history: float
    verification: float
    streak: float

    def as_dict(self) -> dict[str, float]:
        return {
            "payment_history": self.payment_history,
            "verification": self.verification,
            "streak": self.streak,
        }


@dataclass(frozen=True, slots=True)
class RentMetrics:
    current_streak: int
    longest_streak: int
    on_time_rate: float
    verification_rate: float
    rent_score: int
    breakdown: ScoreBreakdown
    resolved_count: int = 0
    on_time_count: int = 0
    verified_count: int = 0
    paid_count: int = 0
    total_paid_pence: int = 0

    @classmethod
    def empty(cls) -> "RentMetrics":
        return cls(
            current_streak=0,
            longest_streak=0,
            on_time_rate=0.0,
            verification_rate=0.0,
            rent_score=0,
            breakdown=ScoreBreakdown(payment_history=0.0, verification=0.0, streak=0.0),
        )


@dataclass(frozen=True, slots=True)
class StreakPoint:
    """Running streak length after a resolved rent period.

    ``events`` holds every counted payment due in the period, across all of
    the tenant's properties. The period is on time only when all of them are.
    """

    period: str
    due_date: date
    events: tuple[PaymentEvent, ...]
    on_time: bool
    run_length: int


def _chronological(history: Iterable[PaymentEvent]) -> list[PaymentEvent]:
    return sorted(history, key=lambda item: (item.due_date, item.property_id, item.id))


def is_counted(event: PaymentEvent, policy: ScoringPolicy = DEFAULT_POLICY, now: date | None = None) -> bool:
    """Whether a period is resolved and therefore takes part in scoring."""
    if not event.resolved:
        return False
    if now is not None and event.due_date > now:
        return False
    if policy.require_manual_verification and event.source is PaymentSource.MANUAL and not event.verified:
        return False
    return True


def is_on_time(event: PaymentEvent, policy: ScoringPolicy = DEFAULT_POLICY) -> bool:
    if event.status is not PaymentStatus.PAID or event.paid_date is None:
        return False
    return event.paid_date <= event.due_date + timedelta(days=policy.grace_days)


def streak_timeline(
    history: Iterable[PaymentEvent],
    policy: ScoringPolicy = DEFAULT_POLICY,
    now: date | None = None,
) -> list[StreakPoint]:
    """Walk resolved periods in due-date order, tracking the running streak.

    Payments due in the same month count as one period, so a tenant renting
    several properties advances the streak once per month. Any late or missed
    payment in a period resets the run to zero. Pending payments are skipped
    entirely.
    """

    by_period: dict[str, list[PaymentEvent]] = {}
    for event in _chronological(history):
        if is_counted(event, policy, now):
            by_period.setdefault(event.period, []).append(event)

    points: list[StreakPoint] = []
    run = 0
    for period in sorted(by_period):
        events = by_period[period]
        on_time = all(is_on_time(event, policy) for event in events)
        run = run + 1 if on_time else 0
        points.append(
            StreakPoint(
                period=period,
                due_date=max(event.due_date for event in events),
                events=tuple(events),
                on_time=on_time,
                run_length=run,
            )
        )
    return points


def _percentage(part: int, whole: int) -> Decimal:
    if whole == 0:
        return Decimal(0)
    return Decimal(part) * 100 / Decimal(whole)


def _round_score(value: Decimal) -> int:
    rounded = int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return max(0, min(MAX_SCORE, rounded))


def weighted_score(payment_history: Decimal, verification: Decimal, streak: Decimal) -> int:
    """Combine 0-1000 components into the clamped 0-1000 Rent Score."""
    total = (
        payment_history * PAYMENT_HISTORY_WEIGHT
        + verification * VERIFICATION_WEIGHT
        + streak * STREAK_WEIGHT
    )
    return _round_score(total)


def compute_metrics(
    history: Iterable[PaymentEvent],
    *,
    policy: ScoringPolicy | None = None,
    now: date | None = None,
) -> RentMetrics:
    """Derive streaks, rates and the Rent Score from a payment history."""

    rules = policy or DEFAULT_POLICY
    timeline = streak_timeline(history, rules, now)
    if not timeline:
        return RentMetrics.empty()

    counted = [event for point in timeline for event in point.events]
    resolved = len(counted)
    on_time = sum(1 for event in counted if is_on_time(event, rules))
    verified = sum(1 for event in counted if event.verified)
    paid_events = [event for event in counted if event.paid_date is not None]
    paid_count = sum(1 for event in counted if event.status is PaymentStatus.PAID)

    current_streak = timeline[-1].run_length
    longest_streak = max(point.run_length for point in timeline)

    on_time_rate = _percentage(on_time, resolved)
    verification_rate = _percentage(verified, resolved)
    history_component = on_time_rate * 10
    verification_component = verification_rate * 10
    streak_component = Decimal(min(current_streak, rules.streak_cap)) * MAX_SCORE / Decimal(rules.streak_cap)

    return RentMetrics(
        current_streak=current_streak,
        longest_streak=longest_streak,
        on_time_rate=round(float(on_time_rate), 2),
        verification_rate=round(float(verification_rate), 2),
        rent_score=weighted_score(history_component, verification_component, streak_component),
        breakdown=ScoreBreakdown(
            payment_history=round(float(history_component), 2),
            verification=round(float(verification_component), 2),
            streak=round(float(streak_component), 2),
        ),
        resolved_count=resolved,
        on_time_count=on_time,
        verified_count=verified,
        paid_count=paid_count,
        total_paid_pence=sum(event.amount_pence for event in paid_events),
    )


@dataclass(frozen=True, slots=True)
class DashboardStats:
    """Aggregates shown on the tenant dashboard. Amounts are in pence."""

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
    verification_status: VerificationStatus
    verified: int
    pending_verification_count: int
    rent_score_growth: int


def verification_status_for(paid: Sequence[PaymentEvent]) -> VerificationStatus:
    verified = sum(1 for event in paid if event.verified)
    if not paid or verified == 0:
        return "unverified"
    if verified == len(paid):
        return "verified"
    return "partially_verified"


def compute_dashboard_stats(
    history: Iterable[PaymentEvent],
    *,
    now: date,
    policy: ScoringPolicy | None = None,
) -> DashboardStats:
    """Dashboard aggregates for ``now``.

    ``on_time_score`` and ``verification_score`` are the weighted
    contributions of their components to the Rent Score (0-600 and 0-200).
    ``rent_to_income_score`` rewards consistency: half from the number of paid
    periods (up to a year) and up to half from the current streak, scaled to
    0-200.
    """

    rules = policy or DEFAULT_POLICY
    events = _chronological(history)
    metrics = compute_metrics(events, policy=rules, now=now)

    paid = [event for event in events if event.status is PaymentStatus.PAID]
    pending = [event for event in events if event.status is PaymentStatus.PENDING]
    month_start = now.replace(day=1)
    next_month_start = (month_start + timedelta(days=32)).replace(day=1)

    monthly_rent_paid = sum(
        event.amount_pence
        for event in paid
        if event.paid_date is not None and month_start <= event.paid_date < next_month_start
    )

    consistency = min(len(paid) / rules.streak_cap, 1.0) if paid else 0.0
    streak_bonus = min(metrics.current_streak / rules.streak_cap, 0.5)
    rent_to_income = (consistency * 0.5 + streak_bonus) * 200

    earlier = [event for event in events if event.due_date < month_start]
    previous_score = compute_metrics(earlier, policy=rules).rent_score if earlier else 0

    return DashboardStats(
        payment_streak=metrics.current_streak,
        total_paid=metrics.total_paid_pence,
        total_awaiting=sum(event.amount_pence for event in pending),
        awaiting_verification_count=sum(1 for event in paid if not event.verified),
        on_time_percentage=metrics.on_time_rate,
        next_payment_due=min((event.due_date for event in pending), default=None),
        rent_score=metrics.rent_score,
        on_time_score=_round_score(Decimal(str(metrics.breakdown.payment_history)) * PAYMENT_HISTORY_WEIGHT),
        verification_score=_round_score(Decimal(str(metrics.breakdown.verification)) * VERIFICATION_WEIGHT),
        rent_to_income_score=int(Decimal(str(rent_to_income)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
        monthly_rent_paid=monthly_rent_paid,
        verification_status=verification_status_for(paid),
        verified=sum(1 for event in paid if event.verified),
        pending_verification_count=sum(1 for event in pending if not event.verified),
        rent_score_growth=metrics.rent_score - previous_score,
    )


__all__ = [
    "DEFAULT_POLICY",
    "DashboardStats",
    "RentMetrics",
    "ScoreBreakdown",
    "ScoringPolicy",
    "StreakPoint",
    "compute_dashboard_stats",
    "compute_metrics",
    "is_counted",
    "is_on_time",
    "streak_timeline",
    "verification_status_for",
    "weighted_score",
]
