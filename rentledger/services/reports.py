"""Report templates, the pure report assembler and report persistence."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, timezone
from typing import Annotated, Literal, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from sqlalchemy import select
from sqlalchemy.orm import Session

from rentledger.core.config import Settings, get_settings
from rentledger.models import PaymentStatus, Property, Report, ReportType, User
from rentledger.obs import REPORTS_GENERATED_COUNTER, traced
from rentledger.services.badges import AchievementService, BadgeIcon
from rentledger.services.errors import NotFoundError
from rentledger.services.ledger import PaymentEvent, PaymentLedgerReader
from rentledger.services.notification_events import NotificationEventPublisher
from rentledger.services.scoring import RentMetrics, compute_metrics, verification_status_for

logger = logging.getLogger(__name__)


class _Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)


class UserInfo(_Snapshot):
    full_name: str
    email: str
    phone: str | None = None
    rlid: str | None = None


class AddressInfo(_Snapshot):
    address: str
    city: str
    postcode: str
    monthly_rent_pence: int
    tenancy_start_date: date | None = None
    tenancy_end_date: date | None = None


class LandlordInfo(_Snapshot):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    verification_status: Literal["verified", "partially_verified", "unverified"] = "unverified"


class PaymentHistoryItem(_Snapshot):
    period: str
    due_date: date
    paid_date: date | None = None
    amount_pence: int
    status: str
    verified: bool
    source: str


class BadgeSnapshot(_Snapshot):
    badge_type: str
    title: str
    icon: BadgeIcon
    earned_at: date


class ScoreBreakdownInfo(_Snapshot):
    payment_history: float
    verification: float
    streak: float


class ReliabilityMetrics(_Snapshot):
    rent_score: int
    payment_streak: int
    longest_streak: int
    total_payments: int
    total_paid_pence: int
    on_time_rate: float
    verification_rate: float


class PaymentSummary(_Snapshot):
    total_paid_pence: int
    payment_streak: int
    on_time_rate: float
    average_monthly_rent_pence: int
    first_payment_date: date | None = None
    last_payment_date: date | None = None


class VerificationRequest(_Snapshot):
    landlord_name: str | None = None
    landlord_email: str | None = None
    status: Literal["pending", "verified"]
    requested_date: date
    verified_date: date | None = None


class _ReportBody(_Snapshot):
    report_id: str
    generated_date: datetime
    expires_at: datetime | None = None
    user_info: UserInfo
    rent_score: int
    badges: tuple[BadgeSnapshot, ...] = ()


class CreditBuildingReport(_ReportBody):
    report_type: Literal["credit"] = "credit"
    current_address: AddressInfo
    score_breakdown: ScoreBreakdownInfo
    payment_streak: int
    total_payments: int
    total_paid_pence: int
    on_time_rate: float
    payment_history: tuple[PaymentHistoryItem, ...]
    landlord_verification: LandlordInfo
    tenant_since: date | None = None


class RentalHistoryReport(_ReportBody):
    report_type: Literal["rental"] = "rental"
    current_property: AddressInfo
    landlord_info: LandlordInfo
    payment_summary: PaymentSummary
    payment_history: tuple[PaymentHistoryItem, ...]
    tenancy_notes: str | None = None


class LandlordVerificationReport(_ReportBody):
    report_type: Literal["landlord"] = "landlord"
    property_details: AddressInfo
    verification_request: VerificationRequest
    payment_history: tuple[PaymentHistoryItem, ...]
    reliability: ReliabilityMetrics
    payment_streak: int
    notes: str | None = None


ReportDocument = Annotated[
    Union[CreditBuildingReport, RentalHistoryReport, LandlordVerificationReport],
    Field(discriminator="report_type"),
]
_REPORT_ADAPTER: TypeAdapter[ReportDocument] = TypeAdapter(ReportDocument)


def parse_report(body: dict) -> CreditBuildingReport | RentalHistoryReport | LandlordVerificationReport:
    """Rebuild a typed report from a stored JSON body."""
    return _REPORT_ADAPTER.validate_python(body)


def _history_items(events: Iterable[PaymentEvent]) -> tuple[PaymentHistoryItem, ...]:
    return tuple(
        PaymentHistoryItem(
            period=event.period,
            due_date=event.due_date,
            paid_date=event.paid_date,
            amount_pence=event.amount_pence,
            status=event.status.value,
            verified=event.verified,
            source=event.source.value,
        )
        for event in events
    )


def _badge_snapshot(badge: object) -> BadgeSnapshot:
    badge_type = getattr(badge, "badge_type")
    icon = getattr(badge, "icon", None) or getattr(badge, "icon_name", None)
    return BadgeSnapshot(
        badge_type=getattr(badge_type, "value", badge_type),
        title=getattr(badge, "title"),
        icon=BadgeIcon.resolve(getattr(icon, "value", icon)),
        earned_at=getattr(badge, "earned_at"),
    )


def _last_periods(events: Sequence[PaymentEvent], months: int) -> list[PaymentEvent]:
    periods = sorted({event.period for event in events})[-months:]
    keep = set(periods)
    return [event for event in events if event.period in keep]


def _with_verification(landlord: LandlordInfo | None, paid: Sequence[PaymentEvent]) -> LandlordInfo:
    base = landlord or LandlordInfo()
    return base.model_copy(update={"verification_status": verification_status_for(paid)})


def assemble_report(
    report_type: ReportType | str,
    user_info: UserInfo,
    property_info: AddressInfo,
    history: Iterable[PaymentEvent],
    metrics: RentMetrics,
    badges: Iterable[object] = (),
    *,
    landlord: LandlordInfo | None = None,
    now: datetime | None = None,
    report_id: str | None = None,
    expires_in: timedelta | None = None,
    history_months: int = 12,
    notes: str | None = None,
) -> CreditBuildingReport | RentalHistoryReport | LandlordVerificationReport:
    """Build an immutable report snapshot from already computed inputs.

    Every call gets a fresh ``report_id`` unless one is passed, and
    ``generated_date`` is ``now``. Nothing else depends on the clock, so two
    calls over the same inputs differ only in those fields.
    """

    kind = ReportType(report_type)
    generated = now or datetime.now(timezone.utc)
    events = sorted(history, key=lambda item: (item.due_date, item.property_id, item.id))
    paid = [event for event in events if event.status is PaymentStatus.PAID]
    common = {
        "report_id": report_id or str(uuid4()),
        "generated_date": generated,
        "expires_at": generated + expires_in if expires_in is not None else None,
        "user_info": user_info,
        "rent_score": metrics.rent_score,
        "badges": tuple(_badge_snapshot(badge) for badge in badges),
    }

    if kind is ReportType.CREDIT:
        return CreditBuildingReport(
            **common,
            current_address=property_info,
            score_breakdown=ScoreBreakdownInfo(**metrics.breakdown.as_dict()),
            payment_streak=metrics.current_streak,
            total_payments=metrics.paid_count,
            total_paid_pence=metrics.total_paid_pence,
            on_time_rate=metrics.on_time_rate,
            payment_history=_history_items(_last_periods(events, history_months)),
            landlord_verification=_with_verification(landlord, paid),
            tenant_since=property_info.tenancy_start_date,
        )

    if kind is ReportType.RENTAL:
        average_rent = sum(event.amount_pence for event in paid) // len(paid) if paid else 0
        return RentalHistoryReport(
            **common,
            current_property=property_info,
            landlord_info=_with_verification(landlord, paid),
            payment_summary=PaymentSummary(
                total_paid_pence=metrics.total_paid_pence,
                payment_streak=metrics.current_streak,
                on_time_rate=metrics.on_time_rate,
                average_monthly_rent_pence=average_rent,
                first_payment_date=min((event.paid_date for event in paid if event.paid_date), default=None),
                last_payment_date=max((event.paid_date for event in paid if event.paid_date), default=None),
            ),
            payment_history=_history_items(events),
            tenancy_notes=notes,
        )

    verified = [event for event in paid if event.verified]
    fully_verified = bool(paid) and len(verified) == len(paid)
    contact = landlord or LandlordInfo()
    return LandlordVerificationReport(
        **common,
        property_details=property_info,
        verification_request=VerificationRequest(
            landlord_name=contact.name,
            landlord_email=contact.email,
            status="verified" if fully_verified else "pending",
            requested_date=generated.date(),
            verified_date=max(event.due_date for event in verified) if fully_verified else None,
        ),
        payment_history=_history_items(events),
        reliability=ReliabilityMetrics(
            rent_score=metrics.rent_score,
            payment_streak=metrics.current_streak,
            longest_streak=metrics.longest_streak,
            total_payments=metrics.paid_count,
            total_paid_pence=metrics.total_paid_pence,
            on_time_rate=metrics.on_time_rate,
            verification_rate=metrics.verification_rate,
        ),
        payment_streak=metrics.current_streak,
        notes=notes,
    )


def user_info_for(user: User) -> UserInfo:
    return UserInfo(full_name=user.full_name, email=user.email, phone=user.phone, rlid=user.rlid)


def address_info_for(prop: Property) -> AddressInfo:
    return AddressInfo(
        address=prop.address,
        city=prop.city,
        postcode=prop.postcode,
        monthly_rent_pence=prop.monthly_rent_pence,
        tenancy_start_date=prop.tenancy_start_date,
        tenancy_end_date=prop.tenancy_end_date,
    )


def landlord_info_for(prop: Property) -> LandlordInfo:
    account = prop.landlord
    return LandlordInfo(
        name=prop.landlord_name or (account.full_name if account is not None else None),
        email=prop.landlord_email or (account.email if account is not None else None),
        phone=prop.landlord_phone or (account.phone if account is not None else None),
    )


class ReportService:
    """Generates, stores and fetches report snapshots for a tenant."""

    def __init__(
        self,
        session: Session,
        *,
        publisher: NotificationEventPublisher | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._session = session
        self._publisher = publisher
        self._settings = settings or get_settings()

    def _tenant_property(self, tenant_id: str, property_id: str) -> tuple[User, Property]:
        user = self._session.get(User, tenant_id)
        if user is None:
            raise NotFoundError(f"Tenant '{tenant_id}' was not found")
        prop = self._session.get(Property, property_id)
        if prop is None or prop.tenant_id != tenant_id:
            raise NotFoundError(f"Property '{property_id}' was not found for tenant '{tenant_id}'")
        return user, prop

    def generate(
        self,
        tenant_id: str,
        property_id: str,
        report_type: ReportType | str,
        *,
        now: datetime | None = None,
        notes: str | None = None,
    ) -> Report:
        """Snapshot the property's payment record into a new immutable report row."""

        kind = ReportType(report_type)
        generated = now or datetime.now(timezone.utc)
        user, prop = self._tenant_property(tenant_id, property_id)

        achievements = AchievementService(self._session, publisher=self._publisher, settings=self._settings)
        summary = achievements.recompute(tenant_id, now=generated.date())

        with traced("rentledger.reports.assemble", tenant_id=tenant_id, report_type=kind.value):
            history = PaymentLedgerReader(self._session).load(tenant_id, property_id)
            metrics = compute_metrics(history.events, policy=achievements.policy, now=generated.date())
            ttl = self._settings.report_ttl_days
            document = assemble_report(
                kind,
                user_info_for(user),
                address_info_for(prop),
                history.events,
                metrics,
                summary.badges,
                landlord=landlord_info_for(prop),
                now=generated,
                expires_in=timedelta(days=ttl) if ttl else None,
                history_months=self._settings.credit_report_history_months,
                notes=notes,
            )

        row = Report(
            id=document.report_id,
            tenant_id=tenant_id,
            property_id=property_id,
            report_type=kind.value,
            rent_score=document.rent_score,
            generated_at=document.generated_date,
            expires_at=document.expires_at,
            body=document.model_dump(mode="json"),
        )
        self._session.add(row)
        self._session.commit()

        REPORTS_GENERATED_COUNTER.labels(report_type=kind.value).inc()
        logger.info(
            "report generated",
            extra={"tenant_id": tenant_id, "report_id": row.id, "report_type": kind.value},
        )
        if self._publisher is not None:
            self._publisher.report_generated(
                tenant_id, report_id=row.id, report_type=kind.value, rent_score=row.rent_score
            )
        return row

    def get(self, tenant_id: str, report_id: str) -> Report:
        report = self._session.get(Report, report_id)
        if report is None or report.tenant_id != tenant_id:
            raise NotFoundError(f"Report '{report_id}' was not found")
        return report

    def list(self, tenant_id: str) -> list[Report]:
        statement = (
            select(Report)
            .where(Report.tenant_id == tenant_id)
            .order_by(Report.generated_at.desc(), Report.id)
        )
        return list(self._session.scalars(statement).all())


__all__ = [
    "AddressInfo",
    "BadgeSnapshot",
    "CreditBuildingReport",
    "LandlordInfo",
    "LandlordVerificationReport",
    "PaymentHistoryItem",
    "PaymentSummary",
    "ReliabilityMetrics",
    "RentalHistoryReport",
    "ReportDocument",
    "ReportService",
    "ScoreBreakdownInfo",
    "UserInfo",
    "VerificationRequest",
    "address_info_for",
    "assemble_report",
    "landlord_info_for",
    "parse_report",
    "user_info_for",
]
