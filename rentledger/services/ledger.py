"""Payment ledger reader producing ordered, deduplicated payment histories."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from rentledger.models import PaymentSource, PaymentStatus, Property, RentPayment, User, period_for
from rentledger.obs import LEDGER_RECORDS_SKIPPED_COUNTER
from rentledger.services.errors import DataIntegrityError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentEvent:
    """One resolved-or-pending rent period as seen by the scoring engine."""

    id: str
    property_id: str
    period: str
    amount_pence: int
    due_date: date
    status: PaymentStatus
    verified: bool
    source: PaymentSource
    paid_date: date | None = None

    @property
    def resolved(self) -> bool:
        return self.status is not PaymentStatus.PENDING


@dataclass(frozen=True, slots=True)
class LedgerReadResult:
    events: tuple[PaymentEvent, ...]
    skipped: tuple[DataIntegrityError, ...] = field(default_factory=tuple)
    superseded: tuple[str, ...] = field(default_factory=tuple)

    def __iter__(self):  # type: ignore[no-untyped-def]
        return iter(self.events)

    def __len__(self) -> int:
        return len(self.events)


def _to_event(record: RentPayment, tenancy_start: date | None) -> PaymentEvent:
    try:
        status = PaymentStatus(record.status)
    except ValueError as exc:
        raise DataIntegrityError(record.id, f"unknown status {record.status!r}") from exc
    try:
        source = PaymentSource(record.source)
    except ValueError as exc:
        raise DataIntegrityError(record.id, f"unknown source {record.source!r}") from exc

    if not isinstance(record.due_date, date):
        raise DataIntegrityError(record.id, "missing due date")
    if record.paid_date is not None and not isinstance(record.paid_date, date):
        raise DataIntegrityError(record.id, "paid date is not a calendar date")
    if status is PaymentStatus.PAID and record.paid_date is None:
        raise DataIntegrityError(record.id, "paid record has no paid date")
    if tenancy_start is not None and record.paid_date is not None and record.paid_date < tenancy_start:
        raise DataIntegrityError(record.id, "paid date precedes tenancy start")

    return PaymentEvent(
        id=record.id,
        property_id=record.property_id,
        period=period_for(record.due_date),
        amount_pence=int(record.amount_pence),
        due_date=record.due_date,
        status=status,
        verified=bool(record.is_verified),
        source=source,
        paid_date=record.paid_date,
    )


def _precedence(event: PaymentEvent) -> tuple[bool, bool, str]:
    return (event.source is PaymentSource.BANK, event.verified, event.id)


def merge_payment_records(
    records: Iterable[RentPayment],
    tenancy_starts: Mapping[str, date | None] | None = None,
) -> LedgerReadResult:
    """Merge bank and manual records into one event per (property, period).

    Bank records take precedence over manual ones for the same period; the
    losing manual record ids are returned in ``superseded``. Records that
    cannot be interpreted are returned in ``skipped`` and left out.
    """

    starts = tenancy_starts or {}
    chosen: dict[tuple[str, str], PaymentEvent] = {}
    skipped: list[DataIntegrityError] = []
    superseded: list[str] = []

    for record in records:
        if record.superseded_by_id is not None:
            continue
        try:
            event = _to_event(record, starts.get(record.property_id))
        except DataIntegrityError as exc:
            skipped.append(exc)
            continue

        key = (event.property_id, event.period)
        current = chosen.get(key)
        if current is None:
            chosen[key] = event
            continue
        winner, loser = (event, current) if _precedence(event) > _precedence(current) else (current, event)
        chosen[key] = winner
        if loser.source is PaymentSource.MANUAL and winner.source is PaymentSource.BANK:
            superseded.append(loser.id)
        else:
            logger.warning(
                "duplicate payment records for period",
                extra={"property_id": key[0], "period": key[1], "kept": winner.id, "dropped": loser.id},
            )

    events = sorted(chosen.values(), key=lambda item: (item.due_date, item.property_id, item.id))
    return LedgerReadResult(events=tuple(events), skipped=tuple(skipped), superseded=tuple(superseded))


class PaymentLedgerReader:
    """Loads a tenant's payment history from the database."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _resolve_properties(self, tenant_id: str, property_id: str | None) -> list[Property]:
        if self._session.get(User, tenant_id) is None:
            raise NotFoundError(f"Tenant '{tenant_id}' was not found")
        if property_id is not None:
            prop = self._session.get(Property, property_id)
            if prop is None or prop.tenant_id != tenant_id:
                raise NotFoundError(f"Property '{property_id}' was not found for tenant '{tenant_id}'")
            return [prop]
        statement = select(Property).where(Property.tenant_id == tenant_id)
        return list(self._session.scalars(statement).all())

    def load(self, tenant_id: str, property_id: str | None = None) -> LedgerReadResult:
        properties = self._resolve_properties(tenant_id, property_id)
        if not properties:
            return LedgerReadResult(events=())

        starts = {prop.id: prop.tenancy_start_date for prop in properties}
        statement = (
            select(RentPayment)
            .where(RentPayment.property_id.in_(list(starts)))
            .where(RentPayment.superseded_by_id.is_(None))
        )
        result = merge_payment_records(self._session.scalars(statement).all(), starts)

        for error in result.skipped:
            LEDGER_RECORDS_SKIPPED_COUNTER.inc()
            logger.warning(
                "skipping malformed payment record",
                extra={"tenant_id": tenant_id, "record_id": error.record_id, "reason": error.reason},
            )
        return result


def load_payment_history(session: Session, tenant_id: str, property_id: str | None = None) -> LedgerReadResult:
    """Shortcut for ``PaymentLedgerReader(session).load(...)``."""
    return PaymentLedgerReader(session).load(tenant_id, property_id)


__all__ = [
    "LedgerReadResult",
    "PaymentEvent",
    "PaymentLedgerReader",
    "load_payment_history",
    "merge_payment_records",
]
