from __future__ import annotations

import logging
from datetime import date

import pytest
from sqlalchemy.orm import Session

from rentledger.models import PaymentSource, PaymentStatus, Property, RentPayment
from rentledger.services.errors import NotFoundError
from rentledger.services.ledger import PaymentLedgerReader, load_payment_history, merge_payment_records
from rentledger.services.payments import PaymentInput, record_payment
from tests.conftest import OTHER_TENANT_ID, PROPERTY_ID, TENANT_ID, make_payment, monthly_due_dates


def test_history_is_ordered_by_due_date(db_session: Session) -> None:
    dates = monthly_due_dates(date(2026, 1, 1), 4)
    for due in reversed(dates):
        make_payment(db_session, due)

    history = load_payment_history(db_session, TENANT_ID)

    assert [event.due_date for event in history] == dates
    assert [event.period for event in history] == ["2026-01", "2026-02", "2026-03", "2026-04"]


def test_bank_record_supersedes_manual_entry(db_session: Session) -> None:
    due = date(2026, 2, 1)
    manual = make_payment(db_session, due, source=PaymentSource.MANUAL, verified=False, paid_days_late=2)

    bank = record_payment(
        db_session,
        TENANT_ID,
        PaymentInput(
            property_id=PROPERTY_ID,
            amount_pence=95_000,
            due_date=due,
            paid_date=due,
            status=PaymentStatus.PAID,
            source=PaymentSource.BANK,
        ),
    )
    db_session.refresh(manual)

    history = load_payment_history(db_session, TENANT_ID)

    assert manual.superseded_by_id == bank.id
    assert [event.id for event in history] == [bank.id]
    assert history.events[0].verified is True
    assert db_session.get(RentPayment, manual.id) is not None


def test_merge_prefers_bank_over_manual_for_same_period() -> None:
    due = date(2026, 3, 1)
    manual = RentPayment(
        id="manual-1", property_id="p1", period="2026-03", amount_pence=1, due_date=due, paid_date=due,
        status="paid", source="manual", is_verified=True,
    )
    bank = RentPayment(
        id="bank-1", property_id="p1", period="2026-03", amount_pence=1, due_date=due, paid_date=due,
        status="paid", source="bank", is_verified=False,
    )

    result = merge_payment_records([bank, manual])

    assert [event.id for event in result.events] == ["bank-1"]
    assert result.superseded == ("manual-1",)


def test_malformed_records_are_skipped_and_logged(db_session: Session, caplog: pytest.LogCaptureFixture) -> None:
    dates = monthly_due_dates(date(2026, 1, 1), 3)
    make_payment(db_session, dates[0])
    make_payment(db_session, dates[2])
    bad = RentPayment(
        tenant_id=TENANT_ID,
        property_id=PROPERTY_ID,
        period="2026-02",
        amount_pence=95_000,
        due_date=dates[1],
        status="bounced",
        source="bank",
    )
    db_session.add(bad)
    db_session.commit()

    with caplog.at_level(logging.WARNING, logger="rentledger.services.ledger"):
        result = PaymentLedgerReader(db_session).load(TENANT_ID)

    assert len(result) == 2
    assert [error.record_id for error in result.skipped] == [bad.id]
    assert "skipping malformed payment record" in caplog.text


def test_paid_record_without_paid_date_is_skipped(db_session: Session) -> None:
    payment = make_payment(db_session, date(2026, 1, 1), paid_days_late=None)

    result = load_payment_history(db_session, TENANT_ID)

    assert result.events == ()
    assert result.skipped[0].record_id == payment.id
    assert "no paid date" in result.skipped[0].reason


def test_paid_date_before_tenancy_start_is_skipped(db_session: Session) -> None:
    make_payment(db_session, date(2024, 12, 1))

    result = load_payment_history(db_session, TENANT_ID)

    assert result.events == ()
    assert "tenancy start" in result.skipped[0].reason


def test_unknown_tenant_raises_not_found(db_session: Session) -> None:
    with pytest.raises(NotFoundError):
        load_payment_history(db_session, "missing-tenant")


def test_foreign_property_raises_not_found(db_session: Session) -> None:
    with pytest.raises(NotFoundError):
        load_payment_history(db_session, OTHER_TENANT_ID, PROPERTY_ID)


def test_history_can_be_scoped_to_one_property(db_session: Session) -> None:
    second = Property(
        tenant_id=TENANT_ID,
        address="2 Canal Wharf",
        city="Leeds",
        postcode="LS11 5PS",
        monthly_rent_pence=80_000,
    )
    db_session.add(second)
    db_session.commit()
    make_payment(db_session, date(2026, 1, 1))
    make_payment(db_session, date(2026, 1, 1), property_id=second.id, amount_pence=80_000)

    everything = load_payment_history(db_session, TENANT_ID)
    scoped = load_payment_history(db_session, TENANT_ID, second.id)

    assert len(everything) == 2
    assert [event.property_id for event in scoped] == [second.id]


def test_tenant_without_properties_has_empty_history(db_session: Session) -> None:
    assert len(load_payment_history(db_session, OTHER_TENANT_ID)) == 0
