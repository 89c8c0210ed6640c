"""Recording, verifying and listing rent payments."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rentledger.models import (
    AuditLog,
    PaymentSource,
    PaymentStatus,
    Property,
    RentPayment,
    UserRole,
    period_for,
)
from rentledger.services.errors import DuplicatePaymentError, NotFoundError, PermissionDeniedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PaymentInput:
    property_id: str
    amount_pence: int
    due_date: date
    paid_date: date | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    source: PaymentSource = PaymentSource.MANUAL
    external_reference: str | None = None


@dataclass(frozen=True, slots=True)
class Actor:
    user_id: str
    role: UserRole


def _owned_property(session: Session, tenant_id: str, property_id: str) -> Property:
    prop = session.get(Property, property_id)
    if prop is None or prop.tenant_id != tenant_id:
        raise NotFoundError(f"Property '{property_id}' was not found for tenant '{tenant_id}'")
    return prop


def record_payment(session: Session, tenant_id: str, payload: PaymentInput) -> RentPayment:
    """Store a payment for one of the tenant's properties.

    Bank-synced payments are trusted as verified. A manual entry for a period
    that also has a bank record is marked as superseded by it, whichever of
    the two was stored first.
    """

    prop = _owned_property(session, tenant_id, payload.property_id)
    period = period_for(payload.due_date)
    is_bank = payload.source is PaymentSource.BANK

    payment = RentPayment(
        tenant_id=tenant_id,
        property_id=prop.id,
        period=period,
        amount_pence=payload.amount_pence,
        due_date=payload.due_date,
        paid_date=payload.paid_date,
        status=payload.status.value,
        source=payload.source.value,
        is_verified=is_bank,
        external_reference=payload.external_reference,
    )
    session.add(payment)
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise DuplicatePaymentError(
            f"A {payload.source.value} payment for {period} already exists on property '{prop.id}'"
        ) from exc

    if is_bank:
        manual = session.scalars(
            select(RentPayment).where(
                RentPayment.property_id == prop.id,
                RentPayment.period == period,
                RentPayment.source == PaymentSource.MANUAL.value,
                RentPayment.superseded_by_id.is_(None),
            )
        ).first()
        if manual is not None:
            manual.superseded_by_id = payment.id
            logger.info(
                "manual payment superseded by bank record",
                extra={"payment_id": manual.id, "superseded_by": payment.id, "period": period},
            )
    else:
        bank = session.scalars(
            select(RentPayment).where(
                RentPayment.property_id == prop.id,
                RentPayment.period == period,
                RentPayment.source == PaymentSource.BANK.value,
            )
        ).first()
        if bank is not None:
            payment.superseded_by_id = bank.id
            logger.info(
                "manual payment logged after bank record",
                extra={"payment_id": payment.id, "superseded_by": bank.id, "period": period},
            )

    session.commit()
    session.refresh(payment)
    return payment


def verify_payment(session: Session, payment_id: str, actor: Actor, *, ip_address: str | None = None) -> RentPayment:
    """Mark a payment verified. Only the property's landlord or an admin may do so."""

    payment = session.get(RentPayment, payment_id)
    if payment is None:
        raise NotFoundError(f"Payment '{payment_id}' was not found")

    prop = payment.property
    if actor.role is not UserRole.ADMIN and (actor.role is not UserRole.LANDLORD or prop.landlord_id != actor.user_id):
        raise PermissionDeniedError("Only the property's landlord or an administrator can verify payments")

    if not payment.is_verified:
        payment.is_verified = True
        session.add(
            AuditLog(
                actor_id=actor.user_id,
                action="payment.verified",
                resource_type="rent_payment",
                resource_id=payment.id,
                payload={"property_id": prop.id, "period": payment.period},
                ip_address=ip_address,
            )
        )
        session.commit()
        session.refresh(payment)
    return payment


def list_payments(session: Session, tenant_id: str, property_id: str | None = None) -> list[RentPayment]:
    """Return the tenant's payments, newest due date first, including superseded entries."""

    statement = select(RentPayment).where(RentPayment.tenant_id == tenant_id)
    if property_id is not None:
        _owned_property(session, tenant_id, property_id)
        statement = statement.where(RentPayment.property_id == property_id)
    statement = statement.order_by(RentPayment.due_date.desc(), RentPayment.created_at.desc())
    return list(session.scalars(statement).all())


def list_landlord_payments(session: Session, landlord_id: str, *, unverified_only: bool = False) -> list[RentPayment]:
    """Payments on properties linked to the landlord's account."""

    statement = (
        select(RentPayment)
        .join(Property, Property.id == RentPayment.property_id)
        .where(Property.landlord_id == landlord_id, RentPayment.superseded_by_id.is_(None))
    )
    if unverified_only:
        statement = statement.where(RentPayment.is_verified.is_(False))
    return list(session.scalars(statement.order_by(RentPayment.due_date.desc())).all())


__all__ = [
    "Actor",
    "PaymentInput",
    "list_landlord_payments",
    "list_payments",
    "record_payment",
    "verify_payment",
]
