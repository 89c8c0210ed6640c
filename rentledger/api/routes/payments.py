"""Rent payment endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from rentledger.api.deps import get_db_session
from rentledger.api.routes.auth import AuthenticatedUser, require_role
from rentledger.models import UserRole
from rentledger.schemas import PaymentCreate, PaymentRead
from rentledger.services.errors import DuplicatePaymentError, NotFoundError, PermissionDeniedError
from rentledger.services.payments import (
    Actor,
    PaymentInput,
    list_landlord_payments,
    list_payments,
    record_payment,
    verify_payment,
)

router = APIRouter(prefix="/payments")


@router.get("", response_model=list[PaymentRead])
def get_payments(
    property_id: str | None = Query(default=None),
    unverified_only: bool = Query(default=False),
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("TENANT", "LANDLORD")),
) -> list[PaymentRead]:
    """Tenants see their own payments; landlords see payments on their properties."""

    if user.role == "LANDLORD":
        payments = list_landlord_payments(session, user.user_id, unverified_only=unverified_only)
    else:
        try:
            payments = list_payments(session, user.user_id, property_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [PaymentRead.model_validate(payment) for payment in payments]


@router.post("", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentCreate,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> PaymentRead:
    try:
        payment = record_payment(
            session,
            user.user_id,
            PaymentInput(
                property_id=payload.property_id,
                amount_pence=payload.amount_pence,
                due_date=payload.due_date,
                paid_date=payload.paid_date,
                status=payload.status,
                source=payload.source,
                external_reference=payload.external_reference,
            ),
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except DuplicatePaymentError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    return PaymentRead.model_validate(payment)


@router.post("/{payment_id}/verify", response_model=PaymentRead)
def verify(
    payment_id: str,
    request: Request,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("LANDLORD", "ADMIN")),
) -> PaymentRead:
    actor = Actor(user_id=user.user_id, role=UserRole(user.role))
    try:
        payment = verify_payment(
            session,
            payment_id,
            actor,
            ip_address=request.client.host if request.client else None,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except PermissionDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc)) from exc
    return PaymentRead.model_validate(payment)
