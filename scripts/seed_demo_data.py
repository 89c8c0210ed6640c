"""Seed a demo tenant, landlord and admin with a year of rent payments."""
from __future__ import annotations

import logging
from datetime import date, timedelta

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from rentledger.db.session import engine, session_scope
from rentledger.models import (
    Base,
    PaymentSource,
    PaymentStatus,
    Property,
    RentPayment,
    User,
    UserRole,
    UserStatus,
    period_for,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_PASSWORD = "changeme"


def _user(session: Session, email: str, role: UserRole, full_name: str, rlid: str) -> User:
    user = session.scalars(select(User).where(User.email == email)).first()
    if user is not None:
        logger.info("User %s already exists", email)
        return user
    user = User(
        email=email,
        full_name=full_name,
        rlid=rlid,
        role=role,
        status=UserStatus.ACTIVE,
        hashed_password=bcrypt.hashpw(DEMO_PASSWORD.encode("utf-8"), bcrypt.gensalt()).decode("utf-8"),
    )
    session.add(user)
    session.flush()
    logger.info("Added user %s", email)
    return user


def seed(session: Session, *, today: date | None = None) -> None:
    """Seed demo accounts and twelve months of on-time payments."""

    current = today or date.today()
    tenant = _user(session, "tenant@demo.local", UserRole.TENANT, "Alex Taylor", "RL-DEMO-0001")
    landlord = _user(session, "landlord@demo.local", UserRole.LANDLORD, "Sam Patel", "RL-DEMO-0002")
    _user(session, "admin@demo.local", UserRole.ADMIN, "RentLedger Admin", "RL-DEMO-0003")

    if session.scalars(select(Property).where(Property.tenant_id == tenant.id)).first() is not None:
        logger.info("Demo property already exists")
        return

    start = (current.replace(day=1) - timedelta(days=365)).replace(day=1)
    prop = Property(
        tenant_id=tenant.id,
        landlord_id=landlord.id,
        address="14 Albion Street",
        city="Leeds",
        postcode="LS1 6AA",
        monthly_rent_pence=95_000,
        landlord_name=landlord.full_name,
        landlord_email=landlord.email,
        tenancy_start_date=start,
    )
    session.add(prop)
    session.flush()

    due = start
    while due <= current:
        session.add(
            RentPayment(
                tenant_id=tenant.id,
                property_id=prop.id,
                period=period_for(due),
                amount_pence=prop.monthly_rent_pence,
                due_date=due,
                paid_date=due,
                status=PaymentStatus.PAID.value,
                source=PaymentSource.BANK.value,
                is_verified=True,
            )
        )
        due = (due + timedelta(days=32)).replace(day=1)
    logger.info("Added demo payments from %s", start.isoformat())


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with session_scope() as session:
        seed(session)


if __name__ == "__main__":
    main()
