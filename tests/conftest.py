from __future__ import annotations

import json
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime, timezone
from io import BytesIO
from pathlib import Path
from types import SimpleNamespace

import bcrypt
import pytest
from botocore.exceptions import ClientError
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("RENTLEDGER_ENABLE_TRACING", "false")
os.environ.setdefault("RENTLEDGER_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from rentledger.api.deps import get_clock, get_db_session
from rentledger.api.routes.auth import refresh_token_store
from rentledger.main import app
from rentledger.models import (
    Base,
    PaymentSource,
    PaymentStatus,
    Property,
    RentPayment,
    User,
    UserRole,
    period_for,
)
from rentledger.obs import AuditMiddleware

TENANT_ID = "tenant-demo"
OTHER_TENANT_ID = "tenant-other"
LANDLORD_ID = "landlord-demo"
ADMIN_ID = "admin-demo"
PROPERTY_ID = "property-demo"
PASSWORD = "changeme"
NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


class InMemoryS3Client:
    """Simple in-memory S3 stub used by the audit middleware during tests."""

    exceptions = SimpleNamespace(NoSuchKey=type("NoSuchKey", (Exception,), {}))

    def __init__(self) -> None:
        self._buckets: dict[str, dict[str, bytes]] = {}

    def head_bucket(self, *, Bucket: str) -> None:
        if Bucket not in self._buckets:
            raise ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, "HeadBucket")

    def create_bucket(self, *, Bucket: str, **_: object) -> None:
        self._buckets.setdefault(Bucket, {})

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, BytesIO]:
        bucket = self._buckets.get(Bucket, {})
        if Key not in bucket:
            raise ClientError({"Error": {"Code": "NoSuchKey"}}, "GetObject")
        return {"Body": BytesIO(bucket[Key])}

    def put_object(self, *, Bucket: str, Key: str, Body: bytes, **_: object) -> dict[str, str]:
        self._buckets.setdefault(Bucket, {})[Key] = Body
        return {"ETag": "in-memory"}

    @property
    def buckets(self) -> dict[str, dict[str, bytes]]:
        return self._buckets


class DummyKafkaProducer:
    def __init__(self, sink: list[dict[str, object]]) -> None:
        self._sink = sink

    def send(self, topic: str, value: dict[str, object], key: bytes | None = None) -> None:
        self._sink.append({"topic": topic, "key": key, "value": json.loads(json.dumps(value))})

    def flush(self) -> None:
        return None


@dataclass
class Clock:
    now: datetime = NOW

    def today(self) -> date:
        return self.now.date()


engine = create_engine(
    "sqlite+pysqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
_PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")


def make_payment(
    session: Session,
    due_date: date,
    *,
    paid_days_late: int | None = 0,
    status: PaymentStatus = PaymentStatus.PAID,
    source: PaymentSource = PaymentSource.BANK,
    verified: bool = True,
    property_id: str = PROPERTY_ID,
    tenant_id: str = TENANT_ID,
    amount_pence: int = 95_000,
) -> RentPayment:
    paid_date = None
    if paid_days_late is not None and status in (PaymentStatus.PAID, PaymentStatus.LATE):
        paid_date = date.fromordinal(due_date.toordinal() + paid_days_late)
    payment = RentPayment(
        tenant_id=tenant_id,
        property_id=property_id,
        period=period_for(due_date),
        amount_pence=amount_pence,
        due_date=due_date,
        paid_date=paid_date,
        status=status.value,
        source=source.value,
        is_verified=verified,
    )
    session.add(payment)
    session.commit()
    return payment


def monthly_due_dates(start: date, count: int) -> list[date]:
    dates = []
    year, month = start.year, start.month
    for _ in range(count):
        dates.append(date(year, month, start.day))
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
    return dates


@pytest.fixture(autouse=True)
def audit_s3_client(monkeypatch: pytest.MonkeyPatch) -> Iterator[InMemoryS3Client]:
    client = InMemoryS3Client()

    def _client_factory(*args: object, **kwargs: object) -> InMemoryS3Client:
        return client

    monkeypatch.setattr("rentledger.obs.audit.boto3.client", _client_factory)
    stack = getattr(app, "middleware_stack", None)
    middleware = getattr(stack, "app", None)
    while middleware is not None and hasattr(middleware, "app"):
        if isinstance(middleware, AuditMiddleware):
            middleware._s3_client = None
            middleware._bucket_ready = False
        middleware = getattr(middleware, "app", None)
    yield client


@pytest.fixture(autouse=True)
def notification_events(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[dict[str, object]]]:
    sent: list[dict[str, object]] = []
    monkeypatch.setattr(
        "rentledger.services.notification_events.KafkaProducer",
        lambda *args, **kwargs: DummyKafkaProducer(sent),
    )
    monkeypatch.setattr("rentledger.api.deps._publisher", None)
    yield sent


@pytest.fixture(autouse=True)
def reset_refresh_store() -> Iterator[None]:
    refresh_token_store.reset()
    yield
    refresh_token_store.reset()


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    users = [
        (TENANT_ID, "tenant@example.com", UserRole.TENANT, "Alex Taylor", "RL-0001"),
        (OTHER_TENANT_ID, "other@example.com", UserRole.TENANT, "Jordan Lee", "RL-0002"),
        (LANDLORD_ID, "landlord@example.com", UserRole.LANDLORD, "Sam Patel", "RL-0003"),
        (ADMIN_ID, "admin@example.com", UserRole.ADMIN, "Admin User", "RL-0004"),
    ]
    for user_id, email, role, name, rlid in users:
        session.add(
            User(id=user_id, email=email, role=role, full_name=name, rlid=rlid, hashed_password=_PASSWORD_HASH)
        )
    session.flush()
    session.add(
        Property(
            id=PROPERTY_ID,
            tenant_id=TENANT_ID,
            landlord_id=LANDLORD_ID,
            address="14 Albion Street",
            city="Leeds",
            postcode="LS1 6AA",
            monthly_rent_pence=95_000,
            landlord_name="Sam Patel",
            landlord_email="landlord@example.com",
            tenancy_start_date=date(2025, 1, 1),
        )
    )
    session.commit()

    yield session
    session.close()


@pytest.fixture()
def client(db_session: Session, clock: Clock, audit_s3_client: InMemoryS3Client) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock.now

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)
    app.dependency_overrides.pop(get_clock, None)


def _headers_for(client: TestClient, email: str) -> dict[str, str]:
    response = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture()
def tenant_headers(client: TestClient) -> dict[str, str]:
    return _headers_for(client, "tenant@example.com")


@pytest.fixture()
def other_tenant_headers(client: TestClient) -> dict[str, str]:
    return _headers_for(client, "other@example.com")


@pytest.fixture()
def landlord_headers(client: TestClient) -> dict[str, str]:
    return _headers_for(client, "landlord@example.com")


@pytest.fixture()
def admin_headers(client: TestClient) -> dict[str, str]:
    return _headers_for(client, "admin@example.com")
