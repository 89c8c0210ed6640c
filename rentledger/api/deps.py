"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Iterator
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from rentledger.core.config import get_settings
from rentledger.db.session import SessionLocal
from rentledger.services.notification_events import NotificationEventPublisher


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


_publisher: NotificationEventPublisher | None = None


def get_notification_publisher() -> NotificationEventPublisher:
    """Process-wide publisher; the Kafka producer connects on first publish."""

    global _publisher
    if _publisher is None:
        _publisher = NotificationEventPublisher(settings=get_settings())
    return _publisher


def get_clock() -> datetime:
    """Current UTC time. Overridden in tests to simulate elapsed time."""
    return datetime.now(timezone.utc)


def today(moment: datetime) -> date:
    return moment.astimezone(timezone.utc).date()


__all__ = ["get_clock", "get_db_session", "get_notification_publisher", "today"]
