from __future__ import annotations

from datetime import date

from sqlalchemy.orm import Session

from rentledger.models import PaymentStatus
from tests.conftest import make_payment, monthly_due_dates


def test_achievements_award_badges_once(client, tenant_headers, db_session: Session, notification_events) -> None:
    for due in monthly_due_dates(date(2026, 1, 1), 3):
        make_payment(db_session, due)

    first = client.get("/api/achievements", headers=tenant_headers)
    second = client.get("/api/achievements", headers=tenant_headers)

    assert first.status_code == 200
    data = first.json()
    assert {badge["badge_type"] for badge in data["badges"]} == {"first_payment", "streak_3"}
    assert data["streak"] == {"current_streak": 3, "longest_streak": 3}
    assert data["rent_score"] == 850
    assert [(item["badge_type"], item["progress"], item["target"]) for item in data["upcoming"]] == [
        ("streak_6", 3, 6),
        ("streak_12", 3, 12),
    ]
    assert second.json()["badges"] == data["badges"]
    assert len([event for event in notification_events if event["value"]["event_type"] == "badge.earned"]) == 2


def test_achievements_without_history(client, tenant_headers) -> None:
    response = client.get("/api/achievements", headers=tenant_headers)

    assert response.status_code == 200
    assert response.json()["badges"] == []
    assert response.json()["rent_score"] == 0


def test_landlord_has_no_achievements(client, landlord_headers) -> None:
    response = client.get("/api/achievements", headers=landlord_headers)

    assert response.status_code == 403


def test_dashboard_stats(client, tenant_headers, db_session: Session) -> None:
    for due in monthly_due_dates(date(2026, 1, 1), 6):
        make_payment(db_session, due)
    make_payment(db_session, date(2026, 7, 1), status=PaymentStatus.PENDING)

    response = client.get("/api/dashboard/stats", headers=tenant_headers)

    assert response.status_code == 200
    stats = response.json()
    assert stats["payment_streak"] == 6
    assert stats["total_paid"] == 6 * 95_000
    assert stats["total_awaiting"] == 95_000
    assert stats["monthly_rent_paid"] == 95_000
    assert stats["verification_status"] == "verified"
    assert stats["rent_score"] == 900
    assert stats["next_payment_due"] == "2026-07-01"
