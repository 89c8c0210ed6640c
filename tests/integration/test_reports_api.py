from __future__ import annotations

from datetime import date, timedelta

from kafka.errors import NoBrokersAvailable
from sqlalchemy.orm import Session

from tests.conftest import PROPERTY_ID, make_payment, monthly_due_dates


def _generate(client, headers, report_type: str = "credit") -> dict:
    response = client.post(
        "/api/reports/generate",
        json={"property_id": PROPERTY_ID, "report_type": report_type},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_generate_and_fetch_report(client, tenant_headers, db_session: Session, notification_events) -> None:
    for due in monthly_due_dates(date(2026, 1, 1), 3):
        make_payment(db_session, due)

    report = _generate(client, tenant_headers)

    assert report["rent_score"] == 850
    assert report["body"]["report_type"] == "credit"
    assert report["body"]["user_info"]["email"] == "tenant@example.com"
    assert report["body"]["current_address"]["postcode"] == "LS1 6AA"
    assert notification_events[-1]["value"]["event_type"] == "report.generated"

    fetched = client.get(f"/api/reports/{report['id']}", headers=tenant_headers)
    listing = client.get("/api/reports", headers=tenant_headers)

    assert fetched.status_code == 200
    assert fetched.json()["body"] == report["body"]
    assert [item["id"] for item in listing.json()] == [report["id"]]


def test_report_downloads_as_pdf(client, tenant_headers, other_tenant_headers, db_session: Session) -> None:
    for due in monthly_due_dates(date(2026, 1, 1), 3):
        make_payment(db_session, due)
    report = _generate(client, tenant_headers, "rental")

    response = client.get(f"/api/reports/{report['id']}/pdf", headers=tenant_headers)
    foreign = client.get(f"/api/reports/{report['id']}/pdf", headers=other_tenant_headers)
    missing = client.get("/api/reports/no-such-report/pdf", headers=tenant_headers)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == (
        f'attachment; filename="rentledger-rental-report-{report["id"]}.pdf"'
    )
    assert response.content.startswith(b"%PDF")
    assert foreign.status_code == 404
    assert missing.status_code == 404


def test_report_generation_survives_broker_outage(
    client, tenant_headers, db_session: Session, monkeypatch, notification_events
) -> None:
    def _no_brokers(*args, **kwargs):
        raise NoBrokersAvailable()

    monkeypatch.setattr("rentledger.services.notification_events.KafkaProducer", _no_brokers)
    for due in monthly_due_dates(date(2026, 1, 1), 3):
        make_payment(db_session, due)

    report = _generate(client, tenant_headers)
    fetched = client.get(f"/api/reports/{report['id']}", headers=tenant_headers)

    assert report["rent_score"] == 850
    assert fetched.status_code == 200
    assert notification_events == []


def test_each_generation_is_a_new_snapshot(client, tenant_headers) -> None:
    first = _generate(client, tenant_headers, "rental")
    second = _generate(client, tenant_headers, "rental")

    assert first["id"] != second["id"]
    assert len(client.get("/api/reports", headers=tenant_headers).json()) == 2


def test_report_is_private_to_its_tenant(client, tenant_headers, other_tenant_headers) -> None:
    report = _generate(client, tenant_headers)

    fetched = client.get(f"/api/reports/{report['id']}", headers=other_tenant_headers)
    shared = client.post(f"/api/reports/{report['id']}/share", json={}, headers=other_tenant_headers)
    generated = client.post(
        "/api/reports/generate",
        json={"property_id": PROPERTY_ID, "report_type": "credit"},
        headers=other_tenant_headers,
    )

    assert fetched.status_code == 404
    assert shared.status_code == 404
    assert generated.status_code == 404


def test_unknown_report_type_is_rejected(client, tenant_headers) -> None:
    response = client.post(
        "/api/reports/generate",
        json={"property_id": PROPERTY_ID, "report_type": "mortgage"},
        headers=tenant_headers,
    )

    assert response.status_code == 422


def test_share_link_lifecycle(client, tenant_headers, clock) -> None:
    report = _generate(client, tenant_headers, "landlord")

    created = client.post(
        f"/api/reports/{report['id']}/share",
        json={"recipient_email": "agent@lettings.co.uk", "recipient_type": "agency"},
        headers=tenant_headers,
    )
    assert created.status_code == 201
    share = created.json()
    assert share["share_url"].endswith(f"/shared-report/{share['share_token']}")

    opened = client.get(f"/api/shared-report/{share['share_token']}")
    assert opened.status_code == 200
    assert opened.json()["report_id"] == report["id"]
    assert opened.json()["access_count"] == 1
    assert opened.json()["body"]["report_type"] == "landlord"

    clock.now = clock.now + timedelta(days=31)
    expired = client.get(f"/api/shared-report/{share['share_token']}")
    assert expired.status_code == 410

    still_there = client.get(f"/api/reports/{report['id']}", headers=tenant_headers)
    assert still_there.status_code == 200
    assert still_there.json()["body"] == report["body"]


def test_shares_are_listed_per_report(client, tenant_headers) -> None:
    report = _generate(client, tenant_headers)
    for _ in range(2):
        client.post(f"/api/reports/{report['id']}/share", json={}, headers=tenant_headers)

    response = client.get(f"/api/reports/{report['id']}/shares", headers=tenant_headers)

    assert response.status_code == 200
    tokens = {item["share_token"] for item in response.json()}
    assert len(tokens) == 2


def test_invalid_recipient_email_is_rejected(client, tenant_headers) -> None:
    report = _generate(client, tenant_headers)

    response = client.post(
        f"/api/reports/{report['id']}/share",
        json={"recipient_email": "not-an-email"},
        headers=tenant_headers,
    )

    assert response.status_code == 422


def test_unknown_share_token_is_not_found(client) -> None:
    response = client.get("/api/shared-report/unknown-token")

    assert response.status_code == 404


def test_admin_sees_share_audit_trail(client, tenant_headers, admin_headers) -> None:
    report = _generate(client, tenant_headers)
    client.post(f"/api/reports/{report['id']}/share", json={}, headers=tenant_headers)

    logs = client.get("/api/admin/audit-logs", params={"action": "report.shared"}, headers=admin_headers)
    forbidden = client.get("/api/admin/audit-logs", headers=tenant_headers)

    assert logs.status_code == 200
    assert [entry["resource_id"] for entry in logs.json()] == [report["id"]]
    assert forbidden.status_code == 403


def test_health_endpoints(client) -> None:
    assert client.get("/api/healthz").json()["status"] == "ok"
    assert client.get("/api/readyz").json()["status"] == "ready"
