from __future__ import annotations

from datetime import date, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from rentledger.models import AuditLog, RecipientType, Report
from rentledger.services.errors import NotFoundError, ShareExpiredError
from rentledger.services.reports import ReportService
from rentledger.services.sharing import ShareService, _as_utc
from tests.conftest import NOW, OTHER_TENANT_ID, PROPERTY_ID, TENANT_ID, make_payment


@pytest.fixture()
def report(db_session: Session) -> Report:
    make_payment(db_session, date(2026, 5, 1))
    return ReportService(db_session).generate(TENANT_ID, PROPERTY_ID, "credit", now=NOW)


def test_share_creates_link_valid_for_thirty_days(db_session: Session, report: Report) -> None:
    share = ShareService(db_session).share(
        TENANT_ID, report.id, recipient_email="agent@lettings.co.uk", recipient_type=RecipientType.AGENCY, now=NOW
    )

    assert share.share_url.endswith(f"/shared-report/{share.share_token}")
    assert _as_utc(share.expires_at) == NOW + timedelta(days=30)
    assert share.recipient_type == "agency"
    assert share.access_count == 0


def test_resolve_counts_each_access(db_session: Session, report: Report) -> None:
    service = ShareService(db_session)
    share = service.share(TENANT_ID, report.id, now=NOW)

    first = service.resolve(share.share_token, now=NOW + timedelta(days=1))
    second = service.resolve(share.share_token, now=NOW + timedelta(days=2))

    assert first.report_id == report.id
    assert first.body["report_id"] == report.id
    assert first.access_count == 1
    assert second.access_count == 2


def test_expired_link_is_rejected_but_report_survives(db_session: Session, report: Report) -> None:
    service = ShareService(db_session)
    share = service.share(TENANT_ID, report.id, now=NOW)

    service.resolve(share.share_token, now=NOW + timedelta(days=29))
    with pytest.raises(ShareExpiredError):
        service.resolve(share.share_token, now=NOW + timedelta(days=31))

    assert ReportService(db_session).get(TENANT_ID, report.id).rent_score == report.rent_score


def test_link_expires_exactly_at_ttl(db_session: Session, report: Report) -> None:
    service = ShareService(db_session)
    share = service.share(TENANT_ID, report.id, now=NOW)

    with pytest.raises(ShareExpiredError):
        service.resolve(share.share_token, now=NOW + timedelta(days=30))


def test_each_share_is_a_separate_link(db_session: Session, report: Report) -> None:
    service = ShareService(db_session)

    first = service.share(TENANT_ID, report.id, now=NOW)
    second = service.share(TENANT_ID, report.id, now=NOW + timedelta(days=10))

    assert first.share_token != second.share_token
    assert second.expires_at - first.expires_at == timedelta(days=10)
    assert {share.id for share in service.list_shares(TENANT_ID, report.id)} == {first.id, second.id}


def test_unknown_token_is_not_found(db_session: Session) -> None:
    with pytest.raises(NotFoundError):
        ShareService(db_session).resolve("no-such-token", now=NOW)


def test_only_owner_can_share(db_session: Session, report: Report) -> None:
    with pytest.raises(NotFoundError):
        ShareService(db_session).share(OTHER_TENANT_ID, report.id, now=NOW)


def test_sharing_is_audited(db_session: Session, report: Report) -> None:
    share = ShareService(db_session).share(TENANT_ID, report.id, now=NOW)

    entry = db_session.scalars(select(AuditLog).where(AuditLog.action == "report.shared")).one()

    assert entry.actor_id == TENANT_ID
    assert entry.resource_id == report.id
    assert entry.payload["share_id"] == share.id
