"""Time-limited public share links for report snapshots."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rentledger.core.config import Settings, get_settings
from rentledger.models import AuditLog, RecipientType, Report, ReportShare
from rentledger.models.base import new_id
from rentledger.obs import SHARE_RESOLUTION_COUNTER
from rentledger.services.errors import NotFoundError, ShareExpiredError

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes for timezone-aware columns.
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class SharedReport:
    report_id: str
    report_type: str
    body: dict
    expires_at: datetime
    access_count: int


class ShareService:
    def __init__(self, session: Session, *, settings: Settings | None = None) -> None:
        self._session = session
        self._settings = settings or get_settings()

    def share(
        self,
        tenant_id: str,
        report_id: str,
        *,
        recipient_email: str | None = None,
        recipient_type: RecipientType | str | None = None,
        now: datetime | None = None,
    ) -> ReportShare:
        """Create a new share link for one of the tenant's reports.

        Every call creates its own link with its own expiry; earlier links are
        left as they are.
        """

        report = self._session.get(Report, report_id)
        if report is None or report.tenant_id != tenant_id:
            raise NotFoundError(f"Report '{report_id}' was not found")

        created = _as_utc(now or datetime.now(timezone.utc))
        token = secrets.token_urlsafe(32)
        share = ReportShare(
            id=new_id(),
            report_id=report.id,
            share_token=token,
            share_url=f"{self._settings.public_base_url.rstrip('/')}/shared-report/{token}",
            recipient_email=recipient_email,
            recipient_type=RecipientType(recipient_type).value if recipient_type else None,
            access_count=0,
            expires_at=created + timedelta(days=self._settings.share_ttl_days),
            created_at=created,
        )
        self._session.add(share)
        self._session.add(
            AuditLog(
                actor_id=tenant_id,
                action="report.shared",
                resource_type="report",
                resource_id=report.id,
                payload={"share_id": share.id, "recipient_type": share.recipient_type},
            )
        )
        self._session.commit()
        logger.info("report shared", extra={"tenant_id": tenant_id, "report_id": report.id})
        return share

    def list_shares(self, tenant_id: str, report_id: str) -> list[ReportShare]:
        report = self._session.get(Report, report_id)
        if report is None or report.tenant_id != tenant_id:
            raise NotFoundError(f"Report '{report_id}' was not found")
        statement = (
            select(ReportShare)
            .where(ReportShare.report_id == report_id)
            .order_by(ReportShare.created_at.desc())
        )
        return list(self._session.scalars(statement).all())

    def resolve(self, token: str, *, now: datetime | None = None) -> SharedReport:
        """Return the report behind ``token`` and count the access.

        Raises ``NotFoundError`` for an unknown token and ``ShareExpiredError``
        once the link has expired. Neither touches the report row.
        """

        share = self._session.scalars(select(ReportShare).where(ReportShare.share_token == token)).first()
        if share is None:
            SHARE_RESOLUTION_COUNTER.labels(outcome="not_found").inc()
            raise NotFoundError("Shared report was not found")

        moment = _as_utc(now or datetime.now(timezone.utc))
        expires_at = _as_utc(share.expires_at)
        if moment >= expires_at:
            SHARE_RESOLUTION_COUNTER.labels(outcome="expired").inc()
            logger.info("expired share link accessed", extra={"share_id": share.id, "report_id": share.report_id})
            raise ShareExpiredError(f"Share link expired on {expires_at:%Y-%m-%d}")

        self._session.execute(
            update(ReportShare)
            .where(ReportShare.id == share.id)
            .values(access_count=ReportShare.access_count + 1)
        )
        self._session.commit()
        self._session.refresh(share)
        SHARE_RESOLUTION_COUNTER.labels(outcome="ok").inc()

        report = share.report
        return SharedReport(
            report_id=report.id,
            report_type=report.report_type,
            body=report.body,
            expires_at=expires_at,
            access_count=share.access_count,
        )


__all__ = ["SharedReport", "ShareService"]
