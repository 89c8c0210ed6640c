"""Report generation, retrieval and share link endpoints."""
from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from rentledger.api.deps import get_clock, get_db_session, get_notification_publisher
from rentledger.api.routes.auth import AuthenticatedUser, require_role
from rentledger.core.config import get_settings
from rentledger.schemas import (
    ReportGenerateRequest,
    ReportRead,
    ReportSummary,
    SharedReportRead,
    ShareRead,
    ShareRequest,
)
from rentledger.services.errors import NotFoundError, ShareExpiredError
from rentledger.services.notification_events import NotificationEventPublisher
from rentledger.services.report_pdf import render_report_pdf, report_filename
from rentledger.services.reports import ReportService, parse_report
from rentledger.services.sharing import ShareService

router = APIRouter()


@router.get("/reports", response_model=list[ReportSummary])
def list_reports(
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> list[ReportSummary]:
    reports = ReportService(session, settings=get_settings()).list(user.user_id)
    return [ReportSummary.model_validate(report) for report in reports]


@router.post("/reports/generate", response_model=ReportRead, status_code=status.HTTP_201_CREATED)
def generate_report(
    payload: ReportGenerateRequest,
    session: Session = Depends(get_db_session),
    publisher: NotificationEventPublisher = Depends(get_notification_publisher),
    now: datetime = Depends(get_clock),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> ReportRead:
    """Snapshot the tenant's record for a property. Earlier reports are left untouched."""

    service = ReportService(session, publisher=publisher, settings=get_settings())
    try:
        report = service.generate(
            user.user_id,
            payload.property_id,
            payload.report_type,
            now=now,
            notes=payload.notes,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ReportRead.model_validate(report)


@router.get(
    "/reports/{report_id}/pdf",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
def download_report_pdf(
    report_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> Response:
    """Render the stored snapshot as a PDF attachment."""
    try:
        report = ReportService(session, settings=get_settings()).get(user.user_id, report_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    document = parse_report(report.body)
    return Response(
        content=render_report_pdf(document),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(document)}"'},
    )


@router.get("/reports/{report_id}", response_model=ReportRead)
def get_report(
    report_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> ReportRead:
    try:
        report = ReportService(session, settings=get_settings()).get(user.user_id, report_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ReportRead.model_validate(report)


@router.post("/reports/{report_id}/share", response_model=ShareRead, status_code=status.HTTP_201_CREATED)
def share_report(
    report_id: str,
    payload: ShareRequest,
    session: Session = Depends(get_db_session),
    now: datetime = Depends(get_clock),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> ShareRead:
    service = ShareService(session, settings=get_settings())
    try:
        share = service.share(
            user.user_id,
            report_id,
            recipient_email=payload.recipient_email,
            recipient_type=payload.recipient_type,
            now=now,
        )
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return ShareRead.model_validate(share)


@router.get("/reports/{report_id}/shares", response_model=list[ShareRead])
def list_report_shares(
    report_id: str,
    session: Session = Depends(get_db_session),
    user: AuthenticatedUser = Depends(require_role("TENANT")),
) -> list[ShareRead]:
    try:
        shares = ShareService(session, settings=get_settings()).list_shares(user.user_id, report_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return [ShareRead.model_validate(share) for share in shares]


@router.get("/shared-report/{token}", response_model=SharedReportRead)
def open_shared_report(
    token: str,
    session: Session = Depends(get_db_session),
    now: datetime = Depends(get_clock),
) -> SharedReportRead:
    """Public, unauthenticated access to a shared report."""

    try:
        shared = ShareService(session, settings=get_settings()).resolve(token, now=now)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ShareExpiredError as exc:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(exc)) from exc
    return SharedReportRead.model_validate(shared)
