"""Administrator endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from rentledger.api.deps import get_db_session
from rentledger.api.routes.auth import AuthenticatedUser, require_role
from rentledger.models import AuditLog
from rentledger.schemas import AuditLogRead

router = APIRouter(prefix="/admin")


@router.get("/audit-logs", response_model=list[AuditLogRead])
def list_audit_logs(
    action: str | None = Query(default=None, max_length=128),
    resource_type: str | None = Query(default=None, max_length=128),
    limit: int = Query(default=100, ge=1, le=500),
    session: Session = Depends(get_db_session),
    _: AuthenticatedUser = Depends(require_role("ADMIN")),
) -> list[AuditLogRead]:
    statement = select(AuditLog)
    if action is not None:
        statement = statement.where(AuditLog.action == action)
    if resource_type is not None:
        statement = statement.where(AuditLog.resource_type == resource_type)
    statement = statement.order_by(AuditLog.created_at.desc(), AuditLog.id).limit(limit)
    return [AuditLogRead.model_validate(row) for row in session.scalars(statement).all()]
