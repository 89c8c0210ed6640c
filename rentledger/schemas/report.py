"""Schemas for report generation, retrieval and sharing."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from rentledger.models import RecipientType, ReportType


class ReportGenerateRequest(BaseModel):
    property_id: str = Field(..., min_length=1, max_length=36)
    report_type: ReportType
    notes: str | None = Field(default=None, max_length=2000)


class ReportSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    property_id: str
    report_type: str
    rent_score: int
    generated_at: datetime
    expires_at: datetime | None = None


class ReportRead(ReportSummary):
    body: dict[str, Any]


class ShareRequest(BaseModel):
    recipient_email: str | None = Field(default=None, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")
    recipient_type: RecipientType | None = None


class ShareRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    report_id: str
    share_token: str
    share_url: str
    recipient_email: str | None = None
    recipient_type: str | None = None
    access_count: int
    expires_at: datetime


class SharedReportRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    report_id: str
    report_type: str
    body: dict[str, Any]
    expires_at: datetime
    access_count: int


__all__ = [
    "ReportGenerateRequest",
    "ReportRead",
    "ReportSummary",
    "ShareRead",
    "ShareRequest",
    "SharedReportRead",
]
