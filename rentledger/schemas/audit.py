"""Schemas for the admin audit log listing."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    actor_id: str | None
    action: str
    resource_type: str
    resource_id: str | None
    payload: dict[str, Any] | None
    ip_address: str | None
    created_at: datetime


__all__ = ["AuditLogRead"]
