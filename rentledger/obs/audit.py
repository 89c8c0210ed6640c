"""Request audit trail written to the ``audit`` logger and to daily S3 objects."""
from __future__ import annotations

import json
import logging
import random
import re
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable
from uuid import uuid4

import boto3
from botocore.exceptions import ClientError  # type: ignore[import-untyped]
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from rentledger.core.config import Settings

_SENSITIVE_KEYS = {
    "email",
    "recipient_email",
    "landlord_email",
    "phone",
    "landlord_phone",
    "sort_code",
    "account_number",
    "password",
    "refresh_token",
}
_SECRET_KEYS = {"password", "refresh_token"}
_SORT_CODE = re.compile(r"^\d{2}-?\d{2}-?\d{2}$")
_PHONE = re.compile(r"^\+?[\d ]{10,15}$")


def mask_value(value: Any) -> Any:
    """Mask email addresses, phone numbers, sort codes and account numbers."""
    if isinstance(value, dict):
        return mask_mapping(value)
    if isinstance(value, list):
        return [mask_value(item) for item in value]
    if not isinstance(value, str):
        return value
    if "@" in value:
        name, _, domain = value.partition("@")
        return f"{name[:1]}***@{domain}" if domain else "***@***"
    if _SORT_CODE.match(value):
        return "**-**-" + value[-2:]
    if _PHONE.match(value) or (value.isdigit() and len(value) >= 8):
        return "***" + value[-4:]
    return value


def _mask_sensitive(key: str, value: Any) -> Any:
    if key in _SECRET_KEYS or not isinstance(value, str) or len(value) <= 4:
        return "***"
    masked = mask_value(value)
    return masked if masked != value else "***" + value[-4:]


def mask_mapping(mapping: dict[str, Any]) -> dict[str, Any]:
    masked: dict[str, Any] = {}
    for key, value in mapping.items():
        lowered = key.lower()
        masked[key] = _mask_sensitive(lowered, value) if lowered in _SENSITIVE_KEYS else mask_value(value)
    return masked


@dataclass(slots=True)
class AuditLogRecord:
    timestamp: str
    request_id: str
    method: str
    path: str
    status: int
    duration_ms: float
    actor: str | None
    role: str | None
    ip_address: str | None
    query: dict[str, Any]
    body: Any

    def to_json(self) -> str:
        payload = asdict(self)
        payload["duration_ms"] = round(self.duration_ms, 2)
        return json.dumps(payload, default=str)


class AuditMiddleware(BaseHTTPMiddleware):
    """Writes one masked JSON line per request and appends it to the day's S3 object."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        logger: logging.Logger | None = None,
        s3_client_factory: Callable[[], Any] | None = None,
    ) -> None:
        super().__init__(app)
        self._settings = settings
        self._logger = logger or logging.getLogger("audit")
        self._s3_client_factory = s3_client_factory or self._default_client_factory
        self._s3_client: Any | None = None
        self._bucket_ready = False

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        body_bytes = await request.body()
        self._replay_body(request, body_bytes)
        body: Any = None
        if body_bytes:
            try:
                body = mask_value(json.loads(body_bytes))
            except json.JSONDecodeError:
                body = "<binary>"

        response = await call_next(request)

        record = AuditLogRecord(
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            actor=getattr(request.state, "actor_email", None),
            role=getattr(request.state, "actor_role", None),
            ip_address=request.client.host if request.client else None,
            query=mask_mapping(dict(request.query_params.multi_items())),
            body=body,
        )
        self._logger.info(record.to_json())
        self._persist_to_s3(record)

        response.headers["X-Request-ID"] = request_id
        return response

    def _default_client_factory(self) -> Any:
        return boto3.client(
            "s3",
            region_name=self._settings.aws_region,
            endpoint_url=self._settings.s3_endpoint_url,
        )

    def _client(self) -> Any:
        if self._s3_client is None:
            self._s3_client = self._s3_client_factory()
        return self._s3_client

    def _ensure_bucket(self, client: Any) -> bool:
        if self._bucket_ready:
            return True
        bucket = self._settings.audit_log_bucket
        try:
            client.head_bucket(Bucket=bucket)
        except ClientError:
            params: dict[str, Any] = {"Bucket": bucket}
            if self._settings.s3_endpoint_url is None and self._settings.aws_region != "us-east-1":
                params["CreateBucketConfiguration"] = {"LocationConstraint": self._settings.aws_region}
            try:
                client.create_bucket(**params)
            except ClientError as exc:  # pragma: no cover - configuration issues
                self._logger.error("failed to create audit bucket", extra={"error": str(exc)})
                return False
        self._bucket_ready = True
        return True

    def _read_existing(self, client: Any, key: str) -> bytes:
        try:
            return client.get_object(Bucket=self._settings.audit_log_bucket, Key=key)["Body"].read()
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in {"404", "NoSuchKey"}:
                return b""
            raise

    def _persist_to_s3(self, record: AuditLogRecord) -> None:
        rate = self._settings.audit_log_sample_rate
        if rate <= 0 or (rate < 1 and random.random() > rate):
            return
        try:
            client = self._client()
            if not self._ensure_bucket(client):
                return
            key = self.daily_key()
            existing = self._read_existing(client, key)
            client.put_object(
                Bucket=self._settings.audit_log_bucket,
                Key=key,
                Body=existing + record.to_json().encode("utf-8") + b"\n",
                ContentType="application/json",
            )
        except Exception as exc:  # pragma: no cover - S3 connectivity issues
            self._logger.error("failed to persist audit record", extra={"error": str(exc)})

    def daily_key(self, now: datetime | None = None) -> str:
        moment = now or datetime.now(timezone.utc)
        prefix = self._settings.audit_log_prefix.rstrip("/")
        return f"{prefix}/{moment:%Y/%m/%d}/audit.log"

    @staticmethod
    def _replay_body(request: Request, body: bytes) -> None:
        consumed = False

        async def receive() -> dict[str, Any]:
            nonlocal consumed
            if consumed:
                return {"type": "http.request", "body": b"", "more_body": False}
            consumed = True
            return {"type": "http.request", "body": body, "more_body": False}

        request._receive = receive  # type: ignore[attr-defined]


__all__ = ["AuditLogRecord", "AuditMiddleware", "mask_mapping", "mask_value"]
