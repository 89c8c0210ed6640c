from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from rentledger.core.config import get_settings
from rentledger.obs import (
    AuditMiddleware,
    PrometheusMiddleware,
    mask_mapping,
    mask_value,
    metrics_router,
    traced,
)
from tests.conftest import InMemoryS3Client


def test_metrics_endpoint_exposes_counters() -> None:
    app = FastAPI()
    app.add_middleware(PrometheusMiddleware)
    app.include_router(metrics_router)

    @app.get("/api/shared-report/{token}")
    def shared(token: str) -> dict[str, str]:
        return {"token": token}

    client = TestClient(app)
    client.get("/api/shared-report/abc123")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "rentledger_http_requests_total" in response.text
    assert 'path="/api/shared-report/{token}"' in response.text
    assert "abc123" not in response.text


def test_mask_value_hides_contact_and_bank_details() -> None:
    assert mask_value("alex.taylor@example.com") == "a***@example.com"
    assert mask_value("20-00-00") == "**-**-00"
    assert mask_value("+44 7700 900123") == "***0123"
    assert mask_value("12345678") == "***5678"
    assert mask_value("Leeds") == "Leeds"
    assert mask_value(950) == 950


def test_mask_mapping_masks_sensitive_keys() -> None:
    masked = mask_mapping(
        {
            "recipient_email": "agent@lettings.co.uk",
            "password": "changeme",
            "sort_code": "200000",
            "notes": {"landlord_email": "sam@example.com"},
            "report_type": "credit",
        }
    )

    assert masked["recipient_email"] == "a***@lettings.co.uk"
    assert masked["password"] == "***"
    assert masked["sort_code"] == "**-**-00"
    assert masked["notes"] == {"landlord_email": "s***@example.com"}
    assert masked["report_type"] == "credit"


def test_traced_records_prefixed_attributes(monkeypatch: pytest.MonkeyPatch) -> None:
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    monkeypatch.setattr("rentledger.obs.tracing.trace.get_tracer", provider.get_tracer)

    with traced("rentledger.reports.assemble", tenant_id="tenant-demo", property_id=None):
        pass

    (span,) = exporter.get_finished_spans()
    assert span.name == "rentledger.reports.assemble"
    assert span.attributes["rentledger.tenant_id"] == "tenant-demo"
    assert "rentledger.property_id" not in span.attributes


def test_audit_middleware_writes_masked_daily_record(caplog: pytest.LogCaptureFixture) -> None:
    s3 = InMemoryS3Client()
    settings = get_settings()
    app = FastAPI()
    app.add_middleware(AuditMiddleware, settings=settings, s3_client_factory=lambda: s3)

    @app.post("/api/reports/{report_id}/share")
    async def share(report_id: str, request: Request) -> dict[str, str]:
        payload = await request.json()
        request.state.actor_email = "tenant@example.com"
        request.state.actor_role = "tenant"
        return {"report_id": report_id, "recipient": payload["recipient_email"]}

    client = TestClient(app)
    with caplog.at_level(logging.INFO, logger="audit"):
        response = client.post(
            "/api/reports/r-1/share",
            json={"recipient_email": "agent@lettings.co.uk", "recipient_type": "agency"},
            headers={"X-Request-ID": "req-1"},
        )

    assert response.status_code == 200
    assert response.json()["recipient"] == "agent@lettings.co.uk"
    assert response.headers["X-Request-ID"] == "req-1"

    objects = s3.buckets[settings.audit_log_bucket]
    (key,) = objects
    assert key.endswith(f"{datetime.now(timezone.utc):%Y/%m/%d}/audit.log")
    record = json.loads(objects[key].decode("utf-8").splitlines()[0])
    assert record["request_id"] == "req-1"
    assert record["status"] == 200
    assert record["actor"] == "tenant@example.com"
    assert record["body"] == {"recipient_email": "a***@lettings.co.uk", "recipient_type": "agency"}
    assert "agent@lettings.co.uk" not in caplog.text


def test_audit_records_append_to_same_object() -> None:
    s3 = InMemoryS3Client()
    settings = get_settings()
    app = FastAPI()
    app.add_middleware(AuditMiddleware, settings=settings, s3_client_factory=lambda: s3)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    client = TestClient(app)
    client.get("/healthz")
    client.get("/healthz")

    (body,) = s3.buckets[settings.audit_log_bucket].values()
    assert len(body.decode("utf-8").splitlines()) == 2
