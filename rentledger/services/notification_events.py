"""Kafka publisher for tenant notification events.

Downstream email and SMS delivery consume these events. This service only
records that something happened.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any, Literal
from uuid import uuid4

from kafka import KafkaProducer
from kafka.errors import KafkaError
from pydantic import BaseModel, Field

from rentledger.core.config import Settings, get_settings
from rentledger.obs import NOTIFICATION_PUBLISH_FAILURES_COUNTER

logger = logging.getLogger(__name__)

BADGE_EARNED = "badge.earned"
REPORT_GENERATED = "report.generated"

EventType = Literal["badge.earned", "report.generated"]


class NotificationEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: uuid4().hex)
    event_type: EventType
    tenant_id: str
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    payload: dict[str, Any] = Field(default_factory=dict)


class NotificationEventPublisher:
    """Publishes notification events to the configured Kafka topic."""

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        producer_factory: Callable[[], KafkaProducer] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._producer_factory = producer_factory or self._default_factory
        self._producer: KafkaProducer | None = None

    def _default_factory(self) -> KafkaProducer:
        return KafkaProducer(
            bootstrap_servers=self._settings.kafka_bootstrap_servers.split(","),
            value_serializer=lambda value: json.dumps(value).encode("utf-8"),
        )

    def _get_producer(self) -> KafkaProducer:
        if self._producer is None:
            self._producer = self._producer_factory()
        return self._producer

    def publish(self, event: NotificationEvent) -> bool:
        """Hand ``event`` to Kafka. Returns ``False`` when the broker could not take it.

        Failures are logged and counted but never raised: the state change that
        produced the event is already committed.
        """
        logger.debug(
            "publishing notification event",
            extra={"tenant_id": event.tenant_id, "event_type": event.event_type},
        )
        try:
            producer = self._get_producer()
            producer.send(
                self._settings.notification_events_topic,
                key=event.tenant_id.encode("utf-8"),
                value=event.model_dump(mode="json"),
            )
            producer.flush()
        except KafkaError as exc:
            self._record_failure(event, exc)
            return False
        except Exception as exc:
            self._record_failure(event, exc, exc_info=True)
            return False
        return True

    def _record_failure(self, event: NotificationEvent, exc: Exception, *, exc_info: bool = False) -> None:
        # Rebuild the producer on the next publish.
        self._producer = None
        NOTIFICATION_PUBLISH_FAILURES_COUNTER.labels(event_type=event.event_type).inc()
        logger.error(
            "failed to publish notification event",
            extra={
                "tenant_id": event.tenant_id,
                "event_type": event.event_type,
                "event_id": event.event_id,
                "error": str(exc),
            },
            exc_info=exc_info,
        )

    def badge_earned(self, tenant_id: str, *, badge_type: str, title: str, earned_at: Any) -> bool:
        return self.publish(
            NotificationEvent(
                event_type=BADGE_EARNED,
                tenant_id=tenant_id,
                payload={"badge_type": badge_type, "title": title, "earned_at": str(earned_at)},
            )
        )

    def report_generated(self, tenant_id: str, *, report_id: str, report_type: str, rent_score: int) -> bool:
        return self.publish(
            NotificationEvent(
                event_type=REPORT_GENERATED,
                tenant_id=tenant_id,
                payload={"report_id": report_id, "report_type": report_type, "rent_score": rent_score},
            )
        )


__all__ = [
    "BADGE_EARNED",
    "NotificationEvent",
    "NotificationEventPublisher",
    "REPORT_GENERATED",
]
