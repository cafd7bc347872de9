"""
Order history: append-only store of applied domain events.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID, uuid4

from django.db import models

from storefront.domain.events import DomainEvent, EventVersion
from storefront.infra.models import OrderORM, TimeStampedModel
import logging


logger = logging.getLogger(__name__)


class EventStore(TimeStampedModel):
    """Event store for order events."""
    id = models.UUIDField(primary_key=True, default=uuid4, editable=False)
    order = models.ForeignKey(
        OrderORM,
        on_delete=models.CASCADE,
        related_name="events",
    )
    event_type = models.CharField(max_length=100)
    event_version = models.CharField(max_length=10, default=EventVersion.V1.value)
    event_data = models.JSONField()
    sequence_number = models.BigIntegerField()  # Per order, starting at 1

    class Meta:
        db_table = "order_events"
        unique_together = [("order", "sequence_number")]
        ordering = ["sequence_number"]


class EventStoreRepository:
    """Repository for event store."""

    def save_event(self, event: DomainEvent) -> int:
        """Append event to its order's history. Caller holds the order lock."""
        last_event = (
            EventStore.objects
            .filter(order_id=event.aggregate_id)
            .order_by("-sequence_number")
            .first()
        )
        sequence_number = (last_event.sequence_number + 1) if last_event else 1

        EventStore.objects.create(
            order_id=event.aggregate_id,
            event_type=event.event_type,
            event_version=event.version.value,
            event_data=self._serialize_event(event),
            sequence_number=sequence_number,
        )
        logger.debug(
            "order_event_recorded",
            extra={
                "order_id": event.aggregate_id,
                "operation": event.event_type,
            },
        )
        return sequence_number

    def get_events(self, order_id: int) -> list[dict]:
        """Get all events for order."""
        events = (
            EventStore.objects
            .filter(order_id=order_id)
            .order_by("sequence_number")
        )
        return [self._deserialize_event(e) for e in events]

    def _serialize_event(self, event: DomainEvent) -> dict:
        """Serialize event to dict."""
        data = {
            "event_id": str(event.event_id),
            "aggregate_id": event.aggregate_id,
            "event_type": event.event_type,
            "version": event.version.value,
        }
        for key, value in event.__dict__.items():
            if key in ("event_id", "aggregate_id", "event_type", "version"):
                continue
            if isinstance(value, Enum):
                data[key] = value.value
            elif isinstance(value, (UUID, Decimal)):
                data[key] = str(value)
            elif isinstance(value, date):
                data[key] = value.isoformat()
            else:
                data[key] = value
        return data

    def _deserialize_event(self, event_orm: EventStore) -> dict:
        """Deserialize event from store."""
        return {
            "id": str(event_orm.id),
            "order_id": event_orm.order_id,
            "event_type": event_orm.event_type,
            "version": event_orm.event_version,
            "data": event_orm.event_data,
            "sequence_number": event_orm.sequence_number,
            "occurred_at": event_orm.created_at.isoformat(),
        }
