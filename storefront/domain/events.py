"""
Domain events recorded in the order history.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class EventVersion(str, Enum):
    """Event version for upcasting."""
    V1 = "1.0"


@dataclass
class DomainEvent:
    """Base domain event."""
    event_id: UUID
    aggregate_id: int
    event_type: str
    # actor_id and version live in subclasses to avoid dataclass field ordering issues


@dataclass
class OrderCreated(DomainEvent):
    customer_id: int | None
    total_amount: Decimal
    items_count: int
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1


@dataclass
class AssemblerAssigned(DomainEvent):
    assembler_id: int
    previous_assembler_id: int | None
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1


@dataclass
class AcceptanceDecided(DomainEvent):
    decision: str
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1


@dataclass
class OrderStatusChanged(DomainEvent):
    old_status: str
    new_status: str
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1


@dataclass
class ItemQuantityChanged(DomainEvent):
    """Line quantity edit; ``discarded_total`` is set when a manual total was replaced."""
    item_id: int
    old_quantity: int
    new_quantity: int
    total_amount: Decimal
    discarded_total: Decimal | None = None
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1


@dataclass
class TotalOverridden(DomainEvent):
    old_total: Decimal
    new_total: Decimal
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1


@dataclass
class CompletionDateScheduled(DomainEvent):
    estimated_completion_date: date | None
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1


@dataclass
class CommentAdded(DomainEvent):
    author: str
    is_internal: bool
    actor_id: int | None = None
    version: EventVersion = EventVersion.V1
