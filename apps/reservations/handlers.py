"""Event subscribers for the reservation domain."""

from __future__ import annotations

import structlog

from shared.application.message_bus import MessageBus
from shared.domain.base import DomainEvent

from .domain.events import (
    BlockedIntervalAdded,
    BlockedIntervalRemoved,
    ReservationCancelled,
    ReservationConfirmed,
    ReservationRequested,
)

logger = structlog.get_logger("apps.reservations.audit")

AUDITED_EVENTS = (
    ReservationRequested,
    ReservationConfirmed,
    ReservationCancelled,
    BlockedIntervalAdded,
    BlockedIntervalRemoved,
)


def audit_event(event: DomainEvent) -> None:
    """Write every committed reservation event to the audit log."""
    payload = event.to_dict()
    event_type = payload.pop("event_type")
    payload["resource_id"] = getattr(event, "resource_id", None)
    logger.info(f"reservations.{event_type}", **payload)


def register_event_handlers(bus: MessageBus) -> None:
    for event_type in AUDITED_EVENTS:
        bus.register_event_handler(event_type, audit_event)
