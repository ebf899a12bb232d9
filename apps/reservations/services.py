"""Wiring of the reservation engine to the Django store and the message bus."""

from __future__ import annotations

from functools import lru_cache

from shared.application.clock import SystemClock
from shared.application.message_bus import message_bus

from .application.command_handlers import ReservationService, register_handlers
from .infrastructure.django_store import DjangoReservationStore


@lru_cache(maxsize=1)
def get_reservation_service() -> ReservationService:
    """Process-wide service bound to the default database; commands routed through message_bus."""
    store = DjangoReservationStore(bus=message_bus)
    service = ReservationService(store, clock=SystemClock())
    register_handlers(message_bus, service)
    return service
