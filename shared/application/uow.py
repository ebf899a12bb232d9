"""
Unit of Work

Groups the writes of one reservation command. Domain events raised by the
aggregates touched inside the block are held back and only handed to the
message bus once the writes are durable; a failed block drops them.
"""

from abc import ABC, abstractmethod
from typing import List
import logging

from django.db import transaction

from shared.domain.base import DomainEvent

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Context manager that commits on clean exit and rolls back otherwise"""

    def __init__(self, bus=None):
        self._bus = bus
        self._pending: List[DomainEvent] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()

    @abstractmethod
    def commit(self):
        """Make the writes durable and schedule event delivery"""

    def rollback(self):
        if self._pending:
            logger.warning(f"Unit of work failed, dropping {len(self._pending)} pending event(s)")
        self._pending.clear()

    def collect_events(self, aggregate):
        """Move the events raised by an aggregate into this unit of work"""
        raised = aggregate.events
        if not raised:
            return
        self._pending.extend(raised)
        aggregate.clear_events()
        logger.debug(f"Queued {len(raised)} event(s) from {type(aggregate).__name__} {aggregate.id}")

    def record(self, event: DomainEvent):
        """Queue an event that does not belong to an aggregate (e.g. block changes)"""
        self._pending.append(event)

    def _take_events(self) -> List[DomainEvent]:
        taken, self._pending = self._pending, []
        return taken

    def _publish_events(self, events: List[DomainEvent]):
        if self._bus is not None:
            bus = self._bus
        else:
            from shared.application.message_bus import message_bus as bus

        logger.info(f"Delivering {len(events)} committed event(s)")
        try:
            bus.publish_events(events)
        except Exception as e:
            # Writes are already committed; delivery problems are only logged
            logger.error(f"Event delivery failed: {e}", exc_info=True)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """
    Unit of work for the in-memory store

    The store's own lock provides isolation; events go out as soon as the
    block exits cleanly.
    """

    def commit(self):
        events = self._take_events()
        if events:
            self._publish_events(events)


class DjangoUnitOfWork(AbstractUnitOfWork):
    """
    Unit of work over transaction.atomic

    Usage:
        with DjangoUnitOfWork(bus, using="default") as uow:
            reservation = store.get_reservation(reservation_id)
            expected = reservation.version
            reservation.confirm(payment_reference, now)
            store.save_reservation(reservation, expected, uow)
        # ReservationConfirmed is delivered after COMMIT

    Nested inside an outer atomic block (as in TestCase) the unit of work
    becomes a savepoint and delivery waits for the outermost commit.
    """

    def __init__(self, bus=None, using=None):
        super().__init__(bus)
        self._using = using
        self._atomic = None

    def __enter__(self):
        self._atomic = transaction.atomic(using=self._using)
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            super().__exit__(exc_type, exc_val, exc_tb)
        finally:
            self._atomic.__exit__(exc_type, exc_val, exc_tb)

    def commit(self):
        events = self._take_events()
        if events:
            transaction.on_commit(lambda: self._publish_events(events), using=self._using)
