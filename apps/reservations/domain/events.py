"""
Reservation Domain Events

Events that represent things that have happened in the reservation domain.
These are published after successful transaction commits.
"""

from dataclasses import dataclass
from uuid import UUID

from shared.domain.base import DomainEvent
from shared.domain.value_objects import Interval, Money


# ===== Reservation Events =====

@dataclass
class ReservationRequested(DomainEvent):
    """
    Event: A pending reservation was committed

    Triggers (outside the engine):
    - Start payment capture
    - Notify the venue owner
    """
    reservation_id: UUID
    resource_id: int
    requester_id: str
    interval: Interval
    total_amount: Money


@dataclass
class ReservationConfirmed(DomainEvent):
    """Event: Payment captured (PENDING -> CONFIRMED)"""
    reservation_id: UUID
    resource_id: int
    payment_reference: str


@dataclass
class ReservationCancelled(DomainEvent):
    """
    Event: Reservation was cancelled

    The interval is already released when this is published.
    """
    reservation_id: UUID
    resource_id: int
    cancelled_by: str
    old_status: str
    reason: str = ''


# ===== Block Events =====

@dataclass
class BlockedIntervalAdded(DomainEvent):
    block_id: UUID
    resource_id: int
    interval: Interval
    reason: str = ''


@dataclass
class BlockedIntervalRemoved(DomainEvent):
    block_id: UUID
    resource_id: int
