"""
Reservation Command Handlers

These are the use cases for the reservation domain.

Commands:
- ReserveSlotCommand: Reserve a venue for an interval
- CancelReservationCommand: Cancel a reservation (requester or owner)
- ConfirmReservationCommand: Confirm a reservation after payment capture
- ExpirePendingReservationsCommand: Release unpaid holds (scheduled job)

Reserving runs a small state machine per attempt:

    REQUESTED -> VALIDATING -> PRICING -> COMMITTING -> CONFIRMED
                      |            |            |
                      +------------+------------+--> REJECTED

The availability check in VALIDATING is advisory. Only the store's
atomic try_commit decides; a race lost there is REJECTED with
SlotConflict and is not retried here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional, Tuple
from uuid import UUID
import logging

from shared.application.clock import Clock, SystemClock
from shared.application.message_bus import MessageBus
from shared.domain.errors import (
    CapacityExceeded,
    PastDateRequested,
    ReservationError,
    SlotConflict,
)
from shared.domain.value_objects import Interval
from apps.reservations.domain.availability import AvailabilityCalculator
from apps.reservations.domain.entities import Reservation
from apps.reservations.domain.pricing import PricingCalculator
from apps.reservations.domain.store import ReservationStore

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class ReserveSlotCommand:
    """
    Command to reserve a venue

    expected_version, when given, is the venue version the caller based
    its decision on; the commit fails with SlotConflict if it moved.
    """
    resource_id: int
    requester_id: str
    start: datetime
    end: datetime
    guest_count: int
    special_requests: str = ''
    expected_version: Optional[int] = None


@dataclass
class CancelReservationCommand:
    reservation_id: UUID
    by_id: str
    reason: str = ''


@dataclass
class ConfirmReservationCommand:
    """Command sent by the payment collaborator after capture"""
    reservation_id: UUID
    payment_reference: str


@dataclass
class ExpirePendingReservationsCommand:
    """Release PENDING reservations older than hold"""
    hold: timedelta


# ===== Results =====

class AttemptState(Enum):
    REQUESTED = 'requested'
    VALIDATING = 'validating'
    PRICING = 'pricing'
    COMMITTING = 'committing'
    CONFIRMED = 'confirmed'
    REJECTED = 'rejected'


@dataclass(frozen=True)
class ReservationResult:
    """
    Outcome of a reservation attempt

    CONFIRMED results carry the persisted PENDING reservation; REJECTED
    results carry the typed error. trail lists every state visited.
    """
    state: AttemptState
    reservation: Optional[Reservation] = None
    error: Optional[ReservationError] = None
    trail: Tuple[AttemptState, ...] = ()

    @property
    def ok(self) -> bool:
        return self.state == AttemptState.CONFIRMED

    def unwrap(self) -> Reservation:
        """Reservation of a confirmed attempt; re-raises the rejection otherwise"""
        if self.error is not None:
            raise self.error
        return self.reservation


@dataclass
class _Attempt:
    command: ReserveSlotCommand
    trail: List[AttemptState] = field(default_factory=lambda: [AttemptState.REQUESTED])

    @property
    def state(self) -> AttemptState:
        return self.trail[-1]

    def move(self, state: AttemptState):
        logger.debug(
            f"Reservation attempt venue={self.command.resource_id} "
            f"requester={self.command.requester_id}: {self.state.value} -> {state.value}"
        )
        self.trail.append(state)

    def confirmed(self, reservation: Reservation) -> ReservationResult:
        self.move(AttemptState.CONFIRMED)
        return ReservationResult(AttemptState.CONFIRMED, reservation=reservation, trail=tuple(self.trail))

    def rejected(self, error: ReservationError) -> ReservationResult:
        logger.info(
            f"Reservation for venue {self.command.resource_id} rejected in "
            f"{self.state.value}: {error.kind.value} ({error.message})"
        )
        self.move(AttemptState.REJECTED)
        return ReservationResult(AttemptState.REJECTED, error=error, trail=tuple(self.trail))


# ===== Service =====

class ReservationService:
    """
    Orchestrates validate -> price -> commit for reservations

    Holds no state of its own beyond its collaborators, so any number of
    callers may share one instance.
    """

    def __init__(
        self,
        store: ReservationStore,
        clock: Clock | None = None,
        availability: AvailabilityCalculator | None = None,
        pricing: PricingCalculator | None = None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.availability = availability or AvailabilityCalculator(store)
        self.pricing = pricing or PricingCalculator()

    def reserve(self, command: ReserveSlotCommand) -> ReservationResult:
        attempt = _Attempt(command)

        attempt.move(AttemptState.VALIDATING)
        try:
            interval = Interval(command.start, command.end)
            resource = self.store.get_resource(command.resource_id)

            if not 1 <= command.guest_count <= resource.capacity:
                raise CapacityExceeded(
                    f"Guest count {command.guest_count} outside 1..{resource.capacity} "
                    f"for venue {resource.id}",
                    field='guest_count',
                )

            if interval.utc_start <= self.clock.now():
                raise PastDateRequested(
                    f"Requested start {interval.start.isoformat()} is not in the future",
                    field='start',
                )

            if not self.availability.is_available(resource.id, interval):
                raise SlotConflict(f"Venue {resource.id} is already booked during {interval}")
        except ReservationError as e:
            return attempt.rejected(e)

        attempt.move(AttemptState.PRICING)
        try:
            amount = self.pricing.price(resource, interval)
        except ReservationError as e:
            return attempt.rejected(e)

        attempt.move(AttemptState.COMMITTING)
        try:
            reservation = self.store.try_commit(
                resource.id,
                interval,
                command.requester_id,
                command.expected_version,
                guest_count=command.guest_count,
                total_amount=amount,
                special_requests=command.special_requests,
                now=self.clock.now(),
            )
        except ReservationError as e:
            return attempt.rejected(e)

        return attempt.confirmed(reservation)

    def cancel(self, reservation_id: UUID, by_id: str, reason: str = '') -> Reservation:
        """
        Cancel a reservation on behalf of its requester or the venue owner

        Raises NotAuthorized, NotFound, InvalidTransition or SlotConflict
        (the reservation changed underneath us).
        """
        with self.store.transaction() as uow:
            reservation = self.store.get_reservation(reservation_id)
            resource = self.store.get_resource(reservation.resource_id)
            expected = reservation.version

            reservation.cancel(by_id, resource.owner_id, self.clock.now(), reason)
            saved = self.store.save_reservation(reservation, expected, uow)

        logger.info(f"Reservation {reservation_id} cancelled by {by_id}")
        return saved

    def confirm(self, reservation_id: UUID, payment_reference: str) -> Reservation:
        """PENDING -> CONFIRMED once the payment collaborator captured funds"""
        with self.store.transaction() as uow:
            reservation = self.store.get_reservation(reservation_id)
            expected = reservation.version

            reservation.confirm(payment_reference, self.clock.now())
            saved = self.store.save_reservation(reservation, expected, uow)

        logger.info(f"Reservation {reservation_id} confirmed (payment {payment_reference})")
        return saved

    def expire_pending(self, hold: timedelta) -> List[Reservation]:
        """
        Cancel PENDING reservations created more than hold ago

        Each reservation is expired in its own transaction; one that was
        confirmed or cancelled meanwhile is skipped.
        """
        cutoff = self.clock.now() - hold
        expired = []
        for candidate in self.store.list_expired_pending(cutoff):
            try:
                with self.store.transaction() as uow:
                    reservation = self.store.get_reservation(candidate.id)
                    expected = reservation.version
                    reservation.expire(self.clock.now())
                    expired.append(self.store.save_reservation(reservation, expected, uow))
            except ReservationError as e:
                logger.warning(f"Skipping expiry of reservation {candidate.id}: {e.kind.value}")
        if expired:
            logger.info(f"Expired {len(expired)} pending reservation(s) older than {cutoff.isoformat()}")
        return expired


# ===== Command Handlers =====

class ReserveSlotHandler:
    def __init__(self, service: ReservationService):
        self.service = service

    def handle(self, command: ReserveSlotCommand) -> ReservationResult:
        return self.service.reserve(command)


class CancelReservationHandler:
    def __init__(self, service: ReservationService):
        self.service = service

    def handle(self, command: CancelReservationCommand) -> Reservation:
        return self.service.cancel(command.reservation_id, command.by_id, command.reason)


class ConfirmReservationHandler:
    def __init__(self, service: ReservationService):
        self.service = service

    def handle(self, command: ConfirmReservationCommand) -> Reservation:
        return self.service.confirm(command.reservation_id, command.payment_reference)


class ExpirePendingReservationsHandler:
    def __init__(self, service: ReservationService):
        self.service = service

    def handle(self, command: ExpirePendingReservationsCommand) -> List[Reservation]:
        return self.service.expire_pending(command.hold)


def register_handlers(bus: MessageBus, service: ReservationService) -> None:
    """Bind every reservation command on the bus to the given service"""
    bus.register_command_handler(ReserveSlotCommand, ReserveSlotHandler(service).handle, replace=True)
    bus.register_command_handler(CancelReservationCommand, CancelReservationHandler(service).handle, replace=True)
    bus.register_command_handler(ConfirmReservationCommand, ConfirmReservationHandler(service).handle, replace=True)
    bus.register_command_handler(
        ExpirePendingReservationsCommand,
        ExpirePendingReservationsHandler(service).handle,
        replace=True,
    )
