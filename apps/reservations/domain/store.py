"""
Reservation Store

The storage collaborator of the engine. Listings are advisory and may be
stale; try_commit is the single source of truth for "no two active
reservations of a venue overlap" and must check and write atomically.

Every commit that changes what is busy on a venue (a new reservation, a
cancellation, a block) advances the venue's reservation version. Callers
that read the version before their advisory check can pass it back as
expected_version to insist that nothing changed in between.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID, uuid4

from shared.application.uow import InMemoryUnitOfWork
from shared.domain.base import utcnow
from shared.domain.errors import NotFound, SlotConflict
from shared.domain.value_objects import Interval, Money
from apps.reservations.domain.entities import (
    BlockedInterval,
    Reservation,
    ReservationStatus,
    Resource,
)
from apps.reservations.domain.events import (
    BlockedIntervalAdded,
    BlockedIntervalRemoved,
    ReservationRequested,
)

logger = logging.getLogger(__name__)


def new_pending_reservation(
    resource_id,
    interval: Interval,
    requester_id: str,
    *,
    guest_count: int,
    total_amount: Money,
    special_requests: str = '',
    created_at: Optional[datetime] = None,
) -> Reservation:
    """Build a PENDING reservation carrying its ReservationRequested event"""
    reservation = Reservation(
        id=uuid4(),
        resource_id=resource_id,
        requester_id=str(requester_id),
        interval=interval,
        guest_count=guest_count,
        total_amount=total_amount,
        special_requests=special_requests,
        created_at=created_at or utcnow(),
    )
    reservation.add_event(ReservationRequested(
        aggregate_id=reservation.id,
        reservation_id=reservation.id,
        resource_id=resource_id,
        requester_id=reservation.requester_id,
        interval=interval,
        total_amount=total_amount,
    ))
    return reservation


def conflict_error(resource_id, interval: Interval, conflicting_ids: Iterable) -> SlotConflict:
    ids = [str(i) for i in conflicting_ids]
    return SlotConflict(
        f"Venue {resource_id} is not available for {interval}. "
        f"Found {len(ids)} overlapping reservation(s) or block(s).",
        conflicting_ids=ids,
    )


def stale_version_error(resource_id, expected: int, current: int) -> SlotConflict:
    return SlotConflict(
        f"Venue {resource_id} changed since version {expected} (now {current})",
        field='expected_version',
    )


class ReservationStore(ABC):
    """Interface every storage backend of the engine implements"""

    @abstractmethod
    def get_resource(self, resource_id) -> Resource:
        """Load a venue; raises NotFound"""

    @abstractmethod
    def current_version(self, resource_id) -> int:
        """Current reservation version of a venue"""

    @abstractmethod
    def list_reservations(self, resource_id, window_start: datetime, window_end: datetime) -> List[Reservation]:
        """PENDING and CONFIRMED reservations overlapping [window_start, window_end)"""

    @abstractmethod
    def list_blocked_intervals(self, resource_id, window_start: datetime, window_end: datetime) -> List[BlockedInterval]:
        """Blocks overlapping [window_start, window_end)"""

    @abstractmethod
    def try_commit(
        self,
        resource_id,
        interval: Interval,
        requester_id: str,
        expected_version: Optional[int] = None,
        *,
        guest_count: int,
        total_amount: Money,
        special_requests: str = '',
        now: Optional[datetime] = None,
    ) -> Reservation:
        """
        Persist a PENDING reservation if and only if nothing overlaps it

        Raises:
            SlotConflict: an active reservation or block overlaps, or the
                venue version moved past expected_version
            StoreUnavailable: the backend failed or timed out
        """

    @abstractmethod
    def get_reservation(self, reservation_id: UUID) -> Reservation:
        """Load a reservation; raises NotFound"""

    @abstractmethod
    def save_reservation(self, reservation: Reservation, expected_version: int, uow=None) -> Reservation:
        """
        Persist a state change of an existing reservation

        The write succeeds only if the stored row is still at
        expected_version; otherwise SlotConflict. A reservation leaving the
        active statuses advances the venue version before this returns.
        """

    @abstractmethod
    def add_blocked_interval(self, block: BlockedInterval) -> BlockedInterval:
        """Persist a block; SlotConflict if it overlaps an active reservation"""

    @abstractmethod
    def remove_blocked_interval(self, resource_id, block_id: UUID) -> None:
        """Delete a block; raises NotFound"""

    @abstractmethod
    def list_expired_pending(self, created_before: datetime) -> List[Reservation]:
        """PENDING reservations created before the cutoff"""

    @abstractmethod
    def transaction(self):
        """Unit of work wrapping a load-modify-save sequence"""

    def window_busy(self, resource_id, window: Interval):
        """Active reservations and blocks overlapping the window"""
        return (
            self.list_reservations(resource_id, window.start, window.end),
            self.list_blocked_intervals(resource_id, window.start, window.end),
        )


class InMemoryReservationStore(ReservationStore):
    """
    Thread-safe store kept in process memory

    One lock serialises every mutation, which gives try_commit the same
    check-and-write atomicity a database transaction gives the Django store.
    Objects handed out are copies; mutating them does not touch the store.
    """

    def __init__(self, resources: Iterable[Resource] = (), bus=None):
        self._lock = threading.RLock()
        self._bus = bus
        self._resources: Dict[object, Resource] = {}
        self._versions: Dict[object, int] = {}
        self._reservations: Dict[UUID, Reservation] = {}
        self._blocks: Dict[UUID, BlockedInterval] = {}
        for resource in resources:
            self.add_resource(resource)

    # ----- setup -----

    def add_resource(self, resource: Resource) -> Resource:
        with self._lock:
            self._resources[resource.id] = resource
            self._versions.setdefault(resource.id, 0)
        return resource

    # ----- reads -----

    def get_resource(self, resource_id) -> Resource:
        with self._lock:
            return self._require_resource(resource_id)

    def current_version(self, resource_id) -> int:
        with self._lock:
            self._require_resource(resource_id)
            return self._versions[resource_id]

    def list_reservations(self, resource_id, window_start, window_end):
        window = Interval(window_start, window_end)
        with self._lock:
            found = [
                r for r in self._reservations.values()
                if r.resource_id == resource_id and r.is_active and r.interval.overlaps_with(window)
            ]
        return sorted((self._copy(r) for r in found), key=lambda r: r.interval.utc_start)

    def list_blocked_intervals(self, resource_id, window_start, window_end):
        window = Interval(window_start, window_end)
        with self._lock:
            found = [
                b for b in self._blocks.values()
                if b.resource_id == resource_id and b.interval.overlaps_with(window)
            ]
        return sorted(found, key=lambda b: b.interval.utc_start)

    def get_reservation(self, reservation_id):
        with self._lock:
            reservation = self._reservations.get(reservation_id)
            if reservation is None:
                raise NotFound(f"Reservation {reservation_id} not found", field='reservation_id')
            return self._copy(reservation)

    def list_expired_pending(self, created_before):
        with self._lock:
            found = [
                r for r in self._reservations.values()
                if r.status == ReservationStatus.PENDING and r.created_at < created_before
            ]
        return [self._copy(r) for r in found]

    # ----- writes -----

    def transaction(self):
        return InMemoryUnitOfWork(self._bus)

    def try_commit(
        self,
        resource_id,
        interval,
        requester_id,
        expected_version=None,
        *,
        guest_count,
        total_amount,
        special_requests='',
        now=None,
    ):
        with self.transaction() as uow:
            with self._lock:
                self._require_resource(resource_id)
                current = self._versions[resource_id]
                if expected_version is not None and expected_version != current:
                    raise stale_version_error(resource_id, expected_version, current)

                conflicts = self._conflicting_ids(resource_id, interval)
                if conflicts:
                    raise conflict_error(resource_id, interval, conflicts)

                reservation = new_pending_reservation(
                    resource_id,
                    interval,
                    requester_id,
                    guest_count=guest_count,
                    total_amount=total_amount,
                    special_requests=special_requests,
                    created_at=now,
                )
                uow.collect_events(reservation)
                self._reservations[reservation.id] = reservation
                self._versions[resource_id] = current + 1

        logger.info(f"Committed reservation {reservation.id} for venue {resource_id} {interval}")
        return self._copy(reservation)

    def save_reservation(self, reservation, expected_version, uow=None):
        with self._lock:
            stored = self._reservations.get(reservation.id)
            if stored is None:
                raise NotFound(f"Reservation {reservation.id} not found", field='reservation_id')
            if stored.version != expected_version:
                raise SlotConflict(
                    f"Reservation {reservation.id} was modified concurrently "
                    f"(expected version {expected_version}, found {stored.version})",
                    field='version',
                )
            if uow is not None:
                uow.collect_events(reservation)
            saved = self._copy(reservation)
            self._reservations[reservation.id] = saved
            if stored.is_active and not saved.is_active:
                self._versions[saved.resource_id] += 1
        return self._copy(saved)

    def add_blocked_interval(self, block):
        with self.transaction() as uow:
            with self._lock:
                self._require_resource(block.resource_id)
                clashing = [
                    r.id for r in self._reservations.values()
                    if r.resource_id == block.resource_id and r.is_active
                    and r.interval.overlaps_with(block.interval)
                ]
                if clashing:
                    raise conflict_error(block.resource_id, block.interval, clashing)
                self._blocks[block.id] = block
                self._versions[block.resource_id] += 1
                uow.record(BlockedIntervalAdded(
                    aggregate_id=block.id,
                    block_id=block.id,
                    resource_id=block.resource_id,
                    interval=block.interval,
                    reason=block.reason,
                ))
        return block

    def remove_blocked_interval(self, resource_id, block_id):
        with self.transaction() as uow:
            with self._lock:
                block = self._blocks.get(block_id)
                if block is None or block.resource_id != resource_id:
                    raise NotFound(f"Block {block_id} not found for venue {resource_id}", field='block_id')
                del self._blocks[block_id]
                self._versions[resource_id] += 1
                uow.record(BlockedIntervalRemoved(
                    aggregate_id=block_id,
                    block_id=block_id,
                    resource_id=resource_id,
                ))

    # ----- helpers -----

    def _require_resource(self, resource_id) -> Resource:
        resource = self._resources.get(resource_id)
        if resource is None:
            raise NotFound(f"Venue {resource_id} not found", field='resource_id')
        return resource

    def _conflicting_ids(self, resource_id, interval: Interval) -> List:
        ids = [
            r.id for r in self._reservations.values()
            if r.resource_id == resource_id and r.is_active and r.interval.overlaps_with(interval)
        ]
        ids.extend(
            b.id for b in self._blocks.values()
            if b.resource_id == resource_id and b.interval.overlaps_with(interval)
        )
        return ids

    @staticmethod
    def _copy(reservation: Reservation) -> Reservation:
        return replace(reservation)
