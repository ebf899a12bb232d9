"""
Django ORM implementation of the ReservationStore.

Double booking is prevented in depth:
1. The venue row is locked with SELECT FOR UPDATE for the whole commit
   transaction, serialising writers per venue on databases that lock rows.
2. The venue's reservation_version is advanced with a compare-and-swap
   UPDATE, so a writer that slipped past the lock (or a database without
   row locks) finds zero rows updated and loses with SlotConflict.
3. On PostgreSQL the transaction runs under statement_timeout so a stuck
   commit surfaces as StoreUnavailable instead of hanging.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import List, Optional

from django.core.exceptions import ValidationError  # type: ignore
from django.core.validators import DecimalValidator  # type: ignore
from django.db import DatabaseError, connections, transaction  # type: ignore
from django.db.models import F  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from shared.application.uow import DjangoUnitOfWork
from shared.domain.errors import AmountOutOfRange, NotFound, SlotConflict, StoreUnavailable
from apps.reservations import conf
from apps.reservations.domain.entities import BlockedInterval, Reservation, Resource
from apps.reservations.domain.events import BlockedIntervalAdded, BlockedIntervalRemoved
from apps.reservations.domain.store import (
    ReservationStore,
    conflict_error,
    new_pending_reservation,
    stale_version_error,
)
from apps.reservations.models import Reservation as ReservationModel
from apps.reservations.models import state_fields
from apps.venues.models import Venue, VenueBlock

logger = logging.getLogger(__name__)


class DjangoReservationStore(ReservationStore):

    def __init__(self, bus=None, using: str = "default", timeout_ms: Optional[int] = None):
        self._bus = bus
        self._using = using
        self._timeout_ms = timeout_ms if timeout_ms is not None else conf.store_timeout_ms()

    # ----- infrastructure helpers -----

    @contextmanager
    def _translated(self):
        """Surface database failures as StoreUnavailable"""
        try:
            yield
        except DatabaseError as e:
            logger.error(f"Reservation store failure: {e}", exc_info=True)
            raise StoreUnavailable(f"Reservation store unavailable: {e}") from e

    def _check_amount(self, total_amount):
        """Reject totals the total_amount column cannot hold"""
        column = ReservationModel._meta.get_field("total_amount")
        try:
            DecimalValidator(column.max_digits, column.decimal_places)(total_amount.amount)
        except ValidationError as e:
            raise AmountOutOfRange(
                f"Total {total_amount} exceeds {column.max_digits} digits with {column.decimal_places} decimal places",
                field="total_amount",
            ) from e

    def _connection(self):
        return connections[self._using]

    def _lock_queryset_if_possible(self, queryset):
        """Apply select_for_update when inside transaction.atomic()."""
        if not self._connection().in_atomic_block:
            return queryset
        try:
            return queryset.select_for_update()
        except NotSupportedError:
            return queryset

    def _apply_timeout(self):
        connection = self._connection()
        if self._timeout_ms and connection.vendor == "postgresql":
            with connection.cursor() as cursor:
                cursor.execute(f"SET LOCAL statement_timeout = {int(self._timeout_ms)}")

    def _venues(self):
        return Venue.objects.using(self._using)

    def _reservations(self):
        return ReservationModel.objects.using(self._using)

    def _blocks(self):
        return VenueBlock.objects.using(self._using)

    def _lock_venue_version(self, resource_id) -> int:
        """Lock the venue row and return its reservation version"""
        queryset = self._lock_queryset_if_possible(self._venues().filter(pk=resource_id))
        version = queryset.values_list("reservation_version", flat=True).first()
        if version is None:
            raise NotFound(f"Venue {resource_id} not found", field="resource_id")
        return version

    def _advance_version(self, resource_id, current: int) -> None:
        updated = self._venues().filter(
            pk=resource_id,
            reservation_version=current,
        ).update(reservation_version=F("reservation_version") + 1)
        if updated != 1:
            raise SlotConflict(
                f"Venue {resource_id} was modified concurrently",
                field="expected_version",
            )

    def _overlapping_ids(self, resource_id, interval) -> List:
        reservation_ids = list(
            self._reservations().filter(
                venue_id=resource_id,
                status__in=ReservationModel.ACTIVE_STATUSES,
                start__lt=interval.end,
                end__gt=interval.start,
            ).values_list("id", flat=True)
        )
        block_ids = list(
            self._blocks().filter(
                venue_id=resource_id,
                start__lt=interval.end,
                end__gt=interval.start,
            ).values_list("id", flat=True)
        )
        return reservation_ids + block_ids

    # ----- reads -----

    def get_resource(self, resource_id) -> Resource:
        with self._translated():
            try:
                venue = self._venues().prefetch_related("rates", "opening_hours").get(pk=resource_id)
            except Venue.DoesNotExist:
                raise NotFound(f"Venue {resource_id} not found", field="resource_id")
            return venue.to_domain()

    def current_version(self, resource_id) -> int:
        with self._translated():
            version = self._venues().filter(pk=resource_id).values_list(
                "reservation_version", flat=True
            ).first()
        if version is None:
            raise NotFound(f"Venue {resource_id} not found", field="resource_id")
        return version

    def list_reservations(self, resource_id, window_start, window_end) -> List[Reservation]:
        with self._translated():
            rows = self._reservations().filter(
                venue_id=resource_id,
                status__in=ReservationModel.ACTIVE_STATUSES,
                start__lt=window_end,
                end__gt=window_start,
            ).order_by("start")
            return [row.to_domain() for row in rows]

    def list_blocked_intervals(self, resource_id, window_start, window_end) -> List[BlockedInterval]:
        with self._translated():
            rows = self._blocks().filter(
                venue_id=resource_id,
                start__lt=window_end,
                end__gt=window_start,
            ).order_by("start")
            return [row.to_domain() for row in rows]

    def get_reservation(self, reservation_id) -> Reservation:
        with self._translated():
            queryset = self._lock_queryset_if_possible(self._reservations().filter(pk=reservation_id))
            row = queryset.first()
        if row is None:
            raise NotFound(f"Reservation {reservation_id} not found", field="reservation_id")
        return row.to_domain()

    def list_expired_pending(self, created_before) -> List[Reservation]:
        with self._translated():
            rows = self._reservations().filter(
                status=ReservationModel.Status.PENDING,
                created_at__lt=created_before,
            ).order_by("created_at")
            return [row.to_domain() for row in rows]

    # ----- writes -----

    def transaction(self):
        return DjangoUnitOfWork(bus=self._bus, using=self._using)

    def try_commit(
        self,
        resource_id,
        interval,
        requester_id,
        expected_version=None,
        *,
        guest_count,
        total_amount,
        special_requests="",
        now=None,
    ) -> Reservation:
        self._check_amount(total_amount)
        with self._translated():
            with self.transaction() as uow:
                self._apply_timeout()
                current = self._lock_venue_version(resource_id)
                if expected_version is not None and expected_version != current:
                    raise stale_version_error(resource_id, expected_version, current)

                conflicts = self._overlapping_ids(resource_id, interval)
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
                self._advance_version(resource_id, current)
                ReservationModel.from_domain(reservation).save(using=self._using, force_insert=True)
                uow.collect_events(reservation)

        logger.info(f"Committed reservation {reservation.id} for venue {resource_id} {interval}")
        return reservation

    def save_reservation(self, reservation, expected_version, uow=None) -> Reservation:
        with self._translated():
            with transaction.atomic(using=self._using):
                fields = state_fields(reservation)
                updated = self._reservations().filter(
                    pk=reservation.id,
                    version=expected_version,
                ).update(**fields)
                if updated != 1:
                    if not self._reservations().filter(pk=reservation.id).exists():
                        raise NotFound(f"Reservation {reservation.id} not found", field="reservation_id")
                    raise SlotConflict(
                        f"Reservation {reservation.id} was modified concurrently "
                        f"(expected version {expected_version})",
                        field="version",
                    )
                if not reservation.is_active:
                    # Released time must be visible to version-checking writers at once
                    self._venues().filter(pk=reservation.resource_id).update(
                        reservation_version=F("reservation_version") + 1
                    )
                if uow is not None:
                    uow.collect_events(reservation)
        return reservation

    def add_blocked_interval(self, block: BlockedInterval) -> BlockedInterval:
        with self._translated():
            with self.transaction() as uow:
                self._apply_timeout()
                current = self._lock_venue_version(block.resource_id)
                clashing = list(
                    self._reservations().filter(
                        venue_id=block.resource_id,
                        status__in=ReservationModel.ACTIVE_STATUSES,
                        start__lt=block.interval.end,
                        end__gt=block.interval.start,
                    ).values_list("id", flat=True)
                )
                if clashing:
                    raise conflict_error(block.resource_id, block.interval, clashing)

                self._advance_version(block.resource_id, current)
                self._blocks().create(
                    id=block.id,
                    venue_id=block.resource_id,
                    start=block.interval.start,
                    end=block.interval.end,
                    reason=block.reason,
                    created_by=block.created_by,
                )
                uow.record(BlockedIntervalAdded(
                    aggregate_id=block.id,
                    block_id=block.id,
                    resource_id=block.resource_id,
                    interval=block.interval,
                    reason=block.reason,
                ))
        return block

    def remove_blocked_interval(self, resource_id, block_id) -> None:
        with self._translated():
            with self.transaction() as uow:
                current = self._lock_venue_version(resource_id)
                deleted, _ = self._blocks().filter(pk=block_id, venue_id=resource_id).delete()
                if not deleted:
                    raise NotFound(f"Block {block_id} not found for venue {resource_id}", field="block_id")
                self._advance_version(resource_id, current)
                uow.record(BlockedIntervalRemoved(
                    aggregate_id=block_id,
                    block_id=block_id,
                    resource_id=resource_id,
                ))
