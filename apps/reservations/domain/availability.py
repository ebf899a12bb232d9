"""
Availability Calculator

Answers "is this venue free?" from the store's advisory listings. Nothing
here is authoritative: a slot reported free can still be lost to a
concurrent booking, which try_commit then reports as SlotConflict.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta, timezone
from typing import Iterator, List, Tuple

from shared.domain.errors import InvalidInterval
from shared.domain.value_objects import Interval
from apps.reservations.domain.entities import BlockedInterval, Reservation
from apps.reservations.domain.store import ReservationStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DaySchedule:
    """Everything occupying a venue on one venue-local day"""
    day: date
    opening: Interval | None
    reservations: Tuple[Reservation, ...]
    blocks: Tuple[BlockedInterval, ...]


def merge_intervals(intervals) -> List[Interval]:
    """Union of intervals as a sorted list of disjoint intervals"""
    merged: List[Interval] = []
    for current in sorted(intervals, key=lambda i: i.utc_start):
        if merged and current.utc_start <= merged[-1].utc_end:
            last = merged[-1]
            if current.utc_end > last.utc_end:
                merged[-1] = Interval(last.start, current.end)
        else:
            merged.append(current)
    return merged


class AvailabilityCalculator:
    """Free/busy queries over a ReservationStore"""

    def __init__(self, store: ReservationStore):
        self.store = store

    def busy_intervals(self, resource_id, window: Interval) -> List[Interval]:
        """Merged busy time (active reservations and blocks) overlapping the window"""
        reservations, blocks = self.store.window_busy(resource_id, window)
        return merge_intervals(
            [r.interval for r in reservations] + [b.interval for b in blocks]
        )

    def is_available(self, resource_id, interval: Interval) -> bool:
        """True iff no active reservation and no block overlaps the interval"""
        reservations, blocks = self.store.window_busy(resource_id, interval)
        return not any(r.interval.overlaps_with(interval) for r in reservations) and \
            not any(b.interval.overlaps_with(interval) for b in blocks)

    def free_slots(self, resource_id, day: date, slot_size: timedelta = timedelta(hours=1)) -> Iterator[Interval]:
        """
        Free fixed-size slots of a venue-local day

        Slots start at opening time and step by slot_size; a slot touching
        any busy time is left out whole, and a tail shorter than slot_size
        is not offered. A day without opening hours yields nothing.

        The store is read when iteration starts, so every call (and every
        fresh iteration of a new call) reflects the latest known state.
        """
        if slot_size <= timedelta(0):
            raise InvalidInterval("Slot size must be positive", field='slot_size')
        return self._iter_free_slots(resource_id, day, slot_size)

    def _iter_free_slots(self, resource_id, day, slot_size) -> Iterator[Interval]:
        resource = self.store.get_resource(resource_id)
        opening = resource.opening_window(day)
        if opening is None:
            logger.debug(f"Venue {resource_id} is closed on {day}")
            return

        busy = self.busy_intervals(resource_id, opening)
        tz = resource.tzinfo

        # Step on absolute time so DST days get the right number of slots
        cursor = opening.start.astimezone(timezone.utc)
        closing = opening.end.astimezone(timezone.utc)
        while cursor + slot_size <= closing:
            slot = Interval(cursor.astimezone(tz), (cursor + slot_size).astimezone(tz))
            if not any(b.overlaps_with(slot) for b in busy):
                yield slot
            cursor += slot_size

    def day_schedule(self, resource_id, day: date) -> DaySchedule:
        """Reservations and blocks touching a venue-local day (calendar view)"""
        resource = self.store.get_resource(resource_id)
        reservations, blocks = self.store.window_busy(resource_id, resource.day_window(day))
        return DaySchedule(
            day=day,
            opening=resource.opening_window(day),
            reservations=tuple(reservations),
            blocks=tuple(blocks),
        )
