"""Builders shared by the reservation engine tests."""

from __future__ import annotations

from datetime import datetime, time, timezone
from decimal import Decimal

from apps.reservations.domain.entities import OpeningHours, RateEntry, RateSchedule, Resource
from shared.domain.value_objects import Interval, Money

UTC = timezone.utc
HALL_ID = 1
OWNER_ID = "owner-1"


def at(day: int, hour: int, minute: int = 0, month: int = 6) -> datetime:
    """2025-<month>-<day> hour:minute UTC"""
    return datetime(2025, month, day, hour, minute, tzinfo=UTC)


def make_resource(**overrides) -> Resource:
    fields = dict(
        id=HALL_ID,
        name="Hall-1",
        owner_id=OWNER_ID,
        timezone="UTC",
        capacity=10,
        currency="KZT",
        rate_schedule=RateSchedule(entries=(RateEntry(time(0), Decimal("1000")),)),
        opening_hours=tuple(OpeningHours(day, time(8), time(0)) for day in range(7)),
    )
    fields.update(overrides)
    return Resource(**fields)


def commit(store, start: datetime, end: datetime, requester: str = "guest-1", resource_id=HALL_ID):
    """Write a reservation straight through the store, bypassing validation"""
    return store.try_commit(
        resource_id,
        Interval(start, end),
        requester,
        guest_count=2,
        total_amount=Money(Decimal("0")),
    )
