"""
Pricing Calculator

Prices an interval against a venue's hourly rate schedule. The interval is
cut wherever the resolved rate may change (every rate entry's start time
and every local midnight), each piece is charged at its own rate, and the
sum is rounded once to the currency's minor unit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time, timedelta
from decimal import Decimal
from typing import List, Tuple

from shared.domain.errors import NoRateDefined
from shared.domain.value_objects import Interval, Money, SECONDS_PER_HOUR
from apps.reservations.domain.entities import Resource


@dataclass(frozen=True)
class PriceSegment:
    interval: Interval
    price_per_hour: Decimal

    @property
    def amount(self) -> Decimal:
        """Unrounded charge for this piece"""
        return self.price_per_hour * self.interval.seconds / SECONDS_PER_HOUR


@dataclass(frozen=True)
class Quote:
    segments: Tuple[PriceSegment, ...]
    total: Money

    @property
    def hours(self) -> Decimal:
        return sum((s.interval.hours for s in self.segments), Decimal('0'))


class PricingCalculator:

    def rate_boundaries(self, resource: Resource, interval: Interval) -> List:
        """Aware datetimes inside the interval where the rate may change"""
        tz = resource.tzinfo
        first_day = interval.start.astimezone(tz).date()
        last_day = interval.end.astimezone(tz).date()

        boundaries = []
        day = first_day
        while day <= last_day:
            boundaries.append(resource.local_datetime(day, time(0)))
            for starts_at in resource.rate_schedule.boundaries_for(day.weekday()):
                boundaries.append(resource.local_datetime(day, starts_at))
            day += timedelta(days=1)
        return boundaries

    def quote(self, resource: Resource, interval: Interval) -> Quote:
        tz = resource.tzinfo
        segments = []
        for piece in interval.split_at(self.rate_boundaries(resource, interval)):
            local_start = piece.start.astimezone(tz)
            rate = resource.rate_schedule.resolve(local_start.weekday(), local_start.time())
            if rate is None:
                raise NoRateDefined(
                    f"No rate defined for venue {resource.id} at {local_start.isoformat()}",
                    field='interval',
                )
            segments.append(PriceSegment(piece, rate))

        # Sum exact charges, divide once, round once
        raw = sum((s.price_per_hour * s.interval.seconds for s in segments), Decimal('0'))
        total = Money(raw / SECONDS_PER_HOUR, resource.currency).rounded()
        return Quote(tuple(segments), total)

    def price(self, resource: Resource, interval: Interval) -> Money:
        """Amount due for booking the venue over the interval"""
        return self.quote(resource, interval).total
