"""
Common Value Objects

Value objects used across multiple domains:
- Money: Represents monetary amounts with currency
- Interval: Represents a half-open time range [start, end)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List

from shared.domain.base import ValueObject
from shared.domain.errors import InvalidInterval

# Digits after the decimal point for each supported currency
MINOR_UNITS = {
    'KZT': 2,
    'USD': 2,
    'EUR': 2,
    'RUB': 2,
    'JPY': 0,
}

SECONDS_PER_HOUR = Decimal(3600)


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Represents a monetary amount with currency.
    Immutable and supports arithmetic operations.
    """
    amount: Decimal
    currency: str = 'KZT'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', Decimal(str(self.amount)))
        if self.amount < 0:
            raise ValueError("Amount cannot be negative")
        if not self.currency:
            raise ValueError("Currency is required")
        if self.currency not in MINOR_UNITS:
            raise ValueError(f"Unsupported currency: {self.currency}")

    @classmethod
    def zero(cls, currency: str = 'KZT') -> 'Money':
        return cls(Decimal('0'), currency)

    @property
    def minor_units(self) -> int:
        return MINOR_UNITS[self.currency]

    def rounded(self) -> 'Money':
        """Round to the currency's minor unit, halves away from zero"""
        exponent = Decimal(1).scaleb(-self.minor_units)
        return Money(self.amount.quantize(exponent, rounding=ROUND_HALF_UP), self.currency)

    def __add__(self, other: 'Money') -> 'Money':
        """Add two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        """Subtract two money objects"""
        if not isinstance(other, Money):
            raise TypeError("Can only subtract Money from Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot subtract different currencies: {self.currency} and {other.currency}")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, factor) -> 'Money':
        """Multiply money by a factor"""
        if not isinstance(factor, (int, float, Decimal)):
            raise TypeError("Can only multiply Money by number")
        return Money(self.amount * Decimal(str(factor)), self.currency)

    def __str__(self):
        return f"{self.amount:,.{self.minor_units}f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


def _utc(moment: datetime) -> datetime:
    # Aware datetimes sharing a tzinfo compare by wall clock and ignore fold
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True)
class Interval(ValueObject):
    """
    Time interval value object

    Represents the half-open range [start, end) of two timezone-aware
    instants. Adjacent intervals (one ends exactly when the next starts)
    do not overlap, so a venue can be booked 14:00-16:00 and 16:00-18:00
    back to back.

    Bounds keep the zone they were given in; every comparison is made on
    the UTC instant, so the repeated hour of a DST fall-back day orders
    correctly.
    """
    start: datetime
    end: datetime

    def __post_init__(self):
        if self.start.tzinfo is None or self.end.tzinfo is None:
            raise InvalidInterval("Interval bounds must be timezone-aware", field='start')
        if self.utc_start >= self.utc_end:
            raise InvalidInterval(
                f"Start ({self.start.isoformat()}) must be before end ({self.end.isoformat()})",
                field='interval',
            )

    @property
    def utc_start(self) -> datetime:
        return _utc(self.start)

    @property
    def utc_end(self) -> datetime:
        return _utc(self.end)

    def overlaps_with(self, other: 'Interval') -> bool:
        """
        Check if this interval overlaps with another

        Examples:
            - [14:00, 16:00) overlaps with [15:00, 17:00) -> True
            - [14:00, 16:00) overlaps with [16:00, 18:00) -> False (adjacent)
        """
        if not isinstance(other, Interval):
            raise TypeError("Can only check overlap with another Interval")
        return self.utc_start < other.utc_end and other.utc_start < self.utc_end

    def contains(self, other: 'Interval') -> bool:
        """Check if another interval lies entirely within this one"""
        return self.utc_start <= other.utc_start and other.utc_end <= self.utc_end

    def intersection(self, other: 'Interval') -> 'Interval | None':
        if not self.overlaps_with(other):
            return None
        return Interval(max(self.start, other.start, key=_utc), min(self.end, other.end, key=_utc))

    def split_at(self, boundaries: Iterable[datetime]) -> List['Interval']:
        """
        Cut the interval at every boundary strictly inside it

        Boundaries outside (start, end) are ignored; the pieces are returned
        in chronological order and cover the interval exactly.
        """
        inside = {}
        for b in boundaries:
            if self.utc_start < _utc(b) < self.utc_end:
                inside.setdefault(_utc(b), b)
        cuts = [inside[instant] for instant in sorted(inside)]
        points = [self.start, *cuts, self.end]
        return [Interval(a, b) for a, b in zip(points, points[1:])]

    @property
    def seconds(self) -> Decimal:
        elapsed = self.utc_end - self.utc_start
        whole = elapsed.days * 86400 + elapsed.seconds
        return Decimal(whole) + Decimal(elapsed.microseconds) / Decimal(1_000_000)

    @property
    def hours(self) -> Decimal:
        """Duration in (possibly fractional) hours"""
        return self.seconds / SECONDS_PER_HOUR

    def __str__(self):
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"

    def __repr__(self):
        return f"Interval({self.start.isoformat()}, {self.end.isoformat()})"


def overlaps(a: Interval, b: Interval) -> bool:
    return a.overlaps_with(b)


def contains(outer: Interval, inner: Interval) -> bool:
    return outer.contains(inner)


def duration(interval: Interval) -> Decimal:
    """Duration of the interval in hours"""
    return interval.hours
