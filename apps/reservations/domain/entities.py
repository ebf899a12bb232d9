"""
Reservation Domain Entities

Core business entities for the reservation domain:
- Resource: A bookable venue with its rate schedule and opening hours
- BlockedInterval: Owner-blocked time (maintenance, private use)
- Reservation: Main aggregate representing a booking of a venue
- ReservationStatus: FSM states for reservation lifecycle
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from shared.domain.base import Aggregate, utcnow
from shared.domain.errors import InvalidTransition, NotAuthorized
from shared.domain.value_objects import Interval, Money


class ReservationStatus(Enum):
    """
    Reservation Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (payment captured by the payment collaborator)
    - PENDING -> CANCELLED (explicit cancel or hold expiry)
    - CONFIRMED -> CANCELLED (refund flow)
    """
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    CANCELLED = 'cancelled'


ALLOWED_TRANSITIONS = {
    ReservationStatus.PENDING: {ReservationStatus.CONFIRMED, ReservationStatus.CANCELLED},
    ReservationStatus.CONFIRMED: {ReservationStatus.CANCELLED},
    ReservationStatus.CANCELLED: set(),
}

ACTIVE_STATUSES = (ReservationStatus.PENDING, ReservationStatus.CONFIRMED)

SYSTEM_ACTOR = 'system'


@dataclass(frozen=True)
class RateEntry:
    """Hourly price that applies from a time of day, optionally on one weekday only"""
    applies_from: time
    price_per_hour: Decimal
    weekday: Optional[int] = None  # 0=Mon ... 6=Sun, None = every day

    def __post_init__(self):
        if self.weekday is not None and not 0 <= self.weekday <= 6:
            raise ValueError(f"Weekday must be in 0..6, got {self.weekday}")
        if self.price_per_hour < 0:
            raise ValueError("Price per hour cannot be negative")


@dataclass(frozen=True)
class RateSchedule:
    """
    Ordered set of hourly rates with an optional default

    For a venue-local moment the rate resolves as:
    1. the latest weekday-specific entry starting at or before that time
    2. else the latest every-day entry starting at or before that time
    3. else the default rate
    Entries sharing (weekday, applies_from) are ambiguous and rejected.
    """
    entries: Tuple[RateEntry, ...] = ()
    default_rate: Optional[Decimal] = None

    def __post_init__(self):
        ordered = tuple(sorted(
            self.entries,
            key=lambda e: (-1 if e.weekday is None else e.weekday, e.applies_from),
        ))
        object.__setattr__(self, 'entries', ordered)

        seen = set()
        for entry in ordered:
            key = (entry.weekday, entry.applies_from)
            if key in seen:
                raise ValueError(
                    f"Duplicate rate entry for weekday={entry.weekday} "
                    f"from {entry.applies_from.isoformat()}"
                )
            seen.add(key)

        if self.default_rate is not None and self.default_rate < 0:
            raise ValueError("Default rate cannot be negative")

    def resolve(self, weekday: int, at: time) -> Optional[Decimal]:
        """Rate for a venue-local weekday and time of day, or None"""
        specific = [e for e in self.entries if e.weekday == weekday and e.applies_from <= at]
        if specific:
            return specific[-1].price_per_hour

        generic = [e for e in self.entries if e.weekday is None and e.applies_from <= at]
        if generic:
            return generic[-1].price_per_hour

        return self.default_rate

    def boundaries_for(self, weekday: int) -> Tuple[time, ...]:
        """Times of day at which the resolved rate may change on that weekday"""
        return tuple(sorted({
            e.applies_from for e in self.entries
            if e.weekday is None or e.weekday == weekday
        }))


@dataclass(frozen=True)
class OpeningHours:
    """Venue-local opening window for one weekday; closes_at 00:00 means midnight"""
    weekday: int
    opens_at: time
    closes_at: time

    def __post_init__(self):
        if not 0 <= self.weekday <= 6:
            raise ValueError(f"Weekday must be in 0..6, got {self.weekday}")
        if self.closes_at != time(0) and self.closes_at <= self.opens_at:
            raise ValueError("Closing time must be after opening time")


@dataclass(eq=False, kw_only=True)
class Resource:
    """
    A bookable venue

    owner_id is an opaque identity supplied by the identity provider;
    the engine only compares it for equality.
    """
    id: int
    name: str
    owner_id: str
    timezone: str = 'UTC'
    capacity: int = 1
    currency: str = 'KZT'
    rate_schedule: RateSchedule = field(default_factory=RateSchedule)
    opening_hours: Tuple[OpeningHours, ...] = ()

    def __post_init__(self):
        if self.capacity < 1:
            raise ValueError("Capacity must be at least 1")
        ZoneInfo(self.timezone)  # raises for unknown zones

    def __eq__(self, other):
        return isinstance(other, Resource) and self.id == other.id

    def __hash__(self):
        return hash(self.id)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def is_owner(self, actor_id: str) -> bool:
        return str(actor_id) == str(self.owner_id)

    def hours_for(self, weekday: int) -> Optional[OpeningHours]:
        return next((h for h in self.opening_hours if h.weekday == weekday), None)

    def local_datetime(self, day: date, at: time) -> datetime:
        return datetime.combine(day, at, tzinfo=self.tzinfo)

    def opening_window(self, day: date) -> Optional[Interval]:
        """Opening hours of a venue-local day as an aware Interval, None if closed"""
        hours = self.hours_for(day.weekday())
        if hours is None:
            return None
        start = self.local_datetime(day, hours.opens_at)
        if hours.closes_at == time(0):
            end = self.local_datetime(day + timedelta(days=1), time(0))
        else:
            end = self.local_datetime(day, hours.closes_at)
        return Interval(start, end)

    def day_window(self, day: date) -> Interval:
        """Whole venue-local day, midnight to midnight"""
        return Interval(
            self.local_datetime(day, time(0)),
            self.local_datetime(day + timedelta(days=1), time(0)),
        )


@dataclass(eq=False, kw_only=True)
class BlockedInterval:
    """
    Time blocked by the venue owner

    Blocks may overlap each other but always block reservations.
    """
    id: UUID = field(default_factory=uuid4)
    resource_id: int
    interval: Interval
    reason: str = ''
    created_by: str = ''

    def __eq__(self, other):
        return isinstance(other, BlockedInterval) and self.id == other.id

    def __hash__(self):
        return hash(self.id)


@dataclass(eq=False, kw_only=True)
class Reservation(Aggregate):
    """
    Reservation Aggregate Root

    Represents a requester's booking of a venue for a time interval.

    Key invariants:
    - The interval never changes after creation
    - version increases by one on every state change
    - Only PENDING and CONFIRMED reservations block the venue
    """

    resource_id: int
    requester_id: str
    interval: Interval
    guest_count: int
    total_amount: Money
    status: ReservationStatus = ReservationStatus.PENDING
    version: int = 1
    special_requests: str = ''
    created_at: datetime = field(default_factory=utcnow)

    confirmed_at: Optional[datetime] = None
    payment_reference: str = ''
    cancelled_at: Optional[datetime] = None
    cancelled_by: str = ''
    cancellation_reason: str = ''

    def __post_init__(self):
        if self.guest_count < 1:
            raise ValueError("Guest count must be at least 1")

    def _transition(self, target: ReservationStatus):
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Cannot move reservation {self.id} from {self.status.value} to {target.value}",
                field='status',
            )
        self.status = target
        self.version += 1

    def confirm(self, payment_reference: str, now: datetime):
        """
        Confirm payment (PENDING -> CONFIRMED)

        Called back by the payment collaborator once funds are captured.
        Events: ReservationConfirmed
        """
        from apps.reservations.domain.events import ReservationConfirmed

        self._transition(ReservationStatus.CONFIRMED)
        self.confirmed_at = now
        self.payment_reference = payment_reference

        self.add_event(ReservationConfirmed(
            aggregate_id=self.id,
            reservation_id=self.id,
            resource_id=self.resource_id,
            payment_reference=payment_reference,
        ))

    def cancel(self, by_id: str, owner_id: str, now: datetime, reason: str = ''):
        """
        Cancel reservation (PENDING|CONFIRMED -> CANCELLED)

        Only the requester or the venue owner may cancel.
        Events: ReservationCancelled
        """
        if str(by_id) not in (str(self.requester_id), str(owner_id)):
            raise NotAuthorized(
                f"{by_id} may not cancel reservation {self.id}",
                field='by_id',
            )

        from apps.reservations.domain.events import ReservationCancelled

        old_status = self.status
        self._transition(ReservationStatus.CANCELLED)
        self.cancelled_at = now
        self.cancelled_by = str(by_id)
        self.cancellation_reason = reason

        self.add_event(ReservationCancelled(
            aggregate_id=self.id,
            reservation_id=self.id,
            resource_id=self.resource_id,
            cancelled_by=str(by_id),
            old_status=old_status.value,
            reason=reason,
        ))

    def expire(self, now: datetime):
        """
        Release an unpaid hold (PENDING -> CANCELLED)

        Driven by the scheduled expiry job, never by the engine itself.
        Events: ReservationCancelled
        """
        if self.status != ReservationStatus.PENDING:
            raise InvalidTransition(
                f"Only pending reservations expire; {self.id} is {self.status.value}",
                field='status',
            )

        from apps.reservations.domain.events import ReservationCancelled

        self._transition(ReservationStatus.CANCELLED)
        self.cancelled_at = now
        self.cancelled_by = SYSTEM_ACTOR
        self.cancellation_reason = 'hold expired'

        self.add_event(ReservationCancelled(
            aggregate_id=self.id,
            reservation_id=self.id,
            resource_id=self.resource_id,
            cancelled_by=SYSTEM_ACTOR,
            old_status=ReservationStatus.PENDING.value,
            reason=self.cancellation_reason,
        ))

    @property
    def is_active(self) -> bool:
        """Check if reservation still blocks the venue"""
        return self.status in ACTIVE_STATUSES

    def __str__(self):
        return f"Reservation {self.id} ({self.status.value})"

    def __repr__(self):
        return (
            f"Reservation(id={self.id}, resource_id={self.resource_id}, "
            f"status={self.status.value}, interval={self.interval!r})"
        )
