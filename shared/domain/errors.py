"""
Domain Error Taxonomy

Every failure the reservation engine reports carries an ErrorKind and,
where one field is at fault, the name of that field. Callers use the kind
to decide whether a retry makes sense and the field to render a precise
message.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    INVALID_INTERVAL = 'invalid_interval'
    CAPACITY_EXCEEDED = 'capacity_exceeded'
    PAST_DATE_REQUESTED = 'past_date_requested'
    NO_RATE_DEFINED = 'no_rate_defined'
    SLOT_CONFLICT = 'slot_conflict'
    NOT_AUTHORIZED = 'not_authorized'
    STORE_UNAVAILABLE = 'store_unavailable'
    NOT_FOUND = 'not_found'
    INVALID_TRANSITION = 'invalid_transition'
    AMOUNT_OUT_OF_RANGE = 'amount_out_of_range'


RETRYABLE_KINDS = frozenset({ErrorKind.SLOT_CONFLICT, ErrorKind.STORE_UNAVAILABLE})


class ReservationError(Exception):
    """Base class for all reservation engine errors."""

    kind: ErrorKind

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    @property
    def retryable(self) -> bool:
        """Only lost races and collaborator outages are worth retrying."""
        return self.kind in RETRYABLE_KINDS

    def to_dict(self) -> dict:
        return {
            'kind': self.kind.value,
            'field': self.field,
            'detail': self.message,
            'retryable': self.retryable,
        }

    def __repr__(self):
        return f"{self.__class__.__name__}({self.message!r}, field={self.field!r})"


class InvalidInterval(ReservationError, ValueError):
    kind = ErrorKind.INVALID_INTERVAL


class CapacityExceeded(ReservationError):
    kind = ErrorKind.CAPACITY_EXCEEDED


class PastDateRequested(ReservationError):
    kind = ErrorKind.PAST_DATE_REQUESTED


class NoRateDefined(ReservationError):
    kind = ErrorKind.NO_RATE_DEFINED


class SlotConflict(ReservationError):
    """The requested interval overlaps an active reservation or a block."""

    kind = ErrorKind.SLOT_CONFLICT

    def __init__(self, message: str, *, field: str | None = 'interval', conflicting_ids=()):
        super().__init__(message, field=field)
        self.conflicting_ids = tuple(conflicting_ids)


class NotAuthorized(ReservationError):
    kind = ErrorKind.NOT_AUTHORIZED


class StoreUnavailable(ReservationError):
    """The storage collaborator failed or timed out."""

    kind = ErrorKind.STORE_UNAVAILABLE


class NotFound(ReservationError, LookupError):
    kind = ErrorKind.NOT_FOUND


class InvalidTransition(ReservationError):
    kind = ErrorKind.INVALID_TRANSITION


class AmountOutOfRange(ReservationError):
    """The priced total does not fit the store's amount column."""

    kind = ErrorKind.AMOUNT_OUT_OF_RANGE
