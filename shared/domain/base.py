"""
Shared Kernel: Domain Building Blocks

- Entity: identity-based equality
- ValueObject: immutable, compared by value
- Aggregate: an Entity that raises DomainEvents
- DomainEvent: a fact, published after the writes that produced it commit
"""

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List
from uuid import UUID, uuid4


def utcnow() -> datetime:
    """Aware current time in UTC; the engine never uses naive datetimes"""
    return datetime.now(timezone.utc)


@dataclass
class Entity(ABC):
    """Mutable object whose identity is its id"""
    id: UUID = field(default_factory=uuid4)

    def __eq__(self, other):
        return type(other) is type(self) and other.id == self.id

    def __hash__(self):
        return hash((type(self).__name__, self.id))


@dataclass(frozen=True)
class ValueObject(ABC):
    """Immutable object with no identity; equal when all fields are equal"""


@dataclass(eq=False)
class Aggregate(Entity):
    """
    Consistency boundary

    State-changing methods record DomainEvents here; a unit of work takes
    them with collect_events and delivers them after commit.
    """
    _events: List['DomainEvent'] = field(default_factory=list, repr=False, init=False, compare=False)

    def add_event(self, event: 'DomainEvent'):
        self._events.append(event)

    def clear_events(self):
        self._events.clear()

    @property
    def events(self) -> List['DomainEvent']:
        """Snapshot of the events raised since the last collection"""
        return list(self._events)


@dataclass
class DomainEvent:
    """Base of every domain event; subclasses add their payload fields"""
    event_id: UUID = field(default_factory=uuid4, kw_only=True)
    occurred_at: datetime = field(default_factory=utcnow, kw_only=True)
    aggregate_id: UUID | None = field(default=None, kw_only=True)

    @property
    def event_type(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        """Envelope fields for logging and serialization"""
        return {
            'event_id': str(self.event_id),
            'event_type': self.event_type,
            'occurred_at': self.occurred_at.isoformat(),
            'aggregate_id': str(self.aggregate_id) if self.aggregate_id else None,
        }
