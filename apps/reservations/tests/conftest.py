import pytest

from apps.reservations.application.command_handlers import ReservationService
from apps.reservations.domain.store import InMemoryReservationStore
from apps.reservations.tests.factories import at, make_resource
from shared.application.clock import FixedClock
from shared.application.message_bus import MessageBus


@pytest.fixture
def bus():
    return MessageBus()


@pytest.fixture
def hall():
    return make_resource()


@pytest.fixture
def store(hall, bus):
    return InMemoryReservationStore([hall], bus=bus)


@pytest.fixture
def clock():
    # Saturday noon, the day before the Hall-1 reservations
    return FixedClock(at(31, 12, month=5))


@pytest.fixture
def service(store, clock):
    return ReservationService(store, clock=clock)
