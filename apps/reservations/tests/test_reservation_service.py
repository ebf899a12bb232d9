"""Tests for the reservation service state machine on the in-memory store."""

import threading
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from apps.reservations.application.command_handlers import (
    AttemptState,
    CancelReservationCommand,
    ConfirmReservationCommand,
    ExpirePendingReservationsCommand,
    ReservationService,
    ReserveSlotCommand,
    register_handlers,
)
from apps.reservations.domain.entities import SYSTEM_ACTOR, ReservationStatus
from apps.reservations.domain.events import (
    ReservationCancelled,
    ReservationConfirmed,
    ReservationRequested,
)
from apps.reservations.tests.factories import HALL_ID, OWNER_ID, at
from shared.domain.errors import (
    ErrorKind,
    InvalidTransition,
    NotAuthorized,
    NotFound,
    SlotConflict,
)
from shared.domain.value_objects import Interval, Money


def reserve(service, start, end, requester="guest-1", guests=2, **extra):
    return service.reserve(ReserveSlotCommand(
        resource_id=extra.pop("resource_id", HALL_ID),
        requester_id=requester,
        start=start,
        end=end,
        guest_count=guests,
        **extra,
    ))


def test_hall_scenario(service):
    first = reserve(service, at(1, 14), at(1, 16))
    assert first.ok
    service.confirm(first.reservation.id, "pay-1")

    overlapping = reserve(service, at(1, 15), at(1, 17), requester="guest-2")
    assert overlapping.state == AttemptState.REJECTED
    assert isinstance(overlapping.error, SlotConflict)
    assert overlapping.trail == (
        AttemptState.REQUESTED,
        AttemptState.VALIDATING,
        AttemptState.REJECTED,
    )

    adjacent = reserve(service, at(1, 16), at(1, 18), requester="guest-2")
    assert adjacent.state == AttemptState.CONFIRMED
    assert adjacent.trail == (
        AttemptState.REQUESTED,
        AttemptState.VALIDATING,
        AttemptState.PRICING,
        AttemptState.COMMITTING,
        AttemptState.CONFIRMED,
    )
    assert adjacent.reservation.status == ReservationStatus.PENDING
    assert adjacent.reservation.total_amount == Money(Decimal("2000.00"))


def test_empty_interval_is_rejected(service):
    result = reserve(service, at(1, 14), at(1, 14))

    assert result.error.kind == ErrorKind.INVALID_INTERVAL


def test_naive_datetimes_are_rejected(service):
    result = reserve(service, datetime(2025, 6, 1, 14), datetime(2025, 6, 1, 16))

    assert result.error.kind == ErrorKind.INVALID_INTERVAL
    assert result.error.field == "start"


@pytest.mark.parametrize("start", [at(31, 12, month=5), at(31, 9, month=5)])
def test_start_not_in_future_is_rejected(service, start):
    result = reserve(service, start, start + timedelta(hours=1))

    assert result.error.kind == ErrorKind.PAST_DATE_REQUESTED
    assert result.error.field == "start"


@pytest.mark.parametrize("guests", [0, 11])
def test_guest_count_outside_capacity_is_rejected(service, guests):
    result = reserve(service, at(1, 14), at(1, 16), guests=guests)

    assert result.error.kind == ErrorKind.CAPACITY_EXCEEDED
    assert result.error.field == "guest_count"
    assert not result.error.retryable


def test_unknown_venue_is_rejected(service):
    result = reserve(service, at(1, 14), at(1, 16), resource_id=999)

    assert isinstance(result.error, NotFound)


def test_unwrap_raises_rejection(service):
    result = reserve(service, at(1, 14), at(1, 16), guests=50)

    with pytest.raises(Exception) as excinfo:
        result.unwrap()

    assert excinfo.value is result.error


def test_cancel_round_trip_restores_availability(service, store):
    interval = Interval(at(1, 14), at(1, 16))
    version_before = store.current_version(HALL_ID)
    reservation = reserve(service, interval.start, interval.end).unwrap()

    assert not service.availability.is_available(HALL_ID, interval)

    cancelled = service.cancel(reservation.id, "guest-1", reason="plans changed")

    assert cancelled.status == ReservationStatus.CANCELLED
    assert cancelled.cancellation_reason == "plans changed"
    assert service.availability.is_available(HALL_ID, interval)
    assert store.current_version(HALL_ID) == version_before + 2
    assert reserve(service, interval.start, interval.end, requester="guest-2").ok


def test_owner_may_cancel(service):
    reservation = reserve(service, at(1, 14), at(1, 16)).unwrap()

    cancelled = service.cancel(reservation.id, OWNER_ID)

    assert cancelled.cancelled_by == OWNER_ID


def test_stranger_may_not_cancel(service, store):
    reservation = reserve(service, at(1, 14), at(1, 16)).unwrap()

    with pytest.raises(NotAuthorized):
        service.cancel(reservation.id, "someone-else")

    assert store.get_reservation(reservation.id).status == ReservationStatus.PENDING


def test_cancelling_twice_is_an_invalid_transition(service):
    reservation = reserve(service, at(1, 14), at(1, 16)).unwrap()
    service.cancel(reservation.id, "guest-1")

    with pytest.raises(InvalidTransition):
        service.cancel(reservation.id, "guest-1")


def test_confirm_moves_pending_to_confirmed(service):
    reservation = reserve(service, at(1, 14), at(1, 16)).unwrap()

    confirmed = service.confirm(reservation.id, "pay-42")

    assert confirmed.status == ReservationStatus.CONFIRMED
    assert confirmed.payment_reference == "pay-42"
    assert confirmed.version == reservation.version + 1
    with pytest.raises(InvalidTransition):
        service.confirm(reservation.id, "pay-43")


def test_stale_expected_version_is_a_conflict(service, store):
    seen = store.current_version(HALL_ID)
    reserve(service, at(1, 10), at(1, 11), requester="guest-2").unwrap()

    result = reserve(service, at(1, 14), at(1, 16), expected_version=seen)

    assert isinstance(result.error, SlotConflict)
    assert result.error.field == "expected_version"
    assert result.trail[-2] == AttemptState.COMMITTING


def test_current_expected_version_commits(service, store):
    result = reserve(service, at(1, 14), at(1, 16), expected_version=store.current_version(HALL_ID))

    assert result.ok


def test_expire_pending_releases_old_holds(service, clock):
    stale = reserve(service, at(1, 10), at(1, 11)).unwrap()
    paid = reserve(service, at(1, 12), at(1, 13)).unwrap()
    service.confirm(paid.id, "pay-1")
    clock.advance(timedelta(minutes=10))
    fresh = reserve(service, at(1, 14), at(1, 15)).unwrap()
    clock.advance(timedelta(minutes=10))

    expired = service.expire_pending(timedelta(minutes=15))

    assert [r.id for r in expired] == [stale.id]
    assert expired[0].status == ReservationStatus.CANCELLED
    assert expired[0].cancelled_by == SYSTEM_ACTOR
    assert service.store.get_reservation(fresh.id).status == ReservationStatus.PENDING
    assert service.store.get_reservation(paid.id).status == ReservationStatus.CONFIRMED


def test_concurrent_reservations_for_same_slot_commit_once(store, clock):
    service = ReservationService(store, clock=clock)
    workers = 8
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def attempt(n):
        barrier.wait()
        result = reserve(service, at(1, 14), at(1, 16), requester=f"guest-{n}")
        with lock:
            results.append(result)

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [r for r in results if r.ok]
    assert len(winners) == 1
    assert all(isinstance(r.error, SlotConflict) for r in results if not r.ok)
    assert len(store.list_reservations(HALL_ID, at(1, 0), at(2, 0))) == 1


def test_concurrent_store_commits_commit_once(store):
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()
    interval = Interval(at(1, 14), at(1, 16))

    def attempt(n):
        barrier.wait()
        try:
            store.try_commit(HALL_ID, interval, f"guest-{n}", guest_count=1, total_amount=Money.zero())
            outcome = "ok"
        except SlotConflict:
            outcome = "conflict"
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=attempt, args=(n,)) for n in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("conflict") == workers - 1


def test_commands_route_through_bus_and_publish_events(service, bus):
    register_handlers(bus, service)
    seen = []
    for event_type in (ReservationRequested, ReservationConfirmed, ReservationCancelled):
        bus.register_event_handler(event_type, seen.append)

    result = bus.handle_command(ReserveSlotCommand(
        resource_id=HALL_ID,
        requester_id="guest-1",
        start=at(1, 14),
        end=at(1, 16),
        guest_count=2,
    ))
    bus.handle_command(ConfirmReservationCommand(result.reservation.id, "pay-1"))
    bus.handle_command(CancelReservationCommand(result.reservation.id, OWNER_ID, "venue closed"))
    bus.handle_command(ExpirePendingReservationsCommand(hold=timedelta(minutes=15)))

    assert [type(e) for e in seen] == [ReservationRequested, ReservationConfirmed, ReservationCancelled]
    assert seen[-1].old_status == "confirmed"
    assert seen[-1].reason == "venue closed"


def test_rejected_attempt_publishes_nothing(service, bus):
    seen = []
    bus.register_event_handler(ReservationRequested, seen.append)

    reserve(service, at(1, 14), at(1, 16), guests=99)

    assert seen == []
