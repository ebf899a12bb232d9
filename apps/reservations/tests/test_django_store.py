"""Tests for the Django ORM reservation store."""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from unittest import mock
from uuid import uuid4

from django.db import OperationalError
from django.test import TestCase

from apps.reservations.application.command_handlers import ReservationService, ReserveSlotCommand
from apps.reservations.domain.entities import BlockedInterval, ReservationStatus
from apps.reservations.domain.events import ReservationRequested
from apps.reservations.infrastructure.django_store import DjangoReservationStore
from apps.reservations.models import Reservation as ReservationModel
from apps.venues.models import Venue, VenueBlock, VenueOpeningHours, VenueRate
from shared.application.clock import FixedClock
from shared.application.message_bus import MessageBus
from shared.domain.errors import AmountOutOfRange, ErrorKind, NotFound, SlotConflict, StoreUnavailable
from shared.domain.value_objects import Interval, Money

UTC = timezone.utc


def at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    return datetime(2025, 6, day, hour, minute, tzinfo=UTC)


class DjangoReservationStoreTests(TestCase):
    """Commit, conflict and release semantics against the database."""

    def setUp(self) -> None:
        self.venue = Venue.objects.create(
            owner_id="owner-1",
            name="Hall-1",
            timezone="UTC",
            capacity=10,
            currency="KZT",
            default_hourly_rate=Decimal("1000.00"),
        )
        for weekday in range(7):
            VenueOpeningHours.objects.create(venue=self.venue, weekday=weekday, opens_at=time(8), closes_at=time(0))
        self.bus = MessageBus()
        self.store = DjangoReservationStore(bus=self.bus)

    def _commit(self, start, end, requester="guest-1", expected_version=None):
        return self.store.try_commit(
            self.venue.pk,
            Interval(start, end),
            requester,
            expected_version,
            guest_count=2,
            total_amount=Money(Decimal("2000.00")),
        )

    def test_commit_persists_pending_reservation_and_bumps_version(self) -> None:
        reservation = self._commit(at(14), at(16))

        row = ReservationModel.objects.get(pk=reservation.id)
        self.assertEqual(row.status, ReservationModel.Status.PENDING)
        self.assertEqual(row.start, at(14))
        self.assertEqual(row.total_amount, Decimal("2000.00"))
        self.assertEqual(self.store.current_version(self.venue.pk), 1)

    def test_overlapping_commit_is_rejected(self) -> None:
        first = self._commit(at(14), at(16))

        with self.assertRaises(SlotConflict) as ctx:
            self._commit(at(15), at(17), requester="guest-2")

        self.assertEqual(ctx.exception.conflicting_ids, (str(first.id),))
        self.assertEqual(ReservationModel.objects.count(), 1)
        self.assertEqual(self.store.current_version(self.venue.pk), 1)

    def test_adjacent_commit_is_accepted(self) -> None:
        self._commit(at(14), at(16))
        self._commit(at(16), at(18), requester="guest-2")

        self.assertEqual(ReservationModel.objects.count(), 2)

    def test_stale_expected_version_is_rejected(self) -> None:
        seen = self.store.current_version(self.venue.pk)
        self._commit(at(10), at(11), requester="guest-2")

        with self.assertRaises(SlotConflict) as ctx:
            self._commit(at(14), at(16), expected_version=seen)

        self.assertEqual(ctx.exception.field, "expected_version")
        self._commit(at(14), at(16), expected_version=seen + 1)

    def test_cancelled_reservation_releases_interval(self) -> None:
        service = ReservationService(self.store, clock=FixedClock(at(9, day=1) - timedelta(days=1)))
        reservation = self._commit(at(14), at(16))

        service.cancel(reservation.id, "guest-1")

        row = ReservationModel.objects.get(pk=reservation.id)
        self.assertEqual(row.status, ReservationModel.Status.CANCELLED)
        self.assertEqual(row.version, 2)
        self.assertEqual(self.store.current_version(self.venue.pk), 2)
        self.assertEqual(self.store.list_reservations(self.venue.pk, at(0), at(0, day=2)), [])
        self._commit(at(14), at(16), requester="guest-2")

    def test_save_with_outdated_version_is_rejected(self) -> None:
        reservation = self._commit(at(14), at(16))
        copy = self.store.get_reservation(reservation.id)
        reservation.confirm("pay-1", at(9))
        self.store.save_reservation(reservation, 1)

        copy.cancel("guest-1", "owner-1", at(9))
        with self.assertRaises(SlotConflict):
            self.store.save_reservation(copy, 1)

        self.assertEqual(
            self.store.get_reservation(reservation.id).status,
            ReservationStatus.CONFIRMED,
        )

    def test_block_rejects_overlapping_reservation_and_vice_versa(self) -> None:
        self._commit(at(10), at(12))

        with self.assertRaises(SlotConflict):
            self.store.add_blocked_interval(BlockedInterval(
                resource_id=self.venue.pk,
                interval=Interval(at(11), at(13)),
            ))

        block = self.store.add_blocked_interval(BlockedInterval(
            resource_id=self.venue.pk,
            interval=Interval(at(18), at(20)),
            reason="maintenance",
            created_by="owner-1",
        ))
        self.assertTrue(VenueBlock.objects.filter(pk=block.id, reason="maintenance").exists())

        with self.assertRaises(SlotConflict):
            self._commit(at(19), at(21))

    def test_remove_block(self) -> None:
        block = self.store.add_blocked_interval(BlockedInterval(
            resource_id=self.venue.pk,
            interval=Interval(at(18), at(20)),
        ))

        self.store.remove_blocked_interval(self.venue.pk, block.id)

        self.assertFalse(VenueBlock.objects.exists())
        self.assertEqual(self.store.current_version(self.venue.pk), 2)
        with self.assertRaises(NotFound):
            self.store.remove_blocked_interval(self.venue.pk, uuid4())

    def test_get_resource_maps_schedule_and_hours(self) -> None:
        VenueRate.objects.create(venue=self.venue, applies_from=time(18), price_per_hour=Decimal("1500.00"))

        resource = self.store.get_resource(self.venue.pk)

        self.assertEqual(resource.owner_id, "owner-1")
        self.assertEqual(resource.rate_schedule.resolve(0, time(19)), Decimal("1500.00"))
        self.assertEqual(resource.rate_schedule.resolve(0, time(9)), Decimal("1000.00"))
        self.assertEqual(len(resource.opening_hours), 7)

    def test_unknown_venue_raises_not_found(self) -> None:
        with self.assertRaises(NotFound):
            self.store.get_resource(self.venue.pk + 100)
        with self.assertRaises(NotFound):
            self._commit_for_missing_venue()

    def _commit_for_missing_venue(self):
        return self.store.try_commit(
            self.venue.pk + 100,
            Interval(at(14), at(16)),
            "guest-1",
            guest_count=1,
            total_amount=Money.zero(),
        )

    def test_database_failure_surfaces_as_store_unavailable(self) -> None:
        with mock.patch.object(
            DjangoReservationStore,
            "_overlapping_ids",
            side_effect=OperationalError("database is locked"),
        ):
            with self.assertRaises(StoreUnavailable) as ctx:
                self._commit(at(14), at(16))

        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(ReservationModel.objects.count(), 0)

    def test_total_too_large_for_column_is_not_retryable(self) -> None:
        with self.assertRaises(AmountOutOfRange) as ctx:
            self.store.try_commit(
                self.venue.pk,
                Interval(at(14), at(16)),
                "guest-1",
                guest_count=2,
                total_amount=Money(Decimal("10000000000.00")),
            )

        self.assertEqual(ctx.exception.field, "total_amount")
        self.assertFalse(ctx.exception.retryable)
        self.assertEqual(ReservationModel.objects.count(), 0)
        self.assertEqual(self.store.current_version(self.venue.pk), 0)

    def test_list_expired_pending(self) -> None:
        old = self._commit(at(10), at(11))
        ReservationModel.objects.filter(pk=old.id).update(created_at=at(9) - timedelta(days=2))
        self._commit(at(12), at(13))

        expired = self.store.list_expired_pending(at(9) - timedelta(days=1))

        self.assertEqual([r.id for r in expired], [old.id])

    def test_events_are_published_after_commit(self) -> None:
        seen = []
        self.bus.register_event_handler(ReservationRequested, seen.append)

        with self.captureOnCommitCallbacks(execute=True):
            self._commit(at(14), at(16))

        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].resource_id, self.venue.pk)

    def test_service_reserves_through_django_store(self) -> None:
        service = ReservationService(self.store, clock=FixedClock(at(12, day=1) - timedelta(days=1)))

        result = service.reserve(ReserveSlotCommand(
            resource_id=self.venue.pk,
            requester_id="guest-1",
            start=at(14),
            end=at(16),
            guest_count=4,
        ))

        self.assertTrue(result.ok, result.error)
        row = ReservationModel.objects.get(pk=result.reservation.id)
        self.assertEqual(row.total_amount, Decimal("2000.00"))
        self.assertEqual(row.guest_count, 4)

    def test_service_rejects_unstorable_total(self) -> None:
        Venue.objects.filter(pk=self.venue.pk).update(default_hourly_rate=Decimal("99999999.00"))
        service = ReservationService(self.store, clock=FixedClock(at(12, day=1) - timedelta(days=1)))

        result = service.reserve(ReserveSlotCommand(
            resource_id=self.venue.pk,
            requester_id="guest-1",
            start=at(14),
            end=at(14, day=6),
            guest_count=4,
        ))

        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.AMOUNT_OUT_OF_RANGE)
        self.assertFalse(ReservationModel.objects.exists())
