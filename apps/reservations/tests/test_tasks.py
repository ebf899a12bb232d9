from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.reservations.models import Reservation
from apps.reservations.tasks import expire_pending_reservations
from apps.venues.models import Venue


@pytest.mark.django_db
def test_expire_pending_reservations_releases_stale_holds(settings):
    settings.RESERVATIONS = {"PENDING_HOLD_MINUTES": 15}
    venue = Venue.objects.create(owner_id="owner-1", name="Hall-1", timezone="UTC", capacity=5)
    start = timezone.now() + timedelta(days=1)

    stale = Reservation.objects.create(
        venue=venue,
        requester_id="guest-1",
        start=start,
        end=start + timedelta(hours=2),
        total_amount=Decimal("2000.00"),
        created_at=timezone.now() - timedelta(minutes=30),
    )
    fresh = Reservation.objects.create(
        venue=venue,
        requester_id="guest-2",
        start=start + timedelta(hours=3),
        end=start + timedelta(hours=4),
        total_amount=Decimal("1000.00"),
        created_at=timezone.now() - timedelta(minutes=5),
    )
    confirmed = Reservation.objects.create(
        venue=venue,
        requester_id="guest-3",
        start=start + timedelta(hours=5),
        end=start + timedelta(hours=6),
        status=Reservation.Status.CONFIRMED,
        created_at=timezone.now() - timedelta(hours=2),
    )

    result = expire_pending_reservations()

    assert result == {"expired": 1}
    stale.refresh_from_db()
    assert stale.status == Reservation.Status.CANCELLED
    assert stale.cancelled_by == "system"
    assert stale.version == 2
    fresh.refresh_from_db()
    assert fresh.status == Reservation.Status.PENDING
    confirmed.refresh_from_db()
    assert confirmed.status == Reservation.Status.CONFIRMED
    venue.refresh_from_db()
    assert venue.reservation_version == 1
