"""Tests for time-dependent pricing."""

from datetime import datetime, time
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from apps.reservations.domain.entities import RateEntry, RateSchedule
from apps.reservations.domain.pricing import PricingCalculator
from apps.reservations.tests.factories import at, make_resource
from shared.domain.errors import ErrorKind, NoRateDefined
from shared.domain.value_objects import Interval, Money

SUNDAY = 6


@pytest.fixture
def pricing():
    return PricingCalculator()


def test_price_crossing_rate_boundary_sums_each_piece(pricing):
    # Day rate until 18:00, evening rate afterwards
    resource = make_resource(rate_schedule=RateSchedule(entries=(
        RateEntry(time(0), Decimal("1000")),
        RateEntry(time(18), Decimal("1500")),
    )))

    quote = pricing.quote(resource, Interval(at(1, 16), at(1, 19)))

    assert quote.total == Money(Decimal("3500.00"))
    assert [s.price_per_hour for s in quote.segments] == [Decimal("1000"), Decimal("1500")]
    assert quote.hours == Decimal(3)


def test_weekday_entry_wins_over_every_day_entry(pricing):
    resource = make_resource(rate_schedule=RateSchedule(entries=(
        RateEntry(time(0), Decimal("1000")),
        RateEntry(time(0), Decimal("2000"), weekday=SUNDAY),
    )))

    # 2025-06-01 is a Sunday
    assert pricing.price(resource, Interval(at(1, 10), at(1, 12))) == Money(Decimal("4000.00"))
    assert pricing.price(resource, Interval(at(2, 10), at(2, 12))) == Money(Decimal("2000.00"))


def test_price_splits_at_local_midnight(pricing):
    resource = make_resource(rate_schedule=RateSchedule(entries=(
        RateEntry(time(0), Decimal("1000")),
        RateEntry(time(0), Decimal("2000"), weekday=SUNDAY),
    )))

    # Saturday 23:00 to Sunday 01:00
    quote = pricing.quote(resource, Interval(at(31, 23, month=5), at(1, 1)))

    assert quote.total == Money(Decimal("3000.00"))


def test_rates_resolve_in_venue_local_time(pricing):
    almaty = ZoneInfo("Asia/Almaty")
    resource = make_resource(
        timezone="Asia/Almaty",
        rate_schedule=RateSchedule(entries=(
            RateEntry(time(0), Decimal("1000")),
            RateEntry(time(18), Decimal("1500")),
        )),
    )
    start = datetime(2025, 6, 2, 17, 0, tzinfo=almaty)
    end = datetime(2025, 6, 2, 19, 0, tzinfo=almaty)

    assert pricing.price(resource, Interval(start, end)) == Money(Decimal("2500.00"))


def test_default_rate_applies_without_entries(pricing):
    resource = make_resource(rate_schedule=RateSchedule(default_rate=Decimal("700")))

    assert pricing.price(resource, Interval(at(2, 10), at(2, 11, 30))) == Money(Decimal("1050.00"))


def test_total_is_rounded_once_half_up(pricing):
    resource = make_resource(rate_schedule=RateSchedule(default_rate=Decimal("0.01")))

    total = pricing.price(resource, Interval(at(2, 10), at(2, 10, 30)))

    assert total.amount == Decimal("0.01")


def test_gap_in_schedule_raises_no_rate_defined(pricing):
    resource = make_resource(rate_schedule=RateSchedule(entries=(
        RateEntry(time(10), Decimal("1000")),
    )))

    with pytest.raises(NoRateDefined) as excinfo:
        pricing.price(resource, Interval(at(2, 9), at(2, 11)))

    assert excinfo.value.kind == ErrorKind.NO_RATE_DEFINED
    assert excinfo.value.field == "interval"


def test_duplicate_rate_entries_are_rejected():
    with pytest.raises(ValueError):
        RateSchedule(entries=(
            RateEntry(time(9), Decimal("1000")),
            RateEntry(time(9), Decimal("1200")),
        ))
