"""Venue models: bookable spaces, their hourly rates, opening hours and owner blocks."""

from __future__ import annotations

import uuid
from datetime import time

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.reservations.domain.entities import (
    BlockedInterval,
    OpeningHours,
    RateEntry,
    RateSchedule,
    Resource,
)
from shared.domain.value_objects import Interval, MINOR_UNITS


class Weekday(models.IntegerChoices):
    MONDAY = 0, _("Monday")
    TUESDAY = 1, _("Tuesday")
    WEDNESDAY = 2, _("Wednesday")
    THURSDAY = 3, _("Thursday")
    FRIDAY = 4, _("Friday")
    SATURDAY = 5, _("Saturday")
    SUNDAY = 6, _("Sunday")


CURRENCY_CHOICES = [(code, code) for code in MINOR_UNITS]


class Venue(models.Model):
    """A venue that can be booked by the hour."""

    owner_id = models.CharField(
        max_length=128,
        db_index=True,
        help_text=_("Opaque identity of the owning account."),
    )
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    address_line = models.CharField(max_length=255, blank=True)
    timezone = models.CharField(max_length=64, default=settings.TIME_ZONE)
    capacity = models.PositiveIntegerField(
        default=1,
        validators=[MinValueValidator(1)],
        help_text=_("Maximum number of guests."),
    )
    currency = models.CharField(max_length=3, choices=CURRENCY_CHOICES, default="KZT")
    default_hourly_rate = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text=_("Rate used where no schedule entry applies."),
    )
    is_active = models.BooleanField(default=True)
    reservation_version = models.PositiveBigIntegerField(
        default=0,
        editable=False,
        help_text=_("Advanced on every change to what is busy on this venue."),
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Venue")
        verbose_name_plural = _("Venues")
        ordering = ["name"]

    def __str__(self) -> str:
        return self.name

    def to_domain(self) -> Resource:
        rates = tuple(
            RateEntry(
                applies_from=rate.applies_from,
                price_per_hour=rate.price_per_hour,
                weekday=rate.weekday,
            )
            for rate in self.rates.all()
        )
        hours = tuple(
            OpeningHours(weekday=h.weekday, opens_at=h.opens_at, closes_at=h.closes_at)
            for h in self.opening_hours.all()
        )
        return Resource(
            id=self.pk,
            name=self.name,
            owner_id=self.owner_id,
            timezone=self.timezone,
            capacity=self.capacity,
            currency=self.currency,
            rate_schedule=RateSchedule(entries=rates, default_rate=self.default_hourly_rate),
            opening_hours=hours,
        )


class VenueRate(models.Model):
    """Hourly rate applying from a time of day, on one weekday or every day."""

    venue = models.ForeignKey(Venue, on_delete=models.CASCADE, related_name="rates")
    weekday = models.PositiveSmallIntegerField(
        choices=Weekday.choices,
        null=True,
        blank=True,
        help_text=_("Leave empty to apply every day."),
    )
    applies_from = models.TimeField(default=time(0))
    price_per_hour = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])

    class Meta:
        verbose_name = _("Venue rate")
        verbose_name_plural = _("Venue rates")
        ordering = ["weekday", "applies_from"]
        constraints = [
            models.UniqueConstraint(
                fields=["venue", "weekday", "applies_from"],
                name="venue_rate_unique_start",
            ),
        ]

    def __str__(self) -> str:
        day = self.get_weekday_display() if self.weekday is not None else _("Every day")
        return f"{self.venue.name}: {day} from {self.applies_from:%H:%M} - {self.price_per_hour}"


class VenueOpeningHours(models.Model):
    """Opening window of a venue on one weekday; 00:00 closing means midnight."""

    venue = models.ForeignKey(Venue, on_delete=models.CASCADE, related_name="opening_hours")
    weekday = models.PositiveSmallIntegerField(
        choices=Weekday.choices,
        validators=[MaxValueValidator(6)],
    )
    opens_at = models.TimeField()
    closes_at = models.TimeField()

    class Meta:
        verbose_name = _("Opening hours")
        verbose_name_plural = _("Opening hours")
        ordering = ["weekday"]
        constraints = [
            models.UniqueConstraint(fields=["venue", "weekday"], name="venue_hours_one_per_day"),
        ]

    def __str__(self) -> str:
        return f"{self.venue.name}: {self.get_weekday_display()} {self.opens_at:%H:%M}-{self.closes_at:%H:%M}"


class VenueBlock(models.Model):
    """Time blocked by the owner (maintenance, private events)."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    venue = models.ForeignKey(Venue, on_delete=models.CASCADE, related_name="blocks")
    start = models.DateTimeField()
    end = models.DateTimeField()
    reason = models.CharField(max_length=255, blank=True)
    created_by = models.CharField(max_length=128, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Blocked period")
        verbose_name_plural = _("Blocked periods")
        ordering = ["start"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end__gt=models.F("start")),
                name="venue_block_valid_range",
            ),
        ]
        indexes = [
            models.Index(fields=["venue", "start", "end"]),
        ]

    def __str__(self) -> str:
        return f"{self.venue.name}: {self.start:%Y-%m-%d %H:%M} - {self.end:%H:%M}"

    def to_domain(self) -> BlockedInterval:
        return BlockedInterval(
            id=self.id,
            resource_id=self.venue_id,
            interval=Interval(self.start, self.end),
            reason=self.reason,
            created_by=self.created_by,
        )
