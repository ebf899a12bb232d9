"""Reservation persistence model."""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.reservations.domain.entities import Reservation as ReservationAggregate
from apps.reservations.domain.entities import ReservationStatus
from shared.domain.value_objects import Interval, Money


class Reservation(models.Model):
    """Row backing a Reservation aggregate; the aggregate owns the rules."""

    class Status(models.TextChoices):
        PENDING = ReservationStatus.PENDING.value, _("Awaiting payment")
        CONFIRMED = ReservationStatus.CONFIRMED.value, _("Confirmed")
        CANCELLED = ReservationStatus.CANCELLED.value, _("Cancelled")

    ACTIVE_STATUSES = (Status.PENDING, Status.CONFIRMED)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    venue = models.ForeignKey(
        "venues.Venue",
        on_delete=models.PROTECT,
        related_name="reservations",
    )
    requester_id = models.CharField(max_length=128, db_index=True)
    start = models.DateTimeField()
    end = models.DateTimeField()
    guest_count = models.PositiveIntegerField(default=1)
    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.PENDING,
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="KZT")
    special_requests = models.TextField(blank=True)
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    payment_reference = models.CharField(max_length=255, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(max_length=128, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Reservation")
        verbose_name_plural = _("Reservations")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end__gt=models.F("start")),
                name="reservation_valid_range",
            ),
        ]
        indexes = [
            models.Index(fields=["venue", "start", "end"]),
            models.Index(fields=["status", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"Reservation {self.id} for venue {self.venue_id} ({self.status})"

    def to_domain(self) -> ReservationAggregate:
        return ReservationAggregate(
            id=self.id,
            resource_id=self.venue_id,
            requester_id=self.requester_id,
            interval=Interval(self.start, self.end),
            guest_count=self.guest_count,
            total_amount=Money(self.total_amount, self.currency),
            status=ReservationStatus(self.status),
            version=self.version,
            special_requests=self.special_requests,
            created_at=self.created_at,
            confirmed_at=self.confirmed_at,
            payment_reference=self.payment_reference,
            cancelled_at=self.cancelled_at,
            cancelled_by=self.cancelled_by,
            cancellation_reason=self.cancellation_reason,
        )

    @classmethod
    def from_domain(cls, reservation: ReservationAggregate) -> "Reservation":
        return cls(id=reservation.id, venue_id=reservation.resource_id, **state_fields(reservation))


def state_fields(reservation: ReservationAggregate) -> dict:
    """Column values derived from an aggregate, except identity and venue"""
    return {
        "requester_id": reservation.requester_id,
        "start": reservation.interval.start,
        "end": reservation.interval.end,
        "guest_count": reservation.guest_count,
        "status": reservation.status.value,
        "total_amount": reservation.total_amount.amount,
        "currency": reservation.total_amount.currency,
        "special_requests": reservation.special_requests,
        "version": reservation.version,
        "created_at": reservation.created_at,
        "confirmed_at": reservation.confirmed_at,
        "payment_reference": reservation.payment_reference,
        "cancelled_at": reservation.cancelled_at,
        "cancelled_by": reservation.cancelled_by,
        "cancellation_reason": reservation.cancellation_reason,
    }
