"""Admin registration for reservations."""

from __future__ import annotations

from django.contrib import admin

from .models import Reservation


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "venue",
        "requester_id",
        "status",
        "start",
        "end",
        "guest_count",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "venue", "start")
    search_fields = ("id", "venue__name", "requester_id", "payment_reference")
    readonly_fields = (
        "version",
        "total_amount",
        "currency",
        "created_at",
        "updated_at",
        "confirmed_at",
        "cancelled_at",
    )
