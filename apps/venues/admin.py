"""Admin registrations for venues."""

from __future__ import annotations

from django.contrib import admin

from .models import Venue, VenueBlock, VenueOpeningHours, VenueRate


class VenueRateInline(admin.TabularInline):
    model = VenueRate
    extra = 0
    fields = ("weekday", "applies_from", "price_per_hour")


class VenueOpeningHoursInline(admin.TabularInline):
    model = VenueOpeningHours
    extra = 0
    fields = ("weekday", "opens_at", "closes_at")


@admin.register(Venue)
class VenueAdmin(admin.ModelAdmin):
    list_display = ("name", "owner_id", "timezone", "capacity", "currency", "is_active")
    list_filter = ("is_active", "currency", "timezone")
    search_fields = ("name", "owner_id", "address_line")
    inlines = (VenueRateInline, VenueOpeningHoursInline)
    readonly_fields = ("reservation_version", "created_at", "updated_at")


@admin.register(VenueBlock)
class VenueBlockAdmin(admin.ModelAdmin):
    list_display = ("venue", "start", "end", "reason", "created_by")
    list_filter = ("venue",)
    search_fields = ("venue__name", "reason")
