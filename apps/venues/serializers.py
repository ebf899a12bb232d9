"""Serializers for venues, their rates, opening hours and blocks."""

from __future__ import annotations

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from django.db import transaction  # type: ignore
from rest_framework import serializers  # type: ignore

from .models import Venue, VenueBlock, VenueOpeningHours, VenueRate


class VenueRateSerializer(serializers.ModelSerializer):
    class Meta:
        model = VenueRate
        fields = ["id", "weekday", "applies_from", "price_per_hour"]


class VenueOpeningHoursSerializer(serializers.ModelSerializer):
    class Meta:
        model = VenueOpeningHours
        fields = ["id", "weekday", "opens_at", "closes_at"]

    def validate(self, attrs):  # type: ignore
        opens_at = attrs["opens_at"]
        closes_at = attrs["closes_at"]
        if closes_at.hour or closes_at.minute or closes_at.second:
            if closes_at <= opens_at:
                raise serializers.ValidationError("Closing time must be after opening time.")
        return attrs


class VenueSerializer(serializers.ModelSerializer):
    """Venue with its rate schedule and weekly opening hours; nested lists are replaced on write."""

    rates = VenueRateSerializer(many=True, required=False)
    opening_hours = VenueOpeningHoursSerializer(many=True, required=False)

    class Meta:
        model = Venue
        fields = [
            "id",
            "owner_id",
            "name",
            "description",
            "address_line",
            "timezone",
            "capacity",
            "currency",
            "default_hourly_rate",
            "is_active",
            "rates",
            "opening_hours",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "owner_id", "created_at", "updated_at"]

    def validate_timezone(self, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise serializers.ValidationError(f"Unknown timezone: {value}")
        return value

    def validate_rates(self, value):  # type: ignore
        keys = [(r.get("weekday"), r["applies_from"]) for r in value]
        if len(keys) != len(set(keys)):
            raise serializers.ValidationError("Two rates start at the same time on the same day.")
        return value

    def validate_opening_hours(self, value):  # type: ignore
        days = [h["weekday"] for h in value]
        if len(days) != len(set(days)):
            raise serializers.ValidationError("Only one opening window per weekday.")
        return value

    @transaction.atomic
    def create(self, validated_data):  # type: ignore
        rates = validated_data.pop("rates", [])
        hours = validated_data.pop("opening_hours", [])
        venue = Venue.objects.create(**validated_data)
        self._replace_children(venue, rates, hours)
        return venue

    @transaction.atomic
    def update(self, instance, validated_data):  # type: ignore
        rates = validated_data.pop("rates", None)
        hours = validated_data.pop("opening_hours", None)
        venue = super().update(instance, validated_data)
        self._replace_children(venue, rates, hours)
        return venue

    @staticmethod
    def _replace_children(venue: Venue, rates, hours) -> None:
        if rates is not None:
            venue.rates.all().delete()
            VenueRate.objects.bulk_create(VenueRate(venue=venue, **rate) for rate in rates)
        if hours is not None:
            venue.opening_hours.all().delete()
            VenueOpeningHours.objects.bulk_create(VenueOpeningHours(venue=venue, **h) for h in hours)


class VenueBlockSerializer(serializers.ModelSerializer):
    class Meta:
        model = VenueBlock
        fields = ["id", "venue", "start", "end", "reason", "created_by", "created_at"]
        read_only_fields = ["id", "venue", "created_by", "created_at"]


class VenueBlockWriteSerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class SlotQuerySerializer(serializers.Serializer):
    date = serializers.DateField()
    slot_minutes = serializers.IntegerField(min_value=1, max_value=24 * 60, required=False)


class CalendarQuerySerializer(serializers.Serializer):
    date = serializers.DateField()


class QuoteRequestSerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
