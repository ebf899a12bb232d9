"""Serializers for the reservation API."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Reservation


class ReservationSerializer(serializers.ModelSerializer):
    venue_name = serializers.CharField(source="venue.name", read_only=True)

    class Meta:
        model = Reservation
        fields = [
            "id",
            "venue",
            "venue_name",
            "requester_id",
            "start",
            "end",
            "guest_count",
            "status",
            "total_amount",
            "currency",
            "special_requests",
            "version",
            "created_at",
            "confirmed_at",
            "cancelled_at",
            "cancelled_by",
            "cancellation_reason",
        ]
        read_only_fields = fields


class ReservationCreateSerializer(serializers.Serializer):
    """Reservation request; business validation is left to the engine."""

    venue = serializers.IntegerField()
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    guest_count = serializers.IntegerField()
    special_requests = serializers.CharField(required=False, allow_blank=True, default="")
    expected_version = serializers.IntegerField(required=False, allow_null=True, default=None)


class ReservationCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ReservationConfirmSerializer(serializers.Serializer):
    payment_reference = serializers.CharField(max_length=255)
