"""Venue API views: listings, free slots, calendar, quotes and owner blocks."""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

from django.db.models import ProtectedError  # type: ignore
from django.shortcuts import get_object_or_404  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.filters import OrderingFilter  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.reservations import conf
from apps.reservations.domain.entities import BlockedInterval
from apps.reservations.models import Reservation as ReservationModel
from apps.reservations.serializers import ReservationSerializer
from apps.reservations.services import get_reservation_service
from shared.domain.errors import InvalidTransition, ReservationError
from shared.domain.value_objects import Interval
from shared.infrastructure.api_errors import error_response

from .filters import VenueFilterSet
from .models import Venue, VenueBlock
from .serializers import (
    CalendarQuerySerializer,
    QuoteRequestSerializer,
    SlotQuerySerializer,
    VenueBlockSerializer,
    VenueBlockWriteSerializer,
    VenueSerializer,
)


def actor_id(request) -> str:
    """Opaque identity of the authenticated user as the engine sees it"""
    return str(request.user.pk)


def interval_payload(interval: Interval) -> dict:
    return {"start": interval.start.isoformat(), "end": interval.end.isoformat()}


class IsVenueOwnerOrAdmin(permissions.BasePermission):
    """Venues are managed by their owner and by staff."""

    def has_object_permission(self, request, view, obj):  # type: ignore
        if request.method in permissions.SAFE_METHODS:
            return True
        user = request.user
        if not user.is_authenticated:
            return False
        if user.is_staff:
            return True
        venue = obj if isinstance(obj, Venue) else obj.venue
        return venue.owner_id == actor_id(request)


class VenueViewSet(viewsets.ModelViewSet):
    """Venue listings plus read-only availability endpoints."""

    serializer_class = VenueSerializer
    permission_classes = [permissions.IsAuthenticatedOrReadOnly, IsVenueOwnerOrAdmin]
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = VenueFilterSet
    ordering_fields = ["name", "capacity", "created_at"]

    def get_queryset(self):  # type: ignore
        qs = Venue.objects.prefetch_related("rates", "opening_hours")
        if self.action in {"list", "slots", "calendar", "quote"}:
            qs = qs.filter(is_active=True)
        return qs

    def perform_create(self, serializer):  # type: ignore
        serializer.save(owner_id=actor_id(self.request))

    def destroy(self, request, *args, **kwargs):  # type: ignore
        venue = self.get_object()
        try:
            venue.delete()
        except ProtectedError:
            return error_response(InvalidTransition(
                f"Venue {venue.pk} has reservations and cannot be deleted; deactivate it instead",
                field="venue",
            ))
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["get"], permission_classes=[permissions.AllowAny])
    def slots(self, request, pk=None):  # type: ignore
        """Free slots of one venue-local day."""
        venue = self.get_object()
        query = SlotQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        minutes = query.validated_data.get("slot_minutes")
        slot_size = timedelta(minutes=minutes) if minutes else conf.default_slot_size()

        service = get_reservation_service()
        try:
            slots = [
                interval_payload(slot)
                for slot in service.availability.free_slots(venue.pk, query.validated_data["date"], slot_size)
            ]
        except ReservationError as e:
            return error_response(e)

        return Response({
            "venue_id": venue.pk,
            "date": query.validated_data["date"],
            "slot_minutes": int(slot_size.total_seconds() // 60),
            "version": venue.reservation_version,
            "slots": slots,
        })

    @action(detail=True, methods=["get"], permission_classes=[permissions.AllowAny])
    def calendar(self, request, pk=None):  # type: ignore
        """Reservations and blocks touching one venue-local day."""
        venue = self.get_object()
        query = CalendarQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        service = get_reservation_service()
        try:
            schedule = service.availability.day_schedule(venue.pk, query.validated_data["date"])
        except ReservationError as e:
            return error_response(e)

        return Response({
            "venue_id": venue.pk,
            "date": schedule.day,
            "opening": interval_payload(schedule.opening) if schedule.opening else None,
            "reservations": [
                {**interval_payload(r.interval), "id": str(r.id), "status": r.status.value}
                for r in schedule.reservations
            ],
            "blocks": [
                {**interval_payload(b.interval), "id": str(b.id), "reason": b.reason}
                for b in schedule.blocks
            ],
        })

    @action(detail=True, methods=["post"], permission_classes=[permissions.AllowAny])
    def quote(self, request, pk=None):  # type: ignore
        """Price breakdown for an interval without reserving it."""
        venue = self.get_object()
        payload = QuoteRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        service = get_reservation_service()
        try:
            interval = Interval(payload.validated_data["start"], payload.validated_data["end"])
            quote = service.pricing.quote(service.store.get_resource(venue.pk), interval)
        except ReservationError as e:
            return error_response(e)

        return Response({
            "venue_id": venue.pk,
            "currency": quote.total.currency,
            "hours": str(quote.hours),
            "total": str(quote.total.amount),
            "segments": [
                {
                    **interval_payload(s.interval),
                    "price_per_hour": str(s.price_per_hour),
                    "amount": str(s.amount),
                }
                for s in quote.segments
            ],
        })

    @action(detail=True, methods=["get"], permission_classes=[permissions.IsAuthenticated])
    def reservations(self, request, pk=None):  # type: ignore
        """All reservations of a venue, for its owner."""
        venue = get_object_or_404(Venue, pk=pk)
        if not (request.user.is_staff or venue.owner_id == actor_id(request)):
            return Response(status=status.HTTP_403_FORBIDDEN)
        rows = ReservationModel.objects.filter(venue=venue).order_by("start")
        return Response(ReservationSerializer(rows, many=True).data)


class VenueBlockViewSet(viewsets.ViewSet):
    """Owner-managed blocked periods of a venue."""

    permission_classes = [permissions.IsAuthenticated, IsVenueOwnerOrAdmin]

    def initial(self, request, *args, **kwargs):  # type: ignore
        super().initial(request, *args, **kwargs)
        self.venue = get_object_or_404(Venue, pk=kwargs.get("venue_id"))
        self.check_object_permissions(request, self.venue)

    def list(self, request, venue_id=None):  # type: ignore
        blocks = VenueBlock.objects.filter(venue=self.venue).order_by("start")
        return Response(VenueBlockSerializer(blocks, many=True).data)

    def create(self, request, venue_id=None):  # type: ignore
        payload = VenueBlockWriteSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        service = get_reservation_service()
        try:
            block = service.store.add_blocked_interval(BlockedInterval(
                id=uuid4(),
                resource_id=self.venue.pk,
                interval=Interval(payload.validated_data["start"], payload.validated_data["end"]),
                reason=payload.validated_data["reason"],
                created_by=actor_id(request),
            ))
        except ReservationError as e:
            return error_response(e)

        row = VenueBlock.objects.get(pk=block.id)
        return Response(VenueBlockSerializer(row).data, status=status.HTTP_201_CREATED)

    def destroy(self, request, venue_id=None, pk=None):  # type: ignore
        service = get_reservation_service()
        try:
            service.store.remove_blocked_interval(self.venue.pk, pk)
        except ReservationError as e:
            return error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)
