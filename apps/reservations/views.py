"""API views for the reservation domain."""

from __future__ import annotations

from uuid import UUID

from django.db.models import Q  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.filters import OrderingFilter  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.application.message_bus import message_bus
from shared.domain.errors import ReservationError
from shared.infrastructure.api_errors import error_response

from .application.command_handlers import (
    CancelReservationCommand,
    ConfirmReservationCommand,
    ReserveSlotCommand,
)
from .filters import ReservationFilterSet
from .models import Reservation
from .serializers import (
    ReservationCancelSerializer,
    ReservationConfirmSerializer,
    ReservationCreateSerializer,
    ReservationSerializer,
)
from .services import get_reservation_service


class ReservationViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Reservations of the current user (as requester or as venue owner).

    Writes go through the reservation engine via the message bus; the
    ORM is only used to read rows back for the response.
    """

    serializer_class = ReservationSerializer
    permission_classes = [permissions.IsAuthenticated]
    queryset = Reservation.objects.select_related("venue").all()
    filter_backends = [DjangoFilterBackend, OrderingFilter]
    filterset_class = ReservationFilterSet
    ordering_fields = ["start", "created_at"]
    ordering = ["start"]
    lookup_value_regex = "[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"

    def initial(self, request, *args, **kwargs):  # type: ignore
        super().initial(request, *args, **kwargs)
        get_reservation_service()

    def get_queryset(self):  # type: ignore
        qs = super().get_queryset()
        user = self.request.user
        if user.is_staff:
            return qs
        actor = str(user.pk)
        return qs.filter(Q(requester_id=actor) | Q(venue__owner_id=actor))

    def _row(self, reservation) -> dict:
        row = Reservation.objects.select_related("venue").get(pk=reservation.id)
        return ReservationSerializer(row, context=self.get_serializer_context()).data

    def create(self, request, *args, **kwargs):  # type: ignore
        payload = ReservationCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        result = message_bus.handle_command(ReserveSlotCommand(
            resource_id=data["venue"],
            requester_id=str(request.user.pk),
            start=data["start"],
            end=data["end"],
            guest_count=data["guest_count"],
            special_requests=data["special_requests"],
            expected_version=data["expected_version"],
        ))
        if not result.ok:
            return error_response(result.error)

        return Response(self._row(result.reservation), status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        payload = ReservationCancelSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            reservation = message_bus.handle_command(CancelReservationCommand(
                reservation_id=UUID(pk),
                by_id=str(request.user.pk),
                reason=payload.validated_data["reason"],
            ))
        except ReservationError as e:
            return error_response(e)
        return Response(self._row(reservation), status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], permission_classes=[permissions.IsAdminUser])
    def confirm(self, request, pk=None):  # type: ignore
        """Entry point for the payment collaborator once funds are captured."""
        payload = ReservationConfirmSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        try:
            reservation = message_bus.handle_command(ConfirmReservationCommand(
                reservation_id=UUID(pk),
                payment_reference=payload.validated_data["payment_reference"],
            ))
        except ReservationError as e:
            return error_response(e)
        return Response(self._row(reservation), status=status.HTTP_200_OK)
