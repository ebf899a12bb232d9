"""FilterSet definitions for reservation listings."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Reservation


class ReservationFilterSet(django_filters.FilterSet):
    """Filter by venue, status and by the window a reservation overlaps."""

    venue = django_filters.NumberFilter(field_name="venue_id", lookup_expr="exact")
    status = django_filters.MultipleChoiceFilter(choices=Reservation.Status.choices)
    # Half-open overlap with [after, before)
    after = django_filters.IsoDateTimeFilter(field_name="end", lookup_expr="gt")
    before = django_filters.IsoDateTimeFilter(field_name="start", lookup_expr="lt")

    class Meta:
        model = Reservation
        fields = ["venue", "status"]
