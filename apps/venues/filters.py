"""FilterSet definitions for venue listings."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Venue


class VenueFilterSet(django_filters.FilterSet):
    name = django_filters.CharFilter(field_name="name", lookup_expr="icontains")
    currency = django_filters.CharFilter(field_name="currency", lookup_expr="exact")
    guests = django_filters.NumberFilter(field_name="capacity", lookup_expr="gte")
    owner = django_filters.CharFilter(field_name="owner_id", lookup_expr="exact")

    class Meta:
        model = Venue
        fields = ["name", "currency", "guests", "owner"]
