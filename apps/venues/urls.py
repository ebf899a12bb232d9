"""URL routing for venues and their blocked periods."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import VenueBlockViewSet, VenueViewSet

router = DefaultRouter()
router.register(r"", VenueViewSet, basename="venue")

block_list = VenueBlockViewSet.as_view({"get": "list", "post": "create"})
block_detail = VenueBlockViewSet.as_view({"delete": "destroy"})

urlpatterns = [
    # Owner blocks
    path("<int:venue_id>/blocks/", block_list, name="venue-block-list"),
    path("<int:venue_id>/blocks/<uuid:pk>/", block_detail, name="venue-block-detail"),
    path("", include(router.urls)),
]
