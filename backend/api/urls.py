"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from backend.api.views import AdminHealthView, GeocodeView, LocationDataView

urlpatterns = [
    path("location-data", LocationDataView.as_view(), name="location-data"),
    path("geocode", GeocodeView.as_view(), name="geocode"),
    path("admin/health", AdminHealthView.as_view(), name="admin-health"),
]
