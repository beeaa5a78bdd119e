"""REST API views for location reports."""
from __future__ import annotations

import logging
import math
from functools import lru_cache

from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from terrapulse.config import PipelineConfig
from terrapulse.entities import InvalidLocation, Location
from terrapulse.health import HealthRegistry
from terrapulse.providers.geocoder import NominatimGeocoder, geocode_location
from terrapulse.providers.base import RequestConfig
from terrapulse.services.location_data import (
    LocationDataService,
    TotalAcquisitionFailure,
    build_location_service,
)


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_health_registry() -> HealthRegistry:
    return HealthRegistry()


@lru_cache(maxsize=1)
def get_location_service() -> LocationDataService:
    return build_location_service(PipelineConfig.from_env(), health=get_health_registry())


@lru_cache(maxsize=1)
def get_geocoder() -> NominatimGeocoder | None:
    config = PipelineConfig.from_env()
    if not config.geocoder_enabled:
        return None
    return NominatimGeocoder(
        user_agent=config.nominatim_user_agent,
        request_config=RequestConfig(timeout=config.source_timeout),
    )


def parse_location(params) -> Location:
    """Build a validated location from ``lat``/``lng`` query parameters."""
    try:
        latitude = float(params["lat"])
        longitude = float(params["lng"])
    except KeyError as exc:
        raise InvalidLocation("lat and lng query parameters are required") from exc
    except ValueError as exc:
        raise InvalidLocation("lat and lng must be valid floating point numbers") from exc
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise InvalidLocation("lat and lng must be finite")
    name = (params.get("name") or "").strip() or None
    return Location(lat=latitude, lng=longitude, name=name)


class LocationDataView(APIView):
    """Return the full environmental report for the requested coordinates."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        try:
            location = parse_location(request.query_params)
        except InvalidLocation as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            report = get_location_service().get_location_data(location)
        except TotalAcquisitionFailure:
            logger.exception("No report for %s", location.display_name)
            return Response(
                {"detail": "location data is currently unavailable"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response(report.to_dict(), status=status.HTTP_200_OK)


class GeocodeView(APIView):
    """Resolve a free-text place or a "lat, lng" string to coordinates."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        query = (request.query_params.get("q") or "").strip()
        if not query:
            return Response({"detail": "q query parameter is required"}, status=status.HTTP_400_BAD_REQUEST)
        location = geocode_location(query, get_geocoder())
        if location is None:
            return Response({"detail": "Location not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response(
            {"lat": location.lat, "lng": location.lng, "name": location.name},
            status=status.HTTP_200_OK,
        )


class AdminHealthView(APIView):
    """Expose source failures, degraded tasks and cache statistics."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        return Response(get_health_registry().snapshot(), status=status.HTTP_200_OK)
