"""Management command to build a location report using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any

from django.core.management.base import BaseCommand, CommandError

from backend.api.views import get_geocoder, get_location_service
from terrapulse.entities import InvalidLocation, Location
from terrapulse.providers.geocoder import geocode_location
from terrapulse.services.location_data import TotalAcquisitionFailure


class Command(BaseCommand):
    help = "Build the environmental report for a location and print it as JSON"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--lat", type=float, help="Latitude")
        parser.add_argument("--lng", type=float, help="Longitude")
        parser.add_argument("--name", type=str, help="Display name for the location")
        parser.add_argument("--query", type=str, help="Place name or 'lat, lng' to geocode")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        query = options.get("query")
        if query:
            location = geocode_location(query, get_geocoder())
            if location is None:
                raise CommandError(f"Could not resolve location {query!r}")
        else:
            latitude = options.get("lat")
            longitude = options.get("lng")
            if latitude is None or longitude is None:
                raise CommandError("--lat and --lng are required unless using --query")
            try:
                location = Location(lat=latitude, lng=longitude, name=options.get("name"))
            except InvalidLocation as exc:
                raise CommandError(str(exc)) from exc

        try:
            report = get_location_service().get_location_data(location)
        except TotalAcquisitionFailure as exc:
            raise CommandError("Location data is currently unavailable") from exc

        self.stdout.write(json.dumps(report.to_dict(), indent=2))
