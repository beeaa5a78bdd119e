from __future__ import annotations

import logging
import re
from typing import Optional

from .base import ProviderError, SourceClient
from ..entities import InvalidLocation, Location


logger = logging.getLogger(__name__)

KNOWN_PLACES = {
    "new york": Location(lat=40.7128, lng=-74.0060, name="New York, USA"),
    "amazon": Location(lat=-3.4653, lng=-62.2159, name="Amazon Rainforest"),
    "sahara": Location(lat=23.4162, lng=25.6628, name="Sahara Desert"),
}

_COORDINATES = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*[,\s]\s*(-?\d+(?:\.\d+)?)\s*$")


class NominatimGeocoder(SourceClient):
    """Forward and reverse lookups against OpenStreetMap Nominatim.

    Both lookups return ``None`` on no match or any error. As a source client
    it contributes ``location.place_name`` to the acquisition stage.
    """

    name = "nominatim"
    base_url = "https://nominatim.openstreetmap.org"

    def __init__(
        self,
        user_agent: str = "terrapulse/1.0",
        base_url: Optional[str] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.base_url = (base_url or self.base_url).rstrip("/")
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        self._log = logging.getLogger(self.__class__.__name__)

    def forward(self, query: str) -> Optional[Location]:
        if not query or not query.strip():
            return None
        try:
            response = self._request(
                "GET",
                f"{self.base_url}/search",
                params={"q": query.strip(), "format": "json", "limit": 1},
            )
            data = self._json(response)
            if not data:
                return None
            match = data[0]
            return Location(
                lat=float(match["lat"]),
                lng=float(match["lon"]),
                name=match.get("display_name") or query.strip(),
            )
        except (ProviderError, AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            self._log.warning("Forward geocoding failed for %r: %s", query, exc)
            return None

    def reverse(self, lat: float, lng: float) -> Optional[str]:
        try:
            response = self._request(
                "GET",
                f"{self.base_url}/reverse",
                params={"lat": lat, "lon": lng, "format": "json", "zoom": 10},
            )
            data = self._json(response)
            if not isinstance(data, dict) or data.get("error"):
                return None
            return _short_name(data)
        except (ProviderError, AttributeError, TypeError, ValueError) as exc:
            self._log.warning("Reverse geocoding failed for %s,%s: %s", lat, lng, exc)
            return None

    def _fetch_fields(self, location: Location):
        place = self.reverse(location.lat, location.lng)
        if place is None:
            raise ProviderError("no place name for location")
        return {"location.place_name": place}, None


def _short_name(data: dict) -> Optional[str]:
    address = data.get("address")
    if not isinstance(address, dict):
        address = {}
    place = None
    for key in ("city", "town", "village", "municipality", "county", "state"):
        if address.get(key):
            place = address[key]
            break
    country = address.get("country")
    if place and country:
        return f"{place}, {country}"
    if place or country:
        return place or country
    display = data.get("display_name")
    if display:
        return ", ".join(part.strip() for part in display.split(",")[:2])
    return None


def geocode_location(query: str, geocoder: Optional[NominatimGeocoder] = None) -> Optional[Location]:
    """Resolve free text into a Location.

    Accepts ``"lat, lng"`` pairs, a handful of well-known place names, and
    otherwise defers to the forward geocoder.
    """
    if not query or not query.strip():
        return None
    coordinates = _COORDINATES.match(query)
    if coordinates:
        try:
            return Location(
                lat=float(coordinates.group(1)),
                lng=float(coordinates.group(2)),
                name=query.strip(),
            )
        except InvalidLocation:
            logger.info("Ignoring out of range coordinates %r", query)
            return None
    lowered = query.lower()
    for needle, place in KNOWN_PLACES.items():
        if needle in lowered:
            return place
    if geocoder is None:
        return None
    return geocoder.forward(query)


__all__ = ["KNOWN_PLACES", "NominatimGeocoder", "geocode_location"]
