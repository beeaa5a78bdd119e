from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from typing import Dict, Optional

from .base import ProviderError, SourceClient, SourceUnconfigured, drop_missing, safe_float
from ..entities import FailureReason, Location


# Rough PM2.5 (ug/m3) to aerosol optical depth proxy.
PM25_PER_AEROSOL_UNIT = 100.0
# 1 ppm of CO at 25 C and 1 atm.
CO_UGM3_PER_PPM = 1145.0


class OpenAQClient(SourceClient):
    """Nearest-station air quality readings from the OpenAQ v3 API."""

    name = "openaq"
    base_url = "https://api.openaq.org/v3"

    def __init__(
        self,
        api_key: Optional[str],
        base_url: Optional[str] = None,
        radius_m: int = 25_000,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = (base_url or self.base_url).rstrip("/")
        self.radius_m = min(int(radius_m), 25_000)
        self._log = logging.getLogger(self.__class__.__name__)

    def _fetch_fields(self, location: Location):
        if not self.api_key:
            raise SourceUnconfigured("OpenAQ API key is not configured")
        headers = {"X-API-Key": self.api_key, "Accept": "application/json"}
        stations = self._json(
            self._request(
                "GET",
                f"{self.base_url}/locations",
                params={
                    "coordinates": f"{location.lat:.4f},{location.lng:.4f}",
                    "radius": self.radius_m,
                    "limit": 1,
                },
                headers=headers,
            )
        )
        results = stations.get("results") if isinstance(stations, dict) else None
        if results is None:
            raise ProviderError("missing results", FailureReason.MALFORMED)
        if not results:
            self._log.info("No air quality station within %sm", self.radius_m)
            return {}, None

        station = results[0]
        sensors = _sensor_parameters(station.get("sensors") or [])
        latest = self._json(
            self._request("GET", f"{self.base_url}/locations/{station['id']}/latest", headers=headers)
        )
        readings = latest.get("results") if isinstance(latest, dict) else None
        if readings is None:
            raise ProviderError("missing latest readings", FailureReason.MALFORMED)

        values: Dict[str, float] = {}
        observed_at: Optional[datetime] = None
        for reading in readings:
            parameter = sensors.get(reading.get("sensorsId"))
            value = safe_float(reading.get("value"))
            if parameter is None or value is None or not math.isfinite(value) or value < 0:
                continue
            values[parameter[0]] = _to_canonical(parameter, value)
            when = _parse_utc(reading.get("datetime"))
            if when is not None and (observed_at is None or when > observed_at):
                observed_at = when

        fields = drop_missing(
            {
                "air_quality.aerosol_index": _aerosol_index(values.get("pm25")),
                "air_quality.co": values.get("co"),
                "air_quality.pm25": values.get("pm25"),
            }
        )
        return fields, observed_at


def _sensor_parameters(sensors: list) -> Dict[int, tuple]:
    mapping: Dict[int, tuple] = {}
    for sensor in sensors:
        parameter = sensor.get("parameter") or {}
        name = (parameter.get("name") or "").lower()
        if name in {"pm25", "co"}:
            mapping[sensor.get("id")] = (name, (parameter.get("units") or "").lower())
    return mapping


def _to_canonical(parameter: tuple, value: float) -> float:
    name, units = parameter
    if name == "co" and units in {"µg/m³", "ug/m3", "µg/m3"}:
        return value / CO_UGM3_PER_PPM
    return value


def _aerosol_index(pm25: Optional[float]) -> Optional[float]:
    if pm25 is None:
        return None
    return pm25 / PM25_PER_AEROSOL_UNIT


def _parse_utc(value: object) -> Optional[datetime]:
    raw = value.get("utc") if isinstance(value, dict) else value
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


__all__ = ["OpenAQClient"]
