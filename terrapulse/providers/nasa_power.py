from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from .base import ProviderError, SourceClient, drop_missing, safe_float
from ..entities import FailureReason, Location


DEFAULT_FILL_VALUE = -999.0

# POWER parameter -> snapshot field key
PARAMETERS = {
    "T2M": "weather.current_temp_c",
    "T2M_MAX": "weather.max_temp_c",
    "T2M_MIN": "weather.min_temp_c",
    "PRECTOTCORR": "water.precipitation_mm",
    "GWETTOP": "soil.moisture",
    "TS": "soil.temperature",
    "ALLSKY_SFC_SW_DWN": "solar.irradiance",
}


class NasaPowerClient(SourceClient):
    """Daily point queries against the NASA POWER climate/radiation archive.

    POWER publishes with a lag of a few days, so a trailing window is requested
    and the newest value that is not the ``fill_value`` sentinel wins.
    """

    name = "nasa-power"
    base_url = "https://power.larc.nasa.gov/api/temporal/daily/point"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        window_days: int = 10,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=timezone.utc),
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url or self.base_url
        self.window_days = window_days
        self._clock = clock
        self._log = logging.getLogger(self.__class__.__name__)

    def _fetch_fields(self, location: Location):
        end = self._clock().date()
        start = end - timedelta(days=self.window_days)
        params = {
            "parameters": ",".join(PARAMETERS),
            "community": "AG",
            "latitude": round(location.lat, 4),
            "longitude": round(location.lng, 4),
            "start": start.strftime("%Y%m%d"),
            "end": end.strftime("%Y%m%d"),
            "format": "JSON",
        }
        if self.api_key:
            params["api_key"] = self.api_key
        response = self._request("GET", self.base_url, params=params)
        data = self._json(response)
        if not isinstance(data, dict):
            raise ProviderError("unexpected payload", FailureReason.MALFORMED)
        series = (data.get("properties") or {}).get("parameter")
        if not isinstance(series, dict):
            raise ProviderError("missing parameter block", FailureReason.MALFORMED)
        fill_value = safe_float((data.get("header") or {}).get("fill_value"))
        if fill_value is None:
            fill_value = DEFAULT_FILL_VALUE

        fields: Dict[str, Optional[float]] = {}
        observed_at: Optional[datetime] = None
        for parameter, key in PARAMETERS.items():
            found = _latest_valid(series.get(parameter), fill_value)
            if found is None:
                continue
            day, value = found
            fields[key] = value
            if observed_at is None or day > observed_at:
                observed_at = day
        return drop_missing(fields), observed_at


def _latest_valid(values: object, fill_value: float) -> Optional[Tuple[datetime, float]]:
    if not isinstance(values, dict):
        return None
    for stamp in sorted(values, reverse=True):
        value = safe_float(values[stamp])
        if value is None or not math.isfinite(value) or _is_fill(value, fill_value):
            continue
        try:
            day = datetime.strptime(str(stamp), "%Y%m%d").replace(tzinfo=timezone.utc)
        except ValueError:
            continue
        return day, value
    return None


def _is_fill(value: float, fill_value: float) -> bool:
    return math.isclose(value, fill_value, abs_tol=1e-6)


__all__ = ["NasaPowerClient", "PARAMETERS"]
