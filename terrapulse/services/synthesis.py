"""Merge partial source results into a complete environmental snapshot."""
from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..entities import (
    BOUNDS,
    FORECAST_DAYS,
    SYNTHETIC,
    AirQuality,
    EnvironmentalSnapshot,
    Fire,
    FireRisk,
    ForecastDay,
    Soil,
    SourceResult,
    Vegetation,
    Water,
    Weather,
)


PRECISION = 2
HEAT_THRESHOLD_C = 35.0
HEAT_NDVI_PENALTY = 0.15
MOIST_SOIL = 0.6
MIN_NDVI_WHEN_MOIST = 0.2
FORECAST_TEMP_RANGE = (-60.0, 60.0)
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
PLACE_NAME_KEY = "location.place_name"

# Extra keys sources may supply that are not snapshot fields.
AUX_BOUNDS: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    "weather.max_temp_c": FORECAST_TEMP_RANGE,
    "weather.min_temp_c": FORECAST_TEMP_RANGE,
    "air_quality.pm25": (0.0, 1000.0),
    "solar.irradiance": (0.0, 15.0),
}

# Measured-only readings passed through to the snapshot, never back-filled.
SUPPLEMENTARY_KEYS = ("air_quality.pm25", "solar.irradiance")


def fire_risk_for(active_fires: int) -> FireRisk:
    """Tier fire risk by active fire count: >10, >5, >0, else low."""
    if active_fires > 10:
        return FireRisk.VERY_HIGH
    if active_fires > 5:
        return FireRisk.HIGH
    if active_fires > 0:
        return FireRisk.MEDIUM
    return FireRisk.LOW


def forecast_condition(precipitation_mm: float, temp_c: float) -> str:
    if precipitation_mm > 10:
        return "Rainy"
    if precipitation_mm > 2:
        return "Showers" if temp_c > 2 else "Snow"
    if temp_c > 28:
        return "Sunny"
    if precipitation_mm > 0.5:
        return "Cloudy"
    return "Partly Cloudy"


def _clamp(value: float, low: Optional[float], high: Optional[float]) -> float:
    if low is not None and value < low:
        return low
    if high is not None and value > high:
        return high
    return value


class DataSynthesizer:
    """Total merge of source results into an ``EnvironmentalSnapshot``.

    Valid in-range provider values win and are rounded to two decimals. Any
    field a source did not supply is back-filled with a heuristic placeholder
    that stays consistent with the fields it is derived from.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=timezone.utc),
    ) -> None:
        self._rng = rng or random.Random()
        self._clock = clock
        self._log = logging.getLogger(self.__class__.__name__)

    def synthesize(self, results: Iterable[SourceResult]) -> EnvironmentalSnapshot:
        measured, provenance, observed = self._collect(results)
        rng = self._rng

        def pick(key: str, fallback: Callable[[], float]) -> float:
            if key in measured:
                return measured[key]
            provenance[key] = SYNTHETIC
            low, high = BOUNDS.get(key) or AUX_BOUNDS.get(key) or (None, None)
            return round(_clamp(fallback(), low, high), PRECISION)

        current_temp = pick("weather.current_temp_c", lambda: rng.uniform(15.0, 30.0))
        precipitation = pick("water.precipitation_mm", lambda: rng.uniform(0.0, 10.0))
        moisture = pick(
            "soil.moisture",
            lambda: 0.15 + 0.6 * min(precipitation, 20.0) / 20.0 + rng.uniform(-0.05, 0.05),
        )
        soil_temp = pick("soil.temperature", lambda: current_temp - rng.uniform(0.0, 3.0))
        soil = Soil(
            moisture=moisture,
            temperature=soil_temp,
            ph=pick("soil.ph", lambda: rng.uniform(5.5, 7.5)),
            nitrogen=pick("soil.nitrogen", lambda: rng.uniform(10.0, 30.0)),
            phosphorus=pick("soil.phosphorus", lambda: rng.uniform(5.0, 20.0)),
            potassium=pick("soil.potassium", lambda: rng.uniform(20.0, 50.0)),
        )

        # Fire feed down means no detections to report, not an invented count.
        active_fires = int(pick("fire.active_fires", lambda: 0.0))
        fire = Fire(active_fires=active_fires, fire_risk=fire_risk_for(active_fires))

        water = Water(
            surface_water_fraction=pick(
                "water.surface_water_fraction",
                lambda: 0.05
                + 0.4 * moisture
                + 0.2 * min(precipitation, 50.0) / 50.0
                + rng.uniform(-0.03, 0.03),
            ),
            precipitation_mm=precipitation,
        )

        vegetation = Vegetation(ndvi=pick("vegetation.ndvi", lambda: self._fallback_ndvi(moisture, current_temp)))

        air_quality = AirQuality(
            aerosol_index=pick("air_quality.aerosol_index", lambda: rng.uniform(0.05, 0.8)),
            co=pick("air_quality.co", lambda: rng.uniform(0.1, 2.0)),
        )

        forecast = self._forecast(
            current_temp,
            precipitation,
            measured.get("weather.max_temp_c"),
            measured.get("weather.min_temp_c"),
        )

        snapshot = EnvironmentalSnapshot(
            air_quality=air_quality,
            soil=soil,
            fire=fire,
            water=water,
            weather=Weather(current_temp_c=current_temp, forecast=forecast),
            vegetation=vegetation,
            last_updated=self._freshness_marker(observed),
            oldest_observation=min(observed) if observed else None,
            provenance=provenance,
            supplementary={key: measured[key] for key in SUPPLEMENTARY_KEYS if key in measured},
        )
        problems = snapshot.violations()
        if problems:
            self._log.error("Synthesized snapshot violates bounds: %s", problems)
        return snapshot

    # Helpers ------------------------------------------------------------
    def _collect(self, results: Iterable[SourceResult]):
        measured: Dict[str, float] = {}
        provenance: Dict[str, str] = {}
        observed: List[datetime] = []
        for result in results:
            if not result.succeeded:
                continue
            if result.observed_at is not None:
                observed.append(_as_utc(result.observed_at))
            for key, raw in result.fields.items():
                if key in measured:
                    continue
                value = _valid_value(key, raw)
                if value is None:
                    if key in BOUNDS or key in AUX_BOUNDS:
                        self._log.info("Discarding %s=%r from %s", key, raw, result.source)
                    elif key != PLACE_NAME_KEY:
                        self._log.debug("Ignoring unknown field %s from %s", key, result.source)
                    continue
                measured[key] = value
                provenance[key] = result.source
        return measured, provenance, observed

    def _fallback_ndvi(self, moisture: float, current_temp: float) -> float:
        ndvi = 0.1 + 0.7 * moisture + self._rng.uniform(-0.05, 0.05)
        if current_temp > HEAT_THRESHOLD_C:
            ndvi -= HEAT_NDVI_PENALTY
        if moisture >= MOIST_SOIL:
            ndvi = max(ndvi, MIN_NDVI_WHEN_MOIST)
        return ndvi

    def _forecast(
        self,
        current_temp: float,
        precipitation: float,
        max_anchor: Optional[float],
        min_anchor: Optional[float],
    ) -> Tuple[ForecastDay, ...]:
        low, high = FORECAST_TEMP_RANGE
        today = self._clock()
        spread_up = (max_anchor - current_temp) if max_anchor is not None else None
        spread_down = (current_temp - min_anchor) if min_anchor is not None else None
        days: List[ForecastDay] = []
        temp = current_temp
        for offset in range(FORECAST_DAYS):
            day_name = WEEKDAYS[(today.weekday() + offset) % 7]
            if offset:
                temp = temp + self._rng.uniform(-2.0, 2.0)
            temp = _clamp(temp, low, high)
            up = spread_up if spread_up is not None and spread_up >= 0 else self._rng.uniform(2.0, 6.0)
            down = spread_down if spread_down is not None and spread_down >= 0 else self._rng.uniform(2.0, 6.0)
            day_temp = round(temp, PRECISION)
            day_max = round(_clamp(temp + up, day_temp, high), PRECISION)
            day_min = round(_clamp(temp - down, low, day_temp), PRECISION)
            day_rain = max(0.0, precipitation + self._rng.uniform(-2.0, 2.0))
            days.append(
                ForecastDay(
                    day=day_name,
                    temp_c=day_temp,
                    max_c=day_max,
                    min_c=day_min,
                    condition=forecast_condition(day_rain, day_temp),
                )
            )
        return tuple(days)

    def _freshness_marker(self, observed: List[datetime]) -> datetime:
        if observed:
            return max(observed)
        now = _as_utc(self._clock())
        return now.replace(minute=0, second=0, microsecond=0)


def _valid_value(key: str, raw: Any) -> Optional[float]:
    if key not in BOUNDS and key not in AUX_BOUNDS:
        return None
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    low, high = BOUNDS.get(key) or AUX_BOUNDS[key]
    if (low is not None and value < low) or (high is not None and value > high):
        return None
    if key == "fire.active_fires":
        return float(int(value))
    return round(value, PRECISION)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def place_name(results: Iterable[SourceResult]) -> Optional[str]:
    for result in results:
        if result.succeeded and result.fields.get(PLACE_NAME_KEY):
            return str(result.fields[PLACE_NAME_KEY])
    return None


__all__ = ["DataSynthesizer", "fire_risk_for", "forecast_condition", "place_name"]
