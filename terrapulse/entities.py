from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple


SYNTHETIC = "synthetic"

# (minimum, maximum) per snapshot field; None means unbounded on that side.
BOUNDS: Dict[str, Tuple[Optional[float], Optional[float]]] = {
    "air_quality.aerosol_index": (0.0, None),
    "air_quality.co": (0.0, None),
    "soil.moisture": (0.0, 1.0),
    "soil.temperature": (-50.0, 60.0),
    "soil.ph": (0.0, 14.0),
    "soil.nitrogen": (0.0, None),
    "soil.phosphorus": (0.0, None),
    "soil.potassium": (0.0, None),
    "fire.active_fires": (0.0, None),
    "water.surface_water_fraction": (0.0, 1.0),
    "water.precipitation_mm": (0.0, None),
    "weather.current_temp_c": (-60.0, 60.0),
    "vegetation.ndvi": (-1.0, 1.0),
}

FORECAST_DAYS = 5


class InvalidLocation(ValueError):
    """Raised when coordinates are missing, non-finite or out of range."""


class FireRisk(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    VERY_HIGH = "very-high"
    UNKNOWN = "unknown"


class QualityGrade(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


class FailureReason(str, Enum):
    TIMEOUT = "timeout"
    HTTP_ERROR = "http-error"
    MALFORMED = "malformed"
    UNCONFIGURED = "unconfigured"
    REQUEST_FAILED = "request-failed"


@dataclass(frozen=True)
class Location:
    """A point on Earth requested by the caller."""

    lat: float
    lng: float
    name: Optional[str] = None

    def __post_init__(self) -> None:
        for label, value, limit in (("lat", self.lat, 90.0), ("lng", self.lng, 180.0)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise InvalidLocation(f"{label} must be a number")
            if not math.isfinite(value):
                raise InvalidLocation(f"{label} must be finite")
            if not -limit <= value <= limit:
                raise InvalidLocation(f"{label} must be between {-limit:g} and {limit:g}")

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return f"{self.lat:.4f}, {self.lng:.4f}"

    def with_name(self, name: Optional[str]) -> "Location":
        return Location(lat=self.lat, lng=self.lng, name=name)


@dataclass(frozen=True)
class AirQuality:
    aerosol_index: float
    co: float


@dataclass(frozen=True)
class Soil:
    """Soil state; nutrients in mg/kg, temperature in Celsius."""

    moisture: float
    temperature: float
    ph: float
    nitrogen: float
    phosphorus: float
    potassium: float


@dataclass(frozen=True)
class Fire:
    active_fires: int
    fire_risk: FireRisk


@dataclass(frozen=True)
class Water:
    surface_water_fraction: float
    precipitation_mm: float


@dataclass(frozen=True)
class ForecastDay:
    day: str
    temp_c: float
    max_c: float
    min_c: float
    condition: str


@dataclass(frozen=True)
class Weather:
    current_temp_c: float
    forecast: Tuple[ForecastDay, ...]


@dataclass(frozen=True)
class Vegetation:
    ndvi: float


@dataclass(frozen=True)
class EnvironmentalSnapshot:
    """Complete, bounds-checked environmental record for one location.

    ``provenance`` maps a field key (``"soil.moisture"``) to the source that
    supplied it, or to ``"synthetic"`` when the value was back-filled.
    ``supplementary`` holds measured readings that are reported but not
    scored or synthesized (PM2.5, surface irradiance).
    ``last_updated`` is the newest provider observation and keys the cache;
    ``oldest_observation`` is the oldest one and bounds freshness scoring.
    """

    air_quality: AirQuality
    soil: Soil
    fire: Fire
    water: Water
    weather: Weather
    vegetation: Vegetation
    last_updated: datetime
    provenance: Mapping[str, str] = field(default_factory=dict)
    supplementary: Mapping[str, float] = field(default_factory=dict)
    oldest_observation: Optional[datetime] = None

    def value(self, key: str) -> float:
        group, name = key.split(".", 1)
        return getattr(getattr(self, group), name)

    def is_measured(self, key: str) -> bool:
        return self.provenance.get(key, SYNTHETIC) != SYNTHETIC

    def violations(self) -> List[str]:
        problems: List[str] = []
        for key, (low, high) in BOUNDS.items():
            value = self.value(key)
            if value is None or not math.isfinite(value):
                problems.append(f"{key} is missing")
                continue
            if low is not None and value < low:
                problems.append(f"{key}={value} below {low}")
            if high is not None and value > high:
                problems.append(f"{key}={value} above {high}")
        if len(self.weather.forecast) != FORECAST_DAYS:
            problems.append(f"forecast has {len(self.weather.forecast)} days")
        for day in self.weather.forecast:
            for value in (day.temp_c, day.max_c, day.min_c):
                if not -60.0 <= value <= 60.0:
                    problems.append(f"forecast {day.day} temperature {value} out of range")
        if self.last_updated.tzinfo is None:
            problems.append("last_updated must be timezone aware")
        if self.oldest_observation is not None and self.oldest_observation.tzinfo is None:
            problems.append("oldest_observation must be timezone aware")
        return problems

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["fire"]["fire_risk"] = self.fire.fire_risk.value
        payload["weather"]["forecast"] = [asdict(day) for day in self.weather.forecast]
        payload["last_updated"] = format_timestamp(self.last_updated)
        payload["oldest_observation"] = (
            format_timestamp(self.oldest_observation) if self.oldest_observation is not None else None
        )
        payload["provenance"] = dict(self.provenance)
        payload["supplementary"] = dict(self.supplementary)
        return payload


@dataclass(frozen=True)
class SourceResult:
    """Outcome of one source call: ``ok`` with partial fields or ``failed``."""

    source: str
    fields: Mapping[str, Any] = field(default_factory=dict)
    reason: Optional[FailureReason] = None
    detail: str = ""
    observed_at: Optional[datetime] = None

    @classmethod
    def ok(
        cls,
        source: str,
        fields: Mapping[str, Any],
        observed_at: Optional[datetime] = None,
    ) -> "SourceResult":
        return cls(source=source, fields=dict(fields), observed_at=observed_at)

    @classmethod
    def failed(cls, source: str, reason: FailureReason, detail: str = "") -> "SourceResult":
        return cls(source=source, reason=reason, detail=detail)

    @property
    def succeeded(self) -> bool:
        return self.reason is None

    @property
    def status(self) -> str:
        return "ok" if self.succeeded else self.reason.value


@dataclass(frozen=True)
class GenerationOutcome:
    task: str
    text: Optional[str] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0

    @classmethod
    def succeeded(cls, task: str, text: str, duration_seconds: float = 0.0) -> "GenerationOutcome":
        return cls(task=task, text=text, duration_seconds=duration_seconds)

    @classmethod
    def failed(cls, task: str, error: str, duration_seconds: float = 0.0) -> "GenerationOutcome":
        return cls(task=task, error=error or "unknown error", duration_seconds=duration_seconds)

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ReportMetadata:
    generated_at: datetime
    latency_seconds: float
    data_quality: QualityGrade
    cacheable: bool
    degraded_tasks: Tuple[str, ...] = ()
    outcomes: Tuple[GenerationOutcome, ...] = ()
    sources: Mapping[str, str] = field(default_factory=dict)
    offline: bool = False


@dataclass(frozen=True)
class Report:
    location: Location
    snapshot: EnvironmentalSnapshot
    summary: str
    insights: Mapping[str, str]
    metadata: ReportMetadata

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "location": asdict(self.location),
        }
        payload.update(self.snapshot.as_dict())
        payload["summary"] = self.summary
        payload.update(self.insights)
        meta = self.metadata
        payload["metadata"] = {
            "generated_at": format_timestamp(meta.generated_at),
            "latency_seconds": round(meta.latency_seconds, 3),
            "data_quality": meta.data_quality.value,
            "cacheable": meta.cacheable,
            "degraded_tasks": list(meta.degraded_tasks),
            "outcomes": [
                {
                    "task": outcome.task,
                    "status": "succeeded" if outcome.ok else "failed",
                    "error": outcome.error,
                    "duration_seconds": round(outcome.duration_seconds, 3),
                }
                for outcome in meta.outcomes
            ],
            "sources": dict(meta.sources),
            "offline": meta.offline,
        }
        return payload


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = [
    "AirQuality",
    "BOUNDS",
    "EnvironmentalSnapshot",
    "FailureReason",
    "Fire",
    "FireRisk",
    "ForecastDay",
    "FORECAST_DAYS",
    "GenerationOutcome",
    "InvalidLocation",
    "Location",
    "QualityGrade",
    "Report",
    "ReportMetadata",
    "Soil",
    "SourceResult",
    "SYNTHETIC",
    "Vegetation",
    "Water",
    "Weather",
    "format_timestamp",
]
