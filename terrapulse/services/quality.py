from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

from ..entities import FORECAST_DAYS, EnvironmentalSnapshot, FireRisk, QualityGrade


GRADE_THRESHOLDS: Tuple[Tuple[float, QualityGrade], ...] = (
    (0.9, QualityGrade.EXCELLENT),
    (0.7, QualityGrade.GOOD),
    (0.5, QualityGrade.FAIR),
)

MEASURED_FIELDS = (
    ("air_quality_measured", ("air_quality.aerosol_index", "air_quality.co")),
    ("air_temperature_measured", ("weather.current_temp_c",)),
    ("soil_moisture_measured", ("soil.moisture",)),
    ("soil_temperature_measured", ("soil.temperature",)),
    ("precipitation_measured", ("water.precipitation_mm",)),
    ("fire_count_measured", ("fire.active_fires",)),
)


@dataclass(frozen=True)
class QualityAssessment:
    grade: QualityGrade
    score: float
    checks: Dict[str, bool]


class DataQualityScorer:
    """Grade a snapshot by the fraction of validity checks it passes.

    The scorer is pure; a stale snapshot (``last_updated`` or
    ``oldest_observation`` older than ``max_age``) never grades better than
    ``good``.
    """

    def __init__(
        self,
        max_age: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = lambda: datetime.now(tz=timezone.utc),
    ) -> None:
        self.max_age = max_age
        self._clock = clock

    def score(self, snapshot: EnvironmentalSnapshot) -> QualityGrade:
        return self.evaluate(snapshot).grade

    def evaluate(self, snapshot: EnvironmentalSnapshot, now: Optional[datetime] = None) -> QualityAssessment:
        now = now or self._clock()
        checks: Dict[str, bool] = {
            "within_bounds": not snapshot.violations(),
            "fire_risk_known": snapshot.fire.fire_risk != FireRisk.UNKNOWN,
            "fresh": self._is_fresh(snapshot, now),
            "forecast_consistent": _forecast_consistent(snapshot),
        }
        for name, keys in MEASURED_FIELDS:
            checks[name] = any(snapshot.is_measured(key) for key in keys)

        score = sum(checks.values()) / len(checks)
        grade = QualityGrade.POOR
        for threshold, candidate in GRADE_THRESHOLDS:
            if score >= threshold:
                grade = candidate
                break
        if not checks["fresh"] and grade == QualityGrade.EXCELLENT:
            grade = QualityGrade.GOOD
        return QualityAssessment(grade=grade, score=score, checks=checks)

    def _is_fresh(self, snapshot: EnvironmentalSnapshot, now: datetime) -> bool:
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        stamps = [snapshot.last_updated]
        if snapshot.oldest_observation is not None:
            stamps.append(snapshot.oldest_observation)
        for stamp in stamps:
            if stamp.tzinfo is None:
                stamp = stamp.replace(tzinfo=timezone.utc)
            if now - stamp > self.max_age:
                return False
        return True


def _forecast_consistent(snapshot: EnvironmentalSnapshot) -> bool:
    forecast = snapshot.weather.forecast
    if len(forecast) != FORECAST_DAYS:
        return False
    return all(day.min_c <= day.temp_c <= day.max_c for day in forecast)


__all__ = ["DataQualityScorer", "QualityAssessment", "GRADE_THRESHOLDS"]
