"""Insight generators: one external text generation call per task.

Each generator owns a template id, a projection of the snapshot into the
template's inputs, an output schema and a fallback sentence. Generators keep
no state between calls, never retry and never cache.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Protocol, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..entities import EnvironmentalSnapshot, Location
from ..providers.textgen import GenerationError
from .formatting import FormattedData


_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class TextService(Protocol):
    def generate(self, template_id: str, structured_input: Dict[str, Any]) -> str:
        ...


@dataclass(frozen=True)
class InsightContext:
    location: Location
    snapshot: EnvironmentalSnapshot
    formatted: FormattedData

    @property
    def location_name(self) -> str:
        return self.location.display_name

    @classmethod
    def build(cls, location: Location, snapshot: EnvironmentalSnapshot) -> "InsightContext":
        return cls(location=location, snapshot=snapshot, formatted=FormattedData.from_snapshot(snapshot))


class _Output(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class PredictionsOutput(_Output):
    predictions: str = Field(min_length=1)


class CropRecommendationsOutput(_Output):
    crop_recommendations: str = Field(min_length=1)


class RiskAssessmentOutput(_Output):
    risk_assessment: str = Field(min_length=1)


class SimplifiedExplanationOutput(_Output):
    simplified_explanation: str = Field(min_length=1)


class SolutionsOutput(_Output):
    solutions: str = Field(min_length=1)


class HealthAdvisoryOutput(_Output):
    health_advisory: str = Field(min_length=1)


class InsightGenerator:
    name: str = ""
    template_id: str = ""
    output_model: Type[BaseModel] = _Output
    output_field: str = ""
    fallback: str = "This insight is temporarily unavailable."
    offline: str = "This system is currently offline."

    def __init__(self, service: TextService) -> None:
        self.service = service

    def build_input(self, context: InsightContext) -> Dict[str, Any]:
        raise NotImplementedError

    def generate(self, task_input: Dict[str, Any]) -> str:
        raw = self.service.generate(self.template_id, task_input)
        return self.parse(raw)

    def parse(self, raw: str) -> str:
        cleaned = _FENCE.sub("", (raw or "").strip())
        try:
            output = self.output_model.model_validate_json(cleaned)
        except ValidationError as exc:
            raise GenerationError(
                f"{self.name}: response does not match schema ({exc.error_count()} errors)"
            ) from exc
        return getattr(output, self.output_field)

    def fallback_text(self, context: InsightContext) -> str:
        return self.fallback.format(location=context.location_name)

    def offline_text(self, context: InsightContext) -> str:
        return self.offline.format(location=context.location_name)


class FutureTrendsGenerator(InsightGenerator):
    name = "future_predictions"
    template_id = "future-trends"
    output_model = PredictionsOutput
    output_field = "predictions"
    fallback = "Future trend analysis is temporarily unavailable. Please check back later."
    offline = "Analysis system is currently offline."

    def build_input(self, context: InsightContext) -> Dict[str, Any]:
        formatted = context.formatted
        return {
            "location": context.location_name,
            "historical_data": formatted.historical,
            "current_conditions": f"{formatted.air_quality}; {formatted.weather}; {formatted.fire}",
        }


class CropRecommendationsGenerator(InsightGenerator):
    name = "crop_recommendations"
    template_id = "crop-recommendations"
    output_model = CropRecommendationsOutput
    output_field = "crop_recommendations"
    fallback = (
        "Crop recommendations are temporarily unavailable. Default suggestion: consider "
        "drought-resistant varieties suited to current conditions."
    )
    offline = "Recommendation system is currently offline."

    def build_input(self, context: InsightContext) -> Dict[str, Any]:
        return {
            "latitude": context.location.lat,
            "longitude": context.location.lng,
            "soil_data": context.formatted.soil,
            "weather_patterns": context.formatted.weather,
        }


class RiskAssessmentGenerator(InsightGenerator):
    name = "risk_assessment"
    template_id = "risk-assessment"
    output_model = RiskAssessmentOutput
    output_field = "risk_assessment"
    fallback = (
        "Risk assessment is temporarily unavailable. Monitor fire and air quality alerts "
        "for your area."
    )
    offline = "Risk assessment system is currently offline."

    def build_input(self, context: InsightContext) -> Dict[str, Any]:
        formatted = context.formatted
        return {
            "air_quality": formatted.air_quality,
            "fire_data": formatted.fire,
            "water_resources": formatted.water,
            "weather_patterns": formatted.weather,
        }


class SimplifiedExplanationGenerator(InsightGenerator):
    name = "simplified_explanation"
    template_id = "simplified-explanation"
    output_model = SimplifiedExplanationOutput
    output_field = "simplified_explanation"
    fallback = (
        "A plain-language explanation for {location} is temporarily unavailable. "
        "Key metrics are shown above."
    )
    offline = "Explanation system is currently offline."

    def build_input(self, context: InsightContext) -> Dict[str, Any]:
        formatted = context.formatted
        return {
            "location": context.location_name,
            "air_quality": formatted.air_quality,
            "soil_data": formatted.soil,
            "fire_detection": formatted.fire,
            "water_resources": formatted.water,
            "weather_patterns": formatted.weather,
            "temperature": formatted.temperature,
            "additional_metrics": formatted.additional_metrics,
        }


class EnvironmentalSolutionsGenerator(InsightGenerator):
    name = "environmental_solutions"
    template_id = "environmental-solutions"
    output_model = SolutionsOutput
    output_field = "solutions"
    fallback = "Environmental solutions are temporarily unavailable for current conditions."
    offline = "Solution system is currently offline."

    def build_input(self, context: InsightContext) -> Dict[str, Any]:
        formatted = context.formatted
        return {
            "air_quality": formatted.air_quality,
            "soil_data": formatted.soil,
            "fire_detection": formatted.fire,
            "water_resources": formatted.water,
            "weather_patterns": formatted.weather,
            "temperature": formatted.temperature,
        }


class HealthAdvisoryGenerator(InsightGenerator):
    name = "health_advisory"
    template_id = "health-advisory"
    output_model = HealthAdvisoryOutput
    output_field = "health_advisory"
    fallback = (
        "The health advisory is temporarily unavailable. Sensitive groups should limit "
        "outdoor exertion when smoke or haze is visible."
    )
    offline = "Health advisory system is currently offline."

    def build_input(self, context: InsightContext) -> Dict[str, Any]:
        snapshot = context.snapshot
        return {
            "location": context.location_name,
            "aerosol_index": f"{snapshot.air_quality.aerosol_index:.2f}",
            "co": f"{snapshot.air_quality.co:.2f}",
            "current_temp": snapshot.weather.current_temp_c,
            "active_fires": snapshot.fire.active_fires,
            "fire_risk": snapshot.fire.fire_risk.value,
        }


GENERATOR_CLASSES = (
    FutureTrendsGenerator,
    CropRecommendationsGenerator,
    RiskAssessmentGenerator,
    SimplifiedExplanationGenerator,
    EnvironmentalSolutionsGenerator,
    HealthAdvisoryGenerator,
)


def default_generators(service: TextService) -> List[InsightGenerator]:
    return [generator_class(service) for generator_class in GENERATOR_CLASSES]


__all__ = [
    "CropRecommendationsGenerator",
    "EnvironmentalSolutionsGenerator",
    "FutureTrendsGenerator",
    "GENERATOR_CLASSES",
    "HealthAdvisoryGenerator",
    "InsightContext",
    "InsightGenerator",
    "RiskAssessmentGenerator",
    "SimplifiedExplanationGenerator",
    "default_generators",
]
