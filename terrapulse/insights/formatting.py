"""Compact text projections of a snapshot for prompts and the summary."""
from __future__ import annotations

from dataclasses import dataclass

from ..entities import AirQuality, EnvironmentalSnapshot, Fire, Soil, Vegetation, Water, Weather


AEROSOL_CATEGORIES = (
    (0.1, "Very Clean"),
    (0.3, "Good"),
    (0.5, "Moderate"),
    (1.0, "Unhealthy for Sensitive Groups"),
    (2.0, "Unhealthy"),
)


def aerosol_category(aerosol_index: float) -> str:
    for limit, label in AEROSOL_CATEGORIES:
        if aerosol_index <= limit:
            return label
    return "Hazardous"


def format_soil(soil: Soil) -> str:
    return (
        f"Moisture: {soil.moisture * 100:.1f}%, Temperature: {soil.temperature}°C, pH: {soil.ph}, "
        f"Nitrogen: {soil.nitrogen}mg/kg, Phosphorus: {soil.phosphorus}mg/kg, "
        f"Potassium: {soil.potassium}mg/kg"
    )


def format_weather(weather: Weather, vegetation: Vegetation) -> str:
    outlook = ", ".join(
        f"{day.day}: {day.temp_c}°C ({day.min_c}-{day.max_c}°C, {day.condition})"
        for day in weather.forecast[:3]
    )
    return (
        f"Current Temperature: {weather.current_temp_c}°C, NDVI: {vegetation.ndvi:.2f}, "
        f"3-Day Forecast: {outlook}"
    )


def format_air_quality(air_quality: AirQuality) -> str:
    return (
        f"Aerosol Index: {air_quality.aerosol_index:.2f} ({aerosol_category(air_quality.aerosol_index)}), "
        f"CO: {air_quality.co:.2f}ppm"
    )


def format_fire(fire: Fire) -> str:
    return f"Active Fires: {fire.active_fires}, Risk Level: {fire.fire_risk.value}"


def format_water(water: Water) -> str:
    return (
        f"Precipitation: {water.precipitation_mm}mm, "
        f"Surface Water Coverage: {water.surface_water_fraction * 100:.1f}%"
    )


def historical_context(snapshot: EnvironmentalSnapshot) -> str:
    precipitation = snapshot.water.precipitation_mm
    if precipitation < 5:
        precipitation_status = "below average"
    elif precipitation < 15:
        precipitation_status = "average"
    else:
        precipitation_status = "above average"

    ndvi = snapshot.vegetation.ndvi
    if ndvi > 0.6:
        vegetation_health = "excellent"
    elif ndvi > 0.4:
        vegetation_health = "good"
    elif ndvi > 0.2:
        vegetation_health = "moderate"
    else:
        vegetation_health = "poor"

    temp = snapshot.weather.current_temp_c
    if temp > 30:
        temp_trend = "above normal"
    elif temp > 20:
        temp_trend = "normal"
    else:
        temp_trend = "below normal"

    moisture = snapshot.soil.moisture
    return (
        f"Historical patterns indicate {precipitation_status} precipitation levels with "
        f"{vegetation_health} vegetation health. Temperature trends are {temp_trend}. "
        f"Fire risk assessment shows {snapshot.fire.fire_risk.value} risk level with "
        f"{snapshot.fire.active_fires} active incidents. Soil moisture at {moisture * 100:.1f}% "
        f"indicates {'adequate' if moisture > 0.5 else 'low'} water retention."
    )


def generate_summary(location_name: str, snapshot: EnvironmentalSnapshot) -> str:
    """Deterministic narrative built from the snapshot alone."""
    aerosol = snapshot.air_quality.aerosol_index
    if aerosol < 0.1:
        air_status = "excellent"
    elif aerosol < 0.3:
        air_status = "good"
    elif aerosol < 0.6:
        air_status = "moderate"
    else:
        air_status = "poor"

    ndvi = snapshot.vegetation.ndvi
    if ndvi > 0.6:
        vegetation_status = "thriving"
    elif ndvi > 0.4:
        vegetation_status = "healthy"
    elif ndvi > 0.2:
        vegetation_status = "stressed"
    else:
        vegetation_status = "critical"

    soil = snapshot.soil
    soil_health = (
        "optimal" if 6.0 <= soil.ph <= 7.5 and 0.3 < soil.moisture < 0.7 else "suboptimal"
    )
    return (
        f"Environmental assessment for {location_name} reveals {air_status} air quality "
        f"(aerosol index {aerosol:.2f}). Vegetation is {vegetation_status} with NDVI at {ndvi:.2f}. "
        f"Soil conditions are {soil_health} with {soil.moisture * 100:.1f}% moisture and pH {soil.ph}. "
        f"Fire risk is {snapshot.fire.fire_risk.value} with {snapshot.fire.active_fires} active fires "
        f"in the region. Recent precipitation totals {snapshot.water.precipitation_mm}mm with current "
        f"temperature at {snapshot.weather.current_temp_c}°C."
    )


@dataclass(frozen=True)
class FormattedData:
    soil: str
    weather: str
    air_quality: str
    fire: str
    water: str
    temperature: str
    additional_metrics: str
    historical: str

    @classmethod
    def from_snapshot(cls, snapshot: EnvironmentalSnapshot) -> "FormattedData":
        return cls(
            soil=format_soil(snapshot.soil),
            weather=format_weather(snapshot.weather, snapshot.vegetation),
            air_quality=format_air_quality(snapshot.air_quality),
            fire=format_fire(snapshot.fire),
            water=format_water(snapshot.water),
            temperature=f"Current: {snapshot.weather.current_temp_c}°C",
            additional_metrics=f"Vegetation Index (NDVI): {snapshot.vegetation.ndvi:.3f}",
            historical=historical_context(snapshot),
        )


__all__ = [
    "FormattedData",
    "aerosol_category",
    "format_air_quality",
    "format_fire",
    "format_soil",
    "format_water",
    "format_weather",
    "generate_summary",
    "historical_context",
]
