"""Instruction templates for the insight generators, keyed by template id."""
from __future__ import annotations


FUTURE_TRENDS = """You are an AI assistant specialized in predicting future environmental trends based on current and historical data.

Analyze the following data for {location} and provide predictions for the next 1-3 months. Consider seasonality and the provided metrics.

Historical context: {historical_data}
Current conditions: {current_conditions}

Provide short-term predictions for:
1. Temperature and precipitation trends.
2. Vegetation health and potential changes.
3. Air quality outlook.
4. Potential shifts in fire or drought risk.

Respond with a JSON object: {{"predictions": "<your predictions>"}}"""

CROP_RECOMMENDATIONS = """You are an expert agricultural advisor. Based on the environmental data for a specific location, provide crop recommendations.

Location: Lat {latitude}, Lon {longitude}
Soil: {soil_data}
Weather: {weather_patterns}

Explain why you recommend each crop, including specific benefits and considerations based on the data. Format as a numbered list.

Respond with a JSON object: {{"crop_recommendations": "<your recommendations>"}}"""

RISK_ASSESSMENT = """You are an AI assistant that specializes in environmental risk assessment using satellite data.

- Air Quality: {air_quality}
- Fire Data: {fire_data}
- Water Resources: {water_resources}
- Weather Patterns: {weather_patterns}

Synthesize this into a concise risk assessment covering:
1. Drought Risk: based on precipitation, soil moisture, and temperature.
2. Fire Risk: based on active fires, risk level, temperature, and vegetation dryness.
3. Air Quality Risk: based on aerosol index, CO levels, and fire data.

Respond with a JSON object: {{"risk_assessment": "<your assessment>"}}"""

SIMPLIFIED_EXPLANATION = """You are an AI assistant that simplifies complex environmental satellite data for the average person.

Given the following environmental data for {location}, write a concise, easy-to-understand explanation of current conditions. Focus on the most impactful information and avoid technical jargon.

Air Quality (Aerosols & CO): {air_quality}
Soil Data: {soil_data}
Fire Detection: {fire_detection}
Water Resources: {water_resources}
Weather Patterns: {weather_patterns}
Surface Temperature: {temperature}
Additional Metrics: {additional_metrics}

Respond with a JSON object: {{"simplified_explanation": "<your explanation>"}}"""

ENVIRONMENTAL_SOLUTIONS = """You are an AI assistant that suggests actionable environmental solutions based on analyzed satellite data for a location.

Air Quality (Aerosols & CO): {air_quality}
Soil Data: {soil_data}
Fire Detection: {fire_detection}
Water Resources: {water_resources}
Weather Patterns: {weather_patterns}
Surface Temperature: {temperature}

Provide clear and concise mitigation measures.

Respond with a JSON object: {{"solutions": "<your solutions>"}}"""

HEALTH_ADVISORY = """You are a public health expert providing advice based on environmental satellite data for {location}.

Generate a concise health advisory focused on respiratory health, heat exposure, and risks from fires. Give actionable recommendations for the general public and for sensitive groups.

- Air Quality: aerosol index {aerosol_index} and CO {co}ppm.
- Temperature: current surface temperature {current_temp}°C.
- Fire Data: {active_fires} active fires, risk level '{fire_risk}'.

Respond with a JSON object: {{"health_advisory": "<your advisory>"}}"""


TEMPLATES = {
    "future-trends": FUTURE_TRENDS,
    "crop-recommendations": CROP_RECOMMENDATIONS,
    "risk-assessment": RISK_ASSESSMENT,
    "simplified-explanation": SIMPLIFIED_EXPLANATION,
    "environmental-solutions": ENVIRONMENTAL_SOLUTIONS,
    "health-advisory": HEALTH_ADVISORY,
}


__all__ = ["TEMPLATES"]
