"""Runtime configuration for the location data pipeline."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional


def _env_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number, got {raw!r}") from exc


def _env_int(environ: Mapping[str, str], name: str, default: int) -> int:
    return int(_env_float(environ, name, default))


def _env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    raw = environ.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class PipelineConfig:
    source_timeout: float = 8.0
    source_retries: int = 0
    generation_timeout: float = 20.0
    generation_retries: int = 0
    soft_deadline: float = 30.0
    cache_ttl: float = 300.0
    cache_max_entries: int = 100
    cache_precision: int = 3
    max_data_age_hours: float = 24.0
    nasa_power_api_key: Optional[str] = None
    firms_map_key: Optional[str] = None
    firms_bbox_degrees: float = 0.5
    openaq_api_key: Optional[str] = None
    openaq_radius_m: int = 25_000
    geocoder_enabled: bool = True
    nominatim_user_agent: str = "terrapulse/1.0"
    openrouter_api_key: Optional[str] = None
    openrouter_model: Optional[str] = None
    openrouter_url: str = "https://openrouter.ai/api/v1/chat/completions"
    openrouter_app_name: Optional[str] = None
    openrouter_app_url: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PipelineConfig":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            source_timeout=_env_float(env, "TERRAPULSE_SOURCE_TIMEOUT", defaults.source_timeout),
            source_retries=_env_int(env, "TERRAPULSE_SOURCE_RETRIES", defaults.source_retries),
            generation_timeout=_env_float(env, "TERRAPULSE_GENERATION_TIMEOUT", defaults.generation_timeout),
            generation_retries=_env_int(env, "TERRAPULSE_GENERATION_RETRIES", defaults.generation_retries),
            soft_deadline=_env_float(env, "TERRAPULSE_SOFT_DEADLINE", defaults.soft_deadline),
            cache_ttl=_env_float(env, "TERRAPULSE_CACHE_TTL", defaults.cache_ttl),
            cache_max_entries=_env_int(env, "TERRAPULSE_CACHE_MAX_ENTRIES", defaults.cache_max_entries),
            cache_precision=_env_int(env, "TERRAPULSE_CACHE_PRECISION", defaults.cache_precision),
            max_data_age_hours=_env_float(env, "TERRAPULSE_MAX_DATA_AGE_HOURS", defaults.max_data_age_hours),
            nasa_power_api_key=env.get("NASA_POWER_API_KEY") or None,
            firms_map_key=env.get("FIRMS_MAP_KEY") or None,
            firms_bbox_degrees=_env_float(env, "FIRMS_BBOX_DEGREES", defaults.firms_bbox_degrees),
            openaq_api_key=env.get("OPENAQ_API_KEY") or None,
            openaq_radius_m=_env_int(env, "OPENAQ_RADIUS_M", defaults.openaq_radius_m),
            geocoder_enabled=_env_flag(env, "TERRAPULSE_GEOCODER_ENABLED", defaults.geocoder_enabled),
            nominatim_user_agent=env.get("NOMINATIM_USER_AGENT") or defaults.nominatim_user_agent,
            openrouter_api_key=env.get("OPENROUTER_API_KEY") or None,
            openrouter_model=env.get("OPENROUTER_MODEL") or None,
            openrouter_url=env.get("OPENROUTER_URL") or defaults.openrouter_url,
            openrouter_app_name=env.get("OPENROUTER_APP_NAME") or None,
            openrouter_app_url=env.get("OPENROUTER_APP_URL") or None,
        )


__all__ = ["PipelineConfig"]
