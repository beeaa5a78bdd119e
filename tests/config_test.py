from __future__ import annotations

import pytest

from terrapulse.config import PipelineConfig
from terrapulse.health import HealthRegistry
from terrapulse.providers.geocoder import NominatimGeocoder
from terrapulse.services.location_data import build_location_service


def test_defaults_without_environment():
    config = PipelineConfig.from_env({})

    assert config.source_timeout == 8.0
    assert config.generation_timeout == 20.0
    assert config.cache_ttl == 300.0
    assert config.cache_max_entries == 100
    assert config.geocoder_enabled
    assert config.firms_map_key is None


def test_environment_overrides():
    config = PipelineConfig.from_env(
        {
            "TERRAPULSE_SOURCE_TIMEOUT": "3.5",
            "TERRAPULSE_CACHE_MAX_ENTRIES": "10",
            "TERRAPULSE_GEOCODER_ENABLED": "0",
            "FIRMS_MAP_KEY": "abc",
            "OPENROUTER_MODEL": "some/model",
        }
    )

    assert config.source_timeout == 3.5
    assert config.cache_max_entries == 10
    assert not config.geocoder_enabled
    assert config.firms_map_key == "abc"
    assert config.openrouter_model == "some/model"


def test_invalid_number_is_reported():
    with pytest.raises(ValueError, match="TERRAPULSE_CACHE_TTL"):
        PipelineConfig.from_env({"TERRAPULSE_CACHE_TTL": "soon"})


def test_service_is_wired_from_config():
    config = PipelineConfig.from_env(
        {
            "TERRAPULSE_SOURCE_TIMEOUT": "4",
            "TERRAPULSE_CACHE_TTL": "10",
            "TERRAPULSE_CACHE_MAX_ENTRIES": "7",
        }
    )

    service = build_location_service(config)

    names = [source.name for source in service.acquirer.sources]
    assert names == ["nasa-power", "nasa-firms", "openaq", "nominatim"]
    assert all(source.request_config.timeout == 4.0 for source in service.acquirer.sources)
    assert service.cache.ttl == 10.0
    assert service.cache.max_entries == 7
    assert len(service.orchestrator.generators) == 6


def test_geocoder_can_be_disabled():
    service = build_location_service(PipelineConfig.from_env({"TERRAPULSE_GEOCODER_ENABLED": "no"}))

    assert not any(isinstance(source, NominatimGeocoder) for source in service.acquirer.sources)


def test_service_shares_the_given_health_registry():
    health = HealthRegistry()

    service = build_location_service(PipelineConfig.from_env({}), health=health)

    assert service.health is health
    assert service.acquirer.health is health
    assert service.orchestrator.health is health
