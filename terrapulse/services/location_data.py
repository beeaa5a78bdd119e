from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Optional

from ..cache import ResponseCache, cache_key
from ..config import PipelineConfig
from ..entities import InvalidLocation, Location, Report
from ..health import HealthRegistry
from ..insights.generators import default_generators
from ..insights.prompts import TEMPLATES
from ..providers.base import RequestConfig
from ..providers.firms import FirmsClient
from ..providers.geocoder import NominatimGeocoder
from ..providers.nasa_power import NasaPowerClient
from ..providers.openaq import OpenAQClient
from ..providers.textgen import TextGenerationClient
from .acquisition import SourceAcquirer
from .orchestrator import InsightOrchestrator
from .quality import DataQualityScorer
from .synthesis import DataSynthesizer, place_name


class TotalAcquisitionFailure(RuntimeError):
    """Raised when not even an offline report could be assembled."""


class LocationDataService:
    def __init__(
        self,
        *,
        acquirer: SourceAcquirer,
        orchestrator: InsightOrchestrator,
        synthesizer: Optional[DataSynthesizer] = None,
        scorer: Optional[DataQualityScorer] = None,
        cache: Optional[ResponseCache] = None,
        health: Optional[HealthRegistry] = None,
        precision: int = 3,
        soft_deadline: float = 30.0,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.acquirer = acquirer
        self.orchestrator = orchestrator
        self.synthesizer = synthesizer if synthesizer is not None else DataSynthesizer()
        self.scorer = scorer if scorer is not None else DataQualityScorer()
        self.cache = cache if cache is not None else ResponseCache()
        self.health = health
        self.precision = precision
        self.soft_deadline = soft_deadline
        self._log = logger or logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def get_location_data(self, location: Location) -> Report:
        if not isinstance(location, Location):
            raise InvalidLocation("a Location with lat and lng is required")
        started = time.monotonic()
        try:
            results = self.acquirer.acquire(location)
            if not location.name:
                location = location.with_name(place_name(results))
            snapshot = self.synthesizer.synthesize(results)
            quality = self.scorer.score(snapshot)
        except Exception as exc:  # noqa: BLE001
            self._log.error("Acquisition failed for %s", location.display_name, exc_info=exc)
            return self._offline(location, started)

        key = cache_key(location, snapshot.last_updated, self.precision)
        cached = self.cache.get(key)
        if cached is not None:
            self._log.debug("Cache hit for %s", key)
            self._publish_cache_stats()
            return cached

        sources = {result.source: result.status for result in results}
        report = self.orchestrator.orchestrate(
            snapshot, location, quality, sources=sources, started=started
        )
        if not self.cache.put(key, report):
            self._log.info("Report for %s not cached (quality %s)", key, quality.value)
        self._finish(report, started)
        return report

    # Helpers ------------------------------------------------------------
    def _offline(self, location: Location, started: float) -> Report:
        try:
            snapshot = self.synthesizer.synthesize([])
            report = self.orchestrator.offline_report(snapshot, location, started=started)
        except Exception as exc:
            raise TotalAcquisitionFailure(f"no report could be built for {location.display_name}") from exc
        self._finish(report, started)
        return report

    def _finish(self, report: Report, started: float) -> None:
        elapsed = time.monotonic() - started
        if elapsed > self.soft_deadline:
            self._log.warning(
                "Report for %s took %.1fs (soft deadline %.1fs)",
                report.location.display_name,
                elapsed,
                self.soft_deadline,
            )
        if self.health is not None:
            self.health.record_report(report.metadata.generated_at)
        self._publish_cache_stats()

    def _publish_cache_stats(self) -> None:
        if self.health is not None:
            self.health.set_cache_stats(self.cache.stats())


def build_location_service(
    config: Optional[PipelineConfig] = None,
    health: Optional[HealthRegistry] = None,
) -> LocationDataService:
    config = config or PipelineConfig.from_env()
    health = health if health is not None else HealthRegistry()
    request_config = RequestConfig(timeout=config.source_timeout, retries=config.source_retries)

    sources = [
        NasaPowerClient(api_key=config.nasa_power_api_key, request_config=request_config),
        FirmsClient(
            config.firms_map_key,
            bbox_degrees=config.firms_bbox_degrees,
            request_config=request_config,
        ),
        OpenAQClient(
            config.openaq_api_key,
            radius_m=config.openaq_radius_m,
            request_config=request_config,
        ),
    ]
    if config.geocoder_enabled:
        sources.append(
            NominatimGeocoder(user_agent=config.nominatim_user_agent, request_config=request_config)
        )

    text_service = TextGenerationClient(
        templates=TEMPLATES,
        api_key=config.openrouter_api_key,
        model=config.openrouter_model,
        url=config.openrouter_url,
        timeout=config.generation_timeout,
        app_name=config.openrouter_app_name,
        app_url=config.openrouter_app_url,
    )
    orchestrator = InsightOrchestrator(
        default_generators(text_service),
        task_timeout=config.generation_timeout,
        retries=config.generation_retries,
        health=health,
    )
    return LocationDataService(
        acquirer=SourceAcquirer(sources, timeout=config.source_timeout, health=health),
        orchestrator=orchestrator,
        synthesizer=DataSynthesizer(),
        scorer=DataQualityScorer(max_age=timedelta(hours=config.max_data_age_hours)),
        cache=ResponseCache(ttl=config.cache_ttl, max_entries=config.cache_max_entries),
        health=health,
        precision=config.cache_precision,
        soft_deadline=config.soft_deadline,
    )


__all__ = ["LocationDataService", "TotalAcquisitionFailure", "build_location_service"]
