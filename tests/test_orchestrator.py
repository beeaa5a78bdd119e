from __future__ import annotations

import random
import time

import pytest

from terrapulse.entities import Location, QualityGrade
from terrapulse.health import HealthRegistry
from terrapulse.insights.generators import (
    FutureTrendsGenerator,
    InsightContext,
    RiskAssessmentGenerator,
    default_generators,
)
from terrapulse.services.orchestrator import InsightOrchestrator
from terrapulse.services.synthesis import DataSynthesizer


SITE = Location(lat=34.05, lng=-118.24, name="Test Site")
TASKS = {
    "future_predictions",
    "crop_recommendations",
    "risk_assessment",
    "simplified_explanation",
    "environmental_solutions",
    "health_advisory",
}


@pytest.fixture
def snapshot(measured_results, fixed_now):
    return DataSynthesizer(rng=random.Random(5), clock=lambda: fixed_now).synthesize(measured_results)


def make_orchestrator(service, **kwargs) -> InsightOrchestrator:
    kwargs.setdefault("task_timeout", 2.0)
    return InsightOrchestrator(default_generators(service), **kwargs)


def test_all_tasks_generated(text_service, snapshot):
    report = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.EXCELLENT)

    assert set(report.insights) == TASKS
    assert report.insights["risk_assessment"] == "risk-assessment text"
    assert report.metadata.degraded_tasks == ()
    assert report.metadata.cacheable
    assert [outcome.ok for outcome in report.metadata.outcomes] == [True] * 6
    assert report.summary.startswith("Environmental assessment for Test Site")
    assert sorted(text_service.calls) == sorted(
        ["future-trends", "crop-recommendations", "risk-assessment",
         "simplified-explanation", "environmental-solutions", "health-advisory"]
    )


def test_single_failure_is_replaced_by_its_fallback(text_service, snapshot):
    text_service.fail.add("risk-assessment")
    health = HealthRegistry()

    report = make_orchestrator(text_service, health=health).orchestrate(
        snapshot, SITE, QualityGrade.GOOD
    )

    assert report.insights["risk_assessment"] == RiskAssessmentGenerator.fallback
    assert "temporarily unavailable" in report.insights["risk_assessment"]
    generated = [name for name in TASKS if report.insights[name].endswith(" text")]
    assert len(generated) == 5
    assert report.metadata.degraded_tasks == ("risk_assessment",)
    assert health.snapshot()["generation"] == {"risk_assessment": 1}


def test_total_generation_outage_still_yields_complete_report(text_service, snapshot):
    text_service.fail.update(
        ["future-trends", "crop-recommendations", "risk-assessment",
         "simplified-explanation", "environmental-solutions", "health-advisory"]
    )

    report = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.GOOD)

    assert set(report.metadata.degraded_tasks) == TASKS
    for name in TASKS:
        assert report.insights[name]
        assert "temporarily unavailable" in report.insights[name]
    assert "Test Site" in report.insights["simplified_explanation"]
    assert report.summary
    assert not report.metadata.offline


def test_slow_task_is_bounded_by_its_deadline(text_service, snapshot):
    text_service.delays["health-advisory"] = 3.0
    started = time.monotonic()

    report = make_orchestrator(text_service, task_timeout=0.3).orchestrate(
        snapshot, SITE, QualityGrade.GOOD
    )

    assert time.monotonic() - started < 2.0
    assert report.metadata.degraded_tasks == ("health_advisory",)
    assert report.insights["future_predictions"] == "future-trends text"
    timed_out = [outcome for outcome in report.metadata.outcomes if not outcome.ok]
    assert "timed out" in timed_out[0].error


def test_failed_task_is_retried(text_service, snapshot):
    text_service.fail_times["future-trends"] = 1

    report = make_orchestrator(text_service, retries=1).orchestrate(snapshot, SITE, QualityGrade.GOOD)

    assert report.insights["future_predictions"] == "future-trends text"
    assert text_service.calls.count("future-trends") == 2


def test_without_retries_a_failure_is_final(text_service, snapshot):
    text_service.fail_times["future-trends"] = 1

    report = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.GOOD)

    assert report.insights["future_predictions"] == FutureTrendsGenerator.fallback
    assert text_service.calls.count("future-trends") == 1


def test_poor_quality_report_is_not_cacheable(text_service, snapshot):
    report = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.POOR)

    assert report.metadata.data_quality == QualityGrade.POOR
    assert not report.metadata.cacheable


def test_summary_does_not_depend_on_generation(text_service, snapshot):
    healthy = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.GOOD)
    text_service.fail.update(["future-trends", "health-advisory"])
    degraded = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.GOOD)

    assert healthy.summary == degraded.summary


def test_orchestration_error_yields_offline_report(text_service, snapshot):
    class BrokenGenerator(FutureTrendsGenerator):
        def build_input(self, context):
            raise RuntimeError("projection failed")

    generators = [BrokenGenerator(text_service)] + default_generators(text_service)[1:]
    report = InsightOrchestrator(generators).orchestrate(snapshot, SITE, QualityGrade.EXCELLENT)

    assert report.metadata.offline
    assert not report.metadata.cacheable
    assert report.metadata.data_quality == QualityGrade.EXCELLENT
    for name in TASKS:
        assert "currently offline" in report.insights[name]
    assert text_service.calls == []


def test_context_failure_yields_offline_report(text_service, snapshot, monkeypatch):
    original = InsightContext.build
    calls = []

    def build_once(location, snapshot):
        calls.append(location)
        if len(calls) == 1:
            raise ValueError("unformattable snapshot")
        return original(location, snapshot)

    monkeypatch.setattr(InsightContext, "build", staticmethod(build_once))

    report = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.GOOD)

    assert report.metadata.offline
    assert len(calls) == 2
    assert text_service.calls == []


def test_offline_report_defaults_to_poor(text_service, snapshot):
    report = make_orchestrator(text_service).offline_report(snapshot, SITE)

    assert report.metadata.data_quality == QualityGrade.POOR
    assert set(report.metadata.degraded_tasks) == TASKS
    assert report.to_dict()["metadata"]["offline"] is True


def test_generator_names_must_be_unique(text_service):
    generators = default_generators(text_service)

    with pytest.raises(ValueError):
        InsightOrchestrator(generators + generators[:1])


def test_report_serializes_flat_payload(text_service, snapshot):
    report = make_orchestrator(text_service).orchestrate(snapshot, SITE, QualityGrade.GOOD)

    payload = report.to_dict()

    assert payload["location"] == {"lat": 34.05, "lng": -118.24, "name": "Test Site"}
    assert payload["fire"]["fire_risk"] == "medium"
    assert payload["last_updated"].endswith("Z")
    assert len(payload["weather"]["forecast"]) == 5
    assert payload["health_advisory"] == "health-advisory text"
    assert payload["metadata"]["data_quality"] == "good"
    assert payload["metadata"]["generated_at"].endswith("Z")
