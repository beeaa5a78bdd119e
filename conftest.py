from __future__ import annotations

import json
import os
import threading
import time
from datetime import datetime, timezone

import django
import pytest
import requests_mock as requests_mock_lib


os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret")
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.settings")

django.setup()

from terrapulse.entities import SourceResult  # noqa: E402
from terrapulse.insights.generators import GENERATOR_CLASSES  # noqa: E402
from terrapulse.providers.textgen import GenerationError  # noqa: E402


FIXED_NOW = datetime(2024, 6, 15, 12, 30, tzinfo=timezone.utc)


class ScriptedTextService:
    """Answers every template with a well-formed JSON object unless told otherwise."""

    output_fields = {cls.template_id: cls.output_field for cls in GENERATOR_CLASSES}

    def __init__(self) -> None:
        self.fail = set()
        self.fail_times = {}
        self.delays = {}
        self.calls = []
        self._lock = threading.Lock()

    def generate(self, template_id, structured_input):
        with self._lock:
            self.calls.append(template_id)
            attempt = self.calls.count(template_id)
        delay = self.delays.get(template_id)
        if delay:
            time.sleep(delay)
        if template_id in self.fail or attempt <= self.fail_times.get(template_id, 0):
            raise GenerationError(f"{template_id}: scripted failure")
        return json.dumps({self.output_fields[template_id]: f"{template_id} text"})


@pytest.fixture()
def requests_mock():
    with requests_mock_lib.Mocker() as mocker:
        yield mocker


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def text_service() -> ScriptedTextService:
    return ScriptedTextService()


@pytest.fixture()
def measured_results():
    """One result per source with every scored field measured."""
    observed = datetime(2024, 6, 15, tzinfo=timezone.utc)
    return [
        SourceResult.ok(
            "nasa-power",
            {
                "weather.current_temp_c": 24.3,
                "weather.max_temp_c": 29.1,
                "weather.min_temp_c": 18.4,
                "water.precipitation_mm": 3.2,
                "soil.moisture": 0.42,
                "soil.temperature": 21.7,
            },
            observed_at=observed,
        ),
        SourceResult.ok("nasa-firms", {"fire.active_fires": 3}, observed_at=observed),
        SourceResult.ok(
            "openaq",
            {"air_quality.aerosol_index": 0.18, "air_quality.co": 0.4},
            observed_at=observed,
        ),
    ]
