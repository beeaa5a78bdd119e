"""App configuration for the REST API."""
from __future__ import annotations

from pathlib import Path

from django.apps import AppConfig


class ApiConfig(AppConfig):
    name = "backend.api"
    label = "api"
    # namespace package, so Django cannot derive the path on its own
    path = str(Path(__file__).resolve().parent)
