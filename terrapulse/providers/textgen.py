"""Generative text service backed by an OpenAI-compatible chat endpoint."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import requests
from requests import RequestException


logger = logging.getLogger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

SYSTEM_PROMPT = (
    "You are an environmental analyst. Always answer with a single JSON object "
    "using exactly the key requested in the instructions and a plain-text value."
)


class GenerationError(RuntimeError):
    """Raised when the text service cannot produce usable output."""


class TextGenerationClient:
    """Uniform ``generate(template_id, structured_input) -> text`` contract.

    Templates are looked up by id and the structured input is interpolated
    verbatim with ``str.format_map``.
    """

    def __init__(
        self,
        *,
        templates: Mapping[str, str],
        api_key: Optional[str],
        model: Optional[str],
        url: str = OPENROUTER_URL,
        timeout: float = 20.0,
        app_name: Optional[str] = None,
        app_url: Optional[str] = None,
        temperature: float = 0.4,
        max_tokens: int = 700,
    ) -> None:
        self.templates = dict(templates)
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self.app_name = app_name
        self.app_url = app_url
        self.temperature = temperature
        self.max_tokens = max_tokens

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.model)

    def render(self, template_id: str, structured_input: Mapping[str, Any]) -> str:
        try:
            template = self.templates[template_id]
        except KeyError as exc:
            raise GenerationError(f"unknown template {template_id!r}") from exc
        try:
            return template.format_map(dict(structured_input))
        except (KeyError, IndexError, ValueError) as exc:
            raise GenerationError(f"template {template_id!r} could not be rendered: {exc}") from exc

    def generate(self, template_id: str, structured_input: Mapping[str, Any]) -> str:
        prompt = self.render(template_id, structured_input)
        if not self.configured:
            raise GenerationError("text generation credentials are not configured")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if self.app_url:
            headers["HTTP-Referer"] = self.app_url
        if self.app_name:
            headers["X-Title"] = self.app_name

        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "response_format": {"type": "json_object"},
        }

        try:
            response = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            logger.warning("Text generation for %s timed out after %.1fs", template_id, self.timeout)
            raise GenerationError(f"{template_id}: provider timed out") from exc
        except (RequestException, ValueError) as exc:
            logger.error("Text generation for %s failed", template_id, exc_info=exc)
            raise GenerationError(f"{template_id}: provider error: {exc}") from exc
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise GenerationError("Unexpected chat completion response structure") from exc
        if not isinstance(content, str) or not content.strip():
            raise GenerationError(f"{template_id}: empty completion")
        return content.strip()


__all__ = ["GenerationError", "OPENROUTER_URL", "TextGenerationClient"]
