from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import requests
from requests import Response
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..entities import FailureReason, Location, SourceResult


class ProviderError(RuntimeError):
    """Base provider error, carries the failure category reported to callers."""

    reason = FailureReason.REQUEST_FAILED

    def __init__(self, message: str, reason: Optional[FailureReason] = None) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class QuotaExceeded(ProviderError):
    """Raised when a provider reports a quota/usage limit issue."""

    reason = FailureReason.HTTP_ERROR


class SourceUnconfigured(ProviderError):
    """Raised when a provider needs a credential that was not supplied."""

    reason = FailureReason.UNCONFIGURED


@dataclass
class RequestConfig:
    timeout: float = 8.0
    retries: int = 0
    backoff_factor: float = 0.3
    status_forcelist: Iterable[int] = (500, 502, 503, 504)


class SourceClient:
    """Base class that adds retry/timeouts for HTTP data sources.

    Subclasses implement :meth:`_fetch_fields` and may raise
    :class:`ProviderError`; :meth:`fetch` turns every failure into a
    ``SourceResult.failed`` value so nothing escapes the client.
    """

    name = "source"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        request_config: Optional[RequestConfig] = None,
    ) -> None:
        self.request_config = request_config or RequestConfig()
        self.session = session or self._build_session(self.request_config)
        self._log = logging.getLogger(self.__class__.__name__)

    def fetch(self, location: Location) -> SourceResult:
        try:
            fields, observed_at = self._fetch_fields(location)
        except SourceUnconfigured as exc:
            self._log.info("%s disabled: %s", self.name, exc)
            return SourceResult.failed(self.name, exc.reason, str(exc))
        except ProviderError as exc:
            self._log.warning("%s failed: %s", self.name, exc)
            return SourceResult.failed(self.name, exc.reason, str(exc))
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
            self._log.error("%s returned an unexpected payload", self.name, exc_info=exc)
            return SourceResult.failed(self.name, FailureReason.MALFORMED, str(exc))
        return SourceResult.ok(self.name, fields, observed_at=observed_at)

    def _fetch_fields(self, location: Location):
        raise NotImplementedError

    def _build_session(self, config: RequestConfig) -> requests.Session:
        session = requests.Session()
        if config.retries > 0:
            retry = Retry(
                total=config.retries,
                backoff_factor=config.backoff_factor,
                status_forcelist=tuple(config.status_forcelist),
                allowed_methods=frozenset({"GET"}),
                raise_on_status=False,
            )
            adapter = HTTPAdapter(max_retries=retry)
            session.mount("https://", adapter)
            session.mount("http://", adapter)
        return session

    def _handle_response(self, response: Response) -> Response:
        if response.status_code == 429:
            self._log.warning("Quota exceeded: %s", response.text[:200])
            raise QuotaExceeded("quota exceeded")
        if response.status_code >= 400:
            self._log.error("Provider returned %s: %s", response.status_code, response.text[:200])
            raise ProviderError(f"HTTP {response.status_code}", FailureReason.HTTP_ERROR)
        return response

    def _request(self, method: str, url: str, **kwargs) -> Response:
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.request_config.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            self._log.error("Request timed out", exc_info=exc)
            raise ProviderError("timeout", FailureReason.TIMEOUT) from exc
        except requests.RequestException as exc:
            self._log.error("Request failed", exc_info=exc)
            raise ProviderError("request failed") from exc
        return self._handle_response(response)

    def _json(self, response: Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            self._log.error("Failed to decode JSON", exc_info=exc)
            raise ProviderError("invalid json", FailureReason.MALFORMED) from exc


def safe_float(value: Optional[object]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def drop_missing(values: Dict[str, Optional[Any]]) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


__all__ = [
    "ProviderError",
    "QuotaExceeded",
    "RequestConfig",
    "SourceClient",
    "SourceUnconfigured",
    "drop_missing",
    "safe_float",
]
