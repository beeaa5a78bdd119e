from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional, Sequence

from ..entities import FailureReason, Location, SourceResult
from ..health import HealthRegistry
from ..providers.base import SourceClient


logger = logging.getLogger(__name__)

GRACE_SECONDS = 2.0


class SourceAcquirer:
    """Query every source concurrently and always return one result per source."""

    def __init__(
        self,
        sources: Sequence[SourceClient],
        *,
        timeout: float = 8.0,
        grace: float = GRACE_SECONDS,
        health: Optional[HealthRegistry] = None,
    ) -> None:
        self.sources = list(sources)
        self.timeout = timeout
        self.grace = grace
        self.health = health

    @property
    def deadline(self) -> float:
        return self.timeout + self.grace

    def acquire(self, location: Location) -> List[SourceResult]:
        if not self.sources:
            return []
        executor = ThreadPoolExecutor(max_workers=len(self.sources), thread_name_prefix="source")
        try:
            futures = {executor.submit(source.fetch, location): source.name for source in self.sources}
            done, _ = wait(futures, timeout=self.deadline)
            results = []
            for future, name in futures.items():
                if future not in done:
                    future.cancel()
                    logger.warning("Source %s did not answer within %.1fs", name, self.deadline)
                    results.append(
                        SourceResult.failed(name, FailureReason.TIMEOUT, f"no answer within {self.deadline:.1f}s")
                    )
                    continue
                try:
                    results.append(future.result())
                except Exception as exc:  # noqa: BLE001
                    logger.exception("Source %s raised unexpectedly", name)
                    results.append(SourceResult.failed(name, FailureReason.REQUEST_FAILED, str(exc)))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if self.health is not None:
            for result in results:
                if not result.succeeded and result.reason != FailureReason.UNCONFIGURED:
                    self.health.record_source_error(result.source)
        return results


__all__ = ["GRACE_SECONDS", "SourceAcquirer"]
