from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from ..entities import (
    EnvironmentalSnapshot,
    GenerationOutcome,
    Location,
    QualityGrade,
    Report,
    ReportMetadata,
)
from ..health import HealthRegistry
from ..insights.formatting import generate_summary
from ..insights.generators import InsightContext, InsightGenerator


class InsightOrchestrator:
    """Fan the snapshot out to every registered generator and join them all.

    Every task settles (success, error or deadline) before the report is
    assembled; a failed task is replaced by its fallback sentence and listed in
    ``metadata.degraded_tasks``. The summary never depends on generation.
    """

    def __init__(
        self,
        generators: Sequence[InsightGenerator],
        *,
        task_timeout: float = 20.0,
        retries: int = 0,
        health: Optional[HealthRegistry] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(tz=timezone.utc),
        logger: Optional[logging.Logger] = None,
    ) -> None:
        names = [generator.name for generator in generators]
        if len(set(names)) != len(names):
            raise ValueError(f"generator names must be unique: {names}")
        self.generators: List[InsightGenerator] = list(generators)
        self.task_timeout = task_timeout
        self.retries = max(0, retries)
        self.health = health
        self._clock = clock
        self._log = logger or logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def orchestrate(
        self,
        snapshot: EnvironmentalSnapshot,
        location: Location,
        quality: QualityGrade,
        *,
        sources: Optional[Mapping[str, str]] = None,
        started: Optional[float] = None,
    ) -> Report:
        started = time.monotonic() if started is None else started
        try:
            context = InsightContext.build(location, snapshot)
            outcomes = self._run_all(context)
        except Exception:  # noqa: BLE001
            self._log.exception("Insight orchestration failed, returning offline report")
            return self.offline_report(snapshot, location, quality=quality, sources=sources, started=started)

        insights: Dict[str, str] = {}
        degraded: List[str] = []
        for generator in self.generators:
            outcome = outcomes[generator.name]
            if outcome.ok:
                insights[generator.name] = outcome.text
                continue
            degraded.append(generator.name)
            insights[generator.name] = generator.fallback_text(context)
            self._log.warning("Insight task %s degraded: %s", generator.name, outcome.error)
            if self.health is not None:
                self.health.record_generation_error(generator.name)

        metadata = ReportMetadata(
            generated_at=self._clock(),
            latency_seconds=time.monotonic() - started,
            data_quality=quality,
            cacheable=quality != QualityGrade.POOR,
            degraded_tasks=tuple(degraded),
            outcomes=tuple(outcomes[generator.name] for generator in self.generators),
            sources=dict(sources or {}),
        )
        return Report(
            location=location,
            snapshot=snapshot,
            summary=generate_summary(context.location_name, snapshot),
            insights=insights,
            metadata=metadata,
        )

    def offline_report(
        self,
        snapshot: EnvironmentalSnapshot,
        location: Location,
        *,
        quality: QualityGrade = QualityGrade.POOR,
        sources: Optional[Mapping[str, str]] = None,
        started: Optional[float] = None,
    ) -> Report:
        started = time.monotonic() if started is None else started
        context = InsightContext.build(location, snapshot)
        metadata = ReportMetadata(
            generated_at=self._clock(),
            latency_seconds=time.monotonic() - started,
            data_quality=quality,
            cacheable=False,
            degraded_tasks=tuple(generator.name for generator in self.generators),
            outcomes=tuple(
                GenerationOutcome.failed(generator.name, "system offline") for generator in self.generators
            ),
            sources=dict(sources or {}),
            offline=True,
        )
        return Report(
            location=location,
            snapshot=snapshot,
            summary=generate_summary(context.location_name, snapshot),
            insights={generator.name: generator.offline_text(context) for generator in self.generators},
            metadata=metadata,
        )

    # Helpers ------------------------------------------------------------
    def _run_all(self, context: InsightContext) -> Dict[str, GenerationOutcome]:
        if not self.generators:
            return {}
        inputs = {generator.name: generator.build_input(context) for generator in self.generators}
        executor = ThreadPoolExecutor(
            max_workers=len(self.generators), thread_name_prefix="insight"
        )
        try:
            futures = {
                executor.submit(self._run_task, generator, inputs[generator.name]): generator.name
                for generator in self.generators
            }
            done, pending = wait(futures, timeout=self._stage_timeout())
            outcomes: Dict[str, GenerationOutcome] = {}
            for future in done:
                outcomes[futures[future]] = future.result()
            for future in pending:
                future.cancel()
                name = futures[future]
                outcomes[name] = GenerationOutcome.failed(
                    name, f"timed out after {self._stage_timeout():.1f}s", self._stage_timeout()
                )
            return outcomes
        finally:
            # stragglers keep running in the background; their results are discarded
            executor.shutdown(wait=False, cancel_futures=True)

    def _stage_timeout(self) -> float:
        return self.task_timeout * (self.retries + 1)

    def _run_task(self, generator: InsightGenerator, task_input: Dict) -> GenerationOutcome:
        started = time.monotonic()
        error = "unknown error"
        for attempt in range(self.retries + 1):
            try:
                text = generator.generate(task_input)
            except Exception as exc:  # noqa: BLE001
                error = f"{exc.__class__.__name__}: {exc}"
                self._log.debug("Task %s attempt %d failed: %s", generator.name, attempt + 1, error)
                continue
            return GenerationOutcome.succeeded(generator.name, text, time.monotonic() - started)
        return GenerationOutcome.failed(generator.name, error, time.monotonic() - started)


__all__ = ["InsightOrchestrator"]
