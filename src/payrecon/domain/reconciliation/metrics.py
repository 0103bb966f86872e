"""Engine-level counters and rate histories."""

from __future__ import annotations

import threading
import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from payrecon.domain.model import (
        DiscrepancyResolution,
        DiscrepancyType,
        ReconciliationSummary,
        ResolutionAction,
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class MetricsSnapshot:
    """Point-in-time copy of an engine's metrics."""

    internal_ingested: int = 0
    external_ingested: int = 0
    runs: int = 0
    failed_runs: int = 0
    manual_resolutions: int = 0
    match_rate_history: tuple[float, ...] = ()
    resolution_rate_history: tuple[float, ...] = ()
    processing_time_history: tuple[float, ...] = ()
    discrepancy_type_counts: dict[DiscrepancyType, int] = field(default_factory=dict)
    resolution_action_counts: dict[ResolutionAction, int] = field(default_factory=dict)

    @property
    def average_match_rate(self) -> float:
        history = self.match_rate_history
        return sum(history) / len(history) if history else 0.0

    @property
    def average_processing_ms(self) -> float:
        history = self.processing_time_history
        return sum(history) / len(history) if history else 0.0


class ReconciliationMetrics:
    """Thread-safe accumulator; callers read it through ``snapshot``.

    Histories are bounded by ``history_limit`` and keep the most recent
    values.
    """

    def __init__(self, *, history_limit: int = 1000) -> None:
        self._lock = threading.Lock()
        self._history_limit = history_limit
        self._internal_ingested = 0
        self._external_ingested = 0
        self._runs = 0
        self._failed_runs = 0
        self._manual_resolutions = 0
        self._match_rates: list[float] = []
        self._resolution_rates: list[float] = []
        self._processing_times: list[float] = []
        self._types: Counter[DiscrepancyType] = Counter()
        self._actions: Counter[ResolutionAction] = Counter()

    def record_ingestion(self, *, internal: int = 0, external: int = 0) -> None:
        with self._lock:
            self._internal_ingested += internal
            self._external_ingested += external

    def record_run(self, summary: ReconciliationSummary) -> None:
        with self._lock:
            self._runs += 1
            self._append(self._match_rates, summary.match_rate)
            self._append(self._resolution_rates, summary.resolution_rate)
            self._append(self._processing_times, summary.timings.total_ms)
            self._types.update(summary.analysis.type_counts())
            self._actions.update(summary.resolution.action_counts())

    def record_failure(self, elapsed_ms: float) -> None:
        with self._lock:
            self._failed_runs += 1
            self._append(self._processing_times, elapsed_ms)

    def record_manual_resolution(self, resolution: DiscrepancyResolution) -> None:
        with self._lock:
            self._manual_resolutions += 1
            self._actions[resolution.action] += 1

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                internal_ingested=self._internal_ingested,
                external_ingested=self._external_ingested,
                runs=self._runs,
                failed_runs=self._failed_runs,
                manual_resolutions=self._manual_resolutions,
                match_rate_history=tuple(self._match_rates),
                resolution_rate_history=tuple(self._resolution_rates),
                processing_time_history=tuple(self._processing_times),
                discrepancy_type_counts=dict(self._types),
                resolution_action_counts=dict(self._actions),
            )

    def _append(self, history: list[float], value: float) -> None:
        history.append(value)
        if len(history) > self._history_limit:
            del history[: len(history) - self._history_limit]


class Stopwatch:
    """Millisecond timer for pipeline phases."""

    def __init__(self) -> None:
        self._started = time.perf_counter()
        self.laps: dict[str, float] = {}

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000

    @contextmanager
    def lap(self, phase: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            self.laps[phase] = (time.perf_counter() - started) * 1000
