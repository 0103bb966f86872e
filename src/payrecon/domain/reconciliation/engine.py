"""Reconciliation engine orchestrating ingest, match, analyze, resolve and report.

Responsibilities:
- own the record store, run state and the per-role policies
- run one reconciliation at a time on a dedicated run thread
- fan pair scoring out over a bounded worker pool
- publish progress events through the dispatcher
- keep completed summaries and manual resolution overrides for reporting

State errors (a second run, ingestion during a run) come back as rejected
result objects. Faults inside a run move the engine to ERROR and surface as a
``ReconciliationRunError`` on the run's future; nothing reaches history.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeAlias, TypeVar
from uuid import uuid4

from payrecon.domain.errors import ReconciliationRunError, UnknownDiscrepancyError
from payrecon.domain.model import ReconciliationSummary, ReportKind, RunState, RunTimings
from payrecon.domain.store import (
    IngestionResult,
    RecordSnapshot,
    RecordStore,
    StoreUpdate,
)

from .analysis import ReconciliationPolicy, StandardReconciliationPolicy, analyze_discrepancies
from .events import DEFAULT_QUEUE_SIZE, EventDispatcher, EventListener
from .matching import MatchingPolicy, StandardMatchingPolicy, match_records
from .metrics import MetricsSnapshot, ReconciliationMetrics, Stopwatch
from .reporting import DetailedReportingPolicy, ReportingPolicy
from .resolution import (
    AutomaticResolutionPolicy,
    ResolutionPolicy,
    record_manual_resolution,
    resolve_discrepancies,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from concurrent.futures import Future
    from types import TracebackType
    from uuid import UUID

    from payrecon.domain.model import (
        Discrepancy,
        DiscrepancyResolution,
        ExternalRecord,
        InternalRecord,
        ReconciliationReport,
        ResolutionAction,
    )

log = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 1000
SUBMIT_REJECTED = "Cannot start run: engine is shutting down"

RecordSet: TypeAlias = "tuple[Iterable[InternalRecord], Iterable[ExternalRecord]]"

T = TypeVar("T")


@dataclass(frozen=True, slots=True, kw_only=True)
class RunStartResult:
    accepted: bool
    message: str
    future: Future[ReconciliationSummary] | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class BatchStartResult:
    accepted: bool
    message: str
    future: Future[tuple[ReconciliationSummary, ...]] | None = None


@dataclass(frozen=True, slots=True)
class _RunPolicies:
    matching: MatchingPolicy
    reconciliation: ReconciliationPolicy
    resolution: ResolutionPolicy


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _snapshot_of(
    internal: Iterable[InternalRecord], external: Iterable[ExternalRecord]
) -> RecordSnapshot:
    store = RecordStore()
    internal_update = store.add_internal(internal)
    external_update = store.add_external(external)
    dropped = internal_update.rejected + external_update.rejected
    if dropped:
        log.info("Dropped %s invalid records from batch record set", dropped)
    return store.snapshot()


class ReconciliationEngine:
    """In-memory, single-node reconciliation engine.

    Use as a context manager, or call ``shutdown`` when done, so that the run
    thread, the scoring pool and the event dispatcher are released.
    """

    def __init__(
        self,
        engine_id: str | None = None,
        *,
        matching_policy: MatchingPolicy | None = None,
        reconciliation_policy: ReconciliationPolicy | None = None,
        resolution_policy: ResolutionPolicy | None = None,
        reporting_policy: ReportingPolicy | None = None,
        max_workers: int | None = None,
        event_queue_size: int = DEFAULT_QUEUE_SIZE,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> None:
        self.engine_id = engine_id or f"engine-{uuid4().hex[:8]}"
        self._matching_policy: MatchingPolicy = matching_policy or StandardMatchingPolicy()
        self._reconciliation_policy: ReconciliationPolicy = (
            reconciliation_policy or StandardReconciliationPolicy()
        )
        self._resolution_policy: ResolutionPolicy = resolution_policy or AutomaticResolutionPolicy()
        self._reporting_policy: ReportingPolicy = reporting_policy or DetailedReportingPolicy()

        self._store = RecordStore()
        self._metrics = ReconciliationMetrics(history_limit=history_limit)
        self._history: deque[ReconciliationSummary] = deque(maxlen=history_limit)
        self._overrides: dict[UUID, DiscrepancyResolution] = {}

        self._lock = threading.Lock()
        self._state = RunState.IDLE
        self._closed = False

        self._dispatcher = EventDispatcher(self.engine_id, max_queue_size=event_queue_size)
        self._run_executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"payrecon-run-{self.engine_id}"
        )
        # ThreadPoolExecutor sizes itself to min(32, cpu_count + 4) when max_workers is None.
        self._scoring_pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=f"payrecon-score-{self.engine_id}"
        )

    # -- lifecycle -----------------------------------------------------------

    def __enter__(self) -> ReconciliationEngine:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.shutdown()

    def shutdown(self, *, wait: bool = True) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._run_executor.shutdown(wait=wait)
        self._scoring_pool.shutdown(wait=wait)
        self._dispatcher.close(wait=wait)
        log.debug("Engine %s shut down", self.engine_id)

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    def get_state(self) -> RunState:
        return self.state

    # -- listeners -----------------------------------------------------------

    def add_listener(self, listener: EventListener) -> None:
        self._dispatcher.add_listener(listener)

    def remove_listener(self, listener: EventListener) -> bool:
        return self._dispatcher.remove_listener(listener)

    def flush_events(self, timeout: float | None = None) -> bool:
        """Wait for queued events to reach listeners."""

        return self._dispatcher.flush(timeout)

    def _notify(self, message: str) -> None:
        self._dispatcher.publish(message)

    # -- policies ------------------------------------------------------------

    @property
    def matching_policy(self) -> MatchingPolicy:
        return self._matching_policy

    @property
    def reconciliation_policy(self) -> ReconciliationPolicy:
        return self._reconciliation_policy

    @property
    def resolution_policy(self) -> ResolutionPolicy:
        return self._resolution_policy

    @property
    def reporting_policy(self) -> ReportingPolicy:
        return self._reporting_policy

    def set_matching_policy(self, policy: MatchingPolicy) -> None:
        with self._lock:
            self._matching_policy = policy
        self._notify(f"Matching policy changed to {policy.name}")

    def set_reconciliation_policy(self, policy: ReconciliationPolicy) -> None:
        with self._lock:
            self._reconciliation_policy = policy
        self._notify(f"Reconciliation policy changed to {policy.name}")

    def set_resolution_policy(self, policy: ResolutionPolicy) -> None:
        with self._lock:
            self._resolution_policy = policy
        self._notify(f"Resolution policy changed to {policy.name}")

    def set_reporting_policy(self, policy: ReportingPolicy) -> None:
        with self._lock:
            self._reporting_policy = policy
        self._notify(f"Reporting policy changed to {policy.name}")

    # -- ingestion -----------------------------------------------------------

    def ingest_internal(self, records: Iterable[InternalRecord]) -> IngestionResult:
        with self._lock:
            if (rejection := self._busy_message("ingest internal records")) is not None:
                return IngestionResult(success=False, message=rejection)
            update = self._store.add_internal(records)
        return self._ingested("internal", update)

    def ingest_external(self, records: Iterable[ExternalRecord]) -> IngestionResult:
        with self._lock:
            if (rejection := self._busy_message("ingest external records")) is not None:
                return IngestionResult(success=False, message=rejection)
            update = self._store.add_external(records)
        return self._ingested("external", update)

    def clear_records(self) -> IngestionResult:
        with self._lock:
            if (rejection := self._busy_message("clear records")) is not None:
                return IngestionResult(success=False, message=rejection)
            self._store.clear()
        return IngestionResult(success=True, message="Cleared all records")

    def _ingested(self, side: str, update: StoreUpdate) -> IngestionResult:
        accepted, rejected = update.accepted, update.rejected
        # Replacements do not grow the store.
        added = accepted - update.replaced
        if side == "internal":
            self._metrics.record_ingestion(internal=added)
        else:
            self._metrics.record_ingestion(external=added)
        message = f"Ingested {accepted} {side} records"
        if rejected:
            log.info("Dropped %s invalid %s records", rejected, side)
        self._notify(message)
        if rejected:
            message += f" ({rejected} rejected)"
        return IngestionResult(
            success=True,
            message=message,
            accepted=accepted,
            rejected=rejected,
            replaced=update.replaced,
        )

    def _busy_message(self, operation: str) -> str | None:
        """Return a rejection message when ``operation`` is not allowed now.

        Caller must hold ``self._lock``.
        """

        if self._closed:
            message = f"Cannot {operation}: engine is shut down"
        elif self._state.is_busy:
            message = f"Cannot {operation} while engine is {self._state.value}"
        else:
            return None
        log.warning(message)
        return message

    # -- runs ----------------------------------------------------------------

    def start_run(self) -> RunStartResult:
        """Reconcile the stored records asynchronously.

        Rejected immediately when a run is in flight, the engine is shut down
        or no records have been ingested.
        """

        with self._lock:
            if (rejection := self._busy_message("start run")) is not None:
                return RunStartResult(accepted=False, message=rejection)
            snapshot = self._store.snapshot()
            if snapshot.is_empty:
                message = "Insufficient data: no records ingested"
                log.warning(message)
                return RunStartResult(accepted=False, message=message)
            run_id = uuid4()
            future = self._submit(
                RunState.PROCESSING,
                self._execute_single,
                snapshot,
                self._current_policies(),
                run_id,
            )
        if future is None:
            return RunStartResult(accepted=False, message=SUBMIT_REJECTED)
        return RunStartResult(accepted=True, message=f"Run {run_id} started", future=future)

    def start_batch(self, record_sets: Iterable[RecordSet]) -> BatchStartResult:
        """Reconcile several record sets one after another.

        Each record set goes through its own record store, so invalid records
        are dropped and a repeated identifier replaces the earlier record,
        exactly as ingestion does. Every completed run is appended to history.
        A failing set stops the batch and fails its future.
        """

        snapshots = [_snapshot_of(internal, external) for internal, external in record_sets]
        with self._lock:
            if (rejection := self._busy_message("start batch")) is not None:
                return BatchStartResult(accepted=False, message=rejection)
            if not snapshots:
                message = "Insufficient data: no record sets supplied"
                log.warning(message)
                return BatchStartResult(accepted=False, message=message)
            future = self._submit(
                RunState.BATCH_PROCESSING,
                self._execute_batch,
                snapshots,
                self._current_policies(),
            )
        if future is None:
            return BatchStartResult(accepted=False, message=SUBMIT_REJECTED)
        return BatchStartResult(
            accepted=True,
            message=f"Batch of {len(snapshots)} runs started",
            future=future,
        )

    def _submit(
        self, state: RunState, fn: Callable[..., T], *args: object
    ) -> Future[T] | None:
        """Hand ``fn`` to the run thread and enter ``state``.

        Caller must hold ``self._lock``. Returns ``None`` and leaves the state
        untouched when the run executor no longer accepts work.
        """

        try:
            future = self._run_executor.submit(fn, *args)
        except RuntimeError:
            log.warning(SUBMIT_REJECTED)
            return None
        self._state = state
        return future

    def _current_policies(self) -> _RunPolicies:
        return _RunPolicies(
            matching=self._matching_policy,
            reconciliation=self._reconciliation_policy,
            resolution=self._resolution_policy,
        )

    def _set_state(self, state: RunState) -> None:
        with self._lock:
            self._state = state

    def _execute_single(
        self, snapshot: RecordSnapshot, policies: _RunPolicies, run_id: UUID
    ) -> ReconciliationSummary:
        summary = self._run_once(snapshot, policies, run_id)
        self._set_state(RunState.COMPLETED)
        return summary

    def _execute_batch(
        self, snapshots: list[RecordSnapshot], policies: _RunPolicies
    ) -> tuple[ReconciliationSummary, ...]:
        summaries = tuple(self._run_once(snapshot, policies, uuid4()) for snapshot in snapshots)
        self._set_state(RunState.COMPLETED)
        self._notify(f"Batch of {len(summaries)} runs completed")
        return summaries

    def _run_once(
        self, snapshot: RecordSnapshot, policies: _RunPolicies, run_id: UUID
    ) -> ReconciliationSummary:
        watch = Stopwatch()
        log.info(
            "Run %s started: %s internal, %s external records",
            run_id,
            len(snapshot.internal),
            len(snapshot.external),
        )
        self._notify(f"Run {run_id} started")
        try:
            summary = self._reconcile(snapshot, policies, run_id, watch)
        except Exception as exc:
            self._set_state(RunState.ERROR)
            self._metrics.record_failure(watch.elapsed_ms)
            log.exception("Run %s failed", run_id)
            self._notify(f"Run {run_id} failed: {exc}")
            raise ReconciliationRunError(f"Run {run_id} failed: {exc}", run_id=run_id) from exc

        with self._lock:
            self._history.append(summary)
        self._metrics.record_run(summary)
        log.info("Run %s completed: %s", run_id, summary)
        self._notify(f"Run {run_id} completed")
        return summary

    def _reconcile(
        self,
        snapshot: RecordSnapshot,
        policies: _RunPolicies,
        run_id: UUID,
        watch: Stopwatch,
    ) -> ReconciliationSummary:
        started_at = _utcnow()

        self._notify("Matching started")
        with watch.lap("matching"):
            matching = match_records(
                snapshot.internal,
                snapshot.external,
                policies.matching,
                executor=self._scoring_pool,
            )
        self._notify(f"Matched {len(matching.matches)} records")

        with watch.lap("analysis"):
            analysis = analyze_discrepancies(matching, policies.reconciliation)
        self._notify(f"{len(analysis)} discrepancies found")

        with watch.lap("resolution"):
            resolution = resolve_discrepancies(analysis, policies.resolution)
        self._notify(
            f"Resolved {resolution.resolved_count} of {len(resolution.resolutions)} discrepancies"
        )

        return ReconciliationSummary(
            engine_id=self.engine_id,
            started_at=started_at,
            completed_at=_utcnow(),
            total_internal=len(snapshot.internal),
            total_external=len(snapshot.external),
            matching=matching,
            analysis=analysis,
            resolution=resolution,
            matching_policy=policies.matching.name,
            reconciliation_policy=policies.reconciliation.name,
            resolution_policy=policies.resolution.name,
            timings=RunTimings(
                matching_ms=watch.laps["matching"],
                analysis_ms=watch.laps["analysis"],
                resolution_ms=watch.laps["resolution"],
                total_ms=watch.elapsed_ms,
            ),
            run_id=run_id,
        )

    # -- manual resolution ---------------------------------------------------

    def resolve_manually(
        self,
        discrepancy_id: UUID,
        *,
        action: ResolutionAction,
        explanation: str,
        resolved_by: str,
    ) -> DiscrepancyResolution:
        """Record a person's decision about a discrepancy from a completed run.

        The run's own resolution stays untouched; the override takes precedence
        in unresolved queries and reports.
        """

        discrepancy = self._find_discrepancy(discrepancy_id)
        resolution = record_manual_resolution(
            discrepancy,
            action=action,
            explanation=explanation,
            resolved_by=resolved_by,
        )
        with self._lock:
            self._overrides[discrepancy_id] = resolution
        self._metrics.record_manual_resolution(resolution)
        log.info(
            "Discrepancy %s marked %s by %s",
            discrepancy_id,
            action.display_name,
            resolution.resolved_by,
        )
        self._notify(
            f"Discrepancy {discrepancy_id} marked {action.display_name} by {resolution.resolved_by}"
        )
        return resolution

    def _find_discrepancy(self, discrepancy_id: UUID) -> Discrepancy:
        for summary in self.history:
            for discrepancy in summary.analysis.discrepancies:
                if discrepancy.discrepancy_id == discrepancy_id:
                    return discrepancy
        raise UnknownDiscrepancyError(discrepancy_id)

    # -- queries -------------------------------------------------------------

    @property
    def history(self) -> tuple[ReconciliationSummary, ...]:
        with self._lock:
            return tuple(self._history)

    @property
    def manual_resolutions(self) -> dict[UUID, DiscrepancyResolution]:
        with self._lock:
            return dict(self._overrides)

    def get_unresolved_discrepancies(self) -> tuple[Discrepancy, ...]:
        """Discrepancies across all completed runs that nobody has settled."""

        overrides = self.manual_resolutions
        unresolved: list[Discrepancy] = []
        for summary in self.history:
            for discrepancy in summary.analysis.discrepancies:
                override = overrides.get(discrepancy.discrepancy_id)
                if override is not None:
                    if not override.resolved:
                        unresolved.append(discrepancy)
                    continue
                resolution = summary.resolution.for_discrepancy(discrepancy.discrepancy_id)
                if resolution is None or not resolution.resolved:
                    unresolved.append(discrepancy)
        return tuple(unresolved)

    def get_report(self, kind: ReportKind = ReportKind.SUMMARY) -> ReconciliationReport:
        return self._reporting_policy.generate(
            self.history,
            kind,
            performance=self._metrics.snapshot().processing_time_history,
            overrides=self.manual_resolutions,
        )

    def render_report(self, kind: ReportKind = ReportKind.SUMMARY) -> str:
        return self._reporting_policy.render(self.get_report(kind))

    def get_metrics(self) -> MetricsSnapshot:
        return self._metrics.snapshot()
