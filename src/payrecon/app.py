"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING, Final

from payrecon.adapters.record_files import load_external_records, load_internal_records
from payrecon.config import (
    EngineSettings,
    MatchingSettings,
    get_engine_settings,
    get_matching_settings,
)
from payrecon.domain.reconciliation import (
    AutomaticResolutionPolicy,
    DateWindowRule,
    DetailedReportingPolicy,
    ExactMatchingPolicy,
    FlexibleMatchingPolicy,
    FlexibleReconciliationPolicy,
    ManualReviewResolutionPolicy,
    ReconciliationEngine,
    RuleBasedResolutionPolicy,
    StandardMatchingPolicy,
    StandardReconciliationPolicy,
    StrictReconciliationPolicy,
    SummaryReportingPolicy,
)
from payrecon.domain.model import DiscrepancyType

if TYPE_CHECKING:
    from collections.abc import Callable
    from os import PathLike

    from payrecon.domain.model import ReconciliationSummary
    from payrecon.domain.reconciliation import (
        MatchingPolicy,
        ReconciliationPolicy,
        ReportingPolicy,
        ResolutionPolicy,
    )

log = getLogger(__name__)

MATCHING_POLICIES: Final = ("exact", "standard", "flexible")
RECONCILIATION_POLICIES: Final = ("standard", "strict", "flexible")
RESOLUTION_POLICIES: Final = ("automatic", "manual", "rules")
REPORTING_POLICIES: Final = ("detailed", "summary")


def build_matching_policy(name: str, settings: MatchingSettings | None = None) -> MatchingPolicy:
    tuning = settings or get_matching_settings()
    match name:
        case "exact":
            return ExactMatchingPolicy()
        case "standard":
            return StandardMatchingPolicy(
                amount_tolerance=tuning.amount_tolerance,
                threshold=tuning.standard_threshold,
            )
        case "flexible":
            return FlexibleMatchingPolicy(threshold=tuning.flexible_threshold)
    raise ValueError(f"Unknown matching policy: {name}")


def build_reconciliation_policy(name: str) -> ReconciliationPolicy:
    builders: dict[str, Callable[[], ReconciliationPolicy]] = {
        "standard": StandardReconciliationPolicy,
        "strict": StrictReconciliationPolicy,
        "flexible": FlexibleReconciliationPolicy,
    }
    try:
        return builders[name]()
    except KeyError:
        raise ValueError(f"Unknown reconciliation policy: {name}") from None


def build_resolution_policy(
    name: str, settings: MatchingSettings | None = None
) -> ResolutionPolicy:
    tuning = settings or get_matching_settings()
    match name:
        case "automatic":
            return AutomaticResolutionPolicy(amount_threshold=tuning.auto_resolve_threshold)
        case "manual":
            return ManualReviewResolutionPolicy()
        case "rules":
            return RuleBasedResolutionPolicy().with_rule(
                DiscrepancyType.DATE_MISMATCH, DateWindowRule()
            )
    raise ValueError(f"Unknown resolution policy: {name}")


def build_reporting_policy(name: str, settings: EngineSettings | None = None) -> ReportingPolicy:
    engine_settings = settings or get_engine_settings()
    match name:
        case "detailed":
            return DetailedReportingPolicy(trend_window=engine_settings.trend_window)
        case "summary":
            return SummaryReportingPolicy()
    raise ValueError(f"Unknown reporting policy: {name}")


def create_engine(
    *,
    matching: str = "standard",
    reconciliation: str = "standard",
    resolution: str = "automatic",
    reporting: str = "detailed",
    settings: EngineSettings | None = None,
    matching_settings: MatchingSettings | None = None,
) -> ReconciliationEngine:
    """Build an engine from environment settings and policy names."""

    engine_settings = settings or get_engine_settings()
    tuning = matching_settings or get_matching_settings()
    return ReconciliationEngine(
        engine_settings.engine_id,
        matching_policy=build_matching_policy(matching, tuning),
        reconciliation_policy=build_reconciliation_policy(reconciliation),
        resolution_policy=build_resolution_policy(resolution, tuning),
        reporting_policy=build_reporting_policy(reporting, engine_settings),
        max_workers=engine_settings.max_workers,
        event_queue_size=engine_settings.event_queue_size,
        history_limit=engine_settings.history_limit,
    )


def reconcile_files(
    engine: ReconciliationEngine,
    internal_path: str | PathLike[str],
    external_path: str | PathLike[str],
) -> ReconciliationSummary:
    """Load both record files into ``engine`` and run one reconciliation."""

    internal = engine.ingest_internal(load_internal_records(internal_path))
    external = engine.ingest_external(load_external_records(external_path))
    log.info("%s; %s", internal.message, external.message)

    started = engine.start_run()
    if not started.accepted or started.future is None:
        raise ValueError(started.message)
    summary = started.future.result()

    log.info("Finished reconciliation: %s", summary)
    return summary
