"""Payment reconciliation pipeline.

Layered flow of one run:
1) match internal ledger records with external settlements
2) analyze matched pairs and leftovers for discrepancies
3) resolve discrepancies automatically or route them to people
4) summarize the run; reports are built on demand from summaries
"""

from __future__ import annotations

from .analysis import (
    FlexibleReconciliationPolicy,
    ReconciliationPolicy,
    StandardReconciliationPolicy,
    StrictReconciliationPolicy,
    analyze_discrepancies,
)
from .engine import BatchStartResult, ReconciliationEngine, RunStartResult
from .events import EventDispatcher, EventListener
from .matching import (
    ExactMatchingPolicy,
    FlexibleMatchingPolicy,
    MatchingPolicy,
    StandardMatchingPolicy,
    find_candidates,
    match_records,
)
from .metrics import MetricsSnapshot, ReconciliationMetrics
from .reporting import DetailedReportingPolicy, ReportingPolicy, SummaryReportingPolicy
from .resolution import (
    AmountToleranceRule,
    AutomaticResolutionPolicy,
    DateWindowRule,
    ManualReviewResolutionPolicy,
    MissingCounterpartRule,
    ResolutionPolicy,
    ResolutionRule,
    RuleBasedResolutionPolicy,
    record_manual_resolution,
    resolve_discrepancies,
)

__all__ = [
    "AmountToleranceRule",
    "AutomaticResolutionPolicy",
    "BatchStartResult",
    "DateWindowRule",
    "DetailedReportingPolicy",
    "EventDispatcher",
    "EventListener",
    "ExactMatchingPolicy",
    "FlexibleMatchingPolicy",
    "FlexibleReconciliationPolicy",
    "ManualReviewResolutionPolicy",
    "MatchingPolicy",
    "MetricsSnapshot",
    "MissingCounterpartRule",
    "ReconciliationEngine",
    "ReconciliationMetrics",
    "ReconciliationPolicy",
    "ReportingPolicy",
    "ResolutionPolicy",
    "ResolutionRule",
    "RuleBasedResolutionPolicy",
    "RunStartResult",
    "StandardMatchingPolicy",
    "StandardReconciliationPolicy",
    "StrictReconciliationPolicy",
    "SummaryReportingPolicy",
    "analyze_discrepancies",
    "find_candidates",
    "match_records",
    "record_manual_resolution",
    "resolve_discrepancies",
]
