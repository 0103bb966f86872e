"""Domain model for payment reconciliation."""

from __future__ import annotations

from .enums import (
    DiscrepancySeverity,
    DiscrepancyType,
    PaymentMethod,
    PaymentStatus,
    RecordSource,
    ReportKind,
    ResolutionAction,
    RunState,
)
from .records import ExternalRecord, InternalRecord, as_decimal
from .report import ReconciliationReport, ReportBuilder, ReportSection, StatisticValue
from .results import (
    SYSTEM_ACTOR,
    Discrepancy,
    DiscrepancyAnalysisResult,
    DiscrepancyResolution,
    MatchCandidate,
    MatchingResult,
    ReconciliationSummary,
    RecordMatch,
    ResolutionResult,
    RunTimings,
)

__all__ = [
    "SYSTEM_ACTOR",
    "Discrepancy",
    "DiscrepancyAnalysisResult",
    "DiscrepancyResolution",
    "DiscrepancySeverity",
    "DiscrepancyType",
    "ExternalRecord",
    "InternalRecord",
    "MatchCandidate",
    "MatchingResult",
    "PaymentMethod",
    "PaymentStatus",
    "ReconciliationReport",
    "ReconciliationSummary",
    "RecordMatch",
    "RecordSource",
    "ReportBuilder",
    "ReportKind",
    "ReportSection",
    "ResolutionAction",
    "ResolutionResult",
    "RunState",
    "RunTimings",
    "StatisticValue",
    "as_decimal",
]
