"""Immutable result graph produced by one reconciliation run."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from .enums import DiscrepancySeverity, DiscrepancyType, ResolutionAction

if TYPE_CHECKING:
    from datetime import timedelta
    from decimal import Decimal

    from .records import ExternalRecord, InternalRecord

SYSTEM_ACTOR = "system"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchCandidate:
    """One scored external record considered for an internal record."""

    external: ExternalRecord
    confidence: float


@dataclass(frozen=True, slots=True, kw_only=True)
class RecordMatch:
    """A claimed pairing of one internal and one external record."""

    internal: InternalRecord
    external: ExternalRecord
    confidence: float
    reason: str = "automated matching"

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Match confidence must be within [0, 1], got {self.confidence}")

    def __str__(self) -> str:
        return (
            f"Match[{self.confidence * 100:.1f}%]: "
            f"{self.internal.transaction_id} <-> {self.external.reference_id}"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class MatchingResult:
    matches: tuple[RecordMatch, ...] = ()
    unmatched_internal: tuple[InternalRecord, ...] = ()
    unmatched_external: tuple[ExternalRecord, ...] = ()

    @property
    def total_internal(self) -> int:
        return len(self.matches) + len(self.unmatched_internal)

    @property
    def total_external(self) -> int:
        return len(self.matches) + len(self.unmatched_external)


@dataclass(frozen=True, slots=True, kw_only=True)
class Discrepancy:
    """A detected inconsistency, or the absence of an expected counterpart.

    Every discrepancy carries a synthetic ``discrepancy_id`` assigned at
    creation, so two discrepancies that happen to share type, description and
    severity remain distinguishable when resolutions are looked up.
    """

    kind: DiscrepancyType
    description: str
    severity: DiscrepancySeverity
    internal: InternalRecord | None = None
    external: ExternalRecord | None = None
    discrepancy_id: UUID = field(default_factory=uuid4)
    detected_at: datetime = field(default_factory=_utcnow, compare=False)

    def __post_init__(self) -> None:
        if self.internal is None and self.external is None:
            raise ValueError("Discrepancy must reference at least one record")
        if self.external is None and self.kind is not DiscrepancyType.MISSING_EXTERNAL:
            raise ValueError("Discrepancy without an external record must be MISSING_EXTERNAL")
        if self.internal is None and self.kind is not DiscrepancyType.MISSING_INTERNAL:
            raise ValueError("Discrepancy without an internal record must be MISSING_INTERNAL")
        if self.kind.is_missing_counterpart and self.internal is not None and self.external is not None:
            raise ValueError(f"{self.kind} must reference exactly one record")

    @property
    def amount_delta(self) -> Decimal | None:
        """Signed ``internal - external`` amount difference for paired records."""

        if self.internal is None or self.external is None:
            return None
        return self.internal.amount - self.external.amount

    @property
    def date_delta(self) -> timedelta | None:
        if self.internal is None or self.external is None:
            return None
        return abs(self.internal.transaction_date - self.external.settlement_date)

    @property
    def record_label(self) -> str:
        internal_id = self.internal.transaction_id if self.internal else "-"
        external_id = self.external.reference_id if self.external else "-"
        return f"{internal_id} / {external_id}"

    def __str__(self) -> str:
        return (
            f"Discrepancy[{self.kind.display_name}]: {self.description} "
            f"({self.severity.display_name}, {self.discrepancy_id})"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class DiscrepancyAnalysisResult:
    discrepancies: tuple[Discrepancy, ...] = ()

    def __len__(self) -> int:
        return len(self.discrepancies)

    def type_counts(self) -> Counter[DiscrepancyType]:
        return Counter(discrepancy.kind for discrepancy in self.discrepancies)

    def severity_counts(self) -> Counter[DiscrepancySeverity]:
        return Counter(discrepancy.severity for discrepancy in self.discrepancies)


@dataclass(frozen=True, slots=True, kw_only=True)
class DiscrepancyResolution:
    """Decision taken about one discrepancy.

    No timestamp or random identifier lives here: resolving the same
    discrepancy twice under the same policy must compare equal.
    """

    discrepancy: Discrepancy
    action: ResolutionAction
    explanation: str
    resolved: bool
    resolved_by: str = SYSTEM_ACTOR

    def __str__(self) -> str:
        state = "Resolved" if self.resolved else "Pending"
        return f"Resolution[{self.action.display_name}]: {self.explanation} - {state}"


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolutionResult:
    resolutions: tuple[DiscrepancyResolution, ...] = ()

    @property
    def resolved_count(self) -> int:
        return sum(1 for resolution in self.resolutions if resolution.resolved)

    @property
    def unresolved_count(self) -> int:
        return len(self.resolutions) - self.resolved_count

    def action_counts(self) -> Counter[ResolutionAction]:
        return Counter(resolution.action for resolution in self.resolutions)

    def for_discrepancy(self, discrepancy_id: UUID) -> DiscrepancyResolution | None:
        for resolution in self.resolutions:
            if resolution.discrepancy.discrepancy_id == discrepancy_id:
                return resolution
        return None

    def unresolved(self) -> tuple[Discrepancy, ...]:
        return tuple(
            resolution.discrepancy for resolution in self.resolutions if not resolution.resolved
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class RunTimings:
    """Wall-clock instrumentation for one run, in milliseconds."""

    matching_ms: float = 0.0
    analysis_ms: float = 0.0
    resolution_ms: float = 0.0
    total_ms: float = 0.0


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationSummary:
    """Run-level rollup; the root of a run's immutable result graph."""

    engine_id: str
    started_at: datetime
    completed_at: datetime
    total_internal: int
    total_external: int
    matching: MatchingResult
    analysis: DiscrepancyAnalysisResult
    resolution: ResolutionResult
    matching_policy: str
    reconciliation_policy: str
    resolution_policy: str
    timings: RunTimings = field(default_factory=RunTimings)
    run_id: UUID = field(default_factory=uuid4)

    @property
    def matched_records(self) -> int:
        return len(self.matching.matches)

    @property
    def total_discrepancies(self) -> int:
        return len(self.analysis.discrepancies)

    @property
    def resolved_discrepancies(self) -> int:
        return self.resolution.resolved_count

    @property
    def match_rate(self) -> float:
        """Matched internal records as a percentage of all internal records."""

        if self.total_internal == 0:
            return 0.0
        return self.matched_records / self.total_internal * 100

    @property
    def resolution_rate(self) -> float:
        if self.total_discrepancies == 0:
            return 0.0
        return self.resolved_discrepancies / self.total_discrepancies * 100

    def __str__(self) -> str:
        return (
            f"ReconciliationSummary[Engine: {self.engine_id}, "
            f"Matches: {self.matched_records}/{self.total_internal} ({self.match_rate:.1f}%), "
            f"Discrepancies: {self.total_discrepancies}, "
            f"Resolved: {self.resolved_discrepancies} ({self.resolution_rate:.1f}%)]"
        )
