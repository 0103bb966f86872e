"""Report generation over completed reconciliation summaries.

Reporting is read-only: policies consume summaries (and optionally manual
resolution overrides and timing samples) and return fresh report values.
The detailed renderer's layout is a stable plain-text contract::

    === <Report kind> ===
    Generated: YYYY-MM-DD HH:MM:SS
    Policy: <policy name>

    SUMMARY STATISTICS:
    ==================
    <key:<25>: <value>
    ...

    <SECTION TITLE>:
    =====...
    <content>

"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass
from statistics import fmean
from typing import TYPE_CHECKING, Protocol

from payrecon.domain.model import (
    DiscrepancySeverity,
    ReportBuilder,
    ReportKind,
)

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence
    from datetime import datetime
    from uuid import UUID

    from payrecon.domain.model import (
        Discrepancy,
        DiscrepancyResolution,
        ReconciliationReport,
        ReconciliationSummary,
    )

log = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
RECENT_RUNS_LIMIT = 10
DEFAULT_TREND_WINDOW = 5
NO_RUNS = "No reconciliation runs recorded"


class ReportingPolicy(Protocol):
    @property
    def name(self) -> str: ...

    def generate(
        self,
        summaries: Sequence[ReconciliationSummary],
        kind: ReportKind,
        *,
        performance: Sequence[float] | None = None,
        overrides: Mapping[UUID, DiscrepancyResolution] | None = None,
    ) -> ReconciliationReport: ...

    def render(self, report: ReconciliationReport) -> str: ...


def format_timestamp(value: datetime) -> str:
    return value.strftime(TIMESTAMP_FORMAT)


def format_rate(value: float) -> str:
    return f"{value:.1f}%"


def format_delta(value: float) -> str:
    return f"{value:+.1f}%"


def format_ms(value: float) -> str:
    return f"{value:.2f}"


def chronological(summaries: Sequence[ReconciliationSummary]) -> list[ReconciliationSummary]:
    return sorted(summaries, key=lambda summary: summary.started_at)


def average_match_rate(summaries: Sequence[ReconciliationSummary]) -> float:
    return fmean(summary.match_rate for summary in summaries) if summaries else 0.0


def average_resolution_rate(summaries: Sequence[ReconciliationSummary]) -> float:
    return fmean(summary.resolution_rate for summary in summaries) if summaries else 0.0


def is_resolved(
    summary: ReconciliationSummary,
    discrepancy: Discrepancy,
    overrides: Mapping[UUID, DiscrepancyResolution],
) -> bool:
    """Whether ``discrepancy`` is settled, preferring a manual override."""

    override = overrides.get(discrepancy.discrepancy_id)
    if override is not None:
        return override.resolved
    resolution = summary.resolution.for_discrepancy(discrepancy.discrepancy_id)
    return resolution is not None and resolution.resolved


def _all_discrepancies(
    summaries: Sequence[ReconciliationSummary],
) -> Iterator[tuple[ReconciliationSummary, Discrepancy]]:
    for summary in chronological(summaries):
        for discrepancy in summary.analysis.discrepancies:
            yield summary, discrepancy


def _short_id(summary: ReconciliationSummary) -> str:
    return str(summary.run_id)[:8]


def _summary_statistics(builder: ReportBuilder, summaries: Sequence[ReconciliationSummary]) -> None:
    builder.add_statistic("runs", len(summaries))
    builder.add_statistic("matches", sum(summary.matched_records for summary in summaries))
    builder.add_statistic(
        "discrepancies", sum(summary.total_discrepancies for summary in summaries)
    )
    builder.add_statistic("matchRate", format_rate(average_match_rate(summaries)))


def _recent_runs(summaries: Sequence[ReconciliationSummary]) -> str:
    if not summaries:
        return NO_RUNS
    newest_first = sorted(summaries, key=lambda summary: summary.started_at, reverse=True)
    return "\n".join(
        f"Run {format_timestamp(summary.started_at)}: {summary.matched_records} matches, "
        f"{summary.total_discrepancies} discrepancies ({format_rate(summary.match_rate)} match rate)"
        for summary in newest_first[:RECENT_RUNS_LIMIT]
    )


def _run_breakdown(summary: ReconciliationSummary) -> str:
    return "\n".join(
        (
            f"--- Run {summary.run_id} ({format_timestamp(summary.started_at)}) ---",
            f"Engine ID: {summary.engine_id}",
            f"Internal Records: {summary.total_internal}",
            f"External Records: {summary.total_external}",
            f"Matches: {summary.matched_records} ({format_rate(summary.match_rate)})",
            f"Discrepancies: {summary.total_discrepancies}",
            f"Resolved: {summary.resolved_discrepancies} ({format_rate(summary.resolution_rate)})",
        )
    )


def _trailing_average(values: Sequence[float], window: int) -> float:
    recent = values[-window:]
    return fmean(recent) if recent else 0.0


@dataclass(frozen=True, slots=True)
class DetailedReportingPolicy:
    """Full-fidelity reports for every report kind."""

    trend_window: int = DEFAULT_TREND_WINDOW
    name: str = "Detailed Reporting"

    def generate(
        self,
        summaries: Sequence[ReconciliationSummary],
        kind: ReportKind,
        *,
        performance: Sequence[float] | None = None,
        overrides: Mapping[UUID, DiscrepancyResolution] | None = None,
    ) -> ReconciliationReport:
        builder = ReportBuilder(kind=kind, generated_by=self.name)
        overrides = overrides or {}
        match kind:
            case ReportKind.SUMMARY:
                self._summary(builder, summaries)
            case ReportKind.DETAILED:
                self._detailed(builder, summaries, overrides)
            case ReportKind.DISCREPANCY:
                self._discrepancy(builder, summaries)
            case ReportKind.EXCEPTION:
                self._exception(builder, summaries, overrides)
            case ReportKind.TREND_ANALYSIS:
                self._trend(builder, summaries)
            case ReportKind.AUDIT_TRAIL:
                self._audit_trail(builder, summaries, overrides)
            case ReportKind.PERFORMANCE:
                self._performance(builder, summaries, performance)
        report = builder.build()
        log.debug("Generated %s over %s runs", kind.display_name, len(summaries))
        return report

    def render(self, report: ReconciliationReport) -> str:
        lines = [
            f"=== {report.kind.display_name} ===",
            f"Generated: {format_timestamp(report.generated_at)}",
            f"Policy: {report.generated_by}",
            "",
        ]
        if report.statistics:
            lines.append("SUMMARY STATISTICS:")
            lines.append("==================")
            lines.extend(f"{key:<25}: {value}" for key, value in report.statistics)
            lines.append("")
        for section in report.sections:
            lines.append(f"{section.title.upper()}:")
            lines.append("=" * (len(section.title) + 1))
            lines.append(section.content)
            lines.append("")
        return "\n".join(lines) + "\n"

    def _summary(self, builder: ReportBuilder, summaries: Sequence[ReconciliationSummary]) -> None:
        _summary_statistics(builder, summaries)
        builder.add_section("Recent Runs", _recent_runs(summaries))

    def _detailed(
        self,
        builder: ReportBuilder,
        summaries: Sequence[ReconciliationSummary],
        overrides: Mapping[UUID, DiscrepancyResolution],
    ) -> None:
        resolved = sum(
            1
            for summary, discrepancy in _all_discrepancies(summaries)
            if is_resolved(summary, discrepancy, overrides)
        )
        builder.add_statistic("runs", len(summaries))
        builder.add_statistic("matches", sum(summary.matched_records for summary in summaries))
        builder.add_statistic(
            "discrepancies", sum(summary.total_discrepancies for summary in summaries)
        )
        builder.add_statistic("resolved", resolved)
        builder.add_statistic("matchRate", format_rate(average_match_rate(summaries)))
        builder.add_statistic("resolutionRate", format_rate(average_resolution_rate(summaries)))
        builder.add_section("Recent Runs", _recent_runs(summaries))
        breakdown = "\n\n".join(_run_breakdown(summary) for summary in chronological(summaries))
        builder.add_section("Detailed Breakdown", breakdown or NO_RUNS)

    def _discrepancy(
        self, builder: ReportBuilder, summaries: Sequence[ReconciliationSummary]
    ) -> None:
        types: Counter[str] = Counter()
        severities: Counter[DiscrepancySeverity] = Counter()
        for _, discrepancy in _all_discrepancies(summaries):
            types[discrepancy.kind.display_name] += 1
            severities[discrepancy.severity] += 1

        builder.add_statistic("totalDiscrepancies", sum(types.values()))
        builder.add_statistic("uniqueTypes", len(types))

        by_count = sorted(types.items(), key=lambda item: (-item[1], item[0]))
        builder.add_section(
            "Discrepancy Types",
            "\n".join(f"{name:<20}: {count}" for name, count in by_count) or "None",
        )
        builder.add_section(
            "Severity Distribution",
            "\n".join(
                f"{severity.display_name:<10}: {severities[severity]}"
                for severity in DiscrepancySeverity
            ),
        )

    def _exception(
        self,
        builder: ReportBuilder,
        summaries: Sequence[ReconciliationSummary],
        overrides: Mapping[UUID, DiscrepancyResolution],
    ) -> None:
        critical: list[Discrepancy] = []
        unresolved: list[Discrepancy] = []
        for summary, discrepancy in _all_discrepancies(summaries):
            if discrepancy.severity is DiscrepancySeverity.CRITICAL:
                critical.append(discrepancy)
            if not is_resolved(summary, discrepancy, overrides):
                unresolved.append(discrepancy)

        builder.add_statistic("criticalDiscrepancies", len(critical))
        builder.add_statistic("unresolvedDiscrepancies", len(unresolved))
        builder.add_section("Critical Discrepancies", _discrepancy_list(critical))
        builder.add_section("Unresolved Discrepancies", _discrepancy_list(unresolved))

    def _trend(self, builder: ReportBuilder, summaries: Sequence[ReconciliationSummary]) -> None:
        ordered = chronological(summaries)
        match_rates = [summary.match_rate for summary in ordered]
        resolution_rates = [summary.resolution_rate for summary in ordered]
        window = min(self.trend_window, len(ordered))

        if len(ordered) >= 2:
            match_delta = match_rates[-1] - match_rates[0]
            resolution_delta = resolution_rates[-1] - resolution_rates[0]
        else:
            match_delta = resolution_delta = 0.0
        match_average = _trailing_average(match_rates, window)
        resolution_average = _trailing_average(resolution_rates, window)

        builder.add_statistic("runs", len(ordered))
        builder.add_statistic("matchRateDelta", format_delta(match_delta))
        builder.add_statistic("resolutionRateDelta", format_delta(resolution_delta))
        builder.add_statistic("movingAverageWindow", window)
        builder.add_statistic("matchRateMovingAverage", format_rate(match_average))
        builder.add_statistic("resolutionRateMovingAverage", format_rate(resolution_average))

        lines: list[str] = []
        if len(ordered) < 2:
            lines.append("At least two runs are required to compute trends")
        else:
            lines.append(f"Match Rate Trend: {format_delta(match_delta)}")
            lines.append(f"Resolution Rate Trend: {format_delta(resolution_delta)}")
        if window:
            lines.append(f"Recent {window}-run Match Rate Average: {format_rate(match_average)}")
            lines.append(
                f"Recent {window}-run Resolution Rate Average: {format_rate(resolution_average)}"
            )
        builder.add_section("Trend Analysis", "\n".join(lines))

    def _audit_trail(
        self,
        builder: ReportBuilder,
        summaries: Sequence[ReconciliationSummary],
        overrides: Mapping[UUID, DiscrepancyResolution],
    ) -> None:
        entries: list[str] = []
        for summary in chronological(summaries):
            lines = [
                f"Run: {summary.run_id}",
                f"Started: {format_timestamp(summary.started_at)}",
                f"Completed: {format_timestamp(summary.completed_at)}",
                f"Engine: {summary.engine_id}",
                (
                    f"Policies: {summary.matching_policy}, {summary.reconciliation_policy}, "
                    f"{summary.resolution_policy}"
                ),
                (
                    f"Records Processed: {summary.total_internal} internal, "
                    f"{summary.total_external} external"
                ),
                (
                    f"Results: {summary.matched_records} matches, "
                    f"{summary.total_discrepancies} discrepancies"
                ),
            ]
            actions = summary.resolution.action_counts()
            if actions:
                lines.append(
                    "Resolution Actions: "
                    + ", ".join(
                        f"{action.display_name}({count})"
                        for action, count in sorted(actions.items())
                    )
                )
            manual = [
                overrides[discrepancy.discrepancy_id]
                for discrepancy in summary.analysis.discrepancies
                if discrepancy.discrepancy_id in overrides
            ]
            lines.extend(
                f"Manual: {override.discrepancy.discrepancy_id} -> "
                f"{override.action.display_name} by {override.resolved_by}"
                for override in manual
            )
            entries.append("\n".join(lines))
        builder.add_statistic("runs", len(entries))
        builder.add_section("Audit Trail", "\n---\n".join(entries) or NO_RUNS)

    def _performance(
        self,
        builder: ReportBuilder,
        summaries: Sequence[ReconciliationSummary],
        performance: Sequence[float] | None,
    ) -> None:
        ordered = chronological(summaries)
        durations = (
            list(performance)
            if performance is not None
            else [summary.timings.total_ms for summary in ordered]
        )
        records = sum(summary.total_internal + summary.total_external for summary in ordered)
        busy_seconds = sum(summary.timings.total_ms for summary in ordered) / 1000
        throughput = records / busy_seconds if busy_seconds > 0 else 0.0

        builder.add_statistic("runs", len(ordered))
        builder.add_statistic("averageProcessingMs", format_ms(fmean(durations) if durations else 0.0))
        builder.add_statistic("maxProcessingMs", format_ms(max(durations, default=0.0)))
        builder.add_statistic("minProcessingMs", format_ms(min(durations, default=0.0)))
        builder.add_statistic("throughputRecordsPerSecond", f"{throughput:.1f}")

        phases = "\n".join(
            f"Run {_short_id(summary)}: matching {format_ms(summary.timings.matching_ms)} ms, "
            f"analysis {format_ms(summary.timings.analysis_ms)} ms, "
            f"resolution {format_ms(summary.timings.resolution_ms)} ms, "
            f"total {format_ms(summary.timings.total_ms)} ms"
            for summary in ordered
        )
        builder.add_section("Phase Timings", phases or NO_RUNS)


def _discrepancy_list(discrepancies: Sequence[Discrepancy]) -> str:
    if not discrepancies:
        return "None"
    return "\n---\n".join(
        "\n".join(
            (
                f"ID: {discrepancy.discrepancy_id}",
                f"Type: {discrepancy.kind.display_name}",
                f"Severity: {discrepancy.severity.display_name}",
                f"Records: {discrepancy.record_label}",
                f"Description: {discrepancy.description}",
                f"Detected: {format_timestamp(discrepancy.detected_at)}",
            )
        )
        for discrepancy in discrepancies
    )


@dataclass(frozen=True, slots=True)
class SummaryReportingPolicy:
    """Aggregate counts only, whatever kind is requested."""

    name: str = "Summary Reporting"

    def generate(
        self,
        summaries: Sequence[ReconciliationSummary],
        kind: ReportKind,
        *,
        performance: Sequence[float] | None = None,
        overrides: Mapping[UUID, DiscrepancyResolution] | None = None,
    ) -> ReconciliationReport:
        builder = ReportBuilder(kind=kind, generated_by=self.name)
        _summary_statistics(builder, summaries)
        return builder.build()

    def render(self, report: ReconciliationReport) -> str:
        lines = ["=== RECONCILIATION SUMMARY ==="]
        lines.extend(f"{key}: {value}" for key, value in report.statistics)
        return "\n".join(lines) + "\n"
