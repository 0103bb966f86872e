"""Report value types produced by reporting policies."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeAlias
from uuid import UUID, uuid4

if TYPE_CHECKING:
    from .enums import ReportKind

StatisticValue: TypeAlias = int | float | str


@dataclass(frozen=True, slots=True)
class ReportSection:
    title: str
    content: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationReport:
    """Named sections of formatted text plus an ordered statistics block."""

    kind: ReportKind
    generated_by: str
    generated_at: datetime
    statistics: tuple[tuple[str, StatisticValue], ...] = ()
    sections: tuple[ReportSection, ...] = ()
    report_id: UUID = field(default_factory=uuid4)

    @property
    def statistic_keys(self) -> tuple[str, ...]:
        return tuple(key for key, _ in self.statistics)

    def statistic(self, key: str) -> StatisticValue:
        for existing, value in self.statistics:
            if existing == key:
                return value
        raise KeyError(key)

    def section(self, title: str) -> ReportSection:
        for section in self.sections:
            if section.title == title:
                return section
        raise KeyError(title)


@dataclass(slots=True)
class ReportBuilder:
    """Mutable accumulator frozen into a ``ReconciliationReport`` by ``build``."""

    kind: ReportKind
    generated_by: str
    generated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    _statistics: dict[str, StatisticValue] = field(default_factory=dict[str, "StatisticValue"])
    _sections: list[ReportSection] = field(default_factory=list["ReportSection"])

    def add_statistic(self, key: str, value: StatisticValue) -> ReportBuilder:
        self._statistics[key] = value
        return self

    def add_section(self, title: str, content: str) -> ReportBuilder:
        self._sections.append(ReportSection(title=title, content=content))
        return self

    def build(self) -> ReconciliationReport:
        return ReconciliationReport(
            kind=self.kind,
            generated_by=self.generated_by,
            generated_at=self.generated_at,
            statistics=tuple(self._statistics.items()),
            sections=tuple(self._sections),
        )
