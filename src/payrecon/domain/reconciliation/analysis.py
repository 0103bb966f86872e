"""Discrepancy analysis over a matching result.

Matched pairs are inspected by the active ``ReconciliationPolicy``; leftovers
on either side always become MISSING_* discrepancies at HIGH severity, since
a transaction without a counterpart is notable under every policy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from payrecon.domain.model import (
    Discrepancy,
    DiscrepancyAnalysisResult,
    DiscrepancySeverity,
    DiscrepancyType,
)

from .matching import date_gap, references_internal, same_currency, same_utc_day

if TYPE_CHECKING:
    from payrecon.domain.model import MatchingResult, RecordMatch

log = logging.getLogger(__name__)


class ReconciliationPolicy(Protocol):
    """Inspect one matched pair and report what disagrees."""

    @property
    def name(self) -> str: ...

    def inspect(self, match: RecordMatch) -> list[Discrepancy]: ...

    def is_acceptable_variance(self, internal_amount: Decimal, external_amount: Decimal) -> bool: ...


def _discrepancy(
    match: RecordMatch,
    kind: DiscrepancyType,
    description: str,
    severity: DiscrepancySeverity,
) -> Discrepancy:
    return Discrepancy(
        kind=kind,
        description=description,
        severity=severity,
        internal=match.internal,
        external=match.external,
    )


def _incomparable_amounts(match: RecordMatch) -> Discrepancy | None:
    internal_amount, external_amount = match.internal.amount, match.external.amount
    if internal_amount == external_amount:
        return None
    if internal_amount != 0 and external_amount != 0 and (internal_amount > 0) == (external_amount > 0):
        return None
    return _discrepancy(
        match,
        DiscrepancyType.INVALID_DATA,
        f"Amounts are not comparable: {match.internal.amount} vs {match.external.amount}",
        DiscrepancySeverity.CRITICAL,
    )


def _currency_mismatch(match: RecordMatch, severity: DiscrepancySeverity) -> Discrepancy | None:
    if same_currency(match.internal, match.external):
        return None
    return _discrepancy(
        match,
        DiscrepancyType.CURRENCY_MISMATCH,
        f"Currency mismatch: {match.internal.currency} vs {match.external.currency}",
        severity,
    )


@dataclass(frozen=True, slots=True)
class StandardReconciliationPolicy:
    amount_tolerance: Decimal = Decimal("0.01")
    large_amount_delta: Decimal = Decimal(10)
    date_tolerance: timedelta = timedelta(hours=24)
    severe_date_gap: timedelta = timedelta(days=7)
    name: str = "Standard Reconciliation"

    def is_acceptable_variance(self, internal_amount: Decimal, external_amount: Decimal) -> bool:
        return abs(internal_amount - external_amount) <= self.amount_tolerance

    def inspect(self, match: RecordMatch) -> list[Discrepancy]:
        if (invalid := _incomparable_amounts(match)) is not None:
            return [invalid]

        discrepancies: list[Discrepancy] = []
        internal, external = match.internal, match.external
        if not self.is_acceptable_variance(internal.amount, external.amount):
            difference = abs(internal.amount - external.amount)
            severity = (
                DiscrepancySeverity.HIGH
                if difference > self.large_amount_delta
                else DiscrepancySeverity.MEDIUM
            )
            discrepancies.append(
                _discrepancy(
                    match,
                    DiscrepancyType.AMOUNT_MISMATCH,
                    f"Amount difference: {difference}",
                    severity,
                )
            )

        if (currency := _currency_mismatch(match, DiscrepancySeverity.HIGH)) is not None:
            discrepancies.append(currency)

        gap = date_gap(internal, external)
        if gap > self.date_tolerance:
            severity = (
                DiscrepancySeverity.HIGH if gap > self.severe_date_gap else DiscrepancySeverity.MEDIUM
            )
            discrepancies.append(
                _discrepancy(
                    match,
                    DiscrepancyType.DATE_MISMATCH,
                    f"Date difference: {gap.days} days",
                    severity,
                )
            )
        return discrepancies


@dataclass(frozen=True, slots=True)
class StrictReconciliationPolicy:
    """Zero tolerance: any difference is a HIGH severity discrepancy."""

    name: str = "Strict Reconciliation"

    def is_acceptable_variance(self, internal_amount: Decimal, external_amount: Decimal) -> bool:
        return internal_amount == external_amount

    def inspect(self, match: RecordMatch) -> list[Discrepancy]:
        if (invalid := _incomparable_amounts(match)) is not None:
            return [invalid]

        discrepancies: list[Discrepancy] = []
        internal, external = match.internal, match.external
        if not self.is_acceptable_variance(internal.amount, external.amount):
            discrepancies.append(
                _discrepancy(
                    match,
                    DiscrepancyType.AMOUNT_MISMATCH,
                    f"Exact amount match required: {internal.amount} vs {external.amount}",
                    DiscrepancySeverity.HIGH,
                )
            )
        if (currency := _currency_mismatch(match, DiscrepancySeverity.HIGH)) is not None:
            discrepancies.append(currency)
        if not same_utc_day(internal, external):
            discrepancies.append(
                _discrepancy(
                    match,
                    DiscrepancyType.DATE_MISMATCH,
                    "Same day settlement required",
                    DiscrepancySeverity.HIGH,
                )
            )
        if not references_internal(internal, external):
            discrepancies.append(
                _discrepancy(
                    match,
                    DiscrepancyType.REFERENCE_MISMATCH,
                    f"Description does not reference {internal.transaction_id}",
                    DiscrepancySeverity.MEDIUM,
                )
            )
        return discrepancies


@dataclass(frozen=True, slots=True)
class FlexibleReconciliationPolicy:
    """Wide tolerances and lower severities than the standard policy."""

    amount_variance: Decimal = Decimal("0.05")
    large_amount_variance: Decimal = Decimal("0.10")
    date_tolerance: timedelta = timedelta(days=7)
    name: str = "Flexible Reconciliation"

    def is_acceptable_variance(self, internal_amount: Decimal, external_amount: Decimal) -> bool:
        return abs(internal_amount - external_amount) <= abs(internal_amount) * self.amount_variance

    def inspect(self, match: RecordMatch) -> list[Discrepancy]:
        if (invalid := _incomparable_amounts(match)) is not None:
            return [invalid]

        discrepancies: list[Discrepancy] = []
        internal, external = match.internal, match.external
        if not self.is_acceptable_variance(internal.amount, external.amount):
            variance = abs(internal.amount - external.amount) / abs(internal.amount)
            severity = (
                DiscrepancySeverity.HIGH
                if variance > self.large_amount_variance
                else DiscrepancySeverity.LOW
            )
            discrepancies.append(
                _discrepancy(
                    match,
                    DiscrepancyType.AMOUNT_MISMATCH,
                    f"Amount variance: {variance * 100:.2f}%",
                    severity,
                )
            )
        if (currency := _currency_mismatch(match, DiscrepancySeverity.MEDIUM)) is not None:
            discrepancies.append(currency)
        gap = date_gap(internal, external)
        if gap > self.date_tolerance:
            discrepancies.append(
                _discrepancy(
                    match,
                    DiscrepancyType.DATE_MISMATCH,
                    f"Date difference exceeds {self.date_tolerance.days} days: {gap.days} days",
                    DiscrepancySeverity.LOW,
                )
            )
        return discrepancies


def analyze_discrepancies(
    result: MatchingResult,
    policy: ReconciliationPolicy,
) -> DiscrepancyAnalysisResult:
    """Produce discrepancies for matched pairs and for unmatched leftovers."""

    discrepancies: list[Discrepancy] = []
    for match in result.matches:
        discrepancies.extend(policy.inspect(match))

    discrepancies.extend(
        Discrepancy(
            kind=DiscrepancyType.MISSING_EXTERNAL,
            description=f"No external record found for {internal.transaction_id}",
            severity=DiscrepancySeverity.HIGH,
            internal=internal,
        )
        for internal in result.unmatched_internal
    )
    discrepancies.extend(
        Discrepancy(
            kind=DiscrepancyType.MISSING_INTERNAL,
            description=f"No internal record found for {external.reference_id}",
            severity=DiscrepancySeverity.HIGH,
            external=external,
        )
        for external in result.unmatched_external
    )

    log.debug("Analysis with %s found %s discrepancies", policy.name, len(discrepancies))
    return DiscrepancyAnalysisResult(discrepancies=tuple(discrepancies))
