"""Factories for ledger and settlement records used across tests."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from payrecon.domain.model import (
    Discrepancy,
    DiscrepancySeverity,
    DiscrepancyType,
    ExternalRecord,
    InternalRecord,
    ReconciliationSummary,
    RunTimings,
)
from payrecon.domain.reconciliation import (
    AutomaticResolutionPolicy,
    StandardMatchingPolicy,
    StandardReconciliationPolicy,
    analyze_discrepancies,
    match_records,
    resolve_discrepancies,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

BASE_TIME = datetime(2025, 3, 14, 12, 0, tzinfo=UTC)


def make_internal(
    transaction_id: str = "TXN-001",
    amount: Decimal | int | str = "100.00",
    *,
    currency: str = "USD",
    transaction_date: datetime | None = None,
    order_id: str | None = None,
) -> InternalRecord:
    return InternalRecord(
        transaction_id=transaction_id,
        amount=Decimal(str(amount)),
        currency=currency,
        transaction_date=transaction_date or BASE_TIME,
        order_id=order_id,
    )


def make_external(
    reference_id: str = "REF-001",
    amount: Decimal | int | str = "100.00",
    *,
    currency: str = "USD",
    settlement_date: datetime | None = None,
    description: str = "",
) -> ExternalRecord:
    return ExternalRecord(
        reference_id=reference_id,
        amount=Decimal(str(amount)),
        currency=currency,
        settlement_date=settlement_date or BASE_TIME,
        description=description,
    )


def make_pair(
    index: int,
    amount: Decimal | int | str = "100.00",
    *,
    offset: timedelta = timedelta(0),
) -> tuple[InternalRecord, ExternalRecord]:
    """An internal record and an external record that references it."""

    transaction_id = f"TXN-{index:03d}"
    internal = make_internal(
        transaction_id,
        amount,
        transaction_date=BASE_TIME + timedelta(minutes=index),
    )
    external = make_external(
        f"REF-{index:03d}",
        amount,
        settlement_date=BASE_TIME + timedelta(minutes=index) + offset,
        description=f"Payment {transaction_id}",
    )
    return internal, external


def make_amount_discrepancy(
    internal_amount: str,
    external_amount: str,
    *,
    severity: DiscrepancySeverity = DiscrepancySeverity.MEDIUM,
) -> Discrepancy:
    return Discrepancy(
        kind=DiscrepancyType.AMOUNT_MISMATCH,
        description=f"Amount difference: {internal_amount} vs {external_amount}",
        severity=severity,
        internal=make_internal(amount=internal_amount),
        external=make_external(amount=external_amount),
    )


def make_date_discrepancy(gap: timedelta) -> Discrepancy:
    return Discrepancy(
        kind=DiscrepancyType.DATE_MISMATCH,
        description=f"Date difference: {gap.days} days",
        severity=DiscrepancySeverity.MEDIUM,
        internal=make_internal(),
        external=make_external(settlement_date=BASE_TIME + gap),
    )


def make_missing_external(transaction_id: str = "TXN-404") -> Discrepancy:
    return Discrepancy(
        kind=DiscrepancyType.MISSING_EXTERNAL,
        description=f"No external record found for {transaction_id}",
        severity=DiscrepancySeverity.HIGH,
        internal=make_internal(transaction_id),
    )


class RecordingListener:
    """Event listener that keeps every message it receives."""

    def __init__(self, on_message: Callable[[str], None] | None = None) -> None:
        self.events: list[tuple[str, str]] = []
        self._on_message = on_message

    def on_event(self, engine_id: str, message: str) -> None:
        self.events.append((engine_id, message))
        if self._on_message is not None:
            self._on_message(message)

    @property
    def messages(self) -> list[str]:
        return [message for _, message in self.events]


def make_summary(
    internal: Sequence[InternalRecord],
    external: Sequence[ExternalRecord],
    *,
    started_at: datetime = BASE_TIME,
    total_ms: float = 10.0,
) -> ReconciliationSummary:
    """Run the pipeline functions directly and wrap the result in a summary."""

    matching = match_records(internal, external, StandardMatchingPolicy())
    analysis = analyze_discrepancies(matching, StandardReconciliationPolicy())
    resolution = resolve_discrepancies(analysis, AutomaticResolutionPolicy())
    return ReconciliationSummary(
        engine_id="test-engine",
        started_at=started_at,
        completed_at=started_at + timedelta(milliseconds=total_ms),
        total_internal=len(internal),
        total_external=len(external),
        matching=matching,
        analysis=analysis,
        resolution=resolution,
        matching_policy="Standard Matching",
        reconciliation_policy="Standard Reconciliation",
        resolution_policy="Automatic Resolution",
        timings=RunTimings(
            matching_ms=total_ms / 2,
            analysis_ms=total_ms / 4,
            resolution_ms=total_ms / 4,
            total_ms=total_ms,
        ),
    )
