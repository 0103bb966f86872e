from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from payrecon.domain.model import (
    DiscrepancySeverity,
    DiscrepancyType,
    MatchingResult,
    RecordMatch,
)
from payrecon.domain.reconciliation import (
    FlexibleReconciliationPolicy,
    StandardReconciliationPolicy,
    StrictReconciliationPolicy,
    analyze_discrepancies,
)
from tests.support.records import BASE_TIME, make_external, make_internal


def _match(internal_amount: str = "100.00", external_amount: str = "100.00", **external: object) -> RecordMatch:
    return RecordMatch(
        internal=make_internal(amount=internal_amount),
        external=make_external(amount=external_amount, **external),  # type: ignore[arg-type]
        confidence=0.9,
    )


def test_standard_policy_grades_amount_differences() -> None:
    policy = StandardReconciliationPolicy()

    [minor] = policy.inspect(_match("100.00", "100.50"))
    [major] = policy.inspect(_match("100.00", "125.00"))

    assert minor.kind is DiscrepancyType.AMOUNT_MISMATCH
    assert minor.severity is DiscrepancySeverity.MEDIUM
    assert minor.description == "Amount difference: 0.50"
    assert major.severity is DiscrepancySeverity.HIGH


def test_standard_policy_accepts_one_cent() -> None:
    policy = StandardReconciliationPolicy()

    assert policy.inspect(_match("100.00", "100.01")) == []
    assert policy.is_acceptable_variance(Decimal("100.00"), Decimal("99.99"))


def test_standard_policy_flags_currency_and_date() -> None:
    policy = StandardReconciliationPolicy()

    found = policy.inspect(
        _match(currency="EUR", settlement_date=BASE_TIME + timedelta(days=2))
    )

    assert [(d.kind, d.severity) for d in found] == [
        (DiscrepancyType.CURRENCY_MISMATCH, DiscrepancySeverity.HIGH),
        (DiscrepancyType.DATE_MISMATCH, DiscrepancySeverity.MEDIUM),
    ]

    [late] = policy.inspect(_match(settlement_date=BASE_TIME + timedelta(days=9)))
    assert late.severity is DiscrepancySeverity.HIGH


def test_currency_comparison_ignores_case() -> None:
    assert StandardReconciliationPolicy().inspect(_match(currency="usd")) == []


def test_strict_policy_requires_everything() -> None:
    policy = StrictReconciliationPolicy()

    found = policy.inspect(
        _match("100.00", "100.01", settlement_date=BASE_TIME + timedelta(hours=13))
    )

    assert [d.kind for d in found] == [
        DiscrepancyType.AMOUNT_MISMATCH,
        DiscrepancyType.DATE_MISMATCH,
        DiscrepancyType.REFERENCE_MISMATCH,
    ]
    assert found[-1].severity is DiscrepancySeverity.MEDIUM
    assert all(d.severity is DiscrepancySeverity.HIGH for d in found[:-1])


def test_strict_policy_passes_a_referenced_exact_pair() -> None:
    assert StrictReconciliationPolicy().inspect(_match(description="Payment TXN-001")) == []


def test_flexible_policy_uses_relative_variance() -> None:
    policy = FlexibleReconciliationPolicy()

    assert policy.inspect(_match("100.00", "104.00")) == []
    [low] = policy.inspect(_match("100.00", "107.00"))
    [high] = policy.inspect(_match("100.00", "115.00"))

    assert low.severity is DiscrepancySeverity.LOW
    assert low.description == "Amount variance: 7.00%"
    assert high.severity is DiscrepancySeverity.HIGH


def test_flexible_policy_softens_currency_and_dates() -> None:
    found = FlexibleReconciliationPolicy().inspect(
        _match(currency="GBP", settlement_date=BASE_TIME + timedelta(days=8))
    )

    assert [(d.kind, d.severity) for d in found] == [
        (DiscrepancyType.CURRENCY_MISMATCH, DiscrepancySeverity.MEDIUM),
        (DiscrepancyType.DATE_MISMATCH, DiscrepancySeverity.LOW),
    ]


def test_opposite_signs_are_invalid_data_for_every_policy() -> None:
    match = _match("100.00", "-100.00")

    for policy in (
        StandardReconciliationPolicy(),
        StrictReconciliationPolicy(),
        FlexibleReconciliationPolicy(),
    ):
        [invalid] = policy.inspect(match)
        assert invalid.kind is DiscrepancyType.INVALID_DATA
        assert invalid.severity is DiscrepancySeverity.CRITICAL


def test_zero_amount_is_invalid_data() -> None:
    [invalid] = FlexibleReconciliationPolicy().inspect(_match("0", "10.00"))

    assert invalid.kind is DiscrepancyType.INVALID_DATA


def test_unmatched_records_become_missing_counterparts() -> None:
    orphan_internal = make_internal("TXN-LONELY")
    orphan_external = make_external("REF-LONELY")
    result = MatchingResult(
        matches=(_match("100.00", "100.50"),),
        unmatched_internal=(orphan_internal,),
        unmatched_external=(orphan_external,),
    )

    analysis = analyze_discrepancies(result, StandardReconciliationPolicy())

    assert [d.kind for d in analysis.discrepancies] == [
        DiscrepancyType.AMOUNT_MISMATCH,
        DiscrepancyType.MISSING_EXTERNAL,
        DiscrepancyType.MISSING_INTERNAL,
    ]
    missing_external = analysis.discrepancies[1]
    assert missing_external.severity is DiscrepancySeverity.HIGH
    assert missing_external.internal is orphan_internal
    assert missing_external.external is None
    assert missing_external.description == "No external record found for TXN-LONELY"
    assert analysis.type_counts()[DiscrepancyType.MISSING_INTERNAL] == 1
    assert len(analysis) == 3
