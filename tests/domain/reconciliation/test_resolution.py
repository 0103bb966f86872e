from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from payrecon.domain.model import (
    Discrepancy,
    DiscrepancyAnalysisResult,
    DiscrepancySeverity,
    DiscrepancyType,
    ResolutionAction,
)
from payrecon.domain.reconciliation import (
    AmountToleranceRule,
    AutomaticResolutionPolicy,
    DateWindowRule,
    ManualReviewResolutionPolicy,
    MissingCounterpartRule,
    RuleBasedResolutionPolicy,
    record_manual_resolution,
    resolve_discrepancies,
)
from tests.support.records import (
    make_amount_discrepancy,
    make_date_discrepancy,
    make_external,
    make_internal,
    make_missing_external,
)


def _paired(kind: DiscrepancyType, severity: DiscrepancySeverity) -> Discrepancy:
    return Discrepancy(
        kind=kind,
        description=kind.display_name,
        severity=severity,
        internal=make_internal(),
        external=make_external(),
    )


@pytest.mark.parametrize(("internal", "external"), [("100.00", "101.00"), ("101.00", "100.00")])
def test_automatic_boundary_is_inclusive_in_both_directions(internal: str, external: str) -> None:
    resolution = AutomaticResolutionPolicy().resolve(make_amount_discrepancy(internal, external))

    assert resolution.resolved
    assert resolution.action is ResolutionAction.AUTO_RESOLVED


@pytest.mark.parametrize(("internal", "external"), [("100.00", "101.01"), ("101.01", "100.00")])
def test_one_cent_above_boundary_needs_review(internal: str, external: str) -> None:
    resolution = AutomaticResolutionPolicy().resolve(make_amount_discrepancy(internal, external))

    assert not resolution.resolved
    assert resolution.action is ResolutionAction.MANUAL_REVIEW


def test_minor_variance_auto_resolves() -> None:
    resolution = AutomaticResolutionPolicy().resolve(make_amount_discrepancy("100.00", "100.50"))

    assert resolution.action is ResolutionAction.AUTO_RESOLVED
    assert resolution.explanation == "Minor amount difference within acceptable tolerance"


def test_automatic_never_resolves_missing_records() -> None:
    policy = AutomaticResolutionPolicy(amount_threshold=Decimal(1_000_000))
    missing = make_missing_external()

    resolution = policy.resolve(missing)

    assert not policy.can_auto_resolve(missing)
    assert resolution.action is ResolutionAction.MANUAL_REVIEW
    assert not resolution.resolved


def test_automatic_escalates_critical() -> None:
    invalid = _paired(DiscrepancyType.INVALID_DATA, DiscrepancySeverity.CRITICAL)

    resolution = AutomaticResolutionPolicy().resolve(invalid)

    assert resolution.action is ResolutionAction.ESCALATED
    assert AutomaticResolutionPolicy().suggested_actions(invalid) == (
        ResolutionAction.MANUAL_REVIEW,
        ResolutionAction.ESCALATED,
    )


def test_automatic_date_window_and_reference_severity() -> None:
    policy = AutomaticResolutionPolicy()

    assert policy.can_auto_resolve(make_date_discrepancy(timedelta(days=3)))
    assert not policy.can_auto_resolve(make_date_discrepancy(timedelta(days=3, seconds=1)))
    assert policy.can_auto_resolve(
        _paired(DiscrepancyType.REFERENCE_MISMATCH, DiscrepancySeverity.LOW)
    )
    assert not policy.can_auto_resolve(
        _paired(DiscrepancyType.REFERENCE_MISMATCH, DiscrepancySeverity.MEDIUM)
    )
    assert not policy.can_auto_resolve(
        _paired(DiscrepancyType.CURRENCY_MISMATCH, DiscrepancySeverity.LOW)
    )


def test_resolution_is_idempotent() -> None:
    discrepancy = make_amount_discrepancy("100.00", "100.50")
    analysis = DiscrepancyAnalysisResult(discrepancies=(discrepancy, make_missing_external()))

    for policy in (
        AutomaticResolutionPolicy(),
        ManualReviewResolutionPolicy(),
        RuleBasedResolutionPolicy(),
    ):
        assert policy.resolve(discrepancy) == policy.resolve(discrepancy)
        assert resolve_discrepancies(analysis, policy) == resolve_discrepancies(analysis, policy)


def test_manual_review_policy_never_resolves() -> None:
    policy = ManualReviewResolutionPolicy()

    amount = policy.resolve(make_amount_discrepancy("100.00", "100.01"))
    missing = policy.resolve(make_missing_external())
    critical = policy.resolve(_paired(DiscrepancyType.INVALID_DATA, DiscrepancySeverity.CRITICAL))

    assert not any(r.resolved for r in (amount, missing, critical))
    assert amount.action is ResolutionAction.MANUAL_REVIEW
    assert missing.action is ResolutionAction.ESCALATED
    assert critical.action is ResolutionAction.ESCALATED
    assert critical.explanation.endswith("escalated to supervisor")


def test_rule_based_defaults() -> None:
    policy = RuleBasedResolutionPolicy()

    within = policy.resolve(make_amount_discrepancy("100.00", "104.99"))
    beyond = policy.resolve(make_amount_discrepancy("100.00", "106.00"))
    missing = policy.resolve(make_missing_external())
    unruled = policy.resolve(_paired(DiscrepancyType.CURRENCY_MISMATCH, DiscrepancySeverity.HIGH))

    assert within.action is ResolutionAction.AUTO_RESOLVED
    assert beyond.action is ResolutionAction.MANUAL_REVIEW
    assert missing.action is ResolutionAction.ESCALATED
    assert missing.explanation == "Missing external record - requires investigation"
    assert unruled.action is ResolutionAction.MANUAL_REVIEW
    assert unruled.explanation == "No specific rule found - requires manual review"


def test_rules_are_configurable() -> None:
    policy = RuleBasedResolutionPolicy(rules={}).with_rule(
        DiscrepancyType.DATE_MISMATCH, DateWindowRule(window=timedelta(days=1))
    )

    inside = policy.resolve(make_date_discrepancy(timedelta(hours=20)))
    outside = policy.resolve(make_date_discrepancy(timedelta(days=4)))

    assert inside.action is ResolutionAction.IGNORED
    assert inside.resolved
    assert outside.action is ResolutionAction.PENDING_APPROVAL
    assert not policy.can_auto_resolve(make_amount_discrepancy("1.00", "1.01"))

    policy.add_rule(DiscrepancyType.AMOUNT_MISMATCH, AmountToleranceRule(Decimal("0.05")))
    assert policy.can_auto_resolve(make_amount_discrepancy("1.00", "1.01"))

    policy.remove_rule(DiscrepancyType.AMOUNT_MISMATCH)
    assert not policy.can_auto_resolve(make_amount_discrepancy("1.00", "1.01"))


def test_rule_that_does_not_apply_falls_back_to_review() -> None:
    policy = RuleBasedResolutionPolicy(
        rules={DiscrepancyType.MISSING_EXTERNAL: AmountToleranceRule()}
    )

    resolution = policy.resolve(make_missing_external())

    assert resolution.action is ResolutionAction.MANUAL_REVIEW
    assert policy.suggested_actions(make_missing_external()) == (ResolutionAction.MANUAL_REVIEW,)


def test_missing_counterpart_rule_suggestions() -> None:
    rule = MissingCounterpartRule()

    assert rule.applies_to(make_missing_external())
    assert not rule.can_auto_resolve(make_missing_external())
    assert rule.suggested_actions(make_missing_external())[0] is ResolutionAction.ESCALATED


def test_resolve_discrepancies_keeps_order() -> None:
    first = make_amount_discrepancy("100.00", "100.50")
    second = make_missing_external()
    analysis = DiscrepancyAnalysisResult(discrepancies=(first, second))

    result = resolve_discrepancies(analysis, AutomaticResolutionPolicy())

    assert [r.discrepancy for r in result.resolutions] == [first, second]
    assert result.resolved_count == 1


def test_manual_resolution_attribution() -> None:
    discrepancy = make_missing_external()

    settled = record_manual_resolution(
        discrepancy,
        action=ResolutionAction.SYSTEM_CORRECTION,
        explanation="Posted missing settlement",
        resolved_by=" alice ",
    )
    pending = record_manual_resolution(
        discrepancy,
        action=ResolutionAction.PENDING_APPROVAL,
        explanation="Waiting for bank",
        resolved_by="bob",
    )

    assert settled.resolved
    assert settled.resolved_by == "alice"
    assert not pending.resolved


@pytest.mark.parametrize("actor", ["", "   ", "system"])
def test_manual_resolution_requires_a_person(actor: str) -> None:
    with pytest.raises(ValueError, match="resolving user"):
        record_manual_resolution(
            make_missing_external(),
            action=ResolutionAction.IGNORED,
            explanation="n/a",
            resolved_by=actor,
        )
