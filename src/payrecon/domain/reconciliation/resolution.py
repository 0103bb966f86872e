"""Resolution policies deciding auto-resolution versus human review.

Responsibilities of this stage:
- decide one ``DiscrepancyResolution`` per discrepancy
- never mutate discrepancies or records

Every policy is deterministic: resolving the same discrepancy twice under an
unchanged policy yields equal resolutions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol

from payrecon.domain.model import (
    SYSTEM_ACTOR,
    DiscrepancyResolution,
    DiscrepancySeverity,
    DiscrepancyType,
    ResolutionAction,
    ResolutionResult,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from payrecon.domain.model import Discrepancy, DiscrepancyAnalysisResult

log = logging.getLogger(__name__)

# Actions that close a discrepancy when a person records them.
SETTLING_ACTIONS = frozenset(
    {ResolutionAction.AUTO_RESOLVED, ResolutionAction.IGNORED, ResolutionAction.SYSTEM_CORRECTION}
)


class ResolutionPolicy(Protocol):
    @property
    def name(self) -> str: ...

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool: ...

    def resolve(self, discrepancy: Discrepancy) -> DiscrepancyResolution: ...

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]: ...


def _review_action(discrepancy: Discrepancy) -> ResolutionAction:
    if discrepancy.severity is DiscrepancySeverity.CRITICAL:
        return ResolutionAction.ESCALATED
    return ResolutionAction.MANUAL_REVIEW


def _pending(
    discrepancy: Discrepancy,
    action: ResolutionAction,
    explanation: str,
) -> DiscrepancyResolution:
    return DiscrepancyResolution(
        discrepancy=discrepancy,
        action=action,
        explanation=explanation,
        resolved=False,
    )


def _settled(
    discrepancy: Discrepancy,
    action: ResolutionAction,
    explanation: str,
) -> DiscrepancyResolution:
    return DiscrepancyResolution(
        discrepancy=discrepancy,
        action=action,
        explanation=explanation,
        resolved=True,
    )


@dataclass(frozen=True, slots=True)
class AutomaticResolutionPolicy:
    """Auto-resolve small amount and date variances, route the rest to people.

    The amount boundary is inclusive and sign-agnostic: ``|delta| <=
    amount_threshold`` resolves automatically.
    """

    amount_threshold: Decimal = Decimal("1.00")
    date_window: timedelta = timedelta(days=3)
    name: str = "Automatic Resolution"

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool:
        match discrepancy.kind:
            case DiscrepancyType.AMOUNT_MISMATCH:
                delta = discrepancy.amount_delta
                return delta is not None and abs(delta) <= self.amount_threshold
            case DiscrepancyType.DATE_MISMATCH:
                gap = discrepancy.date_delta
                return gap is not None and gap <= self.date_window
            case DiscrepancyType.REFERENCE_MISMATCH:
                return discrepancy.severity is DiscrepancySeverity.LOW
            case _:
                return False

    def resolve(self, discrepancy: Discrepancy) -> DiscrepancyResolution:
        if self.can_auto_resolve(discrepancy):
            return _settled(
                discrepancy,
                ResolutionAction.AUTO_RESOLVED,
                _AUTO_RESOLUTION_MESSAGES.get(
                    discrepancy.kind, "Discrepancy auto-resolved based on configured rules"
                ),
            )
        return _pending(
            discrepancy,
            _review_action(discrepancy),
            f"Requires manual review due to {discrepancy.kind.display_name}",
        )

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]:
        if self.can_auto_resolve(discrepancy):
            return (ResolutionAction.AUTO_RESOLVED,)
        if discrepancy.severity is DiscrepancySeverity.CRITICAL:
            return (ResolutionAction.MANUAL_REVIEW, ResolutionAction.ESCALATED)
        return (ResolutionAction.MANUAL_REVIEW,)


_AUTO_RESOLUTION_MESSAGES: dict[DiscrepancyType, str] = {
    DiscrepancyType.AMOUNT_MISMATCH: "Minor amount difference within acceptable tolerance",
    DiscrepancyType.DATE_MISMATCH: "Date difference within acceptable range",
    DiscrepancyType.REFERENCE_MISMATCH: "Reference mismatch with low severity",
}


@dataclass(frozen=True, slots=True)
class ManualReviewResolutionPolicy:
    """Never auto-resolve; every variance needs human sign-off."""

    name: str = "Manual Review Required"

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool:
        return False

    def resolve(self, discrepancy: Discrepancy) -> DiscrepancyResolution:
        action = (
            ResolutionAction.ESCALATED
            if discrepancy.severity is DiscrepancySeverity.CRITICAL
            or discrepancy.kind.is_missing_counterpart
            else ResolutionAction.MANUAL_REVIEW
        )
        explanation = (
            f"Manual review required for {discrepancy.kind.display_name} "
            f"({discrepancy.severity.display_name} severity)"
        )
        if action is ResolutionAction.ESCALATED:
            explanation += " - escalated to supervisor"
        return _pending(discrepancy, action, explanation)

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]:
        return _MANUAL_SUGGESTIONS[discrepancy.severity]


_MANUAL_SUGGESTIONS: dict[DiscrepancySeverity, tuple[ResolutionAction, ...]] = {
    DiscrepancySeverity.CRITICAL: (ResolutionAction.ESCALATED, ResolutionAction.MANUAL_REVIEW),
    DiscrepancySeverity.HIGH: (ResolutionAction.MANUAL_REVIEW, ResolutionAction.ESCALATED),
    DiscrepancySeverity.MEDIUM: (ResolutionAction.MANUAL_REVIEW, ResolutionAction.PENDING_APPROVAL),
    DiscrepancySeverity.LOW: (ResolutionAction.MANUAL_REVIEW, ResolutionAction.IGNORED),
}


class ResolutionRule(Protocol):
    """One independently configurable rule of the rule-based policy."""

    def applies_to(self, discrepancy: Discrepancy) -> bool: ...

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool: ...

    def apply(self, discrepancy: Discrepancy) -> DiscrepancyResolution: ...

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]: ...


@dataclass(frozen=True, slots=True)
class AmountToleranceRule:
    tolerance: Decimal = Decimal("5.00")

    def applies_to(self, discrepancy: Discrepancy) -> bool:
        return discrepancy.amount_delta is not None

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool:
        delta = discrepancy.amount_delta
        return delta is not None and abs(delta) <= self.tolerance

    def apply(self, discrepancy: Discrepancy) -> DiscrepancyResolution:
        if self.can_auto_resolve(discrepancy):
            return _settled(
                discrepancy,
                ResolutionAction.AUTO_RESOLVED,
                f"Amount difference within {self.tolerance} tolerance",
            )
        return _pending(
            discrepancy,
            ResolutionAction.MANUAL_REVIEW,
            "Amount difference exceeds tolerance - requires review",
        )

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]:
        if self.can_auto_resolve(discrepancy):
            return (ResolutionAction.AUTO_RESOLVED, ResolutionAction.IGNORED)
        return (ResolutionAction.MANUAL_REVIEW, ResolutionAction.SYSTEM_CORRECTION)


@dataclass(frozen=True, slots=True)
class DateWindowRule:
    """Ignore settlement lag inside ``window``; otherwise ask for approval."""

    window: timedelta = timedelta(days=2)

    def applies_to(self, discrepancy: Discrepancy) -> bool:
        return discrepancy.date_delta is not None

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool:
        gap = discrepancy.date_delta
        return gap is not None and gap <= self.window

    def apply(self, discrepancy: Discrepancy) -> DiscrepancyResolution:
        if self.can_auto_resolve(discrepancy):
            return _settled(
                discrepancy,
                ResolutionAction.IGNORED,
                "Settlement lag within accepted window",
            )
        return _pending(
            discrepancy,
            ResolutionAction.PENDING_APPROVAL,
            "Settlement lag exceeds accepted window - awaiting approval",
        )

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]:
        if self.can_auto_resolve(discrepancy):
            return (ResolutionAction.IGNORED,)
        return (ResolutionAction.PENDING_APPROVAL, ResolutionAction.MANUAL_REVIEW)


@dataclass(frozen=True, slots=True)
class MissingCounterpartRule:
    """Missing records are never auto-resolved; they go to investigation."""

    def applies_to(self, discrepancy: Discrepancy) -> bool:
        return discrepancy.kind.is_missing_counterpart

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool:
        return False

    def apply(self, discrepancy: Discrepancy) -> DiscrepancyResolution:
        side = "external" if discrepancy.kind is DiscrepancyType.MISSING_EXTERNAL else "internal"
        return _pending(
            discrepancy,
            ResolutionAction.ESCALATED,
            f"Missing {side} record - requires investigation",
        )

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]:
        return (ResolutionAction.ESCALATED, ResolutionAction.MANUAL_REVIEW)


def default_rules() -> dict[DiscrepancyType, ResolutionRule]:
    missing = MissingCounterpartRule()
    return {
        DiscrepancyType.AMOUNT_MISMATCH: AmountToleranceRule(),
        DiscrepancyType.MISSING_EXTERNAL: missing,
        DiscrepancyType.MISSING_INTERNAL: missing,
    }


@dataclass(slots=True)
class RuleBasedResolutionPolicy:
    """Dispatch each discrepancy type to its configured rule.

    Types without a rule, and discrepancies a rule does not apply to, fall
    back to MANUAL_REVIEW.
    """

    rules: dict[DiscrepancyType, ResolutionRule] = field(default_factory=default_rules)
    name: str = "Rule-Based Resolution"

    @classmethod
    def from_rules(cls, rules: Mapping[DiscrepancyType, ResolutionRule]) -> RuleBasedResolutionPolicy:
        return cls(rules=dict(rules))

    def add_rule(self, kind: DiscrepancyType, rule: ResolutionRule) -> None:
        self.rules[kind] = rule

    def with_rule(self, kind: DiscrepancyType, rule: ResolutionRule) -> RuleBasedResolutionPolicy:
        self.add_rule(kind, rule)
        return self

    def remove_rule(self, kind: DiscrepancyType) -> None:
        self.rules.pop(kind, None)

    def _rule_for(self, discrepancy: Discrepancy) -> ResolutionRule | None:
        rule = self.rules.get(discrepancy.kind)
        if rule is None or not rule.applies_to(discrepancy):
            return None
        return rule

    def can_auto_resolve(self, discrepancy: Discrepancy) -> bool:
        rule = self._rule_for(discrepancy)
        return rule is not None and rule.can_auto_resolve(discrepancy)

    def resolve(self, discrepancy: Discrepancy) -> DiscrepancyResolution:
        rule = self._rule_for(discrepancy)
        if rule is None:
            return _pending(
                discrepancy,
                ResolutionAction.MANUAL_REVIEW,
                "No specific rule found - requires manual review",
            )
        return rule.apply(discrepancy)

    def suggested_actions(self, discrepancy: Discrepancy) -> tuple[ResolutionAction, ...]:
        rule = self._rule_for(discrepancy)
        if rule is None:
            return (ResolutionAction.MANUAL_REVIEW,)
        return rule.suggested_actions(discrepancy)


def resolve_discrepancies(
    analysis: DiscrepancyAnalysisResult,
    policy: ResolutionPolicy,
) -> ResolutionResult:
    """Resolve every discrepancy of ``analysis`` in order."""

    resolutions = tuple(policy.resolve(discrepancy) for discrepancy in analysis.discrepancies)
    result = ResolutionResult(resolutions=resolutions)
    log.debug(
        "%s resolved %s of %s discrepancies",
        policy.name,
        result.resolved_count,
        len(resolutions),
    )
    return result


def record_manual_resolution(
    discrepancy: Discrepancy,
    *,
    action: ResolutionAction,
    explanation: str,
    resolved_by: str,
) -> DiscrepancyResolution:
    """Build a user-attributed decision for ``discrepancy``.

    The discrepancy counts as resolved when ``action`` settles it
    (auto-resolved, ignored or corrected); review, escalation and approval
    actions keep it open.
    """

    actor = resolved_by.strip()
    if not actor or actor == SYSTEM_ACTOR:
        raise ValueError("Manual resolutions must name the resolving user")
    return DiscrepancyResolution(
        discrepancy=discrepancy,
        action=action,
        explanation=explanation,
        resolved=action in SETTLING_ACTIONS,
        resolved_by=actor,
    )
