"""Record matching: pair internal ledger records with external settlements.

Responsibilities of this stage:
- score every (internal, external) pair with the active ``MatchingPolicy``
- claim pairs greedily so that no external record is consumed twice
- report leftovers on both sides as unmatched

Scoring is side-effect free and may fan out over an executor, one task per
internal record. Claiming always happens sequentially in the calling thread,
which is the single owner of the unconsumed external pool.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, timedelta
from decimal import Decimal
from difflib import SequenceMatcher
from functools import partial
from typing import TYPE_CHECKING, Protocol

from payrecon.domain.model import MatchCandidate, MatchingResult, RecordMatch

if TYPE_CHECKING:
    from collections.abc import Sequence
    from concurrent.futures import Executor

    from payrecon.domain.model import ExternalRecord, InternalRecord

log = logging.getLogger(__name__)

AMOUNT_WEIGHT = 0.4
CURRENCY_WEIGHT = 0.2
DATE_WEIGHT = 0.2
REFERENCE_WEIGHT = 0.2


class MatchingPolicy(Protocol):
    """Score how likely one external record settles one internal record."""

    @property
    def name(self) -> str: ...

    @property
    def threshold(self) -> float: ...

    def score(self, internal: InternalRecord, external: ExternalRecord) -> float: ...


def same_currency(internal: InternalRecord, external: ExternalRecord) -> bool:
    return internal.currency.strip().upper() == external.currency.strip().upper()


def same_utc_day(internal: InternalRecord, external: ExternalRecord) -> bool:
    return (
        internal.transaction_date.astimezone(UTC).date()
        == external.settlement_date.astimezone(UTC).date()
    )


def date_gap(internal: InternalRecord, external: ExternalRecord) -> timedelta:
    return abs(internal.transaction_date - external.settlement_date)


def references_internal(internal: InternalRecord, external: ExternalRecord) -> bool:
    """Whether the external description names the transaction or order id."""

    description = external.description.lower()
    if not description:
        return False
    identifiers = (internal.transaction_id, internal.order_id)
    return any(identifier and identifier.lower() in description for identifier in identifiers)


def _date_proximity(gap: timedelta, window: timedelta) -> float:
    if window <= timedelta(0):
        return 1.0 if gap == timedelta(0) else 0.0
    if gap > window:
        return 0.0
    return 1.0 - gap / window


def _relative_difference(internal: InternalRecord, external: ExternalRecord) -> float:
    difference = abs(internal.amount - external.amount)
    if internal.amount == 0:
        return 0.0 if difference == 0 else 1.0
    return float(difference / abs(internal.amount))


@dataclass(frozen=True, slots=True)
class ExactMatchingPolicy:
    """Binary matching on amount, currency and settlement day.

    ``date_tolerance`` widens the same-day rule: a settlement on another UTC
    calendar day still matches when it lies within the tolerance.
    """

    date_tolerance: timedelta = timedelta(0)
    name: str = "Exact Matching"
    threshold: float = 1.0

    def score(self, internal: InternalRecord, external: ExternalRecord) -> float:
        if internal.amount != external.amount or not same_currency(internal, external):
            return 0.0
        if same_utc_day(internal, external) or date_gap(internal, external) <= self.date_tolerance:
            return 1.0
        return 0.0


@dataclass(frozen=True, slots=True)
class StandardMatchingPolicy:
    """Weighted confidence: amount 40%, currency 20%, date 20%, reference 20%."""

    amount_tolerance: Decimal = Decimal("0.01")
    date_window: timedelta = timedelta(hours=24)
    threshold: float = 0.7
    name: str = "Standard Matching"

    def score(self, internal: InternalRecord, external: ExternalRecord) -> float:
        confidence = AMOUNT_WEIGHT * self.amount_similarity(internal, external)
        if same_currency(internal, external):
            confidence += CURRENCY_WEIGHT
        confidence += DATE_WEIGHT * _date_proximity(date_gap(internal, external), self.date_window)
        confidence += REFERENCE_WEIGHT * self.reference_similarity(internal, external)
        return min(1.0, confidence)

    def amount_similarity(self, internal: InternalRecord, external: ExternalRecord) -> float:
        if abs(internal.amount - external.amount) <= self.amount_tolerance:
            return 1.0
        return max(0.0, 1.0 - _relative_difference(internal, external))

    def reference_similarity(self, internal: InternalRecord, external: ExternalRecord) -> float:
        return 1.0 if references_internal(internal, external) else 0.0


@dataclass(frozen=True, slots=True)
class FlexibleMatchingPolicy:
    """Standard weighting with wider tolerances and fuzzy reference credit."""

    amount_variance: Decimal = Decimal("0.05")
    date_window: timedelta = timedelta(days=7)
    threshold: float = 0.6
    name: str = "Flexible Matching"

    def score(self, internal: InternalRecord, external: ExternalRecord) -> float:
        confidence = AMOUNT_WEIGHT * self.amount_similarity(internal, external)
        if same_currency(internal, external):
            confidence += CURRENCY_WEIGHT
        confidence += DATE_WEIGHT * _date_proximity(date_gap(internal, external), self.date_window)
        confidence += REFERENCE_WEIGHT * self.reference_similarity(internal, external)
        return min(1.0, confidence)

    def amount_similarity(self, internal: InternalRecord, external: ExternalRecord) -> float:
        relative = _relative_difference(internal, external)
        if relative <= float(self.amount_variance):
            return 1.0
        return max(0.0, 1.0 - relative)

    def reference_similarity(self, internal: InternalRecord, external: ExternalRecord) -> float:
        if references_internal(internal, external):
            return 1.0
        description = external.description.lower()
        if not description:
            return 0.0
        identifiers = [
            identifier.lower()
            for identifier in (internal.transaction_id, internal.order_id)
            if identifier
        ]
        return max(
            (SequenceMatcher(None, description, identifier).ratio() for identifier in identifiers),
            default=0.0,
        )


def accepts(policy: MatchingPolicy, confidence: float) -> bool:
    return confidence > 0.0 and confidence >= policy.threshold


def _candidate_order(candidate: MatchCandidate) -> tuple[float, object, str]:
    return (-candidate.confidence, candidate.external.settlement_date, candidate.external.reference_id)


def _positioned_candidates(
    internal: InternalRecord,
    externals: Sequence[ExternalRecord],
    policy: MatchingPolicy,
) -> list[tuple[int, MatchCandidate]]:
    """Acceptable candidates with their position in ``externals``, best first."""

    candidates = [
        (position, MatchCandidate(external=external, confidence=confidence))
        for position, external in enumerate(externals)
        if accepts(policy, confidence := policy.score(internal, external))
    ]
    candidates.sort(key=lambda entry: (*_candidate_order(entry[1]), entry[0]))
    return candidates


def find_candidates(
    internal: InternalRecord,
    externals: Sequence[ExternalRecord],
    policy: MatchingPolicy,
) -> tuple[MatchCandidate, ...]:
    """Return candidates above the policy threshold, best first.

    Ordering: higher confidence, then earlier settlement timestamp, then
    reference id for full determinism.
    """

    return tuple(candidate for _, candidate in _positioned_candidates(internal, externals, policy))


def match_records(
    internal_records: Sequence[InternalRecord],
    external_records: Sequence[ExternalRecord],
    policy: MatchingPolicy,
    *,
    executor: Executor | None = None,
) -> MatchingResult:
    """Pair internal with external records under ``policy``.

    All acceptable pairs are ranked globally (confidence, then settlement
    time) and claimed in that order; a pair is skipped once either side has
    been claimed. Each internal record therefore receives its best candidate
    among the externals still unconsumed when its turn comes. Claims are
    tracked by input position, so records sharing a reference id are still
    accounted for individually.
    """

    externals = tuple(external_records)
    score = partial(_positioned_candidates, externals=externals, policy=policy)
    if executor is None:
        candidate_lists = [score(internal) for internal in internal_records]
    else:
        candidate_lists = list(executor.map(score, internal_records))

    ranked: list[tuple[float, object, int, str, int, MatchCandidate]] = [
        (
            -candidate.confidence,
            candidate.external.settlement_date,
            index,
            candidate.external.reference_id,
            position,
            candidate,
        )
        for index, candidates in enumerate(candidate_lists)
        for position, candidate in candidates
    ]
    ranked.sort(key=lambda entry: entry[:5])

    claimed_external: set[int] = set()
    chosen: dict[int, MatchCandidate] = {}
    for _, _, index, _, position, candidate in ranked:
        if index in chosen or position in claimed_external:
            continue
        chosen[index] = candidate
        claimed_external.add(position)

    matches: list[RecordMatch] = []
    unmatched_internal: list[InternalRecord] = []
    for index, internal in enumerate(internal_records):
        candidate = chosen.get(index)
        if candidate is None:
            unmatched_internal.append(internal)
            continue
        matches.append(
            RecordMatch(
                internal=internal,
                external=candidate.external,
                confidence=candidate.confidence,
                reason=f"{policy.name} at {candidate.confidence:.1%} confidence",
            )
        )

    unmatched_external = [
        external
        for position, external in enumerate(externals)
        if position not in claimed_external
    ]
    log.debug(
        "Matched %s of %s internal records using %s",
        len(matches),
        len(internal_records),
        policy.name,
    )
    return MatchingResult(
        matches=tuple(matches),
        unmatched_internal=tuple(unmatched_internal),
        unmatched_external=tuple(unmatched_external),
    )
