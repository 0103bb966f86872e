"""Record store holding the two keyed collections for reconciliation runs."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, TypeGuard

from payrecon.domain.model import ExternalRecord, InternalRecord

if TYPE_CHECKING:
    from collections.abc import Iterable


@dataclass(frozen=True, slots=True, kw_only=True)
class IngestionResult:
    """Outcome of one ingestion call.

    ``success`` is ``False`` only when the whole batch was refused (for example
    while a run is in progress); individually invalid records are counted in
    ``rejected`` and do not fail the call.
    """

    success: bool
    message: str
    accepted: int = 0
    rejected: int = 0
    replaced: int = 0


@dataclass(frozen=True, slots=True)
class StoreUpdate:
    """Counts from one ``add_*`` call; ``replaced`` is included in ``accepted``."""

    accepted: int = 0
    rejected: int = 0
    replaced: int = 0


@dataclass(frozen=True, slots=True)
class RecordSnapshot:
    """Read-only view of both collections taken at run start."""

    internal: tuple[InternalRecord, ...] = ()
    external: tuple[ExternalRecord, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.internal and not self.external


def is_valid_internal(record: object) -> TypeGuard[InternalRecord]:
    return (
        isinstance(record, InternalRecord)
        and bool(record.transaction_id and record.transaction_id.strip())
        and record.amount > Decimal(0)
    )


def is_valid_external(record: object) -> TypeGuard[ExternalRecord]:
    return (
        isinstance(record, ExternalRecord)
        and bool(record.reference_id and record.reference_id.strip())
        and record.amount > Decimal(0)
    )


@dataclass(slots=True)
class RecordStore:
    """Thread-safe keyed maps of internal and external records.

    Re-ingesting a record with an identifier that is already stored replaces
    the earlier version. Insertion order is preserved so runs are
    deterministic for a given ingestion sequence.
    """

    _internal: dict[str, InternalRecord] = field(default_factory=dict[str, InternalRecord])
    _external: dict[str, ExternalRecord] = field(default_factory=dict[str, ExternalRecord])
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add_internal(self, records: Iterable[object]) -> StoreUpdate:
        """Store valid internal records keyed by transaction id."""

        accepted = rejected = replaced = 0
        with self._lock:
            for record in records:
                if not is_valid_internal(record):
                    rejected += 1
                    continue
                if record.transaction_id in self._internal:
                    replaced += 1
                self._internal[record.transaction_id] = record
                accepted += 1
        return StoreUpdate(accepted=accepted, rejected=rejected, replaced=replaced)

    def add_external(self, records: Iterable[object]) -> StoreUpdate:
        """Store valid external records keyed by reference id."""

        accepted = rejected = replaced = 0
        with self._lock:
            for record in records:
                if not is_valid_external(record):
                    rejected += 1
                    continue
                if record.reference_id in self._external:
                    replaced += 1
                self._external[record.reference_id] = record
                accepted += 1
        return StoreUpdate(accepted=accepted, rejected=rejected, replaced=replaced)

    def snapshot(self) -> RecordSnapshot:
        with self._lock:
            return RecordSnapshot(
                internal=tuple(self._internal.values()),
                external=tuple(self._external.values()),
            )

    def clear(self) -> None:
        with self._lock:
            self._internal.clear()
            self._external.clear()

    @property
    def internal_count(self) -> int:
        with self._lock:
            return len(self._internal)

    @property
    def external_count(self) -> int:
        with self._lock:
            return len(self._external)
