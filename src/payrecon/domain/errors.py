"""Exception hierarchy for the reconciliation domain.

State errors (ingesting or starting a run while one is in flight) are not
exceptions: they come back as rejected result objects. The types here cover
run faults and invalid caller input that cannot be expressed as a result.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID


class PayreconError(Exception):
    """Base class for payrecon domain errors."""


class ReconciliationRunError(PayreconError):
    """Raised through a run's future when matching, analysis or resolution faults."""

    def __init__(self, message: str, *, run_id: UUID) -> None:
        super().__init__(message)
        self.run_id = run_id


class UnknownDiscrepancyError(PayreconError, KeyError):
    """Raised when a discrepancy id is not part of any completed run."""

    def __init__(self, discrepancy_id: UUID) -> None:
        super().__init__(f"Unknown discrepancy: {discrepancy_id}")
        self.discrepancy_id = discrepancy_id

    def __str__(self) -> str:
        return str(self.args[0])


class RecordFileError(PayreconError):
    """Raised when a record file cannot be read or does not validate."""
