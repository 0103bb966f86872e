"""Ledger and settlement records handed to the engine by ingestion.

Records are immutable value objects. Basic acceptance checks (blank
identifiers, non-positive amounts) are deliberately *not* enforced here: the
record store counts and drops such records at ingestion time so callers get a
tally instead of an exception.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import TYPE_CHECKING

from .enums import PaymentMethod, PaymentStatus, RecordSource

if TYPE_CHECKING:
    from collections.abc import Mapping


def _empty_mapping() -> Mapping[str, object]:
    return MappingProxyType({})


def as_decimal(value: Decimal | int | str) -> Decimal:
    """Coerce ``value`` into a ``Decimal`` without going through ``float``."""

    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise TypeError(f"Amounts must be Decimal, int or str, got {type(value).__name__}")
    try:
        return Decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc


def ensure_aware(value: datetime, *, field_name: str) -> datetime:
    if value.tzinfo is None:
        raise ValueError(f"{field_name} must include timezone information")
    return value.astimezone(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class InternalRecord:
    """A transaction as recorded by the organisation's own ledger."""

    transaction_id: str
    amount: Decimal
    currency: str
    transaction_date: datetime
    order_id: str | None = None
    payment_method: PaymentMethod = PaymentMethod.OTHER
    status: PaymentStatus = PaymentStatus.COMPLETED
    customer_id: str | None = None
    merchant_id: str | None = None
    metadata: Mapping[str, object] = field(default_factory=_empty_mapping, compare=False)
    source: RecordSource = RecordSource.INTERNAL_SYSTEM

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", as_decimal(self.amount))
        object.__setattr__(
            self,
            "transaction_date",
            ensure_aware(self.transaction_date, field_name="transaction_date"),
        )
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def key(self) -> str:
        return self.transaction_id

    def __str__(self) -> str:
        return (
            f"InternalRecord[{self.transaction_id}]: {self.amount} {self.currency} "
            f"({self.payment_method.display_name}) - {self.status.display_name}"
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ExternalRecord:
    """A transaction as reported by a bank, processor or settlement feed."""

    reference_id: str
    amount: Decimal
    currency: str
    settlement_date: datetime
    description: str = ""
    bank_transaction_id: str | None = None
    account_number: str | None = None
    counterparty_name: str | None = None
    additional_fields: Mapping[str, object] = field(default_factory=_empty_mapping, compare=False)
    source: RecordSource = RecordSource.BANK_STATEMENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", as_decimal(self.amount))
        object.__setattr__(
            self,
            "settlement_date",
            ensure_aware(self.settlement_date, field_name="settlement_date"),
        )
        object.__setattr__(self, "additional_fields", MappingProxyType(dict(self.additional_fields)))

    @property
    def key(self) -> str:
        return self.reference_id

    def __str__(self) -> str:
        return (
            f"ExternalRecord[{self.reference_id}]: {self.amount} {self.currency} "
            f"- {self.description} ({self.source.display_name})"
        )
