"""Translate record file payloads into domain records."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from payrecon.domain.model import ExternalRecord, InternalRecord

if TYPE_CHECKING:
    from .schema import ExternalRecordPayload, InternalRecordPayload


def _as_utc(value: datetime) -> datetime:
    # Files without an offset are taken to be in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_internal_record(payload: InternalRecordPayload) -> InternalRecord:
    return InternalRecord(
        transaction_id=payload.transaction_id,
        amount=payload.amount,
        currency=payload.currency,
        transaction_date=_as_utc(payload.transaction_date),
        order_id=payload.order_id,
        payment_method=payload.payment_method,
        status=payload.status,
        customer_id=payload.customer_id,
        merchant_id=payload.merchant_id,
        metadata=payload.metadata,
        source=payload.source,
    )


def to_external_record(payload: ExternalRecordPayload) -> ExternalRecord:
    return ExternalRecord(
        reference_id=payload.reference_id,
        amount=payload.amount,
        currency=payload.currency,
        settlement_date=_as_utc(payload.settlement_date),
        description=payload.description,
        bank_transaction_id=payload.bank_transaction_id,
        account_number=payload.account_number,
        counterparty_name=payload.counterparty_name,
        additional_fields=payload.additional_fields,
        source=payload.source,
    )
