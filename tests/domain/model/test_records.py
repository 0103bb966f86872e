from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from payrecon.domain.model import (
    ExternalRecord,
    InternalRecord,
    PaymentMethod,
    RecordSource,
    as_decimal,
)
from tests.support.records import BASE_TIME, make_external, make_internal


def test_as_decimal_accepts_strings_and_ints() -> None:
    assert as_decimal("10.50") == Decimal("10.50")
    assert as_decimal(3) == Decimal(3)


def test_as_decimal_rejects_floats_and_bools() -> None:
    with pytest.raises(TypeError):
        as_decimal(1.5)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        as_decimal(True)  # type: ignore[arg-type]


def test_as_decimal_rejects_garbage() -> None:
    with pytest.raises(ValueError, match="Invalid amount"):
        as_decimal("ten dollars")


def test_internal_record_normalises_amount_and_timezone() -> None:
    local = datetime(2025, 3, 14, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    record = InternalRecord(
        transaction_id="TXN-1",
        amount="42.00",  # type: ignore[arg-type]
        currency="EUR",
        transaction_date=local,
    )

    assert record.amount == Decimal("42.00")
    assert record.transaction_date == BASE_TIME
    assert record.transaction_date.tzinfo is not None
    assert record.payment_method is PaymentMethod.OTHER
    assert record.source is RecordSource.INTERNAL_SYSTEM
    assert record.key == "TXN-1"


def test_naive_timestamps_are_rejected() -> None:
    with pytest.raises(ValueError, match="settlement_date"):
        ExternalRecord(
            reference_id="REF-1",
            amount=Decimal(1),
            currency="USD",
            settlement_date=datetime(2025, 3, 14, 12, 0),  # noqa: DTZ001
        )


def test_records_are_immutable() -> None:
    record = make_internal()

    with pytest.raises(AttributeError):
        record.amount = Decimal(1)  # type: ignore[misc]


def test_metadata_is_read_only_and_ignored_for_equality() -> None:
    first = InternalRecord(
        transaction_id="TXN-1",
        amount=Decimal(1),
        currency="USD",
        transaction_date=BASE_TIME,
        metadata={"channel": "web"},
    )
    second = InternalRecord(
        transaction_id="TXN-1",
        amount=Decimal(1),
        currency="USD",
        transaction_date=BASE_TIME,
    )

    assert first == second
    with pytest.raises(TypeError):
        first.metadata["channel"] = "pos"  # type: ignore[index]


def test_string_forms_name_the_identifier() -> None:
    assert "TXN-001" in str(make_internal())
    assert "REF-001" in str(make_external(description="Bank transfer"))
