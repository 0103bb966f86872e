from __future__ import annotations

from decimal import Decimal

from payrecon.domain.store import RecordStore, is_valid_external, is_valid_internal
from tests.support.records import make_external, make_internal


def test_invalid_records_are_counted_not_stored() -> None:
    store = RecordStore()

    update = store.add_internal(
        [
            make_internal("TXN-1"),
            make_internal("   "),
            make_internal("TXN-2", amount="0"),
            make_internal("TXN-3", amount="-5.00"),
            "not a record",
        ]
    )

    assert (update.accepted, update.rejected, update.replaced) == (1, 4, 0)
    assert store.internal_count == 1


def test_reingesting_an_identifier_replaces_the_record() -> None:
    store = RecordStore()
    first = store.add_external([make_external("REF-1", "10.00")])
    second = store.add_external([make_external("REF-1", "12.00")])

    snapshot = store.snapshot()

    assert store.external_count == 1
    assert snapshot.external[0].amount == Decimal("12.00")
    assert (first.replaced, second.replaced) == (0, 1)
    assert second.accepted == 1


def test_snapshot_preserves_insertion_order_and_is_detached() -> None:
    store = RecordStore()
    store.add_internal([make_internal("TXN-2"), make_internal("TXN-1")])

    snapshot = store.snapshot()
    store.add_internal([make_internal("TXN-3")])

    assert [record.transaction_id for record in snapshot.internal] == ["TXN-2", "TXN-1"]
    assert store.internal_count == 3


def test_clear_empties_both_collections() -> None:
    store = RecordStore()
    store.add_internal([make_internal()])
    store.add_external([make_external()])

    store.clear()

    assert store.snapshot().is_empty


def test_validators_check_type_identifier_and_amount() -> None:
    assert is_valid_internal(make_internal())
    assert not is_valid_internal(make_external())
    assert is_valid_external(make_external())
    assert not is_valid_external(make_external(amount="0.00"))


def test_repeated_identifier_within_one_call_counts_as_replacement() -> None:
    store = RecordStore()

    update = store.add_internal([make_internal("TXN-1", "5.00"), make_internal("TXN-1", "7.00")])

    assert (update.accepted, update.replaced) == (2, 1)
    assert store.snapshot().internal[0].amount == Decimal("7.00")
