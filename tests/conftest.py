from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from payrecon.domain.reconciliation import ReconciliationEngine

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _clear_payrecon_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "PAYRECON_ENGINE_ID",
        "PAYRECON_MAX_WORKERS",
        "PAYRECON_EVENT_QUEUE_SIZE",
        "PAYRECON_TREND_WINDOW",
        "PAYRECON_HISTORY_LIMIT",
        "PAYRECON_STANDARD_THRESHOLD",
        "PAYRECON_FLEXIBLE_THRESHOLD",
        "PAYRECON_AMOUNT_TOLERANCE",
        "PAYRECON_AUTO_RESOLVE_THRESHOLD",
        "PAYRECON_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def engine() -> Iterator[ReconciliationEngine]:
    with ReconciliationEngine("test-engine", max_workers=4) as instance:
        yield instance
