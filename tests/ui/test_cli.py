from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from payrecon.domain.model import ExternalRecord, InternalRecord
from payrecon.domain.reconciliation import ReconciliationEngine
from payrecon.ui import cli
from tests.support.files import write_record_files

if TYPE_CHECKING:
    from pathlib import Path


def _reconcile_args(internal: Path, external: Path, *extra: str) -> list[str]:
    return ["reconcile", "--internal", str(internal), "--external", str(external), *extra]


def test_cli_prints_summary_report(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    internal, external = write_record_files(tmp_path)

    cli.main(_reconcile_args(internal, external))

    out = capsys.readouterr().out
    assert out.startswith("=== Summary Report ===\n")
    assert "matchRate".ljust(25) + ": 66.7%" in out
    assert "RECENT RUNS:" in out


def test_cli_prints_each_requested_report(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    internal, external = write_record_files(tmp_path)

    cli.main(_reconcile_args(internal, external, "--report", "discrepancy", "exception"))

    out = capsys.readouterr().out
    assert out.index("=== Discrepancy Report ===") < out.index("=== Exception Report ===")
    assert "unresolvedDiscrepancies".ljust(25) + ": 1" in out


def test_cli_summary_only(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    internal, external = write_record_files(tmp_path)

    cli.main(_reconcile_args(internal, external, "--summary-only", "--matching", "exact"))

    assert capsys.readouterr().out == (
        "=== RECONCILIATION SUMMARY ===\n"
        "runs: 1\n"
        "matches: 1\n"
        "discrepancies: 3\n"
        "matchRate: 33.3%\n"
    )


def test_cli_rejects_unknown_policy(tmp_path: Path) -> None:
    internal, external = write_record_files(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(_reconcile_args(internal, external, "--matching", "fuzzy"))

    assert excinfo.value.code == 2


def test_cli_invalid_configuration_exits_with_2(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    internal, external = write_record_files(tmp_path)
    monkeypatch.setenv("PAYRECON_MAX_WORKERS", "many")

    with pytest.raises(SystemExit) as excinfo:
        cli.main(_reconcile_args(internal, external))

    assert excinfo.value.code == 2


def test_cli_missing_file_exits_with_2(tmp_path: Path) -> None:
    _, external = write_record_files(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(_reconcile_args(tmp_path / "absent.json", external))

    assert excinfo.value.code == 2


def test_cli_failed_run_exits_with_1(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    class ExplodingMatchingPolicy:
        name = "Exploding Matching"
        threshold = 0.7

        def score(self, internal: InternalRecord, external: ExternalRecord) -> float:
            raise RuntimeError("scoring exploded")

    def fake_create_engine(**_: object) -> ReconciliationEngine:
        return ReconciliationEngine("cli-test", matching_policy=ExplodingMatchingPolicy())

    monkeypatch.setattr(cli, "create_engine", fake_create_engine)
    internal, external = write_record_files(tmp_path)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(_reconcile_args(internal, external))

    assert excinfo.value.code == 1
