from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from payrecon.app import (
    MATCHING_POLICIES,
    RECONCILIATION_POLICIES,
    RESOLUTION_POLICIES,
    create_engine,
    reconcile_files,
)
from payrecon.config import ConfigurationError, configure_logging, get_log_level
from payrecon.domain.errors import RecordFileError, ReconciliationRunError
from payrecon.domain.model import ReportKind

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile payment records")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level (overrides PAYRECON_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    reconcile = subparsers.add_parser(
        "reconcile", help="Reconcile an internal ledger file against an external feed file"
    )
    reconcile.add_argument(
        "--internal",
        required=True,
        help="JSON array of internal ledger records",
    )
    reconcile.add_argument(
        "--external",
        required=True,
        help="JSON array of external settlement records",
    )
    reconcile.add_argument(
        "--matching",
        choices=MATCHING_POLICIES,
        default="standard",
        help="Matching policy (default: %(default)s)",
    )
    reconcile.add_argument(
        "--reconciliation",
        choices=RECONCILIATION_POLICIES,
        default="standard",
        help="Discrepancy analysis policy (default: %(default)s)",
    )
    reconcile.add_argument(
        "--resolution",
        choices=RESOLUTION_POLICIES,
        default="automatic",
        help="Resolution policy (default: %(default)s)",
    )
    reconcile.add_argument(
        "--report",
        nargs="+",
        choices=[kind.value for kind in ReportKind],
        default=[ReportKind.SUMMARY.value],
        help="Report kinds to print after the run (default: %(default)s)",
    )
    reconcile.add_argument(
        "--summary-only",
        action="store_true",
        help="Use the compact summary reporting policy",
    )
    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    try:
        level = logging.DEBUG if parsed_args.verbose else get_log_level()
        configure_logging(level=level)
        engine = create_engine(
            matching=parsed_args.matching,
            reconciliation=parsed_args.reconciliation,
            resolution=parsed_args.resolution,
            reporting="summary" if parsed_args.summary_only else "detailed",
        )
    except (ConfigurationError, ValueError):
        log.exception("CLI validation error")
        sys.exit(2)

    with engine:
        try:
            reconcile_files(engine, parsed_args.internal, parsed_args.external)
        except (RecordFileError, ValueError):
            log.exception("Cannot reconcile record files")
            sys.exit(2)
        except ReconciliationRunError:
            log.exception("Fatal error during reconciliation")
            sys.exit(1)

        for kind in parsed_args.report:
            sys.stdout.write(engine.render_report(ReportKind(kind)))


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
