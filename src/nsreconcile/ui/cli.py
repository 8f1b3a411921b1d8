# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from nsreconcile.adapters.plan_file import PlanFileError, load_plan
from nsreconcile.app import run_plan
from nsreconcile.common import configure_logging
from nsreconcile.config import ConfigurationError, get_engine_config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from nsreconcile.app import PlanReport

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile namespaces from a plan file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    apply = subparsers.add_parser("apply", help="Apply a plan and print the final namespaces")
    apply.add_argument("plan", type=Path, help="Path to a TOML plan file")
    apply.add_argument(
        "--notes",
        action="store_true",
        help="Also print the anomaly notes recorded while reconciling",
    )

    check = subparsers.add_parser("check", help="Apply a plan and verify expected failures")
    check.add_argument("plan", type=Path, help="Path to a TOML plan file")

    return parser.parse_args(list(argv))


def _print_snapshots(report: PlanReport, *, with_notes: bool) -> None:
    document: dict[str, object] = {
        "namespaces": [snapshot.as_dict() for snapshot in report.snapshots],
    }
    if with_notes:
        document["notes"] = [
            {
                "kind": note.kind.value,
                "namespace": note.namespace,
                "name": note.name,
                "detail": note.detail,
            }
            for note in report.notes
        ]
    print(json.dumps(document, indent=2, sort_keys=True))


def _print_outcomes(report: PlanReport) -> None:
    for outcome in report.outcomes:
        status = "ok" if outcome.ok else "FAIL"
        expected = outcome.expected_error or "success"
        actual = outcome.error or "success"
        print(f"{status} step {outcome.index} {outcome.namespace}: expected {expected}, got {actual}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        config = get_engine_config()
        configure_logging(level=config.log_level)
        parsed_args = _parse_args(args_list)
        plan = load_plan(parsed_args.plan)
    except (ConfigurationError, PlanFileError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        report = run_plan(plan, config=config)
    except Exception:
        log.exception("Fatal error while reconciling")
        sys.exit(1)

    if parsed_args.command == "apply":
        _print_snapshots(report, with_notes=parsed_args.notes)
    else:
        _print_outcomes(report)
    if not report.ok:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
