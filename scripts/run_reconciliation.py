#!/usr/bin/env python3
"""
Recompute the monthly certified counters from customer ground truth.

Usage:
  python3 scripts/run_reconciliation.py                      # configured rolling window
  python3 scripts/run_reconciliation.py --recent 6
  python3 scripts/run_reconciliation.py --between 2024-01 2024-06 --dry-run
  python3 scripts/run_reconciliation.py --full --actor ops
  python3 scripts/run_reconciliation.py --verify              # read-only; exit 1 on drift

Exit codes:
  0  clean (or drift corrected)
  1  drift found by --verify or --dry-run
  2  another run holds the reconciliation guard
"""

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from certification_kernel.config import load_config
from certification_kernel.db.engine import get_session_factory, init_engine_from_url
from certification_kernel.db.immutability import register_immutability_listeners
from certification_kernel.exceptions import (
    AggregateInconsistencyError,
    ReconciliationInProgressError,
)
from certification_kernel.logging_config import configure_logging
from certification_services import ReconciliationJob, ReconciliationScope


def _parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Reconcile monthly certified counters")
    window = p.add_mutually_exclusive_group()
    window.add_argument("--full", action="store_true", help="Recompute every month (backfill)")
    window.add_argument("--recent", type=int, metavar="N", help="Last N months, including the current one")
    window.add_argument("--between", nargs=2, metavar=("START", "END"), help="Inclusive YYYY-MM window")
    p.add_argument("--dry-run", action="store_true", help="Report drift without writing counters")
    p.add_argument("--verify", action="store_true", help="Read-only check; exit 1 on drift")
    p.add_argument("--actor", default="system", help="Recorded on the run (default: system)")
    p.add_argument("--config", help="Path to certification.yaml")
    return p.parse_args(argv)


def _scope(args: argparse.Namespace) -> ReconciliationScope | None:
    if args.full:
        return ReconciliationScope.full()
    if args.recent is not None:
        return ReconciliationScope.recent(args.recent)
    if args.between:
        return ReconciliationScope.between(*args.between)
    return None


def main(argv=None) -> int:
    args = _parse_args(argv)
    config = load_config(args.config)

    configure_logging(level=config.log_level)
    init_engine_from_url(config.database_url)
    register_immutability_listeners()

    job = ReconciliationJob(get_session_factory(), config=config)
    scope = _scope(args)

    if args.verify:
        try:
            diffs = job.verify(scope)
        except AggregateInconsistencyError as exc:
            print(json.dumps(exc.to_dict(), indent=2))
            return 1
        print(f"OK: {len(diffs)} counter(s) agree with ground truth")
        return 0

    try:
        report = job.run(scope, actor=args.actor, dry_run=args.dry_run)
    except ReconciliationInProgressError as exc:
        print(f"BUSY: {exc}", file=sys.stderr)
        return 2

    print(json.dumps(report.to_dict(), indent=2))
    if args.dry_run and report.drift_count:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
