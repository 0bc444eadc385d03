#!/usr/bin/env python3
"""
Run a batch maintenance job against the contravention database.

Usage:
    python scripts/run_maintenance.py seed
    python scripts/run_maintenance.py reset
    python scripts/run_maintenance.py recalculate
    python scripts/run_maintenance.py sync
    python scripts/run_maintenance.py overdue-training
    python scripts/run_maintenance.py verify-audit

The database URL comes from --database-url or DATABASE_URL.  ``seed``
creates the schema if needed and loads the configured catalogs; the
other jobs expect it to exist.

Notifications produced by a job (escalations raised by ``recalculate``)
are logged rather than sent; the engine only needs a user directory for
operations that look people up, so an empty one is used here.

Exit status is 0 on success, 1 on a failed job and 2 when ``sync``
corrected drifted totals.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from contravention_config import get_active_policy
from contravention_config.bridges import build_contravention_policy
from contravention_kernel.db.engine import create_tables, get_session, init_engine_from_url
from contravention_kernel.db.immutability import register_immutability_listeners
from contravention_kernel.exceptions import AuditChainBrokenError, ErrorKind
from contravention_kernel.logging_config import configure_logging
from contravention_services.directory import InMemoryDirectory
from contravention_services.engine import ContraventionEngine
from contravention_services.notifications import LoggingDispatcher

JOBS = ("seed", "reset", "recalculate", "sync", "overdue-training", "verify-audit")


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Contravention points maintenance")
    parser.add_argument("job", choices=JOBS)
    parser.add_argument(
        "--database-url",
        default=os.environ.get("DATABASE_URL"),
        help="SQLAlchemy URL (default: $DATABASE_URL)",
    )
    parser.add_argument(
        "--config",
        default="default",
        help="Policy configuration set name (default: default)",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    return parser.parse_args(argv)


def _run_job(engine: ContraventionEngine, job: str) -> int:
    if job == "seed":
        types_added, courses_added = engine.seed_catalogs().unwrap()
        print(f"Seeded {types_added} contravention type(s), {courses_added} course(s)")
        return 0

    if job == "reset":
        result = engine.reset_fiscal_year()
        if result.is_success:
            s = result.value
            print(
                f"{s.fiscal_year}: reset {s.employees_reset}, skipped "
                f"{s.employees_skipped}, cleared {s.points_cleared} point(s)"
            )
    elif job == "recalculate":
        result = engine.recalculate_escalations()
        if result.is_success:
            s = result.value
            print(
                f"Checked {s.employees_checked}, tiers changed {s.tiers_changed}, "
                f"escalations created {s.escalations_created}"
            )
    elif job == "sync":
        result = engine.sync_points_from_contraventions()
        if result.is_success:
            print(f"Checked {result.value.employees_checked} employee(s)")
            for warning in result.warnings:
                print(f"  DRIFT: {warning}")
            if result.error_kind == ErrorKind.RECONCILIATION_DRIFT:
                return 2
    elif job == "overdue-training":
        result = engine.mark_overdue_training()
        if result.is_success:
            print(f"Marked {len(result.value)} training assignment(s) overdue")
    else:
        try:
            engine.auditor.validate_chain()
        except AuditChainBrokenError as exc:
            print(f"AUDIT CHAIN BROKEN: {exc}", file=sys.stderr)
            return 1
        print("Audit chain intact")
        return 0

    if not result.is_success:
        print(f"FAILED [{result.error_code}]: {result.message}", file=sys.stderr)
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    if not args.database_url:
        print("Error: no database URL (use --database-url or DATABASE_URL)", file=sys.stderr)
        return 1

    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)
    policy = build_contravention_policy(get_active_policy(args.config))

    init_engine_from_url(args.database_url)
    if args.job == "seed":
        create_tables()
    register_immutability_listeners()

    session = get_session()
    engine = ContraventionEngine(
        session=session,
        directory=InMemoryDirectory(),
        dispatcher=LoggingDispatcher(),
        policy=policy,
    )
    try:
        return _run_job(engine, args.job)
    finally:
        engine.close()
        session.close()


if __name__ == "__main__":
    sys.exit(main())
