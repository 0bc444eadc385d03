#!/usr/bin/env python3
"""
Walk one employee through the contravention lifecycle and print each step.

Files contraventions, rejects and resubmits an approval, crosses the
escalation tiers, completes the assigned training and prints the audit
trail.  Runs against in-memory SQLite unless --db-url is given.

Usage:
    python3 scripts/demo_lifecycle.py
    python3 scripts/demo_lifecycle.py --db-url postgresql://...
"""

import argparse
import logging
import sys
from datetime import UTC, date, datetime
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from contravention_config import get_active_policy
from contravention_config.bridges import build_contravention_policy
from contravention_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
)
from contravention_kernel.domain.approval import ApprovalDecision
from contravention_kernel.domain.clock import DeterministicClock
from contravention_kernel.domain.collaborators import Actor, DirectoryUser, UserRole
from contravention_kernel.domain.contravention import ContraventionPatch, NewContravention
from contravention_services.directory import InMemoryDirectory
from contravention_services.engine import ContraventionEngine
from contravention_services.notifications import LoggingDispatcher

W = 72


def banner(title: str) -> None:
    print()
    print("=" * W)
    print(f"  {title}")
    print("=" * W)


def field(name: str, value, indent: int = 4) -> None:
    print(f"{' ' * indent}{name}: {value}")


def standing(engine: ContraventionEngine, employee_id) -> None:
    s = engine.get_employee_points_summary(employee_id).unwrap()
    field("points", s.total_points)
    field("tier", f"{s.current_tier.value} ({s.tier_name or '-'})")
    if s.required_actions:
        field("actions", "; ".join(s.required_actions))
    if s.points_to_next_tier is not None:
        field("to next tier", s.points_to_next_tier)


def main() -> int:
    parser = argparse.ArgumentParser(description="Contravention lifecycle demo")
    parser.add_argument("--db-url", default="sqlite://", help="Database URL")
    args = parser.parse_args()

    logging.disable(logging.CRITICAL)

    init_engine_from_url(args.db_url)
    drop_tables()
    create_tables()

    admin = DirectoryUser(uuid4(), "admin@example.com", "Avery Admin", UserRole.ADMIN)
    approver = DirectoryUser(uuid4(), "head@example.com", "Harper Head", UserRole.APPROVER)
    finance = DirectoryUser(uuid4(), "finance@example.com", "Finley Finance", UserRole.APPROVER)
    filer = DirectoryUser(uuid4(), "buyer@example.com", "Blake Buyer")
    employee = DirectoryUser(uuid4(), "requester@example.com", "Riley Requester")
    directory = InMemoryDirectory([admin, approver, finance, filer, employee])

    clock = DeterministicClock(datetime(2025, 6, 2, 9, 0, tzinfo=UTC))
    session = get_session()
    engine = ContraventionEngine(
        session=session,
        directory=directory,
        dispatcher=LoggingDispatcher(),
        policy=build_contravention_policy(get_active_policy()),
        clock=clock,
    )
    engine.seed_catalogs().unwrap()
    admin_actor = Actor(admin.id, is_admin=True)
    filer_actor = Actor(filer.id)

    def file(type_name: str, **extra):
        new = NewContravention(
            employee_id=employee.id,
            logged_by_id=filer.id,
            type_id=engine.catalog.type_by_name(type_name).id,
            description=f"{type_name} on a stationery order",
            incident_date=date(2025, 5, 20),
            vendor="Acme Supplies",
            **extra,
        )
        return engine.file_contravention(new).unwrap()

    try:
        banner("1. File with an approver, reject, resubmit")
        first = file("Missing AOR", approver_email=approver.email)
        field("reference", first.contravention.reference_no)
        field("status", first.contravention.status.value)
        engine.review_approval(
            first.approval_request_id,
            Actor(approver.id),
            ApprovalDecision.REJECTED,
            notes="missing invoice",
        ).unwrap()
        clock.advance(3600)
        request = engine.resubmit_contravention(
            first.contravention.id,
            filer_actor,
            finance.email,
            patch=ContraventionPatch(summary="Invoice attached"),
        ).unwrap()
        engine.review_approval(request.id, Actor(finance.id), ApprovalDecision.APPROVED).unwrap()
        for r in engine.get_approval_history(first.contravention.id).unwrap():
            field("approval", f"{r.status.value} {r.review_notes or ''}".strip())
        standing(engine, employee.id)

        banner("2. Document upload path")
        second = file("Different vendor on AOR versus purchase", points=4)
        engine.upload_approval_document(
            second.contravention.id, "docs/vendor-approval.pdf", filer_actor
        ).unwrap()
        engine.mark_complete(second.contravention.id, admin_actor, notes="Verified").unwrap()
        standing(engine, employee.id)

        banner("3. Escalate to stage 2 and complete training")
        file("Signatory Contravention")
        summary = engine.get_employee_points_summary(employee.id).unwrap()
        standing(engine, employee.id)
        for training_id in summary.pending_training_ids:
            credit = engine.complete_training(training_id, admin_actor).unwrap()
            field("training credit", f"-{credit.points_removed} -> {credit.new_total}")
        standing(engine, employee.id)

        banner("4. Audit trail")
        engine.auditor.validate_chain()
        for entry in engine.auditor.get_trace("Contravention", first.contravention.id):
            field(f"#{entry.seq}", entry.action)
    finally:
        engine.close()
        session.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
