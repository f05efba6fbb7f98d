"""Operator CLI for InternQuest account provisioning and data maintenance.

Runs with the operator's own Firebase Admin credentials
(GOOGLE_APPLICATION_CREDENTIALS or Application Default Credentials).

Examples:
    python -m scripts.iq_admin provision-user --email student@neu.edu.ph \\
        --password 'Temp#12345' --student-id 22-12345-678 --first Student --last Name
    python -m scripts.iq_admin migrate-student-ids --dry-run
    python -m scripts.iq_admin verify-audit
"""
from __future__ import annotations
import argparse
import json
import re
import sys
from pathlib import Path
from typing import Optional

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from internquest.core import audit
from internquest.core.accounts import upsert_account
from internquest.core.errors import ServiceError
from internquest.core.firebase.exceptions import IdentityProviderError
from internquest.core.migration import (
    DEFAULT_BATCH_SIZE,
    MigrationOptions,
    ResumeCursor,
    clamp_batch_size,
    migrate_student_ids,
)
from internquest.core.roles import ACCOUNT_ROLES
from internquest.core.services import Services

STUDENT_ID_PATTERN = re.compile(r"^\d{2}-\d{5}-\d{3}$")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="InternQuest admin helper")
    parser.add_argument("--operator", default="cli",
                        help="Operator identifier for audit logs (default: cli)")

    sub = parser.add_subparsers(dest="cmd")

    sp = sub.add_parser("provision-user", help="Create or update a password account")
    sp.add_argument("--email", required=True)
    sp.add_argument("--password", required=True)
    sp.add_argument("--student-id", required=True, help="Format XX-XXXXX-XXX")
    sp.add_argument("--first", default="")
    sp.add_argument("--last", default="")
    sp.add_argument("--role", default="student", choices=ACCOUNT_ROLES)
    sp.add_argument("--dry-run", action="store_true", help="Print the plan, write nothing")
    sp.add_argument("--update-if-exists", action="store_true",
                    help="Update an existing account with the same email")

    sm = sub.add_parser("migrate-student-ids", help="Backfill studentId from studentNumber")
    sm.add_argument("--dry-run", action="store_true")
    sm.add_argument("--keep-legacy", action="store_true", help="Do not remove studentNumber")
    sm.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE)
    sm.add_argument("--resume-collection")
    sm.add_argument("--resume-after", help="Document id to resume after")

    sub.add_parser("verify-audit", help="Verify audit log signatures")

    return parser


def _load_services() -> Services:
    from internquest.config import load_settings
    from internquest.core.firebase.client import build_services

    return build_services(load_settings())


def cmd_provision_user(args, services: Optional[Services]) -> int:
    email = args.email.strip()
    student_id = args.student_id.strip()
    if not STUDENT_ID_PATTERN.match(student_id):
        print("Invalid --student-id format. Expected XX-XXXXX-XXX (digits + hyphens).", file=sys.stderr)
        return 1

    if args.dry_run:
        plan = {
            "email": email,
            "studentId": student_id,
            "role": args.role,
            "displayName": " ".join(p for p in (args.first.strip(), args.last.strip()) if p) or None,
            "updateIfExists": args.update_if_exists,
        }
        print("DRY RUN - would provision:", json.dumps(plan, indent=2))
        return 0

    services = services or _load_services()
    try:
        result = upsert_account(
            services,
            email=email,
            password=args.password,
            student_id=student_id,
            first_name=args.first.strip(),
            last_name=args.last.strip(),
            role=args.role,
            update_if_exists=args.update_if_exists,
            operator=args.operator,
        )
    except (ServiceError, IdentityProviderError) as exc:
        print(f"Provisioning failed: {exc}", file=sys.stderr)
        return 1

    action = "Created" if result["created"] else "Updated"
    print(f"{action} account {result['uid']} (role={result['role']})")
    print(f"Upserted profile: {services.users_collection}/{result['uid']}")
    return 0


def cmd_migrate_student_ids(args, services: Optional[Services]) -> int:
    if args.resume_after and not args.resume_collection:
        print("--resume-after requires --resume-collection", file=sys.stderr)
        return 1

    resume_from = None
    if args.resume_collection and args.resume_after:
        resume_from = ResumeCursor(args.resume_collection, args.resume_after)
    options = MigrationOptions(
        dry_run=args.dry_run,
        delete_legacy_field=not args.keep_legacy,
        batch_size=clamp_batch_size(args.batch_size),
        resume_from=resume_from,
    )

    services = services or _load_services()
    report = migrate_student_ids(
        services.store,
        options,
        users_collection=services.users_collection,
        canonical_field=services.student_id_field,
    ).to_dict()
    print(json.dumps(report, indent=2))

    if not options.dry_run:
        audit.safe_log_event(
            "migrate_student_ids",
            ",".join(report["collections"]),
            operator=args.operator,
            details={"scanned": report["scanned"], "stoppedEarly": report["stoppedEarly"]},
        )
    if report["stoppedEarly"]:
        cursor = report["resumeFrom"] or {}
        print(
            f"Stopped early. Resume with: --resume-collection {cursor.get('collection')} "
            f"--resume-after {cursor.get('afterId')}",
            file=sys.stderr,
        )
    return 0


def cmd_verify_audit(args) -> int:
    report = audit.verify_audit_log()
    print(f"Audit events: {report.total}, valid signatures: {report.valid}")
    if report.bad_lines:
        print(f"Unverified lines: {', '.join(map(str, report.bad_lines))}", file=sys.stderr)
    return 0 if report.ok else 1


def main(argv: Optional[list[str]] = None, services: Optional[Services] = None) -> int:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 0

    if args.cmd == "provision-user":
        return cmd_provision_user(args, services)
    if args.cmd == "migrate-student-ids":
        return cmd_migrate_student_ids(args, services)
    if args.cmd == "verify-audit":
        return cmd_verify_audit(args)

    parser.error(f"Unknown command: {args.cmd}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
