#!/usr/bin/env python3
"""
setup_term_schedule.py: generate a term's recurring sessions from a YAML schedule.

The target environment is always named explicitly with --env. Production
runs (dry runs included) need --confirm-prod; replacing existing sessions in
the term window and test-data seeding are staging-only. Raw destructive
switches such as --reset or --wipe are refused before anything else runs.

Examples:
    python scripts/setup_term_schedule.py --schedule spring-2026.yaml --env staging --dry-run
    python scripts/setup_term_schedule.py --schedule spring-2026.yaml --env staging \\
        --exclude-dates holidays.txt --replace-existing-in-range --run-log logs/spring-staging.md
    python scripts/setup_term_schedule.py --schedule spring-2026.yaml --env production --confirm-prod
"""

import argparse
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
import sys
from typing import Any, Callable, Dict, List, Optional

BACKEND_DIR = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from sqlalchemy.orm import Session  # noqa: E402

from tutorsched.core.config import settings  # noqa: E402
from tutorsched.core.enums import DeploymentEnvironment  # noqa: E402
from tutorsched.core.exceptions import (  # noqa: E402
    ForbiddenOperationException,
    PersistenceException,
    ValidationException,
)
from tutorsched.database import SessionLocal  # noqa: E402
from tutorsched.services.safety_gate import authorize, reject_forbidden_arguments  # noqa: E402
from tutorsched.services.schedule_generation_service import (  # noqa: E402
    GenerationRequest,
    GenerationResult,
    ScheduleGenerationService,
    generation_capabilities,
)
from tutorsched.utils.env_logging import log_error, log_info, log_warn  # noqa: E402
from tutorsched.utils.run_log import append_run_log, format_run_entry  # noqa: E402
from tutorsched.utils.schedule_loader import load_exclude_dates, load_schedule_file  # noqa: E402

EXIT_OK = 0
EXIT_REFUSED = 1
EXIT_PERSISTENCE = 2

logger = logging.getLogger("setup_term_schedule")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a term's recurring sessions from a YAML schedule file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--schedule", type=Path, required=True, help="YAML schedule file")
    parser.add_argument(
        "--env",
        required=True,
        choices=[env.value for env in DeploymentEnvironment],
        help="target environment (never inferred)",
    )
    parser.add_argument("--tenant", default=None, help="override tenant_id from the schedule file")
    parser.add_argument("--exclude-dates", type=Path, default=None, help="file of YYYY-MM-DD lines")
    parser.add_argument("--dry-run", action="store_true", help="report what would happen; write nothing")
    parser.add_argument(
        "--replace-existing-in-range",
        action="store_true",
        help="staging only: delete generated sessions in the term window first",
    )
    parser.add_argument("--confirm-prod", action="store_true", help="required for any production run")
    parser.add_argument("--seed-test-data", action="store_true", help="staging only: allow test-data seeding")
    parser.add_argument("--run-log", type=Path, default=None, help="append a Markdown run entry here")
    return parser


def parse_args(argv: List[str]) -> argparse.Namespace:
    """Refuse forbidden switches, then parse."""
    reject_forbidden_arguments(argv)
    return build_parser().parse_args(argv)


def summarize(result: GenerationResult, tenant_id: str) -> Dict[str, Any]:
    return {
        "environment": result.environment.value,
        "dry_run": result.dry_run,
        "tenant_id": tenant_id,
        "created": result.summary.created_count,
        "skipped": result.summary.skipped_count,
        "deleted": result.summary.deleted_count,
        "conflicts": list(result.summary.conflicts),
        "occurrences": result.occurrence_count,
        "range": {
            "from": result.range_from.isoformat() if result.range_from else None,
            "to": result.range_to.isoformat() if result.range_to else None,
        },
        "rules": [
            {
                "label": outcome.label,
                "group_id": outcome.group_id,
                "created": outcome.created_count,
                "skipped": outcome.skipped_count,
            }
            for outcome in result.rule_outcomes
        ],
    }


def run(args: argparse.Namespace, session_factory: Callable[[], Session] = SessionLocal) -> Dict[str, Any]:
    # Gate before any file is read.
    authorize(
        generation_capabilities(args.replace_existing_in_range, args.seed_test_data),
        args.env,
        args.confirm_prod,
    )

    schedule = load_schedule_file(args.schedule, tenant_override=args.tenant)
    exclusions = load_exclude_dates(args.exclude_dates) if args.exclude_dates else frozenset()

    request = GenerationRequest(
        tenant_id=schedule.tenant_id,
        term=schedule.term,
        bindings=schedule.bindings,
        environment=args.env,
        exclusions=exclusions,
        dry_run=args.dry_run,
        replace_existing_in_range=args.replace_existing_in_range,
        seed_test_data=args.seed_test_data,
        confirm_production=args.confirm_prod,
    )

    log_info(
        args.env,
        f"Tenant {schedule.tenant_id}: {len(schedule.bindings)} rules, "
        f"{schedule.term.start_date} to {schedule.term.end_date} ({schedule.term.time_zone}), "
        f"{len(exclusions)} excluded dates{' [dry run]' if args.dry_run else ''}",
    )

    db = session_factory()
    try:
        result = ScheduleGenerationService(db).generate_schedule(request)
    finally:
        db.close()

    if args.seed_test_data:
        log_warn(args.env, "Test-data seeding authorized; run the tenant provisioning tool to seed")
    for conflict in result.summary.conflicts:
        log_warn(args.env, conflict)

    if args.run_log:
        append_run_log(
            args.run_log,
            format_run_entry(
                result=result,
                tenant_id=schedule.tenant_id,
                term=schedule.term,
                schedule_source=str(args.schedule),
                replace_existing_in_range=args.replace_existing_in_range,
                now=datetime.now(timezone.utc),
            ),
        )
        log_info(args.env, f"Run log appended to {args.run_log}")

    return summarize(result, schedule.tenant_id)


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        args = parse_args(argv)
    except ForbiddenOperationException as e:
        log_error("refused", e.message)
        return EXIT_REFUSED
    except SystemExit as e:
        # Exit status 2 is reserved for store failures.
        return EXIT_OK if e.code in (0, None) else EXIT_REFUSED

    try:
        summary = run(args)
    except (ForbiddenOperationException, ValidationException) as e:
        log_error(args.env, f"{e.code}: {e.message}")
        return EXIT_REFUSED
    except PersistenceException as e:
        log_error(args.env, f"{e.code}: {e.message} (safe to re-run)")
        return EXIT_PERSISTENCE

    print(json.dumps(summary, indent=2))
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
