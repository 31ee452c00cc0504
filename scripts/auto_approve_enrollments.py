#!/usr/bin/env python3
"""
Complete submitted enrollments whose auto-approval grace period has passed.

Usage:
  python scripts/auto_approve_enrollments.py
  python scripts/auto_approve_enrollments.py --dry-run

Run it from cron or a scheduled task; it is safe to run repeatedly.
Enrollments flagged for review are never touched.
"""
import argparse
import asyncio
import os
import sys

from dotenv import load_dotenv

_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
load_dotenv(os.path.join(_root, ".env"))

# Add project root to path
sys.path.insert(0, _root)

from school_enrollment.core.logging import setup_logging, get_logger  # noqa: E402
from school_enrollment.database import AsyncSessionLocal, close_db  # noqa: E402
from school_enrollment.engine.config import EngineConfig  # noqa: E402
from school_enrollment.engine.workflow import EnrollmentWorkflow  # noqa: E402
from school_enrollment.services.enrollment_service import EnrollmentService  # noqa: E402

logger = get_logger("scripts.auto_approve_enrollments")


async def run(dry_run: bool) -> int:
    workflow = EnrollmentWorkflow(EngineConfig.from_settings())
    try:
        async with AsyncSessionLocal() as db:
            ids = await EnrollmentService.auto_approve_due(db, workflow, dry_run=dry_run)
    finally:
        await close_db()

    logger.info(
        "Auto-approval run finished",
        extra={"dry_run": dry_run, "count": len(ids), "enrollment_ids": [str(i) for i in ids]},
    )
    verb = "Would approve" if dry_run else "Approved"
    print(f"{verb} {len(ids)} enrollment(s).")
    for enrollment_id in ids:
        print(f"  {enrollment_id}")
    return len(ids)


def main():
    parser = argparse.ArgumentParser(description="Auto-approve enrollments past their grace period")
    parser.add_argument("--dry-run", action="store_true", help="List due enrollments without changing them")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(run(args.dry_run))


if __name__ == "__main__":
    main()
