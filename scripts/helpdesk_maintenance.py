#!/usr/bin/env python3
"""Helpdesk maintenance sweep — SLA refresh and auto-close of stale tickets.

Meant to run from cron every 15 minutes:

  1. Recompute the stored SLA status of every ticket still on the clock
  2. Auto-close tickets left in "Work Completed" without user confirmation
     for longer than AUTO_CLOSE_AFTER_COMPLETION_HOURS

Usage:
    python scripts/helpdesk_maintenance.py                 # run both steps
    python scripts/helpdesk_maintenance.py --dry-run       # report, do not write
    python scripts/helpdesk_maintenance.py --skip-sla      # auto-close only
    python scripts/helpdesk_maintenance.py --json          # machine-readable output

Exit codes:
    0 = sweep completed
    1 = sweep failed (transaction rolled back)
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from backend.config import settings  # noqa: E402
from backend.database import async_session_factory, engine  # noqa: E402
from backend.helpdesk.service import HelpdeskService  # noqa: E402
from backend.sla.service import SlaService  # noqa: E402

IST = timezone(timedelta(hours=5, minutes=30))

logger = logging.getLogger("helpdesk_maintenance")


async def run_sweep(*, dry_run: bool = False, skip_sla: bool = False) -> dict:
    """Run one maintenance pass inside a single transaction."""
    report: dict = {"dry_run": dry_run, "sla": None, "auto_closed": []}
    async with async_session_factory() as db:
        try:
            if not skip_sla:
                report["sla"] = await SlaService.refresh(db)
            closed = await HelpdeskService.auto_close_stale(db, dry_run=dry_run)
            report["auto_closed"] = [t.ticket_number for t in closed]
            if dry_run:
                await db.rollback()
            else:
                await db.commit()
        except Exception:
            await db.rollback()
            raise
    return report


def main():
    parser = argparse.ArgumentParser(
        description="Helpdesk maintenance sweep",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/helpdesk_maintenance.py
  python scripts/helpdesk_maintenance.py --dry-run --json
""",
    )
    parser.add_argument("--dry-run", action="store_true",
                        help="List tickets that would be auto-closed without writing")
    parser.add_argument("--skip-sla", action="store_true",
                        help="Skip the SLA status refresh")
    parser.add_argument("--json", dest="output_json", action="store_true",
                        help="Output the report as JSON")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    async def _run() -> dict:
        try:
            return await run_sweep(dry_run=args.dry_run, skip_sla=args.skip_sla)
        finally:
            await engine.dispose()

    now_ist = datetime.now(IST).strftime("%Y-%m-%d %H:%M:%S IST")
    try:
        report = asyncio.run(_run())
    except Exception:
        logger.exception("Maintenance sweep failed")
        sys.exit(1)

    report["timestamp"] = now_ist
    if args.output_json:
        print(json.dumps(report, indent=2))
    else:
        print(f"{'=' * 60}")
        print(f"  HELPDESK MAINTENANCE — {now_ist}{'  (dry run)' if args.dry_run else ''}")
        print(f"{'=' * 60}")
        if report["sla"] is not None:
            print(f"  SLA refresh : {report['sla']['checked']} checked, "
                  f"{report['sla']['updated']} updated")
        verb = "would auto-close" if args.dry_run else "auto-closed"
        print(f"  Tickets {verb}: {len(report['auto_closed'])}")
        for number in report["auto_closed"]:
            print(f"    - {number}")
    sys.exit(0)


if __name__ == "__main__":
    main()
