#!/usr/bin/env python3
"""Operations Portal Health Check — verify the API is operational.

Checks:
  1. Backend API responds on /api/v1/health (HTTP 200, valid JSON)
  2. Database reachable from the API (``database: ok`` in the health body)
  3. Helpdesk SLA backlog (needs --token of a user with ``sla:read``)

Usage:
    python scripts/healthcheck.py                              # check http://localhost:8000
    python scripts/healthcheck.py --url https://portal.example.com
    python scripts/healthcheck.py --token "$TOKEN" --max-overdue 5
    python scripts/healthcheck.py --json                       # machine-readable output

Exit codes:
    0 = all checks passed
    1 = one or more checks failed
    2 = critical failure (cannot reach target at all)
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx

IST = timezone(timedelta(hours=5, minutes=30))

# ══════════════════════════════════════════════════════════════════════
# Check result model
# ══════════════════════════════════════════════════════════════════════


class CheckResult:
    """Single health check result."""

    def __init__(self, name: str, passed: bool, message: str,
                 detail: str = "", severity: str = "error"):
        self.name = name
        self.passed = passed
        self.message = message
        self.detail = detail
        self.severity = severity  # "error", "warning", "info"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "detail": self.detail,
            "severity": self.severity,
        }

    def __str__(self) -> str:
        icon = "✅" if self.passed else ("⚠️" if self.severity == "warning" else "❌")
        s = f"{icon} {self.name}: {self.message}"
        if self.detail:
            s += f"\n     {self.detail}"
        return s


# ══════════════════════════════════════════════════════════════════════
# Health checks
# ══════════════════════════════════════════════════════════════════════

def check_backend_health(client: httpx.Client) -> tuple[CheckResult, Optional[dict]]:
    """Check that /api/v1/health answers 200 with a JSON body."""
    try:
        resp = client.get("/api/v1/health")
    except httpx.ConnectError as e:
        return CheckResult("Backend API", False, "Cannot connect to backend", str(e)), None
    except httpx.HTTPError as e:
        return CheckResult(
            "Backend API", False, f"Health check failed: {type(e).__name__}", str(e),
        ), None

    if resp.status_code != 200:
        return CheckResult(
            "Backend API", False, f"HTTP {resp.status_code} (expected 200)",
            f"URL: {resp.url}",
        ), None
    try:
        body = resp.json()
    except ValueError:
        return CheckResult("Backend API", False, "Response is not JSON", resp.text[:200]), None

    version = body.get("version", "unknown")
    env = body.get("environment", "unknown")
    return CheckResult(
        "Backend API", True, f"Responding (v{version}, {env})", f"URL: {resp.url}",
    ), body


def check_database(body: dict) -> CheckResult:
    database = body.get("database", "missing")
    if database != "ok":
        return CheckResult(
            "Database", False, f"Database status: {database}",
            f"Response: {json.dumps(body)}",
        )
    return CheckResult("Database", True, "Reachable from the API")


def check_sla_backlog(client: httpx.Client, token: str, max_overdue: int) -> CheckResult:
    """Warn when more than *max_overdue* open tickets are past their SLA."""
    try:
        resp = client.get(
            "/api/v1/sla/dashboard", headers={"Authorization": f"Bearer {token}"},
        )
    except httpx.HTTPError as e:
        return CheckResult("SLA backlog", False, f"Request failed: {type(e).__name__}", str(e))
    if resp.status_code != 200:
        return CheckResult(
            "SLA backlog", False, f"HTTP {resp.status_code} from /sla/dashboard",
            severity="warning",
        )

    summary = resp.json().get("data", {}).get("summary", {})
    overdue = summary.get("breached", 0)
    total = summary.get("total", 0)
    if overdue > max_overdue:
        return CheckResult(
            "SLA backlog", False,
            f"{overdue} of {total} active tickets overdue (threshold {max_overdue})",
            severity="warning",
        )
    return CheckResult("SLA backlog", True, f"{overdue} of {total} active tickets overdue")


def run_healthcheck(
    url: str,
    *,
    token: Optional[str] = None,
    max_overdue: int = 10,
    timeout: int = 10,
) -> list[CheckResult]:
    results: list[CheckResult] = []
    with httpx.Client(base_url=url.rstrip("/"), timeout=timeout) as client:
        backend, body = check_backend_health(client)
        results.append(backend)
        if body is None:
            return results
        results.append(check_database(body))
        if token:
            results.append(check_sla_backlog(client, token, max_overdue))
    return results


def main():
    parser = argparse.ArgumentParser(
        description="Operations Portal Health Check",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/healthcheck.py --url http://localhost:8000
  python scripts/healthcheck.py --json
""",
    )
    parser.add_argument("--url", type=str, default="http://localhost:8000",
                        help="Base URL to check (default: http://localhost:8000)")
    parser.add_argument("--token", type=str, default=None,
                        help="Bearer token used for the SLA backlog check")
    parser.add_argument("--max-overdue", type=int, default=10,
                        help="Overdue tickets tolerated before warning (default: 10)")
    parser.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")
    parser.add_argument("--timeout", type=int, default=10,
                        help="HTTP timeout in seconds (default: 10)")
    args = parser.parse_args()

    now_ist = datetime.now(IST).strftime("%Y-%m-%d %H:%M:%S IST")
    results = run_healthcheck(
        args.url, token=args.token, max_overdue=args.max_overdue, timeout=args.timeout,
    )
    reachable = results[0].passed

    if args.output_json:
        print(json.dumps({
            "timestamp": now_ist,
            "target": args.url,
            "checks": [r.to_dict() for r in results],
            "all_passed": all(r.passed for r in results),
        }, indent=2))
    else:
        print(f"{'=' * 60}")
        print(f"  OPERATIONS PORTAL — HEALTH CHECK")
        print(f"  Target : {args.url}")
        print(f"  Time   : {now_ist}")
        print(f"{'=' * 60}")
        for result in results:
            print(result)
        failed = sum(1 for r in results if not r.passed)
        print(f"{'=' * 60}")
        if failed == 0:
            print(f"  ✅ ALL {len(results)} CHECKS PASSED")
        else:
            print(f"  ❌ {failed}/{len(results)} CHECKS FAILED")

    if not reachable:
        sys.exit(2)
    if any(not r.passed for r in results):
        sys.exit(1)
    sys.exit(0)


if __name__ == "__main__":
    main()
