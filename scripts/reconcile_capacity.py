"""Recount active assignments and repair event capacity counters.

Every event's ``current_volunteers`` should equal its number of pending,
confirmed and completed assignments. The ledger logs whenever it sees the two
disagree; this script reports and optionally fixes the drift.

Usage examples:
  # Report drift only (default dry-run)
  ENV_FILE=.env.prod python scripts/reconcile_capacity.py

  # Apply corrections
  ENV_FILE=.env.prod python scripts/reconcile_capacity.py --apply

  # A single event
  ENV_FILE=.env.prod python scripts/reconcile_capacity.py --event-id <uuid> --apply
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
import uuid
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(PROJECT_ROOT))


def _load_env_file() -> None:
    env_file = os.environ.get("ENV_FILE", ".env")
    env_path = (PROJECT_ROOT / env_file).resolve()
    if not env_path.exists():
        if os.environ.get("DATABASE_URL"):
            print(f"Env file not found at {env_path}; using existing environment vars.")
            return
        raise FileNotFoundError(f"Env file not found: {env_path}")
    load_dotenv(env_path, override=True)


def _print_report(results) -> None:
    drifted = [r for r in results if r.drift]
    print("Reconciliation summary")
    print(f"Events checked: {len(results)}")
    print(f"Events with drift: {len(drifted)}")
    print(f"Corrected: {sum(1 for r in drifted if r.corrected)}")
    for r in drifted:
        print(
            f"- event={r.event_id} counter={r.recorded} active={r.actual} "
            f"drift={r.drift:+d} corrected={r.corrected}"
        )


async def _main() -> None:
    parser = argparse.ArgumentParser(
        description="Report or repair event capacity counter drift."
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write corrected counters (default is dry-run).",
    )
    parser.add_argument(
        "--event-id",
        type=uuid.UUID,
        default=None,
        help="Only reconcile this event.",
    )
    args = parser.parse_args()

    _load_env_file()

    from libs.common.logging import configure_logging
    from libs.db.config import AsyncSessionLocal, engine
    from services.volunteer_service.services import reconcile, reconcile_all

    configure_logging()

    try:
        async with AsyncSessionLocal() as session:
            if args.event_id:
                results = [await reconcile(session, args.event_id, apply=args.apply)]
            else:
                results = await reconcile_all(session, apply=args.apply)
    finally:
        await engine.dispose()

    _print_report(results)
    if not args.apply and any(r.drift for r in results):
        print("")
        print("Dry-run only. Re-run with --apply to correct counters.")


if __name__ == "__main__":
    asyncio.run(_main())
