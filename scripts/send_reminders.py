#!/usr/bin/env python3
"""
Send reminders for confirmed appointments starting soon.

Usage:
    python scripts/send_reminders.py
    python scripts/send_reminders.py --hours-ahead 2

Meant to run from cron; repeated runs never remind the same appointment twice.
"""

import argparse
import asyncio
import sys

import dotenv

dotenv.load_dotenv()


async def run(hours_ahead: int | None) -> int:
    """Run one reminder sweep and return the number sent."""
    from physiobook.database import AsyncSessionLocal, engine
    from physiobook.services.notification_service import NotificationService

    try:
        async with AsyncSessionLocal() as db:
            return await NotificationService.send_due_reminders(db, hours_ahead=hours_ahead)
    finally:
        await engine.dispose()


def main() -> None:
    """Parse arguments and send reminders."""
    parser = argparse.ArgumentParser(description="Send upcoming appointment reminders")
    parser.add_argument(
        "--hours-ahead",
        type=int,
        default=None,
        help="Reminder horizon in hours (default: REMINDER_HOURS_AHEAD)",
    )
    args = parser.parse_args()

    from physiobook.core.exceptions import PersistenceException
    from physiobook.middleware.logging import configure_logging

    configure_logging()

    try:
        sent = asyncio.run(run(args.hours_ahead))
    except PersistenceException as e:
        print(f"✗ Reminder sweep failed: {e.message}", file=sys.stderr)
        sys.exit(1)

    print(f"✓ Sent {sent} reminder(s)")


if __name__ == "__main__":
    main()
