"""Run the reminder engine once against the configured database.

Point an external scheduler at this every few minutes:
    python -m receipt_reminders.scripts.run_reminders
"""
import argparse
import json
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError

from receipt_reminders.config import get_settings
from receipt_reminders.database import get_db_context
from receipt_reminders.services.channels import build_channels
from receipt_reminders.services.engine import run_reminder_engine
from receipt_reminders.services.preferences import PreferenceStoreError

logger = logging.getLogger("receipt_reminders.scripts.run_reminders")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--manual", action="store_true", help="mark the run as manually triggered")
    args = parser.parse_args(argv)

    settings = get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    try:
        with get_db_context() as db:
            result = run_reminder_engine(
                db,
                build_channels(settings),
                manual=args.manual,
                time_budget_seconds=settings.run_time_budget_seconds,
                dashboard_url=settings.app_base_url,
            )
    except (PreferenceStoreError, SQLAlchemyError) as e:
        logger.error(f"Reminder run aborted: {e}")
        return 1

    print(json.dumps({
        "success": result.success,
        "totalNotificationsSent": result.total_notifications_sent,
        "totalUsers": result.total_users,
        "scheduledCount": result.scheduled_count,
        "errors": result.errors,
        "timestamp": result.timestamp,
    }))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
