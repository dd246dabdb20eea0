#!/usr/bin/env python3
"""
Reminder job for upcoming prayer group meetings.

Meant to be run from cron (or any scheduler) every few minutes:
1. Finds meetings starting within the reminder window
2. Skips meetings that were already reminded
3. Notifies every member of the meeting's group
"""
import asyncio
import sys

from prayer_pipeline.config import settings
from prayer_pipeline.database import close_db
from prayer_pipeline.logging_config import setup_logging, get_logger
from prayer_pipeline.services.reminder_service import ReminderProcessor

logger = get_logger(__name__)


async def main() -> int:
    """Main entry point for the reminder job."""
    logger.info("reminder_job_started", lead_minutes=settings.reminder_lead_minutes)
    try:
        await ReminderProcessor().process_due_meetings()
        return 0
    except Exception as e:
        logger.error("reminder_job_failed", error=str(e))
        return 1
    finally:
        await close_db()


if __name__ == "__main__":
    setup_logging(settings.debug, service="prayer-pipeline-reminders")
    sys.exit(asyncio.run(main()))
