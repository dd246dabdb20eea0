"""
Meeting reminders.

Run periodically by an external scheduler (see reminder_job.py). Each run
looks for meetings starting within the reminder window and sends one
meeting_reminder event per meeting that has not been reminded yet.
"""
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from prayer_pipeline.config import settings
from prayer_pipeline.database import get_db_session
from prayer_pipeline.logging_config import get_logger, log_context
from prayer_pipeline.services.meeting_store import MeetingStore
from prayer_pipeline.services.notification_service import (
    EventType,
    NotificationDispatcher,
    NotificationEvent,
    reminder_already_sent,
)
from prayer_pipeline.utils import utcnow

logger = get_logger(__name__)


class ReminderProcessor:
    """Finds meetings that are about to start and notifies their groups."""

    def __init__(
        self,
        dispatcher: Optional[NotificationDispatcher] = None,
        lead_minutes: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.lead = timedelta(minutes=lead_minutes or settings.reminder_lead_minutes)
        self.clock = clock

    async def process_due_meetings(self) -> Dict[str, int]:
        """
        Send reminders for every due meeting.

        Returns:
            Statistics for the run
        """
        started = utcnow()
        now = self.clock()
        stats = {"meetings_due": 0, "reminders_sent": 0, "already_reminded": 0}

        async with get_db_session() as session:
            due = await MeetingStore(session).list_starting_between(now, now + self.lead)
            pending = []
            for meeting in due:
                if await reminder_already_sent(session, meeting.id):
                    stats["already_reminded"] += 1
                    continue
                pending.append(meeting)
        stats["meetings_due"] = len(due)

        for meeting in pending:
            with log_context(meeting_id=meeting.id, group_id=meeting.group_id):
                # Reminders go to everyone, the organizer included
                await self.dispatcher.notify(NotificationEvent(
                    type=EventType.MEETING_REMINDER,
                    group_id=meeting.group_id,
                    meeting_id=meeting.id,
                    meeting_title=meeting.title,
                    starts_at=meeting.start_time,
                ))
            stats["reminders_sent"] += 1

        duration = (utcnow() - started).total_seconds()
        logger.info("reminder_run_complete", duration_seconds=round(duration, 2), **stats)
        return stats
