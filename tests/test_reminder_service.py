"""
Tests for the meeting reminder run.
"""
import pytest
from datetime import datetime, timedelta
from sqlalchemy import select

from prayer_pipeline.models import Meeting, Notification
from prayer_pipeline.services.notification_service import EventType
from prayer_pipeline.services.reminder_service import ReminderProcessor


NOW = datetime(2024, 1, 1, 17, 0)


@pytest.fixture
async def meetings(db, seed):
    """Meetings at several distances from NOW, keyed by name."""
    starts = {
        "soon": NOW + timedelta(minutes=30),
        "edge": NOW + timedelta(minutes=60),
        "later": NOW + timedelta(hours=3),
        "started": NOW - timedelta(minutes=10),
    }
    async with db() as session:
        rows = {
            name: Meeting(
                group_id=seed.group,
                title=f"Prayer {name}",
                meeting_type="zoom",
                meeting_link="https://zoom.us/j/1",
                start_time=start,
                created_by=seed.alice,
            )
            for name, start in starts.items()
        }
        session.add_all(rows.values())
        await session.commit()
        return {name: meeting.id for name, meeting in rows.items()}


async def reminder_rows(db):
    async with db() as session:
        result = await session.execute(
            select(Notification).where(Notification.type == EventType.MEETING_REMINDER.value)
        )
        return list(result.scalars().all())


@pytest.mark.integration
class TestReminderProcessor:
    """Test which meetings get reminders and how often."""

    async def test_reminds_meetings_inside_window(self, db, seed, meetings):
        processor = ReminderProcessor(lead_minutes=60, clock=lambda: NOW)

        stats = await processor.process_due_meetings()

        assert stats == {"meetings_due": 2, "reminders_sent": 2, "already_reminded": 0}
        rows = await reminder_rows(db)
        assert {r.reference_id for r in rows} == {meetings["soon"], meetings["edge"]}

    async def test_reminder_reaches_organizer_too(self, db, seed, meetings):
        await ReminderProcessor(lead_minutes=60, clock=lambda: NOW).process_due_meetings()

        rows = await reminder_rows(db)
        soon = [r for r in rows if r.reference_id == meetings["soon"]]
        assert sorted(r.user_id for r in soon) == sorted([seed.leader, seed.alice, seed.bob])
        assert soon[0].message == "Reminder: Prayer soon in Tuesday Prayer starts at 17:30 UTC"

    async def test_second_run_sends_nothing_new(self, db, seed, meetings):
        processor = ReminderProcessor(lead_minutes=60, clock=lambda: NOW)
        await processor.process_due_meetings()
        first = len(await reminder_rows(db))

        stats = await processor.process_due_meetings()

        assert stats == {"meetings_due": 2, "reminders_sent": 0, "already_reminded": 2}
        assert len(await reminder_rows(db)) == first

    async def test_nothing_due(self, db, seed, meetings):
        processor = ReminderProcessor(lead_minutes=5, clock=lambda: NOW)

        stats = await processor.process_due_meetings()

        assert stats["meetings_due"] == 0
        assert await reminder_rows(db) == []
