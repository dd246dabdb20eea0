"""
Tests for notification fan-out and the notification inbox.
"""
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch
from sqlalchemy import select

from prayer_pipeline.exceptions import NotFoundError, PersistenceError
from prayer_pipeline.models import Meeting, Notification, GroupNotificationPreference
from prayer_pipeline.services import notification_service
from prayer_pipeline.services.notification_service import (
    EventType,
    NotificationDispatcher,
    NotificationEvent,
    list_notifications,
    mark_all_notifications_read,
    mark_notification_read,
    render_message,
)


async def add_meeting(db, seed) -> int:
    async with db() as session:
        meeting = Meeting(
            group_id=seed.group,
            title="Evening prayer",
            meeting_type="zoom",
            meeting_link="https://zoom.us/j/123456",
            start_time=datetime(2024, 1, 1, 18, 0),
            created_by=seed.alice,
        )
        session.add(meeting)
        await session.commit()
        return meeting.id


async def notifications_for(db, user_id):
    async with db() as session:
        result = await session.execute(select(Notification).where(Notification.user_id == user_id))
        return list(result.scalars().all())


@pytest.mark.unit
class TestRenderMessage:
    """Test notification message text."""

    def test_new_meeting(self):
        message = render_message(EventType.NEW_MEETING, "Evening prayer", "Tuesday Prayer", None)
        assert message == "New meeting: Evening prayer in Tuesday Prayer"

    def test_reminder_includes_start_time(self):
        message = render_message(
            EventType.MEETING_REMINDER, "Evening prayer", "Tuesday Prayer", datetime(2024, 1, 1, 18, 0)
        )
        assert message == "Reminder: Evening prayer in Tuesday Prayer starts at 18:00 UTC"


@pytest.mark.integration
class TestDispatcher:
    """Test fan-out to group members."""

    async def test_excludes_actor(self, db, seed):
        meeting_id = await add_meeting(db, seed)
        event = NotificationEvent(
            type=EventType.NEW_MEETING, group_id=seed.group, meeting_id=meeting_id, exclude_user_id=seed.alice
        )

        sent = await NotificationDispatcher().notify(event)

        assert sent == 2
        assert await notifications_for(db, seed.alice) == []
        (bob_note,) = await notifications_for(db, seed.bob)
        assert bob_note.type == "new_meeting"
        assert bob_note.reference_id == meeting_id
        assert bob_note.message == "New meeting: Evening prayer in Tuesday Prayer"
        assert bob_note.read is False

    async def test_outsiders_never_notified(self, db, seed):
        meeting_id = await add_meeting(db, seed)

        await NotificationDispatcher().notify(
            NotificationEvent(type=EventType.MEETING_UPDATED, group_id=seed.group, meeting_id=meeting_id)
        )

        assert await notifications_for(db, seed.outsider) == []

    async def test_muted_and_opted_out_members_skipped(self, db, seed):
        meeting_id = await add_meeting(db, seed)
        async with db() as session:
            session.add_all([
                GroupNotificationPreference(user_id=seed.bob, group_id=seed.group, muted=True),
                GroupNotificationPreference(user_id=seed.leader, group_id=seed.group, meeting_reminders=False),
            ])
            await session.commit()

        sent = await NotificationDispatcher().notify(
            NotificationEvent(type=EventType.MEETING_REMINDER, group_id=seed.group, meeting_id=meeting_id)
        )

        assert sent == 1
        assert len(await notifications_for(db, seed.alice)) == 1
        assert await notifications_for(db, seed.bob) == []
        assert await notifications_for(db, seed.leader) == []

    async def test_cancellation_uses_title_from_event(self, db, seed):
        """Test a cancelled meeting is announced after its row is gone."""
        event = NotificationEvent(
            type=EventType.MEETING_CANCELLED,
            group_id=seed.group,
            meeting_id=4242,
            exclude_user_id=seed.alice,
            meeting_title="Evening prayer",
        )

        assert await NotificationDispatcher().notify(event) == 2
        (note,) = await notifications_for(db, seed.bob)
        assert note.message == "Meeting cancelled: Evening prayer in Tuesday Prayer"

    async def test_missing_meeting_does_not_raise(self, db, seed):
        event = NotificationEvent(type=EventType.MEETING_UPDATED, group_id=seed.group, meeting_id=4242)

        assert await NotificationDispatcher().notify(event) == 0
        assert await notifications_for(db, seed.bob) == []

    async def test_transient_failure_is_retried(self, db, seed):
        meeting_id = await add_meeting(db, seed)
        event = NotificationEvent(type=EventType.NEW_MEETING, group_id=seed.group, meeting_id=meeting_id)
        resolve = AsyncMock(side_effect=[PersistenceError("connection reset"), [seed.bob]])

        with patch.object(notification_service, "resolve_recipients", resolve):
            sent = await NotificationDispatcher().notify(event)

        assert sent == 1
        assert resolve.await_count == 2
        assert len(await notifications_for(db, seed.bob)) == 1


@pytest.mark.integration
class TestInbox:
    """Test listing and marking notifications."""

    async def seed_inbox(self, db, seed):
        meeting_id = await add_meeting(db, seed)
        for event_type in (EventType.NEW_MEETING, EventType.MEETING_UPDATED):
            await NotificationDispatcher().notify(
                NotificationEvent(type=event_type, group_id=seed.group, meeting_id=meeting_id,
                                  exclude_user_id=seed.alice)
            )

    async def test_list_newest_first(self, db, seed):
        await self.seed_inbox(db, seed)

        notes = await list_notifications(seed.bob)

        assert [n.type for n in notes] == ["meeting_updated", "new_meeting"]

    async def test_mark_one_read(self, db, seed):
        await self.seed_inbox(db, seed)
        newest = (await list_notifications(seed.bob))[0]

        marked = await mark_notification_read(newest.id, seed.bob)

        assert marked.read is True
        unread = await list_notifications(seed.bob, unread_only=True)
        assert newest.id not in [n.id for n in unread]
        assert len(unread) == 1

    async def test_cannot_mark_someone_elses(self, db, seed):
        await self.seed_inbox(db, seed)
        bobs = (await list_notifications(seed.bob))[0]

        with pytest.raises(NotFoundError):
            await mark_notification_read(bobs.id, seed.leader)

    async def test_mark_all_read(self, db, seed):
        await self.seed_inbox(db, seed)

        assert await mark_all_notifications_read(seed.bob) == 2
        assert await list_notifications(seed.bob, unread_only=True) == []
        # Already read: nothing changes the second time
        assert await mark_all_notifications_read(seed.bob) == 0
