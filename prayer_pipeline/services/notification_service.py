"""
Notification fan-out for meeting lifecycle events.

Each event becomes one in-app notification row per group member who wants
it. Delivery is fire-and-forget from the caller's point of view: failures are
retried, then logged and counted, and never propagate into the meeting
mutation that triggered them.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from prayer_pipeline.database import get_db_session
from prayer_pipeline.exceptions import NotFoundError, NotificationError
from prayer_pipeline.logging_config import get_logger
from prayer_pipeline.models import Meeting, Notification, GroupNotificationPreference
from prayer_pipeline.monitoring import notifications_total, record_error
from prayer_pipeline.services.group_service import get_group, list_member_ids
from prayer_pipeline.services.meeting_store import db_errors
from prayer_pipeline.utils import async_retry

logger = get_logger(__name__)


class EventType(str, Enum):
    NEW_MEETING = "new_meeting"
    MEETING_UPDATED = "meeting_updated"
    MEETING_CANCELLED = "meeting_cancelled"
    MEETING_REMINDER = "meeting_reminder"


MESSAGE_TEMPLATES = {
    EventType.NEW_MEETING: "New meeting: {title} in {group}",
    EventType.MEETING_UPDATED: "Meeting updated: {title} in {group}",
    EventType.MEETING_CANCELLED: "Meeting cancelled: {title} in {group}",
    EventType.MEETING_REMINDER: "Reminder: {title} in {group} starts at {time} UTC",
}


@dataclass(frozen=True)
class NotificationEvent:
    """
    A meeting lifecycle event.

    meeting_title and starts_at are filled in by the sender when the meeting
    row may no longer exist (cancellation); otherwise they are looked up.
    """

    type: EventType
    group_id: int
    meeting_id: int
    exclude_user_id: Optional[int] = None
    meeting_title: Optional[str] = None
    starts_at: Optional[datetime] = None


def render_message(event_type: EventType, title: str, group_name: str, starts_at: Optional[datetime]) -> str:
    time_text = starts_at.strftime("%H:%M") if starts_at else ""
    return MESSAGE_TEMPLATES[event_type].format(title=title, group=group_name, time=time_text)


async def _opted_out_user_ids(session: AsyncSession, group_id: int) -> set:
    result = await session.execute(
        select(GroupNotificationPreference.user_id).where(
            GroupNotificationPreference.group_id == group_id,
            or_(
                GroupNotificationPreference.muted.is_(True),
                GroupNotificationPreference.meeting_reminders.is_(False)
            )
        )
    )
    return set(result.scalars().all())


async def resolve_recipients(session: AsyncSession, event: NotificationEvent) -> List[int]:
    """Group members minus the excluded user and anyone who opted out."""
    members = await list_member_ids(session, event.group_id)
    opted_out = await _opted_out_user_ids(session, event.group_id)
    return [
        user_id for user_id in members
        if user_id != event.exclude_user_id and user_id not in opted_out
    ]


class NotificationDispatcher:
    """Turns meeting events into per-member notification rows."""

    async def notify(self, event: NotificationEvent) -> int:
        """
        Deliver an event. Never raises.

        Returns:
            Number of notifications written (0 on failure)
        """
        try:
            count = await self._deliver(event)
        except Exception as e:
            notifications_total.labels(event_type=event.type.value, status="failed").inc()
            record_error(type(e).__name__, "notification_service")
            logger.error(
                "notification_dispatch_failed",
                event_type=event.type.value,
                meeting_id=event.meeting_id,
                group_id=event.group_id,
                error=str(e)
            )
            return 0

        notifications_total.labels(event_type=event.type.value, status="sent").inc()
        logger.info(
            "notification_dispatched",
            event_type=event.type.value,
            meeting_id=event.meeting_id,
            recipients=count
        )
        return count

    @async_retry()
    async def _deliver(self, event: NotificationEvent) -> int:
        async with get_db_session() as session:
            with db_errors("notify"):
                recipients = await resolve_recipients(session, event)
                if not recipients:
                    return 0

                title, starts_at = event.meeting_title, event.starts_at
                if title is None:
                    meeting = await session.get(Meeting, event.meeting_id)
                    if meeting is None:
                        raise NotificationError(
                            f"Meeting {event.meeting_id} no longer exists",
                            event_type=event.type.value
                        )
                    title, starts_at = meeting.title, meeting.start_time

                group = await get_group(session, event.group_id)
                message = render_message(event.type, title, group.name, starts_at)
                session.add_all([
                    Notification(
                        user_id=user_id,
                        type=event.type.value,
                        message=message,
                        reference_id=event.meeting_id
                    )
                    for user_id in recipients
                ])
                await session.flush()
        return len(recipients)


async def reminder_already_sent(session: AsyncSession, meeting_id: int) -> bool:
    result = await session.execute(
        select(Notification.id).where(
            Notification.type == EventType.MEETING_REMINDER.value,
            Notification.reference_id == meeting_id
        ).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def list_notifications(user_id: int, unread_only: bool = False) -> List[Notification]:
    """
    Notifications of a user, newest first.

    Args:
        user_id: Recipient
        unread_only: Skip notifications already marked read
    """
    async with get_db_session() as session:
        with db_errors("list_notifications"):
            query = select(Notification).where(Notification.user_id == user_id)
            if unread_only:
                query = query.where(Notification.read.is_(False))
            result = await session.execute(
                query.order_by(Notification.created_at.desc(), Notification.id.desc())
            )
            return list(result.scalars().all())


async def mark_notification_read(notification_id: int, user_id: int) -> Notification:
    """
    Raises:
        NotFoundError: If the notification does not exist or belongs to someone else
    """
    async with get_db_session() as session:
        with db_errors("mark_notification_read"):
            notification = await session.get(Notification, notification_id)
            if notification is None or notification.user_id != user_id:
                raise NotFoundError("Notification", notification_id)
            notification.read = True
            await session.flush()
            return notification


async def mark_all_notifications_read(user_id: int) -> int:
    """Returns the number of notifications that changed."""
    async with get_db_session() as session:
        with db_errors("mark_all_notifications_read"):
            result = await session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
                .values(read=True)
            )
            return result.rowcount
