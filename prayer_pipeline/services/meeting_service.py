"""
Meeting lifecycle: create (single or recurring series), update one
occurrence, delete one occurrence, and the read paths around them.

Every mutation runs in one unit of work. Notifications go out only after the
unit of work has committed, and their failures never reach the caller.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Union

from prayer_pipeline.database import get_db_session
from prayer_pipeline.exceptions import ValidationError
from prayer_pipeline.logging_config import get_logger, log_context
from prayer_pipeline.models import Meeting
from prayer_pipeline.monitoring import meetings_created_total, meeting_occurrences_total, meetings_deleted_total
from prayer_pipeline.schemas import MeetingCreate, MeetingType, MeetingUpdate
from prayer_pipeline.services.group_service import require_member, require_creator_or_leader
from prayer_pipeline.services.meeting_store import MeetingStore, db_errors
from prayer_pipeline.services.notification_service import (
    EventType,
    NotificationDispatcher,
    NotificationEvent,
)
from prayer_pipeline.services.recurrence import expand_occurrences
from prayer_pipeline.utils import is_upcoming, utcnow

logger = get_logger(__name__)

UPCOMING = "upcoming"
PAST = "past"

# Copied from the anchor onto every generated occurrence
SERIES_FIELDS = (
    "group_id", "title", "description", "meeting_type", "meeting_link", "location",
    "is_recurring", "recurring_pattern", "recurring_day", "recurring_until", "created_by",
)


@dataclass
class CreateResult:
    meeting: Meeting
    occurrences: List[Meeting] = field(default_factory=list)


def validate_schedule(
    start_time: datetime,
    end_time: Optional[datetime],
    meeting_type: str,
    meeting_link: Optional[str],
    location: Optional[str],
) -> None:
    """
    Check the fields every meeting must satisfy regardless of recurrence.

    Raises:
        ValidationError: On the first rule that fails
    """
    if end_time is not None and end_time <= start_time:
        raise ValidationError("Meeting end time must be after its start time")
    if MeetingType(meeting_type) is MeetingType.PHYSICAL:
        if not (location or "").strip():
            raise ValidationError("A location is required for in-person meetings")
    elif not (meeting_link or "").strip():
        raise ValidationError("A meeting link is required for online meetings")


def require_future(start_time: datetime, now: datetime) -> None:
    if not is_upcoming(start_time, now):
        raise ValidationError("Meeting start time must be in the future")


async def require_within_series(store: MeetingStore, meeting: Meeting, start_time: datetime) -> None:
    """
    Keep a moved occurrence inside its series.

    A child must start after its anchor and no later than recurring_until;
    an anchor must start before its earliest child.
    """
    if meeting.parent_meeting_id is not None:
        anchor = await store.get_meeting(meeting.parent_meeting_id)
        if start_time <= anchor.start_time:
            raise ValidationError("An occurrence must start after the first meeting of its series")
        if meeting.recurring_until is not None and start_time > meeting.recurring_until:
            raise ValidationError("An occurrence cannot start after the series end date")
    else:
        first_child = await store.first_occurrence_start(meeting.id)
        if first_child is not None and start_time >= first_child:
            raise ValidationError("The first meeting of a series must start before its other occurrences")


class MeetingLifecycleManager:
    """Translates create/update/delete requests into meeting rows and events."""

    def __init__(
        self,
        dispatcher: Optional[NotificationDispatcher] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.clock = clock

    async def create_meeting(self, group_id: int, data: MeetingCreate, user_id: int) -> CreateResult:
        """
        Create a meeting, or a recurring series anchored on it.

        The anchor and all of its occurrences are written in a single
        transaction. One new_meeting event is sent per series.

        Raises:
            ValidationError: Invalid schedule or recurrence rule (nothing written)
            NotFoundError: Unknown group
            PermissionDeniedError: Caller is not a member of the group
            PersistenceError: Database failure (nothing written)
        """
        now = self.clock()
        meeting_type = MeetingType(data.meeting_type).value
        require_future(data.start_time, now)
        validate_schedule(data.start_time, data.end_time, meeting_type, data.meeting_link, data.location)

        fields = {
            "group_id": group_id,
            "title": data.title,
            "description": data.description,
            "meeting_type": meeting_type,
            "meeting_link": data.meeting_link,
            "location": data.location,
            "start_time": data.start_time,
            "end_time": data.end_time,
            "is_recurring": False,
            "recurring_pattern": None,
            "recurring_day": None,
            "recurring_until": None,
            "parent_meeting_id": None,
            "created_by": user_id,
        }

        occurrences = None
        if data.is_recurring:
            occurrences = expand_occurrences(
                data.start_time,
                data.recurring_pattern,
                day=data.recurring_day,
                until=data.recurring_until,
            )
            fields.update(
                is_recurring=True,
                recurring_pattern=occurrences.pattern.value,
                recurring_day=occurrences.day,
                recurring_until=occurrences.until,
            )

        with log_context(group_id=group_id, user_id=user_id):
            with db_errors("create_meeting"):
                async with get_db_session() as session:
                    await require_member(session, group_id, user_id)
                    store = MeetingStore(session)
                    anchor = await store.insert_meeting(fields)

                    children = []
                    if occurrences is not None:
                        duration = data.end_time - data.start_time if data.end_time else None
                        for start in occurrences:
                            child = {name: fields[name] for name in SERIES_FIELDS}
                            child.update(
                                start_time=start,
                                end_time=start + duration if duration else None,
                                parent_meeting_id=anchor.id,
                            )
                            children.append(await store.insert_meeting(child))

            if occurrences is not None:
                meetings_created_total.labels(kind="recurring").inc()
                meeting_occurrences_total.labels(pattern=occurrences.pattern.value).inc(len(children))
            else:
                meetings_created_total.labels(kind="single").inc()
            logger.info("meeting_created", meeting_id=anchor.id, occurrences=len(children))

        await self.dispatcher.notify(NotificationEvent(
            type=EventType.NEW_MEETING,
            group_id=group_id,
            meeting_id=anchor.id,
            exclude_user_id=user_id,
            meeting_title=anchor.title,
            starts_at=anchor.start_time,
        ))
        return CreateResult(meeting=anchor, occurrences=children)

    async def update_meeting(
        self, meeting_id: int, data: Union[MeetingUpdate, dict], user_id: int
    ) -> Meeting:
        """
        Update exactly one occurrence. Siblings in the same series are not touched.

        Raises:
            ValidationError, NotFoundError, PermissionDeniedError, PersistenceError
        """
        changes = data.changes() if isinstance(data, MeetingUpdate) else dict(data)
        now = self.clock()

        with db_errors("update_meeting"):
            async with get_db_session() as session:
                store = MeetingStore(session)
                meeting = await store.get_meeting(meeting_id)
                await require_creator_or_leader(
                    session, meeting.group_id, meeting.created_by, user_id, "edit this meeting"
                )

                if "start_time" in changes:
                    require_future(changes["start_time"], now)
                    await require_within_series(store, meeting, changes["start_time"])
                merged = {
                    name: changes.get(name, getattr(meeting, name))
                    for name in ("start_time", "end_time", "meeting_type", "meeting_link", "location")
                }
                validate_schedule(**merged)

                meeting = await store.update_meeting(meeting_id, changes)

        logger.info("meeting_updated", meeting_id=meeting_id, fields=sorted(changes))
        await self.dispatcher.notify(NotificationEvent(
            type=EventType.MEETING_UPDATED,
            group_id=meeting.group_id,
            meeting_id=meeting.id,
            exclude_user_id=user_id,
            meeting_title=meeting.title,
            starts_at=meeting.start_time,
        ))
        return meeting

    async def delete_meeting(self, meeting_id: int, user_id: int) -> bool:
        """
        Delete exactly one occurrence.

        A meeting that had not started yet is announced as cancelled; deleting
        a past meeting is silent.

        Returns:
            True if a cancellation was announced
        """
        now = self.clock()

        with db_errors("delete_meeting"):
            async with get_db_session() as session:
                store = MeetingStore(session)
                meeting = await store.get_meeting(meeting_id)
                await require_creator_or_leader(
                    session, meeting.group_id, meeting.created_by, user_id, "delete this meeting"
                )
                cancelled = is_upcoming(meeting.start_time, now)
                event = NotificationEvent(
                    type=EventType.MEETING_CANCELLED,
                    group_id=meeting.group_id,
                    meeting_id=meeting.id,
                    exclude_user_id=user_id,
                    meeting_title=meeting.title,
                    starts_at=meeting.start_time,
                )
                await store.delete_meeting(meeting_id)

        meetings_deleted_total.labels(state="upcoming" if cancelled else "past").inc()
        logger.info("meeting_deleted", meeting_id=meeting_id, cancelled=cancelled)

        if cancelled:
            await self.dispatcher.notify(event)
        return cancelled

    async def get_meeting(self, meeting_id: int, user_id: int) -> Meeting:
        async with get_db_session() as session:
            meeting = await MeetingStore(session).get_meeting(meeting_id)
            await require_member(session, meeting.group_id, user_id)
            return meeting

    async def list_group_meetings(
        self, group_id: int, user_id: int, when: Optional[str] = None
    ) -> List[Meeting]:
        """
        Meetings of a group in start order.

        Args:
            when: "upcoming" or "past" to keep one side of now, None for all
        """
        if when not in (None, UPCOMING, PAST):
            raise ValidationError(f"Unknown meeting filter: {when}")

        async with get_db_session() as session:
            await require_member(session, group_id, user_id)
            meetings = await MeetingStore(session).list_meetings_by_group(group_id)

        if when is None:
            return meetings
        now = self.clock()
        want_upcoming = when == UPCOMING
        return [m for m in meetings if is_upcoming(m.start_time, now) == want_upcoming]

    async def list_series(self, meeting_id: int, user_id: int) -> List[Meeting]:
        """Whole series a meeting belongs to; a lone meeting is its own series."""
        async with get_db_session() as session:
            store = MeetingStore(session)
            meeting = await store.get_meeting(meeting_id)
            await require_member(session, meeting.group_id, user_id)
            anchor_id = meeting.parent_meeting_id or meeting.id
            return await store.list_series(anchor_id)

    async def list_upcoming(self, user_id: int) -> List[Meeting]:
        async with get_db_session() as session:
            return await MeetingStore(session).list_upcoming_for_user(user_id, self.clock())
