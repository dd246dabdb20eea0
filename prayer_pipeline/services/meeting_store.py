"""
Persistence store for meetings.

Thin wrapper over an AsyncSession. It never commits: the caller owns the
unit of work (see get_db_session), which is what lets a whole recurring
series be written atomically.
"""
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from prayer_pipeline.exceptions import NotFoundError, PersistenceError
from prayer_pipeline.logging_config import get_logger
from prayer_pipeline.models import Meeting, MeetingNote, GroupMember
from prayer_pipeline.monitoring import record_error

logger = get_logger(__name__)

MEETING_FIELDS = {
    "group_id", "title", "description", "meeting_type", "meeting_link", "location",
    "start_time", "end_time", "is_recurring", "recurring_pattern", "recurring_day",
    "recurring_until", "parent_meeting_id", "created_by",
}


@contextmanager
def db_errors(operation: str):
    """Re-raise SQLAlchemy failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as e:
        record_error("PersistenceError", "meeting_store")
        logger.error("database_operation_failed", operation=operation, error=str(e))
        raise PersistenceError(f"Database error during {operation}", operation=operation) from e


class MeetingStore:
    """Create/read/update/delete meetings by id and by group."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert_meeting(self, fields: Dict[str, Any]) -> Meeting:
        """
        Insert a meeting row and flush it so the id and created_at are assigned.

        Args:
            fields: Column values; unknown keys are rejected

        Returns:
            The new Meeting
        """
        unknown = set(fields) - MEETING_FIELDS
        if unknown:
            raise ValueError(f"Unknown meeting fields: {sorted(unknown)}")

        with db_errors("insert_meeting"):
            meeting = Meeting(**fields)
            self.session.add(meeting)
            await self.session.flush()
        return meeting

    async def get_meeting(self, meeting_id: int) -> Meeting:
        """
        Raises:
            NotFoundError: If no meeting has this id
        """
        with db_errors("get_meeting"):
            meeting = await self.session.get(Meeting, meeting_id)
        if meeting is None:
            raise NotFoundError("Meeting", meeting_id)
        return meeting

    async def update_meeting(self, meeting_id: int, changes: Dict[str, Any]) -> Meeting:
        """Apply a partial update to exactly one meeting row."""
        unknown = set(changes) - MEETING_FIELDS
        if unknown:
            raise ValueError(f"Unknown meeting fields: {sorted(unknown)}")

        meeting = await self.get_meeting(meeting_id)
        with db_errors("update_meeting"):
            for key, value in changes.items():
                setattr(meeting, key, value)
            await self.session.flush()
        return meeting

    async def delete_meeting(self, meeting_id: int) -> None:
        """
        Delete one meeting and its notes.

        Occurrences that pointed at this meeting as their anchor stay in
        place and are detached from it.
        """
        meeting = await self.get_meeting(meeting_id)
        with db_errors("delete_meeting"):
            await self.session.execute(
                delete(MeetingNote).where(MeetingNote.meeting_id == meeting_id)
            )
            await self.session.execute(
                update(Meeting)
                .where(Meeting.parent_meeting_id == meeting_id)
                .values(parent_meeting_id=None)
            )
            await self.session.delete(meeting)
            await self.session.flush()

    async def list_meetings_by_group(self, group_id: int) -> List[Meeting]:
        """All meetings of a group ordered by start time."""
        with db_errors("list_meetings_by_group"):
            result = await self.session.execute(
                select(Meeting)
                .where(Meeting.group_id == group_id)
                .order_by(Meeting.start_time, Meeting.id)
            )
            return list(result.scalars().all())

    async def list_series(self, anchor_id: int) -> List[Meeting]:
        """Anchor followed by its occurrences in start order."""
        with db_errors("list_series"):
            result = await self.session.execute(
                select(Meeting)
                .where((Meeting.id == anchor_id) | (Meeting.parent_meeting_id == anchor_id))
                .order_by(Meeting.start_time, Meeting.id)
            )
            return list(result.scalars().all())

    async def first_occurrence_start(self, anchor_id: int) -> Optional[datetime]:
        """Start of the earliest child occurrence, or None when the anchor has none."""
        with db_errors("first_occurrence_start"):
            result = await self.session.execute(
                select(func.min(Meeting.start_time)).where(Meeting.parent_meeting_id == anchor_id)
            )
            return result.scalar_one_or_none()

    async def list_upcoming_for_user(self, user_id: int, now: datetime) -> List[Meeting]:
        """Meetings starting after `now` in every group the user belongs to."""
        with db_errors("list_upcoming_for_user"):
            group_ids = select(GroupMember.group_id).where(GroupMember.user_id == user_id)
            result = await self.session.execute(
                select(Meeting)
                .where(Meeting.group_id.in_(group_ids), Meeting.start_time > now)
                .order_by(Meeting.start_time, Meeting.id)
            )
            return list(result.scalars().all())

    async def list_starting_between(self, start: datetime, end: datetime) -> List[Meeting]:
        """Meetings with start > `start` and start <= `end`."""
        with db_errors("list_starting_between"):
            result = await self.session.execute(
                select(Meeting)
                .where(Meeting.start_time > start, Meeting.start_time <= end)
                .order_by(Meeting.start_time, Meeting.id)
            )
            return list(result.scalars().all())

