"""
Meeting notes and their export into prayer requests.
"""
from typing import List

from sqlalchemy import select

from prayer_pipeline.database import get_db_session
from prayer_pipeline.exceptions import NotFoundError
from prayer_pipeline.logging_config import get_logger
from prayer_pipeline.models import Meeting, MeetingNote, PrayerRequest
from prayer_pipeline.services.group_service import require_member, require_creator_or_leader
from prayer_pipeline.services.meeting_store import MeetingStore, db_errors

logger = get_logger(__name__)


async def _get_note(session, note_id: int) -> MeetingNote:
    note = await session.get(MeetingNote, note_id)
    if note is None:
        raise NotFoundError("Meeting note", note_id)
    return note


async def _require_note_editor(session, meeting: Meeting, user_id: int) -> None:
    await require_creator_or_leader(
        session, meeting.group_id, meeting.created_by, user_id, "manage notes for this meeting"
    )


async def create_note(meeting_id: int, content: str, user_id: int) -> MeetingNote:
    """
    Add a note to a meeting.

    Only the meeting creator or a leader of its group may write notes.
    """
    async with get_db_session() as session:
        with db_errors("create_note"):
            meeting = await MeetingStore(session).get_meeting(meeting_id)
            await _require_note_editor(session, meeting, user_id)
            note = MeetingNote(meeting_id=meeting_id, content=content, created_by=user_id)
            session.add(note)
            await session.flush()
    logger.info("meeting_note_created", meeting_id=meeting_id, note_id=note.id)
    return note


async def list_notes(meeting_id: int, user_id: int) -> List[MeetingNote]:
    """Notes of a meeting, oldest first. Visible to every group member."""
    async with get_db_session() as session:
        with db_errors("list_notes"):
            meeting = await MeetingStore(session).get_meeting(meeting_id)
            await require_member(session, meeting.group_id, user_id)
            result = await session.execute(
                select(MeetingNote)
                .where(MeetingNote.meeting_id == meeting_id)
                .order_by(MeetingNote.created_at, MeetingNote.id)
            )
            return list(result.scalars().all())


async def update_note(note_id: int, content: str, user_id: int) -> MeetingNote:
    async with get_db_session() as session:
        with db_errors("update_note"):
            note = await _get_note(session, note_id)
            meeting = await MeetingStore(session).get_meeting(note.meeting_id)
            await _require_note_editor(session, meeting, user_id)
            note.content = content
            await session.flush()
            await session.refresh(note)
    return note


async def delete_note(note_id: int, user_id: int) -> None:
    async with get_db_session() as session:
        with db_errors("delete_note"):
            note = await _get_note(session, note_id)
            meeting = await MeetingStore(session).get_meeting(note.meeting_id)
            await _require_note_editor(session, meeting, user_id)
            await session.delete(note)
    logger.info("meeting_note_deleted", note_id=note_id)


async def export_notes_to_prayer_requests(meeting_id: int, user_id: int) -> List[PrayerRequest]:
    """
    Create one prayer request per non-empty note of a meeting.

    The requests are posted to the meeting's group by the caller. Nothing
    links them back to the notes afterwards.

    Returns:
        The created prayer requests, in note order
    """
    async with get_db_session() as session:
        with db_errors("export_notes"):
            meeting = await MeetingStore(session).get_meeting(meeting_id)
            await _require_note_editor(session, meeting, user_id)
            result = await session.execute(
                select(MeetingNote)
                .where(MeetingNote.meeting_id == meeting_id)
                .order_by(MeetingNote.created_at, MeetingNote.id)
            )

            created = []
            for note in result.scalars().all():
                if not note.content.strip():
                    continue
                request = PrayerRequest(
                    group_id=meeting.group_id,
                    user_id=user_id,
                    title=f"From meeting: {meeting.title}",
                    description=note.content,
                    urgency="medium",
                    is_anonymous=False,
                    status="waiting",
                )
                session.add(request)
                created.append(request)
            await session.flush()

    logger.info("meeting_notes_exported", meeting_id=meeting_id, prayer_requests=len(created))
    return created
