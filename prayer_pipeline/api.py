"""
Prayer Pipeline Meetings - API Routes

Meeting scheduling, meeting notes and meeting notifications.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Request, HTTPException, Depends, Query, Response, status
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text

from prayer_pipeline.database import get_db_session
from prayer_pipeline.exceptions import (
    PrayerPipelineError,
    ValidationError,
    NotFoundError,
    PermissionDeniedError,
)
from prayer_pipeline.logging_config import get_logger
from prayer_pipeline.monitoring import get_metrics
from prayer_pipeline.schemas import (
    HealthCheck,
    MarkAllReadResponse,
    MeetingCreate,
    MeetingCreatedResponse,
    MeetingNoteCreate,
    MeetingNoteResponse,
    MeetingNoteUpdate,
    MeetingResponse,
    MeetingUpdate,
    NotificationResponse,
    PrayerRequestResponse,
)
from prayer_pipeline.services import meeting_notes_service, notification_service
from prayer_pipeline.services.meeting_service import MeetingLifecycleManager

logger = get_logger(__name__)


# ============================================
# CREATE API ROUTER
# ============================================

router = APIRouter()

_meeting_manager = MeetingLifecycleManager()


# ============================================
# DEPENDENCY INJECTION
# ============================================

async def get_current_user(request: Request) -> int:
    """
    Get current user ID from session.

    Raises:
        HTTPException: If user is not authenticated
    """
    try:
        user_id = int(request.session.get("user_id"))
    except (TypeError, ValueError):
        user_id = None
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return user_id


def get_meeting_manager() -> MeetingLifecycleManager:
    return _meeting_manager


def to_http_error(error: PrayerPipelineError) -> HTTPException:
    """Map a service error onto the HTTP status the client expects."""
    if isinstance(error, ValidationError):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(error, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, PermissionDeniedError):
        code = status.HTTP_403_FORBIDDEN
    else:
        logger.error("request_failed", error_type=type(error).__name__, error=str(error))
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(error))


# ============================================
# MEETINGS
# ============================================

@router.post(
    "/api/groups/{group_id}/meetings",
    response_model=MeetingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_meeting(
    group_id: int,
    payload: MeetingCreate,
    user_id: int = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_meeting_manager),
):
    """Schedule a meeting; recurring requests also create every occurrence."""
    try:
        result = await manager.create_meeting(group_id, payload, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)

    response = MeetingCreatedResponse.model_validate(result.meeting)
    response.occurrences_created = len(result.occurrences)
    return response


@router.get("/api/groups/{group_id}/meetings", response_model=List[MeetingResponse])
async def list_group_meetings(
    group_id: int,
    when: Optional[str] = Query(None, pattern="^(upcoming|past)$"),
    user_id: int = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_meeting_manager),
):
    """Meetings of a group, optionally only upcoming or only past ones."""
    try:
        return await manager.list_group_meetings(group_id, user_id, when)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.get("/api/meetings/upcoming", response_model=List[MeetingResponse])
async def list_upcoming_meetings(
    user_id: int = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_meeting_manager),
):
    """Upcoming meetings across all groups of the current user."""
    try:
        return await manager.list_upcoming(user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.get("/api/meetings/{meeting_id}", response_model=MeetingResponse)
async def get_meeting(
    meeting_id: int,
    user_id: int = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_meeting_manager),
):
    try:
        return await manager.get_meeting(meeting_id, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.get("/api/meetings/{meeting_id}/series", response_model=List[MeetingResponse])
async def get_meeting_series(
    meeting_id: int,
    user_id: int = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_meeting_manager),
):
    """Anchor and occurrences of the series this meeting belongs to."""
    try:
        return await manager.list_series(meeting_id, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.put("/api/meetings/{meeting_id}", response_model=MeetingResponse)
async def update_meeting(
    meeting_id: int,
    payload: MeetingUpdate,
    user_id: int = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_meeting_manager),
):
    """Edit this occurrence only."""
    try:
        return await manager.update_meeting(meeting_id, payload, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.delete("/api/meetings/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting(
    meeting_id: int,
    user_id: int = Depends(get_current_user),
    manager: MeetingLifecycleManager = Depends(get_meeting_manager),
):
    """Delete this occurrence only; upcoming meetings are announced as cancelled."""
    try:
        await manager.delete_meeting(meeting_id, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================
# MEETING NOTES
# ============================================

@router.get("/api/meetings/{meeting_id}/notes", response_model=List[MeetingNoteResponse])
async def list_meeting_notes(meeting_id: int, user_id: int = Depends(get_current_user)):
    try:
        return await meeting_notes_service.list_notes(meeting_id, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.post(
    "/api/meetings/{meeting_id}/notes",
    response_model=MeetingNoteResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_meeting_note(
    meeting_id: int,
    payload: MeetingNoteCreate,
    user_id: int = Depends(get_current_user),
):
    try:
        return await meeting_notes_service.create_note(meeting_id, payload.content, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.post(
    "/api/meetings/{meeting_id}/notes/export",
    response_model=List[PrayerRequestResponse],
    status_code=status.HTTP_201_CREATED,
)
async def export_meeting_notes(meeting_id: int, user_id: int = Depends(get_current_user)):
    """Turn each note of the meeting into a prayer request in its group."""
    try:
        return await meeting_notes_service.export_notes_to_prayer_requests(meeting_id, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.put("/api/meeting-notes/{note_id}", response_model=MeetingNoteResponse)
async def update_meeting_note(
    note_id: int,
    payload: MeetingNoteUpdate,
    user_id: int = Depends(get_current_user),
):
    try:
        return await meeting_notes_service.update_note(note_id, payload.content, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.delete("/api/meeting-notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_meeting_note(note_id: int, user_id: int = Depends(get_current_user)):
    try:
        await meeting_notes_service.delete_note(note_id, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ============================================
# NOTIFICATIONS
# ============================================

@router.get("/api/notifications", response_model=List[NotificationResponse])
async def list_notifications(
    unread: bool = False,
    user_id: int = Depends(get_current_user),
):
    try:
        return await notification_service.list_notifications(user_id, unread_only=unread)
    except PrayerPipelineError as e:
        raise to_http_error(e)


@router.post("/api/notifications/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(user_id: int = Depends(get_current_user)):
    try:
        updated = await notification_service.mark_all_notifications_read(user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)
    return MarkAllReadResponse(updated=updated)


@router.post("/api/notifications/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: int, user_id: int = Depends(get_current_user)):
    try:
        return await notification_service.mark_notification_read(notification_id, user_id)
    except PrayerPipelineError as e:
        raise to_http_error(e)


# ============================================
# OPERATIONS
# ============================================

@router.get("/health", response_model=HealthCheck)
async def health_check():
    """Health check endpoint for monitoring."""
    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
        db_status = "connected"
    except Exception as e:
        logger.warning("health_check_database_unavailable", error=str(e))
        db_status = "disconnected"

    return HealthCheck(
        status="healthy",
        database=db_status,
        timestamp=datetime.now().isoformat()
    )


@router.get("/metrics")
async def metrics():
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=CONTENT_TYPE_LATEST)
