"""
Pydantic models for request/response validation.

The HTTP API speaks camelCase JSON; attributes stay snake_case in Python.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from prayer_pipeline.config import settings
from prayer_pipeline.services.recurrence import RecurrencePattern
from prayer_pipeline.utils import meeting_status, to_naive_utc


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MeetingType(str, Enum):
    ZOOM = "zoom"
    GOOGLE_MEET = "google_meet"
    PHYSICAL = "physical"


class MeetingCreate(ApiModel):
    """Body of a create-meeting request."""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    meeting_type: MeetingType
    meeting_link: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    is_recurring: bool = False
    recurring_pattern: Optional[RecurrencePattern] = None
    recurring_day: Optional[int] = None
    recurring_until: Optional[datetime] = None

    @field_validator("start_time", "end_time", "recurring_until")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Store every timestamp as naive UTC."""
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_recurrence(self):
        if not self.is_recurring:
            return self
        if self.recurring_pattern is None:
            raise ValueError("Recurring meetings need a recurring pattern")
        if self.recurring_until is not None:
            max_span = timedelta(days=settings.recurrence_max_span_days)
            if self.recurring_until - self.start_time > max_span:
                raise ValueError(
                    f"Recurring meetings can be scheduled at most "
                    f"{settings.recurrence_max_span_days} days ahead"
                )
        return self


class MeetingUpdate(ApiModel):
    """Partial update of a single occurrence. Recurrence settings are not editable."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    meeting_type: Optional[MeetingType] = None
    meeting_link: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_required_not_null(self):
        for name in ("title", "meeting_type", "start_time"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def changes(self) -> dict:
        """Only the fields the client actually sent, enums as plain values."""
        data = self.model_dump(exclude_unset=True)
        if data.get("meeting_type") is not None:
            data["meeting_type"] = MeetingType(data["meeting_type"]).value
        return data


class MeetingResponse(ApiModel):
    id: int
    group_id: int
    title: str
    description: Optional[str] = None
    meeting_type: str
    meeting_link: Optional[str] = None
    location: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    is_recurring: bool
    recurring_pattern: Optional[str] = None
    recurring_day: Optional[int] = None
    recurring_until: Optional[datetime] = None
    parent_meeting_id: Optional[int] = None
    created_by: int
    created_at: datetime

    @computed_field
    @property
    def status(self) -> str:
        return meeting_status(self.start_time)


class MeetingCreatedResponse(MeetingResponse):
    occurrences_created: int = 0


class MeetingNoteCreate(ApiModel):
    content: str = Field(..., min_length=1)


class MeetingNoteUpdate(ApiModel):
    content: str = Field(..., min_length=1)


class MeetingNoteResponse(ApiModel):
    id: int
    meeting_id: int
    content: str
    created_by: int
    created_at: datetime
    updated_at: datetime


class PrayerRequestResponse(ApiModel):
    id: int
    group_id: int
    user_id: int
    title: str
    description: str
    urgency: str
    is_anonymous: bool
    status: str
    created_at: datetime


class NotificationResponse(ApiModel):
    id: int
    user_id: int
    type: str
    message: str
    read: bool
    reference_id: Optional[int] = None
    created_at: datetime


class MarkAllReadResponse(ApiModel):
    updated: int


class HealthCheck(BaseModel):
    """Health check response."""
    status: str
    database: str
    timestamp: str


class ErrorResponse(BaseModel):
    """Error response model."""
    detail: str


