"""
Meeting-related database models.
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, Boolean, ForeignKey
from prayer_pipeline.utils import utcnow
from prayer_pipeline.models.base import Base


class Meeting(Base):
    """
    One scheduled meeting of a group.

    Recurring series are materialized: the anchor row has no parent and every
    generated occurrence points at the anchor through parent_meeting_id.
    """

    __tablename__ = 'meetings'

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    meeting_type = Column(String(20), nullable=False)  # 'zoom', 'google_meet' or 'physical'
    meeting_link = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=True)
    is_recurring = Column(Boolean, nullable=False, default=False)
    recurring_pattern = Column(String(20), nullable=True)  # daily, weekly, biweekly, monthly
    recurring_day = Column(Integer, nullable=True)
    recurring_until = Column(DateTime, nullable=True)
    parent_meeting_id = Column(
        Integer,
        ForeignKey('meetings.id', ondelete='SET NULL'),
        nullable=True,
        index=True
    )
    created_by = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def is_anchor(self) -> bool:
        return self.is_recurring and self.parent_meeting_id is None

    def __repr__(self):
        return f"<Meeting(id={self.id}, group_id={self.group_id}, start_time='{self.start_time}')>"


class MeetingNote(Base):
    __tablename__ = 'meeting_notes'

    id = Column(Integer, primary_key=True, autoincrement=True)
    meeting_id = Column(Integer, ForeignKey('meetings.id', ondelete='CASCADE'), nullable=False, index=True)
    content = Column(Text, nullable=False)
    created_by = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<MeetingNote(id={self.id}, meeting_id={self.meeting_id})>"
