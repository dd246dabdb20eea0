"""
Prayer requests, created here only by exporting meeting notes.
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, Boolean, ForeignKey
from prayer_pipeline.utils import utcnow
from prayer_pipeline.models.base import Base


class PrayerRequest(Base):
    __tablename__ = 'prayer_requests'

    id = Column(Integer, primary_key=True, autoincrement=True)
    group_id = Column(Integer, ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    urgency = Column(String(20), nullable=False, default='medium')  # low, medium, high
    is_anonymous = Column(Boolean, nullable=False, default=False)
    status = Column(String(20), nullable=False, default='waiting')  # waiting, answered, not_answered
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<PrayerRequest(id={self.id}, group_id={self.group_id}, title='{self.title}')>"
