"""
In-app notifications and per-group notification preferences.
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, Boolean, ForeignKey, UniqueConstraint
from prayer_pipeline.utils import utcnow
from prayer_pipeline.models.base import Base


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False)
    reference_id = Column(Integer, nullable=True, index=True)  # meeting id for meeting events
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<Notification(id={self.id}, user_id={self.user_id}, type='{self.type}')>"


class GroupNotificationPreference(Base):
    __tablename__ = 'group_notification_preferences'
    __table_args__ = (UniqueConstraint('user_id', 'group_id', name='uq_group_notification_pref'),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    group_id = Column(Integer, ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True)
    muted = Column(Boolean, nullable=False, default=False)
    meeting_reminders = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<GroupNotificationPreference(user_id={self.user_id}, group_id={self.group_id}, muted={self.muted})>"
