"""
Database models package.
Import all models here so Base.metadata knows every table.
"""
from prayer_pipeline.models.base import Base
from prayer_pipeline.models.user import User, Group, GroupMember
from prayer_pipeline.models.meeting import Meeting, MeetingNote
from prayer_pipeline.models.notification import Notification, GroupNotificationPreference
from prayer_pipeline.models.prayer_request import PrayerRequest

__all__ = [
    'Base',
    'User',
    'Group',
    'GroupMember',
    'Meeting',
    'MeetingNote',
    'Notification',
    'GroupNotificationPreference',
    'PrayerRequest'
]
