"""
Pytest configuration and fixtures.
"""
import os

# Settings are read at import time; point them at SQLite before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-sessions")

import pytest
from datetime import datetime
from types import SimpleNamespace
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from prayer_pipeline import database
from prayer_pipeline.models import Base, User, Group, GroupMember
from prayer_pipeline.services.meeting_service import MeetingLifecycleManager


# Lifecycle tests run at this moment, so meetings in January 2024 are upcoming
FIXED_NOW = datetime(2023, 12, 1, 9, 0)


# ============================================
# DATABASE FIXTURES
# ============================================

@pytest.fixture(scope="function")
async def test_engine():
    """Create a test database engine using in-memory SQLite."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def db(test_engine, monkeypatch):
    """
    Route every get_db_session() in the app to the test engine.

    Returns the session factory so tests can inspect the database directly.
    """
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    monkeypatch.setattr(database, "async_session_maker", session_maker)
    return session_maker


@pytest.fixture(scope="function")
async def seed(db):
    """
    One group with a leader, two members and one outsider.

    Returns:
        Namespace with the ids: group, leader, alice, bob, outsider
    """
    async with db() as session:
        leader = User(username="pastor", name="Pastor Dan")
        alice = User(username="alice", name="Alice")
        bob = User(username="bob", name="Bob")
        outsider = User(username="eve", name="Eve")
        session.add_all([leader, alice, bob, outsider])
        await session.flush()

        group = Group(name="Tuesday Prayer", created_by=leader.id)
        session.add(group)
        await session.flush()

        session.add_all([
            GroupMember(group_id=group.id, user_id=leader.id, role="leader"),
            GroupMember(group_id=group.id, user_id=alice.id, role="member"),
            GroupMember(group_id=group.id, user_id=bob.id, role="member"),
        ])
        await session.commit()

        return SimpleNamespace(
            group=group.id,
            leader=leader.id,
            alice=alice.id,
            bob=bob.id,
            outsider=outsider.id,
        )


# ============================================
# SERVICE FIXTURES
# ============================================

class RecordingDispatcher:
    """Collects notification events instead of writing them."""

    def __init__(self):
        self.events = []

    async def notify(self, event):
        self.events.append(event)
        return 1


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def manager(dispatcher):
    """Lifecycle manager with a fixed clock and a recording dispatcher."""
    return MeetingLifecycleManager(dispatcher=dispatcher, clock=lambda: FIXED_NOW)


# ============================================
# MOCK DATA FIXTURES
# ============================================

@pytest.fixture
def zoom_meeting_data():
    """Body of a one-off online meeting."""
    return {
        "title": "Evening prayer",
        "description": "Praying for the city",
        "meeting_type": "zoom",
        "meeting_link": "https://zoom.us/j/123456",
        "start_time": datetime(2024, 1, 1, 18, 0),
        "end_time": datetime(2024, 1, 1, 19, 30),
    }


@pytest.fixture
def weekly_meeting_data(zoom_meeting_data):
    """Weekly series from 2024-01-01 18:00 bounded by 2024-01-22 23:59."""
    return {
        **zoom_meeting_data,
        "is_recurring": True,
        "recurring_pattern": "weekly",
        "recurring_day": 1,
        "recurring_until": datetime(2024, 1, 22, 23, 59),
    }
