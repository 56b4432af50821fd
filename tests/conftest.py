"""
Pytest configuration and shared fixtures.

Provides:
- Environment mocking
- Supabase client mocks
- Sample rows and domain objects
"""

import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

# Settings require Supabase credentials; unit tests never reach the network
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

from project_feed.models.chat import ChatMessage  # noqa: E402
from project_feed.models.timeline import TimelineEvent, TimelineEventKind  # noqa: E402


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: fast isolated tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: tests with external services")
    config.addinivalue_line("markers", "requires_supabase: needs Supabase connection")


# =============================================================================
# Environment Fixtures
# =============================================================================

@pytest.fixture(scope="session")
def test_env() -> dict[str, str]:
    """
    Load test environment variables.

    Values come from .env.test (or .env) without touching os.environ,
    which already holds the placeholder credentials set above.
    """
    from dotenv import dotenv_values

    test_env_path = Path(__file__).parent.parent / ".env.test"
    if not test_env_path.exists():
        test_env_path = Path(__file__).parent.parent / ".env"
    values = dotenv_values(test_env_path) if test_env_path.exists() else {}

    def lookup(key: str) -> str:
        return values.get(key) or os.getenv(key, "")

    return {
        "SUPABASE_URL": lookup("SUPABASE_URL"),
        "SUPABASE_ANON_KEY": lookup("SUPABASE_ANON_KEY"),
        "FEED_TEST_PROJECT_ID": lookup("FEED_TEST_PROJECT_ID"),
    }


@pytest.fixture
def mock_env(monkeypatch):
    """Mock environment variables for testing."""
    env_vars = {
        "SUPABASE_URL": "https://test-project.supabase.co",
        "SUPABASE_ANON_KEY": "test-anon-key",
        "ENVIRONMENT": "development",
        "DEBUG": "true",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


# =============================================================================
# Skip Conditions
# =============================================================================

@pytest.fixture(scope="session")
def has_supabase(test_env) -> bool:
    """Check if a real Supabase project is configured."""
    url = test_env.get("SUPABASE_URL", "")
    return bool(url and test_env.get("SUPABASE_ANON_KEY") and "test-project" not in url)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture
def mock_supabase_client():
    """Create a mock Supabase client with a chainable query builder."""
    mock_client = MagicMock()

    mock_table = MagicMock()
    mock_table.select.return_value = mock_table
    mock_table.insert.return_value = mock_table
    mock_table.update.return_value = mock_table
    mock_table.delete.return_value = mock_table
    mock_table.eq.return_value = mock_table
    mock_table.order.return_value = mock_table
    mock_table.range.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.single.return_value = mock_table
    mock_table.maybe_single.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=[])

    mock_client.table.return_value = mock_table
    return mock_client


# =============================================================================
# Sample Data Fixtures
# =============================================================================

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: int) -> datetime:
    """Timestamp `seconds` after a fixed origin."""
    return T0 + timedelta(seconds=seconds)


def _make_message(
    seconds: int,
    content: str = "hello",
    sender_id: str = "client-1",
    message_id: str = None,
    project_id: str = "project-1",
) -> ChatMessage:
    return ChatMessage(
        id=message_id or f"msg-{seconds}-{uuid4().hex[:6]}",
        project_id=project_id,
        sender_id=sender_id,
        content=content,
        timestamp=at(seconds),
    )


def _make_status_event(
    seconds: int,
    to_status: str,
    from_status: str = None,
    event_id: str = None,
) -> TimelineEvent:
    return TimelineEvent(
        id=event_id or f"evt-{seconds}-{to_status}",
        project_id="project-1",
        timestamp=at(seconds),
        kind=TimelineEventKind.STATUS_CHANGE,
        from_status=from_status,
        to_status=to_status,
    )


@pytest.fixture
def project_id() -> str:
    return "project-1"


@pytest.fixture
def sample_message_row() -> dict:
    """chat_messages row as returned with the profiles join."""
    return {
        "id": "b0c1d2e3-0000-4000-8000-000000000001",
        "chat_room_id": "room-1",
        "sender_id": "supervisor-1",
        "content": "Your draft is ready for review",
        "message_type": "text",
        "file_url": None,
        "file_name": None,
        "file_size": None,
        "file_type": None,
        "is_edited": False,
        "is_deleted": False,
        "created_at": "2025-01-01T12:00:30+00:00",
        "profiles": {"full_name": "Asha Supervisor"},
    }


@pytest.fixture
def sample_status_history_rows() -> list[dict]:
    """project_status_history rows, oldest first."""
    return [
        {
            "id": "hist-1",
            "project_id": "project-1",
            "from_status": "draft",
            "to_status": "submitted",
            "changed_by": "client-1",
            "notes": None,
            "metadata": None,
            "created_at": "2025-01-01T12:00:00+00:00",
        },
        {
            "id": "hist-2",
            "project_id": "project-1",
            "from_status": "submitted",
            "to_status": "analyzing",
            "changed_by": "admin-1",
            "notes": "Picked up for review",
            "metadata": {},
            "created_at": "2025-01-01T12:00:10+00:00",
        },
    ]


@pytest.fixture
def sample_quote_rows() -> list[dict]:
    """project_quotes rows."""
    return [
        {
            "id": "quote-row-1",
            "project_id": "project-1",
            "user_amount": 12500,
            "valid_until": "2025-01-08T12:00:00+00:00",
            "notes": "Includes two revisions",
            "created_at": "2025-01-01T12:00:20+00:00",
        },
    ]


@pytest.fixture
def ts():
    """Factory for timestamps relative to a fixed origin."""
    return at


@pytest.fixture
def message_factory():
    """Factory for ChatMessage objects at a relative time."""
    return _make_message


@pytest.fixture
def status_event_factory():
    """Factory for status_change TimelineEvents at a relative time."""
    return _make_status_event
