"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides temp-file SQLite stores.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("CALENDAR_PROVIDER", "none")
os.environ.setdefault("TIMEZONE", "UTC")

import pytest


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_nutripilot.db")


@pytest.fixture
def progress_db(tmp_db_path):
    """Return a ProgressDB instance backed by a temp file."""
    from src.data.db import ProgressDB
    return ProgressDB(db_path=tmp_db_path)


@pytest.fixture
def user_db(tmp_db_path):
    """Return a UserDB instance sharing the temp file with progress_db."""
    from src.data.db import UserDB
    return UserDB(db_path=tmp_db_path)
