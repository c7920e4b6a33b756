"""Shared fixtures."""

import pytest

from eventchat.services.database import DatabaseService


@pytest.fixture
async def db_service(tmp_path):
    """Fresh SQLite database with all tables created."""
    db = DatabaseService(tmp_path / "eventchat.db")
    await db.initialize()
    yield db
    await db.close()


@pytest.fixture
async def broken_db_service(tmp_path):
    """Database whose tables were never created, so every query fails."""
    db = DatabaseService(tmp_path / "empty.db")
    yield db
    await db.close()
