"""
conftest.py
-----------
Shared pytest fixtures for Personal Log tests.

Provides fixtures for:
- A temporary data directory and stores on it
- A configured Flask app with test clients (anonymous and signed in)
- Sample entries
"""
from datetime import date

import pytest

from personal_log.config import Config
from personal_log.entry_store import EntryStore
from personal_log.media_store import MediaStore
from personal_log.models import DisplayItem, Entry, MediaItem, MediaType, TextBlock
from personal_log.server import create_app

USERNAME = "writer"
PASSWORD = "s3cret"


# ----- Path Fixtures -----

@pytest.fixture
def data_dir(tmp_path):
    """Empty data directory for one test."""
    return tmp_path / "data"


@pytest.fixture
def entry_store(data_dir):
    return EntryStore(data_dir / "entries.json")


@pytest.fixture
def media_store(data_dir):
    return MediaStore(data_dir / "media")


# ----- App Fixtures -----

@pytest.fixture
def config(data_dir):
    return Config(
        data_dir=data_dir,
        auth_user=USERNAME,
        auth_pass=PASSWORD,
        secret_key="test-secret",
    )


@pytest.fixture
def app(config):
    app = create_app(config)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def logged_in_client(client):
    response = client.post("/api/auth/login", json={"username": USERNAME, "password": PASSWORD})
    assert response.status_code == 200
    return client


# ----- Sample Data -----

@pytest.fixture
def sample_entry():
    """Entry with two text blocks and one image, image shown between the blocks."""
    first = TextBlock(id="b1", text="Morning walk", timestamp="2024-01-15T08:30:00.000Z")
    second = TextBlock(id="b2", text="Evening notes", timestamp="2024-01-15T21:05:00.000Z")
    photo = MediaItem(id="abc123", type=MediaType.IMAGE, url="/api/media/abc123.jpg", name="walk.jpg")
    return Entry(
        id="1705300000000",
        date="2024-01-15",
        title="A quiet Monday",
        text_blocks=[first, second],
        media=[photo],
        display_order=[DisplayItem.for_text(first), DisplayItem.for_media(photo), DisplayItem.for_text(second)],
        created_at="2024-01-15T08:30:00.000Z",
        updated_at="2024-01-15T21:05:00.000Z",
    )


@pytest.fixture
def today():
    return date(2024, 1, 15)
