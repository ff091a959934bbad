"""Pytest fixtures for hysync tests.

This module provides fixtures for test configuration, the local library
database, the authenticated session and a live sync server process.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Generator

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hysync.core.config import Config
from hysync.core.database import Database
from hysync.core.session import Session

from tests.helpers import make_song
from tests.live_server import SyncServer, find_free_port


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create temporary config directory for tests.

    Args:
        tmp_path: pytest temporary directory fixture

    Returns:
        Path to temporary config directory.
    """
    config_dir = tmp_path / "hysync_test"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def test_config(test_config_dir: Path) -> Config:
    """Create test configuration."""
    return Config(config_dir=test_config_dir)


@pytest.fixture
def empty_db() -> Generator[Database, None, None]:
    """Create an empty in-memory library database.

    Yields:
        Empty Database instance.
    """
    db = Database(":memory:")
    yield db
    db.close()


@pytest.fixture
def populated_db() -> Generator[Database, None, None]:
    """Create a library with favorites, plays, a playlist and subscriptions.

    Contents:
        - song1 (liked), song2 (liked), song3 (not liked)
        - plays: song3, then song1 (song1 most recent)
        - playlist "Road Trip": song3, song1
        - one album, one artist, one saved playlist
    """
    from hysync.core.models import Album, Artist, SavedPlaylist

    db = Database(":memory:")
    db.insert_song(make_song("song1", "First Song", artists=("Artist A", "Artist B"), liked=True))
    db.insert_song(make_song("song2", "Second Song", artists=("Artist C",), liked=True))
    db.insert_song(make_song("song3", "Third Song", liked=False))
    db.record_play("song3")
    db.record_play("song1")
    db.create_local_playlist("Road Trip", ["song3", "song1"], description="Driving")
    db.insert_album(Album("MPREb_album1", "Album One", ("Artist A",), "https://img/a1"))
    db.insert_artist(Artist("UC_artist1", "Artist A", "https://img/ar1"))
    db.insert_saved_playlist(SavedPlaylist("PL_saved1", "Saved One", "https://img/p1"))
    yield db
    db.close()


@pytest.fixture
def session() -> Session:
    """In-memory session that is not logged in."""
    return Session()


@pytest.fixture
def logged_in_session() -> Session:
    """In-memory session holding a token."""
    from hysync.core.api_models import UserInfo

    s = Session()
    s.set("test-token", UserInfo(id="u1", email="user@example.com", nickname="user"))
    return s


@pytest.fixture
def sync_server(tmp_path: Path) -> Generator[SyncServer, None, None]:
    """A sync server subprocess backed by a fresh database."""
    config_dir = tmp_path / "server"
    config_dir.mkdir()
    server = SyncServer(
        config_dir=config_dir,
        db_path=config_dir / "server.db",
        port=find_free_port(),
    )
    server.start()
    if not server.wait_for_server():
        server.stop()
        pytest.fail("Failed to start sync server")
    yield server
    server.stop()
