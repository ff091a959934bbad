"""Test helper functions for hysync tests.

This module provides builders for local songs and wire items, plus
account constants shared by the web, sync and CLI tests.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import pytest

from hysync.core.models import LikeStatus, Song
from hysync.main import main


TEST_EMAIL = "listener@example.com"
TEST_PASSWORD = "Passw0rd!"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1nPass!"
TEST_SECRET = "test-secret"


def make_song(
    video_id: str,
    title: str = "",
    artists: Tuple[str, ...] = (),
    liked: bool = False,
    duration_seconds: int = 200,
    thumbnail: Optional[str] = None,
) -> Song:
    """Build a local song with sensible defaults."""
    return Song(
        video_id=video_id,
        title=title or f"Title {video_id}",
        artist_names=artists,
        thumbnail=thumbnail or f"https://img/{video_id}",
        duration=f"{duration_seconds // 60}:{duration_seconds % 60:02d}",
        duration_seconds=duration_seconds,
        like_status=(LikeStatus.LIKE if liked else LikeStatus.INDIFFERENT).value,
        liked=liked,
    )


def song_item(
    video_id: str,
    title: Optional[str] = None,
    artist: Optional[str] = "Someone",
    duration: Optional[int] = 180,
) -> Dict[str, Any]:
    """Build a wire song item (favorite / history / playlist song)."""
    return {
        "videoId": video_id,
        "title": title or f"Title {video_id}",
        "artist": artist,
        "thumbnail": f"https://img/{video_id}",
        "duration": duration,
    }


def bearer(token: str) -> Dict[str, str]:
    """Authorization header for a token."""
    return {"Authorization": f"Bearer {token}"}


def register(client: Any, email: str, password: str) -> Dict[str, Any]:
    """Register an account through a Flask test client and return the body."""
    response = client.post(
        "/api/auth/register", json={"email": email, "password": password}
    )
    assert response.status_code == 200, response.get_json()
    return response.get_json()


def run_cli(
    capsys: pytest.CaptureFixture, config_dir: Path, *argv: str
) -> Tuple[int, str, str]:
    """Run ``hysync -d <config_dir> cli ...`` and capture its output."""
    with pytest.raises(SystemExit) as exc_info:
        main(["-d", str(config_dir), "cli", *argv])
    captured = capsys.readouterr()
    return exc_info.value.code, captured.out, captured.err
