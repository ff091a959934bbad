"""Local library store for hysync.

This module provides on-device persistence for songs, user playlists,
library subscriptions and settings using SQLite. It is the source of
truth between sync cycles.

Playlist tracks are stored as rows in local_playlist_songs with a
FOREIGN KEY on songs(video_id), so a playlist can only reference songs
that already exist locally.

The connection is shared between the caller's thread and the sync
engine's background workers; every statement runs under one lock.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .models import (
    SETTINGS_DEFAULTS,
    SETTINGS_FIELDS,
    Album,
    Artist,
    LikeStatus,
    LocalPlaylist,
    SavedPlaylist,
    Song,
    coerce_setting,
)
from .validation import ValidationError

logger = logging.getLogger(__name__)

__all__ = ["Database"]

SCHEMA = """
CREATE TABLE IF NOT EXISTS songs (
    video_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    artist_names TEXT NOT NULL DEFAULT '[]',
    thumbnail TEXT,
    duration TEXT NOT NULL DEFAULT '0:00',
    duration_seconds INTEGER NOT NULL DEFAULT 0,
    is_available INTEGER NOT NULL DEFAULT 1,
    is_explicit INTEGER NOT NULL DEFAULT 0,
    like_status TEXT NOT NULL DEFAULT 'INDIFFERENT',
    video_type TEXT,
    category TEXT,
    result_type TEXT,
    liked INTEGER NOT NULL DEFAULT 0,
    total_play_time INTEGER NOT NULL DEFAULT 0,
    last_played_at TEXT,
    play_seq INTEGER,
    in_library TEXT
);

CREATE TABLE IF NOT EXISTS local_playlists (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    description TEXT,
    thumbnail TEXT,
    in_library TEXT
);

CREATE TABLE IF NOT EXISTS local_playlist_songs (
    playlist_id INTEGER NOT NULL REFERENCES local_playlists(id) ON DELETE CASCADE,
    position INTEGER NOT NULL,
    video_id TEXT NOT NULL REFERENCES songs(video_id),
    PRIMARY KEY (playlist_id, position)
);

CREATE TABLE IF NOT EXISTS albums (
    browse_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    artist_names TEXT NOT NULL DEFAULT '[]',
    thumbnail TEXT,
    liked INTEGER NOT NULL DEFAULT 1,
    in_library TEXT
);

CREATE TABLE IF NOT EXISTS artists (
    channel_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    thumbnail TEXT,
    followed INTEGER NOT NULL DEFAULT 1,
    in_library TEXT
);

CREATE TABLE IF NOT EXISTS saved_playlists (
    playlist_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    thumbnail TEXT,
    liked INTEGER NOT NULL DEFAULT 1,
    in_library TEXT
);

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sync_meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
"""


def _timestamp() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


class Database:
    """SQLite-backed local library.

    All read methods return immutable model objects from core.models.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        """Initialize database connection and create tables.

        Args:
            db_path: Path to the SQLite database file, or ':memory:' for in-memory
        """
        path_str = str(db_path) if isinstance(db_path, Path) else db_path
        self.db_path = path_str
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(path_str, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        with self._conn:
            self._conn.executescript(SCHEMA)
        logger.info(f"Opened library database at {path_str}")

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    # ===== Songs =====

    @staticmethod
    def _row_to_song(row: sqlite3.Row) -> Song:
        return Song(
            video_id=row["video_id"],
            title=row["title"],
            artist_names=tuple(json.loads(row["artist_names"] or "[]")),
            thumbnail=row["thumbnail"],
            duration=row["duration"],
            duration_seconds=row["duration_seconds"],
            is_available=bool(row["is_available"]),
            is_explicit=bool(row["is_explicit"]),
            like_status=row["like_status"],
            video_type=row["video_type"],
            category=row["category"],
            result_type=row["result_type"],
            liked=bool(row["liked"]),
            total_play_time=row["total_play_time"],
            last_played_at=row["last_played_at"],
            in_library=row["in_library"],
        )

    def get_song(self, video_id: str) -> Optional[Song]:
        """Get a song by video id."""
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM songs WHERE video_id = ?", (video_id,)
            ).fetchone()
        return self._row_to_song(row) if row else None

    def insert_song(self, song: Song) -> None:
        """Insert a new song.

        Raises:
            sqlite3.IntegrityError: If a song with the same video id exists
        """
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO songs (
                    video_id, title, artist_names, thumbnail, duration,
                    duration_seconds, is_available, is_explicit, like_status,
                    video_type, category, result_type, liked, total_play_time,
                    last_played_at, in_library
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    song.video_id,
                    song.title,
                    json.dumps(list(song.artist_names)),
                    song.thumbnail,
                    song.duration,
                    song.duration_seconds,
                    int(song.is_available),
                    int(song.is_explicit),
                    song.like_status,
                    song.video_type,
                    song.category,
                    song.result_type,
                    int(song.liked),
                    song.total_play_time,
                    song.last_played_at,
                    song.in_library or _timestamp(),
                ),
            )

    def set_liked(self, video_id: str, liked: bool) -> bool:
        """Set a song's favorite flag and like status.

        Returns:
            True if the song exists and was updated
        """
        status = LikeStatus.LIKE if liked else LikeStatus.INDIFFERENT
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE songs SET liked = ?, like_status = ? WHERE video_id = ?",
                (int(liked), status.value, video_id),
            )
        return cursor.rowcount > 0

    def get_liked_songs(self) -> List[Song]:
        """Get all favorite songs in the order they entered the library."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM songs WHERE liked = 1 ORDER BY rowid"
            ).fetchall()
        return [self._row_to_song(r) for r in rows]

    def get_all_songs(self) -> List[Song]:
        with self._lock:
            rows = self._conn.execute("SELECT * FROM songs ORDER BY rowid").fetchall()
        return [self._row_to_song(r) for r in rows]

    def record_play(self, video_id: str, played_at: Optional[str] = None) -> bool:
        """Record one play of a song.

        Returns:
            True if the song exists
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                UPDATE songs SET
                    total_play_time = total_play_time + 1,
                    last_played_at = ?,
                    play_seq = (SELECT COALESCE(MAX(play_seq), 0) + 1 FROM songs)
                WHERE video_id = ?
                """,
                (played_at or _timestamp(), video_id),
            )
        return cursor.rowcount > 0

    def get_recently_played(self, limit: int = 100) -> List[Song]:
        """Get played songs, most recently played first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM songs
                WHERE total_play_time > 0
                ORDER BY play_seq IS NULL, play_seq DESC, rowid DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [self._row_to_song(r) for r in rows]

    # ===== Local playlists =====

    def _playlist_tracks(self, playlist_id: int) -> tuple:
        rows = self._conn.execute(
            """
            SELECT video_id FROM local_playlist_songs
            WHERE playlist_id = ? ORDER BY position
            """,
            (playlist_id,),
        ).fetchall()
        return tuple(r["video_id"] for r in rows)

    def _row_to_playlist(self, row: sqlite3.Row) -> LocalPlaylist:
        return LocalPlaylist(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            thumbnail=row["thumbnail"],
            tracks=self._playlist_tracks(row["id"]),
            in_library=row["in_library"],
        )

    def create_local_playlist(
        self,
        title: str,
        tracks: Iterable[str] = (),
        description: Optional[str] = None,
        thumbnail: Optional[str] = None,
    ) -> int:
        """Create a playlist with its tracks in order.

        Every track must already exist in songs; otherwise nothing is
        written and sqlite3.IntegrityError is raised.

        Returns:
            The new playlist id
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                INSERT INTO local_playlists (title, description, thumbnail, in_library)
                VALUES (?, ?, ?, ?)
                """,
                (title, description, thumbnail, _timestamp()),
            )
            playlist_id = cursor.lastrowid
            self._conn.executemany(
                """
                INSERT INTO local_playlist_songs (playlist_id, position, video_id)
                VALUES (?, ?, ?)
                """,
                [(playlist_id, i, vid) for i, vid in enumerate(tracks)],
            )
        return playlist_id

    def add_track_to_playlist(self, playlist_id: int, video_id: str) -> None:
        """Append a song to the end of a playlist.

        Raises:
            sqlite3.IntegrityError: If the playlist or song does not exist
        """
        with self._lock, self._conn:
            row = self._conn.execute(
                """
                SELECT COALESCE(MAX(position) + 1, 0) AS next_pos
                FROM local_playlist_songs WHERE playlist_id = ?
                """,
                (playlist_id,),
            ).fetchone()
            self._conn.execute(
                """
                INSERT INTO local_playlist_songs (playlist_id, position, video_id)
                VALUES (?, ?, ?)
                """,
                (playlist_id, row["next_pos"], video_id),
            )

    def get_local_playlists(self) -> List[LocalPlaylist]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM local_playlists ORDER BY id"
            ).fetchall()
            return [self._row_to_playlist(r) for r in rows]

    def get_local_playlist(self, playlist_id: int) -> Optional[LocalPlaylist]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM local_playlists WHERE id = ?", (playlist_id,)
            ).fetchone()
            return self._row_to_playlist(row) if row else None

    def get_local_playlist_by_title(self, title: str) -> Optional[LocalPlaylist]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM local_playlists WHERE title = ? ORDER BY id LIMIT 1",
                (title,),
            ).fetchone()
            return self._row_to_playlist(row) if row else None

    def delete_local_playlist(self, playlist_id: int) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM local_playlists WHERE id = ?", (playlist_id,)
            )
        return cursor.rowcount > 0

    # ===== Library subscriptions =====

    def insert_album(self, album: Album) -> bool:
        """Insert an album unless it is already saved.

        Returns:
            True if a row was inserted
        """
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO albums
                    (browse_id, title, artist_names, thumbnail, liked, in_library)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    album.browse_id,
                    album.title,
                    json.dumps(list(album.artist_names)),
                    album.thumbnail,
                    int(album.liked),
                    album.in_library or _timestamp(),
                ),
            )
        return cursor.rowcount > 0

    def get_albums(self, limit: int = 1000) -> List[Album]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM albums WHERE liked = 1 ORDER BY in_library DESC, rowid LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            Album(
                browse_id=r["browse_id"],
                title=r["title"],
                artist_names=tuple(json.loads(r["artist_names"] or "[]")),
                thumbnail=r["thumbnail"],
                liked=bool(r["liked"]),
                in_library=r["in_library"],
            )
            for r in rows
        ]

    def insert_artist(self, artist: Artist) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO artists
                    (channel_id, name, thumbnail, followed, in_library)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    artist.channel_id,
                    artist.name,
                    artist.thumbnail,
                    int(artist.followed),
                    artist.in_library or _timestamp(),
                ),
            )
        return cursor.rowcount > 0

    def get_artists(self, limit: int = 1000) -> List[Artist]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM artists WHERE followed = 1 ORDER BY in_library DESC, rowid LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            Artist(
                channel_id=r["channel_id"],
                name=r["name"],
                thumbnail=r["thumbnail"],
                followed=bool(r["followed"]),
                in_library=r["in_library"],
            )
            for r in rows
        ]

    def insert_saved_playlist(self, playlist: SavedPlaylist) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                """
                INSERT OR IGNORE INTO saved_playlists
                    (playlist_id, title, thumbnail, liked, in_library)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    playlist.playlist_id,
                    playlist.title,
                    playlist.thumbnail,
                    int(playlist.liked),
                    playlist.in_library or _timestamp(),
                ),
            )
        return cursor.rowcount > 0

    def get_saved_playlists(self, limit: int = 1000) -> List[SavedPlaylist]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM saved_playlists WHERE liked = 1 ORDER BY in_library DESC, rowid LIMIT ?",
                (limit,),
            ).fetchall()
        return [
            SavedPlaylist(
                playlist_id=r["playlist_id"],
                title=r["title"],
                thumbnail=r["thumbnail"],
                liked=bool(r["liked"]),
                in_library=r["in_library"],
            )
            for r in rows
        ]

    # ===== Settings =====

    def get_setting(self, name: str) -> Any:
        """Get a tracked setting, or its default if never set.

        Raises:
            ValidationError: If name is not a tracked setting
        """
        if name not in SETTINGS_FIELDS:
            raise ValidationError("setting", f"unknown setting: {name}")
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM settings WHERE key = ?", (name,)
            ).fetchone()
        if row is None:
            return SETTINGS_DEFAULTS[name]
        return json.loads(row["value"])

    def set_setting(self, name: str, value: Any) -> None:
        """Set a tracked setting.

        Raises:
            ValidationError: If name is unknown or value has the wrong type
        """
        if name not in SETTINGS_FIELDS:
            raise ValidationError("setting", f"unknown setting: {name}")
        try:
            coerced = coerce_setting(name, value)
        except ValueError as e:
            raise ValidationError(name, str(e)) from None
        if coerced is None:
            raise ValidationError(name, "value is required")
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
                (name, json.dumps(coerced)),
            )

    def get_settings(self) -> Dict[str, Any]:
        """Get every tracked setting with defaults applied."""
        with self._lock:
            rows = self._conn.execute("SELECT key, value FROM settings").fetchall()
        stored = {r["key"]: json.loads(r["value"]) for r in rows}
        return {
            name: stored.get(name, default)
            for name, default in SETTINGS_DEFAULTS.items()
        }

    # ===== Sync bookkeeping =====

    def get_last_sync_time(self) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM sync_meta WHERE key = 'last_sync_at'"
            ).fetchone()
        return row["value"] if row else None

    def update_last_sync_time(self, timestamp: Optional[str] = None) -> str:
        timestamp = timestamp or _timestamp()
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO sync_meta (key, value) VALUES ('last_sync_at', ?)",
                (timestamp,),
            )
        return timestamp
