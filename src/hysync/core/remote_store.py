"""Server-side persistence for the HYMusic sync endpoint.

One SQLite database holds every account and each account's synced
collections. All user-owned tables reference users(id) with ON DELETE
CASCADE, so deleting a user removes their data.

Rows are returned as wire-shaped dicts (camelCase keys) ready for
``jsonify``.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from uuid6 import uuid7

from .models import SETTINGS_FIELDS

logger = logging.getLogger(__name__)

__all__ = ["RemoteStore", "HISTORY_SNAPSHOT_LIMIT"]

HISTORY_SNAPSHOT_LIMIT = 100

WIRE_SETTINGS_FIELDS = [spec[0] for spec in SETTINGS_FIELDS.values()]

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password TEXT NOT NULL,
    nickname TEXT,
    avatar TEXT,
    is_admin INTEGER NOT NULL DEFAULT 0,
    is_banned INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS favorites (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    video_id TEXT NOT NULL,
    title TEXT NOT NULL,
    artist TEXT,
    thumbnail TEXT,
    duration INTEGER,
    created_at TEXT NOT NULL,
    UNIQUE (user_id, video_id)
);

CREATE TABLE IF NOT EXISTS playlists (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    description TEXT,
    thumbnail TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS playlist_songs (
    id TEXT PRIMARY KEY,
    playlist_id TEXT NOT NULL REFERENCES playlists(id) ON DELETE CASCADE,
    video_id TEXT NOT NULL,
    title TEXT NOT NULL,
    artist TEXT,
    thumbnail TEXT,
    duration INTEGER,
    song_order INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS play_history (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    video_id TEXT NOT NULL,
    title TEXT NOT NULL,
    artist TEXT,
    thumbnail TEXT,
    duration INTEGER,
    played_at TEXT NOT NULL,
    UNIQUE (user_id, video_id)
);

CREATE TABLE IF NOT EXISTS user_settings (
    user_id TEXT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
    data TEXT NOT NULL DEFAULT '{}',
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS library_albums (
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    browse_id TEXT NOT NULL,
    title TEXT NOT NULL,
    artist TEXT,
    thumbnail TEXT,
    PRIMARY KEY (user_id, browse_id)
);

CREATE TABLE IF NOT EXISTS library_artists (
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    channel_id TEXT NOT NULL,
    name TEXT NOT NULL,
    thumbnail TEXT,
    PRIMARY KEY (user_id, channel_id)
);

CREATE TABLE IF NOT EXISTS library_playlists (
    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    playlist_id TEXT NOT NULL,
    title TEXT NOT NULL,
    thumbnail TEXT,
    PRIMARY KEY (user_id, playlist_id)
);
"""


def _now() -> str:
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def _new_id() -> str:
    return uuid7().hex


def _song_columns(item: Dict[str, Any]) -> Tuple[Any, ...]:
    return (
        item["videoId"],
        item.get("title") or "",
        item.get("artist"),
        item.get("thumbnail"),
        item.get("duration"),
    )


def _song_row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
    return {
        "videoId": row["video_id"],
        "title": row["title"],
        "artist": row["artist"],
        "thumbnail": row["thumbnail"],
        "duration": row["duration"],
    }


class RemoteStore:
    """SQLite storage for accounts and their synced data."""

    def __init__(self, db_path: Union[Path, str]) -> None:
        path_str = str(db_path)
        self.db_path = path_str
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(path_str, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        with self._conn:
            self._conn.executescript(SCHEMA)
        logger.info(f"Opened server database at {path_str}")

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ===== Users =====

    @staticmethod
    def _user_row_to_dict(row: sqlite3.Row) -> Dict[str, Any]:
        return {
            "id": row["id"],
            "email": row["email"],
            "nickname": row["nickname"],
            "avatar": row["avatar"],
            "isAdmin": bool(row["is_admin"]),
            "isBanned": bool(row["is_banned"]),
            "createdAt": row["created_at"],
        }

    def create_user(
        self, email: str, password_hash: str, nickname: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a user with empty settings.

        Raises:
            sqlite3.IntegrityError: If the email is already registered
        """
        user_id = _new_id()
        now = _now()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO users (id, email, password, nickname, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, email, password_hash, nickname, now),
            )
            self._conn.execute(
                "INSERT INTO user_settings (user_id, data, updated_at) VALUES (?, '{}', ?)",
                (user_id, now),
            )
        logger.info(f"Created user {email} ({user_id})")
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return self._user_row_to_dict(row) if row else None

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM users WHERE email = ?", (email,)
            ).fetchone()
        return self._user_row_to_dict(row) if row else None

    def get_password_hash(self, user_id: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT password FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        return row["password"] if row else None

    def update_profile(
        self, user_id: str, nickname: Optional[str], avatar: Optional[str]
    ) -> Optional[Dict[str, Any]]:
        with self._lock, self._conn:
            self._conn.execute(
                "UPDATE users SET nickname = ?, avatar = ? WHERE id = ?",
                (nickname, avatar, user_id),
            )
        return self.get_user(user_id)

    def set_banned(self, user_id: str, banned: bool) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE users SET is_banned = ? WHERE id = ?", (int(banned), user_id)
            )
        return cursor.rowcount > 0

    def set_admin(self, user_id: str, is_admin: bool) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "UPDATE users SET is_admin = ? WHERE id = ?", (int(is_admin), user_id)
            )
        return cursor.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Delete a user and, by cascade, all of their data."""
        with self._lock, self._conn:
            cursor = self._conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        return cursor.rowcount > 0

    def get_user_counts(self, user_id: str) -> Dict[str, int]:
        with self._lock:
            return self._counts(user_id)

    def _counts(self, user_id: str) -> Dict[str, int]:
        def count(table: str) -> int:
            return self._conn.execute(
                f"SELECT COUNT(*) FROM {table} WHERE user_id = ?", (user_id,)
            ).fetchone()[0]

        return {
            "favorites": count("favorites"),
            "playlists": count("playlists"),
            "playHistory": count("play_history"),
        }

    def list_users(
        self, page: int = 1, limit: int = 20, search: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], int]:
        """List users newest first, optionally filtered by email/nickname.

        Returns:
            Tuple of (users on this page with their counts, total matching users)
        """
        where = ""
        params: List[Any] = []
        if search:
            where = "WHERE lower(email) LIKE ? OR lower(COALESCE(nickname, '')) LIKE ?"
            pattern = f"%{search.lower()}%"
            params = [pattern, pattern]

        with self._lock:
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM users {where}", params
            ).fetchone()[0]
            rows = self._conn.execute(
                f"""
                SELECT * FROM users {where}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                params + [limit, (page - 1) * limit],
            ).fetchall()
            users = []
            for row in rows:
                user = self._user_row_to_dict(row)
                user["_count"] = self._counts(row["id"])
                users.append(user)
        return users, total

    def get_stats(self) -> Dict[str, Any]:
        today = datetime.now().strftime("%Y-%m-%d 00:00:00")
        with self._lock:
            def scalar(sql: str, params: Tuple[Any, ...] = ()) -> int:
                return self._conn.execute(sql, params).fetchone()[0]

            stats = {
                "totalUsers": scalar("SELECT COUNT(*) FROM users"),
                "todayUsers": scalar(
                    "SELECT COUNT(*) FROM users WHERE created_at >= ?", (today,)
                ),
                "totalFavorites": scalar("SELECT COUNT(*) FROM favorites"),
                "totalPlaylists": scalar("SELECT COUNT(*) FROM playlists"),
                "totalPlayHistory": scalar("SELECT COUNT(*) FROM play_history"),
            }
            recent = self._conn.execute(
                """
                SELECT id, email, nickname, created_at FROM users
                ORDER BY created_at DESC, rowid DESC LIMIT 10
                """
            ).fetchall()
        recent_users = [
            {
                "id": r["id"],
                "email": r["email"],
                "nickname": r["nickname"],
                "createdAt": r["created_at"],
            }
            for r in recent
        ]
        return {"stats": stats, "recentUsers": recent_users}

    # ===== Favorites =====

    def replace_favorites(self, user_id: str, items: List[Dict[str, Any]]) -> int:
        """Replace the user's favorites with items. Repeated videoIds keep the first.

        Returns:
            Number of favorites stored
        """
        now = _now()
        seen = set()
        rows = []
        for item in items:
            if item["videoId"] in seen:
                continue
            seen.add(item["videoId"])
            rows.append((_new_id(), user_id) + _song_columns(item) + (now,))

        with self._lock, self._conn:
            self._conn.execute("DELETE FROM favorites WHERE user_id = ?", (user_id,))
            self._conn.executemany(
                """
                INSERT INTO favorites
                    (id, user_id, video_id, title, artist, thumbnail, duration, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                rows,
            )
        return len(rows)

    def delete_favorite(self, user_id: str, video_id: str) -> bool:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "DELETE FROM favorites WHERE user_id = ? AND video_id = ?",
                (user_id, video_id),
            )
        return cursor.rowcount > 0

    def get_favorites(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM favorites WHERE user_id = ? ORDER BY rowid",
                (user_id,),
            ).fetchall()
        result = []
        for row in rows:
            item = _song_row_to_dict(row)
            item["id"] = row["id"]
            item["createdAt"] = row["created_at"]
            result.append(item)
        return result

    # ===== Playlists =====

    def replace_playlists(self, user_id: str, playlists: List[Dict[str, Any]]) -> int:
        """Replace all of the user's playlists. Song order is the list index."""
        now = _now()
        with self._lock, self._conn:
            self._conn.execute("DELETE FROM playlists WHERE user_id = ?", (user_id,))
            for playlist in playlists:
                playlist_id = _new_id()
                self._conn.execute(
                    """
                    INSERT INTO playlists
                        (id, user_id, title, description, thumbnail, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        playlist_id,
                        user_id,
                        playlist["title"],
                        playlist.get("description"),
                        playlist.get("thumbnail"),
                        now,
                        now,
                    ),
                )
                self._conn.executemany(
                    """
                    INSERT INTO playlist_songs
                        (id, playlist_id, video_id, title, artist, thumbnail, duration, song_order)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (_new_id(), playlist_id) + _song_columns(song) + (index,)
                        for index, song in enumerate(playlist.get("songs") or [])
                    ],
                )
        return len(playlists)

    def get_playlists(self, user_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM playlists WHERE user_id = ? ORDER BY rowid",
                (user_id,),
            ).fetchall()
            result = []
            for row in rows:
                song_rows = self._conn.execute(
                    """
                    SELECT * FROM playlist_songs
                    WHERE playlist_id = ? ORDER BY song_order
                    """,
                    (row["id"],),
                ).fetchall()
                songs = []
                for song_row in song_rows:
                    song = _song_row_to_dict(song_row)
                    song["order"] = song_row["song_order"]
                    songs.append(song)
                result.append(
                    {
                        "id": row["id"],
                        "title": row["title"],
                        "description": row["description"],
                        "thumbnail": row["thumbnail"],
                        "songs": songs,
                        "createdAt": row["created_at"],
                        "updatedAt": row["updated_at"],
                    }
                )
        return result

    # ===== History =====

    def add_history(self, user_id: str, items: List[Dict[str, Any]]) -> int:
        """Append plays, skipping videos already in the user's history.

        Returns:
            Number of new history rows
        """
        now = _now()
        inserted = 0
        with self._lock, self._conn:
            for item in items:
                cursor = self._conn.execute(
                    """
                    INSERT OR IGNORE INTO play_history
                        (id, user_id, video_id, title, artist, thumbnail, duration, played_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (_new_id(), user_id) + _song_columns(item) + (now,),
                )
                inserted += cursor.rowcount
        return inserted

    def get_history(
        self, user_id: str, limit: int = HISTORY_SNAPSHOT_LIMIT
    ) -> List[Dict[str, Any]]:
        """Most recent plays first."""
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT * FROM play_history WHERE user_id = ?
                ORDER BY played_at DESC, rowid ASC
                LIMIT ?
                """,
                (user_id, limit),
            ).fetchall()
        result = []
        for row in rows:
            item = _song_row_to_dict(row)
            item["id"] = row["id"]
            item["playedAt"] = row["played_at"]
            result.append(item)
        return result

    # ===== Settings =====

    def upsert_settings(self, user_id: str, values: Dict[str, Any]) -> None:
        """Write the given wire-named fields; other stored fields are kept."""
        known = {k: v for k, v in values.items() if k in WIRE_SETTINGS_FIELDS}
        with self._lock, self._conn:
            row = self._conn.execute(
                "SELECT data FROM user_settings WHERE user_id = ?", (user_id,)
            ).fetchone()
            current = json.loads(row["data"]) if row else {}
            current.update(known)
            self._conn.execute(
                """
                INSERT OR REPLACE INTO user_settings (user_id, data, updated_at)
                VALUES (?, ?, ?)
                """,
                (user_id, json.dumps(current), _now()),
            )

    def get_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Stored settings keyed by wire name; fields never written are absent."""
        with self._lock:
            row = self._conn.execute(
                "SELECT data FROM user_settings WHERE user_id = ?", (user_id,)
            ).fetchone()
        if row is None:
            return None
        return json.loads(row["data"])

    # ===== Library =====

    def replace_library(
        self,
        user_id: str,
        albums: List[Dict[str, Any]],
        artists: List[Dict[str, Any]],
        playlists: List[Dict[str, Any]],
    ) -> None:
        """Replace all three library collections in one transaction."""
        with self._lock, self._conn:
            for table in ("library_albums", "library_artists", "library_playlists"):
                self._conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
            self._conn.executemany(
                """
                INSERT OR IGNORE INTO library_albums
                    (user_id, browse_id, title, artist, thumbnail)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (user_id, a["browseId"], a.get("title") or "", a.get("artist"), a.get("thumbnail"))
                    for a in albums
                ],
            )
            self._conn.executemany(
                """
                INSERT OR IGNORE INTO library_artists
                    (user_id, channel_id, name, thumbnail)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (user_id, a["channelId"], a.get("name") or "", a.get("thumbnail"))
                    for a in artists
                ],
            )
            self._conn.executemany(
                """
                INSERT OR IGNORE INTO library_playlists
                    (user_id, playlist_id, title, thumbnail)
                VALUES (?, ?, ?, ?)
                """,
                [
                    (user_id, p["playlistId"], p.get("title") or "", p.get("thumbnail"))
                    for p in playlists
                ],
            )

    def get_library(self, user_id: str) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            albums = self._conn.execute(
                "SELECT * FROM library_albums WHERE user_id = ? ORDER BY rowid", (user_id,)
            ).fetchall()
            artists = self._conn.execute(
                "SELECT * FROM library_artists WHERE user_id = ? ORDER BY rowid", (user_id,)
            ).fetchall()
            playlists = self._conn.execute(
                "SELECT * FROM library_playlists WHERE user_id = ? ORDER BY rowid", (user_id,)
            ).fetchall()
        return {
            "albums": [
                {
                    "browseId": r["browse_id"],
                    "title": r["title"],
                    "artist": r["artist"],
                    "thumbnail": r["thumbnail"],
                }
                for r in albums
            ],
            "artists": [
                {"channelId": r["channel_id"], "name": r["name"], "thumbnail": r["thumbnail"]}
                for r in artists
            ],
            "playlists": [
                {"playlistId": r["playlist_id"], "title": r["title"], "thumbnail": r["thumbnail"]}
                for r in playlists
            ],
        }
