"""Download-merge: fold a remote snapshot into the local library.

Merging is additive; nothing local is deleted or un-liked:

- favorites: insert missing songs as liked; promote existing songs to liked
- history: insert missing songs with one recorded play
- playlists: by title; an existing title is left alone, otherwise the
  songs are resolved into the library first and the playlist is created
  from the songs that resolved
- library: insert-only
- settings: only fields present in the snapshot overwrite local values

Each item is merged on its own. A failing item is logged, recorded in
the collection's ``failed_keys`` and skipped; the rest still merge.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, Dict, List, Optional

from .api_models import (
    AlbumItem,
    ArtistItem,
    FavoriteItem,
    HistoryItem,
    SyncSnapshot,
    YouTubePlaylistItem,
)
from .database import Database
from .mapping import (
    favorite_item_to_song,
    history_item_to_song,
    item_to_album,
    item_to_artist,
    item_to_saved_playlist,
)
from .models import SETTINGS_FIELDS
from .sync_state import (
    DOWNLOAD_ORDER,
    FAVORITES,
    HISTORY,
    LIBRARY,
    PLAYLISTS,
    SETTINGS,
    CollectionOutcome,
)
from .validation import ValidationError

logger = logging.getLogger(__name__)

__all__ = [
    "merge_favorites",
    "merge_history",
    "merge_playlists",
    "merge_library",
    "merge_settings",
    "merge_snapshot",
]

# Errors that reject one record without stopping the collection.
ITEM_ERRORS = (KeyError, TypeError, ValueError, AttributeError, sqlite3.Error)


def _item_key(raw: Any, fallback: str, id_key: str = "videoId") -> str:
    if isinstance(raw, dict) and raw.get(id_key):
        return str(raw[id_key])
    return fallback


def _is_list(items: Any, outcome: CollectionOutcome) -> bool:
    """Record a whole collection as failed when it is not a list."""
    if isinstance(items, list):
        return True
    logger.error(
        f"Skipping remote {outcome.collection}: expected a list, got {type(items).__name__}"
    )
    outcome.failed_keys.append(outcome.collection)
    return False


def merge_favorites(db: Database, items: List[Dict[str, Any]]) -> CollectionOutcome:
    outcome = CollectionOutcome(FAVORITES, phase="download")
    if not _is_list(items, outcome):
        return outcome
    for index, raw in enumerate(items):
        key = _item_key(raw, f"#{index}")
        try:
            item = FavoriteItem.from_dict(raw)
            existing = db.get_song(item.video_id)
            if existing is None:
                db.insert_song(favorite_item_to_song(item, liked=True))
            elif not existing.liked:
                db.set_liked(item.video_id, True)
            outcome.succeeded += 1
        except ITEM_ERRORS as e:
            logger.error(f"Failed to merge favorite {key}: {e}")
            outcome.failed_keys.append(key)
    return outcome


def merge_history(db: Database, items: List[Dict[str, Any]]) -> CollectionOutcome:
    outcome = CollectionOutcome(HISTORY, phase="download")
    if not _is_list(items, outcome):
        return outcome
    for index, raw in enumerate(items):
        key = _item_key(raw, f"#{index}")
        try:
            item = HistoryItem.from_dict(raw)
            if db.get_song(item.video_id) is None:
                db.insert_song(history_item_to_song(item))
            outcome.succeeded += 1
        except ITEM_ERRORS as e:
            logger.error(f"Failed to merge history entry {key}: {e}")
            outcome.failed_keys.append(key)
    return outcome


def _resolve_song(db: Database, raw: Dict[str, Any]) -> str:
    """Make sure a playlist song exists locally and return its video id."""
    item = FavoriteItem.from_dict(raw)
    if db.get_song(item.video_id) is None:
        db.insert_song(favorite_item_to_song(item, liked=False))
    return item.video_id


def _merge_one_playlist(
    db: Database, title: str, raw: Dict[str, Any], outcome: CollectionOutcome
) -> None:
    if db.get_local_playlist_by_title(title) is not None:
        logger.debug(f"Playlist '{title}' already exists locally, skipping")
        return

    songs = raw.get("songs")
    if songs is None:
        songs = []
    if not isinstance(songs, list):
        raise TypeError(f"songs must be a list, got {type(songs).__name__}")

    resolved: List[str] = []
    for position, song_raw in enumerate(songs):
        song_key = _item_key(song_raw, f"#{position}")
        try:
            resolved.append(_resolve_song(db, song_raw))
        except ITEM_ERRORS as e:
            logger.error(f"Failed to restore song {song_key} for '{title}': {e}")
            outcome.failed_keys.append(f"{title}/{song_key}")

    db.create_local_playlist(
        title,
        resolved,
        description=raw.get("description"),
        thumbnail=raw.get("thumbnail"),
    )
    outcome.succeeded += 1
    logger.debug(f"Restored playlist '{title}' with {len(resolved)} tracks")


def merge_playlists(db: Database, items: List[Dict[str, Any]]) -> CollectionOutcome:
    """Restore remote playlists whose titles are not present locally.

    Every referenced song is resolved before the playlist row and its
    track links are written. A song that cannot be resolved is left out
    of the playlist and recorded as ``<title>/<videoId>``; a malformed
    playlist is recorded by its title.
    """
    outcome = CollectionOutcome(PLAYLISTS, phase="download")
    if not _is_list(items, outcome):
        return outcome
    for index, raw in enumerate(items):
        title = raw.get("title") if isinstance(raw, dict) else None
        if not isinstance(title, str) or not title:
            logger.error(f"Skipping remote playlist #{index}: missing title")
            outcome.failed_keys.append(f"#{index}")
            continue
        try:
            _merge_one_playlist(db, title, raw, outcome)
        except ITEM_ERRORS as e:
            logger.error(f"Failed to restore playlist '{title}': {e}")
            outcome.failed_keys.append(title)
    return outcome


def merge_library(db: Database, library: Optional[Dict[str, Any]]) -> CollectionOutcome:
    outcome = CollectionOutcome(LIBRARY, phase="download")
    if not isinstance(library, dict):
        return outcome

    parts: List[tuple] = [
        ("albums", "browseId", AlbumItem.from_dict, item_to_album, db.insert_album),
        ("artists", "channelId", ArtistItem.from_dict, item_to_artist, db.insert_artist),
        (
            "playlists",
            "playlistId",
            YouTubePlaylistItem.from_dict,
            item_to_saved_playlist,
            db.insert_saved_playlist,
        ),
    ]
    for part, id_key, parse, convert, insert in parts:
        entries = library.get(part)
        if entries is None:
            continue
        if not isinstance(entries, list):
            logger.error(f"Skipping library {part}: expected a list, got {type(entries).__name__}")
            outcome.failed_keys.append(part)
            continue
        for index, raw in enumerate(entries):
            key = f"{part}/{_item_key(raw, f'#{index}', id_key)}"
            try:
                insert(convert(parse(raw)))
                outcome.succeeded += 1
            except ITEM_ERRORS as e:
                logger.error(f"Failed to merge library item {key}: {e}")
                outcome.failed_keys.append(key)
    return outcome


def merge_settings(db: Database, settings: Optional[Dict[str, Any]]) -> CollectionOutcome:
    """Apply each present settings field. Absent or null fields are left alone."""
    outcome = CollectionOutcome(SETTINGS, phase="download")
    if not isinstance(settings, dict):
        return outcome

    for name, (wire_name, _, _) in SETTINGS_FIELDS.items():
        value = settings.get(wire_name)
        if value is None:
            continue
        try:
            db.set_setting(name, value)
            outcome.succeeded += 1
        except ValidationError as e:
            logger.error(f"Failed to merge setting {wire_name}: {e}")
            outcome.failed_keys.append(wire_name)
    return outcome


def merge_snapshot(
    db: Database,
    snapshot: SyncSnapshot,
    should_continue: Optional[Callable[[], bool]] = None,
) -> List[CollectionOutcome]:
    """Merge every collection of a snapshot in dependency order.

    Args:
        db: Local library
        snapshot: Remote snapshot
        should_continue: Checked before each collection; once it returns
            False the remaining collections are marked skipped.
    """
    mergers: Dict[str, Callable[[], CollectionOutcome]] = {
        FAVORITES: lambda: merge_favorites(db, snapshot.favorites),
        HISTORY: lambda: merge_history(db, snapshot.history),
        PLAYLISTS: lambda: merge_playlists(db, snapshot.playlists),
        LIBRARY: lambda: merge_library(db, snapshot.library),
        SETTINGS: lambda: merge_settings(db, snapshot.settings),
    }
    outcomes = []
    for collection in DOWNLOAD_ORDER:
        if should_continue is not None and not should_continue():
            outcomes.append(
                CollectionOutcome(collection, skipped=True, phase="download")
            )
            continue
        outcomes.append(mergers[collection]())
    return outcomes
