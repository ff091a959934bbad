"""Upload-overwrite: push local collections to the remote endpoint.

Each collection is sent as the complete local set so that the server
copy ends up equal to the local one:

- favorites: every liked song (an empty list clears the remote set)
- playlists: every local playlist with its songs in track order
- history: the most recently played songs, newest first, capped
- library: albums, artists and saved playlists in one request
- settings: every tracked field with its current or default value

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from .api_client import ApiClient
from .api_models import (
    FavoriteItem,
    HistoryItem,
    LibraryBundle,
    PlaylistItem,
    SettingsBundle,
)
from .database import Database
from .mapping import (
    album_to_item,
    artist_to_item,
    saved_playlist_to_item,
    settings_to_bundle,
    song_to_favorite_item,
    song_to_history_item,
)
from .sync_state import (
    FAVORITES,
    HISTORY,
    LIBRARY,
    PLAYLISTS,
    SETTINGS,
    CollectionOutcome,
)

logger = logging.getLogger(__name__)

__all__ = [
    "build_favorites_payload",
    "build_playlists_payload",
    "build_history_payload",
    "build_library_payload",
    "build_settings_payload",
    "upload_collection",
]


def build_favorites_payload(db: Database) -> List[FavoriteItem]:
    return [song_to_favorite_item(song) for song in db.get_liked_songs()]


def build_playlists_payload(db: Database) -> List[PlaylistItem]:
    playlists = []
    for playlist in db.get_local_playlists():
        songs = []
        for video_id in playlist.tracks:
            song = db.get_song(video_id)
            if song is not None:
                songs.append(song_to_favorite_item(song))
        playlists.append(
            PlaylistItem(
                id=str(playlist.id),
                title=playlist.title,
                description=playlist.description,
                thumbnail=playlist.thumbnail,
                songs=songs,
            )
        )
    return playlists


def build_history_payload(db: Database, limit: int = 100) -> List[HistoryItem]:
    """The ``limit`` most recently played songs, newest first."""
    return [song_to_history_item(song) for song in db.get_recently_played(limit)]


def build_library_payload(db: Database, limit: int = 1000) -> LibraryBundle:
    return LibraryBundle(
        albums=[album_to_item(a) for a in db.get_albums(limit)],
        artists=[artist_to_item(a) for a in db.get_artists(limit)],
        playlists=[saved_playlist_to_item(p) for p in db.get_saved_playlists(limit)],
    )


def build_settings_payload(db: Database) -> SettingsBundle:
    return settings_to_bundle(db.get_settings())


def _payload_size(payload: Any) -> int:
    if isinstance(payload, list):
        return len(payload)
    if isinstance(payload, LibraryBundle):
        return len(payload.albums) + len(payload.artists) + len(payload.playlists)
    if isinstance(payload, SettingsBundle):
        return len(payload.present_fields())
    return 1


def upload_collection(
    client: ApiClient,
    db: Database,
    collection: str,
    history_limit: int = 100,
    library_limit: int = 1000,
) -> CollectionOutcome:
    """Build and send one collection.

    Never raises for transport or server errors; a failed request is
    returned as the outcome's ``error``.
    """
    senders: Dict[str, Callable[[Any], Dict[str, Any]]] = {
        FAVORITES: client.sync_favorites,
        PLAYLISTS: client.sync_playlists,
        HISTORY: client.sync_history,
        LIBRARY: client.sync_library,
        SETTINGS: client.sync_settings,
    }
    builders: Dict[str, Callable[[], Any]] = {
        FAVORITES: lambda: build_favorites_payload(db),
        PLAYLISTS: lambda: build_playlists_payload(db),
        HISTORY: lambda: build_history_payload(db, history_limit),
        LIBRARY: lambda: build_library_payload(db, library_limit),
        SETTINGS: lambda: build_settings_payload(db),
    }
    if collection not in builders:
        raise ValueError(f"Unknown collection: {collection}")

    outcome = CollectionOutcome(collection, phase="upload")
    payload = builders[collection]()
    result = senders[collection](payload)
    if result["success"]:
        outcome.succeeded = _payload_size(payload)
        logger.debug(f"Uploaded {outcome.succeeded} {collection}")
    else:
        outcome.error = result.get("error") or "Unknown error"
        logger.warning(f"Upload of {collection} failed: {outcome.error}")
    return outcome
