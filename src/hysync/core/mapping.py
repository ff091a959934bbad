"""Conversion between local library entities and sync wire items.

Local -> wire keeps only what the server schema stores. A song's artist
list collapses to its first artist; this projection is one-way and
intentional. Albums join their artist list with ", ".

Wire -> local fills in what the wire omits with neutral defaults
(available, not explicit, no category) and renders the duration in the
local ``m:ss`` display format.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from .api_models import (
    AlbumItem,
    ArtistItem,
    FavoriteItem,
    HistoryItem,
    SettingsBundle,
    YouTubePlaylistItem,
)
from .models import (
    DEFAULT_VIDEO_TYPE,
    Album,
    Artist,
    LikeStatus,
    SavedPlaylist,
    Song,
)


def now_timestamp() -> str:
    """Current local time in the store's timestamp format."""
    return datetime.now().strftime("%Y-%m-%d %H:%M:%S")


def format_duration(seconds: Optional[int]) -> str:
    """Render seconds as ``minutes:seconds`` with zero-padded seconds.

    >>> format_duration(185)
    '3:05'
    >>> format_duration(None)
    '0:00'
    """
    if seconds is None or seconds < 0:
        return "0:00"
    return f"{seconds // 60}:{seconds % 60:02d}"


def _first_artist(song: Song) -> Optional[str]:
    return song.artist_names[0] if song.artist_names else None


def song_to_favorite_item(song: Song) -> FavoriteItem:
    return FavoriteItem(
        video_id=song.video_id,
        title=song.title,
        artist=_first_artist(song),
        thumbnail=song.thumbnail,
        duration=song.duration_seconds,
    )


def song_to_history_item(song: Song) -> HistoryItem:
    return HistoryItem(
        video_id=song.video_id,
        title=song.title,
        artist=_first_artist(song),
        thumbnail=song.thumbnail,
        duration=song.duration_seconds,
    )


def favorite_item_to_song(item: FavoriteItem, liked: bool = True) -> Song:
    """Rebuild a local song from a wire favorite.

    Args:
        item: Wire item
        liked: Whether the song enters the library as a favorite. Songs
            restored only because a playlist references them are not liked.
    """
    return Song(
        video_id=item.video_id,
        title=item.title,
        artist_names=(item.artist,) if item.artist else (),
        thumbnail=item.thumbnail,
        duration=format_duration(item.duration),
        duration_seconds=item.duration or 0,
        is_available=True,
        is_explicit=False,
        like_status=(LikeStatus.LIKE if liked else LikeStatus.INDIFFERENT).value,
        video_type=DEFAULT_VIDEO_TYPE,
        category=None,
        result_type=None,
        liked=liked,
        total_play_time=0,
        in_library=now_timestamp(),
    )


def history_item_to_song(item: FavoriteItem) -> Song:
    """Rebuild a local song from a wire history entry (one recorded play)."""
    return Song(
        video_id=item.video_id,
        title=item.title,
        artist_names=(item.artist,) if item.artist else (),
        thumbnail=item.thumbnail,
        duration=format_duration(item.duration),
        duration_seconds=item.duration or 0,
        like_status=LikeStatus.INDIFFERENT.value,
        liked=False,
        total_play_time=1,
        in_library=now_timestamp(),
    )


def album_to_item(album: Album) -> AlbumItem:
    return AlbumItem(
        browse_id=album.browse_id,
        title=album.title,
        artist=", ".join(album.artist_names) if album.artist_names else None,
        thumbnail=album.thumbnail,
    )


def item_to_album(item: AlbumItem) -> Album:
    return Album(
        browse_id=item.browse_id,
        title=item.title,
        artist_names=(item.artist,) if item.artist else (),
        thumbnail=item.thumbnail,
        liked=True,
        in_library=now_timestamp(),
    )


def artist_to_item(artist: Artist) -> ArtistItem:
    return ArtistItem(
        channel_id=artist.channel_id,
        name=artist.name,
        thumbnail=artist.thumbnail,
    )


def item_to_artist(item: ArtistItem) -> Artist:
    return Artist(
        channel_id=item.channel_id,
        name=item.name,
        thumbnail=item.thumbnail,
        followed=True,
        in_library=now_timestamp(),
    )


def saved_playlist_to_item(playlist: SavedPlaylist) -> YouTubePlaylistItem:
    return YouTubePlaylistItem(
        playlist_id=playlist.playlist_id,
        title=playlist.title,
        thumbnail=playlist.thumbnail,
    )


def item_to_saved_playlist(item: YouTubePlaylistItem) -> SavedPlaylist:
    return SavedPlaylist(
        playlist_id=item.playlist_id,
        title=item.title,
        thumbnail=item.thumbnail or "",
        liked=True,
        in_library=now_timestamp(),
    )


def settings_to_bundle(settings: Dict[str, Any]) -> SettingsBundle:
    """Build a bundle carrying every tracked field's current value."""
    return SettingsBundle(**settings)
