"""Data models for the local library.

This module defines immutable dataclasses representing the on-device
entities that take part in account sync: Song, LocalPlaylist, Album,
Artist and SavedPlaylist, plus the tracked user settings.

Song and library ids are the YouTube Music ids (video id, browse id,
channel id, playlist id). Local playlists use an integer row id.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class LikeStatus(Enum):
    """Like state of a song as stored locally."""

    LIKE = "LIKE"
    INDIFFERENT = "INDIFFERENT"
    DISLIKE = "DISLIKE"


DEFAULT_VIDEO_TYPE = "MUSIC_VIDEO_TYPE_ATV"


@dataclass(frozen=True)
class Song:
    """A song known to the local library.

    Attributes:
        video_id: YouTube video id (primary key)
        title: Display title
        artist_names: Ordered list of artist names
        thumbnail: Thumbnail URL
        duration: Display duration in ``m:ss`` form
        duration_seconds: Duration in seconds
        is_available: Whether the song can be played
        is_explicit: Explicit-content flag
        like_status: LikeStatus value string
        video_type: YouTube Music video type
        category: Search category, if known
        result_type: Search result type, if known
        liked: True if the song is in the user's favorites
        total_play_time: Number of recorded plays
        last_played_at: When the song was last played (None if never)
        in_library: When the song was added to the local library
    """

    video_id: str
    title: str
    artist_names: Tuple[str, ...] = ()
    thumbnail: Optional[str] = None
    duration: str = "0:00"
    duration_seconds: int = 0
    is_available: bool = True
    is_explicit: bool = False
    like_status: str = LikeStatus.INDIFFERENT.value
    video_type: str = DEFAULT_VIDEO_TYPE
    category: Optional[str] = None
    result_type: Optional[str] = None
    liked: bool = False
    total_play_time: int = 0
    last_played_at: Optional[str] = None
    in_library: Optional[str] = None


@dataclass(frozen=True)
class LocalPlaylist:
    """A user-created playlist. Track order is significant."""

    id: int
    title: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    tracks: Tuple[str, ...] = ()
    in_library: Optional[str] = None


@dataclass(frozen=True)
class Album:
    """An album saved to the library."""

    browse_id: str
    title: str
    artist_names: Tuple[str, ...] = ()
    thumbnail: Optional[str] = None
    liked: bool = True
    in_library: Optional[str] = None


@dataclass(frozen=True)
class Artist:
    """A followed artist."""

    channel_id: str
    name: str
    thumbnail: Optional[str] = None
    followed: bool = True
    in_library: Optional[str] = None


@dataclass(frozen=True)
class SavedPlaylist:
    """A YouTube playlist saved to the library."""

    playlist_id: str
    title: str
    thumbnail: Optional[str] = None
    liked: bool = True
    in_library: Optional[str] = None


class MutationKind(Enum):
    """Collections whose local edits trigger an immediate upload."""

    FAVORITES = "favorites"
    PLAYLISTS = "playlists"
    SETTINGS = "settings"


# Tracked settings: local key -> (wire key, python type, default)
SETTINGS_FIELDS: Dict[str, Tuple[str, type, Any]] = {
    "quality": ("quality", str, "Medium"),
    "language": ("language", str, "en-US"),
    "save_history": ("saveHistory", bool, True),
    "download_quality": ("downloadQuality", str, "High"),
    "video_download_quality": ("videoDownloadQuality", str, "720p"),
    "video_quality": ("videoQuality", str, "720p"),
    "normalize_volume": ("normalizeVolume", bool, False),
    "skip_silent": ("skipSilent", bool, False),
    "save_state_of_playback": ("saveStateOfPlayback", bool, True),
    "crossfade_enabled": ("crossfadeEnabled", bool, False),
    "crossfade_duration": ("crossfadeDuration", int, 5),
    "sponsor_block_enabled": ("sponsorBlockEnabled", bool, False),
    "enable_translate_lyric": ("enableTranslateLyric", bool, False),
    "lyrics_provider": ("lyricsProvider", str, "YOUTUBE"),
    "translation_language": ("translationLanguage", str, "en"),
    "ai_provider": ("aiProvider", str, "GEMINI"),
    "use_ai_translation": ("useAITranslation", bool, False),
    "translucent_bottom_bar": ("translucentBottomBar", bool, True),
    "blur_player_background": ("blurPlayerBackground", bool, True),
    "blur_fullscreen_lyrics": ("blurFullscreenLyrics", bool, True),
    "enable_liquid_glass": ("enableLiquidGlass", bool, False),
    "explicit_content_enabled": ("explicitContentEnabled", bool, True),
    "home_limit": ("homeLimit", int, 5),
    "watch_video_instead_of_playing_audio": ("watchVideoInsteadOfPlayingAudio", bool, False),
    "keep_youtube_playlist_offline": ("keepYouTubePlaylistOffline", bool, False),
}

SETTINGS_DEFAULTS: Dict[str, Any] = {
    name: spec[2] for name, spec in SETTINGS_FIELDS.items()
}


def coerce_setting(name: str, value: Any) -> Any:
    """Convert a raw setting value to the field's declared type.

    Raises:
        KeyError: If name is not a tracked setting
        ValueError: If value cannot be converted
    """
    _, kind, _ = SETTINGS_FIELDS[name]
    if value is None:
        return None
    if kind is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.upper() in ("TRUE", "FALSE"):
            return value.upper() == "TRUE"
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise ValueError(f"{name} must be a boolean, got {value!r}")
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{name} must be an integer, got {value!r}") from None
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {value!r}")
    return value
