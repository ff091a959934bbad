"""Wire models for the HYMusic sync API.

These dataclasses mirror the JSON bodies exchanged with the remote sync
endpoint. Keys on the wire are camelCase; attributes are snake_case.
``from_dict`` ignores keys it does not know so that server-side columns
(ids, user ids, timestamps) pass through harmlessly.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from .models import SETTINGS_FIELDS, coerce_setting

DEFAULT_API_BASE_URL = "https://hymusic.zeabur.app"


def _opt_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    return int(value)


def _opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


@dataclass
class FavoriteItem:
    """A liked track as sent to and received from the server."""

    video_id: str
    title: str
    artist: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "videoId": self.video_id,
            "title": self.title,
            "artist": self.artist,
            "thumbnail": self.thumbnail,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FavoriteItem":
        return cls(
            video_id=data["videoId"],
            title=data.get("title") or "",
            artist=_opt_str(data.get("artist")),
            thumbnail=_opt_str(data.get("thumbnail")),
            duration=_opt_int(data.get("duration")),
        )


@dataclass
class HistoryItem(FavoriteItem):
    """A played track. Same shape as FavoriteItem on the wire."""


@dataclass
class PlaylistItem:
    """A user playlist with its songs in order."""

    title: str
    id: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    songs: Optional[List[FavoriteItem]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "thumbnail": self.thumbnail,
            "songs": (
                [s.to_dict() for s in self.songs] if self.songs is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlaylistItem":
        songs_data = data.get("songs")
        songs = None
        if songs_data is not None:
            songs = [FavoriteItem.from_dict(s) for s in songs_data]
        return cls(
            id=_opt_str(data.get("id")),
            title=data["title"],
            description=_opt_str(data.get("description")),
            thumbnail=_opt_str(data.get("thumbnail")),
            songs=songs,
        )


def _settings_field(name: str):
    return field(default=None, metadata={"wire": SETTINGS_FIELDS[name][0]})


@dataclass
class SettingsBundle:
    """The tracked user settings. None means "absent" (no change on merge)."""

    quality: Optional[str] = _settings_field("quality")
    language: Optional[str] = _settings_field("language")
    save_history: Optional[bool] = _settings_field("save_history")
    download_quality: Optional[str] = _settings_field("download_quality")
    video_download_quality: Optional[str] = _settings_field("video_download_quality")
    video_quality: Optional[str] = _settings_field("video_quality")
    normalize_volume: Optional[bool] = _settings_field("normalize_volume")
    skip_silent: Optional[bool] = _settings_field("skip_silent")
    save_state_of_playback: Optional[bool] = _settings_field("save_state_of_playback")
    crossfade_enabled: Optional[bool] = _settings_field("crossfade_enabled")
    crossfade_duration: Optional[int] = _settings_field("crossfade_duration")
    sponsor_block_enabled: Optional[bool] = _settings_field("sponsor_block_enabled")
    enable_translate_lyric: Optional[bool] = _settings_field("enable_translate_lyric")
    lyrics_provider: Optional[str] = _settings_field("lyrics_provider")
    translation_language: Optional[str] = _settings_field("translation_language")
    ai_provider: Optional[str] = _settings_field("ai_provider")
    use_ai_translation: Optional[bool] = _settings_field("use_ai_translation")
    translucent_bottom_bar: Optional[bool] = _settings_field("translucent_bottom_bar")
    blur_player_background: Optional[bool] = _settings_field("blur_player_background")
    blur_fullscreen_lyrics: Optional[bool] = _settings_field("blur_fullscreen_lyrics")
    enable_liquid_glass: Optional[bool] = _settings_field("enable_liquid_glass")
    explicit_content_enabled: Optional[bool] = _settings_field("explicit_content_enabled")
    home_limit: Optional[int] = _settings_field("home_limit")
    watch_video_instead_of_playing_audio: Optional[bool] = _settings_field(
        "watch_video_instead_of_playing_audio"
    )
    keep_youtube_playlist_offline: Optional[bool] = _settings_field(
        "keep_youtube_playlist_offline"
    )

    def present_fields(self) -> Dict[str, Any]:
        """Return local-name -> value for every field that is not absent."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        """Serialize present fields only; absent fields are omitted."""
        return {
            SETTINGS_FIELDS[name][0]: value
            for name, value in self.present_fields().items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SettingsBundle":
        """Parse a wire settings object.

        Raises:
            ValueError: If a present field has the wrong type
        """
        values: Dict[str, Any] = {}
        for name, (wire_name, _, _) in SETTINGS_FIELDS.items():
            if wire_name in data:
                values[name] = coerce_setting(name, data[wire_name])
        return cls(**values)


@dataclass
class AlbumItem:
    browse_id: str
    title: str
    artist: Optional[str] = None
    thumbnail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "browseId": self.browse_id,
            "title": self.title,
            "artist": self.artist,
            "thumbnail": self.thumbnail,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AlbumItem":
        return cls(
            browse_id=data["browseId"],
            title=data.get("title") or "",
            artist=_opt_str(data.get("artist")),
            thumbnail=_opt_str(data.get("thumbnail")),
        )


@dataclass
class ArtistItem:
    channel_id: str
    name: str
    thumbnail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channelId": self.channel_id,
            "name": self.name,
            "thumbnail": self.thumbnail,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ArtistItem":
        return cls(
            channel_id=data["channelId"],
            name=data.get("name") or "",
            thumbnail=_opt_str(data.get("thumbnail")),
        )


@dataclass
class YouTubePlaylistItem:
    playlist_id: str
    title: str
    thumbnail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playlistId": self.playlist_id,
            "title": self.title,
            "thumbnail": self.thumbnail,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "YouTubePlaylistItem":
        return cls(
            playlist_id=data["playlistId"],
            title=data.get("title") or "",
            thumbnail=_opt_str(data.get("thumbnail")),
        )


@dataclass
class LibraryBundle:
    """Library subscriptions. Uploaded together as one unit."""

    albums: List[AlbumItem] = field(default_factory=list)
    artists: List[ArtistItem] = field(default_factory=list)
    playlists: List[YouTubePlaylistItem] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "albums": [a.to_dict() for a in self.albums],
            "artists": [a.to_dict() for a in self.artists],
            "playlists": [p.to_dict() for p in self.playlists],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LibraryBundle":
        return cls(
            albums=[AlbumItem.from_dict(a) for a in data.get("albums") or []],
            artists=[ArtistItem.from_dict(a) for a in data.get("artists") or []],
            playlists=[
                YouTubePlaylistItem.from_dict(p) for p in data.get("playlists") or []
            ],
        )


@dataclass
class SyncSnapshot:
    """Everything GET /api/sync/all returns for the current user.

    Collections are kept as raw dicts so that one malformed record can be
    rejected during merge without failing the whole snapshot.
    """

    favorites: List[Dict[str, Any]] = field(default_factory=list)
    playlists: List[Dict[str, Any]] = field(default_factory=list)
    history: List[Dict[str, Any]] = field(default_factory=list)
    settings: Optional[Dict[str, Any]] = None
    library: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncSnapshot":
        return cls(
            favorites=data.get("favorites") or [],
            playlists=data.get("playlists") or [],
            history=data.get("history") or [],
            settings=data.get("settings"),
            library=data.get("library"),
        )


@dataclass
class UserInfo:
    id: str
    email: str
    nickname: Optional[str] = None
    avatar: Optional[str] = None
    is_admin: bool = False
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "nickname": self.nickname,
            "avatar": self.avatar,
            "isAdmin": self.is_admin,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UserInfo":
        return cls(
            id=data["id"],
            email=data["email"],
            nickname=data.get("nickname"),
            avatar=data.get("avatar"),
            is_admin=bool(data.get("isAdmin", False)),
            created_at=data.get("createdAt"),
        )
