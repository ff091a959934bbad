"""Unit tests for local models, wire models and the mapping between them."""

from __future__ import annotations

import pytest

from hysync.core.api_models import (
    FavoriteItem,
    LibraryBundle,
    PlaylistItem,
    SettingsBundle,
    SyncSnapshot,
    UserInfo,
)
from hysync.core.mapping import (
    album_to_item,
    favorite_item_to_song,
    format_duration,
    history_item_to_song,
    item_to_album,
    settings_to_bundle,
    song_to_favorite_item,
)
from hysync.core.models import (
    SETTINGS_DEFAULTS,
    SETTINGS_FIELDS,
    Album,
    LikeStatus,
    coerce_setting,
)

from tests.helpers import make_song


@pytest.mark.unit
class TestCoerceSetting:
    """Tests for coerce_setting."""

    def test_bool_accepts_bool_and_text(self) -> None:
        assert coerce_setting("save_history", False) is False
        assert coerce_setting("save_history", "TRUE") is True
        assert coerce_setting("save_history", "false") is False
        assert coerce_setting("save_history", 1) is True

    def test_bool_rejects_other_values(self) -> None:
        with pytest.raises(ValueError):
            coerce_setting("save_history", "yes")
        with pytest.raises(ValueError):
            coerce_setting("save_history", 2)

    def test_int_accepts_int_and_numeric_text(self) -> None:
        assert coerce_setting("crossfade_duration", 8) == 8
        assert coerce_setting("crossfade_duration", "12") == 12

    def test_int_rejects_bool_and_text(self) -> None:
        with pytest.raises(ValueError):
            coerce_setting("crossfade_duration", True)
        with pytest.raises(ValueError):
            coerce_setting("crossfade_duration", "abc")
        with pytest.raises(ValueError):
            coerce_setting("crossfade_duration", 1.5)

    def test_str_requires_str(self) -> None:
        assert coerce_setting("quality", "High") == "High"
        with pytest.raises(ValueError):
            coerce_setting("quality", 3)

    def test_none_passes_through(self) -> None:
        assert coerce_setting("quality", None) is None

    def test_unknown_name_raises_key_error(self) -> None:
        with pytest.raises(KeyError):
            coerce_setting("volume", 3)

    def test_defaults_have_declared_types(self) -> None:
        for name, (_, kind, default) in SETTINGS_FIELDS.items():
            assert isinstance(default, kind), name
        assert set(SETTINGS_DEFAULTS) == set(SETTINGS_FIELDS)


@pytest.mark.unit
class TestFormatDuration:
    """Tests for format_duration."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0:00"), (5, "0:05"), (65, "1:05"), (185, "3:05"), (3600, "60:00"), (None, "0:00")],
    )
    def test_formats(self, seconds, expected: str) -> None:
        assert format_duration(seconds) == expected


@pytest.mark.unit
class TestSongMapping:
    """Tests for song <-> wire item conversion."""

    def test_favorite_item_keeps_first_artist_only(self) -> None:
        song = make_song("v1", "Song", artists=("A", "B"), duration_seconds=185)
        item = song_to_favorite_item(song)
        assert item.to_dict() == {
            "videoId": "v1",
            "title": "Song",
            "artist": "A",
            "thumbnail": "https://img/v1",
            "duration": 185,
        }

    def test_song_without_artist_maps_to_none(self) -> None:
        assert song_to_favorite_item(make_song("v1")).artist is None

    def test_favorite_item_to_song_defaults(self) -> None:
        item = FavoriteItem("v1", "Song", artist="A", thumbnail=None, duration=185)
        song = favorite_item_to_song(item)
        assert song.liked is True
        assert song.like_status == LikeStatus.LIKE.value
        assert song.artist_names == ("A",)
        assert song.duration == "3:05"
        assert song.duration_seconds == 185
        assert song.is_available is True
        assert song.is_explicit is False
        assert song.total_play_time == 0
        assert song.in_library is not None

    def test_playlist_song_is_not_liked(self) -> None:
        song = favorite_item_to_song(FavoriteItem("v1", "Song"), liked=False)
        assert song.liked is False
        assert song.like_status == LikeStatus.INDIFFERENT.value
        assert song.artist_names == ()
        assert song.duration == "0:00"

    def test_history_item_to_song_has_one_play(self) -> None:
        song = history_item_to_song(FavoriteItem("v1", "Song", duration=61))
        assert song.total_play_time == 1
        assert song.liked is False
        assert song.duration == "1:01"


@pytest.mark.unit
class TestLibraryMapping:
    """Tests for album / artist / playlist conversion."""

    def test_album_artists_are_joined(self) -> None:
        album = Album("MPREb_1", "Album", ("A", "B"), "https://img/a")
        assert album_to_item(album).artist == "A, B"

    def test_album_from_item(self) -> None:
        album = item_to_album(album_to_item(Album("MPREb_1", "Album", ("A",))))
        assert album.browse_id == "MPREb_1"
        assert album.artist_names == ("A",)
        assert album.liked is True


@pytest.mark.unit
class TestSettingsBundle:
    """Tests for SettingsBundle presence semantics."""

    def test_absent_fields_are_omitted(self) -> None:
        bundle = SettingsBundle(quality="High", crossfade_duration=3)
        assert bundle.to_dict() == {"quality": "High", "crossfadeDuration": 3}

    def test_full_bundle_from_settings(self) -> None:
        bundle = settings_to_bundle(dict(SETTINGS_DEFAULTS))
        wire = bundle.to_dict()
        assert len(wire) == len(SETTINGS_FIELDS)
        assert wire["saveHistory"] is True
        assert wire["useAITranslation"] is False

    def test_from_dict_ignores_unknown_keys(self) -> None:
        bundle = SettingsBundle.from_dict({"quality": "Low", "bogus": 1, "homeLimit": "7"})
        assert bundle.present_fields() == {"quality": "Low", "home_limit": 7}

    def test_from_dict_rejects_bad_type(self) -> None:
        with pytest.raises(ValueError):
            SettingsBundle.from_dict({"saveHistory": "maybe"})


@pytest.mark.unit
class TestWireModels:
    """Tests for the remaining wire models."""

    def test_favorite_from_dict_ignores_server_columns(self) -> None:
        item = FavoriteItem.from_dict({
            "id": "abc", "userId": "u", "videoId": "v1", "title": "T",
            "artist": None, "duration": "200", "createdAt": "now",
        })
        assert item == FavoriteItem("v1", "T", None, None, 200)

    def test_favorite_from_dict_requires_video_id(self) -> None:
        with pytest.raises(KeyError):
            FavoriteItem.from_dict({"title": "T"})

    def test_playlist_round_trip_keeps_song_order(self) -> None:
        playlist = PlaylistItem(
            title="P", id="1", songs=[FavoriteItem("b", "B"), FavoriteItem("a", "A")]
        )
        parsed = PlaylistItem.from_dict(playlist.to_dict())
        assert [s.video_id for s in parsed.songs] == ["b", "a"]

    def test_library_bundle_from_partial_dict(self) -> None:
        bundle = LibraryBundle.from_dict({"albums": [{"browseId": "x", "title": "X"}]})
        assert len(bundle.albums) == 1
        assert bundle.artists == []
        assert bundle.playlists == []

    def test_snapshot_tolerates_missing_collections(self) -> None:
        snapshot = SyncSnapshot.from_dict({"favorites": [{"videoId": "a"}]})
        assert snapshot.favorites == [{"videoId": "a"}]
        assert snapshot.playlists == []
        assert snapshot.history == []
        assert snapshot.settings is None
        assert snapshot.library is None

    def test_user_info(self) -> None:
        user = UserInfo.from_dict({"id": "u1", "email": "a@b.co", "isAdmin": True})
        assert user.is_admin is True
        assert UserInfo.from_dict(user.to_dict()) == user
