"""Unit tests for the local library database.

Tests all methods in core/database.py including:
- Songs, favorites and play history
- Local playlists and their foreign-key constraint
- Library subscriptions
- Settings and sync bookkeeping
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from hysync.core.database import Database
from hysync.core.models import SETTINGS_DEFAULTS, Album, Artist, LikeStatus, SavedPlaylist
from hysync.core.validation import ValidationError

from tests.helpers import make_song


@pytest.mark.unit
class TestSongs:
    """Test song storage and favorites."""

    def test_insert_and_get(self, empty_db: Database) -> None:
        empty_db.insert_song(make_song("v1", "Song", artists=("A", "B")))
        song = empty_db.get_song("v1")
        assert song is not None
        assert song.title == "Song"
        assert song.artist_names == ("A", "B")
        assert song.in_library is not None

    def test_get_missing_returns_none(self, empty_db: Database) -> None:
        assert empty_db.get_song("nope") is None

    def test_duplicate_insert_raises(self, empty_db: Database) -> None:
        empty_db.insert_song(make_song("v1"))
        with pytest.raises(sqlite3.IntegrityError):
            empty_db.insert_song(make_song("v1"))

    def test_set_liked_updates_status(self, empty_db: Database) -> None:
        empty_db.insert_song(make_song("v1"))
        assert empty_db.set_liked("v1", True) is True
        song = empty_db.get_song("v1")
        assert song.liked is True
        assert song.like_status == LikeStatus.LIKE.value

        empty_db.set_liked("v1", False)
        assert empty_db.get_song("v1").like_status == LikeStatus.INDIFFERENT.value

    def test_set_liked_missing_song(self, empty_db: Database) -> None:
        assert empty_db.set_liked("nope", True) is False

    def test_liked_songs_in_insertion_order(self, populated_db: Database) -> None:
        assert [s.video_id for s in populated_db.get_liked_songs()] == ["song1", "song2"]


@pytest.mark.unit
class TestPlayHistory:
    """Test play recording and recency ordering."""

    def test_most_recent_first(self, populated_db: Database) -> None:
        assert [s.video_id for s in populated_db.get_recently_played()] == ["song1", "song3"]

    def test_replay_moves_song_to_front(self, populated_db: Database) -> None:
        populated_db.record_play("song3")
        recent = populated_db.get_recently_played()
        assert [s.video_id for s in recent] == ["song3", "song1"]
        assert recent[0].total_play_time == 2

    def test_limit(self, populated_db: Database) -> None:
        assert len(populated_db.get_recently_played(limit=1)) == 1

    def test_unplayed_songs_excluded(self, populated_db: Database) -> None:
        ids = {s.video_id for s in populated_db.get_recently_played()}
        assert "song2" not in ids

    def test_record_play_missing_song(self, empty_db: Database) -> None:
        assert empty_db.record_play("nope") is False


@pytest.mark.unit
class TestLocalPlaylists:
    """Test local playlists."""

    def test_tracks_keep_order(self, populated_db: Database) -> None:
        playlist = populated_db.get_local_playlist_by_title("Road Trip")
        assert playlist is not None
        assert playlist.tracks == ("song3", "song1")
        assert playlist.description == "Driving"

    def test_unknown_track_rejected_atomically(self, empty_db: Database) -> None:
        empty_db.insert_song(make_song("v1"))
        with pytest.raises(sqlite3.IntegrityError):
            empty_db.create_local_playlist("Broken", ["v1", "missing"])
        assert empty_db.get_local_playlists() == []

    def test_add_track_appends(self, populated_db: Database) -> None:
        playlist = populated_db.get_local_playlist_by_title("Road Trip")
        populated_db.add_track_to_playlist(playlist.id, "song2")
        assert populated_db.get_local_playlist(playlist.id).tracks == ("song3", "song1", "song2")

    def test_add_unknown_track_raises(self, populated_db: Database) -> None:
        playlist = populated_db.get_local_playlist_by_title("Road Trip")
        with pytest.raises(sqlite3.IntegrityError):
            populated_db.add_track_to_playlist(playlist.id, "missing")

    def test_delete(self, populated_db: Database) -> None:
        playlist = populated_db.get_local_playlist_by_title("Road Trip")
        assert populated_db.delete_local_playlist(playlist.id) is True
        assert populated_db.get_local_playlist(playlist.id) is None
        assert populated_db.delete_local_playlist(playlist.id) is False

    def test_missing_title(self, empty_db: Database) -> None:
        assert empty_db.get_local_playlist_by_title("Nothing") is None


@pytest.mark.unit
class TestLibrarySubscriptions:
    """Test albums, artists and saved playlists."""

    def test_insert_is_insert_only(self, empty_db: Database) -> None:
        assert empty_db.insert_album(Album("b1", "First")) is True
        assert empty_db.insert_album(Album("b1", "Renamed")) is False
        assert [a.title for a in empty_db.get_albums()] == ["First"]

    def test_artists_and_saved_playlists(self, populated_db: Database) -> None:
        assert [a.channel_id for a in populated_db.get_artists()] == ["UC_artist1"]
        assert [p.playlist_id for p in populated_db.get_saved_playlists()] == ["PL_saved1"]

    def test_unliked_items_are_not_listed(self, empty_db: Database) -> None:
        empty_db.insert_album(Album("b1", "Gone", liked=False))
        empty_db.insert_artist(Artist("c1", "Gone", followed=False))
        empty_db.insert_saved_playlist(SavedPlaylist("p1", "Gone", liked=False))
        assert empty_db.get_albums() == []
        assert empty_db.get_artists() == []
        assert empty_db.get_saved_playlists() == []

    def test_limit(self, empty_db: Database) -> None:
        for i in range(5):
            empty_db.insert_artist(Artist(f"c{i}", f"Artist {i}"))
        assert len(empty_db.get_artists(limit=3)) == 3


@pytest.mark.unit
class TestSettings:
    """Test tracked settings."""

    def test_defaults(self, empty_db: Database) -> None:
        assert empty_db.get_settings() == SETTINGS_DEFAULTS
        assert empty_db.get_setting("quality") == "Medium"

    def test_set_coerces_value(self, empty_db: Database) -> None:
        empty_db.set_setting("crossfade_duration", "9")
        empty_db.set_setting("normalize_volume", "TRUE")
        assert empty_db.get_setting("crossfade_duration") == 9
        assert empty_db.get_setting("normalize_volume") is True

    def test_unknown_setting_raises(self, empty_db: Database) -> None:
        with pytest.raises(ValidationError) as exc:
            empty_db.set_setting("volume", 3)
        assert exc.value.field == "setting"
        with pytest.raises(ValidationError):
            empty_db.get_setting("volume")

    def test_bad_value_raises(self, empty_db: Database) -> None:
        with pytest.raises(ValidationError) as exc:
            empty_db.set_setting("home_limit", "lots")
        assert exc.value.field == "home_limit"

    def test_none_rejected(self, empty_db: Database) -> None:
        with pytest.raises(ValidationError):
            empty_db.set_setting("quality", None)


@pytest.mark.unit
class TestSyncBookkeeping:
    """Test last sync time and persistence across connections."""

    def test_last_sync_time(self, empty_db: Database) -> None:
        assert empty_db.get_last_sync_time() is None
        stamp = empty_db.update_last_sync_time("2024-01-01 10:00:00")
        assert stamp == "2024-01-01 10:00:00"
        assert empty_db.get_last_sync_time() == stamp

    def test_file_database_persists(self, tmp_path: Path) -> None:
        path = tmp_path / "library.db"
        db = Database(path)
        db.insert_song(make_song("v1", liked=True))
        db.close()

        reopened = Database(path)
        assert reopened.get_song("v1").liked is True
        reopened.close()
