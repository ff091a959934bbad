"""CLI tests for account, library and sync commands.

Commands run in-process through ``hysync.main.main`` against a fresh
config directory. No test signs in, so sync work is skipped; commands that
need the server are covered in test_cli_account.py.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

from hysync.main import create_parser

from tests.helpers import run_cli

SRC_DIR = Path(__file__).parent.parent.parent / "src"


@pytest.mark.cli
class TestParser:
    """Test argument parsing."""

    def test_settings_set_parses(self) -> None:
        args = create_parser().parse_args(["cli", "settings", "set", "quality", "High"])
        assert args.interface == "cli"
        assert args.cli_command == "settings"
        assert args.settings_command == "set"
        assert (args.name, args.value) == ("quality", "High")

    def test_unknown_setting_rejected(self, capsys: pytest.CaptureFixture) -> None:
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["cli", "settings", "set", "theme", "dark"])
        assert exc_info.value.code == 2

    def test_admin_user_command_parses(self) -> None:
        args = create_parser().parse_args(["cli", "admin", "ban", "abc123"])
        assert args.cli_command == "admin"
        assert args.admin_command == "ban"
        assert args.user_id == "abc123"

    def test_repeated_artist(self) -> None:
        args = create_parser().parse_args(
            ["cli", "like", "abc", "--title", "T", "--artist", "A", "--artist", "B"]
        )
        assert args.artist == ["A", "B"]

    def test_no_command(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, _, err = run_cli(capsys, test_config_dir)
        assert code == 1
        assert "No CLI command specified" in err

    def test_help_via_module(self) -> None:
        env = os.environ.copy()
        env["PYTHONPATH"] = str(SRC_DIR)
        result = subprocess.run(
            [sys.executable, "-m", "hysync.main", "--help"],
            capture_output=True,
            text=True,
            env=env,
        )

        assert result.returncode == 0
        assert "cli" in result.stdout
        assert "server" in result.stdout


@pytest.mark.cli
class TestFavorites:
    """Test like / unlike / play / favorites."""

    def test_like_new_song(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, out, _ = run_cli(
            capsys, test_config_dir,
            "like", "vid1", "--title", "Song One", "--artist", "Band", "--duration", "245",
        )
        assert code == 0
        assert "Liked Song One" in out

        code, out, _ = run_cli(capsys, test_config_dir, "--format", "json", "favorites")
        assert code == 0
        assert json.loads(out) == [
            {
                "video_id": "vid1",
                "title": "Song One",
                "artists": ["Band"],
                "duration": "4:05",
                "like_status": "LIKE",
            }
        ]

    def test_like_unknown_song_needs_title(
        self, capsys: pytest.CaptureFixture, test_config_dir: Path
    ) -> None:
        code, _, err = run_cli(capsys, test_config_dir, "like", "ghost")
        assert code == 1
        assert "--title is required" in err

    def test_unlike(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        run_cli(capsys, test_config_dir, "like", "vid1", "--title", "Song One")
        code, out, _ = run_cli(capsys, test_config_dir, "unlike", "vid1")
        assert code == 0
        assert "Unliked vid1" in out

        _, out, _ = run_cli(capsys, test_config_dir, "favorites")
        assert "No favorites" in out

    def test_unlike_unknown_song(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, _, err = run_cli(capsys, test_config_dir, "unlike", "ghost")
        assert code == 1
        assert "Unknown song ghost" in err

    def test_play_does_not_like(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, out, _ = run_cli(capsys, test_config_dir, "play", "vid2", "--title", "Background")
        assert code == 0
        assert "Played Background" in out

        _, out, _ = run_cli(capsys, test_config_dir, "--format", "json", "favorites")
        assert json.loads(out) == []


@pytest.mark.cli
class TestPlaylists:
    """Test playlist list / create / add."""

    def test_create_and_add(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        run_cli(capsys, test_config_dir, "play", "a", "--title", "A")
        run_cli(capsys, test_config_dir, "play", "b", "--title", "B")

        code, out, _ = run_cli(capsys, test_config_dir, "playlist", "create", "Mix", "b")
        assert code == 0
        assert "Created playlist" in out

        _, out, _ = run_cli(capsys, test_config_dir, "--format", "json", "playlist", "list")
        playlist_id = json.loads(out)[0]["id"]

        code, _, _ = run_cli(capsys, test_config_dir, "playlist", "add", str(playlist_id), "a")
        assert code == 0

        _, out, _ = run_cli(capsys, test_config_dir, "--format", "json", "playlist", "list")
        assert json.loads(out) == [{"id": playlist_id, "title": "Mix", "tracks": ["b", "a"]}]

    def test_create_with_unknown_song(
        self, capsys: pytest.CaptureFixture, test_config_dir: Path
    ) -> None:
        code, _, err = run_cli(capsys, test_config_dir, "playlist", "create", "Mix", "ghost")
        assert code == 1
        assert "must be a song in the library" in err

        _, out, _ = run_cli(capsys, test_config_dir, "playlist", "list")
        assert "No playlists" in out

    def test_add_to_unknown_playlist(
        self, capsys: pytest.CaptureFixture, test_config_dir: Path
    ) -> None:
        run_cli(capsys, test_config_dir, "play", "a", "--title", "A")
        code, _, err = run_cli(capsys, test_config_dir, "playlist", "add", "99", "a")
        assert code == 1
        assert "Unknown playlist or song" in err


@pytest.mark.cli
class TestSettings:
    """Test settings get / set."""

    def test_defaults(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, out, _ = run_cli(capsys, test_config_dir, "--format", "json", "settings", "get")
        assert code == 0
        settings = json.loads(out)
        assert settings["quality"] == "Medium"
        assert settings["crossfade_duration"] == 5

    def test_set_coerces_value(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, out, _ = run_cli(capsys, test_config_dir, "settings", "set", "save_history", "false")
        assert code == 0
        assert out.strip() == "save_history = False"

        _, out, _ = run_cli(
            capsys, test_config_dir, "--format", "json", "settings", "get", "save_history"
        )
        assert json.loads(out) == {"save_history": False}

    def test_set_bad_value(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, _, err = run_cli(
            capsys, test_config_dir, "settings", "set", "crossfade_duration", "long"
        )
        assert code == 1
        assert "Error: Invalid crossfade_duration -" in err


@pytest.mark.cli
class TestSignedOut:
    """Account and sync commands without a session."""

    def test_sync_requires_login(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, _, err = run_cli(capsys, test_config_dir, "sync", "now")
        assert code == 1
        assert "Not signed in" in err

    def test_sync_status(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, out, _ = run_cli(capsys, test_config_dir, "--format", "json", "sync", "status")
        assert code == 0
        status = json.loads(out)
        assert status["logged_in"] is False
        assert status["user"] is None
        assert status["last_sync_time"] is None

    def test_whoami(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, out, _ = run_cli(capsys, test_config_dir, "whoami")
        assert code == 1
        assert "Not signed in" in out

    def test_logout_is_harmless(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, out, _ = run_cli(capsys, test_config_dir, "logout")
        assert code == 0
        assert "Signed out" in out

    def test_profile_requires_login(
        self, capsys: pytest.CaptureFixture, test_config_dir: Path
    ) -> None:
        code, _, err = run_cli(capsys, test_config_dir, "profile", "--nickname", "DJ")
        assert code == 1
        assert "Not signed in" in err

    def test_admin_requires_login(self, capsys: pytest.CaptureFixture, test_config_dir: Path) -> None:
        code, _, err = run_cli(capsys, test_config_dir, "admin", "stats")
        assert code == 1
        assert "Not signed in" in err
