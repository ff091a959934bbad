#!/usr/bin/env python3
"""Command-line interface for hysync.

This module provides CLI commands for the account, the local library and
sync. Uses only core/ modules - no Flask dependencies.

Commands:
    register / login / logout / whoami    Account
    profile --nickname/--avatar           Edit the remote profile
    sync now|upload|download|status|watch Sync with the remote account
    like <id> / unlike <id>               Edit favorites
    play <id>                             Record a play
    favorites                             List favorite songs
    playlist list|create|add              Local playlists
    settings get|set                      Tracked settings
    admin users|user|ban|unban|promote|demote|delete|stats
                                          Account moderation (admins only)
"""

from __future__ import annotations

import argparse
import getpass
import json
import sqlite3
import sys
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from hysync.core.api_client import ApiClient
from hysync.core.config import Config
from hysync.core.database import Database
from hysync.core.mapping import format_duration
from hysync.core.models import SETTINGS_FIELDS, LikeStatus, MutationKind, Song
from hysync.core.session import Session
from hysync.core.sync_engine import SyncEngine
from hysync.core.sync_state import SyncResult
from hysync.core.validation import ValidationError


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


def _result_to_dict(result: SyncResult) -> Dict[str, Any]:
    return {
        "success": result.success,
        "direction": result.direction.value,
        "message": result.message,
        "errors": result.errors,
        "outcomes": [
            {
                "collection": o.collection,
                "phase": o.phase,
                "succeeded": o.succeeded,
                "failed_keys": o.failed_keys,
                "error": o.error,
                "skipped": o.skipped,
            }
            for o in result.outcomes
        ],
    }


def _upload_mutation(engine: SyncEngine, kind: MutationKind) -> None:
    """Push a local edit and wait for it; failures only warn."""
    future = engine.on_local_mutation(kind)
    if future is None:
        return
    outcome = future.result()
    if outcome.error:
        print(f"Warning: {kind.value} not uploaded: {outcome.error}", file=sys.stderr)


def _ensure_song(db: Database, args: argparse.Namespace) -> Optional[Song]:
    song = db.get_song(args.video_id)
    if song is not None:
        return song
    if not args.title:
        print(f"Error: Unknown song {args.video_id}; --title is required to add it", file=sys.stderr)
        return None
    duration = args.duration or 0
    db.insert_song(
        Song(
            video_id=args.video_id,
            title=args.title,
            artist_names=tuple(args.artist or ()),
            duration=format_duration(duration),
            duration_seconds=duration,
        )
    )
    return db.get_song(args.video_id)


# ===== Account =====

def cmd_register(client: ApiClient, engine: SyncEngine, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    result = client.register(args.email, password, args.nickname)
    if not result["success"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1
    print(f"Registered and signed in as {args.email}")
    return _after_login(engine, args)


def cmd_login(client: ApiClient, engine: SyncEngine, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    result = client.login(args.email, password)
    if not result["success"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1
    print(f"Signed in as {args.email}")
    return _after_login(engine, args)


def _after_login(engine: SyncEngine, args: argparse.Namespace) -> int:
    if args.no_sync:
        return 0
    result = engine.trigger_full_sync()
    if result is None:
        return 1
    print(result.message)
    return 0 if result.success else 1


def cmd_logout(client: ApiClient, args: argparse.Namespace) -> int:
    client.logout()
    print("Signed out")
    return 0


def cmd_whoami(client: ApiClient, session: Session, args: argparse.Namespace) -> int:
    if not session.is_logged_in:
        print("Not signed in")
        return 1
    result = client.get_me()
    if not result["success"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1
    user = result["data"]
    if args.format == "json":
        _print_json(user.to_dict())
    else:
        print(f"Email: {user.email}")
        print(f"Nickname: {user.nickname or ''}")
        print(f"Admin: {'yes' if user.is_admin else 'no'}")
    return 0


def cmd_profile(client: ApiClient, session: Session, args: argparse.Namespace) -> int:
    if not session.is_logged_in:
        print("Error: Not signed in", file=sys.stderr)
        return 1
    if args.nickname is None and args.avatar is None:
        print("Error: Nothing to change; pass --nickname and/or --avatar", file=sys.stderr)
        return 1
    result = client.update_me(args.nickname, args.avatar)
    if not result["success"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1
    user = result["data"]
    if args.format == "json":
        _print_json(user.to_dict())
    else:
        print(f"Profile updated: {user.nickname or ''}")
    return 0


# ===== Sync =====

def cmd_sync_run(engine: SyncEngine, args: argparse.Namespace) -> int:
    """Run an explicit sync pass (now, upload or download)."""
    triggers = {
        "now": engine.trigger_full_sync,
        "upload": engine.trigger_upload_only,
        "download": engine.trigger_download_only,
    }
    result = triggers[args.sync_command]()
    if result is None:
        print("Error: Not signed in", file=sys.stderr)
        return 1

    if args.format == "json":
        _print_json(_result_to_dict(result))
    else:
        print(result.message)
        for outcome in result.outcomes:
            if outcome.error:
                print(f"  {outcome.collection}: FAILED ({outcome.error})")
            elif outcome.skipped:
                print(f"  {outcome.collection}: skipped")
            elif outcome.failed_keys:
                print(f"  {outcome.collection}: {len(outcome.failed_keys)} items failed")
    return 0 if result.success else 1


def cmd_sync_status(
    engine: SyncEngine, session: Session, config: Config, args: argparse.Namespace
) -> int:
    status = {
        "logged_in": session.is_logged_in,
        "user": session.user.email if session.user else None,
        "api_base_url": config.get_api_base_url(),
        "last_sync_time": engine.last_sync_time,
        "interval_seconds": engine.interval,
    }
    if args.format == "json":
        _print_json(status)
    else:
        print(f"Signed in: {'yes' if status['logged_in'] else 'no'}")
        if status["user"]:
            print(f"User: {status['user']}")
        print(f"Server: {status['api_base_url']}")
        print(f"Last sync: {status['last_sync_time'] or 'never'}")
        print(f"Periodic interval: {status['interval_seconds']}s")
    return 0


def cmd_sync_watch(engine: SyncEngine, session: Session, args: argparse.Namespace) -> int:
    """Upload periodically until interrupted or signed out."""
    if not session.is_logged_in:
        print("Error: Not signed in", file=sys.stderr)
        return 1
    engine.start_periodic_sync(args.interval)
    print("Periodic sync running. Press Ctrl+C to stop.")
    waiter = threading.Event()
    try:
        while engine.is_periodic_running:
            waiter.wait(1.0)
    except KeyboardInterrupt:
        pass
    finally:
        engine.stop_periodic_sync()
    return 0


# ===== Library =====

def cmd_like(db: Database, engine: SyncEngine, args: argparse.Namespace) -> int:
    song = _ensure_song(db, args)
    if song is None:
        return 1
    db.set_liked(song.video_id, True)
    print(f"Liked {song.title}")
    _upload_mutation(engine, MutationKind.FAVORITES)
    return 0


def cmd_unlike(
    db: Database, client: ApiClient, session: Session, engine: SyncEngine, args: argparse.Namespace
) -> int:
    """Unlike a local song, or drop a song only the account knows about."""
    if db.set_liked(args.video_id, False):
        print(f"Unliked {args.video_id}")
        _upload_mutation(engine, MutationKind.FAVORITES)
        return 0
    if not session.is_logged_in:
        print(f"Error: Unknown song {args.video_id}", file=sys.stderr)
        return 1
    result = client.remove_favorite(args.video_id)
    if not result["success"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1
    print(f"Removed {args.video_id} from remote favorites")
    return 0


def cmd_play(db: Database, args: argparse.Namespace) -> int:
    song = _ensure_song(db, args)
    if song is None:
        return 1
    db.record_play(song.video_id)
    print(f"Played {song.title}")
    return 0


def cmd_favorites(db: Database, args: argparse.Namespace) -> int:
    songs = db.get_liked_songs()
    if args.format == "json":
        _print_json([
            {
                "video_id": s.video_id,
                "title": s.title,
                "artists": list(s.artist_names),
                "duration": s.duration,
                "like_status": s.like_status,
            }
            for s in songs
        ])
    else:
        for s in songs:
            artists = ", ".join(s.artist_names)
            print(f"{s.video_id}  {s.title}" + (f" - {artists}" if artists else "") + f"  [{s.duration}]")
        if not songs:
            print("No favorites")
    return 0


def cmd_playlist(db: Database, engine: SyncEngine, args: argparse.Namespace) -> int:
    cmd = args.playlist_command
    if cmd == "list":
        playlists = db.get_local_playlists()
        if args.format == "json":
            _print_json([
                {"id": p.id, "title": p.title, "tracks": list(p.tracks)} for p in playlists
            ])
        else:
            for p in playlists:
                print(f"{p.id}  {p.title} ({len(p.tracks)} tracks)")
            if not playlists:
                print("No playlists")
        return 0

    if cmd == "create":
        try:
            playlist_id = db.create_local_playlist(args.title, args.video_ids or ())
        except sqlite3.IntegrityError:
            print("Error: Every track must be a song in the library", file=sys.stderr)
            return 1
        print(f"Created playlist {playlist_id}: {args.title}")
    elif cmd == "add":
        try:
            db.add_track_to_playlist(args.playlist_id, args.video_id)
        except sqlite3.IntegrityError:
            print("Error: Unknown playlist or song", file=sys.stderr)
            return 1
        print(f"Added {args.video_id} to playlist {args.playlist_id}")
    else:
        print("Error: No playlist command specified. Use 'playlist --help'.", file=sys.stderr)
        return 1

    _upload_mutation(engine, MutationKind.PLAYLISTS)
    return 0


def cmd_settings(db: Database, engine: SyncEngine, args: argparse.Namespace) -> int:
    cmd = args.settings_command
    if cmd == "get":
        if args.name:
            value = db.get_setting(args.name)
            if args.format == "json":
                _print_json({args.name: value})
            else:
                print(value)
        else:
            settings = db.get_settings()
            if args.format == "json":
                _print_json(settings)
            else:
                for name, value in settings.items():
                    print(f"{name} = {value}")
        return 0

    if cmd == "set":
        db.set_setting(args.name, args.value)
        print(f"{args.name} = {db.get_setting(args.name)}")
        _upload_mutation(engine, MutationKind.SETTINGS)
        return 0

    print("Error: No settings command specified. Use 'settings --help'.", file=sys.stderr)
    return 1


# ===== Admin =====

def _print_user_line(user: Dict[str, Any]) -> None:
    flags = [name for name, key in (("admin", "isAdmin"), ("banned", "isBanned")) if user.get(key)]
    line = f"{user['id']}  {user['email']}  {user.get('nickname') or ''}"
    if flags:
        line += f"  [{', '.join(flags)}]"
    print(line)


def cmd_admin(client: ApiClient, session: Session, args: argparse.Namespace) -> int:
    """Account moderation for admin accounts."""
    cmd = getattr(args, "admin_command", None)
    if not cmd:
        print("Error: No admin command specified. Use 'admin --help'.", file=sys.stderr)
        return 1
    if not session.is_logged_in:
        print("Error: Not signed in", file=sys.stderr)
        return 1
    # Any 403 signs the client out, so check the flag before calling admin routes.
    me = client.get_me()
    if not me["success"]:
        print(f"Error: {me['error']}", file=sys.stderr)
        return 1
    if not me["data"].is_admin:
        print("Error: Admin access required", file=sys.stderr)
        return 1

    if cmd == "users":
        result = client.admin_get_users(args.page, args.limit, args.search)
    elif cmd == "user":
        result = client.admin_get_user(args.user_id)
    elif cmd in ("ban", "unban"):
        result = client.admin_ban_user(args.user_id, cmd == "ban")
    elif cmd in ("promote", "demote"):
        result = client.admin_set_user_admin(args.user_id, cmd == "promote")
    elif cmd == "delete":
        result = client.admin_delete_user(args.user_id)
    elif cmd == "stats":
        result = client.admin_get_stats()
    else:
        print(f"Error: Unknown admin command '{cmd}'", file=sys.stderr)
        return 1

    if not result["success"]:
        print(f"Error: {result['error']}", file=sys.stderr)
        return 1
    data = result["data"] or {}
    if args.format == "json":
        _print_json(data)
        return 0

    if cmd == "users":
        for user in data.get("users", []):
            _print_user_line(user)
        pagination = data.get("pagination", {})
        print(
            f"Page {pagination.get('page')}/{pagination.get('pages')} "
            f"({pagination.get('total')} users)"
        )
    elif cmd == "user":
        user = data["user"]
        _print_user_line(user)
        counts = user.get("_count", {})
        print(
            f"Favorites: {counts.get('favorites', 0)}  "
            f"Playlists: {counts.get('playlists', 0)}  "
            f"History: {counts.get('playHistory', 0)}"
        )
    elif cmd == "stats":
        for name, value in data.get("stats", {}).items():
            print(f"{name}: {value}")
        for user in data.get("recentUsers", []):
            print(f"  {user['email']}  {user.get('createdAt') or ''}")
    else:
        print(data.get("message", "OK"))
    return 0


def add_cli_subparser(subparsers: argparse._SubParsersAction[argparse.ArgumentParser]) -> None:
    """Add CLI subparser and its nested subcommands.

    Args:
        subparsers: Parent subparsers object to add CLI parser to
    """
    cli_parser = subparsers.add_parser(
        "cli",
        help="Command-line interface",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    cli_parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Output format (default: text)"
    )

    cli_subparsers = cli_parser.add_subparsers(dest="cli_command", help="CLI commands")

    for name, help_text in (("register", "Create an account"), ("login", "Sign in")):
        account_parser = cli_subparsers.add_parser(name, help=help_text)
        account_parser.add_argument("email", type=str, help="Account email")
        account_parser.add_argument(
            "--password", type=str, default=None, help="Password (prompted if omitted)"
        )
        account_parser.add_argument(
            "--no-sync", action="store_true", help="Do not run a full sync after signing in"
        )
        if name == "register":
            account_parser.add_argument("--nickname", type=str, default=None, help="Display name")

    cli_subparsers.add_parser("logout", help="Sign out")
    cli_subparsers.add_parser("whoami", help="Show the signed-in user")
    profile_parser = cli_subparsers.add_parser("profile", help="Edit the remote profile")
    profile_parser.add_argument("--nickname", type=str, default=None, help="New display name")
    profile_parser.add_argument("--avatar", type=str, default=None, help="New avatar URL")

    # sync command with subcommands
    sync_parser = cli_subparsers.add_parser("sync", help="Sync with the remote account")
    sync_subparsers = sync_parser.add_subparsers(dest="sync_command", help="Sync commands")
    sync_subparsers.add_parser("now", help="Download-merge, then upload")
    sync_subparsers.add_parser("upload", help="Overwrite the remote copy with local data")
    sync_subparsers.add_parser("download", help="Merge the remote copy into local data")
    sync_subparsers.add_parser("status", help="Show sign-in and last sync time")
    watch_parser = sync_subparsers.add_parser("watch", help="Upload periodically until Ctrl+C")
    watch_parser.add_argument(
        "--interval", type=float, default=None, help="Seconds between uploads (default: from config)"
    )

    for name, help_text in (("like", "Add a song to favorites"), ("play", "Record a play")):
        song_parser = cli_subparsers.add_parser(name, help=help_text)
        song_parser.add_argument("video_id", type=str, help="YouTube video id")
        song_parser.add_argument("--title", type=str, default=None, help="Title (for new songs)")
        song_parser.add_argument(
            "--artist", type=str, action="append", default=None, help="Artist (repeatable)"
        )
        song_parser.add_argument("--duration", type=int, default=None, help="Duration in seconds")

    unlike_parser = cli_subparsers.add_parser("unlike", help="Remove a song from favorites")
    unlike_parser.add_argument("video_id", type=str, help="YouTube video id")

    cli_subparsers.add_parser("favorites", help="List favorite songs")

    playlist_parser = cli_subparsers.add_parser("playlist", help="Local playlists")
    playlist_subparsers = playlist_parser.add_subparsers(
        dest="playlist_command", help="Playlist commands"
    )
    playlist_subparsers.add_parser("list", help="List playlists")
    create_parser = playlist_subparsers.add_parser("create", help="Create a playlist")
    create_parser.add_argument("title", type=str, help="Playlist title")
    create_parser.add_argument("video_ids", nargs="*", help="Songs in order")
    add_parser = playlist_subparsers.add_parser("add", help="Append a song to a playlist")
    add_parser.add_argument("playlist_id", type=int, help="Playlist id")
    add_parser.add_argument("video_id", type=str, help="YouTube video id")

    settings_parser = cli_subparsers.add_parser("settings", help="Tracked settings")
    settings_subparsers = settings_parser.add_subparsers(
        dest="settings_command", help="Settings commands"
    )
    get_parser = settings_subparsers.add_parser("get", help="Show settings")
    get_parser.add_argument(
        "name", nargs="?", choices=sorted(SETTINGS_FIELDS), help="Setting name (default: all)"
    )
    set_parser = settings_subparsers.add_parser("set", help="Change a setting")
    set_parser.add_argument("name", choices=sorted(SETTINGS_FIELDS), help="Setting name")
    set_parser.add_argument("value", type=str, help="New value")

    admin_parser = cli_subparsers.add_parser("admin", help="Account moderation (admins only)")
    admin_subparsers = admin_parser.add_subparsers(dest="admin_command", help="Admin commands")
    users_parser = admin_subparsers.add_parser("users", help="List accounts, newest first")
    users_parser.add_argument("--page", type=int, default=1, help="Page number (default: 1)")
    users_parser.add_argument("--limit", type=int, default=20, help="Accounts per page (default: 20)")
    users_parser.add_argument("--search", type=str, default=None, help="Match email or nickname")
    for name, help_text in (
        ("user", "Show one account with its counts"),
        ("ban", "Ban an account"),
        ("unban", "Lift a ban"),
        ("promote", "Grant admin rights"),
        ("demote", "Revoke admin rights"),
        ("delete", "Delete an account and its data"),
    ):
        user_parser = admin_subparsers.add_parser(name, help=help_text)
        user_parser.add_argument("user_id", type=str, help="Account id")
    admin_subparsers.add_parser("stats", help="Totals and recent sign-ups")


def run(config_dir: Optional[Path], args: argparse.Namespace) -> int:
    """Run CLI with given arguments.

    Args:
        config_dir: Custom configuration directory or None for default
        args: Parsed command-line arguments (should have cli_command attribute)

    Returns:
        Exit code (0 for success, 1 for error)
    """
    if not hasattr(args, 'cli_command') or not args.cli_command:
        print("Error: No CLI command specified. Use --help for available commands.", file=sys.stderr)
        return 1

    config = Config(config_dir=config_dir)
    db_path = config.get_database_file()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = Database(db_path)
    session = Session(config.get_session_file())
    client = ApiClient(session, config.get_api_base_url(), config.get_request_timeout())
    engine = SyncEngine(client, session, db, config)

    try:
        command = args.cli_command
        if command == "register":
            return cmd_register(client, engine, args)
        elif command == "login":
            return cmd_login(client, engine, args)
        elif command == "logout":
            return cmd_logout(client, args)
        elif command == "whoami":
            return cmd_whoami(client, session, args)
        elif command == "profile":
            return cmd_profile(client, session, args)
        elif command == "sync":
            sync_cmd = getattr(args, 'sync_command', None)
            if not sync_cmd:
                print("Error: No sync command specified. Use 'sync --help'.", file=sys.stderr)
                return 1
            if sync_cmd in ("now", "upload", "download"):
                return cmd_sync_run(engine, args)
            elif sync_cmd == "status":
                return cmd_sync_status(engine, session, config, args)
            elif sync_cmd == "watch":
                return cmd_sync_watch(engine, session, args)
            print(f"Error: Unknown sync command '{sync_cmd}'", file=sys.stderr)
            return 1
        elif command == "like":
            return cmd_like(db, engine, args)
        elif command == "unlike":
            return cmd_unlike(db, client, session, engine, args)
        elif command == "play":
            return cmd_play(db, args)
        elif command == "favorites":
            return cmd_favorites(db, args)
        elif command == "playlist":
            return cmd_playlist(db, engine, args)
        elif command == "settings":
            return cmd_settings(db, engine, args)
        elif command == "admin":
            return cmd_admin(client, session, args)
        else:
            print(f"Error: Unknown command '{command}'", file=sys.stderr)
            return 1
    except ValidationError as e:
        print(f"Error: Invalid {e.field} - {e.message}", file=sys.stderr)
        return 1
    finally:
        engine.shutdown()
        db.close()
