"""Remote sync endpoint for hysync.

Flask blueprints implementing the HYMusic account and sync API:

- /api/auth: register, login, profile
- /api/sync: snapshot download and per-collection uploads
- /api/admin: user moderation (admin accounts only)

Every non-2xx response body is ``{"error": "<message>"}``. A 403 is
reserved for banned accounts and admin-only routes; clients treat a 403
on a sync route as a forced logout.
"""

from __future__ import annotations

import functools
import logging
import math
import sqlite3
from typing import Any, Callable, Dict, List, Optional, Tuple

from flask import Blueprint, g, jsonify, request

from .auth import TokenError, create_token, hash_password, verify_password, verify_token
from .models import SETTINGS_FIELDS, coerce_setting
from .remote_store import HISTORY_SNAPSHOT_LIMIT, RemoteStore
from .validation import (
    ValidationError,
    validate_email,
    validate_item_list,
    validate_pagination,
    validate_password,
    validate_title,
    validate_video_id,
)

logger = logging.getLogger(__name__)

__all__ = [
    "api_endpoint",
    "create_auth_blueprint",
    "create_sync_blueprint",
    "create_admin_blueprint",
]

# wire name -> local name
_SETTINGS_BY_WIRE_NAME = {spec[0]: name for name, spec in SETTINGS_FIELDS.items()}


def api_endpoint(func: Callable) -> Callable:
    """Decorator for consistent API error handling.

    Catches ValidationError (400) and Exception (500) with proper
    JSON error responses and logging.
    """
    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            logger.warning(f"Rejected {request.method} {request.path}: {e}")
            return jsonify({"error": f"Invalid {e.field}: {e.message}"}), 400
        except Exception as e:
            logger.error(f"Error in {func.__name__}: {e}")
            return jsonify({"error": str(e)}), 500
    return wrapper


def _authenticate(
    store: RemoteStore, secret: str, admin: bool = False
) -> Optional[Tuple[Any, int]]:
    """Resolve the bearer token to ``g.user``.

    Returns:
        None if the request may proceed, otherwise an error response
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer ") or not header[7:].strip():
        return jsonify({"error": "No token provided"}), 401

    try:
        payload = verify_token(header[7:].strip(), secret)
    except TokenError as e:
        logger.warning(f"Rejected token on {request.path}: {e}")
        return jsonify({"error": "Invalid token"}), 401

    user = store.get_user(payload["sub"])
    if user is None:
        return jsonify({"error": "User not found"}), 401
    if user["isBanned"]:
        logger.warning(f"Banned user {user['email']} refused on {request.path}")
        return jsonify({"error": "User is banned"}), 403
    if admin and not user["isAdmin"]:
        logger.warning(f"Non-admin {user['email']} refused on {request.path}")
        return jsonify({"error": "Admin access required"}), 403

    g.user = user
    return None


def _public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": user["id"],
        "email": user["email"],
        "nickname": user["nickname"],
        "avatar": user["avatar"],
        "isAdmin": user["isAdmin"],
        "createdAt": user["createdAt"],
    }


def _optional_str(item: Dict[str, Any], key: str) -> None:
    value = item.get(key)
    if value is not None and not isinstance(value, str):
        raise ValidationError(key, "must be a string")


def _validate_song_item(item: Dict[str, Any]) -> Dict[str, Any]:
    validate_video_id(item.get("videoId"))
    title = item.get("title")
    if title is not None and not isinstance(title, str):
        raise ValidationError("title", "must be a string")
    _optional_str(item, "artist")
    _optional_str(item, "thumbnail")
    duration = item.get("duration")
    if duration is not None and (isinstance(duration, bool) or not isinstance(duration, int)):
        raise ValidationError("duration", "must be an integer number of seconds")
    return item


def _validate_library_list(
    data: Dict[str, Any], key: str, id_key: str, name_key: str
) -> List[Dict[str, Any]]:
    if data.get(key) is None:
        return []
    items = validate_item_list(data, key)
    for item in items:
        if not isinstance(item.get(id_key), str) or not item.get(id_key):
            raise ValidationError(id_key, "is required")
        _optional_str(item, name_key)
        _optional_str(item, "thumbnail")
    return items


def create_auth_blueprint(
    store: RemoteStore, secret: str, token_ttl_days: int = 30
) -> Blueprint:
    """Create Flask blueprint for account endpoints.

    Args:
        store: Server database
        secret: Token signing secret
        token_ttl_days: Lifetime of issued tokens

    Returns:
        Flask Blueprint with /api/auth routes
    """
    auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

    @auth_bp.route("/register", methods=["POST"])
    @api_endpoint
    def register() -> Tuple[Any, int]:
        """Create an account.

        Request body:
            {"email": "...", "password": "...", "nickname": "..."}

        Response:
            {"message": "...", "token": "...", "user": {...}}
        """
        data = request.get_json(silent=True) or {}
        if not data.get("email") or not data.get("password"):
            return jsonify({"error": "Email and password are required"}), 400

        email = validate_email(data["email"])
        password = validate_password(data["password"])
        nickname = data.get("nickname") or email.split("@")[0]

        if store.get_user_by_email(email):
            logger.warning(f"Registration rejected: {email} already registered")
            return jsonify({"error": "Email already registered"}), 400

        try:
            user = store.create_user(email, hash_password(password), nickname)
        except sqlite3.IntegrityError:
            return jsonify({"error": "Email already registered"}), 400

        token = create_token(user["id"], secret, token_ttl_days)
        return jsonify({
            "message": "Registration successful",
            "token": token,
            "user": _public_user(user),
        }), 200

    @auth_bp.route("/login", methods=["POST"])
    @api_endpoint
    def login() -> Tuple[Any, int]:
        data = request.get_json(silent=True) or {}
        email = data.get("email")
        password = data.get("password")
        if not email or not password:
            return jsonify({"error": "Email and password are required"}), 400

        user = store.get_user_by_email(str(email).strip())
        if user is None:
            logger.warning(f"Login failed for unknown email {email}")
            return jsonify({"error": "Invalid credentials"}), 401
        if user["isBanned"]:
            logger.warning(f"Login refused for banned user {email}")
            return jsonify({"error": "User is banned"}), 403
        if not verify_password(str(password), store.get_password_hash(user["id"]) or ""):
            logger.warning(f"Login failed for {email}: wrong password")
            return jsonify({"error": "Invalid credentials"}), 401

        token = create_token(user["id"], secret, token_ttl_days)
        return jsonify({
            "message": "Login successful",
            "token": token,
            "user": _public_user(user),
        }), 200

    @auth_bp.route("/me", methods=["GET"])
    @api_endpoint
    def get_me() -> Tuple[Any, int]:
        denied = _authenticate(store, secret)
        if denied:
            return denied
        user = _public_user(g.user)
        user["settings"] = store.get_settings(g.user["id"])
        return jsonify({"user": user}), 200

    @auth_bp.route("/me", methods=["PUT"])
    @api_endpoint
    def update_me() -> Tuple[Any, int]:
        denied = _authenticate(store, secret)
        if denied:
            return denied
        data = request.get_json(silent=True) or {}
        _optional_str(data, "nickname")
        _optional_str(data, "avatar")
        nickname = data["nickname"] if "nickname" in data else g.user["nickname"]
        avatar = data["avatar"] if "avatar" in data else g.user["avatar"]
        user = store.update_profile(g.user["id"], nickname, avatar)
        return jsonify({"message": "Profile updated", "user": _public_user(user)}), 200

    return auth_bp


def create_sync_blueprint(store: RemoteStore, secret: str) -> Blueprint:
    """Create Flask blueprint for data sync endpoints.

    Every route requires a valid bearer token for a non-banned user.
    """
    sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")

    @sync_bp.before_request
    def require_user() -> Optional[Tuple[Any, int]]:
        return _authenticate(store, secret)

    @sync_bp.route("/all", methods=["GET"])
    @api_endpoint
    def get_all() -> Tuple[Any, int]:
        """Return everything stored for the current user.

        Response:
            {
                "favorites": [...],
                "playlists": [{"title": ..., "songs": [...]}, ...],
                "history": [...],   # most recent 100
                "settings": {...},
                "library": {"albums": [...], "artists": [...], "playlists": [...]}
            }
        """
        user_id = g.user["id"]
        return jsonify({
            "favorites": store.get_favorites(user_id),
            "playlists": store.get_playlists(user_id),
            "history": store.get_history(user_id, HISTORY_SNAPSHOT_LIMIT),
            "settings": store.get_settings(user_id),
            "library": store.get_library(user_id),
        }), 200

    @sync_bp.route("/favorites", methods=["POST"])
    @api_endpoint
    def sync_favorites() -> Tuple[Any, int]:
        items = validate_item_list(request.get_json(silent=True), "favorites")
        for item in items:
            _validate_song_item(item)
        count = store.replace_favorites(g.user["id"], items)
        logger.info(f"Stored {count} favorites for {g.user['email']}")
        return jsonify({"message": "Favorites synced", "count": count}), 200

    @sync_bp.route("/favorites/<video_id>", methods=["DELETE"])
    @api_endpoint
    def remove_favorite(video_id: str) -> Tuple[Any, int]:
        validate_video_id(video_id)
        if not store.delete_favorite(g.user["id"], video_id):
            return jsonify({"error": "Favorite not found"}), 404
        return jsonify({"message": "Favorite removed"}), 200

    @sync_bp.route("/playlists", methods=["POST"])
    @api_endpoint
    def sync_playlists() -> Tuple[Any, int]:
        playlists = validate_item_list(request.get_json(silent=True), "playlists")
        for playlist in playlists:
            validate_title(playlist.get("title"))
            _optional_str(playlist, "description")
            _optional_str(playlist, "thumbnail")
            if playlist.get("songs") is not None:
                for song in validate_item_list(playlist, "songs"):
                    _validate_song_item(song)
        count = store.replace_playlists(g.user["id"], playlists)
        logger.info(f"Stored {count} playlists for {g.user['email']}")
        return jsonify({"message": "Playlists synced", "count": count}), 200

    @sync_bp.route("/history", methods=["POST"])
    @api_endpoint
    def sync_history() -> Tuple[Any, int]:
        items = validate_item_list(request.get_json(silent=True), "history")
        for item in items:
            _validate_song_item(item)
        added = store.add_history(g.user["id"], items)
        logger.debug(f"History: {added} new of {len(items)} for {g.user['email']}")
        return jsonify({"message": "History synced", "count": len(items)}), 200

    @sync_bp.route("/settings", methods=["POST"])
    @api_endpoint
    def sync_settings() -> Tuple[Any, int]:
        data = request.get_json(silent=True)
        if not isinstance(data, dict) or not isinstance(data.get("settings"), dict):
            raise ValidationError("settings", "must be an object")

        values: Dict[str, Any] = {}
        for wire_name, value in data["settings"].items():
            name = _SETTINGS_BY_WIRE_NAME.get(wire_name)
            if name is None or value is None:
                continue
            try:
                values[wire_name] = coerce_setting(name, value)
            except (ValueError, TypeError) as e:
                raise ValidationError(wire_name, str(e)) from None

        store.upsert_settings(g.user["id"], values)
        return jsonify({"message": "Settings synced"}), 200

    @sync_bp.route("/library", methods=["POST"])
    @api_endpoint
    def sync_library() -> Tuple[Any, int]:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("body", "missing JSON request body")
        albums = _validate_library_list(data, "albums", "browseId", "title")
        artists = _validate_library_list(data, "artists", "channelId", "name")
        playlists = _validate_library_list(data, "playlists", "playlistId", "title")
        store.replace_library(g.user["id"], albums, artists, playlists)
        return jsonify({"message": "Library synced"}), 200

    return sync_bp


def create_admin_blueprint(store: RemoteStore, secret: str) -> Blueprint:
    """Create Flask blueprint for user moderation. Admin accounts only."""
    admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

    @admin_bp.before_request
    def require_admin() -> Optional[Tuple[Any, int]]:
        return _authenticate(store, secret, admin=True)

    @admin_bp.route("/users", methods=["GET"])
    @api_endpoint
    def list_users() -> Tuple[Any, int]:
        page, limit = validate_pagination(
            request.args.get("page"), request.args.get("limit")
        )
        search = request.args.get("search") or None
        users, total = store.list_users(page, limit, search)
        return jsonify({
            "users": users,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }), 200

    @admin_bp.route("/users/<user_id>", methods=["GET"])
    @api_endpoint
    def get_user(user_id: str) -> Tuple[Any, int]:
        user = store.get_user(user_id)
        if user is None:
            return jsonify({"error": "User not found"}), 404
        user["settings"] = store.get_settings(user_id)
        user["_count"] = store.get_user_counts(user_id)
        return jsonify({"user": user}), 200

    def _require_bool(key: str) -> bool:
        data = request.get_json(silent=True) or {}
        value = data.get(key)
        if not isinstance(value, bool):
            raise ValidationError(key, "must be a boolean")
        return value

    @admin_bp.route("/users/<user_id>/ban", methods=["POST"])
    @api_endpoint
    def ban_user(user_id: str) -> Tuple[Any, int]:
        ban = _require_bool("ban")
        if not store.set_banned(user_id, ban):
            return jsonify({"error": "User not found"}), 404
        logger.info(f"{g.user['email']} {'banned' if ban else 'unbanned'} user {user_id}")
        return jsonify({
            "message": "User banned" if ban else "User unbanned",
            "user": {"id": user_id, "isBanned": ban},
        }), 200

    @admin_bp.route("/users/<user_id>/admin", methods=["POST"])
    @api_endpoint
    def set_admin(user_id: str) -> Tuple[Any, int]:
        is_admin = _require_bool("isAdmin")
        if not store.set_admin(user_id, is_admin):
            return jsonify({"error": "User not found"}), 404
        return jsonify({
            "message": "User is now admin" if is_admin else "Admin removed",
            "user": {"id": user_id, "isAdmin": is_admin},
        }), 200

    @admin_bp.route("/users/<user_id>", methods=["DELETE"])
    @api_endpoint
    def delete_user(user_id: str) -> Tuple[Any, int]:
        if user_id == g.user["id"]:
            return jsonify({"error": "Cannot delete yourself"}), 400
        if not store.delete_user(user_id):
            return jsonify({"error": "User not found"}), 404
        logger.info(f"{g.user['email']} deleted user {user_id}")
        return jsonify({"message": "User deleted"}), 200

    @admin_bp.route("/stats", methods=["GET"])
    @api_endpoint
    def stats() -> Tuple[Any, int]:
        return jsonify(store.get_stats()), 200

    return admin_bp
