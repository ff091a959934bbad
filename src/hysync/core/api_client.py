"""HTTP client for the HYMusic sync API.

All calls go through ``_make_request``, which never raises for transport
or HTTP errors. It returns a result dict instead:

    {"success": True, "data": <parsed JSON>, "status": 200}
    {"success": False, "error": "<message>", "status": <int or None>}

Any HTTP 403 means the account has been banned: the session is cleared
(forced logout) before the failure is returned.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, List, Optional

from .api_models import (
    DEFAULT_API_BASE_URL,
    FavoriteItem,
    HistoryItem,
    LibraryBundle,
    PlaylistItem,
    SettingsBundle,
    SyncSnapshot,
    UserInfo,
)
from .session import Session

logger = logging.getLogger(__name__)

__all__ = ["ApiClient", "BANNED_MESSAGE"]

BANNED_MESSAGE = "User is banned"


class ApiClient:
    """Client for the remote sync endpoint.

    The client writes the session on register/login/logout and when a 403
    forces a logout. Everything else only reads the token.
    """

    def __init__(
        self,
        session: Session,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout: int = 30,
    ) -> None:
        """Initialize API client.

        Args:
            session: Shared session holding the bearer token
            base_url: Server root, e.g. "https://hymusic.zeabur.app"
            timeout: Request timeout in seconds
        """
        self.session = session
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    # ===== Auth =====

    def register(
        self, email: str, password: str, nickname: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create an account and sign in with it."""
        body: Dict[str, Any] = {"email": email, "password": password}
        if nickname:
            body["nickname"] = nickname
        result = self._make_request("POST", "/api/auth/register", body, auth=False)
        return self._store_auth(result)

    def login(self, email: str, password: str) -> Dict[str, Any]:
        """Authenticate and store the returned token and user."""
        result = self._make_request(
            "POST", "/api/auth/login", {"email": email, "password": password}, auth=False
        )
        return self._store_auth(result)

    def _store_auth(self, result: Dict[str, Any]) -> Dict[str, Any]:
        if not result["success"]:
            return result
        data = result["data"] or {}
        token = data.get("token")
        if not token:
            return {
                "success": False,
                "error": data.get("error") or "No token in response",
                "status": result.get("status"),
            }
        user_data = data.get("user")
        user = UserInfo.from_dict(user_data) if user_data else None
        self.session.set(token, user)
        logger.info(f"Signed in as {user.email if user else 'unknown user'}")
        return {"success": True, "data": user, "status": result.get("status")}

    def get_me(self) -> Dict[str, Any]:
        """Fetch the current user's profile and refresh the session copy."""
        result = self._make_request("GET", "/api/auth/me")
        if not result["success"]:
            return result
        user_data = (result["data"] or {}).get("user")
        if not user_data:
            return {"success": False, "error": "Unknown error", "status": result.get("status")}
        user = UserInfo.from_dict(user_data)
        self.session.update_user(user)
        return {"success": True, "data": user, "status": result.get("status")}

    def update_me(
        self, nickname: Optional[str] = None, avatar: Optional[str] = None
    ) -> Dict[str, Any]:
        """Change the profile. Fields left as None are not sent."""
        body = {}
        if nickname is not None:
            body["nickname"] = nickname
        if avatar is not None:
            body["avatar"] = avatar
        result = self._make_request("PUT", "/api/auth/me", body)
        if not result["success"]:
            return result
        user_data = (result["data"] or {}).get("user")
        if not user_data:
            return {"success": False, "error": "Unknown error", "status": result.get("status")}
        user = UserInfo.from_dict(user_data)
        self.session.update_user(user)
        return {"success": True, "data": user, "status": result.get("status")}

    def logout(self) -> None:
        """Forget the local token. There is no server-side session to end."""
        self.session.clear()

    # ===== Sync =====

    def sync_get_all(self) -> Dict[str, Any]:
        """Fetch the full remote snapshot. ``data`` is a SyncSnapshot."""
        result = self._make_request("GET", "/api/sync/all")
        if not result["success"]:
            return result
        data = result["data"]
        if not isinstance(data, dict):
            return {"success": False, "error": "Malformed snapshot", "status": result.get("status")}
        return {"success": True, "data": SyncSnapshot.from_dict(data), "status": result.get("status")}

    def sync_favorites(self, items: List[FavoriteItem]) -> Dict[str, Any]:
        return self._make_request(
            "POST", "/api/sync/favorites", {"favorites": [i.to_dict() for i in items]}
        )

    def remove_favorite(self, video_id: str) -> Dict[str, Any]:
        path = "/api/sync/favorites/" + urllib.parse.quote(video_id, safe="")
        return self._make_request("DELETE", path)

    def sync_playlists(self, items: List[PlaylistItem]) -> Dict[str, Any]:
        return self._make_request(
            "POST", "/api/sync/playlists", {"playlists": [p.to_dict() for p in items]}
        )

    def sync_history(self, items: List[HistoryItem]) -> Dict[str, Any]:
        return self._make_request(
            "POST", "/api/sync/history", {"history": [i.to_dict() for i in items]}
        )

    def sync_settings(self, bundle: SettingsBundle) -> Dict[str, Any]:
        return self._make_request(
            "POST", "/api/sync/settings", {"settings": bundle.to_dict()}
        )

    def sync_library(self, bundle: LibraryBundle) -> Dict[str, Any]:
        return self._make_request("POST", "/api/sync/library", bundle.to_dict())

    # ===== Admin =====

    def admin_get_users(
        self, page: int = 1, limit: int = 20, search: Optional[str] = None
    ) -> Dict[str, Any]:
        query: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            query["search"] = search
        return self._make_request(
            "GET", "/api/admin/users?" + urllib.parse.urlencode(query)
        )

    def admin_get_user(self, user_id: str) -> Dict[str, Any]:
        return self._make_request("GET", f"/api/admin/users/{user_id}")

    def admin_ban_user(self, user_id: str, ban: bool) -> Dict[str, Any]:
        return self._make_request(
            "POST", f"/api/admin/users/{user_id}/ban", {"ban": ban}
        )

    def admin_set_user_admin(self, user_id: str, is_admin: bool) -> Dict[str, Any]:
        return self._make_request(
            "POST", f"/api/admin/users/{user_id}/admin", {"isAdmin": is_admin}
        )

    def admin_get_stats(self) -> Dict[str, Any]:
        return self._make_request("GET", "/api/admin/stats")

    def admin_delete_user(self, user_id: str) -> Dict[str, Any]:
        return self._make_request("DELETE", f"/api/admin/users/{user_id}")

    # ===== Transport =====

    def _make_request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Dict[str, Any]:
        """Make an HTTP(S) request to the sync API.

        Args:
            method: HTTP method
            path: Path below the base URL, including any query string
            data: JSON body (for POST/PUT)
            auth: Whether to send the bearer token

        Returns:
            Dict with success status and response data or error
        """
        url = self.base_url + path
        headers = {"Accept": "application/json"}
        if auth:
            headers["Authorization"] = f"Bearer {self.session.token or ''}"

        try:
            if data is not None:
                headers["Content-Type"] = "application/json"
                request = urllib.request.Request(
                    url,
                    data=json.dumps(data).encode("utf-8"),
                    method=method,
                    headers=headers,
                )
            else:
                request = urllib.request.Request(url, method=method, headers=headers)

            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                status = response.status
                body = response.read().decode("utf-8")

            response_data = json.loads(body) if body else {}
            return {"success": True, "data": response_data, "status": status}

        except urllib.error.HTTPError as e:
            if e.code == 403:
                logger.warning(f"Request to {url} returned 403; clearing session")
                self.session.clear()
                return {"success": False, "error": BANNED_MESSAGE, "status": 403}
            try:
                error_data = json.loads(e.read().decode("utf-8"))
                error_msg = error_data.get("error", f"HTTP {e.code}: {e.reason}")
            except (ValueError, AttributeError, OSError):
                error_msg = f"HTTP {e.code}: {e.reason}"

            logger.error(f"Request to {url} failed: {error_msg}")
            return {"success": False, "error": error_msg, "status": e.code}

        except urllib.error.URLError as e:
            error_msg = f"Connection failed to {url}: {e.reason}"
            logger.error(error_msg)
            return {"success": False, "error": error_msg, "status": None}

        except Exception as e:
            error_msg = f"Request to {url} failed: {e}"
            logger.error(error_msg)
            return {"success": False, "error": error_msg, "status": None}
