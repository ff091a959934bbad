"""Authenticated session state.

A Session holds the bearer token and the signed-in user. It is created
once at start-up and handed to the API client (which writes it) and the
sync engine (which only reads it and listens for logout).

When a store path is given, the token and user are written to a JSON
file on every change and restored on construction.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional

from .api_models import UserInfo

logger = logging.getLogger(__name__)

__all__ = ["Session", "TokenListener"]

TokenListener = Callable[[Optional[str]], None]


class Session:
    """Observable holder for the auth token and current user."""

    def __init__(self, store_path: Optional[Path] = None) -> None:
        self._lock = threading.Lock()
        self._listeners: List[TokenListener] = []
        self._token: Optional[str] = None
        self._user: Optional[UserInfo] = None
        self.store_path = Path(store_path) if store_path else None
        self._restore()

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[UserInfo]:
        return self._user

    @property
    def is_logged_in(self) -> bool:
        return self._token is not None

    def set(self, token: str, user: Optional[UserInfo] = None) -> None:
        """Store a new token (and user) and notify listeners."""
        with self._lock:
            self._token = token
            self._user = user
            self._persist()
        self._notify(token)

    def update_user(self, user: UserInfo) -> None:
        """Replace the stored user without touching the token."""
        with self._lock:
            self._user = user
            self._persist()

    def clear(self) -> None:
        """Forget the token and user. Listeners receive None."""
        with self._lock:
            was_logged_in = self._token is not None
            self._token = None
            self._user = None
            self._persist()
        if was_logged_in:
            logger.info("Session cleared")
            self._notify(None)

    def subscribe(self, listener: TokenListener) -> Callable[[], None]:
        """Register a token listener.

        Returns:
            A function that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, token: Optional[str]) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(token)
            except Exception as e:
                logger.warning(f"Session listener failed: {e}")

    def _persist(self) -> None:
        if self.store_path is None:
            return
        data = {
            "token": self._token,
            "user": self._user.to_dict() if self._user else None,
        }
        try:
            self.store_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.store_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not save session to {self.store_path}: {e}")

    def _restore(self) -> None:
        if self.store_path is None or not self.store_path.exists():
            return
        try:
            with open(self.store_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._token = data.get("token") or None
            user_data = data.get("user")
            self._user = UserInfo.from_dict(user_data) if user_data else None
        except (OSError, ValueError, KeyError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable session file {self.store_path}: {e}")
            self._token = None
            self._user = None
