"""Sync status and result types.

SyncState is the user-visible status of the most recent explicit sync
pass. CollectionOutcome and SyncResult carry the per-collection detail
of a pass back to the caller.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

__all__ = [
    "SyncStatus",
    "SyncState",
    "SyncDirection",
    "SyncError",
    "CollectionOutcome",
    "SyncResult",
    "FAVORITES",
    "PLAYLISTS",
    "HISTORY",
    "LIBRARY",
    "SETTINGS",
    "DOWNLOAD_ORDER",
    "UPLOAD_ORDER",
]

FAVORITES = "favorites"
PLAYLISTS = "playlists"
HISTORY = "history"
LIBRARY = "library"
SETTINGS = "settings"

# Favorites and history create the songs that playlists reference.
DOWNLOAD_ORDER = (FAVORITES, HISTORY, PLAYLISTS, LIBRARY, SETTINGS)
UPLOAD_ORDER = (FAVORITES, PLAYLISTS, HISTORY, LIBRARY, SETTINGS)


class SyncStatus(Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncState:
    """Status plus a short message (success text or failure reason)."""

    status: SyncStatus = SyncStatus.IDLE
    message: Optional[str] = None

    @classmethod
    def idle(cls) -> "SyncState":
        return cls(SyncStatus.IDLE)

    @classmethod
    def syncing(cls) -> "SyncState":
        return cls(SyncStatus.SYNCING)

    @classmethod
    def success(cls, message: str) -> "SyncState":
        return cls(SyncStatus.SUCCESS, message)

    @classmethod
    def failed(cls, reason: str) -> "SyncState":
        return cls(SyncStatus.FAILED, reason)


class SyncDirection(Enum):
    FULL = "full"
    UPLOAD = "upload"
    DOWNLOAD = "download"


class SyncError(Exception):
    """A pass-level failure, e.g. the snapshot could not be fetched."""


@dataclass
class CollectionOutcome:
    """What happened to one collection during a pass.

    Attributes:
        collection: Collection name ("favorites", "playlists", ...)
        succeeded: Items merged or uploaded
        failed_keys: Keys of individual items that could not be merged
        error: Collection-level failure; None if the collection went through
        skipped: True if the collection was not attempted
        phase: "download" or "upload"
    """

    collection: str
    succeeded: int = 0
    failed_keys: List[str] = field(default_factory=list)
    error: Optional[str] = None
    skipped: bool = False
    phase: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


@dataclass
class SyncResult:
    """Result of a sync pass."""

    success: bool
    direction: SyncDirection
    outcomes: List[CollectionOutcome] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    message: str = ""

    def outcome(
        self, collection: str, phase: Optional[str] = None
    ) -> Optional[CollectionOutcome]:
        for o in self.outcomes:
            if o.collection == collection and phase in (None, o.phase):
                return o
        return None

    @property
    def failed_item_count(self) -> int:
        return sum(len(o.failed_keys) for o in self.outcomes)
