"""Sync engine: keeps the local library and the remote account in step.

Three kinds of pass:

- full: download-merge, then upload-overwrite
- upload-only: upload-overwrite of every collection
- download-only: download-merge

Explicit passes (``trigger_*``) run on the caller's thread and publish
their progress through SyncState. Periodic passes (upload-only) and
mutation uploads (one collection) run in the background and are silent.
All passes take the same lock, so they never overlap.

Logging out, or a 403 that forces a logout, stops the periodic worker,
cancels queued mutation uploads and makes an in-flight pass abandon its
remaining collections.

CRITICAL: This module must have NO Flask dependencies.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, List, Optional, Set, Union

from .api_client import ApiClient
from .config import Config
from .database import Database
from .merge import merge_snapshot
from .models import MutationKind
from .session import Session
from .sync_state import (
    UPLOAD_ORDER,
    CollectionOutcome,
    SyncDirection,
    SyncError,
    SyncResult,
    SyncState,
    SyncStatus,
)
from .upload import upload_collection

logger = logging.getLogger(__name__)

__all__ = ["SyncEngine", "StateListener", "SyncState", "SyncStatus", "SyncResult"]

StateListener = Callable[[SyncState], None]

DEFAULT_HISTORY_LIMIT = 100
DEFAULT_LIBRARY_LIMIT = 1000
DEFAULT_INTERVAL_SECONDS = 300.0

_SUCCESS_MESSAGES = {
    SyncDirection.FULL: "Full sync completed",
    SyncDirection.UPLOAD: "Upload completed",
    SyncDirection.DOWNLOAD: "Download completed",
}

_FAILURE_VERBS = {
    SyncDirection.FULL: "Sync",
    SyncDirection.UPLOAD: "Upload",
    SyncDirection.DOWNLOAD: "Download",
}


class SyncEngine:
    """Coordinates sync passes for one signed-in account.

    Args:
        client: API client sharing ``session``
        session: Session holding the token; read-only here
        db: Local library
        config: Optional config supplying limits and the periodic interval
        history_limit: Max history entries per upload
        library_limit: Max items per library sub-collection per upload
    """

    def __init__(
        self,
        client: ApiClient,
        session: Session,
        db: Database,
        config: Optional[Config] = None,
        history_limit: Optional[int] = None,
        library_limit: Optional[int] = None,
    ) -> None:
        self.client = client
        self.session = session
        self.db = db
        self.config = config

        if history_limit is None:
            history_limit = config.get_history_limit() if config else DEFAULT_HISTORY_LIMIT
        if library_limit is None:
            library_limit = config.get_library_limit() if config else DEFAULT_LIBRARY_LIMIT
        self.history_limit = history_limit
        self.library_limit = library_limit
        self.interval = config.get_sync_interval() if config else DEFAULT_INTERVAL_SECONDS

        self._state = SyncState.idle()
        self._state_lock = threading.Lock()
        self._state_listeners: List[StateListener] = []

        self._pass_lock = threading.Lock()
        self._cancelled = threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hysync-upload")
        self._pending: Set[Future] = set()
        self._pending_lock = threading.Lock()
        self._shut_down = False

        self._periodic_thread: Optional[threading.Thread] = None
        self._periodic_stop: Optional[threading.Event] = None

        self.last_sync_time: Optional[str] = db.get_last_sync_time()
        self._unsubscribe = session.subscribe(self._on_token_changed)

    # ===== State =====

    @property
    def state(self) -> SyncState:
        return self._state

    def add_state_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback for SyncState changes.

        Returns:
            A function that removes the listener again
        """
        with self._state_lock:
            self._state_listeners.append(listener)

        def remove() -> None:
            with self._state_lock:
                if listener in self._state_listeners:
                    self._state_listeners.remove(listener)

        return remove

    def _set_state(self, state: SyncState) -> None:
        with self._state_lock:
            self._state = state
            listeners = list(self._state_listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception as e:
                logger.warning(f"Sync state listener failed: {e}")

    # ===== Explicit passes =====

    def trigger_full_sync(self) -> Optional[SyncResult]:
        """Download-merge, then upload-overwrite. None if logged out."""
        return self._run_pass(SyncDirection.FULL, report=True)

    def trigger_upload_only(self) -> Optional[SyncResult]:
        return self._run_pass(SyncDirection.UPLOAD, report=True)

    def trigger_download_only(self) -> Optional[SyncResult]:
        return self._run_pass(SyncDirection.DOWNLOAD, report=True)

    def on_login_success(self) -> Optional[Future]:
        """Run a full sync in the background after sign-in.

        Also starts periodic sync when the config enables it.
        """
        if not self.session.is_logged_in:
            return None
        if self.config is not None and self.config.is_periodic_sync_enabled():
            self.start_periodic_sync()
        return self._submit(self.trigger_full_sync)

    # ===== Background work =====

    def on_local_mutation(
        self, kind: Union[MutationKind, str]
    ) -> Optional[Future]:
        """Upload one collection in the background after a local edit.

        Returns:
            Future resolving to the collection's CollectionOutcome, or None
            if logged out
        """
        kind = MutationKind(kind)
        if not self.session.is_logged_in:
            return None
        return self._submit(self._upload_single, kind.value)

    def _submit(self, fn: Callable, *args) -> Optional[Future]:
        with self._pending_lock:
            if self._shut_down:
                return None
            future = self._executor.submit(fn, *args)
            self._pending.add(future)
        future.add_done_callback(self._forget_future)
        return future

    def _forget_future(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def _cancel_pending(self) -> int:
        with self._pending_lock:
            pending = list(self._pending)
        cancelled = sum(1 for f in pending if f.cancel())
        if cancelled:
            logger.info(f"Cancelled {cancelled} queued uploads")
        return cancelled

    def _upload_single(self, collection: str) -> CollectionOutcome:
        with self._pass_lock:
            if not self._can_continue():
                return CollectionOutcome(collection, skipped=True, phase="upload")
            try:
                return upload_collection(
                    self.client,
                    self.db,
                    collection,
                    self.history_limit,
                    self.library_limit,
                )
            except Exception as e:
                logger.debug(f"Background upload of {collection} failed: {e}")
                return CollectionOutcome(collection, error=str(e), phase="upload")

    def start_periodic_sync(self, interval: Optional[float] = None) -> None:
        """Start uploading every ``interval`` seconds while logged in.

        Does nothing if the worker is already running.
        """
        if self._periodic_thread is not None and self._periodic_thread.is_alive():
            return
        interval = self.interval if interval is None else interval
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._periodic_loop,
            args=(interval, stop_event),
            name="hysync-periodic",
            daemon=True,
        )
        self._periodic_stop = stop_event
        self._periodic_thread = thread
        thread.start()
        logger.info(f"Periodic sync started (every {interval}s)")

    def stop_periodic_sync(self, wait: bool = True) -> None:
        """Stop the periodic worker.

        Args:
            wait: Join the worker thread (skipped when called from the worker)
        """
        stop_event, thread = self._periodic_stop, self._periodic_thread
        if stop_event is None:
            return
        stop_event.set()
        self._periodic_stop = None
        self._periodic_thread = None
        if wait and thread is not None and thread is not threading.current_thread():
            thread.join()
        logger.info("Periodic sync stopped")

    @property
    def is_periodic_running(self) -> bool:
        return self._periodic_thread is not None and self._periodic_thread.is_alive()

    def _periodic_loop(self, interval: float, stop_event: threading.Event) -> None:
        while not stop_event.wait(interval):
            if not self.session.is_logged_in:
                continue
            try:
                result = self._run_pass(SyncDirection.UPLOAD, report=False)
                if result is not None and not result.success:
                    logger.debug(f"Periodic upload failed: {result.message}")
            except Exception as e:
                logger.debug(f"Periodic upload failed: {e}")

    def shutdown(self) -> None:
        """Stop the periodic worker and drop queued uploads."""
        self.stop_periodic_sync()
        with self._pending_lock:
            self._shut_down = True
        self._cancel_pending()
        self._executor.shutdown(wait=True)
        self._unsubscribe()

    # ===== Session =====

    def _on_token_changed(self, token: Optional[str]) -> None:
        if token is None:
            logger.info("Logged out; stopping background sync")
            self._cancelled.set()
            self._cancel_pending()
            # The worker may be blocked behind a pass that triggered this logout.
            self.stop_periodic_sync(wait=False)
        else:
            self._cancelled.clear()

    def _can_continue(self) -> bool:
        return self.session.is_logged_in and not self._cancelled.is_set()

    # ===== Passes =====

    def _run_pass(self, direction: SyncDirection, report: bool) -> Optional[SyncResult]:
        with self._pass_lock:
            if not self.session.is_logged_in:
                logger.debug(f"Skipping {direction.value} sync: not logged in")
                return None

            if report:
                self._set_state(SyncState.syncing())

            outcomes: List[CollectionOutcome] = []
            try:
                if direction in (SyncDirection.FULL, SyncDirection.DOWNLOAD):
                    outcomes.extend(self._download())
                if direction in (SyncDirection.FULL, SyncDirection.UPLOAD):
                    outcomes.extend(self._upload())
            except SyncError as e:
                return self._fail(direction, outcomes, str(e), report)
            except Exception as e:
                logger.error(f"Unexpected error during {direction.value} sync: {e}")
                return self._fail(
                    direction, outcomes, f"{_FAILURE_VERBS[direction]} failed: {e}", report
                )

            failed = [o for o in outcomes if o.error]
            skipped = [o for o in outcomes if o.skipped]
            if failed:
                names = ", ".join(o.collection for o in failed)
                reason = f"{_FAILURE_VERBS[direction]} failed for {names}: {failed[0].error}"
                return self._fail(direction, outcomes, reason, report)
            if skipped:
                return self._fail(
                    direction, outcomes, f"{_FAILURE_VERBS[direction]} cancelled", report
                )

            message = _SUCCESS_MESSAGES[direction]
            failed_items = sum(len(o.failed_keys) for o in outcomes)
            if failed_items:
                message += f" ({failed_items} items could not be merged)"
            self.last_sync_time = self.db.update_last_sync_time()
            logger.info(message)
            result = SyncResult(True, direction, outcomes, [], message)
            if report:
                self._set_state(SyncState.success(message))
            return result

    def _fail(
        self,
        direction: SyncDirection,
        outcomes: List[CollectionOutcome],
        reason: str,
        report: bool,
    ) -> SyncResult:
        logger.warning(reason)
        errors = [f"{o.collection}: {o.error}" for o in outcomes if o.error] or [reason]
        if report:
            self._set_state(SyncState.failed(reason))
        return SyncResult(False, direction, outcomes, errors, reason)

    def _download(self) -> List[CollectionOutcome]:
        result = self.client.sync_get_all()
        if not result["success"]:
            raise SyncError(f"Download failed: {result.get('error') or 'Unknown error'}")
        snapshot = result["data"]
        logger.debug("Fetched remote snapshot, merging")
        return merge_snapshot(self.db, snapshot, should_continue=self._can_continue)

    def _upload(self) -> List[CollectionOutcome]:
        """Upload every collection in order, abandoning the rest after logout."""
        outcomes = []
        for collection in UPLOAD_ORDER:
            if not self._can_continue():
                outcomes.append(CollectionOutcome(collection, skipped=True, phase="upload"))
                continue
            try:
                outcome = upload_collection(
                    self.client,
                    self.db,
                    collection,
                    self.history_limit,
                    self.library_limit,
                )
            except Exception as e:
                logger.error(f"Upload of {collection} raised: {e}")
                outcome = CollectionOutcome(collection, error=str(e), phase="upload")
            outcomes.append(outcome)
        return outcomes

