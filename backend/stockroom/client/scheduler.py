# Overview: Sync state machine and background ticker for the replica client.

from __future__ import annotations

import logging
import threading
from enum import IntEnum

from .errors import ConsistencyError, TransientSyncError

logger = logging.getLogger(__name__)


class SyncState(IntEnum):
    ERROR = -1
    DISCONNECTED = 0
    CONNECTING = 1
    CONNECTED = 2
    SYNCING = 3
    ERROR_WILL_RETRY = 4


class SyncClient:
    """
    Keeps a LocalReplica current by pulling from a transport.

    - connect() pulls once, then every interval_seconds on a daemon thread.
    - At most one pull runs at a time; a tick that finds a pull in flight is
      skipped rather than queued.
    - disconnect() stops the ticker but lets an in-flight pull finish and
      apply.
    - Transient failures leave the watermark alone and retry on the next tick
      (ERROR_WILL_RETRY), or stop in ERROR when disconnected.
    - Consistency failures wipe the replica, so the next pull is a full
      resync from revision 0.

    Listeners are called as listener(state) on every state change, from
    whichever thread caused it.
    """

    def __init__(self, transport, replica, *, interval_seconds: float = 10.0):
        self.transport = transport
        self.replica = replica
        self.interval_seconds = interval_seconds
        self.last_error: Exception | None = None

        self._state = SyncState.DISCONNECTED
        self._connected = False
        self._listeners = []
        self._state_lock = threading.Lock()
        self._sync_lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------
    # State and listeners
    # ------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._connected

    def add_listener(self, listener):
        """Register listener; returns a callable that removes it again."""
        with self._state_lock:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener) -> None:
        with self._state_lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _set_state(self, state: SyncState) -> None:
        with self._state_lock:
            if state == self._state:
                return
            previous, self._state = self._state, state
            listeners = list(self._listeners)

        logger.info("Sync state %s -> %s", previous.name, state.name)
        for listener in listeners:
            try:
                listener(state)
            except Exception:
                logger.exception("Sync state listener failed")

    def _failed_state(self) -> SyncState:
        return SyncState.ERROR_WILL_RETRY if self._connected else SyncState.ERROR

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> bool | None:
        """Start syncing. Returns the result of the initial pull (see sync_now)."""
        if self._connected:
            return self.sync_now()

        self._connected = True
        # Each connection gets its own stop event; a ticker left over from an
        # earlier connection keeps seeing its event set and exits.
        self._stop = threading.Event()
        self._set_state(SyncState.CONNECTING)

        # Writes go straight to the server; a journaled local write (see
        # LocalReplica.record_local_change) means the replica was edited locally.
        pending = self.replica.pending_local_changes()
        if pending:
            logger.error("Replica has %d unsynced local changes, resetting", len(pending))
            self.replica.wipe()

        result = self._try_sync()

        self._thread = threading.Thread(
            target=self._run, args=(self._stop,), name="stockroom-sync", daemon=True
        )
        self._thread.start()
        return result

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        self._stop.set()

        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval_seconds + 1)

        # An in-flight pull sets the final state itself when it completes.
        if self._sync_lock.acquire(blocking=False):
            try:
                self._set_state(SyncState.DISCONNECTED)
            finally:
                self._sync_lock.release()

    def reset(self) -> bool | None:
        """Disconnect, wipe the replica and its watermark, then connect again."""
        self.disconnect()
        with self._sync_lock:
            self.replica.wipe()
        return self.connect()

    def close(self) -> None:
        self.disconnect()
        self.transport.close()

    # ------------------------------------------------------------------
    # Pulling
    # ------------------------------------------------------------------

    def sync_now(self) -> bool | None:
        """
        Pull and apply once.

        Returns True if a batch was applied, False if the pull failed or the
        batch was discarded, and None if another pull was already running.
        Connects first when disconnected.
        """
        if not self._connected:
            return self.connect()
        return self._try_sync()

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval_seconds):
            try:
                self._try_sync()
            except Exception:
                logger.exception("Background sync failed")

    def _try_sync(self) -> bool | None:
        if not self._sync_lock.acquire(blocking=False):
            logger.debug("Sync already in progress; skipping")
            return None
        try:
            return self._pull_once()
        finally:
            self._sync_lock.release()

    def _pull_once(self) -> bool:
        self._set_state(SyncState.SYNCING)
        watermark = self.replica.watermark

        try:
            result = self.transport.pull(watermark)
            if watermark is not None and result.new_watermark < watermark:
                raise ConsistencyError(
                    f"server revision {result.new_watermark} is behind replica watermark {watermark}"
                )
            applied = self.replica.apply_changes(
                result.changes,
                expected_watermark=watermark,
                new_watermark=result.new_watermark,
            )
        except TransientSyncError as exc:
            logger.warning("Transient sync failure: %s", exc)
            self.last_error = exc
            self._set_state(self._failed_state())
            return False
        except ConsistencyError as exc:
            logger.error("Replica out of sync, resetting: %s", exc)
            self.last_error = exc
            self.replica.wipe()
            self._set_state(self._failed_state())
            return False
        except Exception as exc:
            self.last_error = exc
            self._set_state(self._failed_state())
            raise

        if applied:
            logger.info("Applied %d changes up to revision %d", len(result.changes), result.new_watermark)
        self.last_error = None
        self._set_state(SyncState.CONNECTED if self._connected else SyncState.DISCONNECTED)
        return applied
