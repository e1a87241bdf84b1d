"""Persistence for the user config: a local store and a shared replica.

LocalStore    -- SQLite key/value table on this machine. Survives restarts.
ReplicaStore  -- a directory shared between the user's machines (synced
                 folder, NFS mount, ...). One file per key, a byte quota,
                 and change notifications when another machine writes.

ReplicaStore.synchronize() compares what is on disk with what it saw last
time and notifies observers with a ChangeReason:
  - INITIAL_SYNC    first scan found data
  - SERVER_CHANGE   a key was written by someone else
  - ACCOUNT_CHANGE  the .account marker changed (different owner)
  - QUOTA_VIOLATION a local write was refused
Its own writes are recorded as seen and never reported back.
"""

import hashlib
import logging
import os
import sqlite3
import tempfile
import threading
from enum import Enum
from typing import Callable, Dict, List, Optional

from config import REPLICA_QUOTA_BYTES, REPLICA_WATCH_INTERVAL
from core.errors import QuotaExceeded

logger = logging.getLogger(__name__)

ACCOUNT_MARKER = ".account"


class ChangeReason(Enum):
    SERVER_CHANGE = "server_change"
    INITIAL_SYNC = "initial_sync"
    QUOTA_VIOLATION = "quota_violation"
    ACCOUNT_CHANGE = "account_change"


# ---------------------------------------------------------------------------
# Local
# ---------------------------------------------------------------------------

class LocalStore:
    """SQLite-backed key/value blobs."""

    def __init__(self, db_path: str = "data/homestats.db"):
        self._db_path = db_path
        self._local = threading.local()
        self._write_lock = threading.Lock()
        self._conns: List[sqlite3.Connection] = []
        directory = os.path.dirname(db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        conn = self._get_conn()
        conn.execute(
            "CREATE TABLE IF NOT EXISTS kv (key TEXT PRIMARY KEY, value BLOB NOT NULL)"
        )
        conn.commit()

    def _get_conn(self) -> sqlite3.Connection:
        """Thread-local connection (SQLite connections are per thread)."""
        if getattr(self._local, "conn", None) is None:
            # closed from whichever thread calls close()
            conn = sqlite3.connect(self._db_path, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            with self._write_lock:
                self._conns.append(conn)
            self._local.conn = conn
        return self._local.conn

    def get(self, key: str) -> Optional[bytes]:
        row = self._get_conn().execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return bytes(row[0]) if row else None

    def set(self, key: str, value: bytes):
        conn = self._get_conn()
        with self._write_lock:
            conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, sqlite3.Binary(value)),
            )
            conn.commit()

    def remove(self, key: str):
        conn = self._get_conn()
        with self._write_lock:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()

    def close(self):
        """Close the connections of every thread that used the store."""
        with self._write_lock:
            conns, self._conns = self._conns, []
        for conn in conns:
            conn.close()
        self._local = threading.local()


# ---------------------------------------------------------------------------
# Replica
# ---------------------------------------------------------------------------

def _digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class ReplicaStore:
    """File-per-key store in a shared directory, with change detection."""

    def __init__(self, directory: str = "data/replica", quota_bytes: int = REPLICA_QUOTA_BYTES):
        self.directory = directory
        self.quota_bytes = quota_bytes
        os.makedirs(directory, exist_ok=True)
        self._lock = threading.RLock()
        self._seen: Optional[Dict[str, str]] = None  # key -> digest
        self._account: Optional[str] = None
        self._observers: List[Callable] = []
        self._stop = threading.Event()
        self._watch_thread: Optional[threading.Thread] = None

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def _read_all(self) -> Dict[str, bytes]:
        entries = {}
        for name in os.listdir(self.directory):
            if not name.endswith(".json"):
                continue
            try:
                with open(os.path.join(self.directory, name), "rb") as f:
                    entries[name[:-5]] = f.read()
            except OSError as exc:
                logger.warning("Replica read failed for %s: %s", name, exc)
        return entries

    def _read_account(self) -> Optional[str]:
        try:
            with open(os.path.join(self.directory, ACCOUNT_MARKER), "r") as f:
                return f.read().strip() or None
        except FileNotFoundError:
            return None

    # ─── Key/value ───

    def get(self, key: str) -> Optional[bytes]:
        try:
            with open(self._path(key), "rb") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: bytes):
        """Write `value` atomically.

        Raises:
            QuotaExceeded: the store would grow past quota_bytes. Observers
                are notified with QUOTA_VIOLATION and nothing is written.
        """
        with self._lock:
            others = sum(len(v) for k, v in self._read_all().items() if k != key)
            over_quota = others + len(value) > self.quota_bytes
            if not over_quota:
                self._write(key, value)

        if over_quota:
            logger.warning(
                "Replica quota exceeded (%d + %d > %d bytes)",
                others, len(value), self.quota_bytes,
            )
            self._notify(ChangeReason.QUOTA_VIOLATION, [key])
            raise QuotaExceeded(f"Replica quota of {self.quota_bytes} bytes exceeded")

    def _write(self, key: str, value: bytes):
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(value)
            os.replace(tmp_path, self._path(key))
        except OSError:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        if self._seen is not None:
            self._seen[key] = _digest(value)

    def remove(self, key: str):
        with self._lock:
            try:
                os.remove(self._path(key))
            except FileNotFoundError:
                pass
            if self._seen is not None:
                self._seen.pop(key, None)

    # ─── Change detection ───

    def observe(self, callback: Callable):
        """callback(reason: ChangeReason, keys: List[str])"""
        with self._lock:
            self._observers.append(callback)

    def _notify(self, reason: ChangeReason, keys: List[str]):
        with self._lock:
            observers = list(self._observers)
        for cb in observers:
            try:
                cb(reason, keys)
            except Exception as exc:
                logger.error("Replica observer error [%s]: %s", reason.value, exc)

    def synchronize(self) -> Optional[ChangeReason]:
        """Scan the directory and notify observers of external changes.

        Returns the reason that was reported, or None when nothing changed.
        """
        with self._lock:
            current = {k: _digest(v) for k, v in self._read_all().items()}
            account = self._read_account()
            first_scan = self._seen is None
            previous = self._seen or {}
            account_changed = not first_scan and account != self._account
            self._seen = current
            self._account = account

        if first_scan:
            if current:
                self._notify(ChangeReason.INITIAL_SYNC, sorted(current))
                return ChangeReason.INITIAL_SYNC
            return None

        if account_changed:
            logger.info("Replica account changed")
            self._notify(ChangeReason.ACCOUNT_CHANGE, sorted(current))
            return ChangeReason.ACCOUNT_CHANGE

        changed = sorted(
            k for k in set(current) | set(previous) if current.get(k) != previous.get(k)
        )
        if changed:
            logger.info("Replica changed externally: %s", ", ".join(changed))
            self._notify(ChangeReason.SERVER_CHANGE, changed)
            return ChangeReason.SERVER_CHANGE
        return None

    def start(self, interval: float = REPLICA_WATCH_INTERVAL):
        """Start the background watcher thread."""
        if self._watch_thread and self._watch_thread.is_alive():
            return
        self._stop.clear()
        self._watch_thread = threading.Thread(
            target=self._watch_loop, args=(interval,), daemon=True, name="replica-watch"
        )
        self._watch_thread.start()
        logger.info("Replica watcher started (dir=%s)", self.directory)

    def stop(self):
        self._stop.set()

    def _watch_loop(self, interval: float):
        while not self._stop.wait(interval):
            try:
                self.synchronize()
            except OSError as exc:
                logger.error("Replica scan error: %s", exc)
