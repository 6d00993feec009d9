# trefa/services/local_store.py
# -*- coding: utf-8 -*-
import os, json, tempfile
from threading import RLock
from typing import Any, Callable, Optional


class LocalStore:
    """
    Small key/value store persisted as one JSON file. Plays the part the
    browser's localStorage plays for the SPA: survives restarts, no expiry.

    The file is re-read whenever another process has replaced it, and
    `update()` applies its change to that fresh copy, so several workers
    sharing the file do not overwrite each other's keys. There is no
    cross-process lock: two workers updating the same key at the same
    instant can still lose one of the writes.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = RLock()
        self._data: Optional[dict] = None  # lazy load
        self._stamp: Optional[tuple] = None

    def _disk_stamp(self) -> Optional[tuple]:
        # every save is a fresh file, so the inode changes even when the mtime does not
        try:
            st = os.stat(self.path)
        except OSError:
            return None
        return st.st_ino, st.st_mtime_ns, st.st_size

    def _ensure_loaded(self):
        with self._lock:
            stamp = self._disk_stamp()
            if self._data is not None and stamp == self._stamp:
                return
            data = {}
            if stamp is not None:
                try:
                    with open(self.path, "r", encoding="utf-8") as f:
                        data = json.load(f)
                except (OSError, ValueError):
                    data = {}
            self._data = data if isinstance(data, dict) else {}
            self._stamp = stamp

    def _save(self):
        folder = os.path.dirname(self.path) or "."
        os.makedirs(folder, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=folder, prefix=os.path.basename(self.path) + ".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, ensure_ascii=False)
            os.replace(tmp, self.path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)
        self._stamp = self._disk_stamp()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            self._ensure_loaded()
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._ensure_loaded()
            self._data[key] = value
            self._save()

    def update(self, key: str, fn: Callable[[Any], Any], default: Any = None) -> Any:
        """Read-modify-write one key against the current file; returns the new value."""
        with self._lock:
            self._ensure_loaded()
            value = fn(self._data.get(key, default))
            self._data[key] = value
            self._save()
            return value

    def remove(self, key: str) -> None:
        with self._lock:
            self._ensure_loaded()
            if self._data.pop(key, None) is not None:
                self._save()
