"""Fire-and-forget persistence for the Daily Ritual store.

Mutations enqueue a snapshot of the whole collection and return immediately.
A single worker thread drains the queue in FIFO order, so writes to the same
key land in the order they were made and the last one wins.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Any, Protocol

from ritual.storage import StorageKey

logger = logging.getLogger(__name__)

_REMOVE = object()
_STOP = object()


class Storage(Protocol):
    def save(self, key: StorageKey | str, value: Any) -> None: ...

    def remove(self, key: StorageKey | str) -> None: ...


class PersistenceQueue:
    """Background write queue. ``put``/``delete`` never block or raise."""

    def __init__(self, storage: Storage, name: str = "ritual-writer") -> None:
        self.storage = storage
        self.failed_writes = 0
        self._jobs: queue.Queue[tuple[Any, Any]] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def put(self, key: StorageKey | str, value: Any) -> None:
        """Schedule ``storage.save(key, value)``. *value* must already be a snapshot."""
        if self._closed:
            logger.warning("Write to %s after close was dropped", key)
            return
        self._jobs.put((key, value))

    def delete(self, key: StorageKey | str) -> None:
        if self._closed:
            logger.warning("Delete of %s after close was dropped", key)
            return
        self._jobs.put((key, _REMOVE))

    def flush(self) -> None:
        """Block until every queued write has been attempted."""
        self._jobs.join()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._jobs.put((_STOP, None))
        self._thread.join()

    def _run(self) -> None:
        while True:
            key, value = self._jobs.get()
            try:
                if key is _STOP:
                    return
                if value is _REMOVE:
                    self.storage.remove(key)
                else:
                    self.storage.save(key, value)
            except Exception:
                self.failed_writes += 1
                logger.exception("Failed to persist %s", getattr(key, "value", key))
            finally:
                self._jobs.task_done()


class SyncWriter:
    """Writes inline on the caller's thread. Same contract, errors still swallowed."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self.failed_writes = 0

    def put(self, key: StorageKey | str, value: Any) -> None:
        try:
            self.storage.save(key, value)
        except Exception:
            self.failed_writes += 1
            logger.exception("Failed to persist %s", getattr(key, "value", key))

    def delete(self, key: StorageKey | str) -> None:
        try:
            self.storage.remove(key)
        except Exception:
            self.failed_writes += 1
            logger.exception("Failed to remove %s", getattr(key, "value", key))

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass
