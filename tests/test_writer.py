"""Tests for ritual/writer.py: ordered background persistence."""

import logging

from ritual.storage import StorageKey
from ritual.writer import PersistenceQueue, SyncWriter


class FailingStorage:
    def __init__(self):
        self.calls = []

    def save(self, key, value):
        self.calls.append(("save", key))
        raise OSError("disk full")

    def remove(self, key):
        self.calls.append(("remove", key))
        raise OSError("read-only")


class RecordingStorage:
    def __init__(self):
        self.calls = []

    def save(self, key, value):
        self.calls.append(("save", key, value))

    def remove(self, key):
        self.calls.append(("remove", key))


def test_last_write_wins(storage):
    writer = PersistenceQueue(storage)
    writer.put(StorageKey.HABITS, [{"id": "a", "name": "First"}])
    writer.put(StorageKey.HABITS, [{"id": "b", "name": "Second"}])
    writer.flush()
    assert [h.id for h in storage.load_habits()] == ["b"]
    writer.close()


def test_writes_applied_in_order():
    backend = RecordingStorage()
    writer = PersistenceQueue(backend)
    writer.put("habits", [1])
    writer.delete("timer_state")
    writer.put("completions", [2])
    writer.close()
    assert backend.calls == [
        ("save", "habits", [1]),
        ("remove", "timer_state"),
        ("save", "completions", [2]),
    ]


def test_failed_write_is_logged_not_raised(caplog):
    writer = PersistenceQueue(FailingStorage())
    with caplog.at_level(logging.ERROR):
        writer.put(StorageKey.COMPLETIONS, [])
        writer.flush()
    writer.close()
    assert writer.failed_writes == 1
    assert "Failed to persist completions" in caplog.text


def test_put_after_close_is_dropped():
    backend = RecordingStorage()
    writer = PersistenceQueue(backend)
    writer.close()
    writer.put("habits", [])
    writer.delete("habits")
    writer.close()  # second close is harmless
    assert backend.calls == []


def test_sync_writer_swallows_errors():
    writer = SyncWriter(FailingStorage())
    writer.put(StorageKey.SETTINGS, {})
    writer.delete(StorageKey.TIMER_STATE)
    assert writer.failed_writes == 2


def test_sync_writer_writes_inline(storage):
    writer = SyncWriter(storage)
    writer.put(StorageKey.SETTINGS, {"timerEndSound": "bell"})
    assert storage.load_settings().timer_end_sound == "bell"
    writer.delete(StorageKey.SETTINGS)
    assert not storage.path_for(StorageKey.SETTINGS).exists()
