"""Tests for ritual/storage.py: JSON collections, export and import."""

import json
import logging
from datetime import datetime, timezone

from ritual.models import Habit, HabitType, TimerState
from ritual.storage import JsonFileStorage, StorageKey, export_data, import_data
from ritual.store import RitualStore
from ritual.writer import SyncWriter


def test_missing_key_returns_default(storage):
    assert storage.load(StorageKey.HABITS, []) == []
    assert storage.load_settings().timer_end_sound == "vibration"
    assert storage.load_timer_state() is None


def test_save_then_load(storage):
    storage.save(StorageKey.HABITS, [Habit(id="h1", name="Read").to_dict()])
    assert storage.path_for("habits").exists()
    habits = storage.load_habits()
    assert [h.name for h in habits] == ["Read"]


def test_malformed_json_falls_back_and_logs(storage, caplog):
    storage.path_for(StorageKey.COMPLETIONS).write_text("{not json", encoding="utf-8")
    with caplog.at_level(logging.WARNING):
        assert storage.load_completions() == []
    assert "Malformed JSON" in caplog.text


def test_blank_file_is_default(storage):
    storage.path_for(StorageKey.SETTINGS).write_text("   \n", encoding="utf-8")
    assert storage.load(StorageKey.SETTINGS, {"x": 1}) == {"x": 1}


def test_wrong_shape_is_empty(storage):
    storage.save(StorageKey.HABITS, {"id": "not-a-list"})
    assert storage.load_habits() == []
    storage.save(StorageKey.HABITS, [{"id": "ok", "name": "Run"}, "junk", 3])
    assert [h.id for h in storage.load_habits()] == ["ok"]


def test_records_with_bad_dates_are_dropped(storage, caplog):
    storage.save(StorageKey.COMPLETIONS, [
        {"habitId": "a", "date": "2024-01-04"},
        {"habitId": "a"},
        {"habitId": "a", "date": "yesterday"},
        {"habitId": "a", "date": "20240103"},
    ])
    storage.save(StorageKey.TIMED_PROGRESS, [{"habitId": "a", "accumulatedSeconds": 60}])
    with caplog.at_level(logging.WARNING):
        assert [c.date for c in storage.load_completions()] == ["2024-01-04"]
        assert storage.load_timed_progress() == []
    assert "bad date" in caplog.text


def test_stats_survive_bad_stored_date(storage, notifier, clock):
    storage.save(StorageKey.HABITS, [{"id": "a", "name": "Stretch", "type": "daily"}])
    storage.save(StorageKey.COMPLETIONS, [{"habitId": "a", "date": "2024-01-04"}, {"habitId": "a"}])
    store = RitualStore(storage, notifier=notifier, clock=clock, writer=SyncWriter(storage))
    stats = store.get_stats()
    assert stats.total_completions == 1
    assert store.get_longest_streak("a") == 1


def test_idle_timer_state_is_none(storage):
    storage.save(StorageKey.TIMER_STATE, TimerState().to_dict())
    assert storage.load_timer_state() is None


def test_remove_and_clear_all(storage):
    storage.save(StorageKey.HABITS, [])
    storage.save(StorageKey.COMPLETIONS, [])
    storage.remove(StorageKey.HABITS)
    assert not storage.path_for(StorageKey.HABITS).exists()
    storage.remove(StorageKey.HABITS)  # already gone
    storage.clear_all()
    assert not storage.path_for(StorageKey.COMPLETIONS).exists()


def test_default_root_follows_env(workspace):
    assert JsonFileStorage().root == workspace.resolve()


# ── Export / import ───────────────────────────────────────────


def test_export_contains_habits_and_completions(storage):
    storage.save(StorageKey.HABITS, [Habit(id="h1", name="Gym", type=HabitType.WEEKLY).to_dict()])
    storage.save(StorageKey.COMPLETIONS, [{"habitId": "h1", "date": "2024-01-05", "completedAt": "x"}])
    doc = json.loads(export_data(storage, datetime(2024, 1, 5, 20, 0, tzinfo=timezone.utc)))
    assert doc["habits"][0]["targetPerWeek"] == 1
    assert doc["completions"][0]["habitId"] == "h1"
    assert doc["exportedAt"].startswith("2024-01-05T20:00:00")


def test_import_restores_backup(storage):
    backup = {
        "habits": [{"id": "h1", "name": "Stretch", "type": "daily"}],
        "completions": [{"habitId": "h1", "date": "2024-01-04", "completedAt": "x"}],
        "exportedAt": "2024-01-04T21:00:00+00:00",
    }
    assert import_data(storage, json.dumps(backup)) is True
    assert [h.name for h in storage.load_habits()] == ["Stretch"]
    assert [c.date for c in storage.load_completions()] == ["2024-01-04"]


def test_import_rejects_incomplete_backup(storage):
    storage.save(StorageKey.HABITS, [{"id": "keep", "name": "Keep"}])
    assert import_data(storage, json.dumps({"habits": []})) is False
    assert import_data(storage, "not json") is False
    assert import_data(storage, json.dumps([1, 2])) is False
    assert import_data(storage, json.dumps({"habits": {}, "completions": []})) is False
    assert [h.id for h in storage.load_habits()] == ["keep"]


def test_import_skips_undated_completions(storage):
    backup = {
        "habits": [{"id": "h1", "name": "Stretch"}],
        "completions": [{"habitId": "h1", "date": "2024-01-04"}, {"habitId": "h1", "date": ""}],
    }
    assert import_data(storage, json.dumps(backup)) is True
    assert [c.date for c in storage.load_completions()] == ["2024-01-04"]
