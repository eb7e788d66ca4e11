"""Key-value JSON storage for Daily Ritual collections.

Each logical collection lives in its own file under ``<root>/data/<key>.json``.
Loading never raises: missing files, blank files, malformed JSON and I/O
errors all fall back to the caller's default and are logged.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from ritual.dates import is_valid_date
from ritual.fileio import read_json, remove_file, write_json_atomic
from ritual.models import (
    CompletionRecord,
    DailyReview,
    Habit,
    TimedProgress,
    TimerState,
    UserSettings,
)
from ritual.workspace import data_dir, workspace_root

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageKey(str, Enum):
    HABITS = "habits"
    COMPLETIONS = "completions"
    SETTINGS = "settings"
    TIMER_STATE = "timer_state"
    TIMED_PROGRESS = "timed_progress"
    DAILY_REVIEWS = "daily_reviews"


class JsonFileStorage:
    """Durable storage adapter: ``load(key, default)`` / ``save(key, value)``."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = root if root is not None else workspace_root()

    def path_for(self, key: StorageKey | str) -> Path:
        return data_dir(self.root) / f"{StorageKey(key).value}.json"

    def load(self, key: StorageKey | str, default: Any = None) -> Any:
        path = self.path_for(key)
        try:
            data = read_json(path)
        except json.JSONDecodeError as e:
            logger.warning("Malformed JSON in %s, using default: %s", path, e)
            return default
        except OSError as e:
            logger.warning("Could not read %s, using default: %s", path, e)
            return default
        return default if data is None else data

    def save(self, key: StorageKey | str, value: Any) -> None:
        write_json_atomic(self.path_for(key), value)

    def remove(self, key: StorageKey | str) -> None:
        remove_file(self.path_for(key))

    def clear_all(self) -> None:
        """Delete every collection (development reset)."""
        for key in StorageKey:
            try:
                self.remove(key)
            except OSError as e:
                logger.error("Could not remove %s: %s", self.path_for(key), e)

    # ── Typed loaders ─────────────────────────────────────────

    def _load_list(self, key: StorageKey) -> list[dict[str, Any]]:
        data = self.load(key, [])
        if not isinstance(data, list):
            logger.warning("Expected a list in %s, got %s", key.value, type(data).__name__)
            return []
        return [item for item in data if isinstance(item, dict)]

    def _load_dated(self, key: StorageKey, model: type[T]) -> list[T]:
        """Typed records from *key*, minus any whose ``date`` is not YYYY-MM-DD."""
        records = [model.from_dict(d) for d in self._load_list(key)]
        kept = [r for r in records if is_valid_date(r.date)]
        if len(kept) != len(records):
            logger.warning("Dropped %d %s entries with a bad date", len(records) - len(kept), key.value)
        return kept

    def load_habits(self) -> list[Habit]:
        return [Habit.from_dict(d) for d in self._load_list(StorageKey.HABITS)]

    def load_completions(self) -> list[CompletionRecord]:
        return self._load_dated(StorageKey.COMPLETIONS, CompletionRecord)

    def load_timed_progress(self) -> list[TimedProgress]:
        return self._load_dated(StorageKey.TIMED_PROGRESS, TimedProgress)

    def load_daily_reviews(self) -> list[DailyReview]:
        return self._load_dated(StorageKey.DAILY_REVIEWS, DailyReview)

    def load_settings(self) -> UserSettings:
        return UserSettings.from_dict(self.load(StorageKey.SETTINGS, {}))

    def load_timer_state(self) -> TimerState | None:
        data = self.load(StorageKey.TIMER_STATE)
        state = TimerState.from_dict(data)
        return None if state.is_idle else state


# ── Export / import ───────────────────────────────────────────


def export_data(storage: JsonFileStorage, now: datetime) -> str:
    """Serialize habits and completions into one JSON backup document."""
    return json.dumps(
        {
            "habits": [h.to_dict() for h in storage.load_habits()],
            "completions": [c.to_dict() for c in storage.load_completions()],
            "exportedAt": now.isoformat(timespec="seconds"),
        },
        indent=2,
        ensure_ascii=False,
    )


def import_data(storage: JsonFileStorage, text: str) -> bool:
    """Restore habits and completions from a backup. Returns False if rejected.

    Both arrays must be present; anything else leaves storage untouched.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Import rejected, not valid JSON: %s", e)
        return False

    if not isinstance(data, dict):
        logger.warning("Import rejected, top level is not an object")
        return False
    habits, completions = data.get("habits"), data.get("completions")
    if not isinstance(habits, list) or not isinstance(completions, list):
        logger.warning("Import rejected, habits and completions arrays are required")
        return False

    records = [CompletionRecord.from_dict(c) for c in completions if isinstance(c, dict)]
    records = [r for r in records if is_valid_date(r.date)]
    try:
        storage.save(
            StorageKey.HABITS,
            [Habit.from_dict(h).to_dict() for h in habits if isinstance(h, dict)],
        )
        storage.save(StorageKey.COMPLETIONS, [r.to_dict() for r in records])
    except OSError as e:
        logger.error("Import failed while writing: %s", e)
        return False
    logger.info("Imported %d habits and %d completions", len(habits), len(records))
    return True
