"""Shared test fixtures for Daily Ritual tests."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from ritual.storage import JsonFileStorage
from ritual.store import RitualStore
from ritual.workspace import ensure_workspace
from ritual.writer import SyncWriter


class FakeClock:
    def __init__(self, now: datetime) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: Any) -> None:
        self.current += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.celebrations: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.schedules: list[Any] = []

    def celebrate(self, date: str) -> None:
        self.celebrations.append(date)

    def feedback(self, event: str, **context: Any) -> None:
        self.events.append((event, context))

    def schedule_reminders(self, settings) -> None:
        self.schedules.append(settings)

    def close(self) -> None:
        pass


class MemoryWriter:
    """Keeps the last value per key instead of touching disk."""

    def __init__(self) -> None:
        self.saved: dict[str, Any] = {}
        self.writes = 0

    def put(self, key, value) -> None:
        self.saved[str(getattr(key, "value", key))] = value
        self.writes += 1

    def delete(self, key) -> None:
        self.saved.pop(str(getattr(key, "value", key)), None)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with standard structure."""
    root = ensure_workspace(tmp_path / "workspace")

    # Set env var
    os.environ["RITUAL_ROOT"] = str(root)
    yield root
    # Cleanup
    if "RITUAL_ROOT" in os.environ:
        del os.environ["RITUAL_ROOT"]


@pytest.fixture
def clock() -> FakeClock:
    # Friday; the Monday-based week runs 2024-01-01 .. 2024-01-07.
    return FakeClock(datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def storage(workspace: Path) -> JsonFileStorage:
    return JsonFileStorage(workspace)


@pytest.fixture
def store(storage, notifier, clock) -> RitualStore:
    """Store that writes synchronously, so disk state can be asserted directly."""
    s = RitualStore(storage, notifier=notifier, clock=clock, writer=SyncWriter(storage))
    yield s
    s.close()


@pytest.fixture
def fast_store(storage, notifier, clock) -> RitualStore:
    """Store backed by an in-memory writer, for tick-heavy tests."""
    s = RitualStore(storage, notifier=notifier, clock=clock, writer=MemoryWriter())
    yield s
    s.close()


@pytest.fixture
def reset_ritual_logger():
    """Undo configure_logging so later tests see records through caplog again."""
    yield
    logger = logging.getLogger("ritual")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
