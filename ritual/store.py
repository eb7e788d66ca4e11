"""The Daily Ritual state engine.

``RitualStore`` owns the canonical in-memory collections (habits, completions,
timed progress, daily reviews, settings) and the single timer session. Every
operation is read-modify-persist: build the new collection, swap it in, hand a
snapshot to the write queue, notify listeners. Callers never wait on disk, and
a failed write does not roll anything back.

All methods are meant to be called from one logical thread (the UI event
loop). Validation problems and unknown ids are silent no-ops that return
None/False; they are logged, never raised.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

from ritual.dates import get_longest_streak, get_streak
from ritual.hooks import HookNotifier, Notifier
from ritual.metrics import (
    STREAK_RISK_THRESHOLD,
    active_habits,
    compute_stats,
    daily_habits,
    day_completion_rate,
    streaks_at_risk,
    weekly_progress,
)
from ritual.models import (
    DEFAULT_TARGET_DURATION,
    DEFAULT_TARGET_PER_WEEK,
    NOTIFICATION_FIELDS,
    CompletionRecord,
    DailyReview,
    Habit,
    HabitType,
    StatsSummary,
    StreakAtRisk,
    TimedProgress,
    TimerState,
    UserSettings,
    WeeklyProgress,
    clamp_rating,
)
from ritual.storage import JsonFileStorage, StorageKey
from ritual.workspace import now_local
from ritual.writer import PersistenceQueue

logger = logging.getLogger(__name__)

Listener = Callable[[str], None]

# Topics passed to listeners; each matches the collection that changed.
TOPICS = ("habits", "completions", "timed_progress", "timer", "settings", "daily_reviews")

EDITABLE_HABIT_FIELDS = frozenset({
    "name", "target_per_week", "target_duration", "why", "order", "archived",
})


def _new_id() -> str:
    return uuid.uuid4().hex


class RitualStore:
    def __init__(
        self,
        storage: JsonFileStorage,
        notifier: Notifier | None = None,
        clock: Callable[[], datetime] | None = None,
        writer: Any | None = None,
    ) -> None:
        self.storage = storage
        self.notifier = notifier if notifier is not None else HookNotifier(storage.root)
        self._clock = clock or (lambda: now_local(storage.root))
        self.writer = writer if writer is not None else PersistenceQueue(storage)
        self._listeners: list[Listener] = []

        self.habits: list[Habit] = []
        self.completions: list[CompletionRecord] = []
        self.timed_progress: list[TimedProgress] = []
        self.daily_reviews: list[DailyReview] = []
        self.settings = UserSettings()
        self.timer_state = TimerState()
        self.reload()

    # ── Lifecycle ─────────────────────────────────────────────

    def reload(self) -> None:
        """(Re)load every collection from storage. Unreadable data loads as empty."""
        self.habits = self.storage.load_habits()
        self.completions = self.storage.load_completions()
        self.timed_progress = self.storage.load_timed_progress()
        self.daily_reviews = self.storage.load_daily_reviews()
        self.settings = self.storage.load_settings()

        saved = self.storage.load_timer_state()
        today = self.today()
        if saved is not None and saved.date == today:
            # A restored session always comes back paused.
            self.timer_state = dataclasses.replace(saved, is_running=True, is_paused=True)
            logger.info("Restored timer for %s at %ss", saved.habit_name, saved.elapsed_time)
        else:
            if saved is not None:
                logger.info("Discarding stale timer from %s", saved.date)
                self.writer.delete(StorageKey.TIMER_STATE)
            self.timer_state = TimerState()

        logger.info(
            "Loaded %d habits, %d completions, %d progress entries",
            len(self.habits), len(self.completions), len(self.timed_progress),
        )
        for topic in TOPICS:
            self._emit(topic)

    def close(self) -> None:
        """Drop listeners, then drain the write and hook queues."""
        self._listeners.clear()
        self.writer.close()
        self.notifier.close()

    def flush(self) -> None:
        self.writer.flush()

    # ── Clock ─────────────────────────────────────────────────

    def now(self) -> datetime:
        return self._clock()

    def now_iso(self) -> str:
        return self._clock().isoformat(timespec="seconds")

    def today(self) -> str:
        return self._clock().date().isoformat()

    # ── Listeners ─────────────────────────────────────────────

    def subscribe(self, listener: Listener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, topic: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(topic)
            except Exception:
                logger.exception("Listener %r failed on %s", listener, topic)

    # ── Commit helpers (replace + persist + notify) ───────────

    def _set_habits(self, habits: list[Habit]) -> None:
        self.habits = habits
        self.writer.put(StorageKey.HABITS, [h.to_dict() for h in habits])
        self._emit("habits")

    def _set_completions(self, completions: list[CompletionRecord]) -> None:
        self.completions = completions
        self.writer.put(StorageKey.COMPLETIONS, [c.to_dict() for c in completions])
        self._emit("completions")

    def _set_timed_progress(self, progress: list[TimedProgress]) -> None:
        self.timed_progress = progress
        self.writer.put(StorageKey.TIMED_PROGRESS, [p.to_dict() for p in progress])
        self._emit("timed_progress")

    def _set_daily_reviews(self, reviews: list[DailyReview]) -> None:
        self.daily_reviews = reviews
        self.writer.put(StorageKey.DAILY_REVIEWS, [r.to_dict() for r in reviews])
        self._emit("daily_reviews")

    def _set_settings(self, settings: UserSettings) -> None:
        self.settings = settings
        self.writer.put(StorageKey.SETTINGS, settings.to_dict())
        self._emit("settings")

    def _set_timer(self, state: TimerState) -> None:
        self.timer_state = state
        if state.is_idle:
            self.writer.delete(StorageKey.TIMER_STATE)
        else:
            self.writer.put(StorageKey.TIMER_STATE, state.to_dict())
        self._emit("timer")

    # ── Habit management ──────────────────────────────────────

    def find_habit(self, habit_id: str) -> Habit | None:
        for h in self.habits:
            if h.id == habit_id:
                return h
        return None

    def add_habit(
        self,
        name: str,
        habit_type: HabitType | str,
        target_per_week: int | None = None,
        target_duration: int | None = None,
        why: str | None = None,
    ) -> Habit | None:
        """Append a new habit. An empty name leaves state unchanged and returns None."""
        if not name or not name.strip():
            logger.debug("add_habit ignored: empty name")
            return None
        try:
            htype = HabitType(habit_type)
        except ValueError:
            logger.warning("add_habit ignored: unknown type %r", habit_type)
            return None

        habit = Habit(
            id=_new_id(),
            name=name,
            type=htype,
            target_per_week=(target_per_week or DEFAULT_TARGET_PER_WEEK) if htype is HabitType.WEEKLY else None,
            target_duration=(target_duration or DEFAULT_TARGET_DURATION) if htype is HabitType.TIMED else None,
            why=why if htype is HabitType.TIMED else None,
            created_at=self.now_iso(),
            order=len(self.habits),
        )
        self._set_habits([*self.habits, habit])
        logger.info("Added %s habit %s", htype.value, habit.id)
        return habit

    def update_habit(self, habit_id: str, **fields: Any) -> Habit | None:
        """Merge *fields* into a habit. id, type and created_at are fixed."""
        if self.find_habit(habit_id) is None:
            logger.debug("update_habit ignored: unknown id %s", habit_id)
            return None
        ignored = set(fields) - EDITABLE_HABIT_FIELDS
        if ignored:
            logger.debug("update_habit ignoring fields %s", sorted(ignored))
        changes = {k: v for k, v in fields.items() if k in EDITABLE_HABIT_FIELDS}

        updated = None
        habits = []
        for h in self.habits:
            if h.id == habit_id:
                h = updated = dataclasses.replace(h, **changes)
            habits.append(h)
        self._set_habits(habits)
        return updated

    def archive_habit(self, habit_id: str) -> Habit | None:
        return self.update_habit(habit_id, archived=True)

    def unarchive_habit(self, habit_id: str) -> Habit | None:
        return self.update_habit(habit_id, archived=False)

    def delete_habit(self, habit_id: str) -> bool:
        """Remove a habit along with its completions and timed progress."""
        if self.find_habit(habit_id) is None:
            logger.debug("delete_habit ignored: unknown id %s", habit_id)
            return False

        self._set_habits([h for h in self.habits if h.id != habit_id])
        self._set_completions([c for c in self.completions if c.habit_id != habit_id])
        self._set_timed_progress([p for p in self.timed_progress if p.habit_id != habit_id])
        if self.timer_state.habit_id == habit_id:
            self._set_timer(TimerState())
        logger.info("Deleted habit %s", habit_id)
        return True

    def reorder_habits(self, habits: Iterable[Habit]) -> None:
        """Assign order = position for each habit, in the sequence given."""
        self._set_habits([dataclasses.replace(h, order=i) for i, h in enumerate(habits)])

    # ── Completion management ─────────────────────────────────

    def _find_completion(self, habit_id: str, date: str) -> CompletionRecord | None:
        for c in self.completions:
            if c.habit_id == habit_id and c.date == date:
                return c
        return None

    def is_completed(self, habit_id: str, date: str) -> bool:
        return self._find_completion(habit_id, date) is not None

    def get_completion_duration(self, habit_id: str, date: str) -> int | None:
        record = self._find_completion(habit_id, date)
        return record.duration if record else None

    def toggle_completion(self, habit_id: str, date: str, duration: int | None = None) -> bool:
        """Flip completion for (habit, date). Returns the new completed state.

        Unknown habits are left alone and report False.
        """
        if self.find_habit(habit_id) is None:
            logger.debug("toggle_completion ignored: unknown id %s", habit_id)
            return False
        if self.is_completed(habit_id, date):
            self._set_completions(
                [c for c in self.completions if not (c.habit_id == habit_id and c.date == date)]
            )
            completed = False
        else:
            record = CompletionRecord(
                habit_id=habit_id, date=date, completed_at=self.now_iso(), duration=duration,
            )
            self._set_completions([*self.completions, record])
            completed = True

        self.notifier.feedback("toggle", habit_id=habit_id, date=date, completed=completed)
        if completed:
            self._maybe_celebrate(date)
        return completed

    def _maybe_celebrate(self, date: str) -> None:
        """Fire the celebration once when an insertion completes every daily ritual."""
        if not (self.settings.completion_celebration_enabled and self.settings.notifications_enabled):
            return
        expected = daily_habits(self.habits)
        if expected and all(self.is_completed(h.id, date) for h in expected):
            self.notifier.celebrate(date)

    # ── Timed progress ────────────────────────────────────────

    def get_timed_progress_for_habit(self, habit_id: str, date: str) -> int:
        for p in self.timed_progress:
            if p.habit_id == habit_id and p.date == date:
                return p.accumulated_seconds
        return 0

    def _upsert_timed_progress(self, habit_id: str, date: str, seconds: int) -> None:
        entry = TimedProgress(habit_id=habit_id, date=date, accumulated_seconds=seconds)
        progress = [p for p in self.timed_progress if not (p.habit_id == habit_id and p.date == date)]
        self._set_timed_progress([*progress, entry])

    # ── Timer state machine ───────────────────────────────────

    def start_timer(self, habit: Habit) -> bool:
        """Idle -> Running, resuming from today's saved progress."""
        if not habit.target_duration:
            logger.debug("start_timer ignored: %s has no target duration", habit.id)
            return False
        if not self.timer_state.is_idle:
            logger.warning(
                "start_timer ignored: a session for %s is already active",
                self.timer_state.habit_id,
            )
            return False

        today = self.today()
        self._set_timer(TimerState(
            habit_id=habit.id,
            habit_name=habit.name,
            target_duration=habit.target_duration,
            elapsed_time=self.get_timed_progress_for_habit(habit.id, today),
            is_running=True,
            is_paused=False,
            started_at=self.now_iso(),
            date=today,
        ))
        logger.info("Timer started for %s", habit.id)
        return True

    def pause_timer(self) -> None:
        if self.timer_state.is_idle or self.timer_state.is_paused:
            return
        self._set_timer(dataclasses.replace(self.timer_state, is_paused=True))

    def resume_timer(self) -> None:
        if self.timer_state.is_idle or not self.timer_state.is_paused:
            return
        self._set_timer(dataclasses.replace(self.timer_state, is_paused=False))

    def tick(self, seconds: int = 1) -> int:
        """Advance elapsed time while running and not paused. Returns elapsed seconds."""
        state = self.timer_state
        if state.is_idle or not state.is_ticking or seconds <= 0:
            return state.elapsed_time
        self._set_timer(dataclasses.replace(state, elapsed_time=state.elapsed_time + seconds))
        return self.timer_state.elapsed_time

    def stop_timer(self) -> None:
        """End the session, saving elapsed time as partial progress."""
        state = self.timer_state
        if state.habit_id and state.date and state.elapsed_time > 0:
            self._upsert_timed_progress(state.habit_id, state.date, state.elapsed_time)
            logger.info("Timer stopped for %s at %ss", state.habit_id, state.elapsed_time)
        self._set_timer(TimerState())

    def complete_timer(self) -> None:
        """End the session as a completion carrying the elapsed duration."""
        state = self.timer_state
        if state.habit_id and state.date:
            record = CompletionRecord(
                habit_id=state.habit_id,
                date=state.date,
                completed_at=self.now_iso(),
                duration=state.elapsed_time,
            )
            self._set_completions([
                *(c for c in self.completions
                  if not (c.habit_id == state.habit_id and c.date == state.date)),
                record,
            ])
            self._set_timed_progress([
                p for p in self.timed_progress
                if not (p.habit_id == state.habit_id and p.date == state.date)
            ])
            logger.info("Timer completed for %s at %ss", state.habit_id, state.elapsed_time)
            self._set_timer(TimerState())
            self.notifier.feedback(
                "timer_complete",
                habit_id=state.habit_id,
                date=state.date,
                duration=state.elapsed_time,
                sound=self.settings.timer_end_sound,
            )
        else:
            self._set_timer(TimerState())

    # ── Daily reviews ─────────────────────────────────────────

    def add_daily_review(self, rating: int, note: str | None = None) -> DailyReview:
        """Create or replace today's review."""
        review = DailyReview(
            date=self.today(), rating=clamp_rating(rating), note=note, completed_at=self.now_iso(),
        )
        reviews = [r for r in self.daily_reviews if r.date != review.date]
        self._set_daily_reviews([*reviews, review])
        return review

    def get_daily_review(self, date: str) -> DailyReview | None:
        for r in self.daily_reviews:
            if r.date == date:
                return r
        return None

    def has_reviewed_today(self) -> bool:
        return self.get_daily_review(self.today()) is not None

    # ── Settings ──────────────────────────────────────────────

    def update_settings(self, **fields: Any) -> UserSettings:
        known = {f.name for f in dataclasses.fields(UserSettings)}
        changes = {k: v for k, v in fields.items() if k in known}
        if len(changes) != len(fields):
            logger.debug("update_settings ignoring fields %s", sorted(set(fields) - known))

        previous = self.settings
        self._set_settings(dataclasses.replace(previous, **changes))
        if any(getattr(previous, k) != getattr(self.settings, k) for k in NOTIFICATION_FIELDS & changes.keys()):
            self.notifier.schedule_reminders(self.settings)
        return self.settings

    # ── Queries ───────────────────────────────────────────────

    def get_daily_habits(self) -> list[Habit]:
        return active_habits(self.habits, HabitType.DAILY)

    def get_timed_habits(self) -> list[Habit]:
        return active_habits(self.habits, HabitType.TIMED)

    def get_weekly_habits(self) -> list[Habit]:
        return active_habits(self.habits, HabitType.WEEKLY)

    def get_completions_for_date(self, date: str) -> list[str]:
        return [c.habit_id for c in self.completions if c.date == date]

    def get_completions_for_habit(self, habit_id: str) -> list[str]:
        return sorted(c.date for c in self.completions if c.habit_id == habit_id)

    def get_habit_streak(self, habit_id: str) -> int:
        return get_streak(self.get_completions_for_habit(habit_id), self.today())

    def get_longest_streak(self, habit_id: str) -> int:
        return get_longest_streak(self.get_completions_for_habit(habit_id))

    def get_day_completion_rate(self, date: str) -> float:
        return day_completion_rate(self.habits, self.completions, date)

    def get_weekly_progress(self, date: str | None = None) -> list[WeeklyProgress]:
        return weekly_progress(self.habits, self.completions, date or self.today())

    def get_streaks_at_risk(self) -> list[StreakAtRisk]:
        return streaks_at_risk(self.habits, self.completions, self.today(), STREAK_RISK_THRESHOLD)

    def get_stats(self) -> StatsSummary | None:
        return compute_stats(self.habits, self.completions, self.today())
