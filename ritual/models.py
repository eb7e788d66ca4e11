"""Typed dataclasses for the Daily Ritual data model.

All persisted models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

DEFAULT_TARGET_PER_WEEK = 1
DEFAULT_TARGET_DURATION = 1800  # seconds

TIMER_END_SOUNDS = ("vibration", "bell", "both")


class HabitType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    TIMED = "timed"


def _coerce_bool(value: Any) -> bool:
    """Older app versions stored booleans as the strings "true"/"false"."""
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return value is True


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def clamp_rating(value: Any) -> int:
    """Ratings live on a 1-5 scale; unparseable values become the midpoint."""
    rating = _optional_int(value)
    if rating is None:
        return 3
    return min(5, max(1, rating))


# ── Habits ────────────────────────────────────────────────────


@dataclass
class Habit:
    id: str = ""
    name: str = ""
    type: HabitType = HabitType.DAILY
    target_per_week: int | None = None  # weekly only
    target_duration: int | None = None  # timed only, seconds
    why: str | None = None  # timed only
    created_at: str = ""
    order: int = 0
    archived: bool = False

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Habit:
        try:
            htype = HabitType(str(d.get("type", "daily")).lower())
        except ValueError:
            htype = HabitType.DAILY
        return cls(
            id=str(d.get("id", "")),
            name=str(d.get("name", "")),
            type=htype,
            target_per_week=_optional_int(d.get("targetPerWeek", d.get("target_per_week"))),
            target_duration=_optional_int(d.get("targetDuration", d.get("target_duration"))),
            why=d.get("why"),
            created_at=str(d.get("createdAt", d.get("created_at", ""))),
            order=_optional_int(d.get("order")) or 0,
            archived=_coerce_bool(d.get("archived", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "createdAt": self.created_at,
            "order": self.order,
            "archived": self.archived,
        }
        if self.type is HabitType.WEEKLY:
            d["targetPerWeek"] = self.target_per_week or DEFAULT_TARGET_PER_WEEK
        if self.type is HabitType.TIMED:
            d["targetDuration"] = self.target_duration or DEFAULT_TARGET_DURATION
            if self.why:
                d["why"] = self.why
        return d

    @property
    def counts_daily(self) -> bool:
        """Daily and timed habits are expected every day; weekly ones are not."""
        return self.type in (HabitType.DAILY, HabitType.TIMED)


# ── Completion ledger ─────────────────────────────────────────


@dataclass
class CompletionRecord:
    habit_id: str = ""
    date: str = ""  # YYYY-MM-DD, the logical day
    completed_at: str = ""
    duration: int | None = None  # seconds, timed habits

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CompletionRecord:
        return cls(
            habit_id=str(d.get("habitId", d.get("habit_id", ""))),
            date=str(d.get("date", "")),
            completed_at=str(d.get("completedAt", d.get("completed_at", ""))),
            duration=_optional_int(d.get("duration")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "habitId": self.habit_id,
            "date": self.date,
            "completedAt": self.completed_at,
        }
        if self.duration is not None:
            d["duration"] = self.duration
        return d


@dataclass
class TimedProgress:
    habit_id: str = ""
    date: str = ""
    accumulated_seconds: int = 0

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> TimedProgress:
        return cls(
            habit_id=str(d.get("habitId", d.get("habit_id", ""))),
            date=str(d.get("date", "")),
            accumulated_seconds=max(0, _optional_int(d.get("accumulatedSeconds")) or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "habitId": self.habit_id,
            "date": self.date,
            "accumulatedSeconds": self.accumulated_seconds,
        }


# ── Timer ─────────────────────────────────────────────────────


@dataclass
class TimerState:
    habit_id: str | None = None
    habit_name: str = ""
    target_duration: int = 0
    elapsed_time: int = 0
    is_running: bool = False
    is_paused: bool = False
    started_at: str | None = None
    date: str | None = None  # fixed when the session starts

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> TimerState:
        if not d or not isinstance(d, dict):
            return cls()
        habit_id = d.get("habitId", d.get("habit_id"))
        return cls(
            habit_id=str(habit_id) if habit_id else None,
            habit_name=str(d.get("habitName", "")),
            target_duration=_optional_int(d.get("targetDuration")) or 0,
            elapsed_time=max(0, _optional_int(d.get("elapsedTime")) or 0),
            is_running=_coerce_bool(d.get("isRunning", False)),
            is_paused=_coerce_bool(d.get("isPaused", False)),
            started_at=d.get("startedAt"),
            date=d.get("date"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "habitId": self.habit_id,
            "habitName": self.habit_name,
            "targetDuration": self.target_duration,
            "elapsedTime": self.elapsed_time,
            "isRunning": self.is_running,
            "isPaused": self.is_paused,
            "startedAt": self.started_at,
            "date": self.date,
        }

    @property
    def is_idle(self) -> bool:
        return self.habit_id is None

    @property
    def is_ticking(self) -> bool:
        return self.is_running and not self.is_paused

    @property
    def remaining(self) -> int:
        return max(0, self.target_duration - self.elapsed_time)


# ── Reviews & settings ────────────────────────────────────────


@dataclass
class DailyReview:
    date: str = ""
    rating: int = 3  # 1-5
    note: str | None = None
    completed_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DailyReview:
        return cls(
            date=str(d.get("date", "")),
            rating=clamp_rating(d.get("rating")),
            note=d.get("note"),
            completed_at=str(d.get("completedAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "date": self.date,
            "rating": self.rating,
            "completedAt": self.completed_at,
        }
        if self.note:
            d["note"] = self.note
        return d


# Fields whose change means reminder schedules must be rebuilt.
NOTIFICATION_FIELDS = frozenset({
    "notifications_enabled",
    "morning_reminder_time",
    "evening_reminder_time",
    "streak_alert_enabled",
    "streak_alert_time",
    "incomplete_reminder_enabled",
    "incomplete_reminder_time",
})


@dataclass
class UserSettings:
    selected_phrase_index: int | None = None  # None = random phrase
    custom_phrases: list[list[str]] = field(default_factory=list)
    notifications_enabled: bool = False
    morning_reminder_time: str = "08:00"
    evening_reminder_time: str = "21:00"
    streak_alert_enabled: bool = False
    streak_alert_time: str = "15:00"
    incomplete_reminder_enabled: bool = False
    incomplete_reminder_time: str = "21:00"
    completion_celebration_enabled: bool = True
    timer_end_sound: str = "vibration"  # vibration, bell, both

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> UserSettings:
        if not d or not isinstance(d, dict):
            return cls()
        defaults = cls()
        phrases = d.get("customPhrases") or []
        sound = str(d.get("timerEndSound", defaults.timer_end_sound))
        return cls(
            selected_phrase_index=_optional_int(d.get("selectedPhraseIndex")),
            custom_phrases=[
                [str(w) for w in p] for p in phrases if isinstance(p, list) and p
            ],
            notifications_enabled=_coerce_bool(d.get("notificationsEnabled", False)),
            morning_reminder_time=str(d.get("morningReminderTime", defaults.morning_reminder_time)),
            evening_reminder_time=str(d.get("eveningReminderTime", defaults.evening_reminder_time)),
            streak_alert_enabled=_coerce_bool(d.get("streakAlertEnabled", False)),
            streak_alert_time=str(d.get("streakAlertTime", defaults.streak_alert_time)),
            incomplete_reminder_enabled=_coerce_bool(d.get("incompleteReminderEnabled", False)),
            incomplete_reminder_time=str(d.get("incompleteReminderTime", defaults.incomplete_reminder_time)),
            completion_celebration_enabled=_coerce_bool(d.get("completionCelebrationEnabled", True)),
            timer_end_sound=sound if sound in TIMER_END_SOUNDS else defaults.timer_end_sound,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "selectedPhraseIndex": self.selected_phrase_index,
            "customPhrases": self.custom_phrases,
            "notificationsEnabled": self.notifications_enabled,
            "morningReminderTime": self.morning_reminder_time,
            "eveningReminderTime": self.evening_reminder_time,
            "streakAlertEnabled": self.streak_alert_enabled,
            "streakAlertTime": self.streak_alert_time,
            "incompleteReminderEnabled": self.incomplete_reminder_enabled,
            "incompleteReminderTime": self.incomplete_reminder_time,
            "completionCelebrationEnabled": self.completion_celebration_enabled,
            "timerEndSound": self.timer_end_sound,
        }


# ── Derived views ─────────────────────────────────────────────


@dataclass
class WeeklyProgress:
    habit_id: str = ""
    habit_name: str = ""
    target: int = DEFAULT_TARGET_PER_WEEK
    completed: int = 0
    dates: list[str] = field(default_factory=list)

    @property
    def met(self) -> bool:
        return self.completed >= self.target


@dataclass
class StreakAtRisk:
    habit_id: str = ""
    habit_name: str = ""
    streak_length: int = 0
    habit_type: HabitType = HabitType.DAILY


@dataclass
class StatsSummary:
    today_rate: float = 0.0
    week_rate: float = 0.0
    thirty_day_rate: float = 0.0
    weekly_targets_met: int = 0
    weekly_targets_total: int = 0
    perfect_days: int = 0
    perfect_days_total: int = 0
    total_completions: int = 0
    best_streak: int = 0
    current_best_streak: int = 0
    days_since_start: int = 0
    total_daily_habits: int = 0
    total_weekly_habits: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "todayRate": round(self.today_rate, 3),
            "weekRate": round(self.week_rate, 3),
            "thirtyDayRate": round(self.thirty_day_rate, 3),
            "weeklyTargetsMet": self.weekly_targets_met,
            "weeklyTargetsTotal": self.weekly_targets_total,
            "perfectDays": self.perfect_days,
            "perfectDaysTotal": self.perfect_days_total,
            "totalCompletions": self.total_completions,
            "bestStreak": self.best_streak,
            "currentBestStreak": self.current_best_streak,
            "daysSinceStart": self.days_since_start,
            "totalDailyHabits": self.total_daily_habits,
            "totalWeeklyHabits": self.total_weekly_habits,
        }
