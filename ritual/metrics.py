"""Derived progress metrics for Daily Ritual.

Everything here is a pure function of a snapshot (habits, completions, today),
so the store can hand over its current collections and the stats screen can
recompute freely.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from ritual.dates import (
    add_days,
    get_days_between,
    get_longest_streak,
    get_streak,
    get_week_end,
    get_week_start,
    is_streak_at_risk,
    parse_date,
)
from ritual.models import (
    DEFAULT_TARGET_PER_WEEK,
    CompletionRecord,
    Habit,
    HabitType,
    StatsSummary,
    StreakAtRisk,
    WeeklyProgress,
)

STREAK_RISK_THRESHOLD = 3
TRAILING_DAYS = 30


# ── Habit selection ───────────────────────────────────────────


def active_habits(habits: Iterable[Habit], *types: HabitType) -> list[Habit]:
    """Non-archived habits of the given types, in manual order."""
    return sorted(
        (h for h in habits if not h.archived and (not types or h.type in types)),
        key=lambda h: h.order,
    )


def daily_habits(habits: Iterable[Habit]) -> list[Habit]:
    """Habits expected every day: daily and timed, daily ones first."""
    habits = list(habits)
    return active_habits(habits, HabitType.DAILY) + active_habits(habits, HabitType.TIMED)


def completed_pairs(completions: Iterable[CompletionRecord]) -> set[tuple[str, str]]:
    return {(c.habit_id, c.date) for c in completions}


def dates_by_habit(completions: Iterable[CompletionRecord]) -> dict[str, list[str]]:
    out: dict[str, list[str]] = defaultdict(list)
    for c in completions:
        out[c.habit_id].append(c.date)
    return out


# ── Per-day & per-week ────────────────────────────────────────


def day_completion_rate(
    habits: Iterable[Habit], completions: Iterable[CompletionRecord], date: str
) -> float:
    """Fraction of active daily+timed habits done on *date*; 0.0 when there are none."""
    expected = daily_habits(habits)
    if not expected:
        return 0.0
    done = completed_pairs(completions)
    return sum(1 for h in expected if (h.id, date) in done) / len(expected)


def weekly_progress(
    habits: Iterable[Habit], completions: Iterable[CompletionRecord], date: str
) -> list[WeeklyProgress]:
    """Completions inside the Monday-Sunday week of *date* for each weekly habit."""
    start, end = get_week_start(date), get_week_end(date)
    completions = list(completions)
    result = []
    for habit in active_habits(habits, HabitType.WEEKLY):
        dates = sorted(
            c.date for c in completions if c.habit_id == habit.id and start <= c.date <= end
        )
        result.append(WeeklyProgress(
            habit_id=habit.id,
            habit_name=habit.name,
            target=habit.target_per_week or DEFAULT_TARGET_PER_WEEK,
            completed=len(dates),
            dates=dates,
        ))
    return result


def streaks_at_risk(
    habits: Iterable[Habit],
    completions: Iterable[CompletionRecord],
    today: str,
    min_streak: int = STREAK_RISK_THRESHOLD,
) -> list[StreakAtRisk]:
    """Daily/timed habits whose streak breaks tonight, longest streak first."""
    by_habit = dates_by_habit(completions)
    at_risk = []
    for habit in daily_habits(habits):
        risky, length = is_streak_at_risk(by_habit.get(habit.id, []), min_streak, today)
        if risky:
            at_risk.append(StreakAtRisk(
                habit_id=habit.id,
                habit_name=habit.name,
                streak_length=length,
                habit_type=habit.type,
            ))
    at_risk.sort(key=lambda s: s.streak_length, reverse=True)
    return at_risk


# ── Aggregate stats ───────────────────────────────────────────


def _range_rate(expected: Sequence[Habit], done: set[tuple[str, str]], days: Sequence[str]) -> float:
    possible = len(expected) * len(days)
    if possible == 0:
        return 0.0
    hits = sum(1 for day in days for h in expected if (h.id, day) in done)
    return hits / possible


def compute_stats(
    habits: Iterable[Habit],
    completions: Iterable[CompletionRecord],
    today: str,
) -> StatsSummary | None:
    """Stats screen summary. None when there are no active habits at all."""
    habits = list(habits)
    completions = list(completions)
    expected = daily_habits(habits)
    weekly = active_habits(habits, HabitType.WEEKLY)
    if not expected and not weekly:
        return None

    done = completed_pairs(completions)
    week_so_far = get_days_between(get_week_start(today), today)
    trailing = get_days_between(add_days(today, -TRAILING_DAYS), today)

    summary = StatsSummary(
        total_daily_habits=len(expected),
        total_weekly_habits=len(weekly),
        total_completions=len(completions),
        perfect_days_total=len(week_so_far),
    )
    summary.today_rate = _range_rate(expected, done, [today])
    summary.week_rate = _range_rate(expected, done, week_so_far)
    summary.thirty_day_rate = _range_rate(expected, done, trailing)

    progress = weekly_progress(habits, completions, today)
    summary.weekly_targets_total = len(progress)
    summary.weekly_targets_met = sum(1 for p in progress if p.met)

    if expected:
        summary.perfect_days = sum(
            1 for day in week_so_far if all((h.id, day) in done for h in expected)
        )

    by_habit = dates_by_habit(completions)
    for habit in expected:
        dates = by_habit.get(habit.id, [])
        summary.best_streak = max(summary.best_streak, get_longest_streak(dates))
        summary.current_best_streak = max(summary.current_best_streak, get_streak(dates, today))

    if completions:
        first = min(c.date for c in completions)
        summary.days_since_start = (parse_date(today) - parse_date(first)).days

    return summary
