"""Calendar-date helpers and streak computation for Daily Ritual.

Dates travel through the app as ``YYYY-MM-DD`` strings. Weeks start on Monday.
Functions that depend on "today" take an optional ``today`` string so they stay
pure under test; the default is today in the configured timezone.
"""

from __future__ import annotations

from calendar import monthrange
from collections.abc import Iterable
from datetime import date, datetime, timedelta

from ritual.workspace import today_str

DATE_FORMAT = "%Y-%m-%d"


def parse_date(value: str | date) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


def is_valid_date(value: object) -> bool:
    """True for a canonical ``YYYY-MM-DD`` string."""
    if not isinstance(value, str):
        return False
    try:
        return date.fromisoformat(value).isoformat() == value
    except ValueError:
        return False


def format_date(value: str | date) -> str:
    return parse_date(value).isoformat()


def add_days(value: str | date, n: int) -> str:
    return (parse_date(value) + timedelta(days=n)).isoformat()


def days_ago(n: int, today: str | None = None) -> str:
    return add_days(today or today_str(), -n)


def _today_and_yesterday(today: str | None) -> tuple[str, str]:
    today = today or today_str()
    return today, add_days(today, -1)


# ── Streaks ───────────────────────────────────────────────────


def get_streak(completed_dates: Iterable[str], today: str | None = None) -> int:
    """Current run of consecutive days ending today or yesterday.

    Yesterday counts as one day of grace: the streak stays alive until today
    ends. A newest completion older than yesterday means the streak is 0.
    """
    dates = sorted(set(completed_dates), reverse=True)
    if not dates:
        return 0

    today, yesterday = _today_and_yesterday(today)
    if dates[0] != today and dates[0] != yesterday:
        return 0

    streak = 1
    current = dates[0]
    for d in dates[1:]:
        if d == add_days(current, -1):
            streak += 1
            current = d
        else:
            break
    return streak


def get_longest_streak(completed_dates: Iterable[str]) -> int:
    """Longest run of consecutive days ever, independent of today."""
    dates = sorted(set(completed_dates))
    if not dates:
        return 0

    longest = current = 1
    for prev, curr in zip(dates, dates[1:]):
        if (parse_date(curr) - parse_date(prev)).days == 1:
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


def is_streak_at_risk(
    completed_dates: Iterable[str],
    min_streak: int = 3,
    today: str | None = None,
) -> tuple[bool, int]:
    """Return (at_risk, streak_length).

    At risk means: last completion was exactly yesterday and the streak it
    carries is at least *min_streak*. Completed today is safe; older than
    yesterday is already broken (streak length 0).
    """
    dates = sorted(set(completed_dates), reverse=True)
    if not dates:
        return False, 0

    today, yesterday = _today_and_yesterday(today)
    if dates[0] == today:
        return False, get_streak(dates, today)
    if dates[0] == yesterday:
        streak = get_streak(dates, today)
        return streak >= min_streak, streak
    return False, 0


# ── Weeks & months ────────────────────────────────────────────


def get_week_start(value: str | date) -> str:
    d = parse_date(value)
    return (d - timedelta(days=d.weekday())).isoformat()


def get_week_end(value: str | date) -> str:
    return add_days(get_week_start(value), 6)


def get_days_between(start: str | date, end: str | date) -> list[str]:
    """Every date from *start* to *end*, inclusive. Empty if end < start."""
    s, e = parse_date(start), parse_date(end)
    return [(s + timedelta(days=i)).isoformat() for i in range((e - s).days + 1)]


def get_week_days(value: str | date) -> list[str]:
    return get_days_between(get_week_start(value), get_week_end(value))


def get_month_days(value: str | date) -> list[str]:
    d = parse_date(value)
    last = monthrange(d.year, d.month)[1]
    return get_days_between(d.replace(day=1), d.replace(day=last))


def get_calendar_days(value: str | date) -> list[str]:
    """Monday-to-Sunday aligned dates covering the whole month of *value*.

    Spills into the neighbouring months so that every row is a full week.
    """
    month = get_month_days(value)
    return get_days_between(get_week_start(month[0]), get_week_end(month[-1]))


def is_in_month(value: str | date, reference: str | date) -> bool:
    d, ref = parse_date(value), parse_date(reference)
    return (d.year, d.month) == (ref.year, ref.month)


# ── Time of day ───────────────────────────────────────────────


def hours_until_midnight(now: datetime) -> int:
    midnight = datetime.combine(now.date() + timedelta(days=1), datetime.min.time(), now.tzinfo)
    return int((midnight - now).total_seconds() // 3600)


def is_evening(now: datetime) -> bool:
    return now.hour >= 18
