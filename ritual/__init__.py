"""Daily Ritual core library: habit state engine, streaks and progress metrics.

Public API re-exports for convenient imports:
    from ritual import RitualStore, JsonFileStorage, get_streak, ...
"""

# Workspace & configuration
from ritual.workspace import (
    workspace_root,
    load_config,
    ensure_workspace,
    get_user_timezone,
    now_local,
    today_str,
    config_path,
    hooks_config_path,
    data_dir,
    log_dir,
)
from ritual.logs import configure_logging

# Models
from ritual.models import (
    HabitType,
    Habit,
    CompletionRecord,
    TimedProgress,
    TimerState,
    DailyReview,
    UserSettings,
    WeeklyProgress,
    StreakAtRisk,
    StatsSummary,
)

# Dates & streaks
from ritual.dates import (
    get_streak,
    get_longest_streak,
    is_streak_at_risk,
    get_week_start,
    get_week_end,
    get_week_days,
    get_month_days,
    get_calendar_days,
    get_days_between,
)

# Persistence
from ritual.storage import (
    StorageKey,
    JsonFileStorage,
    export_data,
    import_data,
)
from ritual.writer import PersistenceQueue, SyncWriter

# Triggers
from ritual.hooks import (
    Notifier,
    NullNotifier,
    HookNotifier,
    run_hooks,
    reminder_schedule,
)
from ritual.phrases import DEFAULT_PHRASES, pick_phrase

# Metrics
from ritual.metrics import (
    day_completion_rate,
    weekly_progress,
    streaks_at_risk,
    compute_stats,
)

# Engine
from ritual.store import RitualStore
from ritual.timer import TimerTicker
