#!/usr/bin/env python3
"""Daily Ritual TUI: today's rituals, the focus timer and stats, powered by Textual."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.reactive import reactive
from textual.widgets import Checkbox, DataTable, Footer, Header, Input, Label, Select, Static

from ritual import (
    HabitType,
    JsonFileStorage,
    RitualStore,
    TimerTicker,
    configure_logging,
    ensure_workspace,
    export_data,
    import_data,
    now_local,
    pick_phrase,
    workspace_root,
)
from ritual.dates import (
    add_days,
    get_calendar_days,
    get_month_days,
    hours_until_midnight,
    is_evening,
    is_in_month,
    parse_date,
)
from ritual.hooks import parse_time_string
from ritual.models import TIMER_END_SOUNDS
from ritual.phrases import available_phrases, format_clock, format_duration

logger = logging.getLogger("ritual.cli")

# "Stretch", "d: Stretch", "w3: Gym", "t20: Meditate", "r4: calm day"
ENTRY_RE = re.compile(r"^(?:([dwtr])(\d*):\s*)?(.*)$", re.IGNORECASE)

WEEKDAY_LABELS = ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")


# ── Helpers ────────────────────────────────────────────────────


def parse_phrases(text: str) -> list[list[str]]:
    """'lock in | stay hard' -> [['LOCK', 'IN'], ['STAY', 'HARD']]."""
    return [part.upper().split() for part in text.split("|") if part.strip()]


def valid_time(text: str) -> bool:
    try:
        hour, minute = parse_time_string(text)
    except ValueError:
        return False
    return 0 <= hour < 24 and 0 <= minute < 60


def heat_style(rate: float) -> str:
    if rate >= 1:
        return "bold green"
    if rate >= 0.5:
        return "green"
    if rate > 0:
        return "yellow"
    return "bright_black"


def render_month(store: RitualStore, selected: str) -> str:
    """Month grid as Rich markup, shaded by daily completion rate."""
    today = store.today()
    lines = [f"{parse_date(selected):%B %Y}", " ".join(WEEKDAY_LABELS)]
    row: list[str] = []
    for day in get_calendar_days(selected):
        if not is_in_month(day, selected):
            cell = "  "
        else:
            style = "dim" if day > today else heat_style(store.get_day_completion_rate(day))
            cell = f"[{style}]{parse_date(day).day:>2}[/]"
            if day == selected:
                cell = f"[reverse]{cell}[/]"
        row.append(cell)
        if len(row) == 7:
            lines.append(" ".join(row))
            row = []
    return "\n".join(lines)


def day_detail(store: RitualStore, date: str) -> str:
    done = set(store.get_completions_for_date(date))
    lines = [f"{parse_date(date):%A %d %B}: {store.get_day_completion_rate(date):.0%}"]
    for habit in store.get_daily_habits() + store.get_timed_habits():
        lines.append(f"{'✔' if habit.id in done else '·'} {habit.name}")
    return "\n".join(lines)


# ── Stylesheet ─────────────────────────────────────────────────

CSS = """
Screen {
    background: $surface;
}

#main-layout {
    height: 1fr;
}

#left-pane {
    width: 1fr;
    min-width: 30;
    border-right: tall $primary-background-darken-2;
    padding: 0 1;
}

#right-pane {
    width: 1fr;
    min-width: 30;
    padding: 0 1;
}

.section-title {
    text-style: bold;
    color: $text;
    margin: 1 0 0 0;
    padding: 0 1;
}

.habit-row {
    height: auto;
}

.habit-row Checkbox {
    width: 1fr;
    height: auto;
}

.habit-meta {
    width: auto;
    height: auto;
    color: $text-muted;
    padding: 1 1 0 1;
}

.habit-done {
    opacity: 50%;
}

#timer-panel {
    height: auto;
    min-height: 5;
    padding: 1 2;
    border: tall $primary-background-darken-2;
}

#risk-panel, #weekly-panel {
    height: auto;
    padding: 0 1;
    color: $text-muted;
}

#entry-input {
    dock: bottom;
    margin: 0 1;
}

#stats-table {
    height: 1fr;
}

#settings-habits {
    height: auto;
    max-height: 12;
}

.settings-row {
    height: auto;
}

.settings-row Label {
    width: 22;
    padding: 1 1 0 1;
}

.settings-row Input, .settings-row Select {
    width: 1fr;
}

#calendar-grid, #calendar-detail {
    height: auto;
    padding: 1 2;
}
"""


# ── Custom widgets ─────────────────────────────────────────────


class HabitRow(Horizontal):
    """One daily/timed ritual: checkbox + streak/progress note."""

    def __init__(self, habit_id: str, label: str, done: bool, meta: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.habit_id = habit_id
        self.habit_label = label
        self.habit_done = done
        self.meta = meta

    def compose(self) -> ComposeResult:
        yield Checkbox(self.habit_label, value=self.habit_done, id=f"cb-{self.habit_id}")
        yield Label(self.meta, classes="habit-meta")

    def on_mount(self) -> None:
        self.add_class("habit-row")
        if self.habit_done:
            self.add_class("habit-done")


class StatsView(Vertical):
    """Stats overlay as a two-column data table."""

    def __init__(self, store: RitualStore, **kwargs) -> None:
        super().__init__(**kwargs)
        self.store = store

    def compose(self) -> ComposeResult:
        yield Label("Stats", classes="section-title")
        yield DataTable(id="stats-table")

    def on_mount(self) -> None:
        table: DataTable = self.query_one("#stats-table", DataTable)
        table.add_columns("Metric", "Value")
        stats = self.store.get_stats()
        if stats is None:
            table.add_row("No rituals yet", "")
            return
        table.add_row("Today", f"{stats.today_rate:.0%}")
        table.add_row("This week", f"{stats.week_rate:.0%}")
        table.add_row("Last 30 days", f"{stats.thirty_day_rate:.0%}")
        table.add_row("Perfect days", f"{stats.perfect_days} / {stats.perfect_days_total}")
        table.add_row("Weekly targets", f"{stats.weekly_targets_met} / {stats.weekly_targets_total}")
        table.add_row("Current best streak", str(stats.current_best_streak))
        table.add_row("Best streak ever", str(stats.best_streak))
        table.add_row("Total completions", str(stats.total_completions))
        table.add_row("Days since start", str(stats.days_since_start))


class SettingsView(VerticalScroll):
    """Settings overlay: manage rituals, reminders, timer sound and phrases."""

    BINDINGS = [
        Binding("d", "delete_habit", "Delete"),
        Binding("h", "toggle_archive", "Archive"),
        Binding("k", "move_habit(-1)", "Up"),
        Binding("j", "move_habit(1)", "Down"),
    ]

    def __init__(self, store: RitualStore, **kwargs) -> None:
        super().__init__(**kwargs)
        self.store = store
        self._row_ids: list[str] = []
        self._pending_delete: str | None = None

    def compose(self) -> ComposeResult:
        settings = self.store.settings
        yield Label("Rituals", classes="section-title")
        yield DataTable(id="settings-habits", cursor_type="row")
        yield Input(placeholder="rename the selected ritual", id="rename-input")

        yield Label("Reminders", classes="section-title")
        yield Checkbox("Notifications", value=settings.notifications_enabled, id="set-notifications_enabled")
        yield self._time_row("Morning", "morning_reminder_time")
        yield self._time_row("Evening", "evening_reminder_time")
        yield Checkbox("Streak alert", value=settings.streak_alert_enabled, id="set-streak_alert_enabled")
        yield self._time_row("Streak alert at", "streak_alert_time")
        yield Checkbox(
            "Incomplete reminder",
            value=settings.incomplete_reminder_enabled,
            id="set-incomplete_reminder_enabled",
        )
        yield self._time_row("Incomplete at", "incomplete_reminder_time")
        yield Checkbox(
            "Celebrate a complete day",
            value=settings.completion_celebration_enabled,
            id="set-completion_celebration_enabled",
        )

        yield Label("Timer & phrases", classes="section-title")
        yield Horizontal(
            Label("Timer end sound"),
            Select(
                [(sound, sound) for sound in TIMER_END_SOUNDS],
                value=settings.timer_end_sound,
                allow_blank=False,
                id="set-timer_end_sound",
            ),
            classes="settings-row",
        )
        yield Horizontal(
            Label("Phrase"),
            Select(self._phrase_options(), value=self._phrase_value(), allow_blank=False, id="phrase-select"),
            classes="settings-row",
        )
        yield Input(
            value=" | ".join(" ".join(p) for p in settings.custom_phrases),
            placeholder="custom phrases, separated by |",
            id="custom-phrases",
        )

    def _time_row(self, label: str, field: str) -> Horizontal:
        value = getattr(self.store.settings, field)
        return Horizontal(
            Label(label),
            Input(value=value, placeholder="HH:MM", id=f"set-{field}", classes="time-input"),
            classes="settings-row",
        )

    def _phrase_options(self) -> list[tuple[str, int]]:
        phrases = available_phrases(self.store.settings)
        return [("Random", -1)] + [(" ".join(p), i) for i, p in enumerate(phrases)]

    def _phrase_value(self) -> int:
        index = self.store.settings.selected_phrase_index
        if index is None or index >= len(available_phrases(self.store.settings)):
            return -1
        return index

    def on_mount(self) -> None:
        table = self.query_one("#settings-habits", DataTable)
        table.add_columns("Ritual", "Type", "Target", "Status")
        self.refresh_habits()
        self.store.subscribe(self._on_store_change)
        table.focus()

    def on_unmount(self) -> None:
        self.store.unsubscribe(self._on_store_change)

    def _on_store_change(self, topic: str) -> None:
        if topic == "habits":
            self.refresh_habits()

    def _ordered(self):
        return sorted(self.store.habits, key=lambda h: h.order)

    def refresh_habits(self, select: str | None = None) -> None:
        table = self.query_one("#settings-habits", DataTable)
        keep = select or self.selected_habit_id()
        table.clear()
        self._row_ids = []
        for habit in self._ordered():
            if habit.type is HabitType.WEEKLY:
                target = f"{habit.target_per_week or 1}x / week"
            elif habit.type is HabitType.TIMED:
                target = format_duration(habit.target_duration or 0)
            else:
                target = "every day"
            table.add_row(habit.name, habit.type.value, target, "archived" if habit.archived else "")
            self._row_ids.append(habit.id)
        if keep in self._row_ids:
            table.move_cursor(row=self._row_ids.index(keep))

    def selected_habit_id(self) -> str | None:
        table = self.query_one("#settings-habits", DataTable)
        if not self._row_ids or not 0 <= table.cursor_row < len(self._row_ids):
            return None
        return self._row_ids[table.cursor_row]

    # ── Ritual management ──────────────────────────────────────

    def action_delete_habit(self) -> None:
        habit = self.store.find_habit(self.selected_habit_id() or "")
        if habit is None:
            return
        if self._pending_delete != habit.id:
            self._pending_delete = habit.id
            self.app.notify(f"Press d again to delete {habit.name} and its history.", severity="warning")
            return
        self._pending_delete = None
        self.store.delete_habit(habit.id)
        self.app.notify(f"Deleted {habit.name}.")

    def action_toggle_archive(self) -> None:
        habit = self.store.find_habit(self.selected_habit_id() or "")
        if habit is None:
            return
        if habit.archived:
            self.store.unarchive_habit(habit.id)
        else:
            self.store.archive_habit(habit.id)

    def action_move_habit(self, step: int) -> None:
        habit_id = self.selected_habit_id()
        ordered = self._ordered()
        ids = [h.id for h in ordered]
        if habit_id not in ids:
            return
        i = ids.index(habit_id)
        j = i + step
        if not 0 <= j < len(ordered):
            return
        ordered[i], ordered[j] = ordered[j], ordered[i]
        self.store.reorder_habits(ordered)
        self.refresh_habits(select=habit_id)

    @on(Input.Submitted, "#rename-input")
    def _on_rename(self, event: Input.Submitted) -> None:
        event.stop()
        habit_id = self.selected_habit_id()
        name = event.value.strip()
        if habit_id is None or not name:
            return
        self.store.update_habit(habit_id, name=name)
        event.input.value = ""

    # ── Settings fields ────────────────────────────────────────

    @on(Checkbox.Changed)
    def _on_flag(self, event: Checkbox.Changed) -> None:
        event.stop()
        field = (event.checkbox.id or "").removeprefix("set-")
        self.store.update_settings(**{field: event.value})

    @on(Input.Submitted, ".time-input")
    def _on_time(self, event: Input.Submitted) -> None:
        event.stop()
        value = event.value.strip()
        if not valid_time(value):
            self.app.notify(f"'{value}' is not a time (HH:MM).", severity="error")
            return
        field = (event.input.id or "").removeprefix("set-")
        self.store.update_settings(**{field: value})
        self.app.notify(f"Saved {value}.")

    @on(Select.Changed, "#set-timer_end_sound")
    def _on_sound(self, event: Select.Changed) -> None:
        event.stop()
        if event.value in TIMER_END_SOUNDS:
            self.store.update_settings(timer_end_sound=event.value)

    @on(Select.Changed, "#phrase-select")
    def _on_phrase(self, event: Select.Changed) -> None:
        event.stop()
        if isinstance(event.value, int):
            self.store.update_settings(selected_phrase_index=None if event.value < 0 else event.value)

    @on(Input.Submitted, "#custom-phrases")
    def _on_custom_phrases(self, event: Input.Submitted) -> None:
        event.stop()
        self.store.update_settings(custom_phrases=parse_phrases(event.value), selected_phrase_index=None)
        select = self.query_one("#phrase-select", Select)
        select.set_options(self._phrase_options())
        select.value = -1
        self.app.notify(f"{len(available_phrases(self.store.settings))} phrases available.")


class CalendarView(Vertical):
    """Month heatmap overlay. Arrows move the selected day, PgUp/PgDn the month."""

    BINDINGS = [
        Binding("left", "move_day(-1)", "Prev day"),
        Binding("right", "move_day(1)", "Next day"),
        Binding("up", "move_day(-7)", "Prev week", show=False),
        Binding("down", "move_day(7)", "Next week", show=False),
        Binding("pageup", "move_month(-1)", "Prev month"),
        Binding("pagedown", "move_month(1)", "Next month"),
    ]

    can_focus = True

    def __init__(self, store: RitualStore, **kwargs) -> None:
        super().__init__(**kwargs)
        self.store = store
        self.selected = store.today()

    def compose(self) -> ComposeResult:
        yield Label("Calendar", classes="section-title")
        yield Static(id="calendar-grid")
        yield Static(id="calendar-detail")

    def on_mount(self) -> None:
        self.refresh_month()
        self.focus()

    def refresh_month(self) -> None:
        self.query_one("#calendar-grid", Static).update(render_month(self.store, self.selected))
        self.query_one("#calendar-detail", Static).update(day_detail(self.store, self.selected))

    def action_move_day(self, step: int) -> None:
        self.selected = add_days(self.selected, step)
        self.refresh_month()

    def action_move_month(self, step: int) -> None:
        days = get_month_days(self.selected)
        # Land on the 1st of the neighbouring month.
        if step < 0:
            self.selected = get_month_days(add_days(days[0], -1))[0]
        else:
            self.selected = add_days(days[-1], 1)
        self.refresh_month()


# ── Main app ───────────────────────────────────────────────────


class DailyRitualApp(App):
    """Daily Ritual: check off rituals, run timed sessions, watch streaks."""

    TITLE = "Daily Ritual"
    CSS = CSS
    AUTO_FOCUS = None

    BINDINGS = [
        Binding("a", "focus_entry", "Add"),
        Binding("t", "start_timer", "Timer"),
        Binding("p", "pause_resume", "Pause/Resume"),
        Binding("x", "stop_timer", "Stop"),
        Binding("c", "complete_timer", "Complete"),
        Binding("s", "show_stats", "Stats"),
        Binding("m", "show_calendar", "Calendar"),
        Binding("e", "show_settings", "Settings"),
        Binding("escape", "blur_focus", "Back"),
        Binding("q", "quit_app", "Quit"),
    ]

    current_view: reactive[str] = reactive("today")

    def __init__(self, root: Path) -> None:
        super().__init__()
        self.root = root
        self.store: RitualStore | None = None
        self.ticker: TimerTicker | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Horizontal(
            VerticalScroll(
                Label("Today", classes="section-title"),
                Vertical(id="habit-list"),
                id="left-pane",
                can_focus=False,
            ),
            Vertical(
                Static(id="timer-panel"),
                Label("Weekly", classes="section-title"),
                Static(id="weekly-panel"),
                Label("Streaks at risk", classes="section-title"),
                Static(id="risk-panel"),
                id="right-pane",
            ),
            id="main-layout",
        )
        yield Input(placeholder="name | w3: name | t20: name | r4: review note", id="entry-input")
        yield Footer()

    def on_mount(self) -> None:
        self.store = RitualStore(JsonFileStorage(self.root))
        self.store.subscribe(self._on_store_change)
        self.ticker = TimerTicker(self.store)
        self._rebuild_habits()
        self._update_side_panels()
        self._update_timer_panel()

    def on_unmount(self) -> None:
        if self.ticker is not None:
            self.ticker.close()
        if self.store is not None:
            self.store.close()

    # ── Store → widgets ────────────────────────────────────────

    def _on_store_change(self, topic: str) -> None:
        if topic == "timer":
            self._update_timer_panel()
        elif topic in ("habits", "completions", "timed_progress"):
            self._rebuild_habits()
            self._update_side_panels()

    def _rebuild_habits(self) -> None:
        store = self.store
        today = store.today()
        habit_list = self.query_one("#habit-list", Vertical)
        habit_list.remove_children()
        for habit in store.get_daily_habits() + store.get_timed_habits():
            done = store.is_completed(habit.id, today)
            meta = f"🔥 {store.get_habit_streak(habit.id)}"
            if habit.type is HabitType.TIMED:
                if done:
                    logged = store.get_completion_duration(habit.id, today)
                else:
                    logged = store.get_timed_progress_for_habit(habit.id, today)
                meta += f"  {format_clock(logged or 0)} / {format_duration(habit.target_duration or 0)}"
            habit_list.mount(HabitRow(habit.id, habit.name, done, meta))
        rate = store.get_day_completion_rate(today)
        self.sub_title = f"{today}  {rate:.0%} done"

    def _update_side_panels(self) -> None:
        store = self.store
        weekly = [
            f"{'✔' if p.met else '·'} {p.habit_name}: {p.completed}/{p.target}"
            for p in store.get_weekly_progress()
        ]
        self.query_one("#weekly-panel", Static).update("\n".join(weekly) or "(none)")
        risks = [f"{r.habit_name}: {r.streak_length} days" for r in store.get_streaks_at_risk()]
        now = store.now()
        if risks and is_evening(now):
            risks.insert(0, f"{hours_until_midnight(now)}h left today")
        self.query_one("#risk-panel", Static).update("\n".join(risks) or "(none)")

    def _update_timer_panel(self) -> None:
        state = self.store.timer_state
        panel = self.query_one("#timer-panel", Static)
        if state.is_idle:
            panel.update("No active timer. Focus a timed ritual and press t.")
            return
        status = "PAUSED" if state.is_paused else "RUNNING"
        lines = [
            f"{state.habit_name}  [{status}]",
            f"{format_clock(state.elapsed_time)} / {format_clock(state.target_duration)}",
        ]
        if state.remaining == 0:
            lines.append("Target reached. Press c to complete.")
        panel.update("\n".join(lines))

    # ── Events ─────────────────────────────────────────────────

    @on(Checkbox.Changed)
    def _on_checkbox_toggle(self, event: Checkbox.Changed) -> None:
        if not (event.checkbox.id or "").startswith("cb-"):
            return
        habit_id = event.checkbox.id.removeprefix("cb-")
        today = self.store.today()
        if self.store.is_completed(habit_id, today) != event.value:
            self.store.toggle_completion(habit_id, today)

    @on(Input.Submitted, "#entry-input")
    def _on_entry(self, event: Input.Submitted) -> None:
        m = ENTRY_RE.match(event.value.strip())
        kind, number, text = (m.group(1) or "d").lower(), m.group(2), m.group(3).strip()
        if kind == "r":
            review = self.store.add_daily_review(int(number or 3), text or None)
            self.notify(f"Review saved: {review.rating}/5", title="Daily review")
        elif not text:
            self.notify("A ritual needs a name.", severity="warning")
        elif kind == "w":
            self.store.add_habit(text, HabitType.WEEKLY, target_per_week=int(number or 1))
        elif kind == "t":
            minutes = int(number) if number else None
            self.store.add_habit(text, HabitType.TIMED, target_duration=minutes * 60 if minutes else None)
        else:
            self.store.add_habit(text, HabitType.DAILY)
        event.input.value = ""
        self.set_focus(None)

    # ── Actions ────────────────────────────────────────────────

    def action_focus_entry(self) -> None:
        self.query_one("#entry-input", Input).focus()

    def action_blur_focus(self) -> None:
        if self.current_view != "today":
            self._switch_to("today")
        self.set_focus(None)

    def action_start_timer(self) -> None:
        focused = self.focused
        habit_id = (focused.id or "").removeprefix("cb-") if isinstance(focused, Checkbox) else ""
        habit = self.store.find_habit(habit_id)
        if habit is None or habit.type is not HabitType.TIMED:
            self.notify("Focus a timed ritual first.", severity="warning")
            return
        if not self.store.start_timer(habit):
            self.notify("Another timer is active. Stop it first.", severity="warning")
            return
        self.notify(" ".join(pick_phrase(self.store.settings)), title=habit.name)

    def action_pause_resume(self) -> None:
        if self.store.timer_state.is_paused:
            self.store.resume_timer()
        else:
            self.store.pause_timer()

    def action_stop_timer(self) -> None:
        self.store.stop_timer()

    def action_complete_timer(self) -> None:
        if self.store.timer_state.is_idle:
            return
        self.store.complete_timer()
        self.notify("Session logged.", title="Done")

    def action_show_stats(self) -> None:
        self._switch_to("today" if self.current_view == "stats" else "stats")

    def action_show_calendar(self) -> None:
        self._switch_to("today" if self.current_view == "calendar" else "calendar")

    def action_show_settings(self) -> None:
        self._switch_to("today" if self.current_view == "settings" else "settings")

    def action_quit_app(self) -> None:
        self.exit()

    def _switch_to(self, view: str) -> None:
        main = self.query_one("#main-layout", Horizontal)
        for old in self.query(".overlay-screen"):
            old.remove()
        show_today = view == "today"
        self.query_one("#left-pane").display = show_today
        self.query_one("#right-pane").display = show_today
        overlays = {"stats": StatsView, "calendar": CalendarView, "settings": SettingsView}
        if view in overlays:
            main.mount(overlays[view](self.store, classes="overlay-screen"))
        self.current_view = view


# ── Entry point ────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="dailyritual", description=__doc__)
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--export", metavar="PATH", help="write habits and completions to a JSON backup")
    group.add_argument("--import", dest="import_path", metavar="PATH", help="restore a JSON backup")
    args = parser.parse_args(argv)

    root = ensure_workspace(workspace_root())
    configure_logging(root)
    storage = JsonFileStorage(root)

    if args.export:
        Path(args.export).write_text(export_data(storage, now_local(root)) + "\n", encoding="utf-8")
        logger.info("Exported backup to %s", args.export)
        print(f"Exported to {args.export}")
        return 0
    if args.import_path:
        try:
            text = Path(args.import_path).read_text(encoding="utf-8")
        except OSError as e:
            print(f"Cannot read {args.import_path}: {e}", file=sys.stderr)
            return 1
        if not import_data(storage, text):
            print("Import rejected: expected a backup with habits and completions.", file=sys.stderr)
            return 1
        print(f"Imported from {args.import_path}")
        return 0

    DailyRitualApp(root).run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
