"""Tests for ritual/store.py: habit, completion, review and settings operations."""

import logging

from ritual.models import HabitType
from ritual.storage import StorageKey
from ritual.store import RitualStore
from ritual.writer import SyncWriter

TODAY = "2024-01-05"


def _enable_celebration(store):
    store.update_settings(notifications_enabled=True, completion_celebration_enabled=True)


# ── Habits ────────────────────────────────────────────────────


def test_add_habit_appends_and_persists(store, storage):
    first = store.add_habit("Stretch", HabitType.DAILY)
    second = store.add_habit("Gym", "weekly")
    assert (first.order, second.order) == (0, 1)
    assert first.id != second.id
    assert second.target_per_week == 1
    assert first.created_at.startswith("2024-01-05T12:00:00")
    assert [h.name for h in storage.load_habits()] == ["Stretch", "Gym"]


def test_add_timed_habit_defaults(store):
    habit = store.add_habit("Meditate", HabitType.TIMED, why="calm")
    assert habit.target_duration == 1800
    assert habit.why == "calm"
    assert habit.target_per_week is None


def test_add_habit_rejects_empty_name(store):
    assert store.add_habit("", HabitType.DAILY) is None
    assert store.add_habit("   ", HabitType.DAILY) is None
    assert store.add_habit("Run", "hourly") is None
    assert store.habits == []


def test_add_then_delete_restores_list(store):
    store.add_habit("Stretch", HabitType.DAILY)
    before = list(store.habits)
    habit = store.add_habit("Read", HabitType.DAILY)
    assert store.delete_habit(habit.id) is True
    assert store.habits == before


def test_delete_cascades(store):
    habit = store.add_habit("Meditate", HabitType.TIMED, target_duration=600)
    other = store.add_habit("Stretch", HabitType.DAILY)
    store.toggle_completion(habit.id, "2024-01-04")
    store.toggle_completion(other.id, "2024-01-04")
    store.start_timer(habit)
    store.tick(30)
    store.stop_timer()
    assert store.get_timed_progress_for_habit(habit.id, TODAY) == 30

    store.delete_habit(habit.id)
    assert [c.habit_id for c in store.completions] == [other.id]
    assert store.timed_progress == []
    assert store.timer_state.is_idle


def test_delete_resets_active_timer(store):
    habit = store.add_habit("Meditate", HabitType.TIMED)
    store.start_timer(habit)
    store.delete_habit(habit.id)
    assert store.timer_state.is_idle


def test_delete_unknown_is_noop(store):
    store.add_habit("Stretch", HabitType.DAILY)
    assert store.delete_habit("nope") is False
    assert len(store.habits) == 1


def test_toggle_unknown_habit_is_noop(store, storage, notifier):
    assert store.toggle_completion("no-such-habit", TODAY) is False
    assert store.completions == []
    assert storage.load_completions() == []
    assert notifier.events == []


def test_update_habit_keeps_identity_fields(store):
    habit = store.add_habit("Stretch", HabitType.DAILY)
    updated = store.update_habit(habit.id, name="Yoga", type="weekly", id="other")
    assert updated.name == "Yoga"
    assert updated.type is HabitType.DAILY
    assert updated.id == habit.id
    assert store.update_habit("missing", name="x") is None


def test_archive_hides_from_queries(store):
    habit = store.add_habit("Stretch", HabitType.DAILY)
    store.archive_habit(habit.id)
    assert store.get_daily_habits() == []
    assert store.find_habit(habit.id).archived is True
    store.unarchive_habit(habit.id)
    assert [h.id for h in store.get_daily_habits()] == [habit.id]


def test_reorder_assigns_positions(store):
    a = store.add_habit("A", HabitType.DAILY)
    b = store.add_habit("B", HabitType.DAILY)
    c = store.add_habit("C", HabitType.DAILY)
    store.reorder_habits([c, a, b])
    assert [h.name for h in store.get_daily_habits()] == ["C", "A", "B"]


# ── Completions ───────────────────────────────────────────────


def test_toggle_twice_restores_completions(store):
    habit = store.add_habit("Stretch", HabitType.DAILY)
    before = list(store.completions)
    assert store.toggle_completion(habit.id, TODAY) is True
    assert store.is_completed(habit.id, TODAY)
    assert store.toggle_completion(habit.id, TODAY) is False
    assert store.completions == before


def test_toggle_reports_feedback(store, notifier):
    habit = store.add_habit("Stretch", HabitType.DAILY)
    store.toggle_completion(habit.id, TODAY)
    event, context = notifier.events[-1]
    assert event == "toggle"
    assert context == {"habit_id": habit.id, "date": TODAY, "completed": True}


def test_toggle_with_duration(store):
    habit = store.add_habit("Meditate", HabitType.TIMED)
    store.toggle_completion(habit.id, TODAY, duration=1200)
    assert store.get_completion_duration(habit.id, TODAY) == 1200


def test_celebrates_once_when_day_completed(store, notifier):
    _enable_celebration(store)
    a = store.add_habit("Stretch", HabitType.DAILY)
    b = store.add_habit("Meditate", HabitType.TIMED)
    store.add_habit("Gym", HabitType.WEEKLY)

    store.toggle_completion(a.id, TODAY)
    assert notifier.celebrations == []
    store.toggle_completion(b.id, TODAY)
    assert notifier.celebrations == [TODAY]
    store.toggle_completion(b.id, TODAY)  # removal never celebrates
    assert notifier.celebrations == [TODAY]


def test_no_celebration_when_notifications_off(store, notifier):
    store.update_settings(completion_celebration_enabled=True, notifications_enabled=False)
    habit = store.add_habit("Stretch", HabitType.DAILY)
    store.toggle_completion(habit.id, TODAY)
    assert notifier.celebrations == []


def test_completion_queries(store):
    a = store.add_habit("Stretch", HabitType.DAILY)
    b = store.add_habit("Read", HabitType.DAILY)
    for day in ("2024-01-05", "2024-01-03", "2024-01-04"):
        store.toggle_completion(a.id, day)
    store.toggle_completion(b.id, TODAY)
    assert store.get_completions_for_habit(a.id) == ["2024-01-03", "2024-01-04", "2024-01-05"]
    assert sorted(store.get_completions_for_date(TODAY)) == sorted([a.id, b.id])
    assert store.get_habit_streak(a.id) == 3
    assert store.get_longest_streak(a.id) == 3


def test_day_completion_rate(store):
    a = store.add_habit("Stretch", HabitType.DAILY)
    store.add_habit("Read", HabitType.DAILY)
    gym = store.add_habit("Gym", HabitType.WEEKLY)
    store.toggle_completion(a.id, TODAY)
    store.toggle_completion(gym.id, TODAY)
    assert store.get_day_completion_rate(TODAY) == 0.5


def test_streaks_at_risk_from_store(store):
    habit = store.add_habit("Stretch", HabitType.DAILY)
    for day in ("2024-01-02", "2024-01-03", "2024-01-04"):
        store.toggle_completion(habit.id, day)
    risks = store.get_streaks_at_risk()
    assert [(r.habit_id, r.streak_length) for r in risks] == [(habit.id, 3)]


# ── Reviews ───────────────────────────────────────────────────


def test_daily_review_upserts(store, storage):
    assert not store.has_reviewed_today()
    store.add_daily_review(2, "rough")
    review = store.add_daily_review(7, "better")
    assert review.rating == 5
    assert len(store.daily_reviews) == 1
    assert store.get_daily_review(TODAY).note == "better"
    assert store.has_reviewed_today()
    assert storage.load_daily_reviews()[0].rating == 5


# ── Settings ──────────────────────────────────────────────────


def test_notification_change_reschedules(store, notifier):
    store.update_settings(notifications_enabled=True)
    assert len(notifier.schedules) == 1
    store.update_settings(notifications_enabled=True)  # unchanged
    store.update_settings(timer_end_sound="bell")
    assert len(notifier.schedules) == 1
    store.update_settings(morning_reminder_time="07:30")
    assert notifier.schedules[-1].morning_reminder_time == "07:30"


def test_update_settings_ignores_unknown(store, storage):
    settings = store.update_settings(selected_phrase_index=2, volume=11)
    assert settings.selected_phrase_index == 2
    assert not hasattr(settings, "volume")
    assert storage.load_settings().selected_phrase_index == 2


# ── Lifecycle ─────────────────────────────────────────────────


def test_state_survives_restart(store, storage, notifier, clock):
    habit = store.add_habit("Stretch", HabitType.DAILY)
    store.toggle_completion(habit.id, TODAY)
    store.close()

    reopened = RitualStore(storage, notifier=notifier, clock=clock, writer=SyncWriter(storage))
    assert [h.id for h in reopened.habits] == [habit.id]
    assert reopened.is_completed(habit.id, TODAY)


def test_corrupt_collection_loads_empty(storage, notifier, clock):
    storage.path_for(StorageKey.HABITS).write_text("[{broken", encoding="utf-8")
    s = RitualStore(storage, notifier=notifier, clock=clock, writer=SyncWriter(storage))
    assert s.habits == []


def test_listeners_notified_and_isolated(store, caplog):
    seen = []

    def broken(topic):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(seen.append)
    with caplog.at_level(logging.ERROR):
        store.add_habit("Stretch", HabitType.DAILY)
    assert seen == ["habits"]
    assert "failed on habits" in caplog.text

    store.unsubscribe(seen.append)
    store.add_habit("Read", HabitType.DAILY)
    assert seen == ["habits"]
