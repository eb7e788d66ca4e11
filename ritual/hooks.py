"""Notification, sound and haptic triggers for Daily Ritual.

The store never talks to an OS notification centre directly. It calls a
``Notifier``; the default one queues shell commands configured in hooks.yaml
and runs them on a worker thread, passing a JSON context on stdin. This keeps
platform glue (notify-send, afplay, a phone bridge, ...) out of the engine.

Hook points:
- on_all_complete        every daily/timed ritual done for a date
- on_toggle              a completion was added or removed
- on_timer_complete      a timed session was finalized
- on_reminders_changed   notification settings changed; context carries the schedule
"""

from __future__ import annotations

import json
import logging
import queue
import subprocess
import threading
from pathlib import Path
from typing import Any, Protocol

from ritual.fileio import read_yaml
from ritual.models import UserSettings
from ritual.workspace import hooks_config_path, workspace_root

logger = logging.getLogger(__name__)

VALID_HOOK_POINTS = {
    "on_all_complete",
    "on_toggle",
    "on_timer_complete",
    "on_reminders_changed",
}

DEFAULT_TIMEOUT = 30


def load_hooks_config(root: Path | None = None) -> dict[str, Any]:
    """Load hooks configuration from hooks.yaml."""
    if root is None:
        root = workspace_root()
    path = hooks_config_path(root)
    if not path.exists():
        return {}
    return read_yaml(path)


def run_hooks(
    hook_point: str,
    context: dict[str, Any],
    root: Path | None = None,
) -> list[dict[str, Any]]:
    """Run all hooks registered for a given hook point.

    Context is passed as JSON via stdin to each hook subprocess.
    Returns list of results with stdout/stderr and exit codes.
    """
    if hook_point not in VALID_HOOK_POINTS:
        logger.debug("Ignoring unknown hook point %s", hook_point)
        return []

    if root is None:
        root = workspace_root()

    try:
        config = load_hooks_config(root)
    except Exception as e:
        logger.warning("Could not read hooks config: %s", e)
        return []
    hooks = config.get(hook_point, [])

    if not hooks or not isinstance(hooks, list):
        return []

    results = []
    context_json = json.dumps({"hook_point": hook_point, **context}, ensure_ascii=False)

    for hook in hooks:
        if isinstance(hook, str):
            command = hook
            timeout = DEFAULT_TIMEOUT
        elif isinstance(hook, dict):
            command = hook.get("command", "")
            timeout = hook.get("timeout", DEFAULT_TIMEOUT)
        else:
            continue

        if not command:
            continue

        result: dict[str, Any] = {"command": command, "hook_point": hook_point}
        try:
            proc = subprocess.run(
                command,
                shell=True,
                input=context_json,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=str(root),
            )
            result["exit_code"] = proc.returncode
            result["stdout"] = proc.stdout[:4096]  # Cap output
            result["stderr"] = proc.stderr[:4096]
            if proc.returncode != 0:
                logger.warning("Hook %r for %s exited %d", command, hook_point, proc.returncode)
        except subprocess.TimeoutExpired:
            result["exit_code"] = -1
            result["error"] = f"Hook timed out after {timeout}s"
            logger.warning("Hook %r for %s timed out after %ss", command, hook_point, timeout)
        except Exception as e:
            result["exit_code"] = -1
            result["error"] = str(e)
            logger.error("Hook %r for %s failed: %s", command, hook_point, e)

        results.append(result)

    return results


# ── Reminder schedule ─────────────────────────────────────────


def parse_time_string(value: str) -> tuple[int, int]:
    """'08:30' -> (8, 30)."""
    hour, minute = value.split(":", 1)
    return int(hour), int(minute)


def reminder_schedule(settings: UserSettings) -> list[dict[str, Any]]:
    """Which repeating daily reminders should exist for *settings*.

    Nothing is scheduled while notifications are disabled. Entries with an
    unparseable time are skipped.
    """
    if not settings.notifications_enabled:
        return []

    wanted = [
        ("morning", settings.morning_reminder_time),
        ("evening", settings.evening_reminder_time),
    ]
    if settings.streak_alert_enabled:
        wanted.append(("streak_alert", settings.streak_alert_time))
    if settings.incomplete_reminder_enabled:
        wanted.append(("incomplete", settings.incomplete_reminder_time))

    schedule = []
    for tag, value in wanted:
        try:
            hour, minute = parse_time_string(value)
        except (ValueError, AttributeError):
            logger.warning("Skipping %s reminder with bad time %r", tag, value)
            continue
        if not (0 <= hour < 24 and 0 <= minute < 60):
            logger.warning("Skipping %s reminder with bad time %r", tag, value)
            continue
        schedule.append({"tag": tag, "hour": hour, "minute": minute})
    return schedule


# ── Notifiers ─────────────────────────────────────────────────


class Notifier(Protocol):
    def celebrate(self, date: str) -> None: ...

    def feedback(self, event: str, **context: Any) -> None: ...

    def schedule_reminders(self, settings: UserSettings) -> None: ...

    def close(self) -> None: ...


class NullNotifier:
    """Drops every trigger."""

    def celebrate(self, date: str) -> None:
        pass

    def feedback(self, event: str, **context: Any) -> None:
        pass

    def schedule_reminders(self, settings: UserSettings) -> None:
        pass

    def close(self) -> None:
        pass


_STOP = object()


class HookNotifier:
    """Routes store triggers to the shell hooks in hooks.yaml.

    Triggers are queued and run by one daemon thread in the order they were
    made, so a slow hook never holds up the caller.
    """

    def __init__(self, root: Path | None = None, name: str = "ritual-hooks") -> None:
        self.root = root if root is not None else workspace_root()
        self._jobs: queue.Queue[tuple[Any, dict[str, Any]]] = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)
        self._thread.start()

    def celebrate(self, date: str) -> None:
        logger.info("All rituals complete for %s", date)
        self._dispatch("on_all_complete", {"date": date})

    def feedback(self, event: str, **context: Any) -> None:
        hook_point = f"on_{event}"
        if hook_point in VALID_HOOK_POINTS:
            self._dispatch(hook_point, context)

    def schedule_reminders(self, settings: UserSettings) -> None:
        schedule = reminder_schedule(settings)
        logger.info("Reminder schedule now has %d entries", len(schedule))
        self._dispatch(
            "on_reminders_changed",
            {"enabled": settings.notifications_enabled, "reminders": schedule},
        )

    def _dispatch(self, hook_point: str, context: dict[str, Any]) -> None:
        if self._closed:
            logger.warning("Hook %s after close was dropped", hook_point)
            return
        self._jobs.put((hook_point, dict(context)))

    def flush(self) -> None:
        """Block until every queued hook has run."""
        self._jobs.join()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._jobs.put((_STOP, {}))
        self._thread.join()

    def _run(self) -> None:
        while True:
            hook_point, context = self._jobs.get()
            try:
                if hook_point is _STOP:
                    return
                run_hooks(hook_point, context, self.root)
            except Exception:
                logger.exception("Hook dispatch for %s failed", hook_point)
            finally:
                self._jobs.task_done()
