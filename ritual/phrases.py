"""Motivational phrases shown when a timed ritual starts."""

from __future__ import annotations

import random

from ritual.models import UserSettings

DEFAULT_PHRASES: list[list[str]] = [
    ["LOCK", "IN"],
    ["NO", "EXCUSES"],
    ["DO", "THE", "WORK"],
    ["BECOME", "WHO", "YOU", "WANT", "TO", "BE"],
    ["TIME", "TO", "FOCUS"],
    ["DISCIPLINE", "EQUALS", "FREEDOM"],
    ["ONE", "REP", "AT", "A", "TIME"],
    ["THE", "WORK", "IS", "THE", "WAY"],
    ["EMBRACE", "THE", "GRIND"],
    ["EARN", "IT"],
    ["STAY", "HARD"],
    ["YOU", "VS", "YOU"],
    ["MAKE", "IT", "HAPPEN"],
    ["NO", "ZERO", "DAYS"],
    ["TRUST", "THE", "PROCESS"],
]


def available_phrases(settings: UserSettings) -> list[list[str]]:
    """Custom phrases replace the defaults entirely once the user has any."""
    return settings.custom_phrases or DEFAULT_PHRASES


def pick_phrase(settings: UserSettings, rng: random.Random | None = None) -> list[str]:
    """The selected phrase if the index is valid, otherwise a random one."""
    phrases = available_phrases(settings)
    index = settings.selected_phrase_index
    if index is not None and 0 <= index < len(phrases):
        return phrases[index]
    return (rng or random).choice(phrases)


def format_duration(seconds: int) -> str:
    """1800 -> '30 min', 5400 -> '1h 30m', 45 -> '45 sec'."""
    if seconds < 60:
        return f"{seconds} sec"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} min"
    hours, rem = divmod(minutes, 60)
    return f"{hours}h {rem}m" if rem else f"{hours}h"


def format_clock(seconds: int) -> str:
    """Timer display: 'MM:SS', or 'H:MM:SS' past an hour."""
    hours, rem = divmod(max(0, seconds), 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"
