"""Tests for ritual/phrases.py."""

import random

from ritual.models import UserSettings
from ritual.phrases import DEFAULT_PHRASES, format_clock, format_duration, pick_phrase


def test_fifteen_default_phrases():
    assert len(DEFAULT_PHRASES) == 15
    assert all(word.isupper() for phrase in DEFAULT_PHRASES for word in phrase)


def test_selected_phrase():
    assert pick_phrase(UserSettings(selected_phrase_index=1)) == ["NO", "EXCUSES"]


def test_invalid_index_picks_random_default():
    phrase = pick_phrase(UserSettings(selected_phrase_index=99), random.Random(0))
    assert phrase in DEFAULT_PHRASES


def test_custom_phrases_replace_defaults():
    settings = UserSettings(custom_phrases=[["SHOW", "UP"]])
    assert pick_phrase(settings, random.Random(1)) == ["SHOW", "UP"]
    assert pick_phrase(UserSettings(custom_phrases=[["A"], ["B"]], selected_phrase_index=1)) == ["B"]


def test_format_duration():
    assert format_duration(45) == "45 sec"
    assert format_duration(1800) == "30 min"
    assert format_duration(3600) == "1h"
    assert format_duration(5400) == "1h 30m"


def test_format_clock():
    assert format_clock(0) == "00:00"
    assert format_clock(905) == "15:05"
    assert format_clock(3725) == "1:02:05"
