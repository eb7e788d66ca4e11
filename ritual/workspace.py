"""Workspace root, configuration, timezone and path helpers for Daily Ritual."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from ritual.fileio import read_yaml, write_yaml_atomic

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "timezone": "UTC",
    "log_level": "INFO",
    "log_to_file": True,
}


def workspace_root() -> Path:
    """Get the workspace root directory (contains config.yaml, data/ and logs/)."""
    return Path(
        os.environ.get("RITUAL_ROOT", str(Path.home() / ".dailyritual"))
    ).expanduser().resolve()


def load_config(root: Path | None = None) -> dict[str, Any]:
    """Load config.yaml merged over defaults. A broken file yields the defaults."""
    if root is None:
        root = workspace_root()
    try:
        loaded = read_yaml(config_path(root))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring unreadable config %s: %s", config_path(root), e)
        loaded = {}
    return {**DEFAULT_CONFIG, **loaded}


def ensure_workspace(root: Path | None = None) -> Path:
    """Create the workspace layout and a default config.yaml on first run."""
    if root is None:
        root = workspace_root()
    data_dir(root).mkdir(parents=True, exist_ok=True)
    if not config_path(root).exists():
        write_yaml_atomic(config_path(root), dict(DEFAULT_CONFIG))
    return root


def get_user_timezone(root: Path | None = None) -> ZoneInfo:
    """Get user's timezone from config.yaml, defaulting to UTC."""
    name = load_config(root).get("timezone") or "UTC"
    try:
        return ZoneInfo(str(name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, falling back to UTC", name)
        return ZoneInfo("UTC")


def now_local(root: Path | None = None) -> datetime:
    """Get current datetime in user's timezone."""
    return datetime.now(get_user_timezone(root))


def today_str(root: Path | None = None) -> str:
    """Get today's date string (YYYY-MM-DD) in user's timezone."""
    return now_local(root).date().isoformat()


# ── Path helpers ──────────────────────────────────────────────

def config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "config.yaml"


def hooks_config_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "hooks.yaml"


def data_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "data"


def log_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "logs"
