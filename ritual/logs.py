"""Logging setup for Daily Ritual."""

from __future__ import annotations

import logging.config
from pathlib import Path
from typing import Any

from ritual.workspace import load_config, log_dir, workspace_root

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logging_config(root: Path, level: str = "INFO", to_file: bool = True) -> dict[str, Any]:
    """Build a dictConfig mapping: stderr console plus an optional rotating file."""
    level = str(level).upper()
    if level not in logging.getLevelNamesMapping():
        level = "INFO"

    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": "WARNING" if to_file else level,
            "formatter": "default",
            "stream": "ext://sys.stderr",
        },
    }
    if to_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "default",
            "filename": str(log_dir(root) / "ritual.log"),
            "maxBytes": 1_048_576,
            "backupCount": 3,
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": handlers,
        "loggers": {
            "ritual": {"level": level, "handlers": list(handlers), "propagate": False},
        },
    }


def configure_logging(root: Path | None = None) -> dict[str, Any]:
    """Apply logging settings from config.yaml. Returns the dictConfig used."""
    if root is None:
        root = workspace_root()
    config = load_config(root)
    to_file = bool(config.get("log_to_file", True))
    if to_file:
        log_dir(root).mkdir(parents=True, exist_ok=True)
    cfg = get_logging_config(root, config.get("log_level", "INFO"), to_file)
    logging.config.dictConfig(cfg)
    return cfg
