"""Logging utilities for gl-issues."""

from __future__ import annotations

import json
import logging
import os
import sys

from gl_issues.models import LOG_LEVEL_ENV

LOGGER_NAME = "gl-issues"

# Level names accepted in RUST_LOG
_ENV_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": logging.CRITICAL + 10,
}


class StructuredFormatter(logging.Formatter):
    """Formatter that can emit JSON lines when configured."""

    def __init__(self, json_mode: bool = False):
        super().__init__()
        self.json_mode = json_mode

    def format(self, record: logging.LogRecord) -> str:
        if self.json_mode and hasattr(record, "action_result"):
            return json.dumps(record.action_result.to_dict())
        if self.json_mode:
            return json.dumps({"level": record.levelname, "message": record.getMessage()})
        return f"[{record.levelname:<7}] {record.getMessage()}"


def level_from_env(value: str | None) -> int | None:
    """Map a RUST_LOG style value to a logging level, or None if unset/unknown."""
    if not value:
        return None
    return _ENV_LEVELS.get(value.strip().lower())


def setup_logging(json_mode: bool = False, verbose: bool = False) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if verbose:
        level = logging.DEBUG
    else:
        level = level_from_env(os.environ.get(LOG_LEVEL_ENV))
        if level is None:
            level = logging.INFO
    logger.setLevel(level)
    for old in list(logger.handlers):
        logger.removeHandler(old)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StructuredFormatter(json_mode=json_mode))
    logger.addHandler(handler)
    return logger
