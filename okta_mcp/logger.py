"""
File-only logging for the okta_mcp package

stdout carries the stdio protocol, so no handler here ever points at it.
Handlers hang off the package logger "okta_mcp"; component loggers are its
children and propagate to it, and it never propagates to the root logger.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import Config

PACKAGE_LOGGER = "okta_mcp"

_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _owner_only_file(path: Path, level: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    # Tool arguments carry passwords and profile data
    try:
        os.chmod(path, 0o600)
    except OSError:
        pass
    return handler


def _configure(root: logging.Logger) -> None:
    level = logging.getLevelName(Config.LOG_LEVEL.upper())
    root.setLevel(level if isinstance(level, int) else logging.DEBUG)
    try:
        Config.ensure_dirs()
        root.addHandler(_owner_only_file(Config.LOG_FILE, logging.DEBUG))
        root.addHandler(_owner_only_file(Config.ERROR_LOG, logging.ERROR))
    except OSError as exc:
        stderr = logging.StreamHandler(sys.stderr)
        stderr.setLevel(logging.INFO)
        stderr.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
        root.addHandler(stderr)
        root.warning(f"Log directory {Config.LOG_DIR} unusable ({exc}); logging to stderr")
    root.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Component logger "okta_mcp.<name>"; configures the package logger on first use."""
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        _configure(root)
    return root.getChild(name)
