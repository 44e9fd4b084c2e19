"""
Logging configuration — central setup for the CLI.

Called once at startup by ``openvpn_unroot.main``. Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    --debug  >  --verbose  >  OPENVPN_UNROOT_LOG_LEVEL  >  WARNING

Optional file output via OPENVPN_UNROOT_LOG_FILE / OPENVPN_UNROOT_LOG_FILE_LEVEL.
A log file is worth having on real runs: it keeps the rollback trail.
"""

from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "OPENVPN_UNROOT_LOG_LEVEL"
LOG_FILE_ENV = "OPENVPN_UNROOT_LOG_FILE"
LOG_FILE_LEVEL_ENV = "OPENVPN_UNROOT_LOG_FILE_LEVEL"

# ── Format strings ──────────────────────────────────────────────

# WARNING level — advisories and rollback only, no noise
_FMT_MINIMAL = "%(levelname)s: %(message)s"

# INFO level — derivation results and each generator step
_FMT_VERBOSE = "%(asctime)s %(message)s"
_DATEFMT_VERBOSE = "%H:%M:%S"

# DEBUG level and file output — full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%Y-%m-%d %H:%M:%S"

# (highest level, format, datefmt), first match wins
_CONSOLE_FORMATS = (
    (logging.DEBUG, _FMT_DEBUG, _DATEFMT_DEBUG),
    (logging.INFO, _FMT_VERBOSE, _DATEFMT_VERBOSE),
    (sys.maxsize, _FMT_MINIMAL, None),
)


def resolve_level(debug: bool = False, verbose: bool = False) -> str:
    """Console level from CLI flags, falling back to the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return os.environ.get(LOG_LEVEL_ENV, "WARNING")


def _console_handler(numeric_level: int) -> logging.Handler:
    """stderr handler whose format gets richer as the level drops."""
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if numeric_level <= threshold:
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, numeric_level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(numeric_level)
    handler.setFormatter(logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_DEBUG))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Install the console handler (and an optional file handler) on the root logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Log file path; falls back to $OPENVPN_UNROOT_LOG_FILE.
        log_file_level: File level; falls back to $OPENVPN_UNROOT_LOG_FILE_LEVEL,
            then DEBUG.
    """
    console_level = _parse_level(level)
    handlers = [_console_handler(console_level)]

    log_file = log_file or os.environ.get(LOG_FILE_ENV)
    if log_file:
        file_level = _parse_level(
            log_file_level or os.environ.get(LOG_FILE_LEVEL_ENV), default=logging.DEBUG
        )
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(min(h.level for h in handlers))
    # handler errors (e.g. a closed stderr) are dropped silently
    logging.raiseExceptions = False


def _parse_level(name: str | None, default: int = logging.WARNING) -> int:
    """Level name to its numeric value; unknown names give ``default``."""
    value = getattr(logging, name.upper(), None) if name else None
    return value if isinstance(value, int) else default
