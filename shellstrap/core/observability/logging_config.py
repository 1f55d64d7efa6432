"""
Logging configuration — central setup for the CLI.

Called once at startup by main.py.  Every module that does
``logger = logging.getLogger(__name__)`` inherits this config.

Levels are resolved in precedence order:
    CLI flag  >  SHELLSTRAP_LOG_LEVEL env var  >  INFO (default)

At INFO and above the console shows one severity-tagged line per event:

    [+] Linked: ~/.cache/pip -> /local/me/.cache/pip
    [!] Not writable: /local/me/.cache (skipping)
    [x] zsh is required but couldn't be installed without admin rights.

Optional file output via SHELLSTRAP_LOG_FILE / SHELLSTRAP_LOG_FILE_LEVEL.
"""

from __future__ import annotations

import logging
import sys

# ── Format strings ──────────────────────────────────────────────

# INFO level: tag and message only
_FMT_MINIMAL = "%(tag)s %(message)s"

# DEBUG level: full diagnostic with file:line
_FMT_DEBUG = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_DEBUG = "%H:%M:%S"

# File output: always full detail
_FMT_FILE = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d — %(message)s"
_DATEFMT_FILE = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at INFO/DEBUG
_NOISY_LOGGERS = ("urllib3", "charset_normalizer")

_TAGS = {
    logging.DEBUG: ("[.]", "\033[2m"),
    logging.INFO: ("[+]", "\033[1;32m"),
    logging.WARNING: ("[!]", "\033[1;33m"),
    logging.ERROR: ("[x]", "\033[1;31m"),
    logging.CRITICAL: ("[x]", "\033[1;31m"),
}
_RESET = "\033[0m"


class TaggedFormatter(logging.Formatter):
    """Prefix each record with a (colored) severity tag."""

    def __init__(self, fmt: str = _FMT_MINIMAL, color: bool = False):
        super().__init__(fmt)
        self._color = color

    def format(self, record: logging.LogRecord) -> str:
        tag, color = _TAGS.get(record.levelno, ("[?]", ""))
        record.tag = f"{color}{tag}{_RESET}" if self._color and color else tag
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
    color: bool | None = None,
) -> None:
    """Configure Python logging for the entire process.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to a log file.
        log_file_level: Optional separate level for the log file.
            Defaults to the same as ``level``.
        quiet_third_party: If True, keep noisy third-party loggers at WARNING
            unless we're at DEBUG level.
        color: Colorize tags. Defaults to whether stderr is a terminal.
    """
    numeric_level = _parse_level(level)
    if color is None:
        color = sys.stderr.isatty()

    # ── Console handler (stderr) ────────────────────────────────
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(numeric_level)
    if numeric_level <= logging.DEBUG:
        console.setFormatter(logging.Formatter(_FMT_DEBUG, datefmt=_DATEFMT_DEBUG))
    else:
        console.setFormatter(TaggedFormatter(color=color))

    # ── Root logger ─────────────────────────────────────────────
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    # Effective root level = minimum of console and file levels
    effective_level = numeric_level

    # ── File handler (optional) ─────────────────────────────────
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else numeric_level
        effective_level = min(effective_level, file_level)

        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(file_level)
        fh.setFormatter(logging.Formatter(_FMT_FILE, datefmt=_DATEFMT_FILE))
        root.addHandler(fh)

    root.setLevel(effective_level)

    # ── Third-party noise control ───────────────────────────────
    if quiet_third_party and numeric_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # Don't propagate exceptions from logging itself
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    """Convert a level name string to its numeric constant."""
    if not level:
        return logging.INFO
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        return logging.INFO
    return numeric
