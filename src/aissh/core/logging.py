"""
AISSH Logging — colorized for the terminal, JSON for log aggregation.

Features:
- Color formatter for dev mode (auto-detects TTY)
- JSON structured formatter for production (AISSH_LOG_FORMAT=json)
- Suppresses noisy third-party loggers (httpx, httpcore, openai, websockets)
- Configurable via AISSH_LOG_LEVEL, AISSH_LOG_COLOR, AISSH_LOG_FORMAT

Structured log extra fields (pass via logger.info(..., extra={...})):
    session_id, event, attempt, duration_ms, status
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone


# --- Color codes ---
COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[1;31m",  # Bold red
    "RESET": "\033[0m",
    "DIM": "\033[2m",
    "SESSION": "\033[35m",  # Magenta
}


class ColorFormatter(logging.Formatter):
    """Colorized log formatter for terminal output.

    Records carrying a session_id or event are tagged, e.g.
    ``12:00:01 [aissh.session.registry] INFO: (s1 ssh-connect) Connect request``.
    """

    def __init__(self, use_color: bool = True):
        super().__init__(
            fmt="%(asctime)s [%(name)s] %(levelname)s: %(tag)s%(message)s",
            datefmt="%H:%M:%S",
        )
        self.use_color = use_color

    @staticmethod
    def session_tag(record: logging.LogRecord) -> str:
        parts = [str(getattr(record, key)) for key in ("session_id", "event") if getattr(record, key, None)]
        return f"({' '.join(parts)}) " if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        tag = self.session_tag(record)
        if not self.use_color:
            record.tag = tag
            return super().format(record)

        level_color = COLORS.get(record.levelname, "")
        reset = COLORS["RESET"]
        dim = COLORS["DIM"]

        orig_levelname = record.levelname
        orig_name = record.name

        record.levelname = f"{level_color}{record.levelname}{reset}"
        record.name = f"{dim}{record.name}{reset}"
        record.tag = f"{COLORS['SESSION']}{tag}{reset}" if tag else ""

        result = super().format(record)

        record.levelname = orig_levelname
        record.name = orig_name

        return result


# Structured log fields forwarded from logger.info(..., extra={...})
_STRUCTURED_FIELDS = (
    "session_id",
    "event",
    "attempt",
    "duration_ms",
    "status",
)


class StructuredFormatter(logging.Formatter):
    """JSON log formatter — one object per line.

    Extra fields passed via logger.info("msg", extra={"session_id": "..."})
    are included at the top level.

    Enable with: AISSH_LOG_FORMAT=json
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "ts": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        for key in _STRUCTURED_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _should_use_color() -> bool:
    env_val = os.getenv("AISSH_LOG_COLOR", "auto").lower()
    if env_val == "true":
        return True
    if env_val == "false":
        return False
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def setup_logging(level_name: str | None = None) -> None:
    """Configure logging for the entire application.

    Call this once at startup. Logs go to stderr so they never interleave
    with command output the CLI prints to stdout. An explicit level_name
    (the CLI's --log-level) wins over AISSH_LOG_LEVEL.

    Env vars:
        AISSH_LOG_LEVEL  — DEBUG / INFO / WARNING / ERROR (default: WARNING)
        AISSH_LOG_COLOR  — true / false / auto (default: auto, TTY detection)
        AISSH_LOG_FORMAT — text / json (default: text)
    """
    level_name = (level_name or os.getenv("AISSH_LOG_LEVEL", "WARNING")).upper()
    level = getattr(logging, level_name, logging.WARNING)
    log_format = os.getenv("AISSH_LOG_FORMAT", "text").lower()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    if log_format == "json":
        formatter: logging.Formatter = StructuredFormatter()
    else:
        formatter = ColorFormatter(use_color=_should_use_color())

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    # --- Suppress noisy third-party loggers ---
    for noisy_logger in [
        "httpx",
        "httpcore",
        "openai",
        "openai._base_client",
        "websockets",
        "websockets.client",
    ]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logger = logging.getLogger("aissh")
    logger.debug("Logging configured (level=%s, format=%s)", level_name, log_format)
