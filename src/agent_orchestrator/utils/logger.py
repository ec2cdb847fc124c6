"""
Logging setup for the agent orchestrator using Python's standard logging
with JSON formatting for structured logs.

Log destinations:
- Console (stderr): Human-readable format for debugging
- logs/orchestrator-errors.jsonl: JSON format for error tracking
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import re
import sys

from typing import Any

from pythonjsonlogger import json as jsonlogger

from agent_orchestrator.core.constants import (
    LOG_BACKUP_COUNT_ERRORS,
    LOG_MAX_SIZE,
    LOG_PREVIEW_LENGTH,
    PROJECT_ROOT,
)
from agent_orchestrator.utils.request_context import get_request_context

LOGGER_NAME = "agent-orchestrator"

# PII Redaction patterns
REDACTION_PATTERNS = [
    (r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b", "[EMAIL]"),
    (r"\b(?:\d{4}[- ]?){3}\d{4}\b", "[CARD]"),
    (r"\b(sk-|pk-|api[-_]?key[-_]?)[A-Za-z0-9]{20,}\b", "[API_KEY]"),
    (r"\b(password|secret|token)\s*[:=]\s*\S+", "[REDACTED]"),
]


class ErrorFilter(logging.Filter):
    """Filter to only allow ERROR and CRITICAL logs"""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class ColoredConsoleFormatter(logging.Formatter):
    """
    Formatter that colors the level tag.
    Format: HH:MM:SS [LEVEL] logger_name - message
    """

    GREY = "\x1b[38;20m"
    GREEN = "\x1b[32;20m"
    YELLOW = "\x1b[33;20m"
    RED = "\x1b[31;20m"
    BOLD_RED = "\x1b[31;1m"
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: GREY,
        logging.INFO: GREEN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD_RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno)
        level_fmt = f"[{record.levelname}]"
        if color:
            level_fmt = f"{color}{level_fmt}{self.RESET}"

        record.asctime = self.formatTime(record, "%H:%M:%S")
        message = f"{record.asctime} {level_fmt} {record.name} - {record.getMessage()}"
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return message


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def setup_logging(
    name: str = LOGGER_NAME,
    debug: bool | None = None,
    log_to_file: bool | None = None,
) -> logging.Logger:
    """
    Set up logging with a console handler and an optional JSON error log.

    Args:
        name: Logger name
        debug: Enable debug logging (overrides DEBUG env var)
        log_to_file: Write JSON error logs (overrides LOG_TO_FILE env var)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level
    logger.handlers = []
    logger.propagate = False

    if debug is None:
        debug = _env_flag("DEBUG", "false")
    if log_to_file is None:
        log_to_file = _env_flag("LOG_TO_FILE", "true")

    # --- Console Handler (Human-readable) ---
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    logger.addHandler(console_handler)

    if not log_to_file:
        return logger

    # --- Error Log Handler (JSON) ---
    log_dir = PROJECT_ROOT / "logs"
    log_dir.mkdir(exist_ok=True)

    error_handler = logging.handlers.RotatingFileHandler(
        log_dir / "orchestrator-errors.jsonl",
        maxBytes=LOG_MAX_SIZE,
        backupCount=LOG_BACKUP_COUNT_ERRORS,
        encoding="utf-8",
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.addFilter(ErrorFilter())
    error_handler.setFormatter(
        jsonlogger.JsonFormatter(
            "%(timestamp)s %(levelname)s %(name)s %(message)s %(request_id)s %(agent_id)s",
            timestamp=True,
        )
    )
    logger.addHandler(error_handler)

    return logger


def redact_content(text: str) -> str:
    """Redact PII from text using defined patterns."""
    if not text:
        return text

    redacted = text
    for pattern, replacement in REDACTION_PATTERNS:
        redacted = re.sub(pattern, replacement, redacted)
    return redacted


def preview(text: str | None, length: int = LOG_PREVIEW_LENGTH) -> str:
    """Single-line, redacted preview of prompt or response text."""
    if not text:
        return ""
    snippet = redact_content(text[:length].replace("\n", " "))
    return f"{snippet}..." if len(text) > length else snippet


class OrchestratorLogger:
    """
    High-level logging interface for the orchestrator.
    Wraps standard Python logging and attaches the active request context.
    """

    def __init__(self, name: str = LOGGER_NAME):
        self.logger = setup_logging(name)

    def _enrich_context(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        if ctx := get_request_context():
            for key, value in ctx.to_log_context().items():
                kwargs.setdefault(key, value)
        return kwargs

    def debug(self, message: str, **kwargs: Any) -> None:
        """Debug level logging"""
        self.logger.debug(message, extra=self._enrich_context(kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        """Info level logging"""
        self.logger.info(message, extra=self._enrich_context(kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        """Warning level logging"""
        self.logger.warning(message, extra=self._enrich_context(kwargs))

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Error level logging with optional exception info"""
        self.logger.error(message, extra=self._enrich_context(kwargs), exc_info=exc_info)

    def log_agent_call(
        self,
        kind: str,
        prompt: str,
        success: bool,
        duration_ms: float | None = None,
        tokens_used: int | None = None,
        error: str | None = None,
    ) -> None:
        """Log the outcome of one orchestration call with a redacted prompt preview."""
        status = "ok" if success else "failed"
        msg_parts = [f"Agent call [{kind}] {status}: {preview(prompt) or '[empty prompt]'}"]

        if duration_ms is not None:
            msg_parts.append(f"[{duration_ms:.0f}ms]")
        if tokens_used:
            msg_parts.append(f"[{tokens_used} tokens]")
        if error:
            msg_parts.append(f"- {error}")

        extra_data: dict[str, Any] = {"agent_call": True, "kind": kind, "success": success}
        if duration_ms is not None:
            extra_data["ms"] = int(duration_ms)
        if tokens_used is not None:
            extra_data["tokens"] = tokens_used

        self.logger.info(" ".join(msg_parts), extra=self._enrich_context(extra_data))


# Global logger instance
logger = OrchestratorLogger()
