"""
Structured Logger
==================

Structured JSON logging with request context injection for the inbox
service. Every record carries the active request id, the continuum it is
about and the request surface (rest, nqp, compact, search) when known.

Design:
  - JSON-structured output for machine parsing
  - Human-readable fallback for development
  - Context carried in ContextVars, so concurrent requests never mix fields
  - Event-name + keyword-field call style (``log.info("message_enqueued", tier="Q0")``)
"""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import sys
import traceback
from contextvars import ContextVar
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# ── Context Variables ──────────────────────────────────────────────

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_continuum_id: ContextVar[str | None] = ContextVar("continuum_id", default=None)
_surface: ContextVar[str | None] = ContextVar("surface", default=None)

def set_request_context(
    *,
    request_id: str | None = None,
    continuum_id: str | None = None,
    surface: str | None = None,
) -> None:
    """Set request-scoped context for log enrichment."""
    if request_id is not None:
        _request_id.set(request_id)
    if continuum_id is not None:
        _continuum_id.set(continuum_id)
    if surface is not None:
        _surface.set(surface)

def clear_request_context() -> None:
    """Clear all request-scoped context."""
    _request_id.set(None)
    _continuum_id.set(None)
    _surface.set(None)

# ── Structured Formatter ──────────────────────────────────────────

_RESERVED = frozenset({
    "name", "msg", "args", "created", "relativeCreated",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName",
    "pathname", "filename", "module", "levelno", "levelname",
    "thread", "threadName", "process", "processName", "msecs",
    "taskName", "message",
})
_JSON_SAFE = (str, int, float, bool, type(None))

class StructuredFormatter(logging.Formatter):
    """JSON-structured log formatter with automatic context injection."""

    def __init__(self, *, json_output: bool = True, include_traceback: bool = True):
        super().__init__()
        self._json = json_output
        self._include_tb = include_traceback
        self._pid = os.getpid()

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
            "pid": self._pid,
        }

        ctx_fields = {
            "request_id": _request_id.get(None),
            "continuum_id": _continuum_id.get(None),
            "surface": _surface.get(None),
        }
        entry["context"] = {k: v for k, v in ctx_fields.items() if v is not None}

        extras: dict[str, Any] = {}
        for key, val in record.__dict__.items():
            if key.startswith("_") or key in _RESERVED:
                continue
            extras[key] = val if isinstance(val, _JSON_SAFE) else str(val)
        if extras:
            entry["data"] = extras

        if record.exc_info and self._include_tb:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": traceback.format_exception(*record.exc_info)
                if record.exc_info[2]
                else None,
            }

        if self._json:
            return json.dumps(entry, default=str, ensure_ascii=False)

        # Human-readable fallback
        req_id = (entry["context"].get("request_id") or "-")[:8]
        line = (
            f"{entry['timestamp']} | {entry['level']:8s} | "
            f"{req_id} | {entry['logger']}:{entry['line']} | "
            f"{entry['message']}"
        )
        if extras:
            line += " " + " ".join(f"{k}={v}" for k, v in extras.items())
        if "exception" in entry and entry["exception"]["traceback"]:
            line += "\n" + "".join(entry["exception"]["traceback"]).rstrip()
        return line

# ── Structured Logger ─────────────────────────────────────────────

class StructuredLogger:
    """
    Wrapper around stdlib logger providing structured logging helpers.

    Usage:
        log = get_logger("mesh_inbox.services.queue_engine")
        log.info("message_enqueued", continuum_id="Beta", tier="Q0")
        log.warning("corrupt_envelope_skipped", tier="Q2", error="Expecting value")
    """

    __slots__ = ("_logger", "_name")

    def __init__(self, name: str):
        self._name = name
        self._logger = logging.getLogger(name)

    @property
    def name(self) -> str:
        return self._name

    def _log(self, level: int, event: str, **kwargs: Any) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(level, event, extra=kwargs, stacklevel=3)

    def debug(self, event: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        self._log(logging.INFO, event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, event, **kwargs)

    def error(self, event: str, exc: BaseException | None = None, **kwargs: Any) -> None:
        if exc:
            self._logger.error(event, extra=kwargs, exc_info=exc, stacklevel=2)
        else:
            self._log(logging.ERROR, event, **kwargs)

# ── Setup ──────────────────────────────────────────────────────────

_initialized = False

def setup_logging(
    *,
    level: str = "INFO",
    json_output: bool | None = None,
    log_dir: str | None = None,
) -> None:
    """
    Initialize the logging system. Call once at application startup.

    Args:
        level: Root log level
        json_output: Force JSON output. Auto-detects if None (JSON in production, human in dev)
        log_dir: Directory for log files. None = stdout only.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    if json_output is None:
        json_output = os.getenv("ENVIRONMENT", "development") != "development"

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(StructuredFormatter(json_output=json_output))
    console.setLevel(logging.DEBUG)
    root.addHandler(console)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_path / "mesh_inbox.log",
            maxBytes=50 * 1024 * 1024,  # 50MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(StructuredFormatter(json_output=True))
        file_handler.setLevel(logging.DEBUG)
        root.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            log_path / "errors.log",
            maxBytes=20 * 1024 * 1024,  # 20MB
            backupCount=3,
            encoding="utf-8",
        )
        error_handler.setFormatter(StructuredFormatter(json_output=True))
        error_handler.setLevel(logging.ERROR)
        root.addHandler(error_handler)

    # Reduce noise from third-party libraries
    for noisy in ("httpx", "httpcore", "asyncio", "uvicorn.access", "redis"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return StructuredLogger(name)
