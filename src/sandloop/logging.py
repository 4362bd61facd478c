"""
Sandloop Structured Logging

Provides a configured logger for sandloop using stdlib logging
with structured context.

Usage:
    from sandloop.logging import get_logger

    logger = get_logger("sandloop.agent")
    logger.info("Tool dispatched", extra={"session_id": "s-123", "tool_name": "read_file"})

Inside the agent loop, bind the session once:
    from sandloop.logging import session_logger

    log = session_logger(logger, session.id, session.workspace_id)
    log.warning("Tool failed", extra={"tool_name": "read_file", "duration_ms": 12.5})

For production, configure with JSON output:
    from sandloop.logging import configure_logging
    configure_logging(json_output=True, level="INFO")
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Extras that identify the session and tool call a record belongs to
SESSION_KEYS = ("session_id", "workspace_id")
TOOL_KEYS = ("tool_name", "tool_call_id")
# Extras describing what happened
OUTCOME_KEYS = ("state", "event_type", "failure_reason", "duration_ms")


class SandloopFormatter(logging.Formatter):
    """Structured log formatter for sandloop.

    Human-readable lines carry a compact scope tag such as
    ``sess-1a2b3c4d@ws-1 read_file#toolu_01`` ahead of the outcome fields.
    JSON output nests the same data under ``session`` and ``tool`` objects.
    """

    def __init__(self, json_output: bool = False):
        super().__init__()
        self._json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        session = _collect(record, SESSION_KEYS)
        tool = _collect(record, TOOL_KEYS)
        outcome = _collect(record, OUTCOME_KEYS)
        timestamp = datetime.now(timezone.utc).isoformat()
        exception = self.formatException(record.exc_info) if record.exc_info else None

        if self._json_output:
            log_data: dict[str, Any] = {
                "timestamp": timestamp,
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            if session:
                log_data["session"] = {"id" if k == "session_id" else k: v for k, v in session.items()}
            if tool:
                log_data["tool"] = {"name" if k == "tool_name" else "call_id": v for k, v in tool.items()}
            log_data.update(outcome)
            if exception:
                log_data["exception"] = exception
            return json.dumps(log_data, default=str)

        line = f"[{timestamp}] {record.levelname:8s} {record.name}: "
        scope = _scope_tag(session, tool)
        if scope:
            line += f"[{scope}] "
        line += record.getMessage()
        if outcome:
            line += " | " + " ".join(f"{k}={v}" for k, v in outcome.items())
        if exception:
            line += "\n" + exception
        return line


class SessionLogger(logging.LoggerAdapter):
    """Logger adapter that stamps every record with a session's identity.

    Per-call extras are merged over the bound ones, so a dispatch can add
    tool_name and tool_call_id without repeating the session fields.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        kwargs["extra"] = {**(self.extra or {}), **kwargs.get("extra", {})}
        return msg, kwargs


def session_logger(logger: logging.Logger, session_id: str, workspace_id: str | None = None) -> SessionLogger:
    """Bind a logger to one agent session."""
    return SessionLogger(logger, {"session_id": session_id, "workspace_id": workspace_id})


def _collect(record: logging.LogRecord, keys: tuple[str, ...]) -> dict[str, Any]:
    values = {}
    for key in keys:
        value = getattr(record, key, None)
        if value is not None:
            values[key] = value
    return values


def _scope_tag(session: dict[str, Any], tool: dict[str, Any]) -> str:
    parts = []
    if session:
        tag = session.get("session_id", "-")
        if "workspace_id" in session:
            tag += f"@{session['workspace_id']}"
        parts.append(tag)
    if tool:
        tag = tool.get("tool_name", "?")
        if "tool_call_id" in tool:
            tag += f"#{tool['tool_call_id']}"
        parts.append(tag)
    return " ".join(parts)


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
) -> None:
    """Configure sandloop logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: If True, output JSON format (for log shipping).
    """
    root_logger = logging.getLogger("sandloop")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(SandloopFormatter(json_output=json_output))
    root_logger.addHandler(handler)

    root_logger.propagate = False


def get_logger(name: str = "sandloop") -> logging.Logger:
    """Get a sandloop logger instance.

    Args:
        name: Logger name (usually module path like "sandloop.agent").
    """
    return logging.getLogger(name)


# Auto-configure with sensible defaults on import
configure_logging()
