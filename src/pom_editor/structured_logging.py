"""
Structured logging configuration for pom-editor.

Emits one JSON object per event so edits and rollbacks can be audited by
CI log processors.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_RESERVED_RECORD_KEYS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StderrHandler(logging.StreamHandler):
    """Stream handler bound to whatever ``sys.stderr`` is when a record is emitted."""

    @property
    def stream(self):
        return sys.stderr

    @stream.setter
    def stream(self, value):
        pass


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class EventLogger:
    """Structured logger for edit events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"pom_editor.{name}")
        self._setup_logger()
        self.edit_context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = StderrHandler()
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def use_json(self, enabled: bool) -> None:
        """Switch between JSON and plain text output."""
        formatter = (
            StructuredFormatter()
            if enabled
            else logging.Formatter("%(levelname)s %(name)s: %(event_type)s")
        )
        for handler in self.logger.handlers:
            handler.setFormatter(formatter)

    def set_edit_context(
        self, file_path: Optional[str] = None, dependency: Optional[str] = None
    ) -> None:
        """Set edit context for logging."""
        self.edit_context = {}
        if file_path:
            self.edit_context["file_path"] = file_path
        if dependency:
            self.edit_context["dependency"] = dependency

    def clear_edit_context(self) -> None:
        """Clear edit context."""
        self.edit_context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        log_data = {"event_type": event_type, **self.edit_context, **kwargs}
        getattr(self.logger, level.lower())("", extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        """Log warning level event."""
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        """Log error level event."""
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log("debug", event_type, **kwargs)


# Global logger instances
_transaction_logger = EventLogger("transaction.events")
_editor_logger = EventLogger("editor.events")

_ALL_LOGGERS = (_transaction_logger, _editor_logger)


def get_transaction_logger() -> EventLogger:
    """Get file transaction logger."""
    return _transaction_logger


def get_editor_logger() -> EventLogger:
    """Get manifest editing logger."""
    return _editor_logger


def log_transaction_event(state: str, target: str, **kwargs) -> None:
    """Log a transaction state transition."""
    logger = get_transaction_logger()
    if state in ("rolled_back", "rollback_failed", "aborted"):
        logger.warning("transaction_" + state, target=target, **kwargs)
    else:
        logger.info("transaction_" + state, target=target, **kwargs)


def log_dependency_change(
    action: str,
    dependency: str,
    file_path: str,
    previous_version: Optional[str] = None,
) -> None:
    """Log the outcome of an insert-or-upgrade."""
    log_data = {"action": action, "dependency": dependency, "file_path": file_path}
    if previous_version is not None:
        log_data["previous_version"] = previous_version
    get_editor_logger().info("dependency_change", **log_data)


def set_edit_context(
    file_path: Optional[str] = None, dependency: Optional[str] = None
) -> None:
    """Set global edit context for all loggers."""
    for logger in _ALL_LOGGERS:
        logger.set_edit_context(file_path, dependency)


def clear_edit_context() -> None:
    """Clear global edit context."""
    for logger in _ALL_LOGGERS:
        logger.clear_edit_context()


def configure_logging(log_level: str = "WARNING", enable_json: bool = True) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    package_logger = logging.getLogger("pom_editor")
    package_logger.setLevel(level)

    for logger in _ALL_LOGGERS:
        logger.logger.setLevel(level)
        logger.use_json(enable_json)
