"""
Structured Logging with Trace IDs
=================================

JSON-structured logging with request tracing. An approval can sit pending
for minutes, so every entry logged while handling one request carries the
same trace id and the approval id, which makes it easy to follow a single
command from "requested" to "resolved" or "expired".
"""

import json
import logging
import re
import sys
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from execgate.config.settings import LoggingConfig

# Context variable to store trace_id for current request
_trace_id_var: ContextVar[str | None] = ContextVar('trace_id', default=None)

# Commands under review frequently carry credentials inline
_SECRET_PATTERNS = re.compile(
    r"(xoxb-[A-Za-z0-9-]+|sk-[A-Za-z0-9]+|ghp_[A-Za-z0-9]+|"
    r"AKIA[0-9A-Z]{16}|Bearer\s+[A-Za-z0-9._~+/=-]+)",
    re.IGNORECASE,
)

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_log_format = "json"


def _redact_secrets(text: str) -> str:
    return _SECRET_PATTERNS.sub("[REDACTED]", text)


class StructuredLogger:
    """
    Structured logger that outputs JSON logs with trace IDs

    Example output:
    {
        "timestamp": "2026-10-16T10:30:45.123+00:00",
        "level": "INFO",
        "trace_id": "abc123",
        "component": "ApprovalStore",
        "message": "Approval resolved",
        "approval_id": "approval-123",
        "decision": "allow-once"
    }
    """

    def __init__(self, component: str, logger: logging.Logger | None = None) -> None:
        """
        Initialize structured logger

        Args:
            component: Component name (e.g., 'ApprovalStore', 'ApprovalHandlers')
            logger: Optional existing logger (creates new if not provided)
        """
        self.component = component
        self.logger = logger or logging.getLogger(f"execgate.{component}")

    def _log(self, level: str, message: str, **kwargs) -> None:
        log_method = getattr(self.logger, level.lower())
        if not self.logger.isEnabledFor(getattr(logging, level)):
            return

        trace_id = _trace_id_var.get()

        if _log_format == "text":
            fields = " ".join(f"{k}={v}" for k, v in kwargs.items())
            if trace_id:
                fields = f"trace_id={trace_id} {fields}".rstrip()
            line = f"{message} {fields}".rstrip()
            log_method(_redact_secrets(line))
            return

        log_entry = {
            'timestamp': datetime.now(tz=UTC).isoformat(),
            'level': level,
            'component': self.component,
            'message': _redact_secrets(message),
        }

        if trace_id:
            log_entry['trace_id'] = trace_id

        # Additional fields, redacting string values
        for k, v in kwargs.items():
            log_entry[k] = _redact_secrets(v) if isinstance(v, str) else v

        log_method(_redact_secrets(json.dumps(log_entry, default=str)))

    def debug(self, message: str, **kwargs) -> None:
        """Log debug message"""
        self._log('DEBUG', message, **kwargs)

    def info(self, message: str, **kwargs) -> None:
        """Log info message"""
        self._log('INFO', message, **kwargs)

    def warning(self, message: str, **kwargs) -> None:
        """Log warning message"""
        self._log('WARNING', message, **kwargs)

    def error(self, message: str, **kwargs) -> None:
        """Log error message"""
        self._log('ERROR', message, **kwargs)


class TraceContext:
    """
    Context manager for setting trace_id for a request

    Usage:
        with TraceContext() as trace_id:
            # All logs within this context will include this trace_id
            logger.info("Handling approval request")
    """

    def __init__(self, trace_id: str | None = None) -> None:
        self.trace_id = trace_id or self._generate_trace_id()
        self.token = None

    def __enter__(self) -> str:
        self.token = _trace_id_var.set(self.trace_id)
        return self.trace_id

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        _trace_id_var.reset(self.token)

    @staticmethod
    def _generate_trace_id() -> str:
        """Generate a unique trace ID"""
        return str(uuid.uuid4())[:8]


def get_current_trace_id() -> str | None:
    return _trace_id_var.get()


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_logger(component: str) -> StructuredLogger:
    """
    Get a structured logger for a component

    Args:
        component: Component name

    Returns:
        StructuredLogger instance
    """
    return StructuredLogger(component)


def configure_logging(config: "LoggingConfig") -> logging.Logger:
    """
    Attach a stream handler to the ``execgate`` logger tree.

    JSON entries are already serialized by StructuredLogger, so the json
    format prints the bare message; text format prefixes time, level and
    logger name.
    """
    global _log_format
    _log_format = config.format

    root = logging.getLogger("execgate")
    root.setLevel(config.level)
    for handler in list(root.handlers):
        if getattr(handler, "_execgate_handler", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s" if config.format == "json" else _TEXT_FORMAT))
    handler._execgate_handler = True
    root.addHandler(handler)
    return root
