"""Core execgate module — events, errors and logging."""

from execgate.core.event_bus import Event, EventBus, EventType
from execgate.core.exceptions import (
    ApprovalConflictError,
    ApprovalNotFoundError,
    ConfigurationError,
    ErrorCode,
    ExecGateError,
    InvalidParamsError,
    MethodNotFoundError,
)

__all__ = [
    "ApprovalConflictError",
    "ApprovalNotFoundError",
    "ConfigurationError",
    "ErrorCode",
    "Event",
    "EventBus",
    "EventType",
    "ExecGateError",
    "InvalidParamsError",
    "MethodNotFoundError",
]
