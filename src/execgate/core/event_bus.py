"""
Event Bus - broadcast channel for approval events
=================================================

Operator consoles and CLIs subscribe here to learn about commands that are
waiting for a decision and about decisions once they are made.

Examples:
- "exec.approval.requested"  -> render an approve/deny prompt
- "exec.approval.resolved"   -> dismiss the prompt on every other console
"""

import asyncio
import inspect
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from execgate.core.structured_logger import get_current_trace_id, get_logger

logger = get_logger("EventBus")


class EventType(Enum):
    """Approval lifecycle events"""
    APPROVAL_REQUESTED = "exec.approval.requested"
    APPROVAL_RESOLVED = "exec.approval.resolved"


@dataclass
class Event:
    """Represents a broadcast event"""
    event_type: EventType
    timestamp: str
    payload: dict[str, Any]
    trace_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary"""
        return {
            'event': self.event_type.value,
            'timestamp': self.timestamp,
            'payload': self.payload,
            'trace_id': self.trace_id
        }


class EventBus:
    """
    Event bus for publishing and subscribing to approval events

    Architecture:
    - Synchronous fan-out: plain callables run inline, in subscription order,
      before broadcast() returns
    - Coroutine subscribers are scheduled on the running loop and not awaited
    - Error isolation (one subscriber failure doesn't affect others)

    Inline delivery keeps program order: a "requested" event is seen by every
    plain subscriber before anything can resolve the approval, and a
    "resolved" event is seen before the original requester is answered.

    Event History:
    - Disabled by default to avoid unbounded growth in long-running gateways
    - Enable via enable_history=True for auditing or late-joining consoles
    """

    def __init__(self, enable_history: bool = False, max_history: int = 1000) -> None:
        """
        Initialize event bus

        Args:
            enable_history: Keep recent events in memory (default: False)
            max_history: Maximum number of events to keep (default: 1000)
        """
        self._subscribers: dict[EventType, list[Callable]] = {}
        self._enable_history = enable_history
        self._event_history: deque[Event] = deque(maxlen=max_history) if enable_history else deque()
        self._max_history = max_history
        self._background: set[asyncio.Task] = set()

        logger.debug("EventBus initialized", history=enable_history)

    def subscribe(self, event_type: EventType, callback: Callable) -> None:
        """
        Subscribe to an event type

        Args:
            event_type: Type of event to subscribe to
            callback: Called with the Event. Either a plain function or an
                      async function (scheduled, never awaited by the bus).
        """
        self._subscribers.setdefault(event_type, []).append(callback)
        logger.debug("Subscribed", event=event_type.value)

    def unsubscribe(self, event_type: EventType, callback: Callable) -> None:
        """Unsubscribe from an event type"""
        if event_type in self._subscribers:
            try:
                self._subscribers[event_type].remove(callback)
                logger.debug("Unsubscribed", event=event_type.value)
            except ValueError:
                logger.warning("Callback not found in subscribers", event=event_type.value)

    def clear(self) -> None:
        """Drop every subscriber"""
        self._subscribers.clear()

    def broadcast(self, event: str | EventType, payload: dict[str, Any], trace_id: str | None = None) -> None:
        """
        Broadcast an event to all subscribers of its type.

        Matches the ``broadcast(event, payload)`` channel the approval
        handlers are given, so a bus instance can be passed directly.
        """
        event_type = event if isinstance(event, EventType) else EventType(event)
        evt = Event(
            event_type=event_type,
            timestamp=datetime.now(tz=UTC).isoformat(),
            payload=payload,
            trace_id=trace_id or get_current_trace_id()
        )

        if self._enable_history:
            self._event_history.append(evt)

        # Copy so a subscriber may unsubscribe itself during delivery
        subscribers = list(self._subscribers.get(event_type, []))
        if not subscribers:
            logger.debug("No subscribers", event=event_type.value)
            return

        for callback in subscribers:
            self._notify_subscriber(callback, evt)

    def history(self, event_type: EventType | None = None) -> list[Event]:
        if event_type is None:
            return list(self._event_history)
        return [e for e in self._event_history if e.event_type is event_type]

    def _notify_subscriber(self, callback: Callable, event: Event) -> None:
        """
        Notify a single subscriber with error handling

        Errors in one subscriber don't affect others
        """
        try:
            result = callback(event)
        except Exception as e:
            logger.error(
                f"Error in event subscriber: {e}",
                event=event.event_type.value,
            )
            return

        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._background.add(task)
            task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Error in async event subscriber: {exc}")
