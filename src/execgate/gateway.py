"""Gateway wiring — builds the store, event bus and handlers and routes calls by method name."""

from __future__ import annotations

import inspect
from collections.abc import Callable
from pathlib import Path
from typing import Any

from execgate.approvals.handlers import ApprovalHandlers, ClientInfo, Responder
from execgate.approvals.store import ApprovalStore
from execgate.config.settings import Settings, load_settings
from execgate.core.event_bus import EventBus, EventType
from execgate.core.exceptions import MethodNotFoundError
from execgate.core.structured_logger import configure_logging, get_logger

logger = get_logger("Gateway")


class ApprovalGateway:
    """
    One approval domain: a store, the broadcast channel observers subscribe
    to, and the handlers that sit between them.

    Transports call ``dispatch`` with the method name and raw params of each
    incoming call, plus a ``respond`` callback for the answer.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.store = ApprovalStore(clock=clock)
        self.bus = EventBus(
            enable_history=self.settings.events.enable_history,
            max_history=self.settings.events.max_history,
        )
        self.handlers = ApprovalHandlers(self.store, self.settings.approvals)
        self._methods = self.handlers.methods()
        logger.info(
            "Gateway initialized",
            default_timeout_ms=self.settings.approvals.default_timeout_ms,
            event_history=self.settings.events.enable_history,
        )

    @property
    def method_names(self) -> list[str]:
        return sorted(self._methods)

    def subscribe(self, event_type: EventType, callback: Callable) -> None:
        self.bus.subscribe(event_type, callback)

    def unsubscribe(self, event_type: EventType, callback: Callable) -> None:
        self.bus.unsubscribe(event_type, callback)

    async def dispatch(
        self,
        method: str,
        params: Any,
        respond: Responder,
        client: ClientInfo | None = None,
    ) -> None:
        """Route one call. Returns once the call has been answered."""
        handler = self._methods.get(method)
        if handler is None:
            err = MethodNotFoundError(method)
            logger.warning("Unknown method", method=method)
            respond(False, None, err.to_dict())
            return

        result = handler(params, respond, self.bus.broadcast, client)
        if inspect.isawaitable(result):
            await result

    async def shutdown(self) -> int:
        """Settle every outstanding approval with no decision and drop subscribers."""
        expired = self.store.expire_all()
        self.bus.clear()
        logger.info("Gateway shut down", expired=expired)
        return expired


def create_gateway(config_path: str | Path | None = None) -> ApprovalGateway:
    """Load settings, configure logging and return a ready gateway."""
    settings = load_settings(config_path)
    configure_logging(settings.logging)
    return ApprovalGateway(settings)
