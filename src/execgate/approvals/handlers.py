"""Approval Request Handlers — the request / resolve / pending method contract."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from execgate.approvals.protocol import (
    EVENT_REQUESTED,
    EVENT_RESOLVED,
    METHOD_PENDING,
    METHOD_REQUEST,
    METHOD_RESOLVE,
    ApprovalRecord,
    ExecApprovalPendingParams,
    ExecApprovalRequestParams,
    ExecApprovalResolveParams,
    normalize_optional_string,
    parse_params,
)
from execgate.approvals.store import ApprovalStore
from execgate.config.settings import ApprovalsConfig
from execgate.core.exceptions import ApprovalConflictError, ApprovalNotFoundError, ExecGateError
from execgate.core.structured_logger import TraceContext, get_logger

# respond(ok, payload, error)
Responder = Callable[[bool, dict[str, Any] | None, dict[str, Any] | None], None]
# broadcast(event, payload)
Broadcaster = Callable[[str, dict[str, Any]], None]

logger = get_logger("ApprovalHandlers")


@dataclass(frozen=True)
class ClientInfo:
    """Identity of the connection a call arrived on."""
    client_id: str | None = None
    display_name: str | None = None

    def label(self) -> str | None:
        return normalize_optional_string(self.display_name) or normalize_optional_string(self.client_id)


class ApprovalHandlers:
    """
    Message handlers on top of an ApprovalStore.

    Holds no state of its own. ``request`` is the only handler that waits;
    ``resolve`` and ``pending`` answer before returning, so ``resolve`` can
    be called straight from a subscriber of the "requested" broadcast.
    """

    def __init__(self, store: ApprovalStore, approvals: ApprovalsConfig | None = None) -> None:
        self.store = store
        self.approvals = approvals or ApprovalsConfig()

    def methods(self) -> dict[str, Callable[..., Any]]:
        return {
            METHOD_REQUEST: self.request,
            METHOD_RESOLVE: self.resolve,
            METHOD_PENDING: self.pending,
        }

    async def request(
        self,
        params: Any,
        respond: Responder,
        broadcast: Broadcaster,
        client: ClientInfo | None = None,
    ) -> None:
        with TraceContext():
            try:
                p = parse_params(METHOD_REQUEST, ExecApprovalRequestParams, params)
                explicit_id = p.explicit_id
                if explicit_id and self.store.is_pending(explicit_id):
                    raise ApprovalConflictError(explicit_id)

                timeout_ms = self.approvals.effective_timeout_ms(p.timeout_ms)
                record = self.store.create(p.to_request(), timeout_ms, explicit_id)
                # Registered before the broadcast so a resolver reacting to it
                # always finds the entry
                decision_future = self.store.wait_for_decision(record, timeout_ms)
            except ExecGateError as e:
                _fail(respond, METHOD_REQUEST, e)
                return

            snapshot = ApprovalStore.to_snapshot(record, record.created_at_ms)
            _emit(broadcast, EVENT_REQUESTED, snapshot.to_dict())

            decision = await decision_future
            respond(
                True,
                {
                    "id": record.id,
                    "decision": decision.value if decision is not None else None,
                    "createdAtMs": record.created_at_ms,
                    "expiresAtMs": record.expires_at_ms,
                },
                None,
            )

    def resolve(
        self,
        params: Any,
        respond: Responder,
        broadcast: Broadcaster,
        client: ClientInfo | None = None,
    ) -> None:
        try:
            p = parse_params(METHOD_RESOLVE, ExecApprovalResolveParams, params)
            resolved_by = normalize_optional_string(p.resolved_by)
            if resolved_by is None and client is not None:
                resolved_by = client.label()

            def announce(record: ApprovalRecord) -> None:
                _emit(
                    broadcast,
                    EVENT_RESOLVED,
                    {
                        "id": record.id,
                        "decision": p.decision.value,
                        "resolvedBy": resolved_by,
                        "ts": record.resolved_at_ms,
                    },
                )

            if not self.store.resolve(p.id, p.decision, resolved_by, on_resolved=announce):
                raise ApprovalNotFoundError(p.id)
        except ExecGateError as e:
            _fail(respond, METHOD_RESOLVE, e)
            return

        respond(True, {"id": p.id, "decision": p.decision.value, "ok": True}, None)

    def pending(
        self,
        params: Any,
        respond: Responder,
        broadcast: Broadcaster | None = None,
        client: ClientInfo | None = None,
    ) -> None:
        try:
            parse_params(METHOD_PENDING, ExecApprovalPendingParams, params)
        except ExecGateError as e:
            _fail(respond, METHOD_PENDING, e)
            return

        now_ms = self.store.now_ms()
        respond(
            True,
            {"nowMs": now_ms, "pending": [s.to_dict() for s in self.store.list_pending(now_ms)]},
            None,
        )


def _fail(respond: Responder, method: str, error: ExecGateError) -> None:
    logger.warning("Rejected call", method=method, error=error.message)
    respond(False, None, error.to_dict())


def _emit(broadcast: Broadcaster, event: str, payload: dict[str, Any]) -> None:
    # Fire-and-forget; channel failures are only logged
    try:
        broadcast(event, payload)
    except Exception as e:
        logger.error(f"Broadcast failed: {e}", event=event, approval_id=payload.get("id"))
