"""Approval Store — in-memory bookkeeping for exec approvals awaiting a decision."""

from __future__ import annotations

import asyncio
import math
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from execgate.approvals.protocol import (
    ApprovalRecord,
    ApprovalRequest,
    Decision,
    PendingApprovalSnapshot,
    normalize_optional_string,
)
from execgate.core.exceptions import ApprovalConflictError
from execgate.core.structured_logger import get_logger

logger = get_logger("ApprovalStore")


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(eq=False)
class _PendingEntry:
    record: ApprovalRecord
    future: asyncio.Future
    loop: asyncio.AbstractEventLoop
    timer: asyncio.TimerHandle | None = field(default=None)


class ApprovalStore:
    """
    Holds every approval that is still waiting for a decision.

    The pending map is the single arbiter of who settles a waiter: resolve,
    timer expiry and waiter cancellation each remove the entry under the lock
    first, and only the caller that removed it touches the future. Whichever
    of them loses the race finds nothing and backs off.

    Waiters live on an asyncio loop; resolve() may be called from that loop or
    from any other thread.
    """

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or _wall_clock_ms
        self._pending: dict[str, _PendingEntry] = {}
        self._lock = threading.Lock()

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def is_pending(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._pending

    def now_ms(self) -> int:
        return self._clock()

    def create(
        self,
        request: ApprovalRequest,
        timeout_ms: int,
        record_id: str | None = None,
    ) -> ApprovalRecord:
        """Build a record stamped with now. Does not register it."""
        now = self._clock()
        resolved_id = normalize_optional_string(record_id) or str(uuid.uuid4())
        return ApprovalRecord(
            id=resolved_id,
            request=request,
            created_at_ms=now,
            expires_at_ms=now + timeout_ms,
        )

    def wait_for_decision(self, record: ApprovalRecord, timeout_ms: int) -> asyncio.Future:
        """
        Register ``record`` as pending and arm its expiry timer.

        Registration is complete when this returns, so a resolve() issued
        before the caller awaits the future is not lost. The future yields the
        Decision, or None once ``timeout_ms`` elapses without one.

        Must be called from a running event loop.

        Raises:
            ApprovalConflictError: the id is already pending
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        entry = _PendingEntry(record=record, future=future, loop=loop)

        with self._lock:
            if record.id in self._pending:
                raise ApprovalConflictError(record.id)
            entry.timer = loop.call_later(timeout_ms / 1000, self._expire, entry)
            self._pending[record.id] = entry

        future.add_done_callback(lambda f: self._on_waiter_done(entry))
        logger.info(
            "Approval pending",
            approval_id=record.id,
            command=record.request.command,
            timeout_ms=timeout_ms,
        )
        return future

    def resolve(
        self,
        record_id: str,
        decision: Decision | str,
        resolved_by: str | None = None,
        on_resolved: Callable[[ApprovalRecord], None] | None = None,
    ) -> bool:
        """
        Finalize a pending approval and wake its waiter.

        ``on_resolved`` runs on the calling thread after the entry has been
        claimed and before the waiter is woken, so anything it publishes is
        ordered ahead of the requester's response even when the waiter lives
        on another loop.

        Returns False when the id is not pending: never requested, already
        resolved, or already expired.
        """
        decision = Decision(decision)
        with self._lock:
            entry = self._pending.pop(record_id, None)
            if entry is None:
                return False
            entry.record.resolved_at_ms = self._clock()
            entry.record.decision = decision
            entry.record.resolved_by = resolved_by

        logger.info(
            "Approval resolved",
            approval_id=record_id,
            decision=decision.value,
            resolved_by=resolved_by,
        )
        try:
            if on_resolved is not None:
                on_resolved(entry.record)
        finally:
            self._settle(entry, decision)
        return True

    def get_snapshot(self, record_id: str) -> ApprovalRecord | None:
        with self._lock:
            entry = self._pending.get(record_id)
        return entry.record if entry is not None else None

    def list_pending(self, now_ms: float | None = None) -> list[PendingApprovalSnapshot]:
        """
        Snapshot every pending approval relative to ``now_ms``.

        Ordered by creation time, then id, so repeated calls at the same
        instant return identical lists.
        """
        if now_ms is None or not math.isfinite(now_ms):
            now = self._clock()
        else:
            now = max(0, math.floor(now_ms))

        with self._lock:
            records = [entry.record for entry in self._pending.values()]

        snapshots = [self.to_snapshot(record, now) for record in records]
        snapshots.sort(key=lambda s: (s.created_at_ms, s.id))
        return snapshots

    def expire_all(self) -> int:
        """Settle every pending approval with no decision. Returns how many."""
        with self._lock:
            entries = list(self._pending.values())
            self._pending.clear()

        for entry in entries:
            self._settle(entry, None)
        if entries:
            logger.info("Expired all pending approvals", count=len(entries))
        return len(entries)

    @staticmethod
    def to_snapshot(record: ApprovalRecord, now: int) -> PendingApprovalSnapshot:
        request = record.request
        return PendingApprovalSnapshot(
            id=record.id,
            command=request.command,
            created_at_ms=record.created_at_ms,
            expires_at_ms=record.expires_at_ms,
            waiting_ms=max(0, now - record.created_at_ms),
            expires_in_ms=max(0, record.expires_at_ms - now),
            agent_id=normalize_optional_string(request.agent_id),
            cwd=normalize_optional_string(request.cwd),
            host=normalize_optional_string(request.host),
            security=normalize_optional_string(request.security),
            ask=normalize_optional_string(request.ask),
            resolved_path=normalize_optional_string(request.resolved_path),
            session_key=normalize_optional_string(request.session_key),
        )

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _expire(self, entry: _PendingEntry) -> None:
        # Timer callback; runs on the entry's loop
        with self._lock:
            if self._pending.get(entry.record.id) is not entry:
                return
            del self._pending[entry.record.id]

        logger.info("Approval expired", approval_id=entry.record.id)
        if not entry.future.done():
            entry.future.set_result(None)

    def _settle(self, entry: _PendingEntry, decision: Decision | None) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is entry.loop:
            _finish(entry, decision)
        elif not entry.loop.is_closed():
            entry.loop.call_soon_threadsafe(_finish, entry, decision)

    def _on_waiter_done(self, entry: _PendingEntry) -> None:
        if not entry.future.cancelled():
            return
        with self._lock:
            if self._pending.get(entry.record.id) is not entry:
                return
            del self._pending[entry.record.id]
        if entry.timer is not None:
            entry.timer.cancel()
        logger.warning("Approval waiter cancelled", approval_id=entry.record.id)


def _finish(entry: _PendingEntry, decision: Any) -> None:
    if entry.timer is not None:
        entry.timer.cancel()
    if not entry.future.done():
        entry.future.set_result(decision)
