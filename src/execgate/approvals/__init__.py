"""
Exec Approvals
==============

Coordinates the lifecycle of a command waiting for human approval:

1. A requester calls ``exec.approval.request`` and waits
2. Observers receive ``exec.approval.requested`` and render a prompt
3. Someone calls ``exec.approval.resolve`` with a decision
4. Observers receive ``exec.approval.resolved``; the requester wakes up

A request nobody answers in time wakes with no decision, which callers
treat as a denial.
"""

from .handlers import ApprovalHandlers, ClientInfo
from .protocol import (
    ApprovalRecord,
    ApprovalRequest,
    Decision,
    PendingApprovalSnapshot,
    ResolvedPathState,
)
from .store import ApprovalStore

__all__ = [
    'ApprovalHandlers',
    'ApprovalRecord',
    'ApprovalRequest',
    'ApprovalStore',
    'ClientInfo',
    'Decision',
    'PendingApprovalSnapshot',
    'ResolvedPathState',
]
