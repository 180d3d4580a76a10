"""execgate — human-in-the-loop approval gate for shell commands."""

from execgate.approvals import ApprovalHandlers, ApprovalStore, Decision
from execgate.gateway import ApprovalGateway, create_gateway

__all__ = [
    "ApprovalGateway",
    "ApprovalHandlers",
    "ApprovalStore",
    "Decision",
    "create_gateway",
]
