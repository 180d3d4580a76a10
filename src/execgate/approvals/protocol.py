"""
Wire protocol for exec approvals: method names, params models, value types.

Params arrive as camelCase dicts from the transport and are validated with
pydantic. Records and snapshots are plain dataclasses owned by the store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from execgate.core.exceptions import InvalidParamsError

METHOD_REQUEST = "exec.approval.request"
METHOD_RESOLVE = "exec.approval.resolve"
METHOD_PENDING = "exec.approval.pending"

EVENT_REQUESTED = "exec.approval.requested"
EVENT_RESOLVED = "exec.approval.resolved"


class Decision(str, Enum):
    """Decisions an operator can hand back. Timeouts are represented as None."""
    ALLOW_ONCE = "allow-once"
    ALLOW_ALWAYS = "allow-always"
    DENY = "deny"


class ResolvedPathState(Enum):
    """How ``resolvedPath`` appeared in request params. All three are accepted."""
    OMITTED = "omitted"
    EXPLICIT_NULL = "explicit_null"
    PRESENT = "present"


def normalize_optional_string(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


# =============================================================================
# VALUE TYPES
# =============================================================================

@dataclass(frozen=True)
class ApprovalRequest:
    """The command under review plus free-form context labels."""
    command: str
    cwd: str | None = None
    host: str | None = None
    security: str | None = None
    ask: str | None = None
    agent_id: str | None = None
    resolved_path: str | None = None
    session_key: str | None = None


@dataclass
class ApprovalRecord:
    id: str
    request: ApprovalRequest
    created_at_ms: int
    expires_at_ms: int
    resolved_at_ms: int | None = None
    decision: Decision | None = None
    resolved_by: str | None = None


@dataclass(frozen=True)
class PendingApprovalSnapshot:
    """Read-only view of one pending approval relative to a point in time."""
    id: str
    command: str
    created_at_ms: int
    expires_at_ms: int
    waiting_ms: int
    expires_in_ms: int
    agent_id: str | None = None
    cwd: str | None = None
    host: str | None = None
    security: str | None = None
    ask: str | None = None
    resolved_path: str | None = None
    session_key: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Wire form: camelCase keys, absent optional fields omitted."""
        data: dict[str, Any] = {
            "id": self.id,
            "command": self.command,
            "createdAtMs": self.created_at_ms,
            "expiresAtMs": self.expires_at_ms,
            "waitingMs": self.waiting_ms,
            "expiresInMs": self.expires_in_ms,
        }
        optional = {
            "agentId": self.agent_id,
            "cwd": self.cwd,
            "host": self.host,
            "security": self.security,
            "ask": self.ask,
            "resolvedPath": self.resolved_path,
            "sessionKey": self.session_key,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        return data


# =============================================================================
# PARAMS MODELS
# =============================================================================

class _Params(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


class ExecApprovalRequestParams(_Params):
    id: str | None = None
    command: str = Field(..., min_length=1)
    cwd: str | None = None
    host: str | None = None
    security: str | None = None
    ask: str | None = None
    agent_id: str | None = None
    resolved_path: str | None = None
    session_key: str | None = None
    timeout_ms: int | None = Field(None, ge=1, strict=True)

    @property
    def resolved_path_state(self) -> ResolvedPathState:
        if "resolved_path" not in self.model_fields_set:
            return ResolvedPathState.OMITTED
        if self.resolved_path is None:
            return ResolvedPathState.EXPLICIT_NULL
        return ResolvedPathState.PRESENT

    @property
    def explicit_id(self) -> str | None:
        return normalize_optional_string(self.id)

    def to_request(self) -> ApprovalRequest:
        return ApprovalRequest(
            command=self.command,
            cwd=normalize_optional_string(self.cwd),
            host=normalize_optional_string(self.host),
            security=normalize_optional_string(self.security),
            ask=normalize_optional_string(self.ask),
            agent_id=normalize_optional_string(self.agent_id),
            resolved_path=(
                normalize_optional_string(self.resolved_path)
                if self.resolved_path_state is ResolvedPathState.PRESENT
                else None
            ),
            session_key=normalize_optional_string(self.session_key),
        )


class ExecApprovalResolveParams(_Params):
    id: str = Field(..., min_length=1)
    decision: Decision
    resolved_by: str | None = None

    @field_validator("id")
    @classmethod
    def strip_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("id must not be blank")
        return v


class ExecApprovalPendingParams(_Params):
    pass


def format_validation_errors(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"at {loc}: {err['msg']}")
    return "; ".join(parts)


def parse_params(method: str, model: type[_Params], params: Any) -> Any:
    """Validate raw params for ``method``; raise InvalidParamsError on failure."""
    if params is None:
        params = {}
    if not isinstance(params, dict):
        raise InvalidParamsError(method, "params must be an object")
    try:
        return model.model_validate(params)
    except ValidationError as e:
        raise InvalidParamsError(
            method,
            format_validation_errors(e),
            {"errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]},
        ) from e
