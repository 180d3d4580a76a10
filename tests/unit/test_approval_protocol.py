"""Tests for execgate.approvals.protocol — params validation and wire shapes"""

import pytest

from execgate.approvals.protocol import (
    METHOD_PENDING,
    METHOD_REQUEST,
    METHOD_RESOLVE,
    Decision,
    ExecApprovalPendingParams,
    ExecApprovalRequestParams,
    ExecApprovalResolveParams,
    PendingApprovalSnapshot,
    ResolvedPathState,
    normalize_optional_string,
    parse_params,
)
from execgate.core.exceptions import ErrorCode, InvalidParamsError


class TestRequestParams:
    def test_accepts_resolved_path_omitted(self):
        p = parse_params(METHOD_REQUEST, ExecApprovalRequestParams, {
            "command": "echo hi", "cwd": "/tmp", "host": "node",
        })
        assert p.resolved_path_state is ResolvedPathState.OMITTED
        assert p.to_request().resolved_path is None

    def test_accepts_resolved_path_string(self):
        p = parse_params(METHOD_REQUEST, ExecApprovalRequestParams, {
            "command": "echo hi", "cwd": "/tmp", "host": "node", "resolvedPath": "/usr/bin/echo",
        })
        assert p.resolved_path_state is ResolvedPathState.PRESENT
        assert p.to_request().resolved_path == "/usr/bin/echo"

    def test_accepts_resolved_path_null(self):
        p = parse_params(METHOD_REQUEST, ExecApprovalRequestParams, {
            "command": "echo hi", "cwd": "/tmp", "host": "node", "resolvedPath": None,
        })
        assert p.resolved_path_state is ResolvedPathState.EXPLICIT_NULL
        assert p.to_request().resolved_path is None

    def test_camel_case_fields_map_to_request(self):
        p = parse_params(METHOD_REQUEST, ExecApprovalRequestParams, {
            "command": "ls",
            "agentId": "main",
            "sessionKey": "agent:main",
            "security": "allowlist",
            "ask": "on-miss",
            "timeoutMs": 5000,
        })
        request = p.to_request()
        assert request.agent_id == "main"
        assert request.session_key == "agent:main"
        assert request.security == "allowlist"
        assert request.ask == "on-miss"
        assert p.timeout_ms == 5000

    def test_blank_optionals_become_absent(self):
        p = parse_params(METHOD_REQUEST, ExecApprovalRequestParams, {
            "id": "   ", "command": "ls", "cwd": "  ", "host": "",
        })
        assert p.explicit_id is None
        request = p.to_request()
        assert request.cwd is None
        assert request.host is None

    @pytest.mark.parametrize("params", [
        {},
        {"command": ""},
        {"command": 42},
        {"command": "ls", "timeoutMs": 0},
        {"command": "ls", "timeoutMs": "20"},
        {"command": "ls", "timeoutMs": True},
        {"command": "ls", "timeoutMs": 1.5},
        {"command": "ls", "cwd": 5},
    ])
    def test_rejects_invalid(self, params):
        with pytest.raises(InvalidParamsError) as exc_info:
            parse_params(METHOD_REQUEST, ExecApprovalRequestParams, params)
        assert exc_info.value.error_code == ErrorCode.INVALID_PARAMETERS
        assert exc_info.value.message.startswith("invalid exec.approval.request params: ")

    def test_rejects_non_object(self):
        with pytest.raises(InvalidParamsError, match="params must be an object"):
            parse_params(METHOD_REQUEST, ExecApprovalRequestParams, ["ls"])


class TestResolveParams:
    def test_decisions(self):
        for raw, expected in [
            ("allow-once", Decision.ALLOW_ONCE),
            ("allow-always", Decision.ALLOW_ALWAYS),
            ("deny", Decision.DENY),
        ]:
            p = parse_params(METHOD_RESOLVE, ExecApprovalResolveParams, {"id": "a", "decision": raw})
            assert p.decision is expected

    def test_id_is_trimmed(self):
        p = parse_params(METHOD_RESOLVE, ExecApprovalResolveParams, {"id": " a ", "decision": "deny"})
        assert p.id == "a"

    def test_blank_id_rejected(self):
        with pytest.raises(InvalidParamsError):
            parse_params(METHOD_RESOLVE, ExecApprovalResolveParams, {"id": "  ", "decision": "deny"})

    def test_resolved_by_optional(self):
        p = parse_params(METHOD_RESOLVE, ExecApprovalResolveParams, {
            "id": "a", "decision": "deny", "resolvedBy": "ops",
        })
        assert p.resolved_by == "ops"


class TestPendingParams:
    def test_empty_ok(self):
        assert isinstance(
            parse_params(METHOD_PENDING, ExecApprovalPendingParams, {}), ExecApprovalPendingParams
        )

    def test_extra_key_names_method(self):
        with pytest.raises(InvalidParamsError) as exc_info:
            parse_params(METHOD_PENDING, ExecApprovalPendingParams, {"extra": True})
        assert "invalid exec.approval.pending params" in exc_info.value.message
        assert exc_info.value.details["errors"][0]["loc"] == ["extra"]


class TestSnapshotWireForm:
    def test_to_dict_omits_absent(self):
        snap = PendingApprovalSnapshot(
            id="approval-1",
            command="cat << 'EOF' && sleep 1",
            created_at_ms=1_699_999_999_000,
            expires_at_ms=1_700_000_060_000,
            waiting_ms=1_000,
            expires_in_ms=60_000,
            agent_id="main",
        )
        assert snap.to_dict() == {
            "id": "approval-1",
            "command": "cat << 'EOF' && sleep 1",
            "createdAtMs": 1_699_999_999_000,
            "expiresAtMs": 1_700_000_060_000,
            "waitingMs": 1_000,
            "expiresInMs": 60_000,
            "agentId": "main",
        }


class TestNormalizeOptionalString:
    def test_values(self):
        assert normalize_optional_string(None) is None
        assert normalize_optional_string(3) is None
        assert normalize_optional_string("   ") is None
        assert normalize_optional_string(" x ") == "x"
