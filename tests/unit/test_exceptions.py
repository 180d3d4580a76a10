"""Tests for execgate.core.exceptions"""

from execgate.core.exceptions import (
    ApprovalConflictError,
    ApprovalNotFoundError,
    ConfigurationError,
    ErrorCode,
    ExecGateError,
    InvalidParamsError,
    MethodNotFoundError,
)


class TestExecGateError:
    def test_defaults(self):
        err = ExecGateError("boom")
        assert err.error_code == ErrorCode.INTERNAL_ERROR
        assert err.details == {}
        assert str(err) == "boom"

    def test_to_dict(self):
        err = ApprovalConflictError("dup-1", {"id": "dup-1"})
        assert err.to_dict() == {
            "error_type": "ApprovalConflictError",
            "error_code": 1005,
            "message": "approval id already pending",
            "details": {"id": "dup-1"},
        }
        assert err.approval_id == "dup-1"

    def test_user_message(self):
        assert ApprovalNotFoundError("x").user_message() == "Error 1004: Approval not found"
        assert ConfigurationError("bad").user_message() == "Error 5003: Configuration error"


class TestSubclasses:
    def test_invalid_params_names_method(self):
        err = InvalidParamsError("exec.approval.pending", "at extra: Extra inputs are not permitted")
        assert err.message == "invalid exec.approval.pending params: at extra: Extra inputs are not permitted"
        assert err.error_code == ErrorCode.INVALID_PARAMETERS
        assert err.method == "exec.approval.pending"

    def test_not_found(self):
        err = ApprovalNotFoundError("gone")
        assert err.message == "unknown approval id"
        assert err.error_code == ErrorCode.APPROVAL_NOT_FOUND

    def test_method_not_found(self):
        err = MethodNotFoundError("exec.approval.cancel")
        assert err.message == "unknown method: exec.approval.cancel"
        assert err.error_code == ErrorCode.METHOD_NOT_FOUND

    def test_all_are_execgate_errors(self):
        for err in (
            InvalidParamsError("m", "x"),
            ApprovalConflictError("a"),
            ApprovalNotFoundError("a"),
            MethodNotFoundError("m"),
            ConfigurationError("c"),
        ):
            assert isinstance(err, ExecGateError)
