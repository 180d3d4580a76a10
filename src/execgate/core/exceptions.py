"""
Custom Exceptions for execgate
==============================

Structured errors let the approval handlers answer a caller with a typed
error shape instead of a bare string.

Error Codes:
- 1xxx: Client errors (bad params, unknown ids, conflicts)
- 5xxx: System errors (internal, configuration)
"""

from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Structured error codes carried in failed responses"""

    # 1xxx: Client Errors
    INVALID_PARAMETERS = 1002
    APPROVAL_NOT_FOUND = 1004
    APPROVAL_CONFLICT = 1005
    METHOD_NOT_FOUND = 1006

    # 5xxx: System Errors
    INTERNAL_ERROR = 5001
    CONFIGURATION_ERROR = 5003


class ExecGateError(Exception):
    """Base exception for all execgate errors"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the error shape sent back to callers"""
        return {
            'error_type': self.__class__.__name__,
            'error_code': int(self.error_code),
            'message': self.message,
            'details': self.details
        }

    def user_message(self) -> str:
        """Get a short human-readable message based on error code"""
        code_messages = {
            ErrorCode.INVALID_PARAMETERS: "Invalid parameters",
            ErrorCode.APPROVAL_NOT_FOUND: "Approval not found",
            ErrorCode.APPROVAL_CONFLICT: "Approval already pending",
            ErrorCode.METHOD_NOT_FOUND: "Unknown method",
            ErrorCode.INTERNAL_ERROR: "Internal server error",
            ErrorCode.CONFIGURATION_ERROR: "Configuration error",
        }
        return f"Error {self.error_code}: {code_messages.get(self.error_code, self.message)}"


class InvalidParamsError(ExecGateError):
    """Raised when method params fail validation"""

    def __init__(self, method: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(f"invalid {method} params: {message}", ErrorCode.INVALID_PARAMETERS, details)
        self.method = method


class ApprovalConflictError(ExecGateError):
    """Raised when an approval id is already pending"""

    def __init__(self, approval_id: str, details: dict[str, Any] | None = None):
        super().__init__("approval id already pending", ErrorCode.APPROVAL_CONFLICT, details)
        self.approval_id = approval_id


class ApprovalNotFoundError(ExecGateError):
    """Raised when an approval id is not (or no longer) pending"""

    def __init__(self, approval_id: str, details: dict[str, Any] | None = None):
        super().__init__("unknown approval id", ErrorCode.APPROVAL_NOT_FOUND, details)
        self.approval_id = approval_id


class MethodNotFoundError(ExecGateError):
    """Raised when a dispatched method has no handler"""

    def __init__(self, method: str, details: dict[str, Any] | None = None):
        super().__init__(f"unknown method: {method}", ErrorCode.METHOD_NOT_FOUND, details)
        self.method = method


class ConfigurationError(ExecGateError):
    """Raised when settings fail to load or validate"""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)
