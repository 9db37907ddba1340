"""
Exceptions raised by the cloudfn SDK
"""

from enum import Enum
from typing import Any, Dict, Optional


class CloudFnError(Exception):
    """Base exception for cloudfn"""


class ConfigurationError(CloudFnError, ValueError):
    """A declaration was made with missing or invalid options.

    Raised at declaration time, before a function artifact is returned.
    """


class DecodeError(CloudFnError, ValueError):
    """A message payload could not be decoded into a typed value"""


class MetadataComputationError(CloudFnError, RuntimeError):
    """Deployment metadata could not be computed from process state"""


class FunctionsErrorCode(str, Enum):
    """Error codes a callable function can return to its client"""
    OK = "ok"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid-argument"
    DEADLINE_EXCEEDED = "deadline-exceeded"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    PERMISSION_DENIED = "permission-denied"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    FAILED_PRECONDITION = "failed-precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out-of-range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data-loss"
    UNAUTHENTICATED = "unauthenticated"


# (HTTP status, canonical status name) per error code
_ERROR_CODE_MAP: Dict[FunctionsErrorCode, tuple] = {
    FunctionsErrorCode.OK: (200, "OK"),
    FunctionsErrorCode.CANCELLED: (499, "CANCELLED"),
    FunctionsErrorCode.UNKNOWN: (500, "UNKNOWN"),
    FunctionsErrorCode.INVALID_ARGUMENT: (400, "INVALID_ARGUMENT"),
    FunctionsErrorCode.DEADLINE_EXCEEDED: (504, "DEADLINE_EXCEEDED"),
    FunctionsErrorCode.NOT_FOUND: (404, "NOT_FOUND"),
    FunctionsErrorCode.ALREADY_EXISTS: (409, "ALREADY_EXISTS"),
    FunctionsErrorCode.PERMISSION_DENIED: (403, "PERMISSION_DENIED"),
    FunctionsErrorCode.RESOURCE_EXHAUSTED: (429, "RESOURCE_EXHAUSTED"),
    FunctionsErrorCode.FAILED_PRECONDITION: (400, "FAILED_PRECONDITION"),
    FunctionsErrorCode.ABORTED: (409, "ABORTED"),
    FunctionsErrorCode.OUT_OF_RANGE: (400, "OUT_OF_RANGE"),
    FunctionsErrorCode.UNIMPLEMENTED: (501, "UNIMPLEMENTED"),
    FunctionsErrorCode.INTERNAL: (500, "INTERNAL"),
    FunctionsErrorCode.UNAVAILABLE: (503, "UNAVAILABLE"),
    FunctionsErrorCode.DATA_LOSS: (500, "DATA_LOSS"),
    FunctionsErrorCode.UNAUTHENTICATED: (401, "UNAUTHENTICATED"),
}


class HttpsError(CloudFnError):
    """Error a callable handler raises to send a typed error to the client"""

    def __init__(
        self,
        code: FunctionsErrorCode,
        message: str,
        details: Optional[Any] = None,
    ) -> None:
        """
        Initialize HttpsError.

        Args:
            code: Error code (enum member or its string value, e.g. "not-found")
            message: Human-readable error message sent to the client
            details: Extra JSON-serializable data sent to the client
        """
        super().__init__(message)
        self.code = FunctionsErrorCode(code)
        self.message = message
        self.details = details

    @property
    def http_status(self) -> int:
        return _ERROR_CODE_MAP[self.code][0]

    @property
    def status(self) -> str:
        return _ERROR_CODE_MAP[self.code][1]

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation sent in the "error" field of a response"""
        error: Dict[str, Any] = {"status": self.status, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return error
