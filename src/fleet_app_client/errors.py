"""
Error types raised by the App Service client.

Every remote failure is an `RPCError` carrying the status code reported
by the service (or by the transport, for timeouts and lost
connections). The client never reinterprets them.
"""
from enum import Enum
from typing import Any, Dict, Optional


class StatusCode(str, Enum):
    OK = "OK"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_EXHAUSTED = "RESOURCE_EXHAUSTED"
    FAILED_PRECONDITION = "FAILED_PRECONDITION"
    ABORTED = "ABORTED"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    UNIMPLEMENTED = "UNIMPLEMENTED"
    INTERNAL = "INTERNAL"
    UNAVAILABLE = "UNAVAILABLE"
    DATA_LOSS = "DATA_LOSS"
    UNAUTHENTICATED = "UNAUTHENTICATED"

    @classmethod
    def parse(cls, raw: Any) -> "StatusCode":
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.UNKNOWN


class RPCError(Exception):
    """A failed remote procedure call."""

    def __init__(self, code: StatusCode, message: str = ""):
        super().__init__(f"{code.value}: {message}" if message else code.value)
        self.code = code
        self.message = message

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> "RPCError":
        """Builds the error from the `error` object of a response envelope."""
        payload = payload if isinstance(payload, dict) else {}
        return cls(StatusCode.parse(payload.get('code', StatusCode.UNKNOWN.value)), str(payload.get('message', '')))


class UnknownPermissionError(ValueError):
    """The service returned a permission code this client does not know."""

    def __init__(self, code: str):
        super().__init__(f"Unknown permission code returned by the service: {code!r}")
        self.code = code
