from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    TRANSPORT_FAILED = "TRANSPORT_FAILED"
    CLIENT_ERROR = "CLIENT_ERROR"
    SERVER_ERROR = "SERVER_ERROR"
    DECODE_FAILED = "DECODE_FAILED"
    MARKUP_STRUCTURE = "MARKUP_STRUCTURE"
    AUTH_FAILED = "AUTH_FAILED"


class TransportErrorKind(StrEnum):
    TIMEOUT = "timeout"
    CONNECTION_LOST = "connection_lost"
    NOT_CONNECTED = "not_connected"
    OTHER = "other"


class HNKitError(Exception):
    """Base class for every failure hnkit surfaces to application code.

    Subclasses fix the ``code``; ``recoverable`` tells the caller whether
    trying again later may succeed. Retry decisions are made separately by
    ``RetryPolicy``, which only looks at transport failures.
    """

    code: ErrorCode

    def __init__(
        self,
        message: str,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class TransportError(HNKitError):
    """Connectivity failure below HTTP: timeout, dropped or refused connection."""

    code = ErrorCode.TRANSPORT_FAILED

    def __init__(self, kind: TransportErrorKind, message: str) -> None:
        super().__init__(
            message,
            suggestion="Check your network connection and try again.",
            recoverable=True,
        )
        self.kind = kind


class ClientError(HNKitError):
    """The server answered with a 4xx status."""

    code = ErrorCode.CLIENT_ERROR

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message, suggestion="The request was rejected by the server.")
        self.status_code = status_code


class ServerError(HNKitError):
    """The server answered with a 5xx status."""

    code = ErrorCode.SERVER_ERROR

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(
            message,
            suggestion="The service may be temporarily unavailable.",
            recoverable=True,
        )
        self.status_code = status_code


class DecodeError(HNKitError):
    code = ErrorCode.DECODE_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message, suggestion="The backend returned an unexpected payload.")


class StructuralParseError(HNKitError):
    """Rendered markup did not contain the anchors the parser relies on."""

    code = ErrorCode.MARKUP_STRUCTURE

    def __init__(self, message: str) -> None:
        super().__init__(message, suggestion="The site layout may have changed.")


class AuthError(HNKitError):
    code = ErrorCode.AUTH_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message, suggestion="Log in again and retry the action.")
