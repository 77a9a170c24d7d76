"""
SolutionClient SDK - Custom exceptions for error handling.
"""

from typing import Any, Optional


class SolutionClientError(Exception):
    """Base exception for all SolutionClient SDK errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class ConfigurationError(SolutionClientError):
    """Raised when connection parameters are missing or malformed."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.field = field


class AuthenticationError(SolutionClientError):
    """Raised when the credential exchange is rejected or the refresh budget is exhausted."""

    pass


class TransportError(SolutionClientError):
    """Raised when the streaming connection cannot be opened, reopened or used."""

    pass


class RemoteOperationError(SolutionClientError):
    """Raised when the server executed a tool call and reported a failure."""

    def __init__(
        self,
        message: str,
        operation: str,
        arguments: Optional[dict[str, Any]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.operation = operation
        self.arguments = arguments or {}


class ProtocolError(SolutionClientError):
    """Raised when a response payload cannot be decoded."""

    def __init__(self, message: str, payload: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.payload = payload


class ValidationError(SolutionClientError):
    """Raised when a decoded payload does not match the expected result shape."""

    def __init__(
        self,
        message: str,
        errors: Optional[list[Any]] = None,
        payload: Any = None,
        kind: str = "shape",
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errors = errors or []
        self.payload = payload
        self.kind = kind


class OperationTimeoutError(SolutionClientError, TimeoutError):
    """Raised when a tool invocation or capability listing exceeds its deadline.

    Credential exchange timeouts surface as ``AuthenticationError`` instead.
    """

    def __init__(self, message: str, phase: str = "request", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.phase = phase
