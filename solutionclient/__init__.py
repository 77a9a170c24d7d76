"""
SolutionClient SDK - Python client for the solution server.

An authenticated MCP tool-invocation client that keeps its bearer token fresh
and reconnects its streaming HTTP transport transparently on rotation.
"""

from .auth import AuthenticationManager, RotationListener
from .client import SolutionServerClient
from .config import ClientConfig
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    OperationTimeoutError,
    ProtocolError,
    RemoteOperationError,
    SolutionClientError,
    TransportError,
    ValidationError,
)
from .models import (
    AuthState,
    ContentBlock,
    Credential,
    ServerCapabilities,
    TokenRotated,
    ToolResult,
)
from .schemas import (
    BestHint,
    SolutionChangeSet,
    SolutionFile,
    SuccessRate,
    ViolationId,
    decode_payload,
    validate_payload,
)
from .transport import Connection, TransportManager
from .validation import InputValidationError

__version__ = "0.1.0"
__all__ = [
    "SolutionServerClient",
    "ClientConfig",
    "AuthenticationManager",
    "RotationListener",
    "TransportManager",
    "Connection",
    "AuthState",
    "Credential",
    "TokenRotated",
    "ContentBlock",
    "ToolResult",
    "ServerCapabilities",
    "BestHint",
    "SuccessRate",
    "ViolationId",
    "SolutionFile",
    "SolutionChangeSet",
    "decode_payload",
    "validate_payload",
    "SolutionClientError",
    "ConfigurationError",
    "AuthenticationError",
    "TransportError",
    "RemoteOperationError",
    "ProtocolError",
    "ValidationError",
    "OperationTimeoutError",
    "InputValidationError",
]
