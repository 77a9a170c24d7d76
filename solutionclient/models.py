"""
SolutionClient SDK - Session and wire data models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthState(str, Enum):
    """Lifecycle of the authenticated session."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"
    FAILED = "failed"


@dataclass(frozen=True)
class Credential:
    """
    A bearer credential issued by the realm's token endpoint.

    Credentials are immutable; a refresh always produces a new instance.
    """

    token: str
    expires_at: datetime
    issued_at: datetime = field(default_factory=utcnow)
    refresh_token: Optional[str] = None

    @property
    def lifetime(self) -> timedelta:
        return self.expires_at - self.issued_at

    def refresh_at(self, ratio: float) -> datetime:
        """Moment at which ``ratio`` of the token lifetime has elapsed."""
        return self.issued_at + self.lifetime * ratio

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def __repr__(self) -> str:
        return (
            f"Credential(token='***', expires_at={self.expires_at.isoformat()}, "
            f"refresh_token={'***' if self.refresh_token else None})"
        )

    @classmethod
    def from_token_response(
        cls,
        data: dict[str, Any],
        previous: Optional["Credential"] = None,
        now: Optional[datetime] = None,
    ) -> "Credential":
        """Build a credential from an OAuth2 token response.

        A response without ``refresh_token`` keeps the previous refresh token.
        """
        issued_at = now or utcnow()
        expires_in = data.get("expires_in", 0)
        return cls(
            token=data["access_token"],
            issued_at=issued_at,
            expires_at=issued_at + timedelta(seconds=float(expires_in)),
            refresh_token=data.get("refresh_token")
            or (previous.refresh_token if previous else None),
        )


@dataclass(frozen=True)
class TokenRotated:
    """Event published by the authentication manager when a new token is issued."""

    token: Optional[str]
    sequence: int
    expires_at: Optional[datetime] = None


@dataclass
class ContentBlock:
    """A single content block of a tool result."""

    type: str
    text: Optional[str] = None

    @classmethod
    def from_any(cls, block: Any) -> "ContentBlock":
        if isinstance(block, dict):
            return cls(type=block.get("type", "text"), text=block.get("text"))
        return cls(type=getattr(block, "type", "text"), text=getattr(block, "text", None))


@dataclass
class ToolResult:
    """The outcome of one tool invocation as returned by the server."""

    is_error: bool = False
    content: list[ContentBlock] = field(default_factory=list)

    def text_blocks(self) -> list[str]:
        return [
            block.text
            for block in self.content
            if block.type == "text" and block.text is not None
        ]

    @property
    def text(self) -> str:
        """Concatenation of all text blocks, in order."""
        return "".join(self.text_blocks())

    @property
    def error_message(self) -> str:
        blocks = self.text_blocks()
        return " ".join(blocks) if blocks else "Unknown error"

    @classmethod
    def from_mcp(cls, result: Any) -> "ToolResult":
        """Convert an ``mcp.types.CallToolResult`` (or a dict of the same shape)."""
        if isinstance(result, dict):
            is_error = result.get("isError", False)
            content = result.get("content") or []
        else:
            is_error = getattr(result, "isError", False)
            content = getattr(result, "content", None) or []
        return cls(
            is_error=bool(is_error),
            content=[ContentBlock.from_any(c) for c in content],
        )


@dataclass
class ServerCapabilities:
    """Tools and resources advertised by the connected server."""

    tools: list[dict[str, Any]] = field(default_factory=list)
    resources: list[dict[str, Any]] = field(default_factory=list)

    @property
    def tool_names(self) -> list[str]:
        return [t["name"] for t in self.tools]

    @property
    def resource_names(self) -> list[str]:
        return [r["name"] for r in self.resources]

    def to_dict(self) -> dict[str, Any]:
        return {"tools": self.tools, "resources": self.resources}
