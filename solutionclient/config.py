"""
SolutionClient SDK - Connection configuration.

Resolves the solution server endpoint, realm credentials and tuning knobs from
explicit arguments, environment variables or a YAML ``solution_server:`` block.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

from .exceptions import ConfigurationError
from .validation import (
    InputValidationError,
    validate_non_negative,
    validate_positive_int,
    validate_positive_number,
    validate_ratio,
    validate_required,
    validate_url,
)

ENV_PREFIX = "SOLUTION_SERVER_"

DEFAULT_REFRESH_RATIO = 0.8
DEFAULT_MAX_REFRESH_ATTEMPTS = 3
DEFAULT_REFRESH_BACKOFF = 1.0
DEFAULT_REFRESH_BACKOFF_MAX = 30.0
DEFAULT_TOKEN_TIMEOUT = 10.0
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_DRAIN_TIMEOUT = 5.0


def _env_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() == "true"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", field=name)


@dataclass
class ClientConfig:
    """Configuration for connecting to a solution server."""

    url: str = ""
    realm: str = ""
    username: str = ""
    password: str = ""
    insecure: bool = False

    refresh_ratio: float = DEFAULT_REFRESH_RATIO
    max_refresh_attempts: int = DEFAULT_MAX_REFRESH_ATTEMPTS
    refresh_backoff: float = DEFAULT_REFRESH_BACKOFF
    refresh_backoff_max: float = DEFAULT_REFRESH_BACKOFF_MAX
    token_timeout: float = DEFAULT_TOKEN_TIMEOUT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    drain_timeout: float = DEFAULT_DRAIN_TIMEOUT

    client_name: str = "solutionclient"
    client_version: str = "0.1.0"

    @property
    def is_local(self) -> bool:
        """Plain-HTTP endpoints are local/dev deployments."""
        return self.url.lower().startswith("http://")

    @property
    def has_credentials(self) -> bool:
        return bool(self.realm and self.username and self.password)

    @property
    def token_url(self) -> str:
        """OpenID Connect token endpoint for the configured realm."""
        parsed = urlparse(self.url)
        return (
            f"{parsed.scheme}://{parsed.netloc}"
            f"/auth/realms/{self.realm}/protocol/openid-connect/token"
        )

    @property
    def oauth_client_id(self) -> str:
        return f"{self.realm}-ui"

    def validate(self) -> ClientConfig:
        """Check the configuration without touching the network.

        Returns:
            The same config, for chaining.

        Raises:
            ConfigurationError: If a required field is missing or a knob is out of range.
        """
        try:
            validate_required(self.url, "url")
            validate_url(self.url, "url")
            if not self.is_local:
                validate_required(self.realm, "realm")
                validate_required(self.username, "username")
                validate_required(self.password, "password")
            elif any((self.realm, self.username, self.password)):
                # Local deployments take all three credential fields or none.
                validate_required(self.realm, "realm")
                validate_required(self.username, "username")
                validate_required(self.password, "password")
            validate_ratio(self.refresh_ratio, "refresh_ratio")
            validate_positive_int(self.max_refresh_attempts, "max_refresh_attempts")
            validate_non_negative(self.refresh_backoff, "refresh_backoff")
            validate_positive_number(self.refresh_backoff_max, "refresh_backoff_max")
            validate_positive_number(self.token_timeout, "token_timeout")
            validate_positive_number(self.request_timeout, "request_timeout")
            validate_positive_number(self.connect_timeout, "connect_timeout")
            validate_positive_number(self.drain_timeout, "drain_timeout")
        except InputValidationError as e:
            raise ConfigurationError(e.message, field=e.field) from e
        return self

    @classmethod
    def from_env(cls, url: Optional[str] = None) -> ClientConfig:
        """Create configuration from environment variables.

        An explicit ``url`` takes precedence over ``SOLUTION_SERVER_URL``.
        """
        return cls(
            url=url or os.environ.get(f"{ENV_PREFIX}URL", ""),
            realm=os.environ.get(f"{ENV_PREFIX}REALM", "").strip(),
            username=os.environ.get(f"{ENV_PREFIX}USERNAME", "").strip(),
            password=os.environ.get(f"{ENV_PREFIX}PASSWORD", ""),
            insecure=_env_bool(os.environ.get(f"{ENV_PREFIX}INSECURE")),
            refresh_ratio=_env_float(
                f"{ENV_PREFIX}REFRESH_RATIO", DEFAULT_REFRESH_RATIO
            ),
            request_timeout=_env_float(
                f"{ENV_PREFIX}REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT
            ),
        )

    @classmethod
    def from_yaml(cls, data: Any) -> ClientConfig:
        """Create configuration from YAML text or an already-parsed mapping.

        Example YAML structure::

            solution_server:
              url: "https://kai.example.com/hub/services/kai/api"
              realm: "tackle"
              username: "${SOLUTION_SERVER_USERNAME}"
              password: "${SOLUTION_SERVER_PASSWORD}"
              insecure: false
              refresh:
                ratio: 0.8
                max_attempts: 3
                backoff: 1.0
              timeouts:
                token: 10
                request: 30

        Values of the form ``${NAME}`` are resolved from the environment.
        """
        if isinstance(data, str):
            import yaml

            try:
                data = yaml.safe_load(data)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML configuration: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a mapping")

        block = data.get("solution_server", data)
        if not isinstance(block, dict):
            raise ConfigurationError(
                "'solution_server' must be a mapping", field="solution_server"
            )

        def _resolve(value: Any) -> Any:
            if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
                return os.environ.get(value[2:-1], "")
            return value

        refresh = block.get("refresh") or {}
        timeouts = block.get("timeouts") or {}
        for name, section in (("refresh", refresh), ("timeouts", timeouts)):
            if not isinstance(section, dict):
                raise ConfigurationError(f"'{name}' must be a mapping", field=name)
        insecure = _resolve(block.get("insecure", False))
        if isinstance(insecure, str):
            insecure = _env_bool(insecure)

        return cls(
            url=_resolve(block.get("url", "")) or "",
            realm=_resolve(block.get("realm", "")) or "",
            username=_resolve(block.get("username", "")) or "",
            password=_resolve(block.get("password", "")) or "",
            insecure=bool(insecure),
            refresh_ratio=refresh.get("ratio", DEFAULT_REFRESH_RATIO),
            max_refresh_attempts=refresh.get(
                "max_attempts", DEFAULT_MAX_REFRESH_ATTEMPTS
            ),
            refresh_backoff=refresh.get("backoff", DEFAULT_REFRESH_BACKOFF),
            refresh_backoff_max=refresh.get("backoff_max", DEFAULT_REFRESH_BACKOFF_MAX),
            token_timeout=timeouts.get("token", DEFAULT_TOKEN_TIMEOUT),
            request_timeout=timeouts.get("request", DEFAULT_REQUEST_TIMEOUT),
            connect_timeout=timeouts.get("connect", DEFAULT_CONNECT_TIMEOUT),
            drain_timeout=timeouts.get("drain", DEFAULT_DRAIN_TIMEOUT),
        )
