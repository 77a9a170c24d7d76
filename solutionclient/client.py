"""
SolutionClient SDK - Authenticated tool-invocation client for the solution server.

Composes the authentication manager and the transport manager behind a single
entry point with one generic primitive, ``request()``, and typed wrappers for
the server's tools.

Example:
    ```python
    async with await SolutionServerClient.connect("https://kai.example.com/mcp") as client:
        hint = await client.get_best_hint("eap7", "session-bean-001")
        if hint.found:
            print(hint.hint)
    ```
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import replace
from typing import Any, Optional, Union

from mcp.shared.exceptions import McpError

from .auth import AuthenticationManager
from .config import ClientConfig
from .exceptions import (
    OperationTimeoutError,
    ProtocolError,
    RemoteOperationError,
    TransportError,
)
from .models import ServerCapabilities, ToolResult
from .schemas import (
    BestHint,
    SolutionChangeSet,
    SuccessRate,
    ViolationId,
    decode_payload,
    validate_payload,
)
from .transport import TransportManager
from .validation import (
    InputValidationError,
    validate_dict,
    validate_required,
    validate_solution_create,
    validate_violation_ids,
)

logger = logging.getLogger("solutionclient.client")

_SENSITIVE_KEY = re.compile(
    r"(secret|password|token|key|auth|credential|bearer)", re.IGNORECASE
)


def _sanitize_for_log(data: Any, depth: int = 0) -> Any:
    """Replace sensitive-looking values and truncate large strings before logging."""
    if depth > 10:
        return "[TRUNCATED]"
    if isinstance(data, dict):
        return {
            k: "[REDACTED]" if _SENSITIVE_KEY.search(str(k)) else _sanitize_for_log(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [_sanitize_for_log(item, depth + 1) for item in data[:100]]
    if isinstance(data, str) and len(data) > 2_000:
        return data[:2_000] + "...[TRUNCATED]"
    return data


class SolutionServerClient:
    """
    Client for invoking solution server tools over an authenticated session.

    Calls may be issued concurrently. Each call waits on the authentication
    manager's refresh barrier before it is dispatched, so no call is sent
    while the bearer token is being rotated and the transport reconnected.
    """

    def __init__(
        self,
        config: ClientConfig,
        auth_manager: Optional[AuthenticationManager] = None,
        transport: Optional[TransportManager] = None,
    ) -> None:
        self._config = config
        self._auth = auth_manager or AuthenticationManager(config)
        self._transport = transport or TransportManager(config)
        self._auth.add_listener(self._transport)
        self._client_id = ""
        self._connected = False
        self._disposed = False

    # ==================== Lifecycle ====================

    @classmethod
    async def connect(
        cls,
        url: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        **kwargs: Any,
    ) -> SolutionServerClient:
        """
        Resolve configuration, authenticate, open the transport and start
        the refresh loop.

        Args:
            url: Server endpoint. Overrides the configured/env URL when given.
            config: Explicit configuration; defaults to ``ClientConfig.from_env()``.

        Returns:
            A connected client.

        Raises:
            ConfigurationError: Before any network call, if the configuration is invalid.
            AuthenticationError: If the initial credential exchange fails.
            TransportError: If the connection cannot be opened.
        """
        if config is None:
            config = ClientConfig.from_env(url)
        elif url:
            config = replace(config, url=url)
        config.validate()

        client = cls(config, **kwargs)
        await client._initialize()
        return client

    async def _initialize(self) -> None:
        if self._disposed:
            raise TransportError("Client has been disposed")
        try:
            await self._auth.authenticate()
            connection = await self._transport.connect_transport(
                self._auth.get_bearer_token()
            )
            self._auth.start_auto_refresh()
        except Exception:
            await self.dispose()
            raise

        self._connected = True
        capabilities = connection.server_capabilities
        logger.info(
            "Solution server session ready (tools=%s, resources=%s)",
            bool(getattr(capabilities, "tools", None)),
            bool(getattr(capabilities, "resources", None)),
        )

    async def dispose(self) -> None:
        """
        Stop refreshing, let any in-flight refresh settle, and close the
        transport. Idempotent; never raises.
        """
        if self._disposed:
            return
        self._disposed = True
        self._connected = False

        self._auth.stop_auto_refresh()
        try:
            await self._auth.wait_for_refresh()
        except Exception as e:
            logger.debug("Ignoring refresh failure during dispose: %s", e)

        try:
            self._auth.remove_listener(self._transport)
            self._auth.dispose()
        except Exception as e:
            logger.warning("Error disposing authentication manager: %s", e)

        await self._transport.dispose()
        logger.info("Disconnected from solution server")

    async def __aenter__(self) -> SolutionServerClient:
        if not self._connected:
            self._config.validate()
            await self._initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.dispose()

    # ==================== Properties ====================

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def auth(self) -> AuthenticationManager:
        return self._auth

    @property
    def transport(self) -> TransportManager:
        return self._transport

    @property
    def connected(self) -> bool:
        return self._connected and not self._disposed

    @property
    def client_id(self) -> str:
        """Identifier sent with incident and solution records."""
        return self._client_id

    @client_id.setter
    def client_id(self, value: str) -> None:
        self._client_id = value

    # ==================== Dispatch ====================

    def _ensure_connected(self) -> None:
        if self._disposed:
            raise TransportError("Client has been disposed")
        if not self._connected:
            raise TransportError("Client is not connected; call connect() first")

    async def request(
        self,
        operation: str,
        arguments: dict[str, Any],
        schema: Any,
    ) -> Any:
        """
        Invoke a tool and return its validated result.

        Args:
            operation: Tool name.
            arguments: Tool arguments.
            schema: Type the decoded payload is validated against.

        Returns:
            The validated payload, or None when the tool produced no text content.

        Raises:
            AuthenticationError: If the session can no longer be authenticated.
            TransportError: If the connection is unusable.
            OperationTimeoutError: If the call exceeds ``request_timeout``.
            RemoteOperationError: If the server reports the call as failed.
            ProtocolError: If the payload is not valid JSON.
            ValidationError: If the payload does not match ``schema``.
        """
        self._ensure_connected()
        await self._auth.wait_for_refresh()

        timeout = self._config.request_timeout
        logger.debug(
            "Calling '%s' with %s", operation, _sanitize_for_log(arguments)
        )
        try:
            raw = await asyncio.wait_for(
                self._transport.call_tool(operation, arguments), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"'{operation}' timed out after {timeout}s", phase="request"
            ) from e
        except McpError as e:
            raise RemoteOperationError(
                f"An error occurred during the request: {e.error.message}",
                operation=operation,
                arguments=arguments,
                status_code=e.error.code,
            ) from e

        result = ToolResult.from_mcp(raw)
        if result.is_error:
            logger.warning(
                "'%s' reported an error: %s", operation, result.error_message
            )
            raise RemoteOperationError(
                f"An error occurred during the request: {result.error_message}",
                operation=operation,
                arguments=arguments,
                response=result.error_message,
            )

        text = result.text
        if not text:
            return None

        payload = decode_payload(text, operation=operation)
        return validate_payload(payload, schema, operation=operation)

    async def get_server_capabilities(self) -> ServerCapabilities:
        """List the tools and resources the server exposes."""
        self._ensure_connected()
        await self._auth.wait_for_refresh()
        timeout = self._config.request_timeout
        try:
            return await asyncio.wait_for(
                self._transport.list_capabilities(), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"Listing server capabilities timed out after {timeout}s",
                phase="request",
            ) from e
        except McpError as e:
            raise RemoteOperationError(
                f"Failed to list server capabilities: {e.error.message}",
                operation="list_capabilities",
                status_code=e.error.code,
            ) from e

    # ==================== Tools ====================

    async def get_best_hint(self, ruleset_name: str, violation_name: str) -> BestHint:
        """
        Get the best known hint for a violation.

        A result with no content, or a literal ``null`` payload, means the
        server has no hint; this returns ``BestHint(hint_id=-1, hint="")``.
        """
        validate_required(ruleset_name, "ruleset_name")
        validate_required(violation_name, "violation_name")

        result = await self.request(
            "get_best_hint",
            {"ruleset_name": ruleset_name, "violation_name": violation_name},
            Optional[BestHint],
        )
        if result is None:
            logger.debug("No hint for %s - %s", ruleset_name, violation_name)
            return BestHint.empty()
        return result

    async def get_success_rate(
        self, violation_ids: list[Union[ViolationId, dict[str, str]]]
    ) -> SuccessRate:
        """
        Get aggregated solution outcomes for a set of violations.

        An empty result (no content or ``null``) means no solutions are
        recorded yet and maps to an all-zero ``SuccessRate``.
        """
        ids = [
            v.model_dump() if isinstance(v, ViolationId) else v for v in violation_ids
        ]
        validate_violation_ids(ids)

        result = await self.request(
            "get_success_rate",
            {
                "violation_ids": [
                    {
                        "ruleset_name": v["ruleset_name"],
                        "violation_name": v["violation_name"],
                    }
                    for v in ids
                ]
            },
            Optional[SuccessRate],
        )
        return result if result is not None else SuccessRate.empty()

    async def create_incident(self, incident: dict[str, Any]) -> int:
        """
        Record an incident and return its server-assigned id.

        There is no fallback: a result without an id raises ``ProtocolError``.
        """
        validate_required(incident, "incident")
        validate_dict(incident, "incident")
        validate_required(incident.get("ruleset_name"), "incident.ruleset_name")
        validate_required(incident.get("violation_name"), "incident.violation_name")

        incident_id = await self.request(
            "create_incident",
            {"client_id": self._client_id, "extended_incident": incident},
            int,
        )
        if incident_id is None:
            raise ProtocolError("No incident ID returned from server")
        logger.info(
            "Created incident %d for %s - %s",
            incident_id,
            incident["ruleset_name"],
            incident["violation_name"],
        )
        return incident_id

    async def create_solution(
        self,
        incident_ids: list[int],
        change_set: Union[SolutionChangeSet, dict[str, Any]],
        reasoning: str = "",
        used_hint_ids: Optional[list[int]] = None,
    ) -> int:
        """
        Record a solution for one or more incidents and return its id.

        There is no fallback: a result without an id raises ``ProtocolError``.
        """
        used_hint_ids = used_hint_ids or []
        validate_solution_create(incident_ids, reasoning, used_hint_ids)
        if isinstance(change_set, dict):
            try:
                change_set = SolutionChangeSet.model_validate(change_set)
            except ValueError as e:
                raise InputValidationError(
                    f"Invalid change_set: {e}", field="change_set"
                ) from e

        solution_id = await self.request(
            "create_solution",
            {
                "client_id": self._client_id,
                "incident_ids": incident_ids,
                "change_set": change_set.model_dump(),
                "reasoning": reasoning,
                "used_hint_ids": used_hint_ids,
            },
            int,
        )
        if solution_id is None:
            raise ProtocolError("No solution ID returned from server")
        logger.info(
            "Created solution %d for incidents %s", solution_id, incident_ids
        )
        return solution_id
