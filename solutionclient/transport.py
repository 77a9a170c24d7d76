"""
SolutionClient SDK - Streaming HTTP transport management.

A ``Connection`` is one MCP session over the streamable HTTP transport, bound
to the bearer token it was opened with. The ``TransportManager`` keeps exactly
one current connection and replaces it whenever the authentication manager
publishes a ``TokenRotated`` event: the new connection is opened first, made
current, and the old one is drained of in-flight calls and closed in the
background.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Callable, Optional

import anyio
import httpx
from mcp import ClientSession
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Implementation

from .config import ClientConfig
from .exceptions import TransportError
from .models import ServerCapabilities, TokenRotated

logger = logging.getLogger("solutionclient.transport")

# Failures of the underlying channel, as opposed to JSON-RPC error replies.
_CHANNEL_ERRORS = (
    anyio.ClosedResourceError,
    anyio.BrokenResourceError,
    anyio.EndOfStream,
    httpx.HTTPError,
)


class Connection:
    """
    One streamable HTTP channel plus the MCP client session layered on it.

    The transport and session context managers are entered and exited by a
    dedicated owner task, so a connection opened by one task can be closed
    from any other (the refresh task in particular).
    """

    def __init__(
        self,
        url: str,
        token: Optional[str],
        insecure: bool = False,
        timeout: float = 30.0,
        client_name: str = "solutionclient",
        client_version: str = "0.1.0",
    ) -> None:
        self.url = url
        self.token = token
        self._insecure = insecure
        self._timeout = timeout
        self._client_name = client_name
        self._client_version = client_version

        self._session: Any = None
        self.server_capabilities: Any = None
        self._task: Optional[asyncio.Task[None]] = None
        self._ready = asyncio.Event()
        self._closing = asyncio.Event()
        self._error: Optional[BaseException] = None
        self._in_flight = 0
        self._drained = asyncio.Event()
        self._drained.set()
        self._closed = False

    @property
    def headers(self) -> dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    @property
    def is_open(self) -> bool:
        return self._session is not None and not self._closed

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def _http_client_factory(
        self,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[httpx.Timeout] = None,
        auth: Optional[httpx.Auth] = None,
    ) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=headers,
            timeout=timeout or httpx.Timeout(self._timeout),
            auth=auth,
            verify=not self._insecure,
            follow_redirects=True,
        )

    async def open(self) -> None:
        """Open the channel and complete the MCP initialize handshake.

        Raises:
            TransportError: If the handshake fails or does not finish in time.
        """
        self._task = asyncio.get_running_loop().create_task(self._run())
        try:
            await asyncio.wait_for(self._ready.wait(), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            await self.close()
            raise TransportError(
                f"Timed out after {self._timeout}s connecting to {self.url}"
            ) from e

        if self._session is None:
            error = self._error
            await self.close()
            raise TransportError(f"Failed to connect to {self.url}: {error}") from error

    async def _run(self) -> None:
        try:
            async with streamablehttp_client(
                self.url,
                headers=self.headers,
                timeout=timedelta(seconds=self._timeout),
                httpx_client_factory=self._http_client_factory,
            ) as (read_stream, write_stream, _):
                async with ClientSession(
                    read_stream,
                    write_stream,
                    client_info=Implementation(
                        name=self._client_name, version=self._client_version
                    ),
                ) as session:
                    init = await session.initialize()
                    self.server_capabilities = init.capabilities
                    self._session = session
                    self._ready.set()
                    await self._closing.wait()
        except Exception as e:
            self._error = e
            if self._ready.is_set():
                logger.warning("Connection to %s terminated: %s", self.url, e)
        finally:
            self._session = None
            self._ready.set()

    @asynccontextmanager
    async def _tracked(self) -> AsyncIterator[Any]:
        session = self._session
        if session is None or self._closed:
            raise TransportError(f"Connection to {self.url} is not open")
        self._in_flight += 1
        self._drained.clear()
        try:
            yield session
        except _CHANNEL_ERRORS as e:
            raise TransportError(f"Connection to {self.url} failed: {e}") from e
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._drained.set()

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        async with self._tracked() as session:
            return await session.call_tool(name, arguments)

    async def list_capabilities(self) -> ServerCapabilities:
        async with self._tracked() as session:
            tools = await session.list_tools()
            resources = await session.list_resources()
        return ServerCapabilities(
            tools=[
                {
                    "name": t.name,
                    "description": getattr(t, "description", "") or "",
                    "inputSchema": getattr(t, "inputSchema", {}) or {},
                }
                for t in tools.tools
            ],
            resources=[
                {
                    "name": r.name,
                    "uri": str(getattr(r, "uri", "")),
                    "description": getattr(r, "description", "") or "",
                }
                for r in resources.resources
            ],
        )

    async def close(self, drain_timeout: float = 0.0) -> None:
        """Close the connection after in-flight calls finish (bounded by ``drain_timeout``).

        Never raises; failures are logged.
        """
        if self._closed:
            return
        self._closed = True

        if drain_timeout > 0 and self._in_flight:
            try:
                await asyncio.wait_for(self._drained.wait(), timeout=drain_timeout)
            except asyncio.TimeoutError:
                logger.warning(
                    "Closing connection to %s with %d calls still in flight",
                    self.url,
                    self._in_flight,
                )

        self._closing.set()
        task = self._task
        if task is None or task.done():
            return
        try:
            await asyncio.wait_for(task, timeout=self._timeout)
        except Exception as e:
            logger.warning("Error closing connection to %s: %s", self.url, e)


ConnectionFactory = Callable[[Optional[str]], Connection]


class TransportManager:
    """Owns the single current connection to the solution server."""

    def __init__(
        self,
        config: ClientConfig,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        self._config = config
        self._connection_factory = connection_factory or self._default_factory
        self._connection: Optional[Connection] = None
        self._lock = asyncio.Lock()
        self._retiring: set[asyncio.Task[None]] = set()
        self._disposed = False

    def _default_factory(self, token: Optional[str]) -> Connection:
        return Connection(
            self._config.url,
            token,
            insecure=self._config.insecure,
            timeout=self._config.connect_timeout,
            client_name=self._config.client_name,
            client_version=self._config.client_version,
        )

    @property
    def connection(self) -> Connection:
        if self._connection is None or self._disposed:
            raise TransportError("Not connected to the solution server")
        return self._connection

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._disposed

    async def connect_transport(self, token: Optional[str]) -> Connection:
        """Open the initial connection.

        Raises:
            TransportError: If the connection cannot be opened.
        """
        if self._disposed:
            raise TransportError("Transport manager has been disposed")
        async with self._lock:
            previous = self._connection
            connection = await self._open(token)
            self._connection = connection
        if previous is not None:
            self._retire(previous)
        logger.info("Connected to solution server at %s", self._config.url)
        return connection

    async def on_token_rotated(self, event: TokenRotated) -> None:
        await self.reconnect_with_new_token(event.token)

    async def reconnect_with_new_token(self, token: Optional[str]) -> Connection:
        """
        Replace the current connection with one bound to ``token``.

        Raises:
            RuntimeError: If no connection was ever opened.
            TransportError: If the new connection cannot be opened; the old
                connection stays current in that case.
        """
        async with self._lock:
            old = self._connection
            if old is None or self._disposed:
                raise RuntimeError(
                    "Cannot reconnect: transport has not been connected"
                )
            connection = await self._open(token)
            self._connection = connection
        self._retire(old)
        logger.info("Reconnected to %s with rotated token", self._config.url)
        return connection

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> Any:
        return await self.connection.call_tool(name, arguments)

    async def list_capabilities(self) -> ServerCapabilities:
        return await self.connection.list_capabilities()

    async def dispose(self) -> None:
        """Close the current connection and any still draining. Never raises."""
        if self._disposed:
            return
        self._disposed = True
        connection, self._connection = self._connection, None
        try:
            if connection is not None:
                await connection.close()
            if self._retiring:
                await asyncio.gather(*self._retiring, return_exceptions=True)
        except Exception as e:
            logger.warning("Error disposing transport: %s", e)
        logger.debug("Transport manager disposed")

    async def _open(self, token: Optional[str]) -> Connection:
        connection = self._connection_factory(token)
        await connection.open()
        return connection

    def _retire(self, connection: Connection) -> None:
        task = asyncio.get_running_loop().create_task(
            connection.close(drain_timeout=self._config.drain_timeout)
        )
        self._retiring.add(task)
        task.add_done_callback(self._retiring.discard)
