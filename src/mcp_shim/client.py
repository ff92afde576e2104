"""Connection manager: one MCP server, its connection lifecycle and the forwarded operations."""

from __future__ import annotations

from typing import Any, Callable, Optional

from mcp import types
from mcp.client.session import ClientSession

from mcp_shim.config import ClientConfig, ServerParams
from mcp_shim.connection import (
    ActiveConnection,
    ConnectionEstablisher,
    ConnectionLifecycle,
    ConnectionStatus,
    ProgressCallback,
)
from mcp_shim.logger import get_logger
from mcp_shim.operations import ResourcesOperations, ToolsOperations
from mcp_shim.operations.resources import ResourceContents
from mcp_shim.session import SessionOpener
from mcp_shim.shell import ShellKind

logger = get_logger("client")


class ConnectionManager:
    """Owns the connection to a single MCP server and forwards protocol operations to it.

    This manager handles:
    - Transport selection and runner command rewriting (pipe servers launched
      through ``npx``/``uvx`` download packages from regional mirrors)
    - Connection establishment with a bounded number of handshake attempts
    - Tool and resource operations with their retry/timeout policies

    Calls on one instance are expected to be awaited one at a time.
    """

    def __init__(
        self,
        config: ClientConfig,
        *,
        shell: Optional[ShellKind] = None,
        session_opener: Optional[SessionOpener] = None,
        on_status_change: Optional[Callable[[ConnectionStatus], None]] = None,
        on_attempt: Optional[ProgressCallback] = None,
    ):
        """
        Args:
            config: Transport kind and server parameters; never modified
            shell: Shell dialect for runner rewrites (detected from the platform when omitted)
            session_opener: Replacement for the MCP SDK handshake, mainly for tests
            on_status_change: Callback invoked when the connection status changes
            on_attempt: Callback invoked before each connection retry with
                (failed_attempt, max_attempts, delay_seconds)
        """
        self._config = config
        self._lifecycle = ConnectionLifecycle(on_status_change=on_status_change)
        self._establisher = ConnectionEstablisher(
            self._lifecycle,
            shell=shell,
            session_opener=session_opener,
            on_attempt=on_attempt,
        )
        self._connection: Optional[ActiveConnection] = None

        self._tools = ToolsOperations(self._get_session, config.retry)
        self._resources = ResourcesOperations(self._get_session)

    # --------------------------------------------------------------------- #
    # Properties
    # --------------------------------------------------------------------- #

    @property
    def config(self) -> ClientConfig:
        """The configuration this manager was created with."""
        return self._config

    @property
    def effective_config(self) -> Optional[ClientConfig]:
        """The configuration of the live connection, after command rewriting."""
        return self._connection.config if self._connection else None

    @property
    def effective_server_params(self) -> ServerParams:
        """Server parameters a connection attempt would use, without connecting."""
        return self._establisher.prepare(self._config).server_params

    @property
    def status(self) -> ConnectionStatus:
        """Current connection status."""
        return self._lifecycle.status

    @property
    def is_connected(self) -> bool:
        """Whether the manager currently has an active session."""
        return self._lifecycle.is_connected and self._connection is not None

    @property
    def error_message(self) -> Optional[str]:
        """Error that moved the manager to FAILED, if any."""
        return self._lifecycle.error_message

    @property
    def attempts(self) -> int:
        """Handshake attempts made by the latest connection cycle."""
        return self._establisher.attempts

    @property
    def session(self) -> Optional[ClientSession]:
        """Expose the underlying MCP session."""
        return self._get_session()

    def _get_session(self) -> Optional[ClientSession]:
        """Session getter passed to operations modules."""
        return self._connection.session if self._connection else None

    # --------------------------------------------------------------------- #
    # Connection lifecycle
    # --------------------------------------------------------------------- #

    async def connect(self) -> None:
        """
        Connect to the configured server.

        An existing connection is closed first and replaced by a new one.

        Raises:
            ConfigError: If the configuration is invalid (no attempt is made)
            Exception: The last handshake error after all attempts failed
        """
        if self._connection is not None:
            logger.info("Replacing existing connection")
            await self.cleanup()

        logger.info(f"Starting connection (transport={self._config.transport_kind})")
        self._connection = await self._establisher.establish(self._config)

    async def cleanup(self) -> None:
        """Close the session and release the transport. Safe to call when not connected."""
        connection, self._connection = self._connection, None
        if connection is None:
            return

        logger.info(f"Closing connection to {connection.handle.describe()}")
        try:
            await connection.close()
        finally:
            self._lifecycle.set_status(ConnectionStatus.UNCONNECTED)

    async def __aenter__(self) -> "ConnectionManager":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.cleanup()

    # --------------------------------------------------------------------- #
    # MCP Operations
    # --------------------------------------------------------------------- #

    async def list_tools(self) -> list[types.Tool]:
        """List tools exposed by the connected server (retried on failure)."""
        return await self._tools.list_tools()

    async def call_tool(
        self,
        tool_name: str,
        arguments: Optional[dict[str, Any]] = None,
    ) -> types.CallToolResult:
        """Invoke a tool once, bounded by the configured tool-call timeout."""
        return await self._tools.call_tool(tool_name, arguments)

    async def list_resources(self) -> list[types.Resource]:
        """List resources exposed by the connected server."""
        return await self._resources.list_resources()

    async def read_resource(self, uri: str) -> list[ResourceContents]:
        """Read the contents of a resource."""
        return await self._resources.read_resource(uri)
