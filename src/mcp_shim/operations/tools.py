"""Tool-related operations for MCP sessions."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Optional

from mcp import types

from mcp_shim.config import RetrySettings
from mcp_shim.connection.retry import FixedDelayStrategy, RetryStrategy

from .base import OperationBase, SessionGetter


class ToolsOperations(OperationBase):
    """Encapsulates tool discovery and invocation operations."""

    def __init__(self, session_getter: SessionGetter, settings: Optional[RetrySettings] = None) -> None:
        super().__init__(session_getter, logger_name="operations.tools")
        self._settings = settings or RetrySettings()

    def _list_strategy(self) -> RetryStrategy:
        return FixedDelayStrategy(
            max_attempts=self._settings.list_tools_attempts,
            delay=self._settings.list_tools_retry_delay,
        )

    async def list_tools(self) -> list[types.Tool]:
        """
        Return the tools exposed by the connected server.

        Listing is read-only, so failures are retried; the last error is
        raised once every attempt failed.
        """
        strategy = self._list_strategy()
        attempt = 0
        while True:
            attempt += 1
            session = self._require_session("list tools")
            try:
                result = await session.list_tools()
                break
            except Exception as exc:
                if not strategy.should_retry(attempt):
                    self.logger.error(f"Failed to list tools after {attempt} attempts: {exc!r}")
                    raise
                self.logger.warning(f"Listing tools failed (attempt {attempt}/{strategy.max_attempts}): {exc!r}")
                await strategy.wait_before_retry(attempt)

        tools = getattr(result, "tools", None)
        return list(tools or [])

    async def call_tool(
        self,
        tool_name: str,
        arguments: Optional[dict[str, Any]] = None,
    ) -> types.CallToolResult:
        """
        Invoke a tool on the connected server.

        Tool calls may have side effects and are attempted exactly once; a
        timeout or any other failure propagates to the caller.
        """
        session = self._require_session(f"call tool '{tool_name}'")
        timeout = timedelta(seconds=self._settings.tool_call_timeout)
        self.logger.info(f"Calling tool '{tool_name}' (timeout {timeout.total_seconds():.0f}s)")
        return await session.call_tool(
            tool_name,
            arguments or {},
            read_timeout_seconds=timeout,
        )
