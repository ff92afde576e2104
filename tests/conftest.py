"""Shared fakes for connection shim tests."""

from contextlib import AsyncExitStack
from datetime import timedelta
from typing import Any, Optional

import pytest
from loguru import logger
from mcp import types

from mcp_shim.config import ClientConfig, ServerParams
from mcp_shim.transport import TransportHandle


class FakeSession:
    """Stands in for ``mcp.ClientSession``; each method replays a script of outcomes."""

    def __init__(
        self,
        list_tools: Optional[list[Any]] = None,
        call_tool: Optional[list[Any]] = None,
        list_resources: Optional[list[Any]] = None,
        read_resource: Optional[list[Any]] = None,
    ):
        self.scripts = {
            "list_tools": list(list_tools or []),
            "call_tool": list(call_tool or []),
            "list_resources": list(list_resources or []),
            "read_resource": list(read_resource or []),
        }
        self.calls: list[tuple[str, tuple, dict]] = []

    def _next(self, method: str, *args, **kwargs):
        self.calls.append((method, args, kwargs))
        outcome = self.scripts[method].pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def count(self, method: str) -> int:
        return sum(1 for name, _, _ in self.calls if name == method)

    async def list_tools(self):
        return self._next("list_tools")

    async def call_tool(self, name, arguments=None, read_timeout_seconds=None, progress_callback=None):
        assert read_timeout_seconds is None or isinstance(read_timeout_seconds, timedelta)
        return self._next("call_tool", name, arguments, read_timeout_seconds=read_timeout_seconds)

    async def list_resources(self):
        return self._next("list_resources")

    async def read_resource(self, uri):
        return self._next("read_resource", uri)


class ScriptedOpener:
    """Session opener whose handshakes fail or succeed following a script."""

    def __init__(self, outcomes: list[Any]):
        self.outcomes = list(outcomes)
        self.handles: list[TransportHandle] = []
        self.closed = 0

    async def _on_close(self) -> None:
        self.closed += 1

    async def __call__(self, handle: TransportHandle, stack: AsyncExitStack):
        self.handles.append(handle)
        stack.push_async_callback(self._on_close)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def make_tool(name: str) -> types.Tool:
    return types.Tool(name=name, description=f"{name} tool", inputSchema={"type": "object"})


def pipe_config(command: Optional[str] = "python", args: Optional[list[str]] = None, **extra) -> ClientConfig:
    return ClientConfig(
        transport_kind="pipe",
        server_params=ServerParams(command=command, args=args or ["server.py"]),
        **extra,
    )


@pytest.fixture
def sleeps(monkeypatch) -> list[float]:
    """Record retry delays instead of sleeping."""
    delays: list[float] = []

    async def fake_sleep(delay: float) -> None:
        delays.append(delay)

    monkeypatch.setattr("mcp_shim.connection.retry.sleep", fake_sleep)
    return delays


@pytest.fixture(autouse=True)
def _drop_log_sinks():
    """Sinks added by CLI tests point at streams that are closed after the test."""
    yield
    logger.remove()
