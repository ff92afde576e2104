"""Opening an MCP client session over a transport handle."""

from __future__ import annotations

from contextlib import AsyncExitStack
from typing import Awaitable, Callable

from mcp import types
from mcp.client.session import ClientSession

from mcp_shim import __version__
from mcp_shim.logger import get_logger
from mcp_shim.transport import TransportHandle

logger = get_logger("session")

CLIENT_NAME = "mcp-mirror-shim"

SessionOpener = Callable[[TransportHandle, AsyncExitStack], Awaitable[ClientSession]]


async def open_session(handle: TransportHandle, stack: AsyncExitStack) -> ClientSession:
    """
    Open ``handle`` and perform the MCP handshake on it.

    Both the transport and the session are entered on ``stack``; closing the
    stack closes the session and tears down the subprocess or HTTP stream.
    """
    read_stream, write_stream = await stack.enter_async_context(handle.open())
    session = await stack.enter_async_context(
        ClientSession(
            read_stream,
            write_stream,
            client_info=types.Implementation(name=CLIENT_NAME, version=__version__),
        )
    )

    logger.debug(f"Initializing MCP session over {handle.kind.value} transport")
    result = await session.initialize()
    logger.info(f"Session initialized with {result.serverInfo.name} {result.serverInfo.version}")
    return session
