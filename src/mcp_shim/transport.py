"""Transport selection: validate a client config and build its transport handle."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager
from urllib.parse import urlparse

from mcp.client.sse import sse_client
from mcp.client.stdio import StdioServerParameters, stdio_client
from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from mcp_shim.config import ClientConfig, TransportKind
from mcp_shim.errors import ConfigError

__all__ = [
    "TransportHandle",
    "PipeTransport",
    "StreamTransport",
    "build_transport",
    "is_stream_url",
]

_STREAM_SCHEMES = ("http", "https")
_HTTP_URL = TypeAdapter(AnyHttpUrl)


class TransportHandle(ABC):
    """A transport that has been validated but not opened yet."""

    kind: TransportKind

    @abstractmethod
    def open(self) -> AsyncContextManager[Any]:
        """Return the async context manager yielding ``(read_stream, write_stream)``."""

    @abstractmethod
    def describe(self) -> str:
        """Short human readable summary, safe to log."""


class PipeTransport(TransportHandle):
    """Subprocess transport exchanging messages over the child's stdin/stdout."""

    kind = TransportKind.PIPE

    def __init__(self, parameters: StdioServerParameters) -> None:
        self.parameters = parameters

    def open(self) -> AsyncContextManager[Any]:
        return stdio_client(self.parameters)

    def describe(self) -> str:
        return " ".join([self.parameters.command, *self.parameters.args])


class StreamTransport(TransportHandle):
    """Network transport reading server-sent events from a URL."""

    kind = TransportKind.STREAM

    def __init__(self, url: str) -> None:
        self.url = url

    def open(self) -> AsyncContextManager[Any]:
        return sse_client(self.url)

    def describe(self) -> str:
        parsed = urlparse(self.url)
        # Drop credentials and query from log output.
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        return f"{parsed.scheme}://{host}{parsed.path}"


def is_stream_url(url: str) -> bool:
    """Whether ``url`` is an absolute http(s) URL with a valid host."""
    try:
        _HTTP_URL.validate_python(url)
        parsed = urlparse(url)
        # Accessing .port validates the port component.
        parsed.port
    except (ValidationError, ValueError):
        return False
    return parsed.scheme in _STREAM_SCHEMES and bool(parsed.hostname)


def _build_pipe(config: ClientConfig) -> PipeTransport:
    params = config.server_params
    if not params.command:
        raise ConfigError("missing command", "pipe transport requires a launch command")

    return PipeTransport(
        StdioServerParameters(
            command=params.command,
            args=list(params.args),
            env=dict(params.env) or None,
            cwd=params.cwd or None,
        )
    )


def _build_stream(config: ClientConfig) -> StreamTransport:
    url = config.server_params.url
    if not url or not is_stream_url(url):
        raise ConfigError("invalid URL", f"stream transport requires an http(s) URL, got {url!r}")
    return StreamTransport(url)


def build_transport(config: ClientConfig) -> TransportHandle:
    """
    Validate ``config`` and construct a fresh, unopened transport handle.

    Raises:
        ConfigError: ``missing command``, ``invalid URL`` or ``unsupported transport``
    """
    try:
        kind = TransportKind(config.transport_kind)
    except ValueError as e:
        raise ConfigError(
            "unsupported transport",
            f"unknown transport kind {config.transport_kind!r}",
        ) from e

    if kind is TransportKind.PIPE:
        return _build_pipe(config)
    return _build_stream(config)
