"""Connection-management shim around the MCP Python SDK client."""

__version__ = "0.1.0"

from mcp_shim.client import ConnectionManager  # noqa: E402
from mcp_shim.config import (  # noqa: E402
    ClientConfig,
    MirrorSettings,
    RetrySettings,
    ServerParams,
    TransportKind,
    client_config_from_dict,
    load_client_config,
)
from mcp_shim.connection import ConnectionStatus  # noqa: E402
from mcp_shim.errors import ConfigError, NotConnectedError, ShimError  # noqa: E402
from mcp_shim.rewrite import rewrite_server_params  # noqa: E402
from mcp_shim.shell import ShellKind  # noqa: E402
from mcp_shim.transport import build_transport  # noqa: E402

__all__ = [
    "__version__",
    "ClientConfig",
    "ConfigError",
    "ConnectionManager",
    "ConnectionStatus",
    "MirrorSettings",
    "NotConnectedError",
    "RetrySettings",
    "ServerParams",
    "ShellKind",
    "ShimError",
    "TransportKind",
    "build_transport",
    "client_config_from_dict",
    "load_client_config",
    "rewrite_server_params",
]
