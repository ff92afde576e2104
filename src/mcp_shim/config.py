"""Client configuration models.

Parses the JSON configuration describing which MCP server to reach and how:

    {
        "transportKind": "pipe",
        "serverParams": {"command": "npx", "args": ["-y", "some-pkg"]}
    }
"""

import json
import os
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any, Mapping, Optional

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_serializer,
)

from mcp_shim.errors import ConfigError
from mcp_shim.logger import get_logger

logger = get_logger("config")

DEFAULT_NPM_REGISTRY = "https://registry.npmmirror.com"
DEFAULT_PYPI_INDEX = "https://pypi.tuna.tsinghua.edu.cn/simple"

NPM_REGISTRY_ENV = "MCP_SHIM_NPM_REGISTRY"
PYPI_INDEX_ENV = "MCP_SHIM_PYPI_INDEX"


class TransportKind(str, Enum):
    """Transport used to reach the MCP server."""

    PIPE = "pipe"
    STREAM = "stream"

    @classmethod
    def _missing_(cls, value: object) -> Optional["TransportKind"]:
        if not isinstance(value, str):
            return None
        names = {"pipe": cls.PIPE, "stream": cls.STREAM, "stdio": cls.PIPE, "sse": cls.STREAM}
        return names.get(value.strip().lower())


# Read-only view over the server environment.
ReadOnlyEnv = Annotated[Mapping[str, str], AfterValidator(lambda env: MappingProxyType(dict(env)))]


class ServerParams(BaseModel):
    """Parameters of the MCP server: a launch command for pipe mode or a URL for stream mode."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    command: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("command", "launchCommand"),
        description="Executable launching the server (pipe transport)",
    )
    args: tuple[str, ...] = Field(default=(), description="Arguments for the command")
    env: ReadOnlyEnv = Field(
        default_factory=lambda: MappingProxyType({}),
        validation_alias=AliasChoices("env", "environment"),
        description="Environment variables for the server process",
    )
    cwd: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("cwd", "workingDirectory"),
        description="Working directory for the server process",
    )
    url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("url", "streamUrl", "sseUrl"),
        description="Endpoint of the server (stream transport)",
    )

    @field_serializer("env")
    def _dump_env(self, env: Mapping[str, str]) -> dict[str, str]:
        return dict(env)


class RetrySettings(BaseModel):
    """Retry and timeout policy. Defaults match the fixed policy of the shim."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    connect_attempts: int = Field(
        default=3, ge=1, validation_alias=AliasChoices("connect_attempts", "connectAttempts")
    )
    connect_retry_delay: float = Field(
        default=1.0, ge=0, validation_alias=AliasChoices("connect_retry_delay", "connectRetryDelay")
    )
    list_tools_attempts: int = Field(
        default=3, ge=1, validation_alias=AliasChoices("list_tools_attempts", "listToolsAttempts")
    )
    list_tools_retry_delay: float = Field(
        default=1.0, ge=0, validation_alias=AliasChoices("list_tools_retry_delay", "listToolsRetryDelay")
    )
    tool_call_timeout: float = Field(
        default=300.0, gt=0, validation_alias=AliasChoices("tool_call_timeout", "toolCallTimeout")
    )


def _env_or(name: str, default: str) -> str:
    return os.getenv(name) or default


class MirrorSettings(BaseModel):
    """Regional package mirrors injected when launching runner commands."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    enabled: bool = True
    npm_registry: str = Field(
        default_factory=lambda: _env_or(NPM_REGISTRY_ENV, DEFAULT_NPM_REGISTRY),
        validation_alias=AliasChoices("npm_registry", "npmRegistry"),
    )
    pypi_index: str = Field(
        default_factory=lambda: _env_or(PYPI_INDEX_ENV, DEFAULT_PYPI_INDEX),
        validation_alias=AliasChoices("pypi_index", "pypiIndex"),
    )


class ClientConfig(BaseModel):
    """Transport kind plus server parameters, with the retry and mirror policies."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    # Kept as a plain string: unknown kinds are rejected by the transport selector.
    transport_kind: str = Field(validation_alias=AliasChoices("transport_kind", "transportKind", "transportType"))
    server_params: ServerParams = Field(
        default_factory=ServerParams,
        validation_alias=AliasChoices("server_params", "serverParams", "serverConfig"),
    )
    retry: RetrySettings = Field(default_factory=RetrySettings)
    mirrors: MirrorSettings = Field(default_factory=MirrorSettings)

    def with_server_params(self, server_params: ServerParams) -> "ClientConfig":
        """Return a copy of this config using different server parameters."""
        return self.model_copy(update={"server_params": server_params})


def client_config_from_dict(data: Mapping[str, Any]) -> ClientConfig:
    """
    Validate an in-memory configuration mapping.

    Raises:
        ConfigError: If the mapping does not describe a client configuration
    """
    try:
        return ClientConfig.model_validate(dict(data))
    except ValidationError as e:
        raise ConfigError("invalid config", str(e), details={"errors": e.errors()}) from e


def load_client_config(config_path: str | Path) -> ClientConfig:
    """
    Load a client configuration from a JSON file.

    Args:
        config_path: Path to the JSON configuration file

    Returns:
        ClientConfig: Parsed configuration object

    Raises:
        FileNotFoundError: If the configuration file doesn't exist
        json.JSONDecodeError: If the JSON file is invalid
        ConfigError: If the configuration structure is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        error_msg = f"Client configuration file not found: {config_path}"
        logger.error(error_msg)
        raise FileNotFoundError(error_msg)

    logger.info(f"Loading client configuration from: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in configuration file {config_path}: {e}")
        raise

    if not isinstance(data, dict):
        logger.error(f"Configuration root in {config_path} is not an object")
        raise ConfigError("invalid config", f"expected a JSON object in {config_path}")

    try:
        config = client_config_from_dict(data)
    except ConfigError as e:
        logger.error(f"Invalid configuration structure in {config_path}: {e}")
        raise

    logger.debug(f"Loaded {config.transport_kind} configuration from {config_path}")
    return config
