"""Operations helpers for interacting with an MCP server session."""

from .resources import ResourcesOperations
from .tools import ToolsOperations

__all__ = [
    "ResourcesOperations",
    "ToolsOperations",
]
