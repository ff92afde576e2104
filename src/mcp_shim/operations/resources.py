"""Resource-related operations for MCP sessions."""

from __future__ import annotations

from mcp import types
from pydantic import AnyUrl

from .base import OperationBase, SessionGetter

ResourceContents = types.TextResourceContents | types.BlobResourceContents


class ResourcesOperations(OperationBase):
    """Encapsulates resource discovery and retrieval operations."""

    def __init__(self, session_getter: SessionGetter) -> None:
        super().__init__(session_getter, logger_name="operations.resources")

    async def list_resources(self) -> list[types.Resource]:
        """Return the resources exposed by the connected server."""
        session = self._require_session("list resources")
        result = await session.list_resources()
        return list(result.resources)

    async def read_resource(self, uri: str) -> list[ResourceContents]:
        """Read the resource at ``uri`` and return its content blocks."""
        session = self._require_session(f"read resource '{uri}'")
        result = await session.read_resource(AnyUrl(uri))
        return list(result.contents)
