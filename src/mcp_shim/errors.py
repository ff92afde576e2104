"""Exceptions raised by the shim itself.

Handshake and operation failures coming from the MCP SDK are not wrapped:
the original exception object reaches the caller unchanged.
"""

from __future__ import annotations

from typing import Any, Optional

__all__ = ["ShimError", "ConfigError", "NotConnectedError"]


class ShimError(Exception):
    """Base class for errors raised by mcp_shim."""


class ConfigError(ShimError, ValueError):
    """Malformed or unsupported configuration. Never retried."""

    def __init__(self, reason: str, message: Optional[str] = None, *, details: Optional[dict[str, Any]] = None):
        text = reason if not message else f"{reason}: {message}"
        super().__init__(text)
        self.reason = reason
        self.details = details or {}


class NotConnectedError(ShimError, RuntimeError):
    """An operation was invoked without an established session."""

    def __init__(self, action: str):
        super().__init__(f"Cannot {action}: no active MCP session")
        self.action = action
