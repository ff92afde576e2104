"""Connection lifecycle state."""

from enum import Enum
from typing import Callable, Optional

from mcp_shim.logger import get_logger

logger = get_logger("connection.lifecycle")


class ConnectionStatus(Enum):
    """Connection status enumeration."""

    UNCONNECTED = "unconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class ConnectionLifecycle:
    """Tracks the connection status and notifies a listener on changes."""

    def __init__(
        self,
        on_status_change: Optional[Callable[[ConnectionStatus], None]] = None,
    ):
        """
        Initialize connection lifecycle tracking.

        Args:
            on_status_change: Callback invoked when connection status changes
        """
        self._status = ConnectionStatus.UNCONNECTED
        self._on_status_change = on_status_change
        self._error_message: Optional[str] = None

    @property
    def status(self) -> ConnectionStatus:
        """Get current connection status."""
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == ConnectionStatus.CONNECTED

    @property
    def is_failed(self) -> bool:
        return self._status == ConnectionStatus.FAILED

    @property
    def error_message(self) -> Optional[str]:
        """Get error message if in FAILED state."""
        return self._error_message

    def set_status(self, status: ConnectionStatus, error_message: Optional[str] = None) -> None:
        """
        Update connection status and notify callback.

        Args:
            status: New connection status
            error_message: Optional error message for FAILED status
        """
        if self._status == status:
            return

        old_status = self._status
        self._status = status
        self._error_message = error_message if status == ConnectionStatus.FAILED else None

        logger.debug(f"Status changed: {old_status.value} -> {status.value}")

        if self._on_status_change:
            try:
                self._on_status_change(status)
            except Exception as e:
                logger.error(f"Error in status change callback: {e}")
