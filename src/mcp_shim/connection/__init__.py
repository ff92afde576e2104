"""Connection management components for the shim."""

from .lifecycle import ConnectionLifecycle, ConnectionStatus
from .retry import FixedDelayStrategy, ProgressCallback, RetryStrategy
from .establisher import ActiveConnection, ConnectionEstablisher

__all__ = [
    "ActiveConnection",
    "ConnectionEstablisher",
    "ConnectionLifecycle",
    "ConnectionStatus",
    "FixedDelayStrategy",
    "ProgressCallback",
    "RetryStrategy",
]
