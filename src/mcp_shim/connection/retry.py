"""Retry strategies for connection attempts and retried operations."""

from asyncio import sleep
from abc import ABC, abstractmethod
from typing import Callable, Optional

from mcp_shim.logger import get_logger

logger = get_logger("connection.retry")

ProgressCallback = Callable[[int, int, float], None]


class RetryStrategy(ABC):
    """Abstract base class for retry strategies."""

    @abstractmethod
    async def wait_before_retry(
        self,
        attempt: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        """
        Wait before the attempt following ``attempt``.

        Args:
            attempt: Number of the attempt that just failed (1-indexed)
            on_progress: Optional callback receiving (attempt, max_attempts, delay_seconds)
        """

    @abstractmethod
    def should_retry(self, attempt: int) -> bool:
        """Check whether another attempt may follow the failed ``attempt``."""

    @property
    @abstractmethod
    def max_attempts(self) -> int:
        """Total number of attempts, the first one included."""


class FixedDelayStrategy(RetryStrategy):
    """A bounded number of attempts separated by a constant delay."""

    def __init__(self, max_attempts: int = 3, delay: float = 1.0):
        """
        Args:
            max_attempts: Total number of attempts, the first one included
            delay: Seconds to wait between two attempts
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._delay = delay

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def delay(self) -> float:
        return self._delay

    def should_retry(self, attempt: int) -> bool:
        return attempt < self._max_attempts

    async def wait_before_retry(
        self,
        attempt: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        logger.info(f"Waiting {self._delay:.1f}s before retry (attempt {attempt}/{self._max_attempts} failed)")

        if on_progress:
            try:
                on_progress(attempt, self._max_attempts, self._delay)
            except Exception as e:
                logger.error(f"Error in progress callback: {e}")

        await sleep(self._delay)
