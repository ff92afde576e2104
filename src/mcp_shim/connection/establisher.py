"""Connection establishment with a bounded number of handshake attempts."""

from __future__ import annotations

from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Optional

from mcp.client.session import ClientSession

from mcp_shim.config import ClientConfig, TransportKind
from mcp_shim.errors import ConfigError
from mcp_shim.logger import get_logger
from mcp_shim.rewrite import rewrite_server_params
from mcp_shim.session import SessionOpener, open_session
from mcp_shim.shell import ShellKind
from mcp_shim.transport import TransportHandle, build_transport

from .lifecycle import ConnectionLifecycle, ConnectionStatus
from .retry import FixedDelayStrategy, ProgressCallback, RetryStrategy

logger = get_logger("connection.establisher")


@dataclass
class ActiveConnection:
    """Everything owned by one successful connection attempt."""

    config: ClientConfig
    handle: TransportHandle
    session: ClientSession
    exit_stack: AsyncExitStack

    async def close(self) -> None:
        """Close the session and tear down the transport."""
        await self.exit_stack.aclose()


class ConnectionEstablisher:
    """
    Drives one connection cycle: UNCONNECTED -> CONNECTING -> CONNECTED | FAILED.

    Configuration problems fail the cycle immediately. Handshake failures are
    retried according to the config's retry settings, with a fresh transport
    handle for every attempt; once the budget is spent the last handshake
    error is re-raised unchanged.
    """

    def __init__(
        self,
        lifecycle: ConnectionLifecycle,
        *,
        shell: Optional[ShellKind] = None,
        session_opener: Optional[SessionOpener] = None,
        on_attempt: Optional[ProgressCallback] = None,
    ):
        """
        Args:
            lifecycle: Status holder updated as the cycle progresses
            shell: Shell dialect for runner rewrites (detected when omitted)
            session_opener: Coroutine opening a session on a handle (defaults to the MCP SDK)
            on_attempt: Callback invoked after each failed attempt that will be retried,
                with (attempt, max_attempts, delay_seconds)
        """
        self._lifecycle = lifecycle
        self._shell = shell
        self._open_session = session_opener or open_session
        self._on_attempt = on_attempt
        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Number of handshake attempts made by the latest cycle."""
        return self._attempts

    def prepare(self, config: ClientConfig) -> ClientConfig:
        """Return the config used for this cycle: pipe launches go through the rewriter."""
        try:
            kind = TransportKind(config.transport_kind)
        except ValueError:
            # Left for the transport selector to reject.
            return config
        if kind is not TransportKind.PIPE:
            return config

        rewritten = rewrite_server_params(config.server_params, shell=self._shell, mirrors=config.mirrors)
        if rewritten is config.server_params:
            return config
        return config.with_server_params(rewritten)

    async def establish(self, config: ClientConfig, strategy: Optional[RetryStrategy] = None) -> ActiveConnection:
        """
        Run a connection cycle for ``config``.

        Raises:
            ConfigError: If the config cannot produce a transport (not retried)
            Exception: The last handshake error once all attempts failed
        """
        strategy = strategy or FixedDelayStrategy(
            max_attempts=config.retry.connect_attempts,
            delay=config.retry.connect_retry_delay,
        )
        self._attempts = 0
        self._lifecycle.set_status(ConnectionStatus.CONNECTING)

        try:
            effective = self.prepare(config)
        except ConfigError as e:
            self._fail(e)
            raise

        while True:
            try:
                handle = build_transport(effective)
            except ConfigError as e:
                self._fail(e)
                raise

            self._attempts += 1
            logger.info(
                f"Connection attempt {self._attempts}/{strategy.max_attempts} "
                f"({handle.kind.value}: {handle.describe()})"
            )

            stack = AsyncExitStack()
            try:
                session = await self._open_session(handle, stack)
            except Exception as e:
                await self._discard(stack, handle)
                if not strategy.should_retry(self._attempts):
                    logger.error(f"Connection failed after {self._attempts} attempts: {e!r}")
                    self._fail(e)
                    raise
                logger.warning(
                    f"Connection attempt {self._attempts} failed, "
                    f"{strategy.max_attempts - self._attempts} remaining: {e!r}"
                )
                await strategy.wait_before_retry(self._attempts, on_progress=self._on_attempt)
                continue
            except BaseException:
                await self._discard(stack, handle)
                self._lifecycle.set_status(ConnectionStatus.UNCONNECTED)
                raise

            logger.info(f"Connected after {self._attempts} attempt(s)")
            self._lifecycle.set_status(ConnectionStatus.CONNECTED)
            return ActiveConnection(config=effective, handle=handle, session=session, exit_stack=stack)

    def _fail(self, error: BaseException) -> None:
        self._lifecycle.set_status(ConnectionStatus.FAILED, str(error) or type(error).__name__)

    @staticmethod
    async def _discard(stack: AsyncExitStack, handle: TransportHandle) -> None:
        # The handle is never reused; failures while tearing it down are only logged.
        try:
            await stack.aclose()
        except Exception as e:
            logger.warning(f"Error while discarding transport {handle.describe()}: {e!r}")
