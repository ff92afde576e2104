"""Tests for connection management components."""

import pytest

from mcp_shim.client import ConnectionManager
from mcp_shim.config import ClientConfig, RetrySettings, ServerParams
from mcp_shim.connection import establisher as establisher_module
from mcp_shim.connection import (
    ConnectionEstablisher,
    ConnectionLifecycle,
    ConnectionStatus,
    FixedDelayStrategy,
)
from mcp_shim.errors import ConfigError, NotConnectedError
from mcp_shim.shell import ShellKind, resolve_shell
from mcp_shim.transport import PipeTransport, StreamTransport
from tests.conftest import FakeSession, ScriptedOpener, pipe_config


class TestFixedDelayStrategy:
    """Tests for FixedDelayStrategy."""

    def test_should_retry(self):
        strategy = FixedDelayStrategy(max_attempts=3, delay=1.0)

        assert strategy.should_retry(1) is True
        assert strategy.should_retry(2) is True
        assert strategy.should_retry(3) is False

    def test_single_attempt_never_retries(self):
        assert FixedDelayStrategy(max_attempts=1).should_retry(1) is False

    def test_rejects_empty_budget(self):
        with pytest.raises(ValueError):
            FixedDelayStrategy(max_attempts=0)

    @pytest.mark.asyncio
    async def test_wait_reports_progress(self, sleeps):
        strategy = FixedDelayStrategy(max_attempts=3, delay=1.0)
        progress = []

        await strategy.wait_before_retry(1, on_progress=lambda *args: progress.append(args))

        assert sleeps == [1.0]
        assert progress == [(1, 3, 1.0)]

    @pytest.mark.asyncio
    async def test_progress_callback_errors_are_contained(self, sleeps):
        def broken(*_):
            raise RuntimeError("boom")

        await FixedDelayStrategy(delay=0.5).wait_before_retry(1, on_progress=broken)

        assert sleeps == [0.5]


class TestConnectionLifecycle:
    """Tests for ConnectionLifecycle."""

    def test_initial_state(self):
        lifecycle = ConnectionLifecycle()

        assert lifecycle.status == ConnectionStatus.UNCONNECTED
        assert not lifecycle.is_connected
        assert not lifecycle.is_failed

    def test_status_change(self):
        statuses = []
        lifecycle = ConnectionLifecycle(on_status_change=statuses.append)

        lifecycle.set_status(ConnectionStatus.CONNECTING)
        lifecycle.set_status(ConnectionStatus.CONNECTING)
        lifecycle.set_status(ConnectionStatus.CONNECTED)

        assert lifecycle.is_connected
        assert statuses == [ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED]

    def test_failed_state_keeps_message(self):
        lifecycle = ConnectionLifecycle()

        lifecycle.set_status(ConnectionStatus.FAILED, "handshake refused")

        assert lifecycle.is_failed
        assert lifecycle.error_message == "handshake refused"

    def test_callback_errors_are_contained(self):
        def broken(_status):
            raise RuntimeError("listener failed")

        lifecycle = ConnectionLifecycle(on_status_change=broken)
        lifecycle.set_status(ConnectionStatus.CONNECTING)

        assert lifecycle.status == ConnectionStatus.CONNECTING


class TestConnectionEstablisher:
    """Tests for the connect retry loop."""

    @pytest.mark.asyncio
    async def test_connects_after_two_failures(self, sleeps):
        session = FakeSession()
        opener = ScriptedOpener([OSError("refused"), OSError("refused"), session])
        lifecycle = ConnectionLifecycle()
        establisher = ConnectionEstablisher(lifecycle, session_opener=opener)

        connection = await establisher.establish(pipe_config())

        assert connection.session is session
        assert establisher.attempts == 3
        assert sleeps == [1.0, 1.0]
        assert lifecycle.status == ConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_every_attempt_uses_a_fresh_handle(self, sleeps):
        opener = ScriptedOpener([OSError("1"), OSError("2"), FakeSession()])
        establisher = ConnectionEstablisher(ConnectionLifecycle(), session_opener=opener)

        connection = await establisher.establish(pipe_config())

        assert len(opener.handles) == 3
        assert len({id(handle) for handle in opener.handles}) == 3
        assert connection.handle is opener.handles[-1]
        # The two failed attempts were torn down, the live one is still open.
        assert opener.closed == 2

    @pytest.mark.asyncio
    async def test_fails_with_last_error(self, sleeps):
        errors = [OSError("first"), OSError("second"), OSError("third")]
        opener = ScriptedOpener(errors)
        lifecycle = ConnectionLifecycle()
        establisher = ConnectionEstablisher(lifecycle, session_opener=opener)

        with pytest.raises(OSError) as exc_info:
            await establisher.establish(pipe_config())

        assert exc_info.value is errors[2]
        assert establisher.attempts == 3
        assert sleeps == [1.0, 1.0]
        assert opener.closed == 3
        assert lifecycle.status == ConnectionStatus.FAILED
        assert lifecycle.error_message == "third"

    @pytest.mark.asyncio
    async def test_config_error_is_not_retried(self, sleeps):
        opener = ScriptedOpener([FakeSession()])
        lifecycle = ConnectionLifecycle()
        establisher = ConnectionEstablisher(lifecycle, session_opener=opener)

        with pytest.raises(ConfigError) as exc_info:
            await establisher.establish(pipe_config(command=None))

        assert exc_info.value.reason == "missing command"
        assert opener.handles == []
        assert sleeps == []
        assert establisher.attempts == 0
        assert lifecycle.status == ConnectionStatus.FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["not a url", "http://exa mple.com/sse"])
    async def test_invalid_stream_url_is_not_retried(self, url, sleeps):
        opener = ScriptedOpener([FakeSession()])
        config = ClientConfig(transport_kind="stream", server_params=ServerParams(url=url))

        with pytest.raises(ConfigError):
            await ConnectionEstablisher(ConnectionLifecycle(), session_opener=opener).establish(config)

        assert opener.handles == []

    @pytest.mark.asyncio
    async def test_stream_transport(self, sleeps):
        opener = ScriptedOpener([FakeSession()])
        config = ClientConfig(transport_kind="stream", server_params=ServerParams(url="https://example.com/sse"))

        connection = await ConnectionEstablisher(ConnectionLifecycle(), session_opener=opener).establish(config)

        assert isinstance(connection.handle, StreamTransport)
        assert connection.config is config

    @pytest.mark.asyncio
    async def test_pipe_runner_is_rewritten_once_per_cycle(self, sleeps, monkeypatch):
        rewrites = []
        original = establisher_module.rewrite_server_params

        def counting_rewrite(*args, **kwargs):
            rewrites.append(args)
            return original(*args, **kwargs)

        monkeypatch.setattr(establisher_module, "rewrite_server_params", counting_rewrite)
        opener = ScriptedOpener([OSError("x"), FakeSession()])
        config = pipe_config(command="npx", args=["-y", "some-pkg"])
        establisher = ConnectionEstablisher(ConnectionLifecycle(), shell=ShellKind.POSIX, session_opener=opener)

        connection = await establisher.establish(config)

        for handle in opener.handles:
            assert isinstance(handle, PipeTransport)
            assert handle.parameters.command == "bash"
            assert handle.parameters.args == ["-c", "npx --registry=https://registry.npmmirror.com -y some-pkg"]
        assert len(rewrites) == 1
        assert connection.config.server_params.command == "bash"
        # The caller's config is left untouched.
        assert config.server_params.command == "npx"

    @pytest.mark.asyncio
    async def test_attempt_callback(self, sleeps):
        reports = []
        opener = ScriptedOpener([OSError("x"), OSError("y"), FakeSession()])
        establisher = ConnectionEstablisher(
            ConnectionLifecycle(),
            session_opener=opener,
            on_attempt=lambda *args: reports.append(args),
        )

        await establisher.establish(pipe_config())

        assert reports == [(1, 3, 1.0), (2, 3, 1.0)]

    @pytest.mark.asyncio
    async def test_retry_settings_are_honoured(self, sleeps):
        errors = [OSError(str(i)) for i in range(5)]
        opener = ScriptedOpener(errors)
        config = pipe_config(retry=RetrySettings(connect_attempts=5, connect_retry_delay=0.25))
        establisher = ConnectionEstablisher(ConnectionLifecycle(), session_opener=opener)

        with pytest.raises(OSError) as exc_info:
            await establisher.establish(config)

        assert exc_info.value is errors[-1]
        assert sleeps == [0.25] * 4


class TestConnectionManager:
    """Tests for ConnectionManager lifecycle."""

    def test_initial_state(self):
        manager = ConnectionManager(pipe_config())

        assert manager.status == ConnectionStatus.UNCONNECTED
        assert not manager.is_connected
        assert manager.session is None
        assert manager.effective_config is None

    def test_effective_server_params_without_connecting(self):
        manager = ConnectionManager(pipe_config(command="uvx", args=["srv"]), shell=ShellKind.WINDOWS)

        params = manager.effective_server_params

        assert params.command == "cmd"
        assert params.args == ("/c", "uvx", "srv")
        assert params.env == {"UV_DEFAULT_INDEX": "https://pypi.tuna.tsinghua.edu.cn/simple"}

    @pytest.mark.asyncio
    async def test_connect_and_cleanup(self, sleeps):
        session = FakeSession()
        opener = ScriptedOpener([session])
        statuses = []
        manager = ConnectionManager(pipe_config(), session_opener=opener, on_status_change=statuses.append)

        await manager.connect()

        assert manager.is_connected
        assert manager.session is session
        assert manager.attempts == 1

        await manager.cleanup()

        assert not manager.is_connected
        assert manager.session is None
        assert opener.closed == 1
        assert statuses == [
            ConnectionStatus.CONNECTING,
            ConnectionStatus.CONNECTED,
            ConnectionStatus.UNCONNECTED,
        ]

    @pytest.mark.asyncio
    async def test_cleanup_twice_is_harmless(self, sleeps):
        opener = ScriptedOpener([FakeSession()])
        manager = ConnectionManager(pipe_config(), session_opener=opener)
        await manager.connect()

        await manager.cleanup()
        await manager.cleanup()

        assert opener.closed == 1

    @pytest.mark.asyncio
    async def test_reconnect_replaces_connection(self, sleeps):
        first, second = FakeSession(), FakeSession()
        opener = ScriptedOpener([first, second])
        manager = ConnectionManager(pipe_config(), session_opener=opener)

        await manager.connect()
        await manager.connect()

        assert manager.session is second
        assert opener.closed == 1

    @pytest.mark.asyncio
    async def test_context_manager(self, sleeps):
        opener = ScriptedOpener([FakeSession()])

        async with ConnectionManager(pipe_config(), session_opener=opener) as manager:
            assert manager.is_connected

        assert opener.closed == 1
        assert manager.status == ConnectionStatus.UNCONNECTED

    @pytest.mark.asyncio
    async def test_failed_connect_leaves_manager_unusable(self, sleeps):
        error = ConnectionRefusedError("nope")
        opener = ScriptedOpener([error, error, error])
        manager = ConnectionManager(pipe_config(), session_opener=opener)

        with pytest.raises(ConnectionRefusedError):
            await manager.connect()

        assert manager.status == ConnectionStatus.FAILED
        assert manager.error_message == "nope"
        with pytest.raises(NotConnectedError):
            await manager.list_resources()

    @pytest.mark.asyncio
    async def test_unsupported_transport(self, sleeps):
        manager = ConnectionManager(
            ClientConfig(transport_kind="carrier-pigeon"), session_opener=ScriptedOpener([])
        )

        with pytest.raises(ConfigError) as exc_info:
            await manager.connect()

        assert exc_info.value.reason == "unsupported transport"
        assert manager.status == ConnectionStatus.FAILED


class TestUnsupportedPlatform:
    """Runner launches need a shell; everything else connects without one."""

    @pytest.fixture(autouse=True)
    def _shell_less_platform(self, monkeypatch):
        monkeypatch.setattr("mcp_shim.rewrite.detect_shell", lambda: resolve_shell("wasi", "posix"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("runner", ["npx", "uvx"])
    async def test_runner_launch_fails_without_attempts(self, runner, sleeps):
        opener = ScriptedOpener([FakeSession()])
        manager = ConnectionManager(pipe_config(command=runner, args=["pkg"]), session_opener=opener)

        with pytest.raises(ConfigError) as exc_info:
            await manager.connect()

        assert exc_info.value.reason == "unsupported platform"
        assert opener.handles == []
        assert manager.attempts == 0
        assert sleeps == []
        assert manager.status == ConnectionStatus.FAILED

    @pytest.mark.asyncio
    async def test_plain_command_still_connects(self, sleeps):
        session = FakeSession()
        config = pipe_config(command="node", args=["server.js"])
        manager = ConnectionManager(config, session_opener=ScriptedOpener([session]))

        await manager.connect()

        assert manager.session is session
        assert manager.effective_config.server_params.command == "node"

    @pytest.mark.asyncio
    async def test_stream_still_connects(self, sleeps):
        session = FakeSession()
        config = ClientConfig(transport_kind="stream", server_params=ServerParams(url="https://example.com/sse"))
        manager = ConnectionManager(config, session_opener=ScriptedOpener([session]))

        await manager.connect()

        assert manager.is_connected
        assert manager.session is session

    @pytest.mark.asyncio
    async def test_disabled_mirrors_skip_the_shell(self, sleeps):
        config = pipe_config(command="npx", args=["pkg"])
        config = config.model_copy(update={"mirrors": config.mirrors.model_copy(update={"enabled": False})})
        manager = ConnectionManager(config, session_opener=ScriptedOpener([FakeSession()]))

        await manager.connect()

        assert manager.effective_config.server_params.command == "npx"
