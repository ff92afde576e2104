"""Typer-based CLI for the connection shim."""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

import typer
from dotenv import find_dotenv, load_dotenv
from mcp import types

from mcp_shim.client import ConnectionManager
from mcp_shim.config import (
    ClientConfig,
    ServerParams,
    TransportKind,
    load_client_config,
)
from mcp_shim.errors import ConfigError
from mcp_shim.logger import get_logger, setup_logger
from mcp_shim.shell import ShellKind

logger = get_logger("cli")
app = typer.Typer(help="Connect to an MCP server through the mirror-aware connection shim.")

CommandHandler = Callable[[ConnectionManager, str], Awaitable[None]]

_SHELL_CHOICES = {"windows": ShellKind.WINDOWS, "posix": ShellKind.POSIX}


@dataclass
class CliState:
    """Options shared by every command."""

    config: Optional[ClientConfig] = None
    shell: Optional[ShellKind] = None


def _parse_env(pairs: List[str]) -> dict[str, str]:
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got {pair!r}", param_hint="--env")
        env[key] = value
    return env


def _build_config(
    config_path: Optional[str],
    transport: Optional[str],
    command: Optional[str],
    args: List[str],
    env: List[str],
    cwd: Optional[str],
    url: Optional[str],
    no_mirrors: bool,
) -> ClientConfig:
    if config_path:
        config = load_client_config(config_path)
    else:
        kind = transport or (TransportKind.STREAM.value if url else TransportKind.PIPE.value)
        config = ClientConfig(
            transport_kind=kind,
            server_params=ServerParams(
                command=command,
                args=list(args),
                env=_parse_env(env),
                cwd=cwd,
                url=url,
            ),
        )

    if no_mirrors:
        mirrors = config.mirrors.model_copy(update={"enabled": False})
        config = config.model_copy(update={"mirrors": mirrors})
    return config


def _state(ctx: typer.Context) -> CliState:
    state = ctx.ensure_object(CliState)
    if state.config is None:
        typer.echo("Error: no server configured. Use --config, --command or --url.", err=True)
        raise typer.Exit(code=1)
    return state


def _run(state: CliState, action: Callable[[ConnectionManager], Awaitable[None]]) -> None:
    assert state.config is not None

    async def runner() -> None:
        manager = ConnectionManager(state.config, shell=state.shell)
        try:
            await manager.connect()
            await action(manager)
        finally:
            await manager.cleanup()

    try:
        asyncio.run(runner())
    except Exception as exc:
        typer.echo(f"Error: {exc}", err=True)
        logger.exception("Command failed")
        raise typer.Exit(code=1) from exc


def _render_tool_result(result: types.CallToolResult) -> None:
    if result.isError:
        typer.echo("Tool reported an error:")
    if not getattr(result, "content", None):
        typer.echo(result)
        return

    for content in result.content:
        if content.type == "text":
            typer.echo(content.text)
        else:
            typer.echo(repr(content))


def _render_contents(contents: list) -> None:
    for item in contents:
        text = getattr(item, "text", None)
        if text is not None:
            typer.echo(text)
        else:
            typer.echo(f"<{item.mimeType or 'binary'} blob, {len(item.blob)} base64 chars>")


async def _handle_tools(manager: ConnectionManager, _: str) -> None:
    tools = await manager.list_tools()
    if not tools:
        typer.echo("No tools available.")
        return
    typer.echo("Available tools:")
    for tool in tools:
        description = (tool.description or "").strip().splitlines()
        typer.echo(f"  - {tool.name}" + (f": {description[0]}" if description else ""))


async def _handle_call(manager: ConnectionManager, payload: str) -> None:
    parts = payload.split(maxsplit=1)
    tool_name = parts[0] if parts else ""
    if not tool_name:
        typer.echo("Please specify a tool name.")
        return

    arguments: Optional[dict[str, object]] = None
    if len(parts) > 1:
        try:
            arguments = json.loads(parts[1])
        except json.JSONDecodeError:
            typer.echo("Invalid JSON arguments.")
            return
        if not isinstance(arguments, dict):
            typer.echo("Tool arguments must be a JSON object.")
            return

    result = await manager.call_tool(tool_name, arguments)
    _render_tool_result(result)


async def _handle_resources(manager: ConnectionManager, _: str) -> None:
    resources = await manager.list_resources()
    if not resources:
        typer.echo("No resources available.")
        return
    typer.echo("Available resources:")
    for resource in resources:
        typer.echo(f"  - {resource.uri} ({resource.name})")


async def _handle_read(manager: ConnectionManager, payload: str) -> None:
    uri = payload.strip()
    if not uri:
        typer.echo("Please specify a resource URI.")
        return
    _render_contents(await manager.read_resource(uri))


COMMANDS: Dict[str, CommandHandler] = {
    "tools": _handle_tools,
    "call": _handle_call,
    "resources": _handle_resources,
    "read": _handle_read,
}


def _sanitize_command(text: str) -> str:
    """Normalize command text by removing carriage returns and trimming whitespace."""
    return text.replace("\r", "").strip()


def _read_command(prompt: str) -> str:
    typer.echo(prompt, nl=False)
    sys.stdout.flush()

    line = sys.stdin.readline()
    if line == "":
        raise EOFError
    return _sanitize_command(line)


async def _dispatch_command(manager: ConnectionManager, command: str) -> bool:
    command = _sanitize_command(command)

    if not command:
        return True

    if command == "quit":
        return False

    parts = command.split(maxsplit=1)
    handler = COMMANDS.get(parts[0])
    if handler is None:
        typer.echo("Unknown command. Try 'tools', 'call <tool>', 'resources', 'read <uri>' or 'quit'.")
        return True

    payload = _sanitize_command(parts[1]) if len(parts) > 1 else ""
    try:
        await handler(manager, payload)
    except Exception as exc:
        # Report and keep the session open.
        typer.echo(f"Error: {exc}")
        logger.error(f"Interactive command '{parts[0]}' failed: {exc!r}")
    return True


async def _interactive_loop(manager: ConnectionManager) -> None:
    typer.echo("")
    typer.echo("Interactive MCP shim")
    typer.echo("Commands:")
    typer.echo("  tools                   List available tools")
    typer.echo("  call <tool> [json]      Call a tool with optional JSON args")
    typer.echo("  resources               List resources")
    typer.echo("  read <uri>              Read a resource by URI")
    typer.echo("  quit                    Exit")
    typer.echo("")

    while True:
        try:
            command = _read_command("mcp> ")
        except (KeyboardInterrupt, EOFError):
            typer.echo("\nGoodbye!")
            break

        if not await _dispatch_command(manager, command):
            break


@app.callback()
def configure(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="MCP_SHIM_CONFIG",
        help="JSON file with transportKind and serverParams",
    ),
    transport: Optional[str] = typer.Option(
        None, "--transport", "-t", help="pipe or stream (inferred from --url/--command)"
    ),
    command: Optional[str] = typer.Option(None, "--command", help="Server launch command (pipe)"),
    args: List[str] = typer.Option([], "--arg", help="Launch argument, repeatable (use --arg=-y for dashes)"),
    env: List[str] = typer.Option([], "--env", help="KEY=VALUE environment entry, repeatable"),
    cwd: Optional[str] = typer.Option(None, "--cwd", help="Working directory of the server process"),
    url: Optional[str] = typer.Option(None, "--url", help="Server URL (stream)"),
    no_mirrors: bool = typer.Option(False, "--no-mirrors", help="Do not rewrite npx/uvx launches"),
    shell: Optional[str] = typer.Option(
        None, "--shell", help="Force the shell dialect used for rewrites: windows or posix"
    ),
    log_level: str = typer.Option(
        "WARNING", "--log-level", envvar="MCP_SHIM_LOG_LEVEL", help="Logging level"
    ),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also log to this rotating file"),
) -> None:
    """Resolve the server configuration shared by all commands."""
    setup_logger(log_file=log_file, log_level=log_level.upper())

    state = ctx.ensure_object(CliState)
    if shell is not None:
        if shell.lower() not in _SHELL_CHOICES:
            raise typer.BadParameter("expected 'windows' or 'posix'", param_hint="--shell")
        state.shell = _SHELL_CHOICES[shell.lower()]

    if not (config_path or command or url):
        return

    try:
        state.config = _build_config(config_path, transport, command, args, env, cwd, url, no_mirrors)
    except (ConfigError, FileNotFoundError, json.JSONDecodeError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


@app.command()
def rewrite(ctx: typer.Context) -> None:
    """Print the server parameters a connection would use, without connecting."""
    state = _state(ctx)
    assert state.config is not None
    manager = ConnectionManager(state.config, shell=state.shell)
    try:
        params = manager.effective_server_params
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    typer.echo(json.dumps(params.model_dump(exclude_none=True), indent=2))


@app.command()
def tools(ctx: typer.Context) -> None:
    """List the tools exposed by the server."""
    _run(_state(ctx), lambda manager: _handle_tools(manager, ""))


@app.command()
def call(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Tool name"),
    arguments: Optional[str] = typer.Argument(None, help="JSON object of tool arguments"),
) -> None:
    """Call a tool once and print its result."""
    state = _state(ctx)
    tool_args: Optional[dict[str, object]] = None
    if arguments is not None:
        try:
            tool_args = json.loads(arguments)
        except json.JSONDecodeError as exc:
            raise typer.BadParameter(f"invalid JSON: {exc}", param_hint="ARGUMENTS") from exc
        if not isinstance(tool_args, dict):
            raise typer.BadParameter("expected a JSON object", param_hint="ARGUMENTS")

    async def action(manager: ConnectionManager) -> None:
        _render_tool_result(await manager.call_tool(name, tool_args))

    _run(state, action)


@app.command()
def resources(ctx: typer.Context) -> None:
    """List the resources exposed by the server."""
    _run(_state(ctx), lambda manager: _handle_resources(manager, ""))


@app.command()
def read(ctx: typer.Context, uri: str = typer.Argument(..., help="Resource URI")) -> None:
    """Read a resource and print its contents."""
    _run(_state(ctx), lambda manager: _handle_read(manager, uri))


@app.command("shell")
def interactive(ctx: typer.Context) -> None:
    """Connect and start an interactive session."""
    _run(_state(ctx), _interactive_loop)


def main() -> None:
    """Console script entry point."""
    # .env is looked up from the working directory, not from the installed package.
    load_dotenv(find_dotenv(usecwd=True))
    app()


if __name__ == "__main__":
    main()
