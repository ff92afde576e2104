"""Rewrite runner launch commands so package downloads go through regional mirrors.

Only two launch commands are recognized:

- ``npx`` gets ``--registry=<mirror>`` and ``NPM_CONFIG_REGISTRY``
- ``uvx`` gets ``UV_DEFAULT_INDEX``

Both are wrapped in the platform shell (``cmd /c`` or ``bash -c``). Any other
command is returned untouched.
"""

import shlex
from typing import Callable, Optional

from mcp_shim.config import MirrorSettings, ServerParams
from mcp_shim.logger import get_logger
from mcp_shim.shell import ShellKind, detect_shell

logger = get_logger("rewrite")

NPX_COMMAND = "npx"
UVX_COMMAND = "uvx"

NPM_REGISTRY_VAR = "NPM_CONFIG_REGISTRY"
UV_INDEX_VAR = "UV_DEFAULT_INDEX"

__all__ = [
    "NPX_COMMAND",
    "UVX_COMMAND",
    "NPM_REGISTRY_VAR",
    "UV_INDEX_VAR",
    "rewrite_server_params",
]


def _wrap_in_shell(
    params: ServerParams,
    runner_argv: list[str],
    env_var: str,
    mirror: str,
    shell: ShellKind,
) -> ServerParams:
    if shell is ShellKind.WINDOWS:
        args = [shell.command_flag, *runner_argv]
    else:
        args = [shell.command_flag, shlex.join(runner_argv)]

    return ServerParams(
        command=shell.executable,
        args=args,
        env={**params.env, env_var: mirror},
        cwd=params.cwd,
        url=params.url,
    )


def _rewrite_npx(params: ServerParams, shell: ShellKind, mirrors: MirrorSettings) -> ServerParams:
    argv = [NPX_COMMAND, f"--registry={mirrors.npm_registry}", *params.args]
    return _wrap_in_shell(params, argv, NPM_REGISTRY_VAR, mirrors.npm_registry, shell)


def _rewrite_uvx(params: ServerParams, shell: ShellKind, mirrors: MirrorSettings) -> ServerParams:
    argv = [UVX_COMMAND, *params.args]
    return _wrap_in_shell(params, argv, UV_INDEX_VAR, mirrors.pypi_index, shell)


_REWRITERS: dict[str, Callable[[ServerParams, ShellKind, MirrorSettings], ServerParams]] = {
    NPX_COMMAND: _rewrite_npx,
    UVX_COMMAND: _rewrite_uvx,
}


def rewrite_server_params(
    params: ServerParams,
    *,
    shell: Optional[ShellKind] = None,
    mirrors: Optional[MirrorSettings] = None,
) -> ServerParams:
    """
    Produce the server parameters actually used to launch a pipe server.

    Args:
        params: Caller supplied parameters (never modified)
        shell: Shell dialect; detected from the running platform when omitted
        mirrors: Mirror endpoints; defaults (with environment overrides) when omitted

    Returns:
        New parameters for ``npx``/``uvx``, otherwise ``params`` itself.

    Raises:
        ConfigError: If a runner must be wrapped on a platform without a known shell
    """
    mirrors = mirrors or MirrorSettings()
    rewriter = _REWRITERS.get(params.command or "")
    if rewriter is None or not mirrors.enabled:
        return params

    rewritten = rewriter(params, shell or detect_shell(), mirrors)
    logger.info(
        f"Rewrote '{params.command}' launch: {rewritten.command} {rewritten.args} "
        f"(env keys: {sorted(rewritten.env)})"
    )
    return rewritten
