"""Platform shell selection for wrapped runner commands."""

import os
import sys
from enum import Enum
from functools import lru_cache

from mcp_shim.errors import ConfigError

__all__ = ["ShellKind", "detect_shell", "resolve_shell"]

_SHELL_LESS_PLATFORMS = frozenset({"emscripten", "wasi"})


class ShellKind(Enum):
    """Shell dialect used to launch runner commands."""

    WINDOWS = "cmd"
    POSIX = "bash"

    @property
    def executable(self) -> str:
        return self.value

    @property
    def command_flag(self) -> str:
        return "/c" if self is ShellKind.WINDOWS else "-c"


def resolve_shell(platform: str, os_name: str) -> ShellKind:
    """
    Map a platform identifier to a shell dialect.

    Args:
        platform: Value in the form of ``sys.platform``
        os_name: Value in the form of ``os.name``

    Raises:
        ConfigError: If the platform has neither ``cmd`` nor a POSIX shell
    """
    if platform == "win32":
        return ShellKind.WINDOWS
    if os_name == "posix" and platform not in _SHELL_LESS_PLATFORMS:
        return ShellKind.POSIX
    raise ConfigError(
        "unsupported platform",
        f"no known shell for platform {platform!r}",
        details={"platform": platform, "os_name": os_name},
    )


@lru_cache(maxsize=1)
def detect_shell() -> ShellKind:
    """Resolve the shell dialect of the running interpreter (cached for the process)."""
    return resolve_shell(sys.platform, os.name)
