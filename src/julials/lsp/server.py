"""Process helpers for the Julia language server.

Locating executables, running captured one-shot commands and spawning the
long-lived server process with piped stdio.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
from typing import Dict, List, Mapping, Optional, Sequence

from ..util.log import Log
from .errors import CommandError, ServerStartError

log = Log.create({"service": "lsp.server"})


class ServerHandle:
    """Handle to a running server process."""

    def __init__(self, process: subprocess.Popen, command: Sequence[str]):
        self.process = process
        self.command = list(command)

    @property
    def pid(self) -> int:
        return self.process.pid

    def running(self) -> bool:
        return self.process.poll() is None


def is_windows() -> bool:
    return os.name == "nt"


def bin_name(name: str) -> str:
    """Platform-appropriate executable file name."""
    if is_windows() and not name.endswith(".exe"):
        return f"{name}.exe"
    return name


def which(cmd: str) -> Optional[str]:
    """Search PATH for ``cmd``; a miss returns None."""
    return shutil.which(cmd, path=os.environ.get("PATH", ""))


def subprocess_env(extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """The inherited environment with ``extra`` layered on top."""
    return {**os.environ, **(extra or {})}


async def run_command(
    cmd: List[str],
    cwd: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Run a command to completion and return its stdout.

    Raises:
        CommandError: the command could not be launched or exited non-zero
    """
    def run() -> subprocess.CompletedProcess[str]:
        return subprocess.run(
            cmd,
            cwd=cwd,
            env=subprocess_env(env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
            encoding="utf-8",
            errors="replace",
        )

    log.debug("running command", {"cmd": cmd, "cwd": cwd})
    try:
        completed = await asyncio.to_thread(run)
    except OSError as e:
        log.error("failed to launch command", {"cmd": cmd, "error": str(e)})
        raise CommandError(cmd, None, str(e)) from e

    if completed.returncode != 0:
        log.error("command failed", {"cmd": cmd, "code": completed.returncode})
        raise CommandError(cmd, completed.returncode, completed.stderr or "")
    return completed.stdout or ""


def spawn_server(
    cmd: List[str],
    env: Mapping[str, str],
    cwd: Optional[str] = None,
) -> ServerHandle:
    """Spawn the server with stdin/stdout/stderr piped.

    ``env`` is the complete environment of the child, not an overlay.

    Raises:
        ServerStartError: the executable could not be started
    """
    try:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            cwd=cwd,
            env=dict(env),
        )
    except OSError as error:
        log.error("failed to spawn language server", {"cmd": cmd, "error": str(error)})
        raise ServerStartError(f"failed to start {cmd[0]}: {error}") from error

    log.info("spawned language server", {"cmd": cmd[0], "pid": process.pid})
    return ServerHandle(process, cmd)
