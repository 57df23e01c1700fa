"""Host UI contract and a console implementation.

The supervisor only needs three things from an editor host: a yes/no
prompt, a way to run a shell command where the user can watch it, and a
one-line message. ``ConsoleUI`` provides them on a terminal with rich.
"""

from __future__ import annotations

import asyncio
from typing import Literal, Protocol, Set

from rich.console import Console
from rich.prompt import Confirm

from ..util.log import Log

log = Log.create({"service": "host.ui"})

MessageLevel = Literal["info", "warning", "error"]


class HostUI(Protocol):
    """Capabilities the host exposes to the supervisor."""

    async def confirm(self, message: str) -> bool: ...

    async def run_visible(self, command: str, label: str) -> None:
        """Start ``command`` in a visible terminal and return without waiting.

        At-most-once, result unobserved: callers never learn whether the
        command succeeded.
        """
        ...

    def show_message(self, message: str, level: MessageLevel = "info") -> None: ...


_STYLES = {"info": "cyan", "warning": "yellow", "error": "red"}


class ConsoleUI:
    """HostUI backed by the controlling terminal."""

    def __init__(self, console: Console | None = None, assume_yes: bool = False):
        self.console = console or Console(stderr=True)
        self.assume_yes = assume_yes
        self._terminals: Set[asyncio.Task[int]] = set()

    async def confirm(self, message: str) -> bool:
        if self.assume_yes:
            self.console.print(f"{message} [dim](yes)[/dim]")
            return True
        return await asyncio.to_thread(Confirm.ask, message, console=self.console)

    async def run_visible(self, command: str, label: str) -> None:
        self.console.rule(f"[bold]{label}[/bold]")
        self.console.print(f"[dim]$ {command}[/dim]")
        log.info("running visible command", {"label": label, "command": command})

        process = await asyncio.create_subprocess_shell(command)
        task = asyncio.create_task(self._watch(process, label))
        self._terminals.add(task)
        task.add_done_callback(self._terminals.discard)

    async def _watch(self, process: asyncio.subprocess.Process, label: str) -> int:
        code = await process.wait()
        log.info("visible command finished", {"label": label, "code": code})
        return code

    async def wait_terminals(self) -> None:
        """Wait for every command started by ``run_visible``."""
        if self._terminals:
            await asyncio.gather(*self._terminals, return_exceptions=True)

    def show_message(self, message: str, level: MessageLevel = "info") -> None:
        style = _STYLES.get(level, "cyan")
        self.console.print(f"[{style}]{message}[/{style}]")
