"""Inspection commands: server dependencies and the planned launch."""

from __future__ import annotations

import shlex

from rich.console import Console
from rich.table import Table

from ...core.config import ConfigManager
from ...host.ui import ConsoleUI
from ...lsp.errors import ConfigurationError
from ...lsp.launch import ServerLayout
from ...lsp.packages import DependencyInstaller, PackageState
from ...lsp.resolver import BinaryResolver
from .start import build_supervisor

_STATE_STYLES = {
    PackageState.UNCHANGED: "green",
    PackageState.NEEDS_INSTALL: "red",
    PackageState.OTHER: "yellow",
}


async def deps_command(
    extension_path: str,
    storage_path: str,
    *,
    console: Console,
    assume_yes: bool = False,
) -> None:
    """Print the server project's package status and offer to install.

    Raises:
        ConfigurationError: no julia executable
        CommandError: the status query failed
    """
    config = await ConfigManager.get()
    julia = BinaryResolver(config.julia).resolve()
    if not julia:
        raise ConfigurationError(
            "Could not find a julia executable. Set julia.executablePath or add julia to PATH."
        )

    ui = ConsoleUI(console=console, assume_yes=assume_yes)
    installer = DependencyInstaller(ui)
    project = ServerLayout(extension_path, storage_path).server_project
    records = await installer.status(julia, project)

    table = Table(title=f"Packages in {project}")
    table.add_column("State")
    table.add_column("Name", style="cyan")
    table.add_column("Version")
    table.add_column("Hash", style="dim")
    for record in records:
        style = _STATE_STYLES[record.status]
        table.add_row(f"[{style}]{record.status.value}[/{style}]", record.name, record.version, record.hash)
    console.print(table)

    await installer.check_and_offer_install(julia, project)
    await ui.wait_terminals()


async def plan_command(
    extension_path: str,
    storage_path: str,
    *,
    console: Console,
    assume_yes: bool = False,
) -> str:
    """Resolve and print the server command line without starting it."""
    ui = ConsoleUI(console=console, assume_yes=assume_yes)
    supervisor = await build_supervisor(extension_path, storage_path, ui=ui)
    spec = await supervisor.plan()
    mode = "precompiled" if spec.precompiled else "interpreter"
    line = shlex.join(spec.argv)
    console.print(f"[bold]{mode}[/bold]")
    console.print(line, markup=False, highlight=False, soft_wrap=True)
    await ui.wait_terminals()
    return line
