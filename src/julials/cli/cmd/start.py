"""Session commands: start the server or compile it."""

from __future__ import annotations

import os
from typing import List, Optional

from rich.console import Console

from ...core.config import ConfigManager
from ...host.context import ClientRegistry, ExtensionContext
from ...host.documents import DocumentStore
from ...host.ui import ConsoleUI
from ...lsp.supervisor import ServerSupervisor
from ...util.log import Log

log = Log.create({"service": "cli.start"})


async def build_supervisor(
    extension_path: str,
    storage_path: str,
    *,
    ui: ConsoleUI,
    documents: Optional[DocumentStore] = None,
    registry: Optional[ClientRegistry] = None,
) -> ServerSupervisor:
    """Assemble a supervisor around a console host."""
    config = await ConfigManager.get()
    context = ExtensionContext(extension_path=extension_path, storage_path=storage_path)
    return ServerSupervisor(
        context,
        config.julia,
        ui,
        documents or DocumentStore(),
        registry or ClientRegistry(),
        cwd=os.getcwd(),
    )


async def start_command(
    extension_path: str,
    storage_path: str,
    *,
    console: Console,
    open_files: Optional[List[str]] = None,
    assume_yes: bool = False,
) -> int:
    """Run the server until it exits; returns the process exit code."""
    ui = ConsoleUI(console=console, assume_yes=assume_yes)
    documents = DocumentStore()
    supervisor = await build_supervisor(extension_path, storage_path, ui=ui, documents=documents)

    try:
        client = await supervisor.start()
        if client is None:
            return 1

        for path in open_files or []:
            await client.did_open(documents.open_file(path))

        console.print(f"[green]{client.name} running[/green] [dim](Ctrl-C to stop)[/dim]")
        code = await client.wait_closed()
        log.info("server exited", {"code": code})
        return code or 0
    finally:
        await supervisor.context.dispose()
        await ui.wait_terminals()


async def compile_command(extension_path: str, storage_path: str, *, console: Console) -> None:
    """Compile the server and wait for the compile script to finish."""
    ui = ConsoleUI(console=console)
    supervisor = await build_supervisor(extension_path, storage_path, ui=ui)
    await supervisor.compile_server()
    await ui.wait_terminals()
