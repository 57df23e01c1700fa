"""CLI entry point for julials.

Runs the Julia language server supervisor from a terminal: the terminal
stands in for the editor host, answering prompts and showing the install
and compile commands as they run.
"""

import asyncio
import json
import os
from typing import List, Optional

import typer
from rich.console import Console

from .. import __version__
from ..lsp.errors import JuliaLSError
from ..util.error import format_error

app = typer.Typer(
    name="julials",
    help="julials - Julia language server supervisor",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        console.print(f"julials {__version__}")
        raise typer.Exit()


def _extension_path(value: Optional[str]) -> str:
    return os.path.abspath(value or os.getcwd())


def _storage_path(value: Optional[str]) -> str:
    from ..core.global_paths import GlobalPath

    return os.path.abspath(value or GlobalPath.storage())


def _fail(error: BaseException) -> None:
    err_console.print(f"[red]Error:[/red] {format_error(error)}", highlight=False)
    raise typer.Exit(1)


ExtensionPathOption = typer.Option(
    None,
    "--extension-path",
    "-e",
    envvar="JULIALS_EXTENSION_PATH",
    help="Directory containing the bundled server/ folder",
)
StoragePathOption = typer.Option(
    None,
    "--storage-path",
    "-s",
    envvar="JULIALS_STORAGE_PATH",
    help="Writable storage for the compiled server",
)
YesOption = typer.Option(
    False,
    "--yes",
    "-y",
    help="Answer yes to prompts",
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Minimum log level (DEBUG, INFO, WARN, ERROR)",
    ),
    print_logs: bool = typer.Option(
        False,
        "--print-logs",
        help="Also write logs to stderr",
    ),
):
    """julials - Julia language server supervisor."""
    from ..core.config import ConfigError
    from ..runtime.logging import bootstrap_logging

    mode = "start" if ctx.invoked_subcommand == "start" else "cli"
    try:
        bootstrap_logging(mode=mode, level=log_level, console=True if print_logs else None)
    except ConfigError as e:
        _fail(e)


@app.command()
def start(
    extension_path: Optional[str] = ExtensionPathOption,
    storage_path: Optional[str] = StoragePathOption,
    open_files: Optional[List[str]] = typer.Option(
        None,
        "--open",
        "-o",
        help="Julia file(s) to open once the server is ready",
    ),
    yes: bool = YesOption,
):
    """Start the language server and keep it running."""
    from .cmd.start import start_command

    try:
        code = asyncio.run(start_command(
            _extension_path(extension_path),
            _storage_path(storage_path),
            console=console,
            open_files=open_files,
            assume_yes=yes,
        ))
    except JuliaLSError as e:
        _fail(e)
    except KeyboardInterrupt:
        console.print("[dim]stopped[/dim]")
        return

    if code:
        raise typer.Exit(code)


@app.command()
def compile(
    extension_path: Optional[str] = ExtensionPathOption,
    storage_path: Optional[str] = StoragePathOption,
):
    """Compile the server with PackageCompiler.jl."""
    from .cmd.start import compile_command

    asyncio.run(compile_command(
        _extension_path(extension_path),
        _storage_path(storage_path),
        console=console,
    ))


@app.command()
def deps(
    extension_path: Optional[str] = ExtensionPathOption,
    storage_path: Optional[str] = StoragePathOption,
    yes: bool = YesOption,
):
    """Show the server's package status and offer to install missing ones."""
    from .cmd.deps import deps_command

    try:
        asyncio.run(deps_command(
            _extension_path(extension_path),
            _storage_path(storage_path),
            console=console,
            assume_yes=yes,
        ))
    except JuliaLSError as e:
        _fail(e)


@app.command()
def plan(
    extension_path: Optional[str] = ExtensionPathOption,
    storage_path: Optional[str] = StoragePathOption,
    yes: bool = YesOption,
):
    """Print the command the server would be started with."""
    from .cmd.deps import plan_command

    try:
        asyncio.run(plan_command(
            _extension_path(extension_path),
            _storage_path(storage_path),
            console=console,
            assume_yes=yes,
        ))
    except JuliaLSError as e:
        _fail(e)


@app.command()
def config(
    show: bool = typer.Option(
        False,
        "--show",
        help="Show current configuration",
    ),
    path: bool = typer.Option(
        False,
        "--path",
        help="Show configuration directory",
    ),
):
    """Inspect configuration."""
    from ..core.config import ConfigError, ConfigManager
    from ..core.global_paths import GlobalPath

    if path:
        console.print(GlobalPath.config(), highlight=False, soft_wrap=True)
        return

    if show:
        async def show_config():
            config = await ConfigManager.get()
            console.print_json(json.dumps(config.model_dump(by_alias=True, exclude_none=True), default=str))

        try:
            asyncio.run(show_config())
        except ConfigError as e:
            _fail(e)
        return

    console.print("Use --show to display configuration or --path to show the config directory")


if __name__ == "__main__":
    app()
