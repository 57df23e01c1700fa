"""Launch planning for the Julia language server.

Two mutually-exclusive modes:

* precompiled: ``<storage>/JuliaLS/bin/JuliaLS`` exists and is run as-is;
* interpreter fallback: julia runs the bundled ``server/main.jl`` after the
  server project's dependencies are checked and the target environment is
  resolved.

The third strategy, compiling the server, is started by the user through
:class:`ServerCompiler` and produces the precompiled binary for next time.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from ..host.ui import HostUI
from ..util.log import Log
from .errors import ConfigurationError
from .packages import DependencyInstaller, TERMINAL_LABEL
from .resolver import QUIET_FLAGS, BinaryResolver, EnvironmentResolver
from .server import bin_name

log = Log.create({"service": "lsp.launch"})

SERVER_NAME = "JuliaLS"
DEPOT_PATH_VAR = "JULIA_DEPOT_PATH"
COMPILE_NOTICE = "PackageCompiler.jl will take about 10 mins to compile..."


@dataclass(frozen=True)
class ServerLayout:
    """Well-known paths under the extension root and its storage."""
    extension_path: str
    storage_path: str

    @property
    def server_dir(self) -> str:
        return os.path.join(self.extension_path, "server")

    @property
    def server_project(self) -> str:
        return os.path.join(self.server_dir, SERVER_NAME)

    @property
    def entry_script(self) -> str:
        return os.path.join(self.server_dir, "main.jl")

    @property
    def server_root(self) -> str:
        """Output directory of the compile script."""
        return os.path.join(self.storage_path, SERVER_NAME)

    @property
    def precompiled_binary(self) -> str:
        return os.path.join(self.server_root, "bin", bin_name(SERVER_NAME))

    def ensure(self) -> "ServerLayout":
        """Create the storage and compile-output directories."""
        Path(self.server_root).mkdir(parents=True, exist_ok=True)
        return self


@dataclass(frozen=True)
class LaunchSpec:
    """Command line for one activation attempt."""
    command: str
    args: Tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def precompiled(self) -> bool:
        return not self.args


class LaunchPlanner:
    """Builds the LaunchSpec, preferring a precompiled server."""

    def __init__(
        self,
        binary: BinaryResolver,
        installer: DependencyInstaller,
        environment: EnvironmentResolver,
    ):
        self.binary = binary
        self.installer = installer
        self.environment = environment

    async def plan(self, storage_dir: str, extension_root: str) -> LaunchSpec:
        """Plan the server command line.

        Raises:
            ConfigurationError: no precompiled server and no julia executable
            CommandError: the dependency or environment query failed
        """
        layout = ServerLayout(extension_root, storage_dir)
        binary = existing_binary(layout)
        if binary:
            log.info("using precompiled server", {"path": binary})
            return LaunchSpec(binary)

        julia = self.binary.resolve()
        if not julia:
            raise ConfigurationError(
                "Could not find a julia executable. Set julia.executablePath or add julia to PATH."
            )

        await self.installer.check_and_offer_install(julia, layout.server_project)
        env_path = await self.environment.resolve_project_path(julia)

        args = [
            *QUIET_FLAGS,
            "--depwarn=no",
            f"--project={layout.server_project}",
            layout.entry_script,
            env_path,
            "--debug=no",
            os.environ.get(DEPOT_PATH_VAR, ""),
            storage_dir,
        ]
        log.info("using interpreter fallback", {"julia": julia, "environment": env_path})
        return LaunchSpec(julia, tuple(args))


class ServerCompiler:
    """Runs the bundled compile script that produces the precompiled server."""

    def __init__(self, layout: ServerLayout, ui: HostUI):
        self.layout = layout
        self.ui = ui

    def command(self) -> str:
        server_dir = shlex.quote(self.layout.server_dir)
        return f"cd {server_dir} && sh ./compile.sh {shlex.quote(self.layout.server_root)}"

    async def compile(self) -> None:
        """Start compiling in a visible terminal; does not wait for it."""
        self.ui.show_message(COMPILE_NOTICE)
        log.info("compiling server", {"output": self.layout.server_root})
        await self.ui.run_visible(self.command(), TERMINAL_LABEL)


def existing_binary(layout: ServerLayout) -> Optional[str]:
    path = layout.precompiled_binary
    return path if os.path.exists(path) else None
