"""Locating the Julia interpreter and the environment the server analyzes."""

from __future__ import annotations

import os
from typing import List, Optional

from ..core.config_schema import JuliaConfig
from ..core.global_paths import GlobalPath
from ..util.log import Log
from .server import bin_name, run_command, which

log = Log.create({"service": "lsp.resolver"})

# Flags every non-interactive julia invocation starts with.
QUIET_FLAGS = ["--startup-file=no", "--history-file=no"]

ENV_PATH_SNIPPET = "using Pkg; println(dirname(Pkg.Types.Context().env.project_file))"


def julia_command(julia: str, project: str, snippet: str) -> List[str]:
    """``julia --project=<project> --startup-file=no --history-file=no -e <snippet>``."""
    return [julia, f"--project={project}", *QUIET_FLAGS, "-e", snippet]


class BinaryResolver:
    """Finds the julia executable from configuration or PATH."""

    def __init__(self, config: JuliaConfig):
        self.config = config

    def resolve(self) -> Optional[str]:
        configured = self.config.executable_path
        if configured.startswith("~"):
            configured = GlobalPath.home() + configured[1:]
        if configured and os.path.exists(configured):
            return configured
        if configured:
            log.warn("configured executable not found, searching PATH", {"path": configured})

        found = which(bin_name("julia"))
        if not found:
            log.info("julia not found on PATH")
        return found


class EnvironmentResolver:
    """Determines the Julia project the server should analyze."""

    def __init__(self, config: JuliaConfig, cwd: Optional[str] = None):
        self.config = config
        self.cwd = cwd

    async def resolve_project_path(self, julia: str) -> str:
        """Configured ``environmentPath``, else the active project of the working directory.

        An empty answer from julia is returned as-is.

        Raises:
            CommandError: the julia query failed
        """
        if self.config.environment_path:
            return self.config.environment_path.strip()

        stdout = await run_command(julia_command(julia, ".", ENV_PATH_SNIPPET), cwd=self.cwd)
        env_path = stdout.strip()
        log.info("detected julia environment", {"path": env_path})
        return env_path
