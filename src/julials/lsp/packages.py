"""Missing-dependency detection for the bundled server project.

``Pkg.status()`` prints one package per line. A leading ``→`` marks a
package that is declared but not installed.
"""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List

from ..host.ui import HostUI
from ..util.log import Log
from .resolver import julia_command
from .server import run_command

log = Log.create({"service": "lsp.packages"})

NEEDS_INSTALL_MARKER = "→"
STATUS_SNIPPET = "using Pkg; Pkg.status()"
INSTANTIATE_SNIPPET = "using Pkg; Pkg.instantiate()"
TERMINAL_LABEL = "julials"
INSTALL_PROMPT = "Some LanguageServer.jl deps are missing, would you like to install now?"


class PackageState(str, Enum):
    UNCHANGED = "unchanged"
    NEEDS_INSTALL = "needs-install"
    OTHER = "other"


@dataclass(frozen=True)
class PackageRecord:
    state: str
    hash: str
    name: str
    version: str
    repo: str = ""

    @property
    def status(self) -> PackageState:
        if self.state == NEEDS_INSTALL_MARKER:
            return PackageState.NEEDS_INSTALL
        if self.state == "":
            return PackageState.UNCHANGED
        return PackageState.OTHER


def parse_package_status(lines: Iterable[str]) -> List[PackageRecord]:
    """Parse status lines, keeping only those with exactly 4 or 5 space-separated fields."""
    records: List[PackageRecord] = []
    for line in lines:
        parts = line.rstrip("\r\n").split(" ")
        if len(parts) not in (4, 5):
            continue
        records.append(PackageRecord(*parts))
    return records


class DependencyInstaller:
    """Offers to instantiate the server project when packages are missing."""

    def __init__(self, ui: HostUI):
        self.ui = ui

    async def status(self, julia: str, project_dir: str) -> List[PackageRecord]:
        """Query and parse ``Pkg.status()`` for ``project_dir``.

        Raises:
            CommandError: julia failed to run the query
        """
        stdout = await run_command(julia_command(julia, project_dir, STATUS_SNIPPET))
        return parse_package_status(stdout.split("\n"))

    def install_command(self, julia: str, project_dir: str) -> str:
        return shlex.join(julia_command(julia, project_dir, INSTANTIATE_SNIPPET))

    async def check_and_offer_install(self, julia: str, project_dir: str) -> None:
        records = await self.status(julia, project_dir)
        missing = [r.name for r in records if r.status is PackageState.NEEDS_INSTALL]
        if not missing:
            log.info("server dependencies satisfied", {"count": len(records)})
            return

        log.info("server dependencies missing", {"packages": missing})
        if not await self.ui.confirm(INSTALL_PROMPT):
            log.info("dependency install declined")
            return

        await self.ui.run_visible(self.install_command(julia, project_dir), TERMINAL_LABEL)
