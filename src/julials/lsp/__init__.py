"""Julia language server supervision.

Resolves how to run LanguageServer.jl, starts it, and adapts its traffic
for the host.

Example:
    from julials.lsp import ServerSupervisor

    supervisor = ServerSupervisor(context, config.julia, ui, documents, registry)
    client = await supervisor.start()
"""

from .client import ClientOptions, LanguageClient, ServerOptions
from .errors import (
    CommandError,
    ConfigurationError,
    JuliaLSError,
    RegistrationError,
    ResponseError,
    ServerStartError,
)
from .fulltext import FullTextBridge
from .launch import LaunchPlanner, LaunchSpec, ServerCompiler, ServerLayout
from .middleware import CompletionMiddleware, CompletionOption
from .packages import DependencyInstaller, PackageRecord, PackageState, parse_package_status
from .resolver import BinaryResolver, EnvironmentResolver
from .supervisor import ServerSupervisor

__all__ = [
    "BinaryResolver",
    "ClientOptions",
    "CommandError",
    "CompletionMiddleware",
    "CompletionOption",
    "ConfigurationError",
    "DependencyInstaller",
    "EnvironmentResolver",
    "FullTextBridge",
    "JuliaLSError",
    "LanguageClient",
    "LaunchPlanner",
    "LaunchSpec",
    "PackageRecord",
    "PackageState",
    "RegistrationError",
    "ResponseError",
    "ServerCompiler",
    "ServerLayout",
    "ServerOptions",
    "ServerStartError",
    "ServerSupervisor",
    "parse_package_status",
]
