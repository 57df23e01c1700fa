"""julials - supervisor and protocol adapter for the Julia language server.

Resolves a runnable LanguageServer.jl (precompiled binary or interpreter
fallback), spawns it, and rewrites its traffic for an editor host.
"""

__version__ = "0.1.0"


def __getattr__(name: str):
    """Lazy import module components."""
    if name == "GlobalPath":
        from .core.global_paths import GlobalPath
        return GlobalPath
    if name in ("Config", "ConfigManager"):
        from .core import config
        return getattr(config, name)
    if name == "Log":
        from .util.log import Log
        return Log
    if name in ("ServerSupervisor", "LanguageClient", "CompletionMiddleware", "FullTextBridge"):
        from . import lsp
        return getattr(lsp, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "GlobalPath",
    "Config",
    "ConfigManager",
    "Log",
    "ServerSupervisor",
    "LanguageClient",
    "CompletionMiddleware",
    "FullTextBridge",
]
