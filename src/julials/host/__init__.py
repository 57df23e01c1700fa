"""Contracts for the editor host the supervisor runs inside."""

from .context import ClientRegistry, Disposable, ExtensionContext
from .documents import DocumentStore, TextDocument, path_to_uri, uri_to_path
from .ui import ConsoleUI, HostUI

__all__ = [
    "ClientRegistry",
    "ConsoleUI",
    "Disposable",
    "DocumentStore",
    "ExtensionContext",
    "HostUI",
    "TextDocument",
    "path_to_uri",
    "uri_to_path",
]
