"""Open-document registry.

The host owns buffer contents; the supervisor only reads them back when
the server asks for an authoritative copy.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional
from urllib.parse import quote, unquote, urlparse

# File extension -> LSP language identifier for documents julials serves.
LANGUAGE_IDS = {
    ".jl": "julia",
    ".jmd": "juliamarkdown",
}


def path_to_uri(path: str) -> str:
    """Convert a file path to a ``file://`` URI."""
    path = os.path.abspath(path)
    if os.name == "nt":
        path = "/" + path.replace("\\", "/")
    return "file://" + quote(path, safe="/:")


def uri_to_path(uri: str) -> str:
    """Convert a ``file://`` URI back to a local path."""
    path = unquote(urlparse(uri).path)
    if os.name == "nt" and path.startswith("/"):
        path = path[1:]
    return os.path.normpath(path)


@dataclass
class TextDocument:
    uri: str
    language_id: str
    version: int
    text: str

    def get_text(self) -> str:
        return self.text


class DocumentStore:
    """Documents currently open in the host, keyed by URI."""

    def __init__(self) -> None:
        self._documents: Dict[str, TextDocument] = {}

    def open(self, uri: str, text: str, language_id: str = "julia", version: int = 0) -> TextDocument:
        document = TextDocument(uri=uri, language_id=language_id, version=version, text=text)
        self._documents[uri] = document
        return document

    def open_file(self, path: str) -> TextDocument:
        """Open a file from disk, deriving the language from its extension."""
        text = Path(path).read_text(encoding="utf-8")
        language_id = LANGUAGE_IDS.get(Path(path).suffix, "plaintext")
        return self.open(path_to_uri(path), text, language_id=language_id)

    def update(self, uri: str, text: str) -> TextDocument:
        document = self._documents[uri]
        document.text = text
        document.version += 1
        return document

    def close(self, uri: str) -> None:
        self._documents.pop(uri, None)

    def get(self, uri: str) -> Optional[TextDocument]:
        return self._documents.get(uri)

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents

    def __iter__(self) -> Iterator[TextDocument]:
        return iter(list(self._documents.values()))

    def __len__(self) -> int:
        return len(self._documents)
