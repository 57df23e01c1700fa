"""Full-document resync on server request.

The server may lose or distrust its incremental view of a document and ask
for ``julia/getFullText``; the client answers with the buffer contents as a
``julia/reloadText`` notification shaped like ``didOpen``.
"""

from __future__ import annotations

from typing import Any, Awaitable, Dict, Optional, Protocol

from ..host.documents import DocumentStore
from ..util.log import Log

log = Log.create({"service": "lsp.fulltext"})

GET_FULL_TEXT = "julia/getFullText"
RELOAD_TEXT = "julia/reloadText"
RELOAD_VERSION = 1
LANGUAGE_ID = "julia"


class NotificationSender(Protocol):
    def send_notification(self, method: str, params: Any) -> Awaitable[None]: ...


class FullTextBridge:
    """Answers full-text requests from the open-document registry."""

    def __init__(self, client: NotificationSender, documents: DocumentStore):
        self.client = client
        self.documents = documents

    def reload_params(self, uri: str) -> Optional[Dict[str, Any]]:
        document = self.documents.get(uri)
        if document is None:
            return None
        return {
            "textDocument": {
                "uri": uri,
                "languageId": LANGUAGE_ID,
                "version": RELOAD_VERSION,
                "text": document.get_text(),
            },
        }

    async def handle(self, uri: Any) -> None:
        if not isinstance(uri, str):
            log.warn("full text requested without a uri", {"params": uri})
            return

        params = self.reload_params(uri)
        if params is None:
            log.warn("full text requested for unknown document", {"uri": uri})
            return

        log.debug("sending full text", {"uri": uri})
        await self.client.send_notification(RELOAD_TEXT, params)
