"""Extension context and client registration owned by the host.

The host decides when a registered language client is stopped, restarted
or disposed; the supervisor only hands the client over.
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Protocol

from ..lsp.errors import RegistrationError
from ..util.log import Log

log = Log.create({"service": "host.context"})


class Disposable:
    """Wraps an async teardown callback; disposing twice is a no-op."""

    def __init__(self, callback: Callable[[], Awaitable[None]]):
        self._callback: Optional[Callable[[], Awaitable[None]]] = callback

    @property
    def disposed(self) -> bool:
        return self._callback is None

    async def dispose(self) -> None:
        callback, self._callback = self._callback, None
        if callback is not None:
            await callback()


@dataclass
class ExtensionContext:
    """Paths and subscriptions the host gives the extension.

    Attributes:
        extension_path: Root containing the bundled ``server/`` directory
        storage_path: Writable per-extension storage
        tmpdir: Host-sanitized scratch directory exported to the server
        subscriptions: Disposables torn down with the extension
    """
    extension_path: str
    storage_path: str
    tmpdir: str = field(default_factory=tempfile.gettempdir)
    subscriptions: List[Disposable] = field(default_factory=list)

    async def dispose(self) -> None:
        """Dispose subscriptions in reverse registration order."""
        while self.subscriptions:
            disposable = self.subscriptions.pop()
            try:
                await disposable.dispose()
            except Exception as e:
                log.error("failed to dispose subscription", {"error": str(e)})


class ManagedClient(Protocol):
    id: str

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


class ClientRegistry:
    """Host-side registry of language clients.

    Registering a client starts it; the returned Disposable stops and
    unregisters it.
    """

    def __init__(self) -> None:
        self._clients: Dict[str, ManagedClient] = {}

    async def register(self, client: ManagedClient) -> Disposable:
        if client.id in self._clients:
            raise RegistrationError(f"language client {client.id!r} is already registered")

        self._clients[client.id] = client
        try:
            await client.start()
        except BaseException:
            self._clients.pop(client.id, None)
            raise

        log.info("registered language client", {"client_id": client.id})
        return Disposable(lambda: self._unregister(client.id))

    async def _unregister(self, client_id: str) -> None:
        client = self._clients.pop(client_id, None)
        if client is None:
            return
        await client.stop()
        log.info("unregistered language client", {"client_id": client_id})

    def get(self, client_id: str) -> Optional[ManagedClient]:
        return self._clients.get(client_id)

    def ids(self) -> List[str]:
        return list(self._clients)

    async def stop(self, client_id: str) -> None:
        client = self._clients.get(client_id)
        if client:
            await client.stop()

    async def restart(self, client_id: str) -> None:
        client = self._clients.get(client_id)
        if not client:
            return
        log.info("restarting language client", {"client_id": client_id})
        await client.stop()
        await client.start()

    async def dispose_all(self) -> None:
        for client_id in list(self._clients):
            try:
                await self._unregister(client_id)
            except Exception as e:
                log.error("failed to stop language client", {"client_id": client_id, "error": str(e)})
