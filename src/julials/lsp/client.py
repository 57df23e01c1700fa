"""Language client session for the Julia language server.

Speaks JSON-RPC over the server's stdio, keeps a handler table for
server-initiated notifications, and routes completion requests through the
completion middleware.
"""

from __future__ import annotations

import asyncio
import os
import re
import subprocess
from contextvars import Context, copy_context
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pylsp_jsonrpc.streams import JsonRpcStreamReader, JsonRpcStreamWriter

from ..host.documents import TextDocument, path_to_uri
from ..util.log import Log
from .errors import ResponseError, ServerStartError
from .middleware import CompletionMiddleware, CompletionOption
from .server import ServerHandle, spawn_server

log = Log.create({"service": "lsp.client"})
trace = Log.create({"service": "lsp.trace"})

INITIALIZE_TIMEOUT = 45.0
SHUTDOWN_TIMEOUT = 3.0

# JSON-RPC error code for requests this client does not implement.
METHOD_NOT_FOUND = -32601

# FileChangeType
FILE_CREATED = 1
FILE_CHANGED = 2
FILE_DELETED = 3

NotificationHandler = Callable[[Any], Union[None, Awaitable[None]]]
SettingsLookup = Callable[[str], Any]
SpawnFunction = Callable[[List[str], Mapping[str, str], Optional[str]], ServerHandle]


@dataclass
class ServerOptions:
    """How to start the server process."""
    command: str
    args: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=lambda: dict(os.environ))
    cwd: Optional[str] = None


@dataclass
class ClientOptions:
    """How the client talks to the server.

    Attributes:
        document_selector: Language ids the session serves
        initialization_options: Sent with ``initialize``
        configuration_sections: Dotted sections pushed on start and answered
            on ``workspace/configuration``
        settings: Resolves a dotted section to its value
        file_events: Glob of files whose changes are forwarded
        middleware: Completion rewriting
        root: Workspace root
    """
    document_selector: List[str] = field(default_factory=lambda: ["julia", "juliamarkdown"])
    initialization_options: Dict[str, Any] = field(default_factory=dict)
    configuration_sections: List[str] = field(default_factory=list)
    settings: Optional[SettingsLookup] = None
    file_events: str = "**/*.{jl,jmd}"
    middleware: Optional[CompletionMiddleware] = None
    root: str = field(default_factory=os.getcwd)


def expand_braces(pattern: str) -> List[str]:
    """Expand one level of ``{a,b}`` alternatives in a glob."""
    match = re.search(r"\{([^{}]*)\}", pattern)
    if not match:
        return [pattern]
    head, tail = pattern[:match.start()], pattern[match.end():]
    return [
        expanded
        for option in match.group(1).split(",")
        for expanded in expand_braces(f"{head}{option}{tail}")
    ]


def matches_glob(path: str, pattern: str) -> bool:
    for candidate in expand_braces(pattern):
        if candidate.startswith("**/"):
            candidate = candidate[3:]
        if PurePath(path).match(candidate):
            return True
    return False


class LanguageClient:
    """A single server session: process, transport and handler table."""

    def __init__(
        self,
        client_id: str,
        name: str,
        server_options: ServerOptions,
        client_options: Optional[ClientOptions] = None,
        spawn: SpawnFunction = spawn_server,
    ):
        self.id = client_id
        self.name = name
        self.server_options = server_options
        self.options = client_options or ClientOptions()
        self._spawn = spawn
        self.server: Optional[ServerHandle] = None
        self._handlers: Dict[str, NotificationHandler] = {}
        self._request_id = 0
        self._pending_requests: Dict[int, asyncio.Future] = {}
        self._reader_task: Optional[asyncio.Future] = None
        self._stderr_task: Optional[asyncio.Future] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_context: Context | None = None
        self._stream_reader: Optional[JsonRpcStreamReader] = None
        self._stream_writer: Optional[JsonRpcStreamWriter] = None
        self._ready = asyncio.Event()
        self._open_documents: Dict[str, int] = {}
        self.capabilities: Dict[str, Any] = {}

    @property
    def running(self) -> bool:
        return self.server is not None and self.server.running()

    # -- lifecycle --

    async def start(self) -> None:
        """Spawn the server and complete the initialize handshake.

        Raises:
            ServerStartError: spawn failed, or the handshake failed or timed out
        """
        if self.running:
            return

        self._ready.clear()
        self._loop = asyncio.get_running_loop()
        self._loop_context = copy_context()

        argv = [self.server_options.command, *self.server_options.args]
        self.server = self._spawn(argv, self.server_options.env, self.server_options.cwd)

        process = self.server.process
        if not process.stdout or not process.stdin:
            await self._kill()
            raise ServerStartError(f"{self.name}: server stdio not available")

        self._stream_reader = JsonRpcStreamReader(process.stdout)
        self._stream_writer = JsonRpcStreamWriter(process.stdin)
        self._reader_task = asyncio.ensure_future(self._read_messages())
        if process.stderr:
            self._stderr_task = asyncio.ensure_future(
                self._loop.run_in_executor(None, self._pump_stderr, process.stderr)
            )

        try:
            with log.time("initialize", {"client_id": self.id}):
                result = await asyncio.wait_for(
                    self.send_request("initialize", self._initialize_params()),
                    timeout=INITIALIZE_TIMEOUT,
                )
        except asyncio.TimeoutError:
            await self._kill()
            raise ServerStartError(f"{self.name}: initialize timed out") from None
        except asyncio.CancelledError:
            await self._kill()
            raise
        except ResponseError as e:
            await self._kill()
            raise ServerStartError(f"{self.name}: initialize failed: {e}") from e

        self.capabilities = result.get("capabilities", {}) if isinstance(result, dict) else {}
        await self.send_notification("initialized", {})
        await self._push_configuration()

        self._ready.set()
        log.info("language client ready", {"client_id": self.id, "pid": self.server.pid})

    async def on_ready(self) -> None:
        await self._ready.wait()

    @property
    def ready(self) -> bool:
        return self._ready.is_set()

    async def stop(self) -> None:
        """Shut the server down politely, then make sure the process is gone."""
        if self.server is None:
            return
        log.info("stopping", {"client_id": self.id})

        if self._ready.is_set() and self.running:
            try:
                await asyncio.wait_for(self.send_request("shutdown", None), timeout=SHUTDOWN_TIMEOUT)
                await self.send_notification("exit", None)
            except (asyncio.TimeoutError, ResponseError, OSError) as e:
                log.warn("shutdown request failed", {"client_id": self.id, "error": str(e)})

        self._ready.clear()
        await self._kill()
        log.info("stopped", {"client_id": self.id})

    async def _kill(self) -> None:
        if self._stream_writer:
            try:
                self._stream_writer.close()
            except (OSError, ValueError):
                pass
            self._stream_writer = None

        server, self.server = self.server, None
        if server is not None:
            # Terminating first unblocks the reader threads.
            server.process.terminate()
            try:
                await asyncio.to_thread(server.process.wait, 5)
            except subprocess.TimeoutExpired:
                server.process.kill()
                await asyncio.to_thread(server.process.wait, 1)

        for task in (self._reader_task, self._stderr_task):
            if task is None:
                continue
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=1.0)
            except (asyncio.TimeoutError, asyncio.CancelledError):
                pass
        self._reader_task = None
        self._stderr_task = None

        for future in self._pending_requests.values():
            if not future.done():
                future.cancel()
        self._pending_requests.clear()
        self._open_documents.clear()

    async def wait_closed(self) -> int | None:
        """Wait for the server process to exit and return its exit code."""
        server = self.server
        if server is None:
            return None
        return await asyncio.to_thread(server.process.wait)

    def _initialize_params(self) -> Dict[str, Any]:
        root_uri = path_to_uri(self.options.root)
        return {
            "processId": os.getpid(),
            "clientInfo": {"name": "julials"},
            "rootUri": root_uri,
            "workspaceFolders": [{"name": "workspace", "uri": root_uri}],
            "initializationOptions": self.options.initialization_options,
            "capabilities": {
                "window": {"workDoneProgress": True},
                "workspace": {
                    "configuration": True,
                    "didChangeWatchedFiles": {"dynamicRegistration": True},
                },
                "textDocument": {
                    "synchronization": {"didOpen": True, "didChange": True},
                    "completion": {"completionItem": {"snippetSupport": True}},
                },
            },
        }

    def _section(self, name: str) -> Any:
        if self.options.settings is None:
            return None
        return self.options.settings(name)

    async def _push_configuration(self) -> None:
        if not self.options.configuration_sections:
            return
        settings: Dict[str, Any] = {}
        for section in self.options.configuration_sections:
            node = settings
            parts = section.split(".")
            for part in parts[:-1]:
                node = node.setdefault(part, {})
            node[parts[-1]] = self._section(section)
        await self.send_notification("workspace/didChangeConfiguration", {"settings": settings})

    # -- handler table --

    def on_notification(self, method: str, handler: NotificationHandler) -> Callable[[], None]:
        """Route ``method`` notifications to ``handler``; returns an unsubscribe callback."""
        self._handlers[method] = handler

        def unsubscribe() -> None:
            if self._handlers.get(method) is handler:
                del self._handlers[method]

        return unsubscribe

    # -- transport --

    async def _read_messages(self) -> None:
        if not self._stream_reader:
            return

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                self._stream_reader.listen,
                self._consume_message_from_reader_thread,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.error("error reading server messages", {"client_id": self.id, "error": str(e)})

        # Stream closed: nothing pending can be answered any more.
        for future in self._pending_requests.values():
            if not future.done():
                future.set_exception(ResponseError(None, f"{self.name}: connection closed"))

    def _pump_stderr(self, stream: Any) -> None:
        for raw in iter(stream.readline, b""):
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                trace.debug(line, {"client_id": self.id})

    def _consume_message_from_reader_thread(self, message: Dict[str, Any]) -> None:
        """Bridge reader-thread messages into the event loop."""
        if not self._loop or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(
            self._schedule_message,
            message,
            context=self._loop_context,
        )

    def _schedule_message(self, message: Dict[str, Any]) -> None:
        task = asyncio.create_task(self._handle_message(message))
        task.add_done_callback(self._on_message_done)

    def _on_message_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log.error("error handling server message", {"client_id": self.id, "error": error})

    async def _handle_message(self, message: Dict[str, Any]) -> None:
        if "method" not in message:
            self._resolve_response(message)
            return

        method = message["method"]
        params = message.get("params")
        if "id" in message:
            await self._handle_server_request(message["id"], method, params)
            return

        handler = self._handlers.get(method)
        if handler is not None:
            result = handler(params)
            if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
                await result
        elif method == "window/logMessage" and isinstance(params, dict):
            trace.debug(params.get("message"), {"client_id": self.id, "type": params.get("type")})
        elif method == "$/progress" and isinstance(params, dict):
            value = params.get("value") or {}
            log.debug("progress", {"client_id": self.id, "kind": value.get("kind"), "title": value.get("title")})
        else:
            log.debug("unhandled notification", {"client_id": self.id, "method": method})

    def _resolve_response(self, message: Dict[str, Any]) -> None:
        future = self._pending_requests.get(message.get("id"))  # type: ignore[arg-type]
        if future is None or future.done():
            return
        if "error" in message:
            error = message["error"] or {}
            future.set_exception(ResponseError(error.get("code"), error.get("message", "Unknown error")))
        else:
            future.set_result(message.get("result"))

    async def _handle_server_request(self, request_id: Any, method: str, params: Any) -> None:
        if method == "workspace/configuration":
            items = (params or {}).get("items", [])
            await self._send_response(request_id, [self._section(item.get("section", "")) for item in items])
        elif method == "workspace/workspaceFolders":
            await self._send_response(request_id, [{"name": "workspace", "uri": path_to_uri(self.options.root)}])
        elif method in (
            "window/workDoneProgress/create",
            "client/registerCapability",
            "client/unregisterCapability",
            "window/showMessageRequest",
        ):
            await self._send_response(request_id, None)
        else:
            log.debug("unsupported server request", {"client_id": self.id, "method": method})
            await self._send_message({
                "jsonrpc": "2.0",
                "id": request_id,
                "error": {"code": METHOD_NOT_FOUND, "message": f"Unhandled method {method}"},
            })

    async def send_request(self, method: str, params: Any) -> Any:
        """Send a request and wait for its result.

        Raises:
            ResponseError: the server answered with an error
        """
        self._request_id += 1
        request_id = self._request_id

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending_requests[request_id] = future

        await self._send_message({
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        })

        try:
            return await future
        finally:
            self._pending_requests.pop(request_id, None)

    async def send_notification(self, method: str, params: Any) -> None:
        await self._send_message({
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
        })

    async def _send_response(self, request_id: Any, result: Any) -> None:
        await self._send_message({
            "jsonrpc": "2.0",
            "id": request_id,
            "result": result,
        })

    async def _send_message(self, message: Dict[str, Any]) -> None:
        if not self._stream_writer:
            return
        await asyncio.get_running_loop().run_in_executor(None, self._stream_writer.write, message)

    # -- documents --

    def serves(self, document: TextDocument) -> bool:
        return document.language_id in self.options.document_selector

    async def did_open(self, document: TextDocument) -> None:
        if not self.serves(document):
            return
        self._open_documents[document.uri] = document.version
        await self.send_notification("textDocument/didOpen", {
            "textDocument": {
                "uri": document.uri,
                "languageId": document.language_id,
                "version": document.version,
                "text": document.get_text(),
            },
        })

    async def did_change(self, document: TextDocument) -> None:
        if document.uri not in self._open_documents:
            await self.did_open(document)
            return
        self._open_documents[document.uri] = document.version
        await self.send_notification("textDocument/didChange", {
            "textDocument": {"uri": document.uri, "version": document.version},
            "contentChanges": [{"text": document.get_text()}],
        })

    async def did_close(self, uri: str) -> None:
        if self._open_documents.pop(uri, None) is None:
            return
        await self.send_notification("textDocument/didClose", {"textDocument": {"uri": uri}})

    async def notify_file_changed(self, path: str, change_type: int = FILE_CHANGED) -> bool:
        """Forward a file-system change if it matches the watched glob."""
        if not matches_glob(path, self.options.file_events):
            return False
        await self.send_notification("workspace/didChangeWatchedFiles", {
            "changes": [{"uri": path_to_uri(path), "type": change_type}],
        })
        return True

    async def completion(
        self,
        uri: str,
        line: int,
        character: int,
        option: Optional[CompletionOption] = None,
    ) -> Any:
        """Request completions at a position, rewritten by the middleware."""
        params = {
            "textDocument": {"uri": uri},
            "position": {"line": line, "character": character},
        }

        async def forward(request: Dict[str, Any]) -> Any:
            return await self.send_request("textDocument/completion", request)

        middleware = self.options.middleware
        if middleware is None:
            return await forward(params)
        return await middleware.provide_completion_item(params, option, forward)
