from __future__ import annotations

import asyncio
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest

from julials.core.config_schema import Config, JuliaConfig
from julials.host.documents import TextDocument, path_to_uri
from julials.lsp.client import (
    FILE_CREATED,
    METHOD_NOT_FOUND,
    ClientOptions,
    LanguageClient,
    ServerOptions,
    expand_braces,
    matches_glob,
)
from julials.lsp.errors import ResponseError, ServerStartError
from julials.lsp.middleware import CompletionMiddleware, CompletionOption
from julials.lsp.server import ServerHandle


def _client(tmp_path: Path, **options: Any) -> tuple[LanguageClient, list[dict[str, Any]]]:
    settings = Config(julia=JuliaConfig(lint={"run": True}, format={"indent": 2}))
    client = LanguageClient(
        "julia",
        "Julia Language Server",
        ServerOptions(command="julia"),
        ClientOptions(
            settings=settings.section,
            configuration_sections=["julia.lint", "julia.format"],
            root=str(tmp_path),
            **options,
        ),
    )
    sent: list[dict[str, Any]] = []

    async def record(message: dict[str, Any]) -> None:
        sent.append(message)

    client._send_message = record  # type: ignore[method-assign]
    return client, sent


def test_expand_braces() -> None:
    assert expand_braces("**/*.{jl,jmd}") == ["**/*.jl", "**/*.jmd"]
    assert expand_braces("*.jl") == ["*.jl"]


def test_file_event_glob() -> None:
    assert matches_glob("/work/src/a.jl", "**/*.{jl,jmd}")
    assert matches_glob("notes.jmd", "**/*.{jl,jmd}")
    assert not matches_glob("/work/src/a.py", "**/*.{jl,jmd}")
    assert not matches_glob("/work/src/a.jlx", "**/*.{jl,jmd}")


@pytest.mark.anyio
async def test_notifications_dispatch_through_handler_table(tmp_path: Path) -> None:
    client, _ = _client(tmp_path)
    received: list[Any] = []

    async def on_full_text(params: Any) -> None:
        received.append(("async", params))

    unsubscribe = client.on_notification("julia/getFullText", on_full_text)
    client.on_notification("julia/progress", lambda params: received.append(("sync", params)))

    await client._handle_message({"jsonrpc": "2.0", "method": "julia/getFullText", "params": "file:///a.jl"})
    await client._handle_message({"jsonrpc": "2.0", "method": "julia/progress", "params": {"n": 1}})
    unsubscribe()
    await client._handle_message({"jsonrpc": "2.0", "method": "julia/getFullText", "params": "file:///b.jl"})

    assert received == [("async", "file:///a.jl"), ("sync", {"n": 1})]


@pytest.mark.anyio
async def test_workspace_configuration_is_answered_from_settings(tmp_path: Path) -> None:
    client, sent = _client(tmp_path)

    await client._handle_message({
        "jsonrpc": "2.0",
        "id": 5,
        "method": "workspace/configuration",
        "params": {"items": [{"section": "julia.lint"}, {"section": "julia.missing"}]},
    })

    assert sent == [{"jsonrpc": "2.0", "id": 5, "result": [{"run": True}, None]}]


@pytest.mark.anyio
async def test_progress_create_is_acknowledged_and_unknown_requests_rejected(tmp_path: Path) -> None:
    client, sent = _client(tmp_path)

    await client._handle_message({"jsonrpc": "2.0", "id": 1, "method": "window/workDoneProgress/create", "params": {}})
    await client._handle_message({"jsonrpc": "2.0", "id": 2, "method": "julia/unknown", "params": {}})

    assert sent[0] == {"jsonrpc": "2.0", "id": 1, "result": None}
    assert sent[1]["id"] == 2
    assert sent[1]["error"]["code"] == METHOD_NOT_FOUND


@pytest.mark.anyio
async def test_responses_resolve_pending_requests(tmp_path: Path) -> None:
    client, sent = _client(tmp_path)

    ok = asyncio.create_task(client.send_request("julia/activateenvironment", {"envPath": "/env"}))
    failing = asyncio.create_task(client.send_request("textDocument/hover", {}))
    await asyncio.sleep(0)

    assert [m["id"] for m in sent] == [1, 2]
    await client._handle_message({"jsonrpc": "2.0", "id": 1, "result": {"ok": True}})
    await client._handle_message({"jsonrpc": "2.0", "id": 2, "error": {"code": -32603, "message": "boom"}})

    assert await ok == {"ok": True}
    with pytest.raises(ResponseError, match="boom"):
        await failing
    assert client._pending_requests == {}


@pytest.mark.anyio
async def test_configuration_push_nests_sections(tmp_path: Path) -> None:
    client, sent = _client(tmp_path)

    await client._push_configuration()

    assert sent == [{
        "jsonrpc": "2.0",
        "method": "workspace/didChangeConfiguration",
        "params": {"settings": {"julia": {"lint": {"run": True}, "format": {"indent": 2}}}},
    }]


@pytest.mark.anyio
async def test_completion_goes_through_middleware(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    client, _ = _client(tmp_path, middleware=CompletionMiddleware())
    requests: list[tuple[str, Any]] = []

    async def fake_request(method: str, params: Any) -> Any:
        requests.append((method, params))
        edit = {
            "newText": "ntln",
            "range": {"start": {"line": 0, "character": 10}, "end": {"line": 0, "character": 10}},
        }
        return {"isIncomplete": False, "items": [{"label": "println", "kind": 3, "textEdit": edit}]}

    monkeypatch.setattr(client, "send_request", fake_request)

    result = await client.completion("file:///a.jl", 0, 10, CompletionOption("pri", "x"))

    assert requests == [("textDocument/completion", {
        "textDocument": {"uri": "file:///a.jl"},
        "position": {"line": 0, "character": 10},
    })]
    assert result["items"][0]["textEdit"]["newText"] == "prixntln"
    assert result["items"][0]["textEdit"]["range"]["start"]["character"] == 6


@pytest.mark.anyio
async def test_document_sync_respects_selector(tmp_path: Path) -> None:
    client, sent = _client(tmp_path)
    julia = TextDocument("file:///a.jl", "julia", 1, "x = 1")
    toml = TextDocument("file:///Project.toml", "toml", 1, "")

    await client.did_open(toml)
    await client.did_change(julia)
    julia.version = 2
    julia.text = "x = 2"
    await client.did_change(julia)
    await client.did_close("file:///a.jl")
    await client.did_close("file:///a.jl")

    assert [m["method"] for m in sent] == [
        "textDocument/didOpen",
        "textDocument/didChange",
        "textDocument/didClose",
    ]
    assert sent[1]["params"]["contentChanges"] == [{"text": "x = 2"}]


@pytest.mark.anyio
async def test_file_changes_outside_glob_are_ignored(tmp_path: Path) -> None:
    client, sent = _client(tmp_path)
    source = str(tmp_path / "src" / "a.jl")

    assert await client.notify_file_changed(source, FILE_CREATED) is True
    assert await client.notify_file_changed(str(tmp_path / "setup.py")) is False

    assert sent == [{
        "jsonrpc": "2.0",
        "method": "workspace/didChangeWatchedFiles",
        "params": {"changes": [{"uri": path_to_uri(source), "type": FILE_CREATED}]},
    }]


@pytest.mark.anyio
async def test_spawn_failure_propagates(tmp_path: Path) -> None:
    def spawn(cmd, env, cwd):  # type: ignore[no-untyped-def]
        raise ServerStartError("failed to start julia")

    client = LanguageClient("julia", "Julia", ServerOptions(command="julia"), spawn=spawn)

    with pytest.raises(ServerStartError):
        await client.start()
    assert client.running is False


@pytest.mark.anyio
async def test_server_without_stdio_is_killed(tmp_path: Path) -> None:
    events: list[str] = []
    process = SimpleNamespace(
        pid=42,
        stdin=None,
        stdout=None,
        stderr=None,
        poll=lambda: None,
        terminate=lambda: events.append("terminate"),
        kill=lambda: events.append("kill"),
        wait=lambda timeout=None: 0,
    )
    spawned: list[tuple[list[str], dict[str, str]]] = []

    def spawn(cmd, env, cwd):  # type: ignore[no-untyped-def]
        spawned.append((cmd, dict(env)))
        return ServerHandle(process, cmd)  # type: ignore[arg-type]

    server = ServerOptions(command="/opt/julia", args=["--debug=no"], env={"TMPDIR": "/scratch"})
    client = LanguageClient("julia", "Julia", server, spawn=spawn)

    with pytest.raises(ServerStartError, match="stdio"):
        await client.start()

    assert spawned == [(["/opt/julia", "--debug=no"], {"TMPDIR": "/scratch"})]
    assert events == ["terminate"]
    assert client.server is None
