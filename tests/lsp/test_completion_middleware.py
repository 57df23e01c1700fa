from __future__ import annotations

from typing import Any

import pytest

from julials.lsp.middleware import UNIT_KIND, CompletionMiddleware, CompletionOption


def _item(new_text: str, start: int = 10, end: int = 12, kind: int = 3, line: int = 4) -> dict[str, Any]:
    return {
        "label": new_text,
        "kind": kind,
        "textEdit": {
            "newText": new_text,
            "range": {
                "start": {"line": line, "character": start},
                "end": {"line": line, "character": end},
            },
        },
    }


def test_prefix_uses_input_when_it_already_contains_word() -> None:
    assert CompletionOption("pri", "prin").prefix == "prin"
    assert CompletionOption("pri", "x").prefix == "prix"
    assert CompletionOption("", "").prefix == ""


def test_edit_already_starting_with_prefix_is_unchanged() -> None:
    raw = {"isIncomplete": False, "items": [_item("println")]}

    result = CompletionMiddleware().rewrite(CompletionOption("pri", "prin"), raw)

    assert result["items"] == [_item("println")]


def test_disjoint_input_widens_edit() -> None:
    raw = {"isIncomplete": True, "items": [_item("ntln")]}

    result = CompletionMiddleware().rewrite(CompletionOption("pri", "x"), raw)

    (item,) = result["items"]
    assert item["textEdit"]["newText"] == "prixntln"
    assert item["textEdit"]["range"]["start"] == {"line": 4, "character": 6}
    assert item["textEdit"]["range"]["end"] == {"line": 4, "character": 12}
    assert result["isIncomplete"] is True
    assert raw["items"][0] == _item("ntln")


def test_rewrite_is_idempotent() -> None:
    middleware = CompletionMiddleware()
    option = CompletionOption("pri", "x")
    raw = {"isIncomplete": False, "items": [_item("ntln"), _item("prixy"), {"label": "plain"}]}

    once = middleware.rewrite(option, raw)
    twice = middleware.rewrite(option, once)

    assert twice == once


def test_unit_kind_items_are_never_touched() -> None:
    item = _item("ntln", kind=UNIT_KIND)

    result = CompletionMiddleware().rewrite(CompletionOption("pri", "x"), {"items": [item]})

    assert result["items"] == [item]


@pytest.mark.parametrize(
    "text_edit",
    [
        {"newText": None, "range": {"start": {"line": 0, "character": 3}, "end": {"line": 0, "character": 4}}},
        {"newText": 42, "range": {"start": {"line": 0, "character": 3}, "end": {"line": 0, "character": 4}}},
        {"newText": "ntln", "range": {"end": {"line": 0, "character": 4}}},
        {"newText": "ntln", "range": {"start": {"line": 0}, "end": {"line": 0, "character": 4}}},
        {"newText": "ntln", "range": None},
        {
            "newText": "ntln",
            "insert": {"start": {"line": 0, "character": 3}, "end": {"line": 0, "character": 4}},
            "replace": {"start": "0:3", "end": {"line": 0, "character": 6}},
        },
    ],
)
def test_malformed_edits_pass_through(text_edit: dict[str, Any]) -> None:
    item = {"label": "println", "kind": 3, "textEdit": text_edit}
    good = _item("ntln")

    result = CompletionMiddleware().rewrite(CompletionOption("pri", "x"), {"items": [item, good]})

    assert result["items"][0] == item
    assert result["items"][1]["textEdit"]["newText"] == "prixntln"


def test_items_without_edit_pass_through() -> None:
    items = [{"label": "println", "kind": 3}, {"label": "print", "insertText": "print"}]

    result = CompletionMiddleware().rewrite(CompletionOption("pri", "x"), {"items": items})

    assert result == {"items": items, "isIncomplete": False}


def test_start_column_is_clamped_at_zero() -> None:
    result = CompletionMiddleware().rewrite(CompletionOption("ab", "cd"), {"items": [_item("x", start=1, end=1)]})

    assert result["items"][0]["textEdit"]["range"]["start"]["character"] == 0


def test_insert_replace_edit_widens_both_ranges() -> None:
    edit = {
        "newText": "ntln",
        "insert": {"start": {"line": 0, "character": 10}, "end": {"line": 0, "character": 10}},
        "replace": {"start": {"line": 0, "character": 10}, "end": {"line": 0, "character": 14}},
    }

    result = CompletionMiddleware().rewrite(CompletionOption("pri", "x"), {"items": [{"label": "l", "textEdit": edit}]})

    new_edit = result["items"][0]["textEdit"]
    assert new_edit["newText"] == "prixntln"
    assert new_edit["insert"]["start"]["character"] == 6
    assert new_edit["replace"]["start"]["character"] == 6
    assert new_edit["replace"]["end"]["character"] == 14


@pytest.mark.parametrize("raw", [None, 42, "items", {}, {"items": None}, {"items": "nope"}])
def test_malformed_response_is_empty(raw: Any) -> None:
    result = CompletionMiddleware().rewrite(CompletionOption("pri", "x"), raw)

    assert result == {"items": [], "isIncomplete": False}


def test_bare_item_list_is_a_complete_list() -> None:
    result = CompletionMiddleware().rewrite(CompletionOption("pri", "x"), [_item("ntln")])

    assert result["isIncomplete"] is False
    assert result["items"][0]["textEdit"]["newText"] == "prixntln"


@pytest.mark.anyio
async def test_provide_completion_item_forwards_and_rewrites() -> None:
    seen: list[dict[str, Any]] = []

    async def next(params: dict[str, Any]) -> Any:
        seen.append(params)
        return {"isIncomplete": False, "items": [_item("ntln")]}

    params = {"textDocument": {"uri": "file:///a.jl"}, "position": {"line": 4, "character": 10}}
    middleware = CompletionMiddleware()

    rewritten = await middleware.provide_completion_item(params, CompletionOption("pri", "x"), next)
    untouched = await middleware.provide_completion_item(params, None, next)

    assert seen == [params, params]
    assert rewritten["items"][0]["textEdit"]["newText"] == "prixntln"
    assert untouched["items"][0]["textEdit"]["newText"] == "ntln"
