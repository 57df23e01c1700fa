"""Completion response rewriting.

The server computes completion ranges against its own idea of the current
token, which can disagree with what the editor reports as already typed.
Each text edit is widened so that it replaces the typed prefix instead of
leaving a duplicate in front of the inserted text.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..util.log import Log

log = Log.create({"service": "lsp.middleware"})

# CompletionItemKind.Unit; the server reserves it for plain word snippets.
UNIT_KIND = 11

CompletionNext = Callable[[Dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class CompletionOption:
    """In-progress token as seen by the editor.

    Attributes:
        word: Part of the word before the cursor the editor completes
        input: Text typed since the completion popup opened; may or may not
            already start with ``word``
    """
    word: str
    input: str

    @property
    def prefix(self) -> str:
        if self.input.startswith(self.word):
            return self.input
        return self.word + self.input


def _valid_position(pos: Any) -> bool:
    return (
        isinstance(pos, dict)
        and isinstance(pos.get("line"), int)
        and isinstance(pos.get("character"), int)
    )


def _valid_range(rng: Any) -> bool:
    return isinstance(rng, dict) and _valid_position(rng.get("start")) and _valid_position(rng.get("end"))


def _shift_start(rng: Dict[str, Any], length: int) -> Dict[str, Any]:
    start = rng["start"]
    end = rng["end"]
    return {
        "start": {"line": start["line"], "character": max(0, start["character"] - length)},
        "end": {"line": end["line"], "character": end["character"]},
    }


class CompletionMiddleware:
    """Rewrites completion responses before they reach the host."""

    def rewrite_item(self, item: Dict[str, Any], prefix: str) -> Dict[str, Any]:
        """Prefix one item's edit, or return it untouched."""
        text_edit = item.get("textEdit")
        if not isinstance(text_edit, dict) or item.get("kind") == UNIT_KIND:
            return item

        new_text = text_edit.get("newText", "")
        if not isinstance(new_text, str) or new_text.startswith(prefix):
            return item

        edit = copy.deepcopy(text_edit)
        edit["newText"] = f"{prefix}{new_text}"
        if "range" in edit:
            if not _valid_range(edit["range"]):
                return item
            edit["range"] = _shift_start(edit["range"], len(prefix))
        elif _valid_range(edit.get("insert")) and _valid_range(edit.get("replace")):
            edit["insert"] = _shift_start(edit["insert"], len(prefix))
            edit["replace"] = _shift_start(edit["replace"], len(prefix))
        else:
            return item

        return {**item, "textEdit": edit}

    def rewrite(self, option: CompletionOption, raw: Any) -> Dict[str, Any]:
        """Rewrite a raw ``textDocument/completion`` result.

        Absent or malformed results become an empty list; a bare item array
        is treated as a complete list.
        """
        if isinstance(raw, list):
            raw_items: Any = raw
            incomplete = False
        elif isinstance(raw, dict):
            raw_items = raw.get("items")
            incomplete = bool(raw.get("isIncomplete", False))
        else:
            raw_items = None
            incomplete = False

        if not isinstance(raw_items, list):
            if raw is not None:
                log.warn("malformed completion response", {"type": type(raw).__name__})
            raw_items = []

        prefix = option.prefix
        items: List[Dict[str, Any]] = [
            self.rewrite_item(item, prefix) if isinstance(item, dict) else item
            for item in raw_items
        ]
        return {"items": items, "isIncomplete": incomplete}

    async def provide_completion_item(
        self,
        params: Dict[str, Any],
        option: Optional[CompletionOption],
        next: CompletionNext,
    ) -> Any:
        """Forward the request with ``next`` and rewrite what comes back.

        Without an option there is nothing to reconcile and the response is
        returned as the server sent it.
        """
        raw = await next(params)
        if option is None:
            return raw
        return self.rewrite(option, raw)
