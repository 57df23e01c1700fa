"""Shared test fakes."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple


class FakeUI:
    """HostUI that records every interaction."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts: List[str] = []
        self.commands: List[Tuple[str, str]] = []
        self.messages: List[Tuple[str, str]] = []

    async def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        return self.answer

    async def run_visible(self, command: str, label: str) -> None:
        self.commands.append((command, label))

    def show_message(self, message: str, level: str = "info") -> None:
        self.messages.append((message, level))


class FakeClient:
    """Stands in for LanguageClient without a server process."""

    def __init__(self, client_id: str = "julia", fail_start: Optional[BaseException] = None):
        self.id = client_id
        self.name = "Fake Server"
        self.fail_start = fail_start
        self.started = 0
        self.stopped = 0
        self.handlers: Dict[str, Callable[[Any], Any]] = {}
        self.sent: List[Tuple[str, Any]] = []

    async def start(self) -> None:
        self.started += 1
        if self.fail_start is not None:
            raise self.fail_start

    async def stop(self) -> None:
        self.stopped += 1

    async def on_ready(self) -> None:
        return None

    def on_notification(self, method: str, handler: Callable[[Any], Any]) -> Callable[[], None]:
        self.handlers[method] = handler
        return lambda: self.handlers.pop(method, None)

    async def send_notification(self, method: str, params: Any) -> None:
        self.sent.append((method, params))
