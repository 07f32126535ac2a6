"""Bounded capture of console messages and network responses for one attempt.

The buffer is opened before the first step and detached when the ``async
with`` block exits, on every path including exceptions. Every captured item
gets a sequence number so callers can slice "what happened during this
action" with :meth:`PageSignals.mark` / :meth:`PageSignals.console_since`.
"""

from __future__ import annotations

import itertools
from collections import deque
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

DEFAULT_BUFFER_SIZE = 500


@dataclass(frozen=True)
class ConsoleMessage:
    seq: int
    type: str  # log|info|warning|error|debug...
    text: str


@dataclass(frozen=True)
class NetworkResponse:
    seq: int
    method: str
    url: str
    status: int


class PageSignals:
    def __init__(self, maxlen: int = DEFAULT_BUFFER_SIZE) -> None:
        self._counter = itertools.count(1)
        self._console: deque[ConsoleMessage] = deque(maxlen=maxlen)
        self._responses: deque[NetworkResponse] = deque(maxlen=maxlen)
        self._last_seq = 0

    def _next_seq(self) -> int:
        self._last_seq = next(self._counter)
        return self._last_seq

    def on_console(self, msg: Any) -> None:
        self._console.append(
            ConsoleMessage(seq=self._next_seq(), type=str(msg.type), text=str(msg.text))
        )

    def on_response(self, response: Any) -> None:
        try:
            method = str(response.request.method).upper()
            status = int(response.status)
            url = str(response.url)
        except Exception:  # noqa: S110 - a half-torn-down response carries no signal
            return
        self._responses.append(
            NetworkResponse(seq=self._next_seq(), method=method, url=url, status=status)
        )

    def mark(self) -> int:
        return self._last_seq

    @property
    def console_messages(self) -> list[ConsoleMessage]:
        return list(self._console)

    def console_since(self, mark: int) -> list[ConsoleMessage]:
        return [m for m in self._console if m.seq > mark]

    def responses_since(self, mark: int) -> list[NetworkResponse]:
        return [r for r in self._responses if r.seq > mark]


@asynccontextmanager
async def capture_signals(
    page: Any, maxlen: int = DEFAULT_BUFFER_SIZE
) -> AsyncGenerator[PageSignals, None]:
    signals = PageSignals(maxlen=maxlen)
    page.on("console", signals.on_console)
    page.on("response", signals.on_response)
    try:
        yield signals
    finally:
        page.remove_listener("console", signals.on_console)
        page.remove_listener("response", signals.on_response)
