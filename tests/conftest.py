import os
import sys
from collections.abc import Callable
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import pytest


def pytest_sessionstart(session):
    # Ensure src/ is importable when running pytest without installation
    root = Path(__file__).resolve().parents[1]
    src = root / "src"
    if str(src) not in sys.path:
        sys.path.insert(0, str(src))
    os.environ.setdefault("HEADLESS", "true")
    os.environ.setdefault("EVENT_BACKEND", "inmemory")


class FakeConsoleMessage:
    def __init__(self, type_: str, text: str) -> None:
        self.type = type_
        self.text = text


class FakeRequest:
    def __init__(self, method: str) -> None:
        self.method = method


class FakeResponse:
    def __init__(self, method: str, url: str, status: int) -> None:
        self.request = FakeRequest(method)
        self.url = url
        self.status = status


class FakePage:
    """In-memory stand-in for a Playwright async ``Page``.

    - ``missing``: selectors that never resolve (click/fill/wait_for_selector fail)
    - ``flaky``: selector -> number of failures before it starts working
    - ``visible``: selectors reported by ``is_visible``
    - ``states``: results returned by successive ``evaluate`` calls
    - ``on_click``: selector -> callback(page) run after a successful click
    """

    def __init__(
        self,
        url: str = "about:blank",
        *,
        missing: set[str] | None = None,
        flaky: dict[str, int] | None = None,
        visible: set[str] | None = None,
        body_text: str = "",
        lang: str | None = "en",
        states: list[dict] | None = None,
        evaluate_handler: Callable[[str, Any], Any] | None = None,
        on_click: dict[str, Callable[["FakePage"], None]] | None = None,
        fail_goto: bool = False,
    ) -> None:
        self.url = url
        self.missing = missing or set()
        self.flaky = dict(flaky or {})
        self.visible = visible or set()
        self.body_text = body_text
        self.lang = lang
        self.states = list(states or [])
        self.evaluate_handler = evaluate_handler
        self.on_click = on_click or {}
        self.fail_goto = fail_goto
        self.calls: list[tuple[str, Any]] = []
        self.listeners: dict[str, list[Callable]] = {}

    def _resolve(self, selector: str) -> None:
        if selector in self.missing:
            raise TimeoutError(f"Timeout waiting for {selector}")
        if self.flaky.get(selector, 0) > 0:
            self.flaky[selector] -= 1
            raise TimeoutError(f"Flaky {selector}")

    async def goto(self, url: str, **kwargs: Any) -> None:
        self.calls.append(("goto", url))
        if self.fail_goto:
            raise ConnectionError("net::ERR_CONNECTION_REFUSED")
        self.url = url

    async def click(self, selector: str, **kwargs: Any) -> None:
        self.calls.append(("click", selector))
        self._resolve(selector)
        if selector in self.on_click:
            self.on_click[selector](self)

    async def fill(self, selector: str, value: str, **kwargs: Any) -> None:
        self.calls.append(("fill", selector))
        self._resolve(selector)

    async def wait_for_selector(self, selector: str, **kwargs: Any) -> None:
        self.calls.append(("wait_for_selector", selector))
        self._resolve(selector)

    async def wait_for_timeout(self, ms: int) -> None:
        self.calls.append(("wait_for_timeout", ms))

    async def wait_for_load_state(self, state: str = "load", **kwargs: Any) -> None:
        self.calls.append(("wait_for_load_state", state))

    async def screenshot(self, path: str | None = None, **kwargs: Any) -> bytes:
        data = b"\xff\xd8fake-jpeg"
        if path:
            Path(path).write_bytes(data)
        return data

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        if self.evaluate_handler is not None:
            return self.evaluate_handler(script, arg)
        if self.states:
            return self.states.pop(0)
        return {}

    async def is_visible(self, selector: str, **kwargs: Any) -> bool:
        return selector in self.visible

    async def inner_text(self, selector: str, **kwargs: Any) -> str:
        return self.body_text

    async def get_attribute(self, selector: str, name: str, **kwargs: Any) -> str | None:
        return self.lang if (selector, name) == ("html", "lang") else None

    def on(self, event: str, handler: Callable) -> None:
        self.listeners.setdefault(event, []).append(handler)

    def remove_listener(self, event: str, handler: Callable) -> None:
        self.listeners.get(event, []).remove(handler)

    def emit(self, event: str, payload: Any) -> None:
        for handler in list(self.listeners.get(event, [])):
            handler(payload)

    def emit_console(self, type_: str, text: str) -> None:
        self.emit("console", FakeConsoleMessage(type_, text))

    def emit_response(self, method: str, url: str, status: int) -> None:
        self.emit("response", FakeResponse(method, url, status))


class FakePool:
    """Run-scoped pool handing out a fresh FakePage per context."""

    def __init__(self, page_factory: Callable[[], FakePage] | None = None, fail_launch=False):
        self.page_factory = page_factory or FakePage
        self.fail_launch = fail_launch
        self.launched = False
        self.closed = False
        self.pages: list[FakePage] = []
        self.open_contexts = 0

    async def launch(self) -> None:
        if self.fail_launch:
            from journeyguard.core.errors import BrowserLaunchError

            raise BrowserLaunchError("Could not launch browser: boom")
        self.launched = True

    @asynccontextmanager
    async def page(self):
        page = self.page_factory()
        self.pages.append(page)
        self.open_contexts += 1
        try:
            yield page
        finally:
            self.open_contexts -= 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_page_factory():
    return FakePage


@pytest.fixture
def fake_pool_factory():
    return FakePool
