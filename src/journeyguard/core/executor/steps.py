"""Step executor: one scripted interaction with a single retry."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, assert_never
from urllib.parse import urljoin

from ..errors import AttemptFailure, ElementNotFound, StepFailure
from ..ir.model import (
    BASE_URL_PLACEHOLDER,
    Click,
    Fill,
    Navigate,
    StepDefinition,
    Wait,
    WaitFor,
    step_kind,
)
from ..ir.results import StepResult

logger = logging.getLogger(__name__)

MAX_TRIES = 2
RETRY_DELAY_MS = 200
SELECTOR_TIMEOUT_CAP_MS = 5000


def resolve_url(url: str, base_url: str) -> str:
    if url == BASE_URL_PLACEHOLDER:
        return base_url
    if url.startswith("/"):
        return urljoin(base_url, url)
    return url


async def _first_matching(
    step_id: str, selectors: tuple[str, ...], action: Any, verb: str
) -> str:
    """Run ``action(selector)`` for each candidate until one succeeds."""
    for selector in selectors:
        try:
            await action(selector)
            return selector
        except Exception:  # noqa: S112 - fall through to the next candidate
            continue
    raise ElementNotFound(step_id, f"Could not {verb} element: {', '.join(selectors)}")


async def _perform(
    page: Any,
    step: StepDefinition,
    timeout_ms: int,
    base_url: str,
    first_selector_only: bool,
) -> None:
    selector_timeout = min(timeout_ms, SELECTOR_TIMEOUT_CAP_MS)

    def candidates(target: tuple[str, ...]) -> tuple[str, ...]:
        return target[:1] if first_selector_only else target

    if isinstance(step, Navigate):
        try:
            await page.goto(
                resolve_url(step.url, base_url),
                wait_until="domcontentloaded",
                timeout=timeout_ms,
            )
        except Exception as e:
            raise StepFailure(step.id, f"Navigation failed: {e}") from e
    elif isinstance(step, Click):

        async def click(selector: str) -> None:
            await page.click(selector, timeout=selector_timeout)

        await _first_matching(step.id, candidates(step.target), click, "click")
        if step.wait_for_navigation:
            try:
                await page.wait_for_load_state("domcontentloaded")
            except Exception as e:
                logger.debug("No load state after %s: %s", step.id, e)
    elif isinstance(step, Fill):

        async def fill(selector: str) -> None:
            await page.fill(selector, step.value, timeout=selector_timeout)

        await _first_matching(step.id, candidates(step.target), fill, "type into")
    elif isinstance(step, WaitFor):

        async def wait_for(selector: str) -> None:
            await page.wait_for_selector(selector, timeout=timeout_ms, state=step.state)

        await _first_matching(step.id, candidates(step.target), wait_for, "find")
    elif isinstance(step, Wait):
        await page.wait_for_timeout(step.duration_ms)
    else:
        assert_never(step)


async def capture_screenshot(page: Any, directory: Path | None, name: str) -> str | None:
    """Best-effort JPEG screenshot; returns the file name or None."""
    if directory is None:
        return None
    try:
        directory.mkdir(parents=True, exist_ok=True)
        filename = f"{name}.jpeg"
        await page.screenshot(
            path=str(directory / filename), type="jpeg", quality=80, full_page=True
        )
        return filename
    except Exception as e:
        logger.warning("Screenshot %s failed: %s", name, e)
        return None


async def run_step(
    page: Any,
    step: StepDefinition,
    *,
    default_timeout_ms: int,
    base_url: str = "",
    screenshot_dir: Path | None = None,
    first_selector_only: bool = False,
) -> StepResult:
    """Execute one step, retrying the whole step once after a short fixed delay.

    Returns a ``success`` result, or a ``skipped`` result for an optional step
    that failed twice. A non-optional step that fails twice raises
    :class:`AttemptFailure` carrying the finalized ``failed`` result.
    """
    timeout_ms = step.timeout_ms or default_timeout_ms
    started = time.perf_counter()
    retries = 0
    failure: StepFailure | None = None

    for attempt in range(MAX_TRIES):
        if attempt > 0:
            retries += 1
            await page.wait_for_timeout(RETRY_DELAY_MS)
        try:
            await _perform(page, step, timeout_ms, base_url, first_selector_only)
            failure = None
            break
        except StepFailure as e:
            failure = e
        except Exception as e:
            failure = StepFailure(step.id, str(e))

    duration_ms = int((time.perf_counter() - started) * 1000)

    if failure is None:
        shot = await capture_screenshot(page, screenshot_dir, step.id)
        return StepResult(
            id=step.id,
            type=step_kind(step),
            status="success",
            retries=retries,
            duration_ms=duration_ms,
            screenshots=[shot] if shot else [],
        )

    if step.optional:
        logger.info("Optional step %s skipped: %s", step.id, failure)
        return StepResult(
            id=step.id,
            type=step_kind(step),
            status="skipped",
            retries=retries,
            duration_ms=duration_ms,
            error=str(failure),
        )

    shot = await capture_screenshot(page, screenshot_dir, f"{step.id}_failure")
    result = StepResult(
        id=step.id,
        type=step_kind(step),
        status="failed",
        retries=retries,
        duration_ms=duration_ms,
        error=str(failure),
        screenshots=[shot] if shot else [],
    )
    raise AttemptFailure(step.id, failure, result)
