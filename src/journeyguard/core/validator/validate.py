"""Declarative post-condition checks run after an attempt's steps.

Validators never abort an attempt. Each check produces its own PASS/WARN/FAIL
result and an exception inside one check becomes that check's FAIL.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, assert_never

from ..executor.signals import ConsoleMessage
from ..ir.model import (
    ElementNotVisible,
    ElementVisible,
    HtmlLangAttribute,
    NoConsoleErrorsAbove,
    PageContainsAnyText,
    UrlIncludes,
    UrlMatches,
    ValidatorSpec,
)
from ..ir.results import SoftFailures, ValidatorResult

logger = logging.getLogger(__name__)

_VALIDATOR_TYPES: dict[type, str] = {
    ElementVisible: "elementVisible",
    ElementNotVisible: "elementNotVisible",
    PageContainsAnyText: "pageContainsAnyText",
    HtmlLangAttribute: "htmlLangAttribute",
    UrlIncludes: "urlIncludes",
    UrlMatches: "urlMatches",
    NoConsoleErrorsAbove: "noConsoleErrorsAbove",
}


def validator_type(spec: ValidatorSpec) -> str:
    return _VALIDATOR_TYPES[type(spec)]


async def _check(
    spec: ValidatorSpec, page: Any, console: list[ConsoleMessage]
) -> tuple[str, str, dict[str, Any]]:
    if isinstance(spec, ElementVisible):
        visible = await page.is_visible(spec.selector)
        if visible:
            return "PASS", f"Element {spec.selector} is visible", {"selector": spec.selector}
        return "FAIL", f"Element {spec.selector} is not visible", {"selector": spec.selector}

    if isinstance(spec, ElementNotVisible):
        visible = await page.is_visible(spec.selector)
        if not visible:
            return "PASS", f"Element {spec.selector} is not visible", {"selector": spec.selector}
        return "FAIL", f"Element {spec.selector} is unexpectedly visible", {"selector": spec.selector}

    if isinstance(spec, PageContainsAnyText):
        body = (await page.inner_text("body")).lower()
        found = [t for t in spec.text_list if t.lower() in body]
        if found:
            return "PASS", f"Page contains: {found[0]}", {"matched": found}
        return "FAIL", f"Page contains none of: {', '.join(spec.text_list)}", {"matched": []}

    if isinstance(spec, HtmlLangAttribute):
        lang = await page.get_attribute("html", "lang")
        evidence = {"expected": spec.lang, "actual": lang}
        if not lang:
            return "WARN", "html lang attribute is missing", evidence
        if lang.lower().startswith(spec.lang.lower()):
            return "PASS", f"html lang is {lang}", evidence
        return "FAIL", f"html lang is {lang}, expected {spec.lang}", evidence

    if isinstance(spec, UrlIncludes):
        url = page.url
        if spec.text in url:
            return "PASS", f"URL includes {spec.text}", {"url": url}
        return "FAIL", f"URL does not include {spec.text}", {"url": url}

    if isinstance(spec, UrlMatches):
        url = page.url
        if re.search(spec.pattern, url):
            return "PASS", f"URL matches {spec.pattern}", {"url": url}
        return "FAIL", f"URL does not match {spec.pattern}", {"url": url}

    if isinstance(spec, NoConsoleErrorsAbove):
        errors = [m.text for m in console if m.type == "error"]
        warnings = [m.text for m in console if m.type == "warning"]
        evidence = {"errors": errors[:10], "warnings": warnings[:10]}
        if errors:
            return "FAIL", f"{len(errors)} console error(s) logged", evidence
        if spec.min_severity == "warning" and warnings:
            return "WARN", f"{len(warnings)} console warning(s) logged", evidence
        return "PASS", "No console errors", evidence

    assert_never(spec)


async def run_validators(
    specs: Iterable[ValidatorSpec],
    page: Any,
    console: list[ConsoleMessage] | None = None,
) -> list[ValidatorResult]:
    results: list[ValidatorResult] = []
    for index, spec in enumerate(specs):
        kind = validator_type(spec)
        try:
            status, message, evidence = await _check(spec, page, console or [])
        except Exception as e:
            logger.warning("Validator %s raised: %s", kind, e)
            status, message, evidence = "FAIL", f"Validator error: {e}", {}
        results.append(
            ValidatorResult(
                id=f"{kind}_{index}",
                type=kind,
                status=status,
                message=message,
                evidence=evidence,
            )
        )
    return results


def analyze_soft_failures(results: list[ValidatorResult]) -> SoftFailures:
    failures = sum(1 for r in results if r.status == "FAIL")
    warns = sum(1 for r in results if r.status == "WARN")
    return SoftFailures(
        has_soft_failure=failures > 0 or warns > 0,
        failure_count=failures,
        warn_count=warns,
    )
