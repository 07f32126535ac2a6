"""Tests for declarative validators and soft-failure analysis."""

from __future__ import annotations

import pytest
from journeyguard.core.executor.signals import ConsoleMessage
from journeyguard.core.ir.model import (
    ElementNotVisible,
    ElementVisible,
    HtmlLangAttribute,
    NoConsoleErrorsAbove,
    PageContainsAnyText,
    UrlIncludes,
    UrlMatches,
)
from journeyguard.core.ir.results import ValidatorResult
from journeyguard.core.validator.validate import analyze_soft_failures, run_validators


def _console(*entries: tuple[str, str]) -> list[ConsoleMessage]:
    return [ConsoleMessage(seq=i, type=t, text=x) for i, (t, x) in enumerate(entries, 1)]


class TestRunValidators:
    @pytest.mark.asyncio
    async def test_each_kind_passes(self, fake_page_factory):
        page = fake_page_factory(
            url="https://example.com/de/danke",
            visible={".success"},
            body_text="Vielen Dank! Thank you for your message.",
            lang="de-DE",
        )
        specs = [
            ElementVisible(".success"),
            ElementNotVisible(".error"),
            PageContainsAnyText(("submitted", "THANK YOU")),
            HtmlLangAttribute("de"),
            UrlIncludes("/danke"),
            UrlMatches(r"/de/\w+$"),
            NoConsoleErrorsAbove(),
        ]

        results = await run_validators(specs, page, _console(("log", "ready")))

        assert [r.status for r in results] == ["PASS"] * len(specs)
        assert [r.id for r in results] == [
            "elementVisible_0",
            "elementNotVisible_1",
            "pageContainsAnyText_2",
            "htmlLangAttribute_3",
            "urlIncludes_4",
            "urlMatches_5",
            "noConsoleErrorsAbove_6",
        ]

    @pytest.mark.asyncio
    async def test_failures(self, fake_page_factory):
        page = fake_page_factory(url="https://example.com/", visible={".error"}, lang="en")
        specs = [
            ElementVisible(".success"),
            ElementNotVisible(".error"),
            PageContainsAnyText(("confirmed",)),
            HtmlLangAttribute("de"),
            UrlIncludes("/thanks"),
        ]

        results = await run_validators(specs, page)

        assert [r.status for r in results] == ["FAIL"] * len(specs)

    @pytest.mark.asyncio
    async def test_missing_lang_is_warning(self, fake_page_factory):
        page = fake_page_factory(lang=None)

        (result,) = await run_validators([HtmlLangAttribute("de")], page)

        assert result.status == "WARN"

    @pytest.mark.asyncio
    async def test_console_severity_floor(self, fake_page_factory):
        page = fake_page_factory()
        warnings_only = _console(("warning", "deprecated API"))

        strict = await run_validators([NoConsoleErrorsAbove("warning")], page, warnings_only)
        lenient = await run_validators([NoConsoleErrorsAbove("error")], page, warnings_only)
        errors = await run_validators(
            [NoConsoleErrorsAbove("error")], page, _console(("error", "boom"))
        )

        assert strict[0].status == "WARN"
        assert lenient[0].status == "PASS"
        assert errors[0].status == "FAIL"
        assert errors[0].evidence["errors"] == ["boom"]

    @pytest.mark.asyncio
    async def test_exception_fails_only_that_check(self, fake_page_factory):
        page = fake_page_factory(visible={".ok"})

        async def broken(selector):
            raise RuntimeError("page crashed")

        page.inner_text = broken

        results = await run_validators(
            [PageContainsAnyText(("x",)), ElementVisible(".ok")], page
        )

        assert results[0].status == "FAIL"
        assert "page crashed" in results[0].message
        assert results[1].status == "PASS"


class TestSoftFailures:
    def test_counts(self):
        results = [
            ValidatorResult(id="a_0", type="a", status="PASS", message=""),
            ValidatorResult(id="b_1", type="b", status="WARN", message=""),
            ValidatorResult(id="c_2", type="c", status="FAIL", message=""),
            ValidatorResult(id="d_3", type="d", status="FAIL", message=""),
        ]

        summary = analyze_soft_failures(results)

        assert summary.has_soft_failure is True
        assert summary.failure_count == 2
        assert summary.warn_count == 1

    def test_all_pass(self):
        results = [ValidatorResult(id="a_0", type="a", status="PASS", message="")]
        assert analyze_soft_failures(results).has_soft_failure is False
        assert analyze_soft_failures([]).has_soft_failure is False
