"""Tests for the submit outcome evaluator decision table."""

from __future__ import annotations

import pytest
from journeyguard.core.evaluator.outcome import (
    ActionEvents,
    PageState,
    build_action_events,
    capture_page_state,
    evaluate_outcome,
    origin_of,
)
from journeyguard.core.executor.signals import ConsoleMessage, NetworkResponse

BASE = "https://shop.example.com"


def _state(url: str = f"{BASE}/contact", **kwargs) -> PageState:
    return PageState(url=url, **kwargs)


def _post(status: int = 200, url: str = f"{BASE}/api/contact", method: str = "POST"):
    return NetworkResponse(seq=1, method=method, url=url, status=status)


class TestDecisionTable:
    """Each row of the ordered table, first match wins."""

    def test_network_plus_dom_without_negative_is_high_success(self):
        before = _state(form_exists=True, inputs_filled_count=3)
        after = _state(form_exists=False)
        events = ActionEvents(base_origin=BASE, responses=(_post(201),))

        result = evaluate_outcome(before, after, events)

        assert result.status == "success"
        assert result.confidence == "high"
        assert result.evidence["formDisappeared"] is True

    def test_network_plus_navigation_is_high_success(self):
        before = _state()
        after = _state(url=f"{BASE}/thanks")
        events = ActionEvents(base_origin=BASE, responses=(_post(303),), nav_changed=True)

        result = evaluate_outcome(before, after, events)

        assert (result.status, result.confidence) == ("success", "high")

    def test_network_positive_with_console_error_is_medium_friction(self):
        before = _state(form_exists=True, inputs_filled_count=2)
        after = _state(form_exists=True, inputs_filled_count=0)
        events = ActionEvents(
            base_origin=BASE, responses=(_post(),), console_errors=("TypeError: x is undefined",)
        )

        result = evaluate_outcome(before, after, events)

        assert (result.status, result.confidence) == ("friction", "medium")

    def test_dom_positive_with_aria_invalid_is_low_friction(self):
        before = _state(form_exists=True, inputs_filled_count=2, aria_invalid_count=0)
        after = _state(form_exists=True, inputs_filled_count=1, aria_invalid_count=1)
        events = ActionEvents(base_origin=BASE)

        result = evaluate_outcome(before, after, events)

        assert (result.status, result.confidence) == ("friction", "low")

    def test_network_alone_is_medium_success(self):
        before = _state(form_exists=True)
        after = _state(form_exists=True)
        events = ActionEvents(base_origin=BASE, responses=(_post(204),))

        result = evaluate_outcome(before, after, events)

        assert (result.status, result.confidence) == ("success", "medium")

    def test_live_region_growth_alone_is_medium_success(self):
        before = _state(live_region_text_length=0)
        after = _state(live_region_text_length=24)

        result = evaluate_outcome(before, after, ActionEvents(base_origin=BASE))

        assert (result.status, result.confidence) == ("success", "medium")

    def test_alert_growth_without_positive_is_medium_failure(self):
        before = _state(has_alert_region=True, alert_text_length=0)
        after = _state(has_alert_region=True, alert_text_length=30)

        result = evaluate_outcome(before, after, ActionEvents(base_origin=BASE))

        assert (result.status, result.confidence) == ("failure", "medium")

    def test_console_error_alone_is_medium_failure(self):
        events = ActionEvents(base_origin=BASE, console_errors=("500 from /api",))

        result = evaluate_outcome(_state(), _state(), events)

        assert (result.status, result.confidence) == ("failure", "medium")

    def test_nothing_observed_is_low_failure(self):
        result = evaluate_outcome(_state(), _state(), ActionEvents(base_origin=BASE))

        assert (result.status, result.confidence) == ("failure", "low")
        assert result.reasons == []


class TestNetworkClassification:
    """Only same-origin POST/PUT with a safe status is network-positive."""

    @pytest.mark.parametrize("status", [200, 201, 202, 204, 302, 303])
    def test_safe_statuses(self, status):
        events = ActionEvents(base_origin=BASE, responses=(_post(status),))
        result = evaluate_outcome(_state(), _state(), events)
        assert result.status == "success"

    @pytest.mark.parametrize(
        "response",
        [
            _post(500),
            _post(301),
            _post(url="https://tracker.example.net/collect"),
            _post(method="GET"),
        ],
    )
    def test_not_network_positive(self, response):
        events = ActionEvents(base_origin=BASE, responses=(response,))
        result = evaluate_outcome(_state(), _state(), events)
        assert result.status == "failure"
        assert result.evidence["network"][0]["url"] == response.url

    def test_put_counts_as_submit(self):
        events = ActionEvents(base_origin=BASE, responses=(_post(method="PUT"),))
        assert evaluate_outcome(_state(), _state(), events).status == "success"

    def test_origin_of(self):
        assert origin_of("https://shop.example.com/a/b?c=1") == BASE
        assert origin_of("/relative") == ""


class TestPurity:
    def test_identical_inputs_give_identical_results(self):
        before = _state(form_exists=True, inputs_filled_count=2)
        after = _state(form_exists=True, inputs_filled_count=0, aria_invalid_count=2)
        events = ActionEvents(base_origin=BASE, responses=(_post(),))

        first = evaluate_outcome(before, after, events, step_id="submit")
        second = evaluate_outcome(before, after, events, step_id="submit")

        assert first == second
        assert first.step_id == "submit"


class TestEventsAndCapture:
    def test_build_action_events_keeps_only_console_errors(self):
        before = _state()
        after = _state(url=f"{BASE}/done")
        console = [
            ConsoleMessage(seq=1, type="warning", text="deprecated"),
            ConsoleMessage(seq=2, type="error", text="boom"),
        ]

        events = build_action_events(f"{BASE}/contact", before, after, [_post()], console)

        assert events.base_origin == BASE
        assert events.console_errors == ("boom",)
        assert events.nav_changed is True
        assert len(events.responses) == 1

    @pytest.mark.asyncio
    async def test_capture_page_state_maps_script_result(self, fake_page_factory):
        page = fake_page_factory(
            url=f"{BASE}/contact",
            states=[
                {
                    "formSelector": "#contact",
                    "formExists": True,
                    "inputsFilledCount": 2,
                    "inputsTotal": 3,
                    "ariaInvalidCount": 1,
                    "hasAlertRegion": True,
                    "alertTextLength": 12,
                    "liveRegionTextLength": 0,
                }
            ],
        )

        state = await capture_page_state(page)

        assert state.url == f"{BASE}/contact"
        assert state.form_selector == "#contact"
        assert state.form_exists is True
        assert state.inputs_filled_count == 2
        assert state.aria_invalid_count == 1
        assert state.alert_text_length == 12
