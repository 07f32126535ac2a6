"""Outcome evaluator for submit-like actions.

Judges a single user action from four signal classes and never from
confirmation copy:

- network: a same-origin POST/PUT answered with a safe status
- navigation: the URL changed
- DOM: the form disappeared, got disabled or cleared, or a live region grew
- negative: aria-invalid grew, alert text grew, or the console logged an error

The decision table in :func:`evaluate_outcome` is total and ordered; its
confidence tiers are kept exactly as tuned, including the friction and
failure tie-breaks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from ..executor.signals import ConsoleMessage, NetworkResponse
from ..ir.results import OutcomeEvaluation

SAFE_STATUSES = frozenset({200, 201, 202, 204, 302, 303})
SUBMIT_METHODS = frozenset({"POST", "PUT"})

_STATE_SCRIPT = """(formSelector) => {
    const result = {
        formSelector: null,
        formExists: false,
        formDisabled: false,
        inputsFilledCount: 0,
        inputsTotal: 0,
        ariaInvalidCount: 0,
        hasAlertRegion: false,
        alertTextLength: 0,
        liveRegionTextLength: 0,
    };
    let form = formSelector ? document.querySelector(formSelector) : null;
    if (!form) form = document.querySelector('form');
    if (form) {
        result.formSelector = form.id ? '#' + form.id : null;
        result.formExists = true;
        result.formDisabled = !!form.getAttribute('disabled') || form.classList.contains('disabled');
        const inputs = Array.from(form.querySelectorAll('input, textarea, select'));
        result.inputsTotal = inputs.length;
        result.inputsFilledCount = inputs.filter((el) => (el.value || '').trim().length > 0).length;
        result.ariaInvalidCount = inputs.filter((el) => el.getAttribute('aria-invalid') === 'true').length;
    }
    const alertEl = document.querySelector('[role="alert"], .alert, .error, .invalid');
    if (alertEl) {
        result.hasAlertRegion = true;
        result.alertTextLength = (alertEl.textContent || '').trim().length;
    }
    const liveEl = document.querySelector('[aria-live]');
    if (liveEl) {
        result.liveRegionTextLength = (liveEl.textContent || '').trim().length;
    }
    return result;
}"""


@dataclass(frozen=True)
class PageState:
    url: str
    form_selector: str | None = None
    form_exists: bool = False
    form_disabled: bool = False
    inputs_filled_count: int = 0
    inputs_total: int = 0
    aria_invalid_count: int = 0
    has_alert_region: bool = False
    alert_text_length: int = 0
    live_region_text_length: int = 0


@dataclass(frozen=True)
class ActionEvents:
    base_origin: str
    responses: tuple[NetworkResponse, ...] = ()
    console_errors: tuple[str, ...] = ()
    nav_changed: bool = False


@dataclass
class _Evidence:
    network: list[dict[str, Any]] = field(default_factory=list)
    url_changed: bool = False
    form_cleared: bool = False
    form_disappeared: bool = False
    form_disabled: bool = False
    alert_region_delta: int = 0
    live_region_delta: int = 0
    aria_invalid_delta: int = 0
    console_errors: list[str] = field(default_factory=list)


async def capture_page_state(page: Any, form_selector: str | None = None) -> PageState:
    raw = await page.evaluate(_STATE_SCRIPT, form_selector) or {}
    return PageState(
        url=page.url,
        form_selector=raw.get("formSelector") or form_selector,
        form_exists=bool(raw.get("formExists")),
        form_disabled=bool(raw.get("formDisabled")),
        inputs_filled_count=int(raw.get("inputsFilledCount") or 0),
        inputs_total=int(raw.get("inputsTotal") or 0),
        aria_invalid_count=int(raw.get("ariaInvalidCount") or 0),
        has_alert_region=bool(raw.get("hasAlertRegion")),
        alert_text_length=int(raw.get("alertTextLength") or 0),
        live_region_text_length=int(raw.get("liveRegionTextLength") or 0),
    )


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return ""
    return f"{parsed.scheme}://{parsed.netloc}"


def build_action_events(
    base_url: str,
    before: PageState,
    after: PageState,
    responses: list[NetworkResponse],
    console: list[ConsoleMessage],
) -> ActionEvents:
    return ActionEvents(
        base_origin=origin_of(base_url),
        responses=tuple(responses),
        console_errors=tuple(m.text for m in console if m.type == "error"),
        nav_changed=before.url != after.url,
    )


def evaluate_outcome(
    before: PageState,
    after: PageState,
    events: ActionEvents,
    step_id: str | None = None,
) -> OutcomeEvaluation:
    reasons: list[str] = []
    evidence = _Evidence(
        url_changed=before.url != after.url,
        console_errors=list(events.console_errors),
    )

    network_positive = False
    for response in events.responses:
        origin_ok = bool(events.base_origin) and origin_of(response.url) == events.base_origin
        status_ok = response.status in SAFE_STATUSES
        evidence.network.append(
            {
                "method": response.method,
                "url": response.url,
                "status": response.status,
                "originOk": origin_ok,
                "statusOk": status_ok,
            }
        )
        if origin_ok and status_ok and response.method.upper() in SUBMIT_METHODS:
            network_positive = True
    if network_positive:
        reasons.append("Network submit succeeded (safe status and origin)")

    nav_positive = bool(events.nav_changed)
    if nav_positive:
        reasons.append("URL changed after submit")

    evidence.form_disappeared = before.form_exists and not after.form_exists
    evidence.form_disabled = after.form_disabled
    evidence.form_cleared = (
        before.inputs_filled_count > 0
        and after.inputs_filled_count < before.inputs_filled_count
    )
    evidence.alert_region_delta = after.alert_text_length - before.alert_text_length
    evidence.live_region_delta = after.live_region_text_length - before.live_region_text_length
    evidence.aria_invalid_delta = after.aria_invalid_count - before.aria_invalid_count

    dom_positive = (
        evidence.form_disappeared
        or evidence.form_disabled
        or evidence.form_cleared
        or evidence.live_region_delta > 0
    )
    if dom_positive:
        reasons.append(
            "Form outcome indicates completion (cleared/disabled/disappeared or live region updated)"
        )

    marker_negative = evidence.aria_invalid_delta > 0 or (
        after.has_alert_region and evidence.alert_region_delta > 0
    )
    if marker_negative:
        reasons.append("Error markers increased after submit")
    console_negative = len(events.console_errors) > 0
    if console_negative:
        reasons.append("Console errors after submit")

    any_positive = network_positive or nav_positive or dom_positive
    any_negative = marker_negative or console_negative

    if network_positive and (nav_positive or dom_positive) and not any_negative:
        status, confidence = "success", "high"
    elif any_positive and any_negative:
        status, confidence = "friction", "medium" if network_positive else "low"
    elif any_positive:
        status, confidence = "success", "medium"
    else:
        status, confidence = "failure", "medium" if any_negative else "low"

    return OutcomeEvaluation(
        step_id=step_id,
        status=status,
        confidence=confidence,
        reasons=reasons,
        evidence={
            "network": evidence.network,
            "urlChanged": evidence.url_changed,
            "formCleared": evidence.form_cleared,
            "formDisappeared": evidence.form_disappeared,
            "formDisabled": evidence.form_disabled,
            "alertRegionDelta": evidence.alert_region_delta,
            "liveRegionDelta": evidence.live_region_delta,
            "ariaInvalidDelta": evidence.aria_invalid_delta,
            "consoleErrors": evidence.console_errors,
        },
    )
