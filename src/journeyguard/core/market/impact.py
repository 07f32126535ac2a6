"""Business impact scoring of non-successful attempts.

Every FAIL/WARN validator, every friction signal and every hard FAILURE of an
attempt becomes a :class:`MarketRisk` with a 0-100 impact score derived from
the attempt's risk category, the signal's status, the page URL context and how
often the attempt has misbehaved.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable, Mapping

from ..ir.results import AttemptResult, MarketImpact, MarketRisk, Severity

REVENUE = "REVENUE"
LEAD = "LEAD"
TRUST = "TRUST/UX"
UX = "UX"

CATEGORY_SCORES = {REVENUE: 80, LEAD: 60, TRUST: 50, UX: 30}
STATUS_BONUS = {"FAIL": 15, "WARN": 8}

ATTEMPT_CATEGORIES = {
    "contact_form": LEAD,
    "newsletter_signup": LEAD,
    "signup": LEAD,
    "language_switch": TRUST,
    "login": TRUST,
    "auth": TRUST,
    "checkout": REVENUE,
    "payment": REVENUE,
    "search": UX,
}

# Checked in order; the first match names the context.
URL_CONTEXT_PATTERNS = (
    ("pricing", re.compile(r"pricing|price|plans|payment-method", re.I)),
    ("checkout", re.compile(r"checkout|cart|order|purchase", re.I)),
    ("signup", re.compile(r"signup|register|join|subscribe", re.I)),
    ("auth", re.compile(r"login|signin|logout|password", re.I)),
    ("account", re.compile(r"account|profile|settings|dashboard", re.I)),
)

CONTEXT_BOOSTS = {
    ("checkout", REVENUE): 10,
    ("signup", LEAD): 8,
    ("auth", TRUST): 8,
}

_CATEGORY_LABELS = {REVENUE: "Revenue", LEAD: "Lead Gen", TRUST: "Trust"}


def detect_url_context(url: str) -> str | None:
    for context, pattern in URL_CONTEXT_PATTERNS:
        if pattern.search(url or ""):
            return context
    return None


def calculate_impact_score(
    category: str, status: str = "WARN", page_url: str = "", frequency: int = 1
) -> int:
    score = CATEGORY_SCORES.get(category, CATEGORY_SCORES[UX])
    score += STATUS_BONUS.get(status, 0)
    score += CONTEXT_BOOSTS.get((detect_url_context(page_url), category), 0)
    multiplier = 1 + (min(frequency, 3) - 1) * 0.15
    # half-up rounding
    score = math.floor(score * multiplier + 0.5)
    return min(100, max(0, score))


def severity_from_score(score: int) -> Severity:
    if score >= 71:
        return "CRITICAL"
    if score >= 31:
        return "WARNING"
    return "INFO"


def attempt_category(attempt: AttemptResult) -> str:
    return ATTEMPT_CATEGORIES.get(attempt.attempt_id) or attempt.risk_category or UX


def _describe(attempt_id: str, message: str, category: str) -> str:
    return f"{_CATEGORY_LABELS.get(category, 'UX')}: {attempt_id} - {message}"


def analyze_market_impact(
    attempts: Iterable[AttemptResult],
    base_url: str = "",
    frequencies: Mapping[str, int] | None = None,
) -> MarketImpact:
    frequencies = frequencies or {}
    risks: list[MarketRisk] = []

    for attempt in attempts:
        # SKIPPED and NOT_APPLICABLE carry no validators or signals, SUCCESS is clean
        if attempt.outcome == "SUCCESS":
            continue
        category = attempt_category(attempt)
        frequency = frequencies.get(attempt.attempt_id, 1)
        page_url = attempt.page_url or base_url

        def risk(status: str, validator_id: str, validator_type: str, reason: str) -> MarketRisk:
            score = calculate_impact_score(category, status, page_url, frequency)
            return MarketRisk(
                attempt_id=attempt.attempt_id,
                validator_id=validator_id,
                validator_type=validator_type,
                category=category,
                severity=severity_from_score(score),
                impact_score=score,
                human_readable_reason=reason,
            )

        for validator in attempt.validators:
            if validator.status in ("FAIL", "WARN"):
                risks.append(
                    risk(
                        validator.status,
                        validator.id,
                        validator.type,
                        _describe(attempt.attempt_id, validator.message, category),
                    )
                )
        for signal in attempt.friction.signals:
            risks.append(
                risk(
                    "WARN",
                    signal.id,
                    "friction",
                    _describe(attempt.attempt_id, signal.description, category),
                )
            )
        if attempt.outcome == "FAILURE":
            risks.append(
                risk(
                    "FAIL",
                    f"outcome_{attempt.attempt_id}",
                    "outcome",
                    f"{attempt.attempt_id} attempt FAILED - user could not complete goal",
                )
            )

    risks.sort(key=lambda r: r.impact_score, reverse=True)
    counts = {"CRITICAL": 0, "WARNING": 0, "INFO": 0}
    for r in risks:
        counts[r.severity] += 1

    highest: Severity = "INFO"
    if counts["CRITICAL"]:
        highest = "CRITICAL"
    elif counts["WARNING"]:
        highest = "WARNING"
    return MarketImpact(highest_severity=highest, counts_by_severity=counts, risks=risks)
