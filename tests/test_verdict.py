"""Tests for the canonical verdict."""

from __future__ import annotations

from journeyguard.core.ir.results import (
    AttemptResult,
    BaselineDiff,
    FlowResult,
    MarketImpact,
    MarketRisk,
    OutcomeChange,
    PolicyEvaluation,
    PolicyReason,
)
from journeyguard.core.verdict.verdict import compute_verdict, confidence_level


def _attempt(attempt_id: str, outcome: str, skip_reason: str | None = None) -> AttemptResult:
    return AttemptResult(attempt_id=attempt_id, outcome=outcome, skip_reason=skip_reason)


class TestVerdictStates:
    def test_nothing_executed_is_insufficient_data(self):
        attempts = [
            _attempt("login", "SKIPPED", "fail-fast"),
            _attempt("checkout", "NOT_APPLICABLE", "No cart detected"),
        ]

        verdict = compute_verdict(MarketImpact(), None, None, [], attempts)

        assert verdict.verdict == "INSUFFICIENT_DATA"
        assert verdict.key_findings == []
        assert "Skipped login: fail-fast" in verdict.limits
        assert "Not applicable checkout: No cart detected" in verdict.limits
        assert verdict.confidence.level == "low"

    def test_all_clean_is_observed(self):
        attempts = [_attempt("contact_form", "SUCCESS"), _attempt("signup", "SUCCESS")]

        verdict = compute_verdict(MarketImpact(), None, None, [], attempts)

        assert verdict.verdict == "OBSERVED"
        assert verdict.key_findings == ["Completed: contact_form, signup"]
        assert verdict.limits == ["No baseline comparison for this run"]
        assert verdict.confidence.score == 0.8
        assert verdict.confidence.level == "high"

    def test_failure_and_friction_are_partial(self):
        attempts = [
            _attempt("contact_form", "SUCCESS"),
            _attempt("login", "FAILURE"),
            _attempt("signup", "FRICTION"),
        ]
        impact = MarketImpact(
            highest_severity="CRITICAL",
            counts_by_severity={"CRITICAL": 1, "WARNING": 0, "INFO": 0},
            risks=[
                MarketRisk(
                    attempt_id="login",
                    validator_id="outcome_login",
                    validator_type="outcome",
                    category="TRUST/UX",
                    severity="CRITICAL",
                    impact_score=73,
                    human_readable_reason="login attempt FAILED",
                )
            ],
        )

        verdict = compute_verdict(impact, None, None, [], attempts)

        assert verdict.verdict == "PARTIAL"
        assert verdict.why == (
            "3 journeys executed: 1 failed, 1 with friction, "
            "0 with undiscovered elements, 0 regression(s)"
        )
        assert "Failed: login" in verdict.key_findings
        assert "Friction: signup" in verdict.key_findings
        assert "Highest market risk: CRITICAL (1 risk(s))" in verdict.key_findings
        # 0.3 + 0.5 - 0.25 - 0.1
        assert verdict.confidence.score == 0.45

    def test_regression_and_policy_failure_are_partial(self):
        attempts = [_attempt("login", "SUCCESS")]
        diff = BaselineDiff(
            compared=True,
            regressions={"signup": OutcomeChange(before="SUCCESS", after="FAILURE")},
        )
        policy = PolicyEvaluation(
            passed=False,
            exit_code=1,
            reasons=[PolicyReason(code="NEW_REGRESSION", message="signup regressed")],
        )

        verdict = compute_verdict(MarketImpact(), policy, diff, [], attempts)

        assert verdict.verdict == "PARTIAL"
        assert verdict.why.endswith("; policy failed")
        assert "Regressed since baseline: signup" in verdict.key_findings
        assert "Policy failed: NEW_REGRESSION" in verdict.key_findings
        assert verdict.confidence.reasons[1] == "Compared against a prior baseline"

    def test_skipped_items_only_appear_in_limits(self):
        attempts = [
            _attempt("contact_form", "SUCCESS"),
            _attempt("checkout", "SKIPPED", "fail-fast"),
        ]

        verdict = compute_verdict(MarketImpact(), None, None, [], attempts)

        assert verdict.verdict == "OBSERVED"
        assert all("checkout" not in f for f in verdict.key_findings)
        assert "Skipped checkout: fail-fast" in verdict.limits
        assert verdict.counts["planned"] == 2
        assert verdict.counts["executed"] == 1

    def test_discovery_failures_never_read_as_observed(self):
        attempts = [
            _attempt("contact_form", "DISCOVERY_FAILED"),
            _attempt("login", "DISCOVERY_FAILED"),
            _attempt("signup", "DISCOVERY_FAILED"),
        ]

        verdict = compute_verdict(MarketImpact(), None, None, [], attempts)

        assert verdict.verdict == "PARTIAL"
        assert "without failure" not in verdict.why
        assert "3 with undiscovered elements" in verdict.why
        assert "Could not locate elements for contact_form" in verdict.limits
        assert verdict.counts["succeeded"] == 0
        assert verdict.counts["discoveryFailed"] == 3
        # 0.3 + 0.5 - 0.25
        assert verdict.confidence.score == 0.55
        assert verdict.confidence.level == "medium"

    def test_flows_count_toward_the_verdict(self):
        flows = [FlowResult(flow_id="checkout_flow", outcome="FAILURE")]

        verdict = compute_verdict(MarketImpact(), None, None, flows, [])

        assert verdict.verdict == "PARTIAL"
        assert verdict.key_findings == ["Failed: checkout_flow"]

    def test_baseline_note_replaces_default_limit(self):
        diff = BaselineDiff(compared=False, note="Baseline created by this run")

        verdict = compute_verdict(MarketImpact(), None, diff, [], [_attempt("a", "SUCCESS")])

        assert verdict.limits == ["Baseline created by this run"]


class TestConfidenceLevel:
    def test_bands(self):
        assert confidence_level(0.8) == "high"
        assert confidence_level(0.79) == "medium"
        assert confidence_level(0.5) == "medium"
        assert confidence_level(0.49) == "low"
