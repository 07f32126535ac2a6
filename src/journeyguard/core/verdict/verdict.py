"""The single canonical verdict of a run.

The state, the confidence score and every line of explanation are derived from
one set of counts, so the text can never contradict the state. Skipped and
not-applicable journeys show up in ``limits`` only.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from ..ir.results import (
    AttemptResult,
    BaselineDiff,
    Confidence,
    ConfidenceLevel,
    FlowResult,
    MarketImpact,
    PolicyEvaluation,
    Verdict,
    is_executed,
)


@dataclass(frozen=True)
class _Counts:
    planned: int
    executed: int
    succeeded: list[str]
    failed: list[str]
    friction: list[str]
    discovery_failed: list[str]
    skipped: list[tuple[str, str]]
    not_applicable: list[tuple[str, str]]
    regressions: list[str]

    def as_dict(self) -> dict[str, int]:
        return {
            "planned": self.planned,
            "executed": self.executed,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "friction": len(self.friction),
            "discoveryFailed": len(self.discovery_failed),
            "skipped": len(self.skipped),
            "notApplicable": len(self.not_applicable),
            "regressions": len(self.regressions),
        }


def _tally(
    attempts: list[AttemptResult], flows: list[FlowResult], diff: BaselineDiff | None
) -> _Counts:
    items = [(a.attempt_id, a.outcome, a.skip_reason) for a in attempts]
    items += [(f.flow_id, f.outcome, f.skip_reason) for f in flows]

    def ids(outcome: str) -> list[str]:
        return [i for i, o, _ in items if o == outcome]

    return _Counts(
        planned=len(items),
        executed=sum(1 for _, o, _ in items if is_executed(o)),
        succeeded=ids("SUCCESS"),
        failed=ids("FAILURE"),
        friction=ids("FRICTION"),
        discovery_failed=ids("DISCOVERY_FAILED"),
        skipped=[(i, r or "not scheduled") for i, o, r in items if o == "SKIPPED"],
        not_applicable=[(i, r or "not applicable") for i, o, r in items if o == "NOT_APPLICABLE"],
        regressions=sorted(diff.regressions) if diff is not None and diff.compared else [],
    )


def confidence_level(score: float) -> ConfidenceLevel:
    if score >= 0.8:
        return "high"
    if score >= 0.5:
        return "medium"
    return "low"


def _confidence(counts: _Counts, compared: bool) -> Confidence:
    ratio = counts.executed / counts.planned if counts.planned else 0.0
    score = 0.3 + 0.5 * ratio
    reasons = [f"{counts.executed} of {counts.planned} planned journeys executed"]
    if compared:
        score += 0.1
        reasons.append("Compared against a prior baseline")
    if counts.failed:
        score -= 0.25
        reasons.append(f"{len(counts.failed)} journey(s) failed")
    if counts.friction:
        score -= 0.1
        reasons.append(f"{len(counts.friction)} journey(s) showed friction")
    if counts.discovery_failed:
        score -= 0.25
        reasons.append(f"{len(counts.discovery_failed)} journey(s) could not locate elements")
    score = round(min(1.0, max(0.0, score)), 2)
    return Confidence(level=confidence_level(score), score=score, reasons=reasons)


def compute_verdict(
    market_impact: MarketImpact,
    policy_evaluation: PolicyEvaluation | None,
    baseline_diff: BaselineDiff | None,
    flows: Iterable[FlowResult],
    attempts: Iterable[AttemptResult],
) -> Verdict:
    counts = _tally(list(attempts), list(flows), baseline_diff)
    compared = baseline_diff is not None and baseline_diff.compared
    policy_failed = policy_evaluation is not None and not policy_evaluation.passed

    if counts.executed == 0:
        state = "INSUFFICIENT_DATA"
        why = (
            f"No journeys executed ({len(counts.skipped)} skipped, "
            f"{len(counts.not_applicable)} not applicable)"
        )
    elif not (
        counts.failed
        or counts.friction
        or counts.discovery_failed
        or counts.regressions
        or policy_failed
    ):
        state = "OBSERVED"
        why = f"All {counts.executed} executed journeys completed without failure or friction"
    else:
        state = "PARTIAL"
        parts = [
            f"{len(counts.failed)} failed",
            f"{len(counts.friction)} with friction",
            f"{len(counts.discovery_failed)} with undiscovered elements",
            f"{len(counts.regressions)} regression(s)",
        ]
        why = f"{counts.executed} journeys executed: " + ", ".join(parts)
        if policy_failed:
            why += "; policy failed"

    findings: list[str] = []
    if counts.succeeded:
        findings.append(f"Completed: {', '.join(counts.succeeded)}")
    if counts.failed:
        findings.append(f"Failed: {', '.join(counts.failed)}")
    if counts.friction:
        findings.append(f"Friction: {', '.join(counts.friction)}")
    if counts.regressions:
        findings.append(f"Regressed since baseline: {', '.join(counts.regressions)}")
    if counts.executed and market_impact.risks:
        findings.append(
            f"Highest market risk: {market_impact.highest_severity} "
            f"({len(market_impact.risks)} risk(s))"
        )
    if policy_failed:
        codes = sorted({r.code for r in policy_evaluation.reasons})
        findings.append(f"Policy failed: {', '.join(codes)}")

    limits = [f"Skipped {i}: {r}" for i, r in counts.skipped]
    limits += [f"Not applicable {i}: {r}" for i, r in counts.not_applicable]
    limits += [f"Could not locate elements for {i}" for i in counts.discovery_failed]
    if baseline_diff is not None and baseline_diff.note:
        limits.append(baseline_diff.note)
    elif not compared:
        limits.append("No baseline comparison for this run")

    return Verdict(
        verdict=state,
        confidence=_confidence(counts, compared),
        why=why,
        key_findings=findings,
        limits=limits,
        counts=counts.as_dict(),
    )
