"""Policy evaluation: thresholds over a run's aggregate signals.

``evaluate_policy`` is pure. A run calls it twice on purpose: once before the
integrity manifest exists, with the snapshot and manifest evidence marked
pending, and once after the manifest is written. The first result is stored in
the snapshot and feeds the verdict; the second decides the exit code.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..ir.results import (
    AttemptResult,
    BaselineDiff,
    FlowResult,
    MarketImpact,
    PolicyEvaluation,
    PolicyReason,
    Severity,
    is_executed,
)

EVIDENCE_KINDS = ("manifest", "screenshots", "snapshot")
SEVERITY_RANK = {"INFO": 0, "WARNING": 1, "CRITICAL": 2}


class PolicyDefinition(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, extra="forbid", frozen=True
    )

    name: str = "custom"
    fail_on_severity: Severity | None = "CRITICAL"
    max_warnings: int | None = None
    fail_on_new_regressions: bool = True
    require_baseline: bool = False
    fail_on_flow_failure: bool = True
    min_coverage: float | None = Field(default=None, ge=0, le=1)
    min_evidence_completeness: float | None = Field(default=None, ge=0, le=1)
    required_evidence: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class EvidenceMetrics:
    present: frozenset[str] = frozenset()
    pending: frozenset[str] = frozenset()

    @property
    def completeness(self) -> float:
        available = (self.present | self.pending) & set(EVIDENCE_KINDS)
        return round(len(available) / len(EVIDENCE_KINDS), 2)


@dataclass(frozen=True)
class PolicySignals:
    planned: int = 0
    executed: int = 0
    skip_reasons: Mapping[str, str] = field(default_factory=dict)
    counts_by_severity: Mapping[str, int] = field(default_factory=dict)
    flow_outcomes: Mapping[str, str] = field(default_factory=dict)
    baseline_found: bool = False
    baseline_diff: BaselineDiff | None = None
    evidence: EvidenceMetrics = field(default_factory=EvidenceMetrics)

    @property
    def coverage(self) -> float:
        if self.planned == 0:
            return 0.0
        return round(self.executed / self.planned, 2)


def collect_policy_signals(
    attempts: Iterable[AttemptResult],
    flows: Iterable[FlowResult],
    market_impact: MarketImpact,
    *,
    baseline_found: bool,
    baseline_diff: BaselineDiff | None,
    evidence: EvidenceMetrics,
) -> PolicySignals:
    attempts = list(attempts)
    return PolicySignals(
        planned=len(attempts),
        executed=sum(1 for a in attempts if is_executed(a.outcome)),
        skip_reasons={
            a.attempt_id: a.skip_reason or a.outcome
            for a in attempts
            if not is_executed(a.outcome)
        },
        counts_by_severity=dict(market_impact.counts_by_severity),
        flow_outcomes={f.flow_id: f.outcome for f in flows},
        baseline_found=baseline_found,
        baseline_diff=baseline_diff,
        evidence=evidence,
    )


def evaluate_policy(policy: PolicyDefinition, signals: PolicySignals) -> PolicyEvaluation:
    reasons: list[PolicyReason] = []
    counts = signals.counts_by_severity

    if policy.fail_on_severity is not None:
        floor = SEVERITY_RANK[policy.fail_on_severity]
        hits = sum(n for sev, n in counts.items() if SEVERITY_RANK.get(sev, 0) >= floor)
        if hits:
            reasons.append(
                PolicyReason(
                    code="SEVERITY_THRESHOLD",
                    message=f"{hits} risk(s) at or above {policy.fail_on_severity}",
                )
            )

    warnings = counts.get("WARNING", 0)
    if policy.max_warnings is not None and warnings > policy.max_warnings:
        reasons.append(
            PolicyReason(
                code="MAX_WARNINGS_EXCEEDED",
                message=f"{warnings} warning(s) exceed the limit of {policy.max_warnings}",
            )
        )

    diff = signals.baseline_diff
    if policy.fail_on_new_regressions and diff is not None and diff.compared:
        for attempt_id, change in diff.regressions.items():
            reasons.append(
                PolicyReason(
                    code="NEW_REGRESSION",
                    message=f"{attempt_id} regressed from {change.before} to {change.after}",
                )
            )

    if policy.require_baseline and not signals.baseline_found:
        reasons.append(
            PolicyReason(code="BASELINE_REQUIRED", message="No prior baseline exists for this target")
        )

    if policy.fail_on_flow_failure:
        for flow_id, outcome in signals.flow_outcomes.items():
            if outcome == "FAILURE":
                reasons.append(PolicyReason(code="FLOW_FAILURE", message=f"Flow {flow_id} failed"))

    if policy.min_coverage is not None and signals.coverage < policy.min_coverage:
        reasons.append(
            PolicyReason(
                code="COVERAGE_BELOW_MINIMUM",
                message=(
                    f"Coverage {signals.coverage:.2f} below minimum {policy.min_coverage:.2f} "
                    f"({signals.executed}/{signals.planned} executed)"
                ),
            )
        )

    evidence = signals.evidence
    if (
        policy.min_evidence_completeness is not None
        and evidence.completeness < policy.min_evidence_completeness
    ):
        reasons.append(
            PolicyReason(
                code="EVIDENCE_INCOMPLETE",
                message=(
                    f"Evidence completeness {evidence.completeness:.2f} below minimum "
                    f"{policy.min_evidence_completeness:.2f}"
                ),
            )
        )
    for kind in policy.required_evidence:
        # pending kinds are produced later in the run
        if kind not in evidence.present and kind not in evidence.pending:
            reasons.append(
                PolicyReason(code="EVIDENCE_MISSING", message=f"Required evidence missing: {kind}")
            )

    reasons.sort(key=lambda r: (r.code, r.message))
    passed = not reasons
    return PolicyEvaluation(
        passed=passed,
        exit_code=0 if passed else 1,
        reasons=reasons,
        summary={
            "policy": policy.name,
            "planned": signals.planned,
            "executed": signals.executed,
            "coverage": signals.coverage,
            "countsBySeverity": dict(sorted(counts.items())),
            "regressions": len(diff.regressions) if diff is not None else 0,
            "evidenceCompleteness": evidence.completeness,
            "pendingEvidence": sorted(evidence.pending),
        },
    )


def load_policy(source: str | Path) -> PolicyDefinition:
    """Resolve a preset name or read a JSON policy file."""
    from .presets import PRESETS

    if isinstance(source, str) and source in PRESETS:
        return PRESETS[source]
    path = Path(source)
    if not path.is_file():
        raise ValueError(f"Unknown policy preset or file: {source}")
    return PolicyDefinition.model_validate_json(path.read_text(encoding="utf-8"))
