"""Result records shared by the pipeline and every reporter.

Field names serialize in camelCase (``attemptId``, ``durationMs``...), which is
the stable on-disk and over-the-wire shape of a run snapshot.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Outcome = Literal[
    "SUCCESS",
    "FAILURE",
    "FRICTION",
    "SKIPPED",
    "NOT_APPLICABLE",
    "DISCOVERY_FAILED",
]
StepStatus = Literal["pending", "success", "failed", "skipped"]
ValidatorStatus = Literal["PASS", "WARN", "FAIL"]
Severity = Literal["INFO", "WARNING", "CRITICAL"]
ConfidenceLevel = Literal["low", "medium", "high"]

EXECUTED_OUTCOMES = frozenset({"SUCCESS", "FAILURE", "FRICTION", "DISCOVERY_FAILED"})


def is_executed(outcome: str) -> bool:
    return outcome in EXECUTED_OUTCOMES


class Record(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, frozen=True
    )


def to_payload(record: BaseModel) -> dict[str, Any]:
    """JSON-ready dict with the stable camelCase field names."""
    return record.model_dump(by_alias=True, mode="json")


class StepResult(Record):
    id: str
    type: str
    status: StepStatus = "pending"
    retries: int = 0
    duration_ms: int = 0
    error: str | None = None
    screenshots: list[str] = Field(default_factory=list)


class FrictionSignal(Record):
    id: str
    description: str
    metric: str
    threshold: float
    observed_value: float
    severity: Literal["low", "medium", "high"]
    affected_step_id: str | None = None


class Friction(Record):
    is_friction: bool = False
    signals: list[FrictionSignal] = Field(default_factory=list)
    reasons: list[str] = Field(default_factory=list)
    summary: str | None = None
    metrics: dict[str, float] = Field(default_factory=dict)


class ValidatorResult(Record):
    id: str
    type: str
    status: ValidatorStatus
    message: str
    evidence: dict[str, Any] = Field(default_factory=dict)


class SoftFailures(Record):
    has_soft_failure: bool = False
    failure_count: int = 0
    warn_count: int = 0


class OutcomeEvaluation(Record):
    step_id: str | None = None
    status: Literal["success", "friction", "failure"]
    confidence: ConfidenceLevel
    reasons: list[str] = Field(default_factory=list)
    evidence: dict[str, Any] = Field(default_factory=dict)


class AttemptResult(Record):
    attempt_id: str
    attempt_name: str = ""
    risk_category: str = "UX"
    outcome: Outcome
    steps: list[StepResult] = Field(default_factory=list)
    friction: Friction = Field(default_factory=Friction)
    validators: list[ValidatorResult] = Field(default_factory=list)
    soft_failures: SoftFailures = Field(default_factory=SoftFailures)
    outcome_evaluations: list[OutcomeEvaluation] = Field(default_factory=list)
    success_reason: str | None = None
    skip_reason: str | None = None
    page_url: str | None = None
    total_duration_ms: int = 0
    error: str | None = None


class FlowResult(Record):
    flow_id: str
    flow_name: str = ""
    risk_category: str = "UX"
    outcome: Outcome
    steps_executed: int = 0
    steps_total: int = 0
    outcome_evaluations: list[OutcomeEvaluation] = Field(default_factory=list)
    skip_reason: str | None = None
    error: str | None = None


class MarketRisk(Record):
    attempt_id: str
    validator_id: str
    validator_type: str
    category: str
    severity: Severity
    impact_score: int
    human_readable_reason: str


class MarketImpact(Record):
    highest_severity: Severity = "INFO"
    counts_by_severity: dict[str, int] = Field(
        default_factory=lambda: {"CRITICAL": 0, "WARNING": 0, "INFO": 0}
    )
    risks: list[MarketRisk] = Field(default_factory=list)


class OutcomeChange(Record):
    before: str
    after: str


class BaselineDiff(Record):
    compared: bool = False
    regressions: dict[str, OutcomeChange] = Field(default_factory=dict)
    improvements: dict[str, OutcomeChange] = Field(default_factory=dict)
    note: str | None = None


class Baseline(Record):
    url: str
    site_slug: str
    created_at: str
    run_id: str | None = None
    outcomes: dict[str, str] = Field(default_factory=dict)


class BaselineStatus(Record):
    found: bool = False
    created_this_run: bool = False
    usable: bool = True
    path: str | None = None


class PolicyReason(Record):
    code: str
    message: str


class PolicyEvaluation(Record):
    passed: bool
    exit_code: int
    reasons: list[PolicyReason] = Field(default_factory=list)
    summary: dict[str, Any] = Field(default_factory=dict)


class Confidence(Record):
    level: ConfidenceLevel
    score: float
    reasons: list[str] = Field(default_factory=list)


class Verdict(Record):
    verdict: Literal["OBSERVED", "PARTIAL", "INSUFFICIENT_DATA"]
    confidence: Confidence
    why: str
    key_findings: list[str] = Field(default_factory=list)
    limits: list[str] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)


class RunMeta(Record):
    url: str
    run_id: str
    timestamp: str
    site_slug: str = ""


class RunSnapshot(Record):
    meta: RunMeta
    attempts: list[AttemptResult] = Field(default_factory=list)
    flows: list[FlowResult] = Field(default_factory=list)
    market_impact: MarketImpact = Field(default_factory=MarketImpact)
    baseline: BaselineStatus = Field(default_factory=BaselineStatus)
    baseline_diff: BaselineDiff | None = None
    verdict: Verdict | None = None
    policy_evaluation: PolicyEvaluation | None = None


class Pattern(Record):
    type: Literal[
        "repeated_skipped_attempts",
        "recurring_friction",
        "confidence_degradation",
        "single_point_failure",
    ]
    path_name: str
    confidence: ConfidenceLevel
    evidence: dict[str, Any] = Field(default_factory=dict)
    summary: str
    why_it_matters: str = ""
    recommended_focus: str = ""
