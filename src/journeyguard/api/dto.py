from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..config.settings import settings
from ..core.ir.results import to_payload
from ..core.policy.policy import PolicyDefinition, load_policy
from ..core.runner.run import RunConfig, RunOutcome


class RunRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(..., description="Base URL of the target site")
    attempts: list[str] | None = Field(
        None, description="Attempt ids to run; defaults to the curated set"
    )
    flows: list[str] | None = Field(None, description="Flow ids to run; defaults to all flows")
    policy: str | None = Field(
        None, description="Policy preset name (startup, saas, enterprise) or JSON file path"
    )
    policy_definition: PolicyDefinition | None = Field(
        None, alias="policyDefinition", description="Inline policy, takes precedence over policy"
    )
    parallel: int = Field(settings.parallel, ge=1, le=16)
    fail_fast: bool = Field(settings.fail_fast, alias="failFast")
    update_baseline: bool = Field(False, alias="updateBaseline")

    def to_config(self) -> RunConfig:
        policy = self.policy_definition
        if policy is None and self.policy:
            policy = load_policy(self.policy)
        return RunConfig(
            url=self.url,
            attempts=self.attempts,
            flows=self.flows,
            policy=policy,
            parallel=self.parallel,
            fail_fast=self.fail_fast,
            update_baseline=self.update_baseline,
        )


class RunResponse(BaseModel):
    run_id: str
    verdict: str
    confidence: float
    exit_code: int
    status: str = "completed"
    snapshot: dict[str, Any]
    policy_evaluation: dict[str, Any] | None = None
    patterns: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_outcome(cls, outcome: RunOutcome) -> RunResponse:
        snapshot = outcome.snapshot
        verdict = snapshot.verdict
        return cls(
            run_id=snapshot.meta.run_id,
            verdict=verdict.verdict if verdict else "INSUFFICIENT_DATA",
            confidence=verdict.confidence.score if verdict else 0.0,
            exit_code=outcome.exit_code,
            snapshot=to_payload(snapshot),
            policy_evaluation=(
                to_payload(outcome.policy_evaluation) if outcome.policy_evaluation else None
            ),
            patterns=[to_payload(p) for p in outcome.patterns],
        )
