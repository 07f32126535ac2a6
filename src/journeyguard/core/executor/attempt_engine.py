"""Attempt engine: runs one attempt end to end on a single page.

Steps run in order through :func:`run_step`. Submit-like clicks are judged by
the outcome evaluator from before/after page state plus the console and
network traffic captured while they ran. After the steps, success conditions
decide SUCCESS vs FAILURE, validators record soft failures, and friction
signals turn a SUCCESS into FRICTION.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, assert_never

from ..errors import AttemptFailure, ElementNotFound
from ..evaluator.outcome import (
    build_action_events,
    capture_page_state,
    evaluate_outcome,
)
from ..ir.model import (
    AttemptDefinition,
    Click,
    SelectorCondition,
    StepDefinition,
    SuccessCondition,
    UrlCondition,
    ValidatorSpec,
)
from ..ir.results import (
    AttemptResult,
    Friction,
    FrictionSignal,
    OutcomeEvaluation,
    StepResult,
)
from ..registry.attempts import AttemptRegistry
from ..validator.validate import analyze_soft_failures, run_validators
from .signals import PageSignals, capture_signals
from .steps import run_step

logger = logging.getLogger(__name__)

SUCCESS_SELECTOR_TIMEOUT_MS = 3000
INTERACTION_KINDS = frozenset({"click", "type", "waitFor"})


@dataclass(frozen=True)
class FrictionThresholds:
    total_duration_ms: int = 2500
    step_duration_ms: int = 1500
    retry_count: int = 1


def _step_signals(result: StepResult, thresholds: FrictionThresholds) -> list[FrictionSignal]:
    signals = []
    if result.status != "success":
        return signals
    if result.duration_ms > thresholds.step_duration_ms:
        signals.append(
            FrictionSignal(
                id="slow_step_execution",
                description="Step took longer than threshold",
                metric="stepDurationMs",
                threshold=thresholds.step_duration_ms,
                observed_value=result.duration_ms,
                severity="medium",
                affected_step_id=result.id,
            )
        )
    if result.retries > thresholds.retry_count:
        signals.append(
            FrictionSignal(
                id="multiple_retries_required",
                description="Step required retry attempts",
                metric="retryCount",
                threshold=thresholds.retry_count,
                observed_value=result.retries,
                severity="high",
                affected_step_id=result.id,
            )
        )
    return signals


def _signal_reason(signal: FrictionSignal) -> str:
    if signal.metric == "stepDurationMs":
        return (
            f'Step "{signal.affected_step_id}" took {int(signal.observed_value)}ms '
            f"(threshold: {int(signal.threshold)}ms)"
        )
    if signal.metric == "retryCount":
        return f'Step "{signal.affected_step_id}" required {int(signal.observed_value)} retries'
    if signal.metric == "totalDurationMs":
        return (
            f"Attempt took {int(signal.observed_value)}ms total "
            f"(threshold: {int(signal.threshold)}ms)"
        )
    return f'Submit "{signal.affected_step_id}" showed mixed outcome signals'


async def check_success_conditions(
    page: Any, conditions: tuple[SuccessCondition, ...]
) -> str | None:
    """Return the reason of the first condition met, or None.

    An attempt without conditions succeeds once all its steps completed.
    """
    if not conditions:
        return "All steps completed"
    for condition in conditions:
        if isinstance(condition, UrlCondition):
            url = page.url
            if re.search(condition.pattern, url):
                return f"URL matched: {url}"
        elif isinstance(condition, SelectorCondition):
            try:
                await page.wait_for_selector(
                    condition.target, timeout=SUCCESS_SELECTOR_TIMEOUT_MS, state="visible"
                )
                return f"Success element visible: {condition.target}"
            except Exception:  # noqa: S112 - try the next condition
                continue
        else:
            assert_never(condition)
    return None


async def evaluated_step(
    page: Any,
    step: StepDefinition,
    signals: PageSignals,
    *,
    base_url: str,
    default_timeout_ms: int,
    screenshot_dir: Path | None,
    first_selector_only: bool = False,
) -> tuple[StepResult, OutcomeEvaluation | None]:
    """Run a step; submit-like clicks also get an outcome evaluation.

    Raises :class:`AttemptFailure` exactly like :func:`run_step`.
    """
    if not (isinstance(step, Click) and step.evaluate_outcome):
        result = await run_step(
            page,
            step,
            default_timeout_ms=default_timeout_ms,
            base_url=base_url,
            screenshot_dir=screenshot_dir,
            first_selector_only=first_selector_only,
        )
        return result, None

    try:
        before = await capture_page_state(page)
    except Exception as e:
        logger.warning("Could not capture state before %s: %s", step.id, e)
        before = None
    mark = signals.mark()

    result = await run_step(
        page,
        step,
        default_timeout_ms=default_timeout_ms,
        base_url=base_url,
        screenshot_dir=screenshot_dir,
        first_selector_only=first_selector_only,
    )
    if before is None or result.status != "success":
        return result, None

    try:
        after = await capture_page_state(page, before.form_selector)
    except Exception as e:
        logger.warning("Could not capture state after %s: %s", step.id, e)
        return result, None

    events = build_action_events(
        base_url,
        before,
        after,
        signals.responses_since(mark),
        signals.console_since(mark),
    )
    return result, evaluate_outcome(before, after, events, step_id=step.id)


def _is_discovery_failure(failure: AttemptFailure, steps: list[StepResult]) -> bool:
    if not isinstance(failure.cause, ElementNotFound):
        return False
    return not any(
        s.status == "success" and s.type in INTERACTION_KINDS for s in steps[:-1]
    )


class AttemptEngine:
    def __init__(
        self,
        registry: AttemptRegistry,
        thresholds: FrictionThresholds | None = None,
        timeout_ms: int = 30000,
    ) -> None:
        self.registry = registry
        self.thresholds = thresholds or FrictionThresholds()
        self.timeout_ms = timeout_ms

    async def execute(
        self,
        page: Any,
        attempt_id: str,
        base_url: str,
        artifacts_dir: Path | None = None,
        validators: tuple[ValidatorSpec, ...] | None = None,
    ) -> AttemptResult:
        definition = self.registry.get(attempt_id)
        async with capture_signals(page) as signals:
            return await self._execute(
                page, definition, base_url, artifacts_dir, validators, signals
            )

    async def _execute(
        self,
        page: Any,
        definition: AttemptDefinition,
        base_url: str,
        artifacts_dir: Path | None,
        validators: tuple[ValidatorSpec, ...] | None,
        signals: PageSignals,
    ) -> AttemptResult:
        started = time.perf_counter()
        steps: list[StepResult] = []
        evaluations: list[OutcomeEvaluation] = []
        friction_signals: list[FrictionSignal] = []

        def elapsed_ms() -> int:
            return int((time.perf_counter() - started) * 1000)

        def base(**fields: Any) -> AttemptResult:
            return AttemptResult(
                attempt_id=definition.id,
                attempt_name=definition.name,
                risk_category=definition.risk_category,
                steps=steps,
                outcome_evaluations=evaluations,
                total_duration_ms=elapsed_ms(),
                page_url=getattr(page, "url", None),
                **fields,
            )

        try:
            for step in definition.steps:
                result, evaluation = await evaluated_step(
                    page,
                    step,
                    signals,
                    base_url=base_url,
                    default_timeout_ms=self.timeout_ms,
                    screenshot_dir=artifacts_dir,
                )
                steps.append(result)
                friction_signals.extend(_step_signals(result, self.thresholds))
                if evaluation is not None:
                    evaluations.append(evaluation)
                    if evaluation.status == "friction":
                        friction_signals.append(
                            FrictionSignal(
                                id="submit_outcome_friction",
                                description="Submit showed both success and error signals",
                                metric="submitOutcome",
                                threshold=0,
                                observed_value=1,
                                severity="medium",
                                affected_step_id=step.id,
                            )
                        )
        except AttemptFailure as failure:
            steps.append(failure.result)
            outcome = (
                "DISCOVERY_FAILED" if _is_discovery_failure(failure, steps) else "FAILURE"
            )
            logger.info("Attempt %s %s: %s", definition.id, outcome, failure)
            return base(outcome=outcome, error=str(failure))
        except Exception as e:
            logger.exception("Attempt %s raised", definition.id)
            return base(outcome="FAILURE", error=f"Attempt error: {e}")

        success_reason = await check_success_conditions(page, definition.success_conditions)
        if success_reason is None:
            return base(
                outcome="FAILURE",
                error="Success conditions not met after all steps completed",
            )

        specs = definition.validators if validators is None else validators
        validator_results = await run_validators(specs, page, signals.console_messages)
        soft_failures = analyze_soft_failures(validator_results)

        total_ms = elapsed_ms()
        if total_ms > self.thresholds.total_duration_ms:
            friction_signals.append(
                FrictionSignal(
                    id="slow_total_duration",
                    description="Total attempt duration exceeded threshold",
                    metric="totalDurationMs",
                    threshold=self.thresholds.total_duration_ms,
                    observed_value=total_ms,
                    severity="low",
                )
            )

        is_friction = bool(friction_signals)
        count = len(friction_signals)
        friction = Friction(
            is_friction=is_friction,
            signals=friction_signals,
            reasons=[_signal_reason(s) for s in friction_signals],
            summary=(
                f"User succeeded, but encountered {count} friction "
                f"{'signal' if count == 1 else 'signals'}"
                if is_friction
                else None
            ),
            metrics={
                "totalDurationMs": total_ms,
                "stepCount": len(steps),
                "totalRetries": sum(s.retries for s in steps),
                "maxStepDurationMs": max((s.duration_ms for s in steps), default=0),
            },
        )
        return base(
            outcome="FRICTION" if is_friction else "SUCCESS",
            friction=friction,
            validators=validator_results,
            soft_failures=soft_failures,
            success_reason=success_reason,
        )
