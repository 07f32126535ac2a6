from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from ..errors import AttemptFailure
from ..ir.model import FlowDefinition
from ..ir.results import FlowResult, OutcomeEvaluation
from .attempt_engine import evaluated_step
from .signals import capture_signals

logger = logging.getLogger(__name__)


async def run_flow(
    page: Any,
    flow: FlowDefinition,
    base_url: str,
    *,
    timeout_ms: int = 30000,
    artifacts_dir: Path | None = None,
) -> FlowResult:
    """Run a curated flow using only the first selector of each target.

    A failed step ends the flow as FAILURE. Submit evaluations decide the rest:
    any ``failure`` evaluation is a FAILURE, any ``friction`` a FRICTION.
    """
    evaluations: list[OutcomeEvaluation] = []
    executed = 0

    def result(outcome: str, error: str | None = None) -> FlowResult:
        return FlowResult(
            flow_id=flow.id,
            flow_name=flow.name,
            risk_category=flow.risk_category,
            outcome=outcome,
            steps_executed=executed,
            steps_total=len(flow.steps),
            outcome_evaluations=evaluations,
            error=error,
        )

    async with capture_signals(page) as signals:
        try:
            for step in flow.steps:
                _, evaluation = await evaluated_step(
                    page,
                    step,
                    signals,
                    base_url=base_url,
                    default_timeout_ms=timeout_ms,
                    screenshot_dir=artifacts_dir,
                    first_selector_only=True,
                )
                executed += 1
                if evaluation is not None:
                    evaluations.append(evaluation)
        except AttemptFailure as failure:
            executed += 1
            logger.info("Flow %s failed: %s", flow.id, failure)
            return result("FAILURE", str(failure))
        except Exception as e:
            logger.exception("Flow %s raised", flow.id)
            return result("FAILURE", f"Flow error: {e}")

    statuses = {e.status for e in evaluations}
    if "failure" in statuses:
        return result("FAILURE", "Submit outcome evaluated as failure")
    if "friction" in statuses:
        return result("FRICTION")
    return result("SUCCESS")
