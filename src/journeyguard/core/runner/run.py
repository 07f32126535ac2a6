"""Run orchestration.

A run executes attempts and flows against one target, then derives market
impact, the baseline diff, the policy evaluation and the verdict, persists the
snapshot and the integrity manifest, and reports cross-run patterns.

Policy is evaluated twice on purpose. The first pass runs before the snapshot
and manifest exist (that evidence is pending); its result is stored in the
snapshot and feeds the verdict. The second pass runs after the manifest is
written and decides the exit code.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from ...config.settings import settings
from ...runtime.storage import (
    SNAPSHOT_NAME,
    attempt_screenshot_dir,
    evidence_kinds,
    run_artifact_paths,
    write_json,
    write_manifest,
)
from ..baseline.baseline import (
    BaselineStore,
    compare_to_baseline,
    create_baseline_from_snapshot,
    url_to_slug,
)
from ..errors import BaselineUnusable
from ..executor.attempt_engine import AttemptEngine, FrictionThresholds
from ..executor.flow_executor import run_flow
from ..executor.parallel import Skipped, execute_parallel
from ..executor.relevance import SiteIntrospection, check_relevance, inspect_site
from ..ir.results import (
    AttemptResult,
    BaselineDiff,
    BaselineStatus,
    FlowResult,
    Pattern,
    PolicyEvaluation,
    RunMeta,
    RunSnapshot,
    to_payload,
)
from ..market.impact import analyze_market_impact
from ..patterns.analyzer import analyze_patterns, load_recent_runs
from ..policy.policy import (
    EvidenceMetrics,
    PolicyDefinition,
    collect_policy_signals,
    evaluate_policy,
)
from ..registry.attempts import AttemptRegistry
from ..registry.flows import FlowRegistry
from ..verdict.verdict import compute_verdict

logger = logging.getLogger(__name__)

FAIL_FAST_SKIP_REASON = "Not started: run stopped after a failure (fail-fast)"
PENDING_EVIDENCE = frozenset({"snapshot", "manifest"})


class PagePool(Protocol):
    async def launch(self) -> None: ...

    def page(self) -> Any: ...

    async def close(self) -> None: ...


@dataclass
class RunConfig:
    url: str
    attempts: list[str] | None = None
    flows: list[str] | None = None
    policy: PolicyDefinition | None = None
    parallel: int = settings.parallel
    fail_fast: bool = settings.fail_fast
    timeout_ms: int = settings.attempt_timeout_ms
    artifacts_root: str = settings.artifacts_root
    storage_dir: str = settings.storage_dir
    enable_screenshots: bool = settings.enable_screenshots
    enable_flows: bool = settings.enable_flows
    pattern_window: int = settings.pattern_window
    introspect: bool = True
    update_baseline: bool = False
    run_id: str | None = None
    thresholds: FrictionThresholds = field(default_factory=FrictionThresholds)


@dataclass(frozen=True)
class RunOutcome:
    snapshot: RunSnapshot
    policy_evaluation: PolicyEvaluation | None
    patterns: list[Pattern]
    run_dir: Path

    @property
    def exit_code(self) -> int:
        return self.policy_evaluation.exit_code if self.policy_evaluation else 0


def new_run_id(now: datetime) -> str:
    return f"{now.strftime('%Y%m%dT%H%M%SZ')}-{uuid.uuid4().hex[:8]}"


def _failure_frequencies(history: list[RunSnapshot]) -> dict[str, int]:
    """1 + number of prior runs in which each attempt did not succeed."""
    counts: Counter[str] = Counter()
    for run in history:
        for attempt in run.attempts:
            if attempt.outcome in ("FAILURE", "FRICTION", "DISCOVERY_FAILED"):
                counts[attempt.attempt_id] += 1
    return {attempt_id: n + 1 for attempt_id, n in counts.items()}


class RunOrchestrator:
    def __init__(
        self,
        config: RunConfig,
        pool: PagePool | None = None,
        attempt_registry: AttemptRegistry | None = None,
        flow_registry: FlowRegistry | None = None,
    ) -> None:
        if pool is None:
            from ...adapters.browser_pool import BrowserPool

            pool = BrowserPool()
        self.config = config
        self.pool = pool
        self.attempts = attempt_registry or AttemptRegistry.default()
        self.flows = flow_registry or FlowRegistry.default()
        self.engine = AttemptEngine(self.attempts, config.thresholds, config.timeout_ms)
        self._stopped = False

    def _should_stop(self) -> bool:
        return self.config.fail_fast and self._stopped

    async def _introspect(self) -> SiteIntrospection | None:
        if not self.config.introspect:
            return None
        try:
            async with self.pool.page() as page:
                await page.goto(
                    self.config.url, wait_until="domcontentloaded", timeout=self.config.timeout_ms
                )
                return await inspect_site(page)
        except Exception as e:
            logger.warning("Site introspection failed, treating all attempts as applicable: %s", e)
            return None

    async def _run_attempt(self, attempt_id: str, screenshots: Path) -> AttemptResult:
        shot_dir = (
            attempt_screenshot_dir(screenshots, attempt_id)
            if self.config.enable_screenshots
            else None
        )
        try:
            async with self.pool.page() as page:
                result = await self.engine.execute(page, attempt_id, self.config.url, shot_dir)
        except Exception as e:
            logger.exception("Attempt %s crashed", attempt_id)
            definition = self.attempts.get(attempt_id)
            result = AttemptResult(
                attempt_id=attempt_id,
                attempt_name=definition.name,
                risk_category=definition.risk_category,
                outcome="FAILURE",
                error=f"Attempt error: {e}",
            )
        if result.outcome == "FAILURE":
            self._stopped = True
        logger.info("Attempt %s: %s", attempt_id, result.outcome)
        return result

    async def _run_attempts(self, screenshots: Path) -> list[AttemptResult]:
        ids = self.config.attempts or self.attempts.default_ids()
        definitions = [self.attempts.get(i) for i in ids]
        introspection = await self._introspect()

        results: dict[str, AttemptResult] = {}
        runnable: list[str] = []
        for definition in definitions:
            applicable, reason = check_relevance(definition, introspection)
            if applicable:
                runnable.append(definition.id)
            else:
                results[definition.id] = AttemptResult(
                    attempt_id=definition.id,
                    attempt_name=definition.name,
                    risk_category=definition.risk_category,
                    outcome="NOT_APPLICABLE",
                    skip_reason=reason,
                )

        outputs = await execute_parallel(
            runnable,
            lambda attempt_id: self._run_attempt(attempt_id, screenshots),
            max_concurrency=max(1, self.config.parallel),
            should_stop=self._should_stop,
        )
        for attempt_id, output in zip(runnable, outputs):
            if isinstance(output, Skipped):
                definition = self.attempts.get(attempt_id)
                output = AttemptResult(
                    attempt_id=attempt_id,
                    attempt_name=definition.name,
                    risk_category=definition.risk_category,
                    outcome="SKIPPED",
                    skip_reason=FAIL_FAST_SKIP_REASON,
                )
            results[attempt_id] = output
        return [results[d.id] for d in definitions]

    async def _run_flows(self, screenshots: Path) -> list[FlowResult]:
        if not self.config.enable_flows:
            return []
        ids = self.config.flows if self.config.flows is not None else self.flows.default_ids()
        results = []
        for flow in (self.flows.get(i) for i in ids):
            if self._should_stop():
                results.append(
                    FlowResult(
                        flow_id=flow.id,
                        flow_name=flow.name,
                        risk_category=flow.risk_category,
                        outcome="SKIPPED",
                        steps_total=len(flow.steps),
                        skip_reason=FAIL_FAST_SKIP_REASON,
                    )
                )
                continue
            shot_dir = (
                attempt_screenshot_dir(screenshots, flow.id)
                if self.config.enable_screenshots
                else None
            )
            try:
                async with self.pool.page() as page:
                    result = await run_flow(
                        page,
                        flow,
                        self.config.url,
                        timeout_ms=self.config.timeout_ms,
                        artifacts_dir=shot_dir,
                    )
            except Exception as e:
                logger.exception("Flow %s crashed", flow.id)
                result = FlowResult(
                    flow_id=flow.id,
                    flow_name=flow.name,
                    risk_category=flow.risk_category,
                    outcome="FAILURE",
                    steps_total=len(flow.steps),
                    error=f"Flow error: {e}",
                )
            if result.outcome == "FAILURE":
                self._stopped = True
            results.append(result)
        return results

    def _baseline(
        self, draft: RunSnapshot
    ) -> tuple[BaselineStatus, BaselineDiff | None]:
        store = BaselineStore(self.config.storage_dir)
        slug = draft.meta.site_slug
        path = str(store.path_for(slug))
        try:
            baseline = store.load(slug)
        except BaselineUnusable as e:
            logger.warning("%s", e)
            return (
                BaselineStatus(found=True, usable=False, path=path),
                BaselineDiff(compared=False, note=f"Baseline unusable, comparison skipped: {e}"),
            )

        if baseline is None:
            try:
                store.save(create_baseline_from_snapshot(draft))
            except OSError as e:
                logger.warning("Could not save baseline for %s: %s", slug, e)
                return BaselineStatus(found=False, path=path), None
            return BaselineStatus(found=False, created_this_run=True, path=path), None

        diff = compare_to_baseline(baseline, draft)
        if self.config.update_baseline:
            try:
                store.save(create_baseline_from_snapshot(draft))
            except OSError as e:
                logger.warning("Could not update baseline for %s: %s", slug, e)
        return BaselineStatus(found=True, path=path), diff

    async def execute(self) -> RunOutcome:
        config = self.config
        now = datetime.now(timezone.utc)
        run_id = config.run_id or new_run_id(now)
        meta = RunMeta(
            url=config.url,
            run_id=run_id,
            timestamp=now.isoformat(),
            site_slug=url_to_slug(config.url),
        )
        artifacts_root = Path(config.artifacts_root)
        # validate ids before any browser work
        for attempt_id in config.attempts or []:
            self.attempts.get(attempt_id)
        for flow_id in config.flows or []:
            self.flows.get(flow_id)

        history = load_recent_runs(
            artifacts_root, meta.site_slug, exclude_run_id=run_id, window=config.pattern_window
        )
        run_dir, screenshots = run_artifact_paths(artifacts_root, run_id)

        await self.pool.launch()
        try:
            logger.info("Run %s started for %s", run_id, config.url)
            attempts = await self._run_attempts(screenshots)
            flows = await self._run_flows(screenshots)
        finally:
            await self.pool.close()

        market = analyze_market_impact(attempts, config.url, _failure_frequencies(history))
        draft = RunSnapshot(meta=meta, attempts=attempts, flows=flows, market_impact=market)
        baseline_status, diff = self._baseline(draft)

        def policy_pass(evidence: EvidenceMetrics) -> PolicyEvaluation | None:
            if config.policy is None:
                return None
            signals = collect_policy_signals(
                attempts,
                flows,
                market,
                baseline_found=baseline_status.found and baseline_status.usable,
                baseline_diff=diff,
                evidence=evidence,
            )
            return evaluate_policy(config.policy, signals)

        # pass 1: snapshot and manifest do not exist yet
        preliminary = policy_pass(
            EvidenceMetrics(present=evidence_kinds(run_dir), pending=PENDING_EVIDENCE)
        )
        verdict = compute_verdict(market, preliminary, diff, flows, attempts)
        snapshot = RunSnapshot(
            meta=meta,
            attempts=attempts,
            flows=flows,
            market_impact=market,
            baseline=baseline_status,
            baseline_diff=diff,
            verdict=verdict,
            policy_evaluation=preliminary,
        )
        write_json(run_dir / SNAPSHOT_NAME, to_payload(snapshot))
        write_manifest(run_dir)

        # pass 2: authoritative for the exit code
        final = policy_pass(EvidenceMetrics(present=evidence_kinds(run_dir)))

        patterns = analyze_patterns(history, window=config.pattern_window)
        logger.info(
            "Run %s finished: %s (confidence %.2f), %d pattern(s)",
            run_id,
            verdict.verdict,
            verdict.confidence.score,
            len(patterns),
        )
        return RunOutcome(
            snapshot=snapshot, policy_evaluation=final, patterns=patterns, run_dir=run_dir
        )


async def execute_run(
    config: RunConfig,
    pool: PagePool | None = None,
    attempt_registry: AttemptRegistry | None = None,
    flow_registry: FlowRegistry | None = None,
) -> RunOutcome:
    return await RunOrchestrator(config, pool, attempt_registry, flow_registry).execute()


def run_sync(config: RunConfig, **kwargs: Any) -> RunOutcome:
    """Blocking entry point for threads without an event loop (API, worker)."""
    return asyncio.run(execute_run(config, **kwargs))
