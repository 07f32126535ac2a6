"""Cross-run pattern detection over prior snapshots of one target.

Four independent detectors look at the most recent runs (oldest first, capped
at a fixed window). They only see outcomes and verdict confidence, so their
findings are facts about history rather than guesses about causes.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from ..ir.results import Pattern, RunSnapshot

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 10
MIN_RUNS = 2
MIN_OCCURRENCES = 2
HIGH_CONFIDENCE_OCCURRENCES = 3
DEGRADATION_MIN_STREAK = 3
DEGRADATION_MIN_DROP = 0.1


def _occurrences(runs: list[RunSnapshot], outcome: str) -> dict[str, list[RunSnapshot]]:
    hits: dict[str, list[RunSnapshot]] = defaultdict(list)
    for run in runs:
        for attempt in run.attempts:
            if attempt.outcome == outcome:
                hits[attempt.attempt_id].append(run)
    return hits


def _detect_repeated_skips(runs: list[RunSnapshot]) -> list[Pattern]:
    patterns = []
    for attempt_id, hits in _occurrences(runs, "SKIPPED").items():
        count = len(hits)
        if count < MIN_OCCURRENCES:
            continue
        patterns.append(
            Pattern(
                type="repeated_skipped_attempts",
                path_name=attempt_id,
                confidence="high" if count >= HIGH_CONFIDENCE_OCCURRENCES else "medium",
                evidence={
                    "attemptId": attempt_id,
                    "occurrences": count,
                    "totalRuns": len(runs),
                    "runIds": [r.meta.run_id for r in hits],
                },
                summary=f"{attempt_id} was skipped in {count} of the last {len(runs)} runs",
                why_it_matters=(
                    "A journey that keeps getting skipped is never verified, "
                    "so breakage there goes unnoticed."
                ),
                recommended_focus=f"Check why {attempt_id} is not being executed",
            )
        )
    return patterns


def _detect_recurring_friction(runs: list[RunSnapshot]) -> list[Pattern]:
    patterns = []
    for attempt_id, hits in _occurrences(runs, "FRICTION").items():
        count = len(hits)
        if count < MIN_OCCURRENCES:
            continue
        durations = [
            a.total_duration_ms
            for r in hits
            for a in r.attempts
            if a.attempt_id == attempt_id and a.outcome == "FRICTION"
        ]
        avg = round(sum(durations) / len(durations)) if durations else 0
        patterns.append(
            Pattern(
                type="recurring_friction",
                path_name=attempt_id,
                confidence="high" if count >= HIGH_CONFIDENCE_OCCURRENCES else "medium",
                evidence={
                    "attemptId": attempt_id,
                    "occurrences": count,
                    "totalRuns": len(runs),
                    "avgDurationMs": avg,
                },
                summary=(
                    f"{attempt_id} showed friction in {count} of the last {len(runs)} runs "
                    f"(average {avg}ms)"
                ),
                why_it_matters=(
                    "Users keep getting through this journey only with delays or retries; "
                    "persistent friction tends to turn into abandonment."
                ),
                recommended_focus=f"Profile the slow or retried steps of {attempt_id}",
            )
        )
    return patterns


def _detect_single_point_failure(runs: list[RunSnapshot]) -> list[Pattern]:
    patterns = []
    for attempt_id, hits in _occurrences(runs, "FAILURE").items():
        count = len(hits)
        if count < MIN_OCCURRENCES or count * 2 <= len(runs):
            continue
        patterns.append(
            Pattern(
                type="single_point_failure",
                path_name=attempt_id,
                confidence="high" if count >= HIGH_CONFIDENCE_OCCURRENCES else "medium",
                evidence={
                    "attemptId": attempt_id,
                    "occurrences": count,
                    "totalRuns": len(runs),
                    "runIds": [r.meta.run_id for r in hits],
                },
                summary=f"{attempt_id} failed in {count} of the last {len(runs)} runs",
                why_it_matters=(
                    "One journey failing in most runs is a bottleneck: "
                    "every user who needs it is blocked."
                ),
                recommended_focus=f"Prioritize fixing {attempt_id}",
            )
        )
    return patterns


def _detect_confidence_degradation(runs: list[RunSnapshot]) -> list[Pattern]:
    scored = [r for r in runs if r.verdict is not None]
    scores = [r.verdict.confidence.score for r in scored]
    if len(scores) < DEGRADATION_MIN_STREAK:
        return []

    start = len(scores) - 1
    while start > 0 and scores[start - 1] > scores[start]:
        start -= 1
    streak = scores[start:]
    drop = round(streak[0] - streak[-1], 4)
    if len(streak) < DEGRADATION_MIN_STREAK or drop < DEGRADATION_MIN_DROP:
        return []

    first, last = streak[0], streak[-1]
    return [
        Pattern(
            type="confidence_degradation",
            path_name="overall",
            confidence="high" if len(streak) > DEGRADATION_MIN_STREAK else "medium",
            evidence={
                "scores": streak,
                "runIds": [r.meta.run_id for r in scored[start:]],
                "drop": drop,
            },
            summary=(
                f"Verdict confidence fell from {first:.0%} to {last:.0%} "
                f"over {len(streak)} consecutive runs"
            ),
            why_it_matters=(
                "Confidence is degrading run over run: fewer journeys complete cleanly "
                "even if no single run looks alarming."
            ),
            recommended_focus="Review what changed between the first and last of these runs",
        )
    ]


def analyze_patterns(
    history: Iterable[RunSnapshot], window: int = DEFAULT_WINDOW
) -> list[Pattern]:
    runs = sorted(history, key=lambda r: r.meta.timestamp)[-window:]
    if len(runs) < MIN_RUNS:
        return []
    patterns = (
        _detect_repeated_skips(runs)
        + _detect_recurring_friction(runs)
        + _detect_single_point_failure(runs)
        + _detect_confidence_degradation(runs)
    )
    return sorted(patterns, key=lambda p: (p.type, p.path_name))


def load_recent_runs(
    artifacts_root: str | Path,
    site_slug: str,
    exclude_run_id: str | None = None,
    window: int = DEFAULT_WINDOW,
) -> list[RunSnapshot]:
    """Read persisted snapshots for one target, oldest first."""
    runs: list[RunSnapshot] = []
    for path in sorted(Path(artifacts_root).glob("*/snapshot.json")):
        try:
            snapshot = RunSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Skipping unreadable snapshot %s: %s", path, e)
            continue
        if snapshot.meta.site_slug != site_slug or snapshot.meta.run_id == exclude_run_id:
            continue
        runs.append(snapshot)
    runs.sort(key=lambda r: r.meta.timestamp)
    return runs[-window:]
