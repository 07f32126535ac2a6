"""Per-target baselines: the last trusted outcome of every attempt.

The canonical file is ``<storage_dir>/baselines/<siteSlug>/baseline.json``.
It is only ever replaced atomically: the new content goes to a temp file in
the same directory, is fsynced, then renamed over the old one.
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import tempfile
import threading
import weakref
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from ..errors import BaselineUnusable
from ..ir.results import Baseline, BaselineDiff, OutcomeChange, RunSnapshot, to_payload

logger = logging.getLogger(__name__)

SUCCESS_CLASS = frozenset({"SUCCESS", "FRICTION"})
FAILURE_CLASS = frozenset({"FAILURE", "DISCOVERY_FAILED"})


class _TargetLock:
    """Weak-referenceable wrapper; plain ``threading.Lock`` objects are not."""

    __slots__ = ("_lock", "__weakref__")

    def __init__(self) -> None:
        self._lock = threading.Lock()

    def __enter__(self) -> _TargetLock:
        self._lock.acquire()
        return self

    def __exit__(self, *exc_info) -> None:
        self._lock.release()


# entries vanish once no save for that slug holds them
_locks: weakref.WeakValueDictionary[str, _TargetLock] = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


def _target_lock(slug: str) -> _TargetLock:
    with _locks_guard:
        lock = _locks.get(slug)
        if lock is None:
            lock = _locks[slug] = _TargetLock()
        return lock


def url_to_slug(url: str) -> str:
    """``https://Example.com/shop/`` -> ``example-com-shop``."""
    slug = re.sub(r"^[a-z][a-z0-9+.-]*://", "", url.strip().lower())
    slug = re.sub(r"[^a-z0-9]+", "-", slug).strip("-")
    return slug[:80] or "site"


def write_json_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


class BaselineStore:
    def __init__(self, storage_dir: str | Path) -> None:
        self.root = Path(storage_dir) / "baselines"

    def path_for(self, site_slug: str) -> Path:
        return self.root / site_slug / "baseline.json"

    def exists(self, site_slug: str) -> bool:
        return self.path_for(site_slug).is_file()

    def load(self, site_slug: str) -> Baseline | None:
        """Return the stored baseline, None when absent.

        Raises :class:`BaselineUnusable` when the file exists but cannot be read.
        """
        path = self.path_for(site_slug)
        if not path.is_file():
            return None
        try:
            return Baseline.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            raise BaselineUnusable(f"Baseline at {path} is unusable: {e}") from e

    def save(self, baseline: Baseline) -> Path:
        path = self.path_for(baseline.site_slug)
        text = json.dumps(to_payload(baseline), indent=2, sort_keys=True)
        with _target_lock(baseline.site_slug):
            write_json_atomic(path, text)
        logger.info("Saved baseline for %s to %s", baseline.site_slug, path)
        return path


def create_baseline_from_snapshot(snapshot: RunSnapshot) -> Baseline:
    return Baseline(
        url=snapshot.meta.url,
        site_slug=snapshot.meta.site_slug or url_to_slug(snapshot.meta.url),
        created_at=datetime.now(timezone.utc).isoformat(),
        run_id=snapshot.meta.run_id,
        outcomes={a.attempt_id: a.outcome for a in snapshot.attempts},
    )


def compare_to_baseline(baseline: Baseline, snapshot: RunSnapshot) -> BaselineDiff:
    regressions: dict[str, OutcomeChange] = {}
    improvements: dict[str, OutcomeChange] = {}
    for attempt in snapshot.attempts:
        before = baseline.outcomes.get(attempt.attempt_id)
        if before is None:
            continue
        after = attempt.outcome
        if before in SUCCESS_CLASS and after in FAILURE_CLASS:
            regressions[attempt.attempt_id] = OutcomeChange(before=before, after=after)
        elif before in FAILURE_CLASS and after in SUCCESS_CLASS:
            improvements[attempt.attempt_id] = OutcomeChange(before=before, after=after)
    return BaselineDiff(
        compared=True,
        regressions=dict(sorted(regressions.items())),
        improvements=dict(sorted(improvements.items())),
    )
