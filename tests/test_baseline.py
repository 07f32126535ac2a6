"""Tests for baseline storage and comparison."""

from __future__ import annotations

import gc
import json
import os
from unittest.mock import patch

import pytest
from journeyguard.core.baseline import baseline as baseline_module
from journeyguard.core.baseline.baseline import (
    BaselineStore,
    compare_to_baseline,
    create_baseline_from_snapshot,
    url_to_slug,
)
from journeyguard.core.errors import BaselineUnusable
from journeyguard.core.ir.results import AttemptResult, RunMeta, RunSnapshot


def _snapshot(outcomes: dict[str, str], run_id: str = "run-1") -> RunSnapshot:
    return RunSnapshot(
        meta=RunMeta(
            url="https://example.com",
            run_id=run_id,
            timestamp="2026-01-01T00:00:00Z",
            site_slug="example-com",
        ),
        attempts=[AttemptResult(attempt_id=k, outcome=v) for k, v in outcomes.items()],
    )


class TestSlug:
    def test_url_to_slug(self):
        assert url_to_slug("https://Example.com/shop/") == "example-com-shop"
        assert url_to_slug("http://localhost:8080") == "localhost-8080"
        assert url_to_slug("") == "site"


class TestCompare:
    def test_regressions_and_improvements(self):
        baseline = create_baseline_from_snapshot(
            _snapshot(
                {
                    "login": "SUCCESS",
                    "signup": "FRICTION",
                    "checkout": "FAILURE",
                    "newsletter_signup": "SUCCESS",
                    "contact_form": "SUCCESS",
                }
            )
        )
        current = _snapshot(
            {
                "login": "FAILURE",
                "signup": "DISCOVERY_FAILED",
                "checkout": "SUCCESS",
                "newsletter_signup": "SKIPPED",
                "language_switch": "FAILURE",
                "contact_form": "FRICTION",
            },
            run_id="run-2",
        )

        diff = compare_to_baseline(baseline, current)

        assert diff.compared is True
        assert list(diff.regressions) == ["login", "signup"]
        assert diff.regressions["signup"].after == "DISCOVERY_FAILED"
        assert list(diff.improvements) == ["checkout"]

    def test_baseline_records_every_outcome(self):
        baseline = create_baseline_from_snapshot(_snapshot({"a": "SUCCESS", "b": "SKIPPED"}))

        assert baseline.site_slug == "example-com"
        assert baseline.run_id == "run-1"
        assert baseline.outcomes == {"a": "SUCCESS", "b": "SKIPPED"}


class TestStore:
    def test_missing_baseline(self, tmp_path):
        store = BaselineStore(tmp_path)

        assert store.exists("example-com") is False
        assert store.load("example-com") is None

    def test_save_and_load(self, tmp_path):
        store = BaselineStore(tmp_path)
        baseline = create_baseline_from_snapshot(_snapshot({"login": "SUCCESS"}))

        path = store.save(baseline)

        assert path == tmp_path / "baselines" / "example-com" / "baseline.json"
        assert json.loads(path.read_text())["outcomes"] == {"login": "SUCCESS"}
        assert store.load("example-com") == baseline

    def test_failed_write_leaves_canonical_file_intact(self, tmp_path):
        store = BaselineStore(tmp_path)
        original = create_baseline_from_snapshot(_snapshot({"login": "SUCCESS"}))
        path = store.save(original)
        before = path.read_bytes()

        updated = create_baseline_from_snapshot(_snapshot({"login": "FAILURE"}, run_id="run-2"))
        with patch(
            "journeyguard.core.baseline.baseline.os.replace", side_effect=OSError("disk full")
        ):
            with pytest.raises(OSError):
                store.save(updated)

        assert path.read_bytes() == before
        assert os.listdir(path.parent) == ["baseline.json"]

    def test_corrupt_file_is_unusable(self, tmp_path):
        store = BaselineStore(tmp_path)
        path = store.path_for("example-com")
        path.parent.mkdir(parents=True)
        path.write_text("{not json")

        with pytest.raises(BaselineUnusable):
            store.load("example-com")


class TestTargetLocks:
    def test_same_slug_shares_a_lock_while_held(self):
        held = baseline_module._target_lock("shop-example-com")

        assert baseline_module._target_lock("shop-example-com") is held
        assert baseline_module._target_lock("other-example-com") is not held

    def test_locks_are_released_after_save(self, tmp_path):
        store = BaselineStore(tmp_path)
        for i in range(5):
            meta = RunMeta(
                url="https://example.com", run_id="run-1", timestamp="", site_slug=f"site-{i}"
            )
            snapshot = RunSnapshot(meta=meta, attempts=[])
            store.save(create_baseline_from_snapshot(snapshot))
        gc.collect()

        assert not any(slug.startswith("site-") for slug in baseline_module._locks.keys())
