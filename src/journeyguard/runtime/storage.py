from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

MANIFEST_NAME = "manifest.json"
SNAPSHOT_NAME = "snapshot.json"


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def run_artifact_paths(base_dir: Path, run_id: str) -> tuple[Path, Path]:
    run_dir = base_dir / run_id
    screenshots = run_dir / "screenshots"
    ensure_dir(run_dir)
    ensure_dir(screenshots)
    return run_dir, screenshots


def attempt_screenshot_dir(screenshots: Path, item_id: str) -> Path:
    return screenshots / item_id


def write_json(path: Path, payload: dict[str, Any]) -> Path:
    ensure_dir(path.parent)
    path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    return path


def sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as fh:
        for chunk in iter(lambda: fh.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def write_manifest(run_dir: Path) -> Path:
    """Hash every artifact in the run directory. Must be the last write of a run."""
    files = sorted(
        p for p in run_dir.rglob("*") if p.is_file() and p.name != MANIFEST_NAME
    )
    manifest = {
        "artifacts": [
            {
                "path": p.relative_to(run_dir).as_posix(),
                "sha256": sha256_file(p),
                "bytes": p.stat().st_size,
            }
            for p in files
        ]
    }
    return write_json(run_dir / MANIFEST_NAME, manifest)


def evidence_kinds(run_dir: Path) -> frozenset[str]:
    kinds = set()
    if (run_dir / SNAPSHOT_NAME).is_file():
        kinds.add("snapshot")
    if (run_dir / MANIFEST_NAME).is_file():
        kinds.add("manifest")
    if any(p.is_file() for p in (run_dir / "screenshots").rglob("*")):
        kinds.add("screenshots")
    return frozenset(kinds)
