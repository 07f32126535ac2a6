import uuid

from fastapi import APIRouter, HTTPException

from ..config.settings import settings
from ..core.ir.results import to_payload
from ..core.patterns.analyzer import analyze_patterns, load_recent_runs
from ..core.runner.run import run_sync
from ..runtime.events import get_bus
from .dto import RunRequest, RunResponse

router = APIRouter()


@router.post("/runs", response_model=RunResponse)
def start_run(req: RunRequest) -> RunResponse:
    try:
        return RunResponse.from_outcome(run_sync(req.to_config()))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/runs/async")
def start_run_async(req: RunRequest):
    try:
        job_id = str(uuid.uuid4())
        get_bus().enqueue({"job_id": job_id, "request": req.model_dump(mode="json")})
        return {"job_id": job_id}
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/jobs/{job_id}")
def get_job(job_id: str):
    try:
        res = get_bus().get_result(job_id)
        if not res:
            return {"status": "pending", "job_id": job_id}
        return res
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/targets/{site_slug}/patterns")
def target_patterns(site_slug: str, window: int = settings.pattern_window):
    try:
        history = load_recent_runs(settings.artifacts_root, site_slug, window=window)
        patterns = analyze_patterns(history, window=window)
        return {
            "site_slug": site_slug,
            "runs": len(history),
            "patterns": [to_payload(p) for p in patterns],
        }
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
