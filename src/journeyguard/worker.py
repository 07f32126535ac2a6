"""Background worker draining the job bus for ``POST /runs/async``."""

from __future__ import annotations

import logging
import threading

from .api.dto import RunRequest, RunResponse
from .config.settings import settings
from .core.runner.run import run_sync
from .runtime.events import failed_result, get_bus

logger = logging.getLogger(__name__)

POLL_TIMEOUT_SECONDS = 5


def process_message(msg: dict) -> None:
    """Run one queued job. The job id doubles as the run id."""
    bus = get_bus()
    job_id = msg.get("job_id")
    try:
        config = RunRequest.model_validate(msg["request"]).to_config()
        if job_id:
            config.run_id = job_id
        logger.info("Job %s: running %s", job_id, config.url)
        response = RunResponse.from_outcome(run_sync(config))
        bus.set_result(job_id or response.run_id, response.model_dump(mode="json"))
        logger.info("Job %s: %s (exit %d)", job_id, response.verdict, response.exit_code)
    except Exception as e:
        logger.exception("Job %s failed", job_id)
        if job_id:
            bus.set_result(job_id, failed_result(job_id, str(e)))


def _worker_loop() -> None:
    bus = get_bus()
    while True:
        msg = bus.dequeue(timeout=POLL_TIMEOUT_SECONDS)
        if msg:
            process_message(msg)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    count = max(1, settings.worker_concurrency)
    logger.info("Starting %d worker thread(s) on the %s bus", count, settings.event_backend)
    threads = [
        threading.Thread(target=_worker_loop, name=f"journeyguard-worker-{i}", daemon=True)
        for i in range(count)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


if __name__ == "__main__":
    main()
