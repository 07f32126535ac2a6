"""Job bus for asynchronous runs.

``POST /runs/async`` pushes a ``{"job_id", "request"}`` message, a worker
thread pops it, runs it, and stores the serialized ``RunResponse`` (or a
failed status) under the job id for ``GET /jobs/{job_id}``.
"""

from __future__ import annotations

import json
import threading
from queue import Empty, Queue
from typing import Any, Protocol

from ..config.settings import settings

JOB_QUEUE = "journeyguard_runs"
RESULT_TTL_SECONDS = 3600
DEFAULT_REDIS_URL = "redis://redis:6379/0"


def result_key(job_id: str) -> str:
    return f"run:{job_id}:result"


def failed_result(job_id: str, error: str) -> dict[str, Any]:
    return {"status": "failed", "job_id": job_id, "error": error}


class JobBus(Protocol):
    def enqueue(self, payload: dict[str, Any]) -> None: ...

    def dequeue(self, timeout: float | None = None) -> dict[str, Any] | None: ...

    def set_result(self, job_id: str, result: dict[str, Any]) -> None: ...

    def get_result(self, job_id: str) -> dict[str, Any] | None: ...


class InMemoryBus:
    """Process-local bus; API and worker threads share one instance."""

    def __init__(self) -> None:
        self._jobs: Queue[str] = Queue()
        self._results: dict[str, str] = {}
        self._lock = threading.Lock()

    def enqueue(self, payload: dict[str, Any]) -> None:
        # serialized so both backends see the same JSON-only payloads
        self._jobs.put(json.dumps(payload))

    def dequeue(self, timeout: float | None = None) -> dict[str, Any] | None:
        try:
            return json.loads(self._jobs.get(timeout=timeout))
        except Empty:
            return None

    def set_result(self, job_id: str, result: dict[str, Any]) -> None:
        encoded = json.dumps(result)
        with self._lock:
            self._results[result_key(job_id)] = encoded

    def get_result(self, job_id: str) -> dict[str, Any] | None:
        with self._lock:
            encoded = self._results.get(result_key(job_id))
        return json.loads(encoded) if encoded else None


class RedisBus:
    """Redis list for jobs, expiring string keys for results."""

    def __init__(self, url: str) -> None:
        import redis

        self._redis = redis.Redis.from_url(url, decode_responses=True)

    def enqueue(self, payload: dict[str, Any]) -> None:
        self._redis.rpush(JOB_QUEUE, json.dumps(payload))

    def dequeue(self, timeout: float | None = None) -> dict[str, Any] | None:
        popped = self._redis.blpop([JOB_QUEUE], timeout=int(timeout or 0))
        if not popped:
            return None
        _, raw = popped
        return json.loads(raw)

    def set_result(self, job_id: str, result: dict[str, Any]) -> None:
        self._redis.set(result_key(job_id), json.dumps(result), ex=RESULT_TTL_SECONDS)

    def get_result(self, job_id: str) -> dict[str, Any] | None:
        raw = self._redis.get(result_key(job_id))
        return json.loads(raw) if raw else None


_shared_bus: InMemoryBus | None = None
_shared_lock = threading.Lock()


def get_bus() -> JobBus:
    if settings.event_backend == "redis":
        return RedisBus(settings.redis_url or DEFAULT_REDIS_URL)
    global _shared_bus
    with _shared_lock:
        if _shared_bus is None:
            _shared_bus = InMemoryBus()
        return _shared_bus
