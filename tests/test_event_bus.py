"""Tests for the job bus (in-memory backend and Redis wiring)."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

from journeyguard.runtime import events
from journeyguard.runtime.events import JOB_QUEUE, InMemoryBus, RedisBus, get_bus


class TestInMemoryBus:
    """Tests for InMemoryBus."""

    def test_enqueue_and_dequeue(self):
        """Test basic enqueue and dequeue operations."""
        bus = InMemoryBus()

        bus.enqueue({"job_id": "job-1", "request": {"url": "https://example.com"}})

        result = bus.dequeue(timeout=1)
        assert result == {"job_id": "job-1", "request": {"url": "https://example.com"}}

        # empty queue times out
        assert bus.dequeue(timeout=0.05) is None

    def test_fifo_order(self):
        """Test queueing multiple messages."""
        bus = InMemoryBus()
        for i in range(5):
            bus.enqueue({"id": i})

        messages = [bus.dequeue(timeout=0.1) for _ in range(5)]

        assert [m["id"] for m in messages] == list(range(5))

    def test_result_storage_and_retrieval(self):
        """Test storing and retrieving job results."""
        bus = InMemoryBus()

        bus.set_result("job1", {"status": "completed", "verdict": "OBSERVED"})
        bus.set_result("job2", {"status": "failed", "error": "boom"})

        assert bus.get_result("job1")["verdict"] == "OBSERVED"
        assert bus.get_result("job2")["status"] == "failed"
        assert bus.get_result("missing") is None

    def test_thread_safety(self):
        """Test concurrent producers and result writers."""
        bus = InMemoryBus()

        def produce(i: int) -> None:
            bus.enqueue({"id": i})
            bus.set_result(f"job-{i}", {"id": i})

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(produce, range(50)))

        ids = sorted(bus.dequeue(timeout=0.1)["id"] for _ in range(50))
        assert ids == list(range(50))
        assert all(bus.get_result(f"job-{i}") == {"id": i} for i in range(50))


class TestRedisBus:
    """Tests for RedisBus against a mocked client."""

    def _bus(self, client: MagicMock) -> RedisBus:
        with patch("redis.Redis.from_url", return_value=client):
            return RedisBus("redis://localhost:6379/0")

    def test_enqueue_uses_job_queue(self):
        client = MagicMock()
        bus = self._bus(client)

        bus.enqueue({"job_id": "x"})

        client.rpush.assert_called_once_with(JOB_QUEUE, '{"job_id": "x"}')

    def test_dequeue_and_results(self):
        client = MagicMock()
        client.blpop.return_value = (JOB_QUEUE, '{"job_id": "x"}')
        client.get.return_value = '{"status": "completed"}'
        bus = self._bus(client)

        assert bus.dequeue(timeout=5) == {"job_id": "x"}
        bus.set_result("x", {"status": "completed"})
        assert bus.get_result("x") == {"status": "completed"}
        client.set.assert_called_once()
        assert client.set.call_args.args[0] == "run:x:result"


class TestGetBus:
    def test_inmemory_singleton(self):
        with patch.object(events.settings, "event_backend", "inmemory"):
            assert get_bus() is get_bus()
            assert isinstance(get_bus(), InMemoryBus)
