"""
Tests for the Redis Streams queue backend, run against fakeredis.
"""

import fakeredis
import pytest

from constants import JOB_RETRY
from core import broker as broker_module
from core.broker import RedisBroker
from services.execution import JobQueue, JobStatus, RedisQueueBackend
from services.execution import queue as queue_module


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def time(self) -> float:
        return self.now


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(queue_module, "time", fake)
    return fake


@pytest.fixture
def redis_settings(settings):
    return settings.model_copy(update={
        "redis_enabled": True,
        "redis_url": "redis://queue-test:6379/0",
    })


@pytest.fixture
def fake_redis(monkeypatch):
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    monkeypatch.setattr(broker_module.redis, "from_url", lambda *args, **kwargs: client)
    return client


async def start_queue(settings) -> JobQueue:
    broker = RedisBroker(settings)
    await broker.startup()
    queue = JobQueue(broker, settings)
    await queue.startup()
    return queue


@pytest.fixture
async def queue(redis_settings, fake_redis, clock):
    queue = await start_queue(redis_settings)
    yield queue
    await queue.broker.shutdown()


class TestRedisQueue:
    async def test_uses_redis_backend(self, queue):
        assert isinstance(queue.backend, RedisQueueBackend)
        stats = await queue.stats()
        assert stats["backend"] == "redis"
        assert stats["ready"] == 0

    async def test_add_reserve_complete(self, queue, fake_redis):
        first = await queue.add(JOB_RETRY, {"n": 1})
        await queue.add(JOB_RETRY, {"n": 2})

        job = await queue.reserve("worker-a")
        assert job.id == first.id
        assert job.status == JobStatus.ACTIVE
        assert job.attempts_made == 1
        assert job.delivery_id

        stats = await queue.stats()
        assert (stats["ready"], stats["active"]) == (1, 1)

        await queue.complete(job, {"ok": True})
        stored = await queue.get_job(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.result == {"ok": True}

        stats = await queue.stats()
        assert (stats["ready"], stats["active"]) == (1, 0)
        # Acked entries are removed from the stream
        assert await fake_redis.xlen(queue.backend.ready_key) == 1

    async def test_retry_backoff_then_dead_letter(self, queue, clock):
        added = await queue.add(JOB_RETRY, {}, attempts=2)

        job = await queue.reserve("worker-a")
        assert await queue.retry_later(job, "boom") is True
        stats = await queue.stats()
        assert (stats["ready"], stats["active"], stats["delayed"]) == (0, 0, 1)
        assert await queue.reserve("worker-a") is None

        clock.now += 1.0
        job = await queue.reserve("worker-a")
        assert job.id == added.id
        assert job.attempts_made == 2

        assert await queue.retry_later(job, "boom again") is False
        dead = await queue.dead_letter()
        assert [j.id for j in dead] == [added.id]
        assert dead[0].status == JobStatus.FAILED
        assert dead[0].failed_reason == "boom again"

        stats = await queue.stats()
        assert (stats["ready"], stats["active"], stats["delayed"], stats["dead"]) == (0, 0, 0, 1)

    async def test_ready_stream_is_never_trimmed(self, queue, clock, monkeypatch):
        calls = []
        original = queue.broker.stream_add

        async def recording_stream_add(stream, data, maxlen=10000):
            calls.append(maxlen)
            return await original(stream, data, maxlen=maxlen)

        monkeypatch.setattr(queue.broker, "stream_add", recording_stream_add)
        await queue.add(JOB_RETRY, {})
        job = await queue.reserve("worker-a")
        await queue.retry_later(job, "boom")
        clock.now += 1.0
        await queue.reserve("worker-a")

        assert calls == [None, None]


class TestStalledDeliveries:
    @pytest.fixture
    async def eager_queue(self, redis_settings, fake_redis, clock):
        settings = redis_settings.model_copy(update={"queue_reclaim_idle": 0.0})
        queue = await start_queue(settings)
        yield queue
        await queue.broker.shutdown()

    async def test_unacked_delivery_is_reclaimed(self, eager_queue):
        added = await eager_queue.add(JOB_RETRY, {})
        lost = await eager_queue.reserve("worker-that-died")

        job = await eager_queue.reserve("worker-b")
        assert job.id == added.id
        assert job.delivery_id == lost.delivery_id
        assert job.attempts_made == 2

        await eager_queue.complete(job)
        stats = await eager_queue.stats()
        assert (stats["ready"], stats["active"]) == (0, 0)

    async def test_reclaim_after_final_attempt_fails_job(self, eager_queue):
        added = await eager_queue.add(JOB_RETRY, {}, attempts=1)
        await eager_queue.reserve("worker-that-died")

        assert await eager_queue.reserve("worker-b") is None
        job = await eager_queue.get_job(added.id)
        assert job.status == JobStatus.FAILED
        assert job.failed_reason == "Worker stopped during final attempt"
        assert [j.id for j in await eager_queue.dead_letter()] == [added.id]

    async def test_finished_but_unacked_delivery_is_dropped(self, eager_queue):
        added = await eager_queue.add(JOB_RETRY, {})
        job = await eager_queue.reserve("worker-that-died")
        job.status = JobStatus.COMPLETED
        await eager_queue.backend.save_job(job)

        assert await eager_queue.reserve("worker-b") is None
        assert (await eager_queue.get_job(added.id)).status == JobStatus.COMPLETED
        assert (await eager_queue.stats())["active"] == 0

    async def test_idle_threshold_protects_live_deliveries(self, queue):
        await queue.add(JOB_RETRY, {})
        await queue.reserve("worker-a")

        # Default threshold is minutes, so a fresh in-flight delivery stays put
        assert await queue.reserve("worker-b") is None
        assert (await queue.stats())["active"] == 1
