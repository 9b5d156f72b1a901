"""Job queue with retry and exponential backoff.

Jobs live in a Redis hash, ready jobs are delivered through a Redis Stream
consumer group and delayed jobs wait in a sorted set scored by their due
time. Without Redis the same contract is served from process memory, which
is enough for single-process deployments and tests.

Key schema (name = queue name):
    queue:{name}:jobs      -> HASH {job_id -> Job JSON}
    queue:{name}:ready     -> STREAM {job_id}
    queue:{name}:delayed   -> ZSET {job_id: run_at}
    queue:{name}:dead      -> LIST [job_id] (newest first)
"""

import heapq
import json
import time
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Protocol, Tuple

from core.broker import RedisBroker
from core.config import Settings
from core.logging import get_logger, log_job_event
from .dlq import create_dlq_handler, DLQHandlerProtocol
from .models import BackoffPolicy, Job, JobStatus

logger = get_logger(__name__)

CONSUMER_GROUP = "workers"


class QueueBackend(Protocol):
    """Storage operations the queue needs from a backend."""

    async def save_job(self, job: Job) -> None: ...
    async def load_job(self, job_id: str) -> Optional[Job]: ...
    async def push_ready(self, job: Job) -> None: ...
    async def push_delayed(self, job: Job, run_at: float) -> None: ...
    async def promote_due(self, now: float) -> int: ...
    async def pop_ready(self, consumer: str) -> Optional[Tuple[str, Optional[str]]]: ...
    async def ack(self, delivery_id: Optional[str]) -> None: ...
    async def push_dead(self, job_id: str) -> None: ...
    async def list_dead(self, limit: int) -> List[str]: ...
    async def counts(self) -> Dict[str, int]: ...


class MemoryQueueBackend:
    """In-process backend. Not shared between processes."""

    def __init__(self):
        self._jobs: Dict[str, str] = {}
        self._ready: Deque[str] = deque()
        self._delayed: List[Tuple[float, str]] = []
        self._dead: Deque[str] = deque()

    async def save_job(self, job: Job) -> None:
        # Stored serialized so callers never share a mutable Job with the store
        self._jobs[job.id] = json.dumps(job.to_dict(), default=str)

    async def load_job(self, job_id: str) -> Optional[Job]:
        raw = self._jobs.get(job_id)
        return Job.from_dict(json.loads(raw)) if raw else None

    async def push_ready(self, job: Job) -> None:
        self._ready.append(job.id)

    async def push_delayed(self, job: Job, run_at: float) -> None:
        heapq.heappush(self._delayed, (run_at, job.id))

    async def promote_due(self, now: float) -> int:
        promoted = 0
        while self._delayed and self._delayed[0][0] <= now:
            _, job_id = heapq.heappop(self._delayed)
            self._ready.append(job_id)
            promoted += 1
        return promoted

    async def pop_ready(self, consumer: str) -> Optional[Tuple[str, Optional[str]]]:
        if not self._ready:
            return None
        return self._ready.popleft(), None

    async def ack(self, delivery_id: Optional[str]) -> None:
        return None

    async def push_dead(self, job_id: str) -> None:
        self._dead.appendleft(job_id)

    async def list_dead(self, limit: int) -> List[str]:
        return list(self._dead)[:limit]

    async def counts(self) -> Dict[str, int]:
        return {
            "ready": len(self._ready),
            "delayed": len(self._delayed),
            "dead": len(self._dead),
        }


class RedisQueueBackend:
    """Redis backend using a Stream consumer group for delivery.

    Deliveries left unacknowledged for ``reclaim_idle_ms`` (a worker that
    died mid-job) are claimed by the next consumer before new messages are
    read.
    """

    def __init__(self, broker: RedisBroker, queue_name: str, reclaim_idle_ms: int = 300_000):
        self.broker = broker
        self.reclaim_idle_ms = reclaim_idle_ms
        self.jobs_key = f"queue:{queue_name}:jobs"
        self.ready_key = f"queue:{queue_name}:ready"
        self.delayed_key = f"queue:{queue_name}:delayed"
        self.dead_key = f"queue:{queue_name}:dead"

    @property
    def redis(self):
        return self.broker.redis

    async def startup(self) -> None:
        await self.broker.stream_create_group(self.ready_key, CONSUMER_GROUP)

    async def save_job(self, job: Job) -> None:
        await self.redis.hset(self.jobs_key, job.id, json.dumps(job.to_dict(), default=str))

    async def load_job(self, job_id: str) -> Optional[Job]:
        raw = await self.redis.hget(self.jobs_key, job_id)
        return Job.from_dict(json.loads(raw)) if raw else None

    async def _deliver(self, job_id: str) -> None:
        # Untrimmed: acked entries are deleted, so the stream holds only live jobs
        await self.broker.stream_add(self.ready_key, {"job_id": job_id}, maxlen=None)

    async def push_ready(self, job: Job) -> None:
        await self._deliver(job.id)

    async def push_delayed(self, job: Job, run_at: float) -> None:
        await self.redis.zadd(self.delayed_key, {job.id: run_at})

    async def promote_due(self, now: float) -> int:
        due = await self.redis.zrangebyscore(self.delayed_key, "-inf", now)
        promoted = 0
        for job_id in due:
            # ZREM wins the race when several workers promote at once
            if await self.redis.zrem(self.delayed_key, job_id):
                await self._deliver(job_id)
                promoted += 1
        return promoted

    async def _reclaim_stalled(self, consumer: str) -> Optional[Tuple[str, Optional[str]]]:
        claimed = await self.broker.stream_autoclaim(
            self.ready_key, CONSUMER_GROUP, consumer, self.reclaim_idle_ms, count=1
        )
        for msg_id, fields in claimed:
            if msg_id is None:
                continue
            if not fields:
                await self.ack(msg_id)
                continue
            logger.warning("Reclaimed stalled delivery", job_id=fields.get("job_id"),
                           msg_id=msg_id, consumer=consumer)
            return fields.get("job_id"), msg_id
        return None

    async def pop_ready(self, consumer: str) -> Optional[Tuple[str, Optional[str]]]:
        delivery = await self._reclaim_stalled(consumer)
        if delivery is not None:
            return delivery

        result = await self.broker.stream_read_group(
            CONSUMER_GROUP, consumer, {self.ready_key: ">"}, count=1
        )
        for _stream, messages in result:
            for msg_id, fields in messages:
                return fields.get("job_id"), msg_id
        return None

    async def ack(self, delivery_id: Optional[str]) -> None:
        if delivery_id:
            await self.broker.stream_ack(self.ready_key, CONSUMER_GROUP, delivery_id)

    async def push_dead(self, job_id: str) -> None:
        await self.redis.lpush(self.dead_key, job_id)

    async def list_dead(self, limit: int) -> List[str]:
        return await self.redis.lrange(self.dead_key, 0, limit - 1)

    async def counts(self) -> Dict[str, int]:
        # Acked entries are deleted, so stream length = waiting + in flight
        pending = await self.broker.stream_pending_count(self.ready_key, CONSUMER_GROUP)
        length = await self.redis.xlen(self.ready_key)
        return {
            "ready": max(length - pending, 0),
            "active": pending,
            "delayed": await self.redis.zcard(self.delayed_key),
            "dead": await self.redis.llen(self.dead_key),
        }


class JobQueue:
    """Named job queue with per-job attempts and backoff."""

    def __init__(self, broker: RedisBroker, settings: Settings):
        self.broker = broker
        self.settings = settings
        self.name = settings.queue_name
        self.backend: QueueBackend = MemoryQueueBackend()
        self.dlq: DLQHandlerProtocol = create_dlq_handler(self.backend, self.name, enabled=settings.dlq_enabled)

    async def startup(self) -> None:
        """Pick the backend once the broker connection is known."""
        if self.broker.is_streams_available():
            backend = RedisQueueBackend(
                self.broker, self.name,
                reclaim_idle_ms=int(self.settings.queue_reclaim_idle * 1000)
            )
            await backend.startup()
            self.backend = backend
            logger.info("Job queue using Redis", queue=self.name)
        else:
            self.backend = MemoryQueueBackend()
            logger.info("Job queue using memory", queue=self.name)
        self.dlq = create_dlq_handler(self.backend, self.name, enabled=self.settings.dlq_enabled)

    @property
    def default_backoff(self) -> BackoffPolicy:
        return BackoffPolicy(delay=int(self.settings.retry_backoff_delay * 1000))

    async def add(self, name: str, data: Dict[str, Any], attempts: Optional[int] = None,
                  backoff: Optional[Dict[str, Any]] = None) -> Job:
        """Queue a job for immediate delivery."""
        job = Job.create(
            name=name,
            data=data,
            attempts=attempts or self.settings.retry_attempts,
            backoff=BackoffPolicy.from_dict(backoff) if backoff else self.default_backoff,
        )
        await self.backend.save_job(job)
        await self.backend.push_ready(job)
        log_job_event(logger, "Job added", job, self.name, level="debug")
        return job

    async def reserve(self, consumer: str = "worker") -> Optional[Job]:
        """Take the next ready job, promoting due delayed jobs first."""
        await self.backend.promote_due(time.time())

        while True:
            delivery = await self.backend.pop_ready(consumer)
            if delivery is None:
                return None

            job_id, delivery_id = delivery
            job = await self.backend.load_job(job_id) if job_id else None
            if job is None:
                logger.warning("Dropping delivery for unknown job", job_id=job_id)
                await self.backend.ack(delivery_id)
                continue

            job.delivery_id = delivery_id
            if job.status in (JobStatus.COMPLETED, JobStatus.FAILED):
                # Worker stopped after finishing the job but before acking it
                await self.backend.ack(delivery_id)
                continue

            if job.attempts_left <= 0:
                # Reclaimed from a worker that died during the last attempt
                await self.fail(job, job.failed_reason or "Worker stopped during final attempt")
                continue

            job.status = JobStatus.ACTIVE
            job.attempts_made += 1
            job.processed_at = time.time()
            await self.backend.save_job(job)
            return job

    async def complete(self, job: Job, result: Any = None) -> None:
        job.status = JobStatus.COMPLETED
        job.result = result
        job.failed_reason = None
        job.finished_at = time.time()
        await self.backend.save_job(job)
        await self.backend.ack(job.delivery_id)
        log_job_event(logger, "Job completed", job, self.name)

    async def retry_later(self, job: Job, error: str) -> bool:
        """Reschedule a failed attempt. Returns False when attempts are used up."""
        if job.attempts_left <= 0:
            await self.fail(job, error)
            return False

        delay = job.backoff.calculate_delay(job.attempts_made)
        job.status = JobStatus.DELAYED
        job.failed_reason = error
        job.run_at = time.time() + delay
        await self.backend.save_job(job)
        await self.backend.push_delayed(job, job.run_at)
        await self.backend.ack(job.delivery_id)
        log_job_event(logger, "Job rescheduled", job, self.name,
                      delay_seconds=delay, error=error)
        return True

    async def fail(self, job: Job, error: str) -> None:
        job.status = JobStatus.FAILED
        job.failed_reason = error
        job.finished_at = time.time()
        await self.backend.save_job(job)
        await self.backend.ack(job.delivery_id)
        await self.dlq.add_failed_job(job)
        log_job_event(logger, "Job failed", job, self.name, level="warning", error=error)

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self.backend.load_job(job_id)

    async def dead_letter(self, limit: int = 100) -> List[Job]:
        """Failed jobs, most recent first. Empty when the DLQ is disabled."""
        jobs = []
        for job_id in await self.dlq.list_job_ids(limit):
            job = await self.backend.load_job(job_id)
            if job:
                jobs.append(job)
        return jobs

    async def stats(self) -> Dict[str, Any]:
        counts = await self.backend.counts()
        return {
            "queue": self.name,
            "backend": "redis" if isinstance(self.backend, RedisQueueBackend) else "memory",
            "dlq_enabled": self.dlq.enabled,
            **counts,
        }
