"""Dead letter storage for jobs that used up every attempt.

Enabled with ``DLQ_ENABLED``. The handler only records job ids; the job
itself stays in the queue backend so the jobs API can show its last error
and attempt count.
"""

from typing import List, Protocol, TYPE_CHECKING

from core.logging import get_logger, log_job_event
from .models import Job

if TYPE_CHECKING:
    from .queue import QueueBackend

logger = get_logger(__name__)


class DLQHandlerProtocol(Protocol):

    @property
    def enabled(self) -> bool:
        ...

    async def add_failed_job(self, job: Job) -> bool:
        ...

    async def list_job_ids(self, limit: int) -> List[str]:
        ...


class NullDLQHandler:
    """Used when the DLQ is disabled; failed jobs are only marked failed."""

    @property
    def enabled(self) -> bool:
        return False

    async def add_failed_job(self, job: Job) -> bool:
        logger.debug("DLQ disabled, not recording failed job", job_id=job.id)
        return False

    async def list_job_ids(self, limit: int) -> List[str]:
        return []


class DLQHandler:
    """Records failed job ids in the queue backend's dead list."""

    def __init__(self, backend: "QueueBackend", queue_name: str):
        self.backend = backend
        self.queue_name = queue_name

    @property
    def enabled(self) -> bool:
        return True

    async def add_failed_job(self, job: Job) -> bool:
        """Push the job id onto the dead list.

        Returns:
            False if the backend rejected the write
        """
        try:
            await self.backend.push_dead(job.id)
        except Exception as e:
            logger.error("Failed to record dead job", job_id=job.id, error=str(e))
            return False

        log_job_event(logger, "Job moved to dead letter queue", job, self.queue_name,
                      failed_reason=job.failed_reason)
        return True

    async def list_job_ids(self, limit: int) -> List[str]:
        return await self.backend.list_dead(limit)


def create_dlq_handler(backend: "QueueBackend", queue_name: str,
                       enabled: bool = True) -> DLQHandlerProtocol:
    if enabled:
        return DLQHandler(backend, queue_name)
    return NullDLQHandler()
