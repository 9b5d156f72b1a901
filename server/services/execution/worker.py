"""Background queue processor for retry and execute jobs.

Runs as a background task next to the API:
- ``retry`` jobs re-run the failed node against its context snapshot
- ``execute`` jobs load a stored workflow and run it end to end
Failed attempts are rescheduled with the job's backoff until its attempts
are used up.
"""

import asyncio
import socket
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from constants import JOB_RETRY, JOB_EXECUTE
from core.logging import get_logger
from models.workflow import ExecutionContext, WorkflowNode
from .models import Job

if TYPE_CHECKING:
    from core.config import Settings
    from .executor import WorkflowExecutor
    from .queue import JobQueue

logger = get_logger(__name__)

WorkflowRunner = Callable[[str, Dict[str, Any]], Awaitable[ExecutionContext]]


class InvalidJobError(ValueError):
    """Raised for jobs that can never succeed, so they fail without retry."""


class RetryWorker:
    """Consumes jobs from the queue until stopped."""

    def __init__(self, queue: "JobQueue", executor: "WorkflowExecutor",
                 settings: "Settings", run_workflow: Optional[WorkflowRunner] = None):
        self.queue = queue
        self.executor = executor
        self.settings = settings
        self.poll_interval = settings.worker_poll_interval
        self.consumer = f"{socket.gethostname()}-{id(self)}"
        self._run_workflow = run_workflow
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the worker background task."""
        if self._running:
            logger.warning("Retry worker already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._work_loop())
        logger.info("Retry worker started", queue=self.queue.name,
                    poll_interval=self.poll_interval)

    async def stop(self) -> None:
        """Stop the worker."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Retry worker stopped")

    async def _work_loop(self) -> None:
        """Main loop - drain ready jobs, then wait for the next poll."""
        while self._running:
            try:
                job = await self.process_next()
            except Exception as e:
                logger.error("Worker iteration failed", error=str(e))
                job = None

            if job is None:
                await asyncio.sleep(self.poll_interval)

    async def process_next(self) -> Optional[Job]:
        """Reserve and process one job. Returns None when nothing is ready."""
        job = await self.queue.reserve(self.consumer)
        if job is None:
            return None

        logger.info("Processing job", job_id=job.id, job_name=job.name,
                    attempt=job.attempts_made, attempts=job.attempts)
        try:
            result = await self._process(job)
        except (InvalidJobError, LookupError) as e:
            await self.queue.fail(job, str(e))
        except Exception as e:
            await self.queue.retry_later(job, str(e))
        else:
            await self.queue.complete(job, result)
        return job

    async def _process(self, job: Job) -> Any:
        if job.name == JOB_RETRY:
            return await self._process_retry(job)
        if job.name == JOB_EXECUTE:
            return await self._process_execute(job)
        raise InvalidJobError(f"Unknown job name: {job.name}")

    async def _process_retry(self, job: Job) -> Dict[str, Any]:
        """Re-run the failed node with the context captured at failure time."""
        node = WorkflowNode.model_validate(job.data["node"])
        context = ExecutionContext.model_validate(job.data.get("context") or {})
        context.error = None

        output = await self.executor.run_node(node, context)
        context.output[node.id] = output
        return {"nodeId": node.id, "output": output, "context": context.to_dict()}

    async def _process_execute(self, job: Job) -> Dict[str, Any]:
        workflow_id = job.data.get("workflowId")
        if not workflow_id:
            raise InvalidJobError("Execute job is missing workflowId")
        if self._run_workflow is None:
            raise InvalidJobError("No workflow runner configured")

        context = await self._run_workflow(workflow_id, job.data.get("input") or {})
        return context.to_dict()
