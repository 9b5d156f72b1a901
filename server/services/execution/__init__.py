"""Execution engine package.

Sequential workflow execution with:
- Registry-based node dispatch
- One retry job per failed run, queued with exponential backoff
- Redis Stream job queue with an in-memory fallback
- Background worker and dead-letter storage for exhausted jobs
"""

from .models import (
    JobStatus,
    BackoffPolicy,
    Job,
    ExecutionRun,
)
from .executor import WorkflowExecutor, UnknownNodeTypeError
from .queue import JobQueue, MemoryQueueBackend, RedisQueueBackend
from .worker import RetryWorker, InvalidJobError
from .dlq import (
    DLQHandler,
    NullDLQHandler,
    DLQHandlerProtocol,
    create_dlq_handler,
)

__all__ = [
    # Models
    "JobStatus",
    "BackoffPolicy",
    "Job",
    "ExecutionRun",
    # Executor
    "WorkflowExecutor",
    "UnknownNodeTypeError",
    # Queue
    "JobQueue",
    "MemoryQueueBackend",
    "RedisQueueBackend",
    # Worker
    "RetryWorker",
    "InvalidJobError",
    # DLQ
    "DLQHandler",
    "NullDLQHandler",
    "DLQHandlerProtocol",
    "create_dlq_handler",
]
