"""Execution engine and job queue state models.

All models are JSON-serializable so jobs can be stored in Redis.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Any, Optional

from constants import BACKOFF_EXPONENTIAL, BACKOFF_FIXED
from models.workflow import ExecutionContext


class JobStatus(str, Enum):
    """Job lifecycle.

    State transitions:
        WAITING -> ACTIVE -> COMPLETED
                          -> DELAYED -> WAITING (retry after backoff)
                          -> FAILED (attempts exhausted)
    """
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BackoffPolicy:
    """Delay between job attempts.

    Exponential delay formula: delay * 2 ^ (attempts_made - 1)
    """
    type: str = BACKOFF_EXPONENTIAL
    delay: int = 1000  # milliseconds

    def calculate_delay(self, attempts_made: int) -> float:
        """Seconds to wait before the next attempt.

        Args:
            attempts_made: Attempts already made (1 after the first failure)
        """
        if self.type == BACKOFF_FIXED:
            return self.delay / 1000.0
        exponent = max(attempts_made - 1, 0)
        return (self.delay * (2 ** exponent)) / 1000.0

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "delay": self.delay}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BackoffPolicy":
        data = data or {}
        backoff_type = data.get("type", BACKOFF_EXPONENTIAL)
        if backoff_type not in (BACKOFF_EXPONENTIAL, BACKOFF_FIXED):
            raise ValueError(f"Unknown backoff type: {backoff_type}")
        return cls(type=backoff_type, delay=int(data.get("delay", 1000)))


@dataclass
class Job:
    """A queued unit of work with its retry bookkeeping."""
    id: str
    name: str
    data: Dict[str, Any]
    attempts: int = 3
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    attempts_made: int = 0
    status: JobStatus = JobStatus.WAITING
    failed_reason: Optional[str] = None
    result: Any = None
    created_at: float = field(default_factory=time.time)
    processed_at: Optional[float] = None
    finished_at: Optional[float] = None
    run_at: Optional[float] = None
    # Broker message id of the current delivery, never persisted
    delivery_id: Optional[str] = None

    @classmethod
    def create(cls, name: str, data: Dict[str, Any], attempts: int,
               backoff: BackoffPolicy) -> "Job":
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            data=data,
            attempts=attempts,
            backoff=backoff,
        )

    @property
    def attempts_left(self) -> int:
        return max(self.attempts - self.attempts_made, 0)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "name": self.name,
            "data": self.data,
            "attempts": self.attempts,
            "backoff": self.backoff.to_dict(),
            "attempts_made": self.attempts_made,
            "status": self.status.value,
            "failed_reason": self.failed_reason,
            "result": self.result,
            "created_at": self.created_at,
            "processed_at": self.processed_at,
            "finished_at": self.finished_at,
            "run_at": self.run_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        """Create from dict."""
        return cls(
            id=data["id"],
            name=data["name"],
            data=data.get("data", {}),
            attempts=data.get("attempts", 3),
            backoff=BackoffPolicy.from_dict(data.get("backoff")),
            attempts_made=data.get("attempts_made", 0),
            status=JobStatus(data.get("status", JobStatus.WAITING.value)),
            failed_reason=data.get("failed_reason"),
            result=data.get("result"),
            created_at=data.get("created_at", time.time()),
            processed_at=data.get("processed_at"),
            finished_at=data.get("finished_at"),
            run_at=data.get("run_at"),
        )


@dataclass
class ExecutionRun:
    """Outcome of one executor run as seen by the workflow service."""
    context: ExecutionContext
    retry_job_id: Optional[str] = None
    failed_node_id: Optional[str] = None
    execution_time: float = 0.0

    @property
    def success(self) -> bool:
        return self.context.error is None
