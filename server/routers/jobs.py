"""Job queue inspection routes (admin only)."""

from typing import Dict, Any

from fastapi import APIRouter, Depends, HTTPException, Query

from core.container import container
from core.logging import get_logger
from middleware.auth import require_admin
from services.execution import JobQueue

logger = get_logger(__name__)
router = APIRouter(prefix="/api/jobs", tags=["jobs"], dependencies=[Depends(require_admin)])


def get_job_queue() -> JobQueue:
    return container.job_queue()


@router.get("/stats")
async def get_queue_stats(queue: JobQueue = Depends(get_job_queue)) -> Dict[str, Any]:
    return await queue.stats()


@router.get("/dead-letter")
async def get_dead_letter(
    limit: int = Query(default=100, ge=1, le=1000),
    queue: JobQueue = Depends(get_job_queue)
):
    """Jobs that used up all their attempts."""
    jobs = await queue.dead_letter(limit=limit)
    return [job.to_dict() for job in jobs]


@router.get("/{job_id}")
async def get_job(job_id: str, queue: JobQueue = Depends(get_job_queue)):
    job = await queue.get_job(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.to_dict()
