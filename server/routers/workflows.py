"""Workflow definition and execution routes."""

from typing import Dict, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from core.container import container
from core.logging import get_logger
from models.workflow import WorkflowDefinition
from services.workflow import WorkflowService, WorkflowNotFoundError

logger = get_logger(__name__)
router = APIRouter(prefix="/api/workflows", tags=["workflows"])


class WorkflowRunRequest(BaseModel):
    input: Optional[Dict[str, Any]] = Field(default=None)


def get_workflow_service() -> WorkflowService:
    return container.workflow_service()


def error_response(e: Exception, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": str(e)})


@router.post("")
async def save_workflow(
    definition: WorkflowDefinition,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Save a workflow definition and return the stored row."""
    try:
        workflow = await workflow_service.save_workflow(definition)
        return workflow.to_dict()
    except Exception as e:
        logger.error("Failed to save workflow", error=str(e))
        return error_response(e)


@router.get("")
async def list_workflows(
    active: bool = Query(default=False, description="Only return active workflows"),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    try:
        workflows = await workflow_service.list_workflows(active_only=active)
        return [w.to_dict() for w in workflows]
    except Exception as e:
        logger.error("Failed to list workflows", error=str(e))
        return error_response(e)


@router.get("/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    try:
        workflow = await workflow_service.get_workflow(workflow_id)
        return workflow.to_dict()
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Failed to get workflow", workflow_id=workflow_id, error=str(e))
        return error_response(e)


@router.delete("/{workflow_id}", status_code=204)
async def delete_workflow(
    workflow_id: str,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    try:
        await workflow_service.delete_workflow(workflow_id)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Failed to delete workflow", workflow_id=workflow_id, error=str(e))
        return error_response(e)


@router.post("/{workflow_id}/execute")
async def execute_workflow(
    workflow_id: str,
    request: Optional[WorkflowRunRequest] = None,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Run a stored workflow synchronously.

    Node failures are reported in the ``error`` field of the returned
    context; the response is still 200.
    """
    input_data = (request.input if request else None) or {}
    try:
        context = await workflow_service.execute_workflow(workflow_id, input_data)
        return context.to_dict()
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Failed to execute workflow", workflow_id=workflow_id, error=str(e))
        return error_response(e)


@router.post("/{workflow_id}/enqueue", status_code=202)
async def enqueue_workflow(
    workflow_id: str,
    request: Optional[WorkflowRunRequest] = None,
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    """Queue a stored workflow for background execution."""
    input_data = (request.input if request else None) or {}
    try:
        job = await workflow_service.enqueue_workflow(workflow_id, input_data)
        return {"jobId": job.id}
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Failed to enqueue workflow", workflow_id=workflow_id, error=str(e))
        return error_response(e)


@router.get("/{workflow_id}/executions")
async def list_executions(
    workflow_id: str,
    limit: int = Query(default=50, ge=1, le=500),
    workflow_service: WorkflowService = Depends(get_workflow_service)
):
    try:
        executions = await workflow_service.list_executions(workflow_id, limit=limit)
        return [execution.to_dict() for execution in executions]
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.error("Failed to list executions", workflow_id=workflow_id, error=str(e))
        return error_response(e)
