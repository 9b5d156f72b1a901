"""Workflow Service - Facade for workflow storage and execution.

Delegates to:
- Database: workflow and execution history persistence
- WorkflowExecutor: ordered node evaluation and retry queuing
- JobQueue: deferred execution of stored workflows
"""

import uuid
from typing import Dict, Any, List, TYPE_CHECKING

from constants import JOB_EXECUTE
from core.logging import get_logger
from models.database import Execution, Workflow
from models.workflow import ExecutionContext, StoredWorkflow, WorkflowDefinition

if TYPE_CHECKING:
    from core.database import Database
    from services.execution import WorkflowExecutor, JobQueue, Job

logger = get_logger(__name__)


class WorkflowNotFoundError(LookupError):
    """Raised when a workflow id has no stored definition."""

    def __init__(self, workflow_id: str):
        super().__init__("Workflow not found")
        self.workflow_id = workflow_id


class WorkflowService:
    """Workflow persistence and execution service."""

    def __init__(self, database: "Database", executor: "WorkflowExecutor", queue: "JobQueue"):
        self.database = database
        self.executor = executor
        self.queue = queue

    # =========================================================================
    # DEFINITIONS
    # =========================================================================

    async def save_workflow(self, definition: WorkflowDefinition) -> Workflow:
        workflow = await self.database.save_workflow(definition)
        logger.info("Workflow saved", workflow_id=workflow.id, node_count=len(workflow.nodes or []))
        return workflow

    async def get_workflow(self, workflow_id: str) -> Workflow:
        workflow = await self.database.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    async def list_workflows(self, active_only: bool = False) -> List[Workflow]:
        return await self.database.list_workflows(active_only=active_only)

    async def delete_workflow(self, workflow_id: str) -> None:
        if not await self.database.delete_workflow(workflow_id):
            raise WorkflowNotFoundError(workflow_id)
        logger.info("Workflow deleted", workflow_id=workflow_id)

    async def get_workflows_count(self) -> Dict[str, int]:
        return await self.database.get_workflows_count()

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def execute_workflow(self, workflow_id: str, input_data: Dict[str, Any]) -> ExecutionContext:
        """Load a stored workflow, run it and record the run in the history."""
        workflow = await self.get_workflow(workflow_id)
        definition = StoredWorkflow.model_validate(workflow.to_dict())

        run = await self.executor.run(definition, input_data)

        execution = Execution(
            id=str(uuid.uuid4()),
            workflow_id=workflow_id,
            status="completed" if run.success else "failed",
            input=run.context.input,
            output=run.context.output,
            error=run.context.error,
            retry_job_id=run.retry_job_id,
            execution_time=run.execution_time,
        )
        try:
            await self.database.save_execution(execution)
        except Exception as e:
            # Execution history is not part of the run result
            logger.error("Failed to record execution", workflow_id=workflow_id, error=str(e))

        return run.context

    async def enqueue_workflow(self, workflow_id: str, input_data: Dict[str, Any]) -> "Job":
        """Queue a stored workflow for background execution."""
        await self.get_workflow(workflow_id)
        job = await self.queue.add(JOB_EXECUTE, {"workflowId": workflow_id, "input": input_data})
        logger.info("Workflow execution queued", workflow_id=workflow_id, job_id=job.id)
        return job

    async def list_executions(self, workflow_id: str, limit: int = 50) -> List[Execution]:
        await self.get_workflow(workflow_id)
        return await self.database.list_executions(workflow_id, limit=limit)
