"""Sequential workflow executor.

Nodes run one at a time in canvas order (top to bottom). Each output is
stored in the shared ExecutionContext under the node id. The first node
that raises stops the run and a single retry job is queued for it.
"""

import time
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union, TYPE_CHECKING

from constants import (
    TRIGGER_NODE_TYPE,
    ACTION_NODE_TYPE,
    LOGIC_NODE_TYPE,
    AI_NODE_TYPE,
    WEB3_NODE_TYPE,
    JOB_RETRY,
    BACKOFF_EXPONENTIAL,
)
from core.logging import get_logger
from models.workflow import ExecutionContext, StoredWorkflow, WorkflowDefinition, WorkflowNode
from services.handlers import handle_trigger, handle_action, handle_logic, handle_ai, handle_web3
from .models import ExecutionRun

if TYPE_CHECKING:
    from core.config import Settings
    from services.ai import AIService
    from .queue import JobQueue

logger = get_logger(__name__)

NodeHandler = Callable[[WorkflowNode, ExecutionContext], Awaitable[Any]]
WorkflowLike = Union[StoredWorkflow, WorkflowDefinition]


class UnknownNodeTypeError(ValueError):
    """Raised when a node type has no registered handler."""

    def __init__(self, node_type: str):
        super().__init__(f"Unknown node type: {node_type}")
        self.node_type = node_type


class WorkflowExecutor:
    """Runs workflow nodes in order and queues a retry for the failing node."""

    def __init__(self, ai_service: "AIService", queue: "JobQueue", settings: "Settings"):
        self.ai_service = ai_service
        self.queue = queue
        self.settings = settings
        self._handlers = self._build_handler_registry()

    def _build_handler_registry(self) -> Dict[str, NodeHandler]:
        """Build handler registry with service dependencies bound via partial."""
        return {
            TRIGGER_NODE_TYPE: handle_trigger,
            ACTION_NODE_TYPE: handle_action,
            LOGIC_NODE_TYPE: handle_logic,
            AI_NODE_TYPE: partial(handle_ai, ai_service=self.ai_service),
            WEB3_NODE_TYPE: handle_web3,
        }

    @staticmethod
    def sort_nodes(nodes: List[WorkflowNode]) -> List[WorkflowNode]:
        """Order nodes by vertical canvas position; missing position sorts as 0.

        Ties keep their declared order. The input list is left untouched.
        """
        return sorted(nodes, key=lambda node: node.sort_key)

    async def run_node(self, node: WorkflowNode, context: ExecutionContext) -> Any:
        """Evaluate a single node against the current context."""
        handler = self._handlers.get(node.type)
        if handler is None:
            raise UnknownNodeTypeError(node.type)
        return await handler(node, context)

    async def execute(self, workflow: WorkflowLike, input_data: Dict[str, Any]) -> ExecutionContext:
        """Run the workflow and return its execution context."""
        run = await self.run(workflow, input_data)
        return run.context

    async def run(self, workflow: WorkflowLike, input_data: Dict[str, Any]) -> ExecutionRun:
        """Run the workflow, returning the context plus retry bookkeeping."""
        start_time = time.time()
        context = ExecutionContext(input=input_data, output={})
        run = ExecutionRun(context=context)

        sorted_nodes = self.sort_nodes(workflow.nodes)
        logger.info("Starting workflow execution",
                    workflow_id=getattr(workflow, "id", None),
                    node_count=len(sorted_nodes))

        for node in sorted_nodes:
            try:
                context.output[node.id] = await self.run_node(node, context)
            except Exception as e:
                context.error = str(e)
                run.failed_node_id = node.id
                logger.warning("Node execution failed",
                               workflow_id=getattr(workflow, "id", None),
                               node_id=node.id,
                               node_type=node.type,
                               error=context.error)
                run.retry_job_id = await self.handle_error(node, context)
                break

        run.execution_time = time.time() - start_time
        logger.info("Workflow execution finished",
                    workflow_id=getattr(workflow, "id", None),
                    success=run.success,
                    nodes_executed=len(context.output),
                    execution_time=round(run.execution_time, 4))
        return run

    async def handle_error(self, node: WorkflowNode, context: ExecutionContext) -> Optional[str]:
        """Queue one retry job carrying the node and a context snapshot.

        Returns the job id, or None when the queue rejected the job; the node
        error already recorded in the context is kept either way.
        """
        data = {
            "node": node.model_dump(exclude_none=True),
            "context": context.snapshot(),
        }
        try:
            job = await self.queue.add(
                JOB_RETRY,
                data,
                attempts=self.settings.retry_attempts,
                backoff={
                    "type": BACKOFF_EXPONENTIAL,
                    "delay": int(self.settings.retry_backoff_delay * 1000),
                },
            )
        except Exception as e:
            logger.error("Failed to queue retry job", node_id=node.id, error=str(e))
            return None

        logger.info("Retry job queued", job_id=job.id, node_id=node.id)
        return job.id
