"""Trigger node handler."""

from datetime import datetime, timezone
from typing import Dict, Any

from core.logging import get_logger
from models.workflow import WorkflowNode, ExecutionContext

logger = get_logger(__name__)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def handle_trigger(node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
    """Mark the start of a run with the time it was triggered."""
    triggered_at = utc_timestamp()
    logger.debug("Trigger fired", node_id=node.id, triggered_at=triggered_at)
    return {"triggeredAt": triggered_at}
