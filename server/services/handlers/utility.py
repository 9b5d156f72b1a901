"""Utility node handlers - Action, Logic, Web3."""

import math
from typing import Dict, Any

from constants import WEB3_STUB_TX_HASH
from core.logging import get_logger
from models.workflow import WorkflowNode, ExecutionContext

logger = get_logger(__name__)


def is_truthy(value: Any) -> bool:
    """Truthiness as the editor front end evaluates conditions.

    Empty containers count as true; only None, False, zero, NaN and the empty
    string are false.
    """
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    return True


async def handle_action(node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
    """Echo the node payload as a successful action."""
    return {"status": "success", "data": node.data}


async def handle_logic(node: WorkflowNode, context: ExecutionContext) -> str:
    """Evaluate ``data.condition`` to the string ``"true"`` or ``"false"``."""
    outcome = "true" if is_truthy(node.data.get("condition")) else "false"
    logger.debug("Logic evaluated", node_id=node.id, outcome=outcome)
    return outcome


async def handle_web3(node: WorkflowNode, context: ExecutionContext) -> Dict[str, Any]:
    # No chain client yet; callers get a placeholder transaction hash
    return {"txHash": WEB3_STUB_TX_HASH}
