"""AI node handler - prompt templating and chat completion."""

import json
from typing import Dict, Any, TYPE_CHECKING

from constants import AI_PROMPT_INPUT_PLACEHOLDER, AI_EMPTY_RESPONSE
from core.logging import get_logger
from models.workflow import WorkflowNode, ExecutionContext

if TYPE_CHECKING:
    from services.ai import AIService

logger = get_logger(__name__)


def render_prompt(template: Any, context: ExecutionContext) -> str:
    """Substitute the first ``{{input}}`` with the run input as compact JSON.

    Raises:
        ValueError: If the node carries no prompt template
    """
    if not isinstance(template, str):
        raise ValueError("AI node requires a prompt")
    payload = json.dumps(context.input, separators=(",", ":"), ensure_ascii=False)
    return template.replace(AI_PROMPT_INPUT_PLACEHOLDER, payload, 1)


async def handle_ai(
    node: WorkflowNode,
    context: ExecutionContext,
    ai_service: "AIService"
) -> Dict[str, Any]:
    """Handle AI node execution.

    Args:
        node: The AI node; ``data.prompt`` is the template and
            ``data.model`` optionally overrides the configured model
        context: Execution context whose input feeds the template
        ai_service: The AI service instance

    Returns:
        ``{"response": <model reply>}``
    """
    prompt = render_prompt(node.data.get("prompt"), context)
    logger.info("[AI Execution] Sending prompt", node_id=node.id, prompt_length=len(prompt))

    content = await ai_service.complete(prompt, model=node.data.get("model"))
    return {"response": content or AI_EMPTY_RESPONSE}
