"""Node handlers package, one coroutine per workflow node type.

- triggers.py: Trigger
- utility.py: Action, Logic, Web3
- ai.py: AI prompt completion

Every handler takes ``(node, context)`` and returns the node output; raising
marks the node as failed.
"""

from .triggers import handle_trigger
from .utility import handle_action, handle_logic, handle_web3, is_truthy
from .ai import handle_ai, render_prompt

__all__ = [
    "handle_trigger",
    "handle_action",
    "handle_logic",
    "handle_web3",
    "is_truthy",
    "handle_ai",
    "render_prompt",
]
