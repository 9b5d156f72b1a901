"""Centralized constants for node types, roles and queue names.

Single source of truth for string values shared by the executor, the
handlers, the API models and the job queue.
"""

from typing import FrozenSet

# =============================================================================
# NODE TYPES
# =============================================================================

TRIGGER_NODE_TYPE = 'trigger'
ACTION_NODE_TYPE = 'action'
LOGIC_NODE_TYPE = 'logic'
AI_NODE_TYPE = 'ai'
WEB3_NODE_TYPE = 'web3'

NODE_TYPES: FrozenSet[str] = frozenset([
    TRIGGER_NODE_TYPE,
    ACTION_NODE_TYPE,
    LOGIC_NODE_TYPE,
    AI_NODE_TYPE,
    WEB3_NODE_TYPE,
])

# Placeholder replaced with the execution input inside AI prompts
AI_PROMPT_INPUT_PLACEHOLDER = '{{input}}'

AI_EMPTY_RESPONSE = 'No response'

WEB3_STUB_TX_HASH = '0xstub'

# =============================================================================
# USERS
# =============================================================================

ROLE_USER = 'user'
ROLE_ADMIN = 'admin'

USER_ROLES: FrozenSet[str] = frozenset([ROLE_USER, ROLE_ADMIN])

# =============================================================================
# JOB QUEUE
# =============================================================================

JOB_RETRY = 'retry'
JOB_EXECUTE = 'execute'

JOB_NAMES: FrozenSet[str] = frozenset([JOB_RETRY, JOB_EXECUTE])

BACKOFF_EXPONENTIAL = 'exponential'
BACKOFF_FIXED = 'fixed'
