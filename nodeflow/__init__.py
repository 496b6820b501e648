"""nodeflow - a directed-graph workflow engine.

Nodes are registered on a GraphRegistry, wired with static, fan-out or
router-driven edges, compiled, and run with asyncio.
"""

from .config import DEFAULT_MAX_NODE_VISITS, DEFAULT_TIMEOUT_MS
from .errors import (
    ConfigurationError,
    GraphError,
    GraphTimeoutError,
    LimitExceededError,
    NodeExecutionError,
    ValidationError,
)
from .graph import Graph
from .hooks import HookRunnable
from .models import (
    EventType,
    Forward,
    ForwardSameOutput,
    GraphEvent,
    GraphResult,
    GraphStructure,
    NodeHistory,
    NodeKind,
    NodeStructure,
    RunOptions,
    Terminate,
)
from .registry import GraphRegistry

__all__ = [
    "DEFAULT_MAX_NODE_VISITS",
    "DEFAULT_TIMEOUT_MS",
    "ConfigurationError",
    "EventType",
    "Forward",
    "ForwardSameOutput",
    "Graph",
    "GraphError",
    "GraphEvent",
    "GraphRegistry",
    "GraphResult",
    "GraphStructure",
    "GraphTimeoutError",
    "HookRunnable",
    "LimitExceededError",
    "NodeExecutionError",
    "NodeHistory",
    "NodeKind",
    "NodeStructure",
    "RunOptions",
    "Terminate",
    "ValidationError",
]
