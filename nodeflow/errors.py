# nodeflow/errors.py
from typing import Optional


class GraphError(Exception):
    """Base class for everything the engine raises or reports."""


class ConfigurationError(GraphError):
    """Bad graph wiring. Raised while building or compiling, never mid-run."""


class ValidationError(GraphError):
    def __init__(self, node_name: str, message: str):
        super().__init__(f"input for node '{node_name}' failed validation: {message}")
        self.node_name = node_name


class NodeExecutionError(GraphError):
    def __init__(self, node_name: str, message: str):
        super().__init__(f"node '{node_name}' failed: {message}")
        self.node_name = node_name


class LimitExceededError(GraphError):
    def __init__(self, message: str, limit: Optional[int] = None):
        super().__init__(message)
        self.limit = limit


class GraphTimeoutError(GraphError):
    def __init__(self, timeout_ms: int):
        super().__init__(f"run exceeded timeout of {timeout_ms}ms")
        self.timeout_ms = timeout_ms
