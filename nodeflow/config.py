# nodeflow/config.py
import os

# Run limits; callers override them per run through RunOptions.
DEFAULT_MAX_NODE_VISITS = int(os.getenv("NODEFLOW_MAX_NODE_VISITS", "100"))
DEFAULT_TIMEOUT_MS = int(os.getenv("NODEFLOW_TIMEOUT_MS", "100000"))

LOG_LEVEL = os.getenv("NODEFLOW_LOG_LEVEL", "INFO")
