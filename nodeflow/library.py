# nodeflow/library.py
from typing import Callable, Dict

from .graph import Graph

GRAPHS: Dict[str, Graph] = {}


def register_graph(name: str):
    """Compile the decorated factory once and publish the graph under `name`."""
    def decorator(factory: Callable[[], Graph]):
        GRAPHS[name] = factory()
        return factory
    return decorator


def get_graph(name: str) -> Graph:
    if name not in GRAPHS:
        raise KeyError(f"graph not found: {name}")
    return GRAPHS[name]
