# nodeflow/registry.py
import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .edges import DirectEdge, DynamicEdge, EdgeTable
from .errors import ConfigurationError
from .graph import CompiledGraph, Graph
from .hooks import HookRunnable
from .nodes import ExecutorNode, MergeNode, Node, RouterNode

logger = logging.getLogger(__name__)


class GraphRegistry:
    """Fluent builder for graphs.

    Every method returns the registry itself so calls can be chained:

        graph = (
            GraphRegistry()
            .add_node("double", lambda x: x * 2)
            .add_node("show", str)
            .edge("double", "show")
            .compile("double", "show")
        )

    Wiring mistakes raise ConfigurationError at the offending call.
    """

    def __init__(self, hook_parent: Optional[CompiledGraph] = None, hook_entry_point: Optional[str] = None):
        self._nodes: Dict[str, Node] = {}
        self._edges = EdgeTable()
        self._hook_parent = hook_parent
        self._hook_entry_point = hook_entry_point

    def add_node(self, name: str, execute: Callable[[Any], Any], input_schema: Any = None) -> "GraphRegistry":
        """Register an executor node.

        `input_schema` is anything pydantic's TypeAdapter accepts (a model
        class, `int`, `List[str]`, ...). When given, every input is
        validated before `execute` runs.
        """
        self._register(ExecutorNode.build(name, execute, input_schema))
        return self

    def add_router_node(self, name: str, router: Callable[[Any], Any]) -> "GraphRegistry":
        self._register(RouterNode(name=name, router=router))
        # the router is this node's outgoing edge
        self._edges.add(DynamicEdge(source=name, router=router, label=name))
        return self

    def add_merge_node(self, name: str, sources: Sequence[str], execute: Callable[[dict], Any]) -> "GraphRegistry":
        sources = tuple(sources)
        if not sources:
            raise ConfigurationError(f"merge node '{name}' needs at least one source")
        if len(set(sources)) != len(sources):
            raise ConfigurationError(f"merge node '{name}' lists a source more than once")
        for source in sources:
            if source not in self._nodes:
                raise ConfigurationError(f"merge node '{name}' refers to unknown source '{source}'")
        self._register(MergeNode(name=name, sources=sources, execute=execute))
        return self

    def edge(self, source: str, to: Union[str, Sequence[str]]) -> "GraphRegistry":
        self._require_source(source)
        targets = (to,) if isinstance(to, str) else tuple(to)
        if not targets:
            raise ConfigurationError(f"edge from '{source}' has no targets")
        if len(set(targets)) != len(targets):
            raise ConfigurationError(f"edge from '{source}' lists a target more than once")
        for target in targets:
            if target not in self._nodes:
                raise ConfigurationError(f"edge from '{source}' points to unknown node '{target}'")
            if target == source:
                raise ConfigurationError(f"node '{source}' cannot have a static edge to itself")
            target_node = self._nodes[target]
            if isinstance(target_node, MergeNode) and source not in target_node.sources:
                raise ConfigurationError(f"'{source}' is not a source of merge node '{target}'")
        self._edges.add(DirectEdge(source=source, targets=targets))
        return self

    def dynamic_edge(self, source: str, router: Callable[[Any], Any]) -> "GraphRegistry":
        self._require_source(source)
        self._edges.add(DynamicEdge(source=source, router=router, label=_router_label(router)))
        return self

    def compile(self, start: str, end: Optional[str] = None) -> Union[Graph, HookRunnable]:
        if start not in self._nodes:
            raise ConfigurationError(f"start node '{start}' is not registered")
        if end is not None and end not in self._nodes:
            raise ConfigurationError(f"end node '{end}' is not registered")

        nodes = MappingProxyType(dict(self._nodes))
        edges = self._edges.freeze()
        logger.debug("graph_compiled: start=%s, end=%s, nodes=%d", start, end, len(nodes))
        if self._hook_parent is not None:
            return HookRunnable(nodes, edges, start, end, self._hook_parent, self._hook_entry_point)
        return Graph(nodes, edges, start, end)

    @property
    def node_names(self) -> List[str]:
        return list(self._nodes)

    def _register(self, node: Node) -> None:
        if node.name in self._nodes:
            raise ConfigurationError(f"node '{node.name}' is already registered")
        self._nodes[node.name] = node

    def _require_source(self, source: str) -> None:
        if source not in self._nodes:
            raise ConfigurationError(f"edge source '{source}' is not registered")
        if source in self._edges:
            raise ConfigurationError(f"node '{source}' already has an outgoing edge")


def _router_label(router: Callable) -> Optional[str]:
    name = getattr(router, "__name__", None)
    if name is None or name == "<lambda>":
        return None
    return name
