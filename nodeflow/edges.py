# nodeflow/edges.py
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

from .errors import ConfigurationError
from .models import DirectEdgeInfo, DynamicEdgeInfo


class DirectEdge(BaseModel):
    """Build-time successor(s). More than one target means fan-out."""

    model_config = ConfigDict(frozen=True)

    source: str
    targets: Tuple[str, ...]

    def describe(self) -> DirectEdgeInfo:
        if len(self.targets) == 1:
            return DirectEdgeInfo(name=self.targets[0])
        return DirectEdgeInfo(name=list(self.targets))


class DynamicEdge(BaseModel):
    """Successor resolved at run time by a router function."""

    model_config = ConfigDict(frozen=True)

    source: str
    router: Callable[[Any], Any]
    label: Optional[str] = None

    def describe(self) -> DynamicEdgeInfo:
        return DynamicEdgeInfo(name=self.label)


Edge = Union[DirectEdge, DynamicEdge]


class EdgeTable:
    """Outgoing edge per source node. A source may own one definition only."""

    def __init__(self, edges: Optional[Mapping[str, Edge]] = None):
        self._edges: Dict[str, Edge] = dict(edges or {})

    def add(self, edge: Edge) -> None:
        if edge.source in self._edges:
            raise ConfigurationError(f"node '{edge.source}' already has an outgoing edge")
        self._edges[edge.source] = edge

    def get(self, source: str) -> Optional[Edge]:
        return self._edges.get(source)

    def __contains__(self, source: str) -> bool:
        return source in self._edges

    def freeze(self) -> Mapping[str, Edge]:
        return MappingProxyType(dict(self._edges))
