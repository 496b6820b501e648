# nodeflow/models.py
from enum import Enum
from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from .config import DEFAULT_MAX_NODE_VISITS, DEFAULT_TIMEOUT_MS


def _dump_error(error: Optional[BaseException]) -> Optional[dict]:
    if error is None:
        return None
    return {"type": type(error).__name__, "message": str(error)}


class NodeKind(str, Enum):
    EXECUTOR = "executor"
    ROUTER = "router"
    MERGE = "merge"


class NodeSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: NodeKind
    input: Any = None
    output: Any = None


class NodeHistory(BaseModel):
    """Outcome of one node invocation. Appended once, never changed."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    started_at: float
    ended_at: float
    is_ok: bool
    error: Optional[BaseException] = None
    node: NodeSnapshot

    @model_validator(mode="after")
    def check_error_iff_failed(self):
        if self.is_ok and self.error is not None:
            raise ValueError("successful history cannot carry an error")
        if not self.is_ok and self.error is None:
            raise ValueError("failed history must carry an error")
        return self

    @field_serializer("error")
    def serialize_error(self, error: Optional[BaseException]):
        return _dump_error(error)

    @property
    def duration(self) -> float:
        return self.ended_at - self.started_at


class GraphResult(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    execution_id: str
    started_at: float
    ended_at: float
    is_ok: bool
    error: Optional[BaseException] = None
    output: Any = None
    histories: List[NodeHistory] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_error_iff_failed(self):
        if self.is_ok == (self.error is not None):
            raise ValueError("a result carries an error exactly when it failed")
        return self

    @field_serializer("error")
    def serialize_error(self, error: Optional[BaseException]):
        return _dump_error(error)


class EventType(str, Enum):
    WORKFLOW_START = "WORKFLOW_START"
    WORKFLOW_END = "WORKFLOW_END"
    NODE_START = "NODE_START"
    NODE_END = "NODE_END"


class WorkflowStartEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: Literal[EventType.WORKFLOW_START] = EventType.WORKFLOW_START
    execution_id: str
    started_at: float
    input: Any = None


class WorkflowEndEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: Literal[EventType.WORKFLOW_END] = EventType.WORKFLOW_END
    execution_id: str
    result: GraphResult


class NodeStartEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: Literal[EventType.NODE_START] = EventType.NODE_START
    execution_id: str
    started_at: float
    node: NodeSnapshot


class NodeEndEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: Literal[EventType.NODE_END] = EventType.NODE_END
    execution_id: str
    history: NodeHistory


GraphEvent = Union[WorkflowStartEvent, WorkflowEndEvent, NodeStartEvent, NodeEndEvent]


class RunOptions(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    max_node_visits: int = Field(default=DEFAULT_MAX_NODE_VISITS, gt=0)
    timeout_ms: int = Field(default=DEFAULT_TIMEOUT_MS, gt=0)

    @classmethod
    def resolve(cls, options: Union["RunOptions", Mapping[str, Any], None]) -> "RunOptions":
        """Accept an instance, a mapping of partial overrides, or None."""
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        overrides = {key: value for key, value in options.items() if value is not None}
        return cls(**overrides)


# Routing decisions returned (or normalised) from router functions


class Forward(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    input: Any = None


class ForwardSameOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class Terminate(BaseModel):
    model_config = ConfigDict(frozen=True)


RouteDecision = Union[Forward, ForwardSameOutput, Terminate]


def resolve_route(value: Any) -> RouteDecision:
    """Normalise whatever a router returned into a RouteDecision.

    Routers may return a decision instance, a {"name": ..., "input": ...}
    mapping, a bare node name, or None to stop.
    """
    if value is None:
        return Terminate()
    if isinstance(value, (Forward, ForwardSameOutput, Terminate)):
        return value
    if isinstance(value, str):
        return ForwardSameOutput(name=value)
    if isinstance(value, Mapping) and "name" in value and "input" in value:
        return Forward(name=value["name"], input=value["input"])
    raise TypeError(f"router returned unsupported value of type {type(value).__name__}")


class DirectEdgeInfo(BaseModel):
    type: Literal["direct"] = "direct"
    name: Union[str, List[str]]


class DynamicEdgeInfo(BaseModel):
    type: Literal["dynamic"] = "dynamic"
    name: Optional[str] = None


class NodeStructure(BaseModel):
    name: str
    edge: Optional[Union[DirectEdgeInfo, DynamicEdgeInfo]] = None


GraphStructure = List[NodeStructure]
