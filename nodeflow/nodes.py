# nodeflow/nodes.py
import inspect
from typing import Any, Callable, Optional, Tuple, Union

import pydantic
from pydantic import BaseModel, ConfigDict, TypeAdapter

from .errors import ValidationError
from .models import NodeKind


async def call_node(fn: Callable, value: Any) -> Any:
    """Call a node, router or merge function (sync or async) with one argument."""
    if inspect.iscoroutinefunction(fn):
        return await fn(value)
    # allow quick CPU-bound functions to run synchronously
    res = fn(value)
    if inspect.isawaitable(res):
        res = await res
    return res


class ExecutorNode(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    execute: Callable[[Any], Any]
    validator: Optional[TypeAdapter] = None
    kind: NodeKind = NodeKind.EXECUTOR

    @classmethod
    def build(cls, name: str, execute: Callable[[Any], Any], input_schema: Any = None) -> "ExecutorNode":
        validator = TypeAdapter(input_schema) if input_schema is not None else None
        return cls(name=name, execute=execute, validator=validator)

    def validate_input(self, value: Any) -> Any:
        """Return the validated (possibly coerced) input, or raise ValidationError."""
        if self.validator is None:
            return value
        try:
            return self.validator.validate_python(value)
        except pydantic.ValidationError as exc:
            raise ValidationError(self.name, str(exc)) from exc


class RouterNode(BaseModel):
    """A node whose only job is to pick the next step; its output is its input."""

    model_config = ConfigDict(frozen=True)

    name: str
    router: Callable[[Any], Any]
    kind: NodeKind = NodeKind.ROUTER


class MergeNode(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    sources: Tuple[str, ...]
    execute: Callable[[dict], Any]
    kind: NodeKind = NodeKind.MERGE


Node = Union[ExecutorNode, RouterNode, MergeNode]
