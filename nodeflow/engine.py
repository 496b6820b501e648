# nodeflow/engine.py
import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .edges import DirectEdge, Edge
from .errors import (
    GraphError,
    GraphTimeoutError,
    LimitExceededError,
    NodeExecutionError,
    ValidationError,
)
from .events import EventBus
from .models import (
    Forward,
    GraphResult,
    NodeEndEvent,
    NodeHistory,
    NodeSnapshot,
    NodeStartEvent,
    RouteDecision,
    RunOptions,
    Terminate,
    WorkflowEndEvent,
    WorkflowStartEvent,
    resolve_route,
)
from .nodes import ExecutorNode, MergeNode, Node, RouterNode, call_node

logger = logging.getLogger(__name__)

_NO_OUTPUT = object()


class _EndReached:
    def __init__(self, output: Any):
        self.output = output


class RunState:
    """Mutable state owned by exactly one run.

    Every fan-out branch is an asyncio task registered here. `outcome`
    resolves when the end node succeeds, when a branch fails, or when the
    last branch finishes.
    """

    def __init__(self, execution_id: str, options: RunOptions):
        self.execution_id = execution_id
        self.options = options
        self.started_at = time.monotonic()
        self.deadline = self.started_at + options.timeout_ms / 1000
        self.visits = 0
        self.histories: List[NodeHistory] = []
        # merge node name -> {source name -> output} collected so far
        self.pending_merges: Dict[str, Dict[str, Any]] = {}
        self.leaf_output: Any = _NO_OUTPUT
        self.closed = False
        self.tasks: Set[asyncio.Task] = set()
        self.outcome: asyncio.Future = asyncio.get_running_loop().create_future()

    def check_deadline(self) -> None:
        if time.monotonic() >= self.deadline:
            raise GraphTimeoutError(self.options.timeout_ms)

    def reserve_visit(self, node_name: str) -> None:
        if self.closed:
            # the run already ended; this branch must not start new work
            raise asyncio.CancelledError()
        limit = self.options.max_node_visits
        if self.visits >= limit:
            raise LimitExceededError(
                f"node visit limit of {limit} reached before visiting '{node_name}'", limit=limit
            )
        self.check_deadline()
        self.visits += 1

    def record(self, history: NodeHistory) -> bool:
        if self.closed:
            return False
        self.histories.append(history)
        return True

    def contribute(self, merge: MergeNode, source: str, value: Any) -> Optional[Dict[str, Any]]:
        """Store one source's output; return the full mapping once every source reported."""
        collected = self.pending_merges.setdefault(merge.name, {})
        collected[source] = value
        if any(name not in collected for name in merge.sources):
            return None
        del self.pending_merges[merge.name]
        return {name: collected[name] for name in merge.sources}

    def spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self.tasks.add(task)
        task.add_done_callback(self._branch_done)

    def _branch_done(self, task: asyncio.Task) -> None:
        self.tasks.discard(task)
        if task.cancelled():
            if not self.closed and not self.outcome.done():
                self.outcome.set_exception(GraphError("branch was cancelled while the run was still open"))
                self.close()
            return
        exc = task.exception()
        if self.closed or self.outcome.done():
            return
        if exc is not None:
            self.outcome.set_exception(exc)
            self.close()
        elif not self.tasks:
            self.outcome.set_result(None)

    def finish(self, output: Any) -> None:
        """End the run with the end node's output and stop every other branch."""
        if self.outcome.done():
            return
        self.outcome.set_result(_EndReached(output))
        self.close()

    def close(self) -> None:
        self.closed = True
        current = asyncio.current_task()
        for task in list(self.tasks):
            if task is not current:
                task.cancel()


class WorkflowEngine:
    """Walks a compiled graph from its start node, one RunState per run."""

    def __init__(
        self,
        nodes: Mapping[str, Node],
        edges: Mapping[str, Edge],
        start: str,
        end: Optional[str],
        bus: EventBus,
    ):
        self.nodes = nodes
        self.edges = edges
        self.start = start
        self.end = end
        self.bus = bus

    async def run(self, input: Any, options: Any = None) -> GraphResult:
        options = RunOptions.resolve(options)
        run = RunState(str(uuid.uuid4()), options)
        logger.debug("run_started: execution_id=%s, start=%s", run.execution_id, self.start)
        await self.bus.publish(
            WorkflowStartEvent(execution_id=run.execution_id, started_at=run.started_at, input=input)
        )

        output, error = None, None
        try:
            output = await self._traverse(run, input)
        except GraphError as exc:
            error = exc
        finally:
            run.close()

        result = GraphResult(
            execution_id=run.execution_id,
            started_at=run.started_at,
            ended_at=time.monotonic(),
            is_ok=error is None,
            error=error,
            output=output if error is None else None,
            histories=list(run.histories),
        )
        if error is None:
            logger.info(
                "run_completed: execution_id=%s, nodes=%d", run.execution_id, len(result.histories)
            )
        else:
            logger.warning(
                "run_failed: execution_id=%s, nodes=%d, error=%s",
                run.execution_id,
                len(result.histories),
                error,
            )
        await self.bus.publish(WorkflowEndEvent(execution_id=run.execution_id, result=result))
        return result

    async def _traverse(self, run: RunState, input: Any) -> Any:
        run.spawn(self._walk(run, self.start, input))
        remaining = max(run.deadline - time.monotonic(), 0)
        done, _ = await asyncio.wait({run.outcome}, timeout=remaining)
        if not done:
            raise GraphTimeoutError(run.options.timeout_ms)

        outcome = run.outcome.result()
        if isinstance(outcome, _EndReached):
            return outcome.output
        if run.pending_merges:
            stalled = ", ".join(
                f"'{name}' (has {sorted(collected)})" for name, collected in run.pending_merges.items()
            )
            logger.warning("merge_stalled: execution_id=%s, merges=%s", run.execution_id, stalled)
            raise LimitExceededError(f"merge node(s) stalled waiting for sources: {stalled}")
        return None if run.leaf_output is _NO_OUTPUT else run.leaf_output

    async def _walk(self, run: RunState, name: str, value: Any) -> None:
        """Drive one branch until it ends, fails, or suspends at a merge node."""
        while True:
            node = self.nodes[name]
            output, decision = await self._visit(run, node, value)
            if name == self.end:
                run.finish(output)
                return

            steps = await self._next_steps(node, output, decision)
            if not steps:
                run.leaf_output = output
                return

            ready: List[Tuple[str, Any]] = []
            for target, target_input in steps:
                target_node = self.nodes[target]
                if isinstance(target_node, MergeNode):
                    if name not in target_node.sources:
                        raise NodeExecutionError(
                            name, f"'{name}' is not a source of merge node '{target}'"
                        )
                    target_input = run.contribute(target_node, name, target_input)
                    if target_input is None:
                        logger.debug(
                            "merge_waiting: execution_id=%s, merge=%s, source=%s",
                            run.execution_id,
                            target,
                            name,
                        )
                        continue
                ready.append((target, target_input))

            if not ready:
                return
            for target, target_input in ready[1:]:
                run.spawn(self._walk(run, target, target_input))
            name, value = ready[0]

    async def _visit(self, run: RunState, node: Node, value: Any) -> Tuple[Any, Optional[RouteDecision]]:
        run.reserve_visit(node.name)
        started_at = time.monotonic()
        await self.bus.publish(
            NodeStartEvent(
                execution_id=run.execution_id,
                started_at=started_at,
                node=NodeSnapshot(name=node.name, kind=node.kind, input=value),
            )
        )

        output, decision, error = None, None, None
        try:
            if isinstance(node, ExecutorNode):
                value = node.validate_input(value)
            output, decision = await self._invoke(node, value)
        except ValidationError as exc:
            error = exc
        except asyncio.CancelledError as exc:
            if run.closed:
                raise
            # the node cancelled itself (e.g. an awaited inner task was cancelled)
            error = NodeExecutionError(node.name, "node was cancelled")
            error.__cause__ = exc
        except Exception as exc:
            error = NodeExecutionError(node.name, f"{type(exc).__name__}: {exc}")
            error.__cause__ = exc
        ended_at = time.monotonic()

        # a result that arrives after expiry is dropped, not recorded
        run.check_deadline()
        history = NodeHistory(
            started_at=started_at,
            ended_at=ended_at,
            is_ok=error is None,
            error=error,
            node=NodeSnapshot(name=node.name, kind=node.kind, input=value, output=output),
        )
        if not run.record(history):
            raise asyncio.CancelledError()
        logger.debug(
            "node_finished: execution_id=%s, node=%s, ok=%s", run.execution_id, node.name, error is None
        )
        await self.bus.publish(NodeEndEvent(execution_id=run.execution_id, history=history))

        if error is not None:
            raise error
        return output, decision

    async def _invoke(self, node: Node, value: Any) -> Tuple[Any, Optional[RouteDecision]]:
        if isinstance(node, RouterNode):
            # a router node passes its input through and decides where it goes
            return value, resolve_route(await call_node(node.router, value))
        return await call_node(node.execute, value), None

    async def _next_steps(
        self, node: Node, output: Any, decision: Optional[RouteDecision]
    ) -> List[Tuple[str, Any]]:
        if decision is None:
            edge = self.edges.get(node.name)
            if edge is None:
                return []
            if isinstance(edge, DirectEdge):
                return [(target, output) for target in edge.targets]
            try:
                decision = resolve_route(await call_node(edge.router, output))
            except Exception as exc:
                raise NodeExecutionError(node.name, f"router raised {type(exc).__name__}: {exc}") from exc

        if isinstance(decision, Terminate):
            return []
        if decision.name not in self.nodes:
            raise NodeExecutionError(node.name, f"router chose unknown node '{decision.name}'")
        if isinstance(decision, Forward):
            return [(decision.name, decision.input)]
        return [(decision.name, output)]
