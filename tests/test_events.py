"""Tests for the per-graph event bus."""

import asyncio

import pytest

from nodeflow import EventType, GraphRegistry
from nodeflow.events import EventBus
from nodeflow.models import WorkflowStartEvent


class TestEventOrder:
    """Tests for the lifecycle event sequence of a run."""

    @pytest.mark.asyncio
    async def test_linear_run_event_sequence(self, linear_graph, recorder):
        linear_graph.subscribe(recorder)

        result = await linear_graph.run(5)

        assert recorder.types == [
            "WORKFLOW_START",
            "NODE_START",
            "NODE_END",
            "NODE_START",
            "NODE_END",
            "NODE_START",
            "NODE_END",
            "WORKFLOW_END",
        ]
        assert {event.execution_id for event in recorder.events} == {result.execution_id}
        assert recorder.events[0].input == 5
        assert recorder.events[-1].result is result

    @pytest.mark.asyncio
    async def test_node_end_events_match_histories(self, recorder):
        async def wait(x):
            await asyncio.sleep(0.01 * x)
            return x

        graph = (
            GraphRegistry()
            .add_node("A", lambda x: x)
            .add_node("B", wait)
            .add_node("C", wait)
            .add_merge_node("M", ["B", "C"], lambda inputs: inputs)
            .edge("A", ["B", "C"])
            .edge("B", "M")
            .edge("C", "M")
            .compile("A", "M")
        )
        graph.subscribe(recorder)

        result = await graph.run(1)

        node_ends = recorder.of_type("NODE_END")
        assert [event.history for event in node_ends] == result.histories

    @pytest.mark.asyncio
    async def test_every_node_end_has_a_prior_node_start(self, recorder):
        graph = (
            GraphRegistry()
            .add_node("A", lambda x: x)
            .add_node("B", lambda x: x)
            .add_node("C", lambda x: x)
            .edge("A", ["B", "C"])
            .compile("A")
        )
        graph.subscribe(recorder)

        await graph.run(1)

        started = set()
        for event in recorder.events:
            if event.event_type == EventType.NODE_START:
                started.add(event.node.name)
            elif event.event_type == EventType.NODE_END:
                assert event.history.node.name in started

    @pytest.mark.asyncio
    async def test_failed_run_still_ends_with_workflow_end(self, recorder):
        def fail(value):
            raise RuntimeError("nope")

        graph = GraphRegistry().add_node("A", fail).compile("A")
        graph.subscribe(recorder)

        result = await graph.run(1)

        assert recorder.types == ["WORKFLOW_START", "NODE_START", "NODE_END", "WORKFLOW_END"]
        assert not recorder.events[2].history.is_ok
        assert recorder.events[-1].result is result


class TestSubscribers:
    """Tests for subscribe/unsubscribe and handler isolation."""

    @pytest.mark.asyncio
    async def test_handler_exception_does_not_abort_run(self, linear_graph, recorder):
        def broken(event):
            raise RuntimeError("subscriber fault")

        linear_graph.subscribe(broken)
        linear_graph.subscribe(recorder)

        result = await linear_graph.run(5)

        assert result.is_ok
        assert result.output == "11"
        assert len(recorder.events) == 8

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self, linear_graph):
        seen = []

        async def handler(event):
            await asyncio.sleep(0)
            seen.append(event.event_type)

        linear_graph.subscribe(handler)
        await linear_graph.run(5)

        assert seen[0] == EventType.WORKFLOW_START
        assert seen[-1] == EventType.WORKFLOW_END
        assert len(seen) == 8

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_delivery(self, linear_graph, recorder):
        linear_graph.subscribe(recorder)
        await linear_graph.run(5)
        linear_graph.unsubscribe(recorder)
        await linear_graph.run(5)

        assert len(recorder.events) == 8

    @pytest.mark.asyncio
    async def test_subscribing_twice_delivers_once(self, linear_graph, recorder):
        linear_graph.subscribe(recorder)
        linear_graph.subscribe(recorder)

        await linear_graph.run(5)

        assert len(recorder.events) == 8

    @pytest.mark.asyncio
    async def test_handler_can_unsubscribe_during_delivery(self, linear_graph, recorder):
        calls = []

        def once(event):
            calls.append(event)
            linear_graph.unsubscribe(once)

        linear_graph.subscribe(once)
        linear_graph.subscribe(recorder)

        result = await linear_graph.run(5)

        assert result.is_ok
        assert len(calls) == 1
        assert len(recorder.events) == 8

    def test_unsubscribe_unknown_handler_is_ignored(self):
        bus = EventBus()
        bus.unsubscribe(print)
        assert bus.handlers == []

    @pytest.mark.asyncio
    async def test_publish_reaches_every_handler(self):
        bus = EventBus()
        received = []
        bus.subscribe(lambda event: received.append(("first", event.execution_id)))
        bus.subscribe(lambda event: received.append(("second", event.execution_id)))

        await bus.publish(WorkflowStartEvent(execution_id="run-1", started_at=0.0, input=None))

        assert received == [("first", "run-1"), ("second", "run-1")]
