"""Pytest configuration and fixtures."""

import pytest

from nodeflow import GraphRegistry


class EventRecorder:
    """Subscriber that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [event.event_type.value for event in self.events]

    def of_type(self, event_type):
        return [event for event in self.events if event.event_type.value == event_type]


@pytest.fixture
def linear_registry():
    """A -> B -> C: double, add one, stringify."""
    return (
        GraphRegistry()
        .add_node("A", lambda x: x * 2)
        .add_node("B", lambda x: x + 1)
        .add_node("C", str)
        .edge("A", "B")
        .edge("B", "C")
    )


@pytest.fixture
def linear_graph(linear_registry):
    return linear_registry.compile("A", "C")


@pytest.fixture
def recorder():
    return EventRecorder()
