"""Tests for the HTTP surface."""

import pytest
from fastapi.testclient import TestClient

from nodeflow import GraphRegistry
from nodeflow.library import GRAPHS
from nodeflow.main import SAMPLE_CODE, app


def fail(value):
    raise ValueError("boom")


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def failing_graph():
    GRAPHS["failing"] = GraphRegistry().add_node("A", lambda x: x).add_node("B", fail).edge("A", "B").compile("A", "B")
    yield GRAPHS["failing"]
    GRAPHS.pop("failing", None)


class TestGraphEndpoints:
    """Tests for /graphs routes."""

    def test_list_graphs(self, client):
        response = client.get("/graphs")
        assert response.status_code == 200
        assert "code_review" in response.json()["graphs"]

    def test_structure(self, client):
        response = client.get("/graphs/code_review/structure")
        assert response.status_code == 200
        structure = {node["name"]: node["edge"] for node in response.json()["structure"]}
        assert structure["suggest"] == {"type": "direct", "name": "check_done"}
        assert structure["check_done"] == {"type": "dynamic", "name": "check_done"}

    def test_unknown_graph(self, client):
        assert client.get("/graphs/nope/structure").status_code == 404
        assert client.post("/graphs/nope/run", json={"input": 1}).status_code == 404

    def test_run_graph(self, client):
        response = client.post("/graphs/code_review/run", json={"input": {"code": SAMPLE_CODE, "threshold": 85}})
        body = response.json()

        assert response.status_code == 200
        assert body["is_ok"] is True
        assert body["error"] is None
        assert body["output"]["quality_score"] == 45
        assert body["histories"][0]["node"]["kind"] == "executor"

    def test_run_failure_is_serialised(self, client, failing_graph):
        response = client.post("/graphs/failing/run", json={"input": 1})
        body = response.json()

        assert response.status_code == 200
        assert body["is_ok"] is False
        assert body["error"]["type"] == "NodeExecutionError"
        assert "boom" in body["error"]["message"]
        assert body["histories"][1]["error"]["type"] == "NodeExecutionError"

    def test_run_options_are_forwarded(self, client):
        response = client.post(
            "/graphs/code_review/run",
            json={"input": {"code": SAMPLE_CODE, "threshold": 85}, "max_node_visits": 3},
        )
        body = response.json()

        assert body["is_ok"] is False
        assert body["error"]["type"] == "LimitExceededError"
        assert len(body["histories"]) == 3

    def test_non_positive_options_rejected(self, client):
        response = client.post("/graphs/code_review/run", json={"input": {}, "timeout_ms": 0})
        assert response.status_code == 422


class TestExampleEndpoint:
    """Tests for the built-in code review example."""

    def test_default_sample(self, client):
        response = client.post("/example/run-code-review")
        body = response.json()

        assert response.status_code == 200
        assert body["is_ok"] is True
        assert body["output"]["threshold"] == 45

    def test_posted_code(self, client):
        response = client.post("/example/run-code-review", json={"code": "def ok():\n    return 1\n", "threshold": 50})
        assert response.json()["output"]["quality_score"] == 95

    def test_rejected_option_is_named(self, client):
        response = client.post("/graphs/code_review/run", json={"input": {}, "max_node_visits": -1})

        assert response.status_code == 422
        assert response.json()["detail"][0]["loc"] == ["max_node_visits"]
