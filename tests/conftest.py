"""Pytest configuration and fixtures."""

import json
import random
from typing import Any, Dict, List, Optional

import pytest
import requests
from fastapi.testclient import TestClient

from workflow_builder.config import get_testing_config
from workflow_builder.core.execution_client import ExecutionClient
from workflow_builder.core.graph_editor import WorkflowEditor
from workflow_builder.factory import create_app
from workflow_builder.models.core import NodeKind, Position, Workflow


def make_response(status_code: int = 200, payload: Any = None, text: Optional[str] = None) -> requests.Response:
    """Build a requests.Response as the execution engine would return it."""
    response = requests.Response()
    response.status_code = status_code
    if text is not None:
        response._content = text.encode("utf-8")
        response.headers["Content-Type"] = "text/plain"
    else:
        response._content = json.dumps(payload).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    response.url = "http://engine.test/run"
    return response


class FakeEngineSession:
    """Stands in for requests.Session; records posted documents."""

    def __init__(self):
        self.calls: List[Dict[str, Any]] = []
        self.response: Optional[requests.Response] = None
        self.error: Optional[Exception] = None
        self.closed = False

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error is not None:
            raise self.error
        return self.response

    def close(self):
        self.closed = True


def successful_trace(node_ids: List[str]) -> Dict[str, Any]:
    """Execution engine payload for a run that visited the given nodes in order."""
    return {
        "success": True,
        "execution_stats": {
            "nodes_executed": len(node_ids),
            "branches_taken": 0,
            "loops_completed": 0,
            "total_time": 1.25,
        },
        "node_results": [
            {"node_id": node_id, "status": "success", "output": {"step": index}, "execution_time": 0.5}
            for index, node_id in enumerate(node_ids)
        ],
        "execution_path": node_ids,
        "final_output": "done",
        "performance_metrics": {"avg_node_time": 0.41666, "throughput": 2},
    }


@pytest.fixture
def fake_engine():
    """Fake transport for the execution engine."""
    return FakeEngineSession()


@pytest.fixture
def execution_client(fake_engine):
    """Execution client talking to the fake engine."""
    return ExecutionClient("http://engine.test/run", timeout=5.0, session=fake_engine)


@pytest.fixture
def editor():
    """Editor over an empty workflow with deterministic placement."""
    return WorkflowEditor(Workflow(name="Demo"), rng=random.Random(7))


@pytest.fixture
def linear_workflow(editor):
    """Valid start -> action -> end workflow."""
    start = editor.add_node(NodeKind.START, Position(x=40, y=40))
    action = editor.add_node(NodeKind.ACTION, Position(x=240, y=40))
    end = editor.add_node(NodeKind.END, Position(x=440, y=40))
    editor.update_node(action.id, config={"action": "Summarize the inbox"})
    editor.add_connection(start.id, "output", action.id, "input")
    editor.add_connection(action.id, "success", end.id, "input")
    return editor.workflow


@pytest.fixture
def test_config():
    """Configuration used by API tests."""
    return get_testing_config()


@pytest.fixture
def app(test_config, execution_client):
    """Application wired to the fake engine."""
    return create_app(test_config, execution_client=execution_client)


@pytest.fixture
def client(app):
    """Create a test client."""
    with TestClient(app) as test_client:
        yield test_client
