"""Tests for the HTTP API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from autoflow.runtime import RuntimeConfig
from autoflow.web import create_app
from autoflow.workflow.llm import LLMError

from conftest import FakeBackend, wire_plan


@pytest.fixture
def config(tmp_path):
    return RuntimeConfig(db_path=str(tmp_path / "web.db"))


def make_client(config, backend):
    return TestClient(create_app(config, backend=backend))


def test_health(config):
    with make_client(config, FakeBackend(model="m")) as client:
        r = client.get("/api/workflow/test")
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["generator"]["model"] == "m"


def test_generate_returns_wire_plan(config):
    backend = FakeBackend(wire_plan("analyze_input", "send_output"))
    with make_client(config, backend) as client:
        r = client.post("/api/workflow/generate", json={"prompt": "Summarize my notes"})
        cached = client.post("/api/workflow/generate", json={"prompt": "Summarize my notes"})

    assert r.status_code == 200
    assert [s["action"] for s in r.json()["workflow"]] == ["analyze_input", "send_output"]
    assert r.json()["source"] == "llm"
    assert cached.json()["source"] == "cache"
    assert backend.calls == 1


@pytest.mark.parametrize("prompt", ["", "   ", "a" * 2001])
def test_generate_rejects_invalid_prompt(config, prompt):
    with make_client(config, FakeBackend(wire_plan("analyze_input"))) as client:
        r = client.post("/api/workflow/generate", json={"prompt": prompt})
    assert r.status_code == 400


def test_generate_maps_backend_errors_to_502(config):
    backend = FakeBackend(error=LLMError("denied", kind="auth"))
    with make_client(config, backend) as client:
        r = client.post("/api/workflow/generate", json={"prompt": "Send an email"})
    assert r.status_code == 502
    assert r.json()["detail"] == "Invalid or missing API key"


def test_run_end_to_end_and_read_back(config):
    backend = FakeBackend(error=LLMError("overloaded", kind="unavailable"))
    with make_client(config, backend) as client:
        r = client.post(
            "/api/workflow/run",
            json={"prompt": "Send an email to a@example.com with subject 'Hi' and message 'Hello'"},
        )
        body = r.json()
        status = client.get(f"/api/workflow/status/{body['execution_id']}")
        history = client.get("/api/workflow/history", params={"limit": 5})

    assert r.status_code == 200
    assert body["success"] is True
    assert body["status"] == "completed"
    assert len(body["step_results"]) == 4
    assert body["workflow_id"]
    assert status.json()["status"] == "completed"
    assert [e["id"] for e in history.json()["executions"]] == [body["execution_id"]]


def test_run_with_supplied_workflow(config):
    backend = FakeBackend(error=LLMError("should not be called"))
    plan = wire_plan("analyze_input", "generate_content", "send_output")
    with make_client(config, backend) as client:
        r = client.post("/api/workflow/run", json={"prompt": "Write a haiku", "workflow": plan})
    assert r.status_code == 200
    assert r.json()["status"] == "completed"
    assert backend.calls == 0


def test_run_step_failure_is_200_with_success_false(config):
    plan = wire_plan("analyze_input", "transform_data", "send_output")
    plan["workflow"][1]["params"] = {"target_format": "xml"}
    with make_client(config, FakeBackend()) as client:
        r = client.post("/api/workflow/run", json={"prompt": "Convert it", "workflow": plan})

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is False
    assert body["status"] == "failed"
    assert len(body["step_results"]) == 2
    assert body["error"].startswith("Workflow failed at step 2 (transform_data)")


def test_run_malformed_workflow_is_400(config):
    with make_client(config, FakeBackend()) as client:
        r = client.post(
            "/api/workflow/run",
            json={"prompt": "x", "workflow": {"workflow": [{"step": 1, "action": "nope", "params": {}}]}},
        )
    assert r.status_code == 400


def test_run_workflow_over_ten_steps_is_400(config):
    workflow = wire_plan(*["analyze_input"] * 11)
    with make_client(config, FakeBackend()) as client:
        r = client.post("/api/workflow/run", json={"prompt": "x", "workflow": workflow})
        history = client.get("/api/workflow/history").json()
    assert r.status_code == 400
    assert "more than 10 steps" in r.json()["detail"]
    assert history["executions"] == []


def test_unknown_execution_is_404(config):
    with make_client(config, FakeBackend()) as client:
        r = client.get("/api/workflow/status/does-not-exist")
    assert r.status_code == 404


def test_actions_and_samples(config):
    with make_client(config, FakeBackend()) as client:
        actions = client.get("/api/workflow/actions").json()["actions"]
        samples = client.get("/api/workflow/samples").json()

    assert len(actions) == 12
    assert {"simple", "comprehensive"} <= set(samples["templates"])
    assert any(s["name"] == "code_review" for s in samples["samples"])
