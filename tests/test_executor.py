"""Tests for the step executor and end-to-end runs."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from autoflow.actions import Action, ActionFailure, ActionRegistry, ActionResult
from autoflow.storage import NotFoundError, StorageError
from autoflow.workflow import (
    PersistenceWarning,
    PlanGenerator,
    StepExecutionError,
    StepTimeoutError,
    StructuralError,
    WorkflowExecutor,
    build_fallback_plan,
    run_task,
)
from autoflow.workflow.context import detect_category
from autoflow.workflow.llm import LLMError

from conftest import FakeBackend, wire_plan


class Recorder(Action):
    """Returns its step number and records the context it saw."""

    name = "record"
    description = "Record the call"

    def __init__(self):
        self.contexts = []

    async def run(self, params, context):
        self.contexts.append(context)
        return {"step": context.step_number, "params": params}, {"seen": len(context.previous_results)}


class Fails(Action):
    name = "fail"
    description = "Business failure"

    async def run(self, params, context):
        raise ActionFailure("not allowed")


class Crashes(Action):
    name = "crash"
    description = "Unexpected exception"

    async def run(self, params, context):
        raise RuntimeError("handler exploded")


class Hangs(Action):
    name = "hang"
    description = "Never settles"

    async def run(self, params, context):
        await asyncio.Event().wait()


class ReturnsDict(Action):
    """Bypasses run and answers with the plain dict form."""

    name = "plain"
    description = "Dict outcome"

    async def execute(self, params, context):
        return {"success": True, "data": {"ok": 1}}


class Unsure(Action):
    name = "unsure"
    description = "Success left unset"

    async def execute(self, params, context):
        return ActionResult(success=None, data="maybe")


class ReturnsNothing(Action):
    name = "nothing"
    description = "Malformed outcome"

    async def execute(self, params, context):
        return None


class SelfReferencing(Action):
    name = "loop"
    description = "Output that cannot be serialized"

    async def run(self, params, context):
        data = {}
        data["self"] = data
        return data, {}


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def registry(recorder):
    return ActionRegistry(
        [recorder, Fails(), Crashes(), Hangs(), ReturnsDict(), Unsure(), ReturnsNothing(), SelfReferencing()]
    )


@pytest.fixture
def executor(store, registry):
    return WorkflowExecutor(store, registry=registry, step_timeout=0.2)


# -----------------------------------------------------------------------------
# Structure
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "plan",
    [
        {"workflow": []},
        {"steps": []},
        {"workflow": [{"step": 1, "action": "launch_rocket", "params": {}}]},
        {"workflow": [{"step": 1, "action": "record", "params": "x"}]},
        {"workflow": [{"action": "record", "params": {}}]},
        "not a plan",
    ],
)
@pytest.mark.asyncio
async def test_structural_errors_before_any_side_effect(plan, registry, recorder):
    store = AsyncMock()
    executor = WorkflowExecutor(store, registry=registry)

    with pytest.raises(StructuralError):
        await executor.execute_workflow(plan, "input")

    store.create_execution.assert_not_awaited()
    assert recorder.contexts == []


@pytest.mark.asyncio
async def test_plans_are_capped_at_ten_steps(executor, store, recorder):
    result = await executor.execute_workflow(wire_plan(*["record"] * 10), "ten steps")
    assert len(result.step_results) == 10

    with pytest.raises(StructuralError, match="more than 10 steps"):
        await executor.execute_workflow(wire_plan(*["record"] * 11), "eleven steps")
    assert len(recorder.contexts) == 10
    assert len(await store.get_all_executions()) == 1


# -----------------------------------------------------------------------------
# Success and failure
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_all_steps_succeed(executor, store, recorder):
    result = await executor.execute_workflow(wire_plan("record", "record", "record"), "Write a report")

    assert result.status == "completed"
    assert [r.step_number for r in result.step_results] == [1, 2, 3]
    assert all(r.success and r.retry_count == 0 for r in result.step_results)
    assert result.output == {"step": 3, "params": {}}
    assert result.category == "document"

    record = await store.get_execution(result.execution_id)
    assert record.status == "completed"
    assert record.output["step_results"][2]["step_number"] == 3


@pytest.mark.asyncio
async def test_context_is_threaded_between_steps(executor, recorder):
    plan = wire_plan("record", "record", "record")
    plan["workflow"][2]["params"] = {"source": "$step_1"}

    result = await executor.execute_workflow(plan, "input", {"user_id": "u1"})

    first, second, third = recorder.contexts
    assert first.previous_results == ()
    assert second.previous_data == {"step": 1, "params": {}}
    assert set(third.shared) == {"step_1", "step_2"}
    assert third.is_last_step and not first.is_last_step
    assert first.user_id == "u1"
    assert first.session_id == third.session_id
    assert first.request_id != second.request_id
    assert result.step_results[2].data["params"] == {"source": {"step": 1, "params": {}}}

    with pytest.raises(TypeError):
        third.shared["step_9"] = "tampered"


@pytest.mark.asyncio
async def test_default_user_and_session(executor, recorder):
    await executor.execute_workflow(wire_plan("record"), "input")
    context = recorder.contexts[0]
    assert context.user_id == "demo_user"
    assert context.session_id.startswith("session_")


@pytest.mark.parametrize("failing,message", [("fail", "not allowed"), ("crash", "handler exploded")])
@pytest.mark.asyncio
async def test_failure_at_step_k_aborts(executor, store, recorder, failing, message):
    plan = wire_plan("record", failing, "record", "record")

    with pytest.raises(StepExecutionError) as exc:
        await executor.execute_workflow(plan, "input")

    error = exc.value
    assert error.step_index == 1
    assert error.step_number == 2
    assert error.action == failing
    assert error.message == message
    assert str(error) == f"Workflow failed at step 2 ({failing}): {message}"

    execution = error.execution
    assert execution.status == "failed"
    assert [r.success for r in execution.step_results] == [True, False]
    assert execution.step_results[1].error == message
    assert len(recorder.contexts) == 1

    record = await store.get_execution(execution.execution_id)
    assert record.status == "failed"


@pytest.mark.asyncio
async def test_step_timeout(executor, recorder):
    with pytest.raises(StepTimeoutError) as exc:
        await executor.execute_workflow(wire_plan("record", "hang", "record"), "input")

    assert exc.value.step_number == 2
    assert "timed out" in exc.value.message
    assert len(exc.value.execution.step_results) == 2
    assert len(recorder.contexts) == 1


def test_step_timeout_must_be_positive(store):
    with pytest.raises(ValueError):
        WorkflowExecutor(store, step_timeout=0)


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_final_update_failure_is_a_warning(registry, store):
    record = await store.create_execution({"status": "running"})
    failing_store = AsyncMock()
    failing_store.create_execution.return_value = record
    failing_store.update_execution.side_effect = StorageError("disk full")
    executor = WorkflowExecutor(failing_store, registry=registry)

    with pytest.warns(PersistenceWarning):
        result = await executor.execute_workflow(wire_plan("record"), "input")

    assert result.status == "completed"
    assert failing_store.update_execution.await_count == 2
    status_only = failing_store.update_execution.await_args_list[1].args[1]
    assert status_only == {"status": "completed", "execution_time": result.duration_ms}


@pytest.mark.asyncio
async def test_final_update_failure_keeps_step_error(registry, store):
    record = await store.create_execution({"status": "running"})
    failing_store = AsyncMock()
    failing_store.create_execution.return_value = record
    failing_store.update_execution.side_effect = StorageError("disk full")
    executor = WorkflowExecutor(failing_store, registry=registry)

    with pytest.warns(PersistenceWarning), pytest.raises(StepExecutionError):
        await executor.execute_workflow(wire_plan("fail"), "input")


@pytest.mark.asyncio
async def test_non_storage_error_on_final_update_keeps_step_error(registry, store):
    record = await store.create_execution({"status": "running"})
    failing_store = AsyncMock()
    failing_store.create_execution.return_value = record
    failing_store.update_execution.side_effect = ConnectionError("store unreachable")
    executor = WorkflowExecutor(failing_store, registry=registry)

    with pytest.warns(PersistenceWarning), pytest.raises(StepExecutionError, match="not allowed"):
        await executor.execute_workflow(wire_plan("fail"), "input")


@pytest.mark.asyncio
async def test_unserializable_output_still_closes_record(executor, store):
    with pytest.warns(PersistenceWarning):
        result = await executor.execute_workflow(wire_plan("loop"), "input")

    assert result.status == "completed"
    assert (await store.get_execution(result.execution_id)).status == "completed"


# -----------------------------------------------------------------------------
# Handler outcomes
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_dict_outcome_is_accepted(executor):
    result = await executor.execute_workflow(wire_plan("plain"), "input")

    assert result.status == "completed"
    assert result.output == {"ok": 1}


@pytest.mark.asyncio
async def test_unset_success_counts_as_success(executor):
    result = await executor.execute_workflow(wire_plan("unsure", "record"), "input")

    assert result.status == "completed"
    assert result.step_results[0].success is True
    assert result.step_results[0].data == "maybe"


@pytest.mark.asyncio
async def test_malformed_outcome_fails_the_step(executor, store, recorder):
    with pytest.raises(StepExecutionError) as exc:
        await executor.execute_workflow(wire_plan("record", "nothing", "record"), "input")

    assert exc.value.step_index == 1
    assert "expected ActionResult" in exc.value.message
    assert len(recorder.contexts) == 1
    assert (await store.get_execution(exc.value.execution.execution_id)).status == "failed"


@pytest.mark.asyncio
async def test_execution_status_and_history(executor):
    done = await executor.execute_workflow(wire_plan("record"), "post to social")
    with pytest.raises(StepExecutionError):
        await executor.execute_workflow(wire_plan("fail"), "email me")

    status = await executor.get_execution_status(done.execution_id)
    assert status["status"] == "completed"

    history = await executor.get_execution_history(limit=10)
    assert [h["status"] for h in history] == ["failed", "completed"]
    assert [h["category"] for h in history] == ["email", "social_media"]
    assert len(await executor.get_execution_history(limit=1)) == 1

    with pytest.raises(NotFoundError):
        await executor.get_execution_status("missing")


# -----------------------------------------------------------------------------
# Category detection
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text,category",
    [
        ("Post on social", "social_media"),
        ("send a message", "email"),
        ("quarterly report", "document"),
        ("review this code", "code"),
        ("improve my cv", "resume"),
        ("schedule a meeting", "planning"),
        ("hello", "general"),
        ("email the social team", "social_media"),
    ],
)
def test_detect_category(text, category):
    assert detect_category(text) == category


# -----------------------------------------------------------------------------
# End to end
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_email_request_end_to_end_with_backend_unavailable(store):
    request = "Send an email to a@example.com with subject 'Hi' and message 'Hello'"
    generator = PlanGenerator(FakeBackend(error=LLMError("503 UNAVAILABLE", kind="unavailable")))
    executor = WorkflowExecutor(store)

    result = await run_task(request, generator=generator, executor=executor)

    assert result.status == "completed"
    assert result.plan.source == "fallback"
    assert [r.action for r in result.step_results] == [
        "analyze_input",
        "collect_credentials",
        "execute_action",
        "send_output",
    ]
    assert all(r.success for r in result.step_results)

    sent = result.step_results[2]
    assert sent.data["action_data"] == {
        "to": "a@example.com",
        "subject": "Hi",
        "body": "Hello",
        "from": "noreply@autoflow.local",
    }
    assert sent.integration == {
        "action_type": "execute_action",
        "provider": "gmail",
        "integration_id": None,
        "status": "completed",
    }
    assert result.step_results[0].integration is None

    record = await store.get_execution(result.execution_id)
    assert record.status == "completed"
    workflow = await store.get_workflow(record.workflow_id)
    assert workflow.source == "fallback"
    assert workflow.plan == build_fallback_plan(request).to_dict()


@pytest.mark.asyncio
async def test_run_task_propagates_generation_errors(store):
    from autoflow.workflow import GenerationError

    generator = PlanGenerator(FakeBackend(error=LLMError("bad key", kind="auth")))
    with pytest.raises(GenerationError):
        await run_task("Send an email", generator=generator, executor=WorkflowExecutor(store))
    assert await store.get_all_executions() == []
