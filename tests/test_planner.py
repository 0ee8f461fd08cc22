"""Tests for the plan generator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from autoflow.workflow.cache import PlanCache
from autoflow.workflow.errors import GenerationError, ValidationError
from autoflow.workflow.llm import LLMError
from autoflow.workflow.planner import PlanGenerator, build_prompt, validate_request

from conftest import FakeBackend, wire_plan


# -----------------------------------------------------------------------------
# Request validation
# -----------------------------------------------------------------------------


def test_request_of_exactly_max_length_is_accepted():
    assert validate_request("a" * 2000)


@pytest.mark.parametrize("request_text", ["a" * 2001, "", "   \n\t", None, 42])
def test_invalid_requests(request_text):
    with pytest.raises(ValidationError):
        validate_request(request_text)


@pytest.mark.asyncio
async def test_invalid_request_never_reaches_backend_or_cache():
    backend = FakeBackend(wire_plan("analyze_input"))
    store = AsyncMock()
    generator = PlanGenerator(backend, cache=PlanCache(store))

    with pytest.raises(ValidationError):
        await generator.generate("a" * 2001)

    assert backend.calls == 0
    store.get_cache_value.assert_not_awaited()


# -----------------------------------------------------------------------------
# Generation
# -----------------------------------------------------------------------------


def test_prompt_lists_vocabulary_and_ends_with_request():
    prompt = build_prompt("Send an email")
    assert "- execute_action:" in prompt
    assert '"workflow"' in prompt
    assert prompt.endswith("Send an email")


@pytest.mark.asyncio
async def test_generate_parses_fenced_response():
    backend = FakeBackend("```json\n" + FakeBackend(wire_plan("analyze_input", "send_output")).content + "\n```")
    plan = await PlanGenerator(backend).generate("Summarize my notes")

    assert plan.source == "llm"
    assert plan.actions == ["analyze_input", "send_output"]
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_unparseable_response_is_parse_error():
    generator = PlanGenerator(FakeBackend("I cannot help with that."))
    with pytest.raises(GenerationError) as exc:
        await generator.generate("Summarize my notes")
    assert exc.value.kind == "parse"
    assert str(exc.value) == "Failed to parse workflow response. Please try again."


@pytest.mark.asyncio
async def test_unknown_action_is_parse_error():
    generator = PlanGenerator(FakeBackend(wire_plan("analyze_input", "launch_rocket")))
    with pytest.raises(GenerationError) as exc:
        await generator.generate("Summarize my notes")
    assert exc.value.kind == "parse"


@pytest.mark.asyncio
async def test_eleven_step_plan_is_rejected():
    generator = PlanGenerator(FakeBackend(wire_plan(*["analyze_input"] * 11)))
    with pytest.raises(GenerationError):
        await generator.generate("Do many things")


# -----------------------------------------------------------------------------
# Backend failures
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    "kind,message",
    [
        ("auth", "Invalid or missing API key"),
        ("quota", "API quota exceeded"),
    ],
)
@pytest.mark.asyncio
async def test_classified_backend_failures(kind, message):
    generator = PlanGenerator(FakeBackend(error=LLMError("upstream", kind=kind)))
    with pytest.raises(GenerationError) as exc:
        await generator.generate("Send an email")
    assert str(exc.value) == message
    assert exc.value.kind == kind


@pytest.mark.asyncio
async def test_other_backend_failure():
    generator = PlanGenerator(FakeBackend(error=LLMError("bad request")))
    with pytest.raises(GenerationError, match="Workflow generation failed: bad request"):
        await generator.generate("Send an email")


@pytest.mark.asyncio
async def test_unavailable_backend_uses_fallback_and_skips_cache(store):
    backend = FakeBackend(error=LLMError("model is overloaded", kind="unavailable"))
    generator = PlanGenerator(backend, cache=PlanCache(store))
    request = "Send an email to a@example.com with subject 'Hi' and message 'Hello'"

    plan = await generator.generate(request)

    assert plan.source == "fallback"
    assert len(plan) == 4
    assert plan.steps[2].params["action_data"]["to"] == "a@example.com"

    # Not cached: a second call asks the backend again
    await generator.generate(request)
    assert backend.calls == 2


# -----------------------------------------------------------------------------
# Caching
# -----------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_cache_hit_avoids_backend(store):
    backend = FakeBackend(wire_plan("analyze_input", "generate_content", "send_output"))
    generator = PlanGenerator(backend, cache=PlanCache(store))

    first = await generator.generate("Write a haiku")
    second = await generator.generate("  write a HAIKU ")

    assert backend.calls == 1
    assert first.source == "llm"
    assert second.source == "cache"
    assert second.steps == first.steps


@pytest.mark.asyncio
async def test_use_cache_false_bypasses_cache(store):
    backend = FakeBackend(wire_plan("analyze_input"))
    generator = PlanGenerator(backend, cache=PlanCache(store))

    await generator.generate("Write a haiku", {"use_cache": False})
    await generator.generate("Write a haiku", {"use_cache": False})

    assert backend.calls == 2


@pytest.mark.asyncio
async def test_model_is_part_of_the_fingerprint(store):
    backend = FakeBackend(wire_plan("analyze_input"))
    cache = PlanCache(store)

    await PlanGenerator(backend, cache=cache, model="a").generate("Write a haiku")
    await PlanGenerator(backend, cache=cache, model="b").generate("Write a haiku")

    assert backend.calls == 2


@pytest.mark.asyncio
async def test_cache_ttl_option_is_passed_to_store():
    store = AsyncMock()
    store.get_cache_value.return_value = None
    generator = PlanGenerator(FakeBackend(wire_plan("analyze_input")), cache=PlanCache(store))

    await generator.generate("Write a haiku", {"cache_ttl": 120})

    key, value, ttl = store.set_cache_value.await_args.args
    assert ttl == 120
    assert value["workflow"][0]["action"] == "analyze_input"


def test_status():
    generator = PlanGenerator(FakeBackend(model="m1"))
    assert generator.status() == {"model": "m1", "provider": "fake", "cache_enabled": False, "actions": 12}
