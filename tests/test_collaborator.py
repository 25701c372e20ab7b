"""Tests for the collaborator boundary: retry, timeout, validation, prompts."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from langchain_core.exceptions import OutputParserException

from agent_memory.domain.collaborator import (
    CollaboratorClient,
    EvolutionExtras,
    LLMCollaborator,
    RetryPolicy,
    build_consolidation_prompt,
    build_evolution_prompt,
    build_summary_prompt,
)
from agent_memory.domain.errors import CollaboratorError, CollaboratorTimeout
from agent_memory.domain.models import (
    ConsolidationResponse,
    Interaction,
    Personality,
    Pillar,
    Summary,
    SummaryRange,
    SummaryResponse,
)
from agent_memory.infrastructure.observability import metrics


def _interactions():
    return [
        Interaction(id=1, role="user", text="hi"),
        Interaction(id=2, role="agent", text="hello"),
    ]


def test_backoff_delays_grow_exponentially():
    policy = RetryPolicy(max_attempts=4, backoff_seconds=0.5, backoff_multiplier=2.0)

    assert list(policy.delays()) == [0.5, 1.0, 2.0]


@pytest.mark.asyncio
async def test_retry_then_success(collaborator):
    collaborator.fail_next[SummaryResponse] = 1
    client = CollaboratorClient(collaborator, RetryPolicy(max_attempts=3, backoff_seconds=0.0))

    response = await client.request("summarize", "prompt", SummaryResponse)

    assert response.summary == "summary #1"
    assert collaborator.names() == ["SummaryResponse", "SummaryResponse"]
    summary = metrics.get_metrics_summary()
    assert summary["collaborator.summarize.failures"] == 1
    assert summary["latency.collaborator.summarize"]["count"] == 1


@pytest.mark.asyncio
async def test_exhausted_retries_raise(collaborator):
    collaborator.fail_next[SummaryResponse] = 5
    client = CollaboratorClient(collaborator, RetryPolicy(max_attempts=2, backoff_seconds=0.0))

    with pytest.raises(CollaboratorError) as exc_info:
        await client.request("summarize", "prompt", SummaryResponse)

    assert exc_info.value.attempts == 2
    assert len(collaborator.calls) == 2


@pytest.mark.asyncio
async def test_timeout_is_a_collaborator_failure(collaborator):
    collaborator.delay = 0.5
    client = CollaboratorClient(
        collaborator, RetryPolicy(timeout_seconds=0.01, max_attempts=1, backoff_seconds=0.0)
    )

    with pytest.raises(CollaboratorTimeout):
        await client.request("summarize", "prompt", SummaryResponse)


@pytest.mark.asyncio
async def test_malformed_output_fails_loudly(collaborator, fast_policy):
    collaborator.handlers[SummaryResponse] = lambda prompt: {"text": "wrong key"}
    client = CollaboratorClient(collaborator, fast_policy)

    with pytest.raises(CollaboratorError, match="Malformed SummaryResponse"):
        await client.request("summarize", "prompt", SummaryResponse)


def test_summary_prompt_is_role_prefixed():
    prompt = build_summary_prompt(_interactions())

    assert prompt.endswith("USER: hi\nAGENT: hello")


def test_consolidation_prompt_mentions_existing_pillars():
    summaries = [Summary(range=SummaryRange(start_id=1, end_id=5), text="Talked deployment")]

    first = build_consolidation_prompt(Personality(name="Lumen"), summaries)
    later = build_consolidation_prompt(
        Personality(pillars=[Pillar(category="Tools", details="Uses VS Code", importance=6)]),
        summaries
    )

    assert "No existing pillars" in first
    assert "[Range 1-5]: Talked deployment" in first
    assert "Lumen" in first
    assert '"category": "Tools"' in later


def test_evolution_prompt_renders_extras():
    extras = EvolutionExtras(
        additional_context="Team switched to Rust",
        history=["met in January", "shipped v2"],
        iteration_notes={"round": 3},
        external_evidence=["survey says concise"],
    )

    prompt = build_evolution_prompt(Personality(name="Lumen"), _interactions(), [], extras)

    assert "## Additional Context\nTeam switched to Rust" in prompt
    assert "History 2: shipped v2" in prompt
    assert '"round": 3' in prompt
    assert "- survey says concise" in prompt
    assert "USER: hi" in prompt


def test_evolution_prompt_without_extras_has_no_extra_sections():
    prompt = build_evolution_prompt(Personality(), _interactions(), [])

    assert "## Additional Context" not in prompt
    assert "## External Evidence" not in prompt


def _chat_model(result=None, error=None):
    runnable = MagicMock()
    runnable.ainvoke = AsyncMock(return_value=result, side_effect=error)
    model = MagicMock()
    model.with_structured_output.return_value = runnable
    return model


@pytest.mark.asyncio
async def test_llm_collaborator_uses_structured_output():
    model = _chat_model(SummaryResponse(summary="done"))
    collaborator = LLMCollaborator(model)

    result = await collaborator.generate("prompt", SummaryResponse)

    assert result.summary == "done"
    model.with_structured_output.assert_called_once_with(SummaryResponse)


@pytest.mark.asyncio
async def test_llm_collaborator_routes_consolidation_to_override():
    default = _chat_model(SummaryResponse(summary="x"))
    strong = _chat_model(ConsolidationResponse(updated_pillars=[], changelog_entry="ok"))
    collaborator = LLMCollaborator(default, overrides={ConsolidationResponse: strong})

    result = await collaborator.generate("prompt", ConsolidationResponse)

    assert result.changelog_entry == "ok"
    default.with_structured_output.assert_not_called()


@pytest.mark.asyncio
async def test_llm_collaborator_parse_error_is_collaborator_error():
    collaborator = LLMCollaborator(_chat_model(error=OutputParserException("bad json")))

    with pytest.raises(CollaboratorError):
        await collaborator.generate("prompt", SummaryResponse)


@pytest.mark.asyncio
async def test_llm_collaborator_empty_output_is_collaborator_error():
    collaborator = LLMCollaborator(_chat_model(None))

    with pytest.raises(CollaboratorError):
        await collaborator.generate("prompt", SummaryResponse)
