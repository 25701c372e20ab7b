"""Tests for personality evolution."""

from datetime import datetime, timezone

import pytest

from agent_memory.config import CHANGELOG_CAP
from agent_memory.domain.collaborator import CollaboratorClient
from agent_memory.domain.errors import EvolutionFailure
from agent_memory.domain.memory import PersonalityEvolver
from agent_memory.domain.memory.personality_evolver import UPDATED_BY, can_evolve, increment_version
from agent_memory.domain.models import (
    EvolutionResponse,
    Interaction,
    Pillar,
    Session,
)

SEEDED = datetime(2026, 2, 1, tzinfo=timezone.utc)


def _turns():
    return [
        Interaction(id=1, role="user", text="Can you be less formal?"),
        Interaction(id=2, role="agent", text="Sure thing."),
    ]


def _response(personality: dict, explanation: str = "Adjusted tone.") -> EvolutionResponse:
    return EvolutionResponse.model_validate({"personality": personality, "explanation": explanation})


@pytest.mark.parametrize("version, expected", [
    ("1.0.0", "1.0.1"),
    ("2.3.9", "2.3.10"),
    ("1.4", "1.4.1"),
    ("3", "3.0.1"),
    ("1.0.beta", "1.0.1"),
    ("", "1.0.1"),
])
def test_increment_version(version, expected):
    assert increment_version(version) == expected


def test_apply_bumps_version_when_missing_or_unchanged(personality):
    missing = PersonalityEvolver.apply(personality, _response({"tone": "casual"}))
    unchanged = PersonalityEvolver.apply(personality, _response({"version": "1.0.0"}))
    explicit = PersonalityEvolver.apply(personality, _response({"version": "2.0.0"}))

    assert missing.version == "1.0.1"
    assert unchanged.version == "1.0.1"
    assert explicit.version == "2.0.0"


def test_apply_keeps_previous_fields_and_pillars(personality):
    personality.pillars = [Pillar(category="Mission", details="Help ship", importance=9)]

    evolved = PersonalityEvolver.apply(personality, _response({"tone": "casual"}))

    assert evolved.tone == "casual"
    assert evolved.name == "Lumen"
    assert evolved.values == personality.values
    assert evolved.mutable == personality.mutable
    assert [p.category for p in evolved.pillars] == ["Mission"]


def test_apply_ignores_pillars_from_draft(personality):
    personality.pillars = [Pillar(category="Mission", details="Help ship", importance=9)]

    evolved = PersonalityEvolver.apply(
        personality,
        _response({"tone": "casual", "pillars": [{"category": "Rogue", "details": "x", "importance": 10}]})
    )

    assert [p.category for p in evolved.pillars] == ["Mission"]


def test_apply_audit_rules(personality):
    evolved = PersonalityEvolver.apply(personality, _response({"tone": "casual"}, "Less formal now."))

    assert evolved.audit.created_at == SEEDED
    assert evolved.audit.updated_by == UPDATED_BY
    assert evolved.audit.updated_at > SEEDED
    assert evolved.audit.change_log[0].change == "Seed personality"
    assert evolved.audit.change_log[-1].change == (
        "Personality evolved at summarization point: Less formal now."
    )


def test_apply_changelog_stays_capped(personality):
    for n in range(CHANGELOG_CAP):
        personality.audit.record_change(f"change {n}")

    evolved = PersonalityEvolver.apply(personality, _response({"tone": "casual"}))

    assert len(evolved.audit.change_log) == CHANGELOG_CAP
    assert evolved.audit.change_log[-1].change.startswith("Personality evolved")


def test_apply_does_not_touch_previous(personality):
    before = personality.model_dump()

    PersonalityEvolver.apply(personality, _response({"tone": "casual", "values": ["speed"]}))

    assert personality.model_dump() == before


@pytest.mark.asyncio
async def test_evolve_success(collaborator, fast_policy, personality):
    evolver = PersonalityEvolver(CollaboratorClient(collaborator, fast_policy))

    result = await evolver.evolve(personality, _turns(), [])

    assert not result.error
    assert result.personality.tone == "warmer"
    assert result.explanation == "The assistant grew warmer."
    assert "Can you be less formal?" in collaborator.calls[0][1]


@pytest.mark.asyncio
async def test_evolve_failure_returns_previous(collaborator, fast_policy, personality):
    collaborator.fail_next[EvolutionResponse] = 1
    evolver = PersonalityEvolver(CollaboratorClient(collaborator, fast_policy))

    result = await evolver.evolve(personality, _turns(), [])

    assert result.error
    assert result.personality == personality
    assert result.explanation.startswith("Evolution attempt failed")


@pytest.mark.asyncio
async def test_evolve_or_raise(collaborator, fast_policy, personality):
    collaborator.fail_next[EvolutionResponse] = 1
    evolver = PersonalityEvolver(CollaboratorClient(collaborator, fast_policy))

    with pytest.raises(EvolutionFailure):
        await evolver.evolve_or_raise(personality, _turns(), [])


@pytest.mark.asyncio
async def test_evolve_without_personality(collaborator, fast_policy):
    evolver = PersonalityEvolver(CollaboratorClient(collaborator, fast_policy))

    result = await evolver.evolve(None, _turns(), [])

    assert result.personality is None
    assert result.explanation == "No previous personality to evolve from."
    assert collaborator.calls == []


def test_can_evolve_respects_flags(personality):
    assert not can_evolve(Session())
    assert can_evolve(Session(personality=personality))
    assert not can_evolve(Session(personality=personality, personality_immutable=True))
    assert not can_evolve(Session(personality=personality, personality_evolution_enabled=False))
