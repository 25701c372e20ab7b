"""Tests for appending turns to the interaction buffer."""

from datetime import datetime, timezone

import pytest

from agent_memory.domain.errors import InvalidInteraction
from agent_memory.domain.memory.interaction_buffer import (
    append_interaction,
    drop_batch,
    is_over_cap,
)
from agent_memory.domain.models import InteractionRole, Session


def test_append_assigns_sequential_ids():
    session = Session()

    first = append_interaction(session, {"role": "user", "text": "hi"})
    second = append_interaction(session, {"role": "agent", "text": "hello"})

    assert (first.id, second.id) == (1, 2)
    assert session.next_id == 3
    assert [i.text for i in session.interactions] == ["hi", "hello"]
    assert second.role is InteractionRole.AGENT


def test_append_keeps_given_timestamp():
    session = Session()
    ts = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    interaction = append_interaction(session, {"role": "user", "text": "x", "timestamp": ts})

    assert interaction.timestamp == ts


def test_legacy_ai_role_is_agent():
    session = Session()

    interaction = append_interaction(session, {"role": "ai", "text": "answer"})

    assert interaction.role is InteractionRole.AGENT
    assert interaction.render() == "AGENT: answer"


def test_no_deduplication():
    session = Session()

    append_interaction(session, {"role": "user", "text": "same"})
    append_interaction(session, {"role": "user", "text": "same"})

    assert len(session.interactions) == 2


@pytest.mark.parametrize("payload", [
    {"text": "no role"},
    {"role": "robot", "text": "bad role"},
    {"role": 3, "text": "wrong type"},
    {"role": "user"},
    {"role": "user", "text": None},
    {"role": "user", "text": 42},
    {"role": "user", "text": "bad ts", "timestamp": "not-a-date"},
    "user: hi",
    None,
])
def test_malformed_input_rejected_before_mutation(payload):
    session = Session()
    append_interaction(session, {"role": "user", "text": "kept"})

    with pytest.raises(InvalidInteraction):
        append_interaction(session, payload)

    assert session.next_id == 2
    assert [i.text for i in session.interactions] == ["kept"]


def test_interactions_are_immutable():
    session = Session()
    interaction = append_interaction(session, {"role": "user", "text": "hi"})

    with pytest.raises(Exception):
        interaction.text = "changed"


def test_is_over_cap():
    session = Session()
    for n in range(3):
        append_interaction(session, {"role": "user", "text": str(n)})

    assert is_over_cap(session, 2)
    assert not is_over_cap(session, 3)


def test_drop_batch_requires_prefix():
    session = Session()
    for n in range(3):
        append_interaction(session, {"role": "user", "text": str(n)})

    with pytest.raises(ValueError):
        drop_batch(session, session.interactions[1:2])

    drop_batch(session, session.interactions[:2])
    assert [i.id for i in session.interactions] == [3]
