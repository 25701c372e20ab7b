"""Append-only, size-bounded log of dialogue turns."""

from typing import Any, Mapping

from pydantic import ValidationError

from agent_memory.domain.errors import InvalidInteraction
from agent_memory.domain.models import Interaction, InteractionRole, Session, utcnow

_ROLES = {role.value for role in InteractionRole} | {"ai", "assistant"}


def validate_interaction(session: Session, payload: Mapping[str, Any]) -> Interaction:
    """Build the next interaction for session without touching it"""

    if not isinstance(payload, Mapping):
        raise InvalidInteraction("Interaction must be a mapping with 'role' and 'text'")

    role = payload.get("role")
    text = payload.get("text")
    if not isinstance(role, (str, InteractionRole)):
        raise InvalidInteraction("Interaction 'role' is required and must be a string")
    if isinstance(role, str) and role.lower() not in _ROLES:
        raise InvalidInteraction(f"Unknown interaction role: {role!r}")
    if not isinstance(text, str):
        raise InvalidInteraction("Interaction 'text' is required and must be a string")

    timestamp = payload.get("timestamp") or payload.get("ts") or utcnow()
    try:
        return Interaction(id=session.next_id, role=role, text=text, timestamp=timestamp)
    except ValidationError as e:
        raise InvalidInteraction(f"Malformed interaction: {e.errors()[0]['msg']}") from e


def append_interaction(session: Session, payload: Mapping[str, Any]) -> Interaction:
    """Assign the next id and append; raises InvalidInteraction before any mutation"""

    interaction = validate_interaction(session, payload)
    session.next_id += 1
    session.interactions.append(interaction)
    return interaction


def is_over_cap(session: Session, interactions_limit: int) -> bool:
    return len(session.interactions) > interactions_limit


def drop_batch(session: Session, batch: list) -> None:
    """Remove a summarized batch from the front of the buffer"""

    head = [item.id for item in session.interactions[:len(batch)]]
    if head != [item.id for item in batch]:
        raise ValueError("Batch is not the current prefix of the interaction buffer")
    session.interactions = session.interactions[len(batch):]
