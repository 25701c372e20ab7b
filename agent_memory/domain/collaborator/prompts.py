"""Prompt builders for the three collaborator operations."""

import json
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, Field

from agent_memory.config import PILLAR_CAP, PILLAR_PRUNE_FLOOR
from agent_memory.domain.models import Interaction, Personality, Pillar, Summary


class EvolutionExtras(BaseModel):
    """Optional material folded into an evolution prompt"""
    additional_context: Optional[str] = None
    history: Optional[Any] = Field(None, description="List of accounts, a mapping or free text")
    iteration_notes: Optional[Any] = None
    external_evidence: Optional[Any] = None


def render_interactions(interactions: Sequence[Interaction]) -> str:
    return "\n".join(item.render() for item in interactions)


def build_summary_prompt(interactions: Sequence[Interaction]) -> str:
    return (
        "Summarize the following chat interactions in 3-5 sentences, focusing on goals, "
        "decisions, facts, names, and evolving state.\n\n"
        f"{render_interactions(interactions)}"
    )


def _render_pillars(pillars: List[Pillar]) -> str:
    if not pillars:
        return "No existing pillars - this is the first consolidation."
    return json.dumps([p.model_dump(mode="json", by_alias=True) for p in pillars], indent=2)


def build_consolidation_prompt(personality: Personality, summaries: Sequence[Summary]) -> str:
    summary_text = "\n---\n".join(
        f"[Range {s.range.start_id}-{s.range.end_id}]: {s.text}" for s in summaries
    )
    return f"""You are a Memory Architect for an evolving AI entity named {personality.name or 'the assistant'}.

TASK: Synthesize the provided RECENT SUMMARIES into the existing LONG-TERM PILLARS.

EXISTING PILLARS:
{_render_pillars(personality.pillars)}

RECENT INTERACTION SUMMARIES:
{summary_text}

INSTRUCTIONS:
1. IDENTIFY: Which recent facts are "Evergreen" (likely to remain true for months)?
2. MERGE: Update existing pillars if new information expands on them.
3. CREATE: Add new categories if the info doesn't fit existing ones.
4. PRUNE: If info is redundant or low-value (importance < {PILLAR_PRUNE_FLOOR}), discard it.
5. PRIORITIZE: Keep total pillars under {PILLAR_CAP} to maintain focus.
6. LOG: Write a 1-sentence description of this consolidation for the changelog.

Return the updated pillars array and a changelogEntry."""


def _render_block(value: Any, label: str) -> str:
    if isinstance(value, list):
        return "\n".join(
            f"{label} {idx}: {item if isinstance(item, str) else json.dumps(item, default=str)}"
            for idx, item in enumerate(value, start=1)
        )
    if isinstance(value, dict):
        return json.dumps(value, indent=2, default=str)
    return str(value)


def _render_extras(extras: Optional[EvolutionExtras]) -> str:
    if extras is None:
        return ""

    sections = []
    if extras.additional_context:
        sections.append(f"## Additional Context\n{extras.additional_context}")
    if extras.history:
        sections.append(f"## Historical Accounts\n{_render_block(extras.history, 'History')}")
    if extras.iteration_notes:
        sections.append(f"## Iteration Notes\n{_render_block(extras.iteration_notes, 'Iteration')}")
    if extras.external_evidence:
        evidence = extras.external_evidence
        if isinstance(evidence, list):
            block = "\n".join(f"- {item}" for item in evidence)
        else:
            block = _render_block(evidence, "Evidence")
        sections.append(f"## External Evidence\n{block}")

    return "\n" + "\n\n".join(sections) if sections else ""


def build_evolution_prompt(
    personality: Personality,
    interactions: Sequence[Interaction],
    summaries: Sequence[Summary],
    extras: Optional[EvolutionExtras] = None
) -> str:
    summary_text = "\n".join(
        f"[Summary {s.range.start_id}-{s.range.end_id}]: {s.text}" for s in summaries
    )
    previous = personality.model_dump_json(by_alias=True, indent=2, exclude={"pillars"})

    return f"""You are analyzing a conversation history to understand how an AI personality is evolving.

## Previous Personality Profile
{previous}

## Recent Summaries
{summary_text}

## Recent Interactions
{render_interactions(interactions)}
{_render_extras(extras)}

## Task
Based on the previous personality, the summaries, and the interactions, reflect on:
1. How is this personality evolving through these interactions?
2. What new values, constraints, or preferences are emerging?
3. How might the tone, style, or approach be shifting?
4. What patterns or growth are evident?

Provide:
1. An updated personality object that reflects this evolution (increment version, update mutable preferences with new timestamp, update audit.updatedAt, add changelog entry explaining evolution)
2. A brief explanation (2-3 sentences) of the evolution observed

Return valid JSON with the evolved personality object and explanation."""
