"""Structured outputs accepted from the summarization collaborator.

Each collaborator call is made against exactly one of these models. The
collaborator boundary validates the raw model output once; nothing past it
handles untyped JSON.
"""

from typing import List, Optional
from datetime import datetime

from pydantic import Field

from .session import (
    Audit,
    Compatibility,
    Constraints,
    MemoryModel,
    MutablePreference,
)


class SummaryResponse(MemoryModel):
    """Synthesis of a batch of dialogue turns"""
    summary: str = Field(description="3-5 sentence summary focusing on goals, decisions, facts, names and evolving state")
    missing_context: List[str] = Field(default_factory=list, description="Information that would improve the summary")
    reasoning: str = Field(default="", description="How the summary was constructed")


class PillarDraft(MemoryModel):
    """Pillar as proposed by the collaborator, before the engine enforces bounds"""
    category: str
    details: str
    importance: int = Field(description="Priority ranking from 1 (low) to 10 (high)")
    last_updated: Optional[datetime] = None


class ConsolidationResponse(MemoryModel):
    """Merged pillar set plus a one-line changelog entry"""
    updated_pillars: List[PillarDraft] = Field(default_factory=list)
    changelog_entry: str = Field(description="1-sentence summary of what was consolidated")


class PersonalityDraft(MemoryModel):
    """Evolved personality; omitted fields fall back to the previous profile"""
    name: Optional[str] = None
    description: Optional[str] = None
    version: Optional[str] = None
    tone: Optional[str] = None
    style: Optional[str] = None
    values: Optional[List[str]] = None
    constraints: Optional[Constraints] = None
    mutable: Optional[List[MutablePreference]] = None
    audit: Optional[Audit] = None
    compatibility: Optional[Compatibility] = None


class EvolutionResponse(MemoryModel):
    """Evolved personality plus a short explanation"""
    personality: PersonalityDraft
    explanation: str = Field(description="Brief explanation of how the personality evolved")
