"""Typed results of the checkpoint pipeline stages."""

from typing import List, Optional
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .session import Interaction, Personality, Session, Summary, utcnow


class SummarySetAction(str, Enum):
    """What happened to the summary set after a new summary was appended"""
    NONE = "none"
    EVICTED = "evicted"
    CONSOLIDATED = "consolidated"
    CONSOLIDATION_FAILED = "consolidation_failed"
    PENDING = "pending"


class SummarizationResult(BaseModel):
    """Outcome of summarizing one overflow batch"""
    success: bool
    batch: List[Interaction] = Field(default_factory=list)
    summary: Optional[Summary] = None
    error: Optional[str] = None


class ConsolidationResult(BaseModel):
    """Outcome of merging summaries into pillars"""
    success: bool
    personality: Optional[Personality] = None
    changelog_entry: Optional[str] = None
    pillars_before: int = 0
    pillars_after: int = 0
    error: Optional[str] = None


class EvolutionResult(BaseModel):
    """Outcome of a personality evolution attempt"""
    personality: Optional[Personality] = None
    explanation: str = ""
    evolved_at: datetime = Field(default_factory=utcnow)
    error: bool = False


class CheckpointReport(BaseModel):
    """Everything that happened at one summarization checkpoint"""
    summarization: SummarizationResult
    summary_set_action: SummarySetAction = SummarySetAction.NONE
    evicted: List[Summary] = Field(default_factory=list)
    consolidation: Optional[ConsolidationResult] = None
    evolution: Optional[EvolutionResult] = None


class AppendResult(BaseModel):
    """Result of appending one interaction to a session"""
    session_id: str
    interaction: Interaction
    session: Session
    checkpoints: List[CheckpointReport] = Field(default_factory=list)

    @property
    def summarization_error(self) -> Optional[str]:
        for checkpoint in self.checkpoints:
            if not checkpoint.summarization.success:
                return checkpoint.summarization.error
        return None


class MemoryContext(BaseModel):
    """What the model sees of a session"""
    personality: Optional[Personality] = None
    summaries: List[Summary] = Field(default_factory=list, description="Newest first")
    interactions: List[Interaction] = Field(default_factory=list)
    personality_evolution_enabled: bool = True
    personality_immutable: bool = False


class Reflection(BaseModel):
    """'Who am I' reflection over the current session"""
    reflection: str
    evolved_personality: Optional[Personality] = None
    timestamp: datetime = Field(default_factory=utcnow)
    error: bool = False
