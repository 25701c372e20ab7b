from .session import (
    Audit,
    ChangeLogEntry,
    Compatibility,
    Constraints,
    Interaction,
    InteractionRole,
    MutablePreference,
    Personality,
    Pillar,
    Session,
    Summary,
    SummaryRange,
    utcnow,
)
from .responses import (
    ConsolidationResponse,
    EvolutionResponse,
    PersonalityDraft,
    PillarDraft,
    SummaryResponse,
)
from .results import (
    AppendResult,
    CheckpointReport,
    ConsolidationResult,
    EvolutionResult,
    MemoryContext,
    Reflection,
    SummarizationResult,
    SummarySetAction,
)

__all__ = [
    "Audit", "ChangeLogEntry", "Compatibility", "Constraints", "Interaction",
    "InteractionRole", "MutablePreference", "Personality", "Pillar", "Session",
    "Summary", "SummaryRange", "utcnow",
    "ConsolidationResponse", "EvolutionResponse",
    "PersonalityDraft", "PillarDraft", "SummaryResponse",
    "AppendResult", "CheckpointReport", "ConsolidationResult", "EvolutionResult",
    "MemoryContext", "Reflection", "SummarizationResult", "SummarySetAction",
]
