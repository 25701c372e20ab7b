from .consolidation import ConsolidationEngine
from .interaction_buffer import append_interaction, validate_interaction
from .memory_engine import MemoryEngine
from .personality_evolver import PersonalityEvolver, increment_version
from .pillar_merger import PillarMerger, enforce_pillar_policy
from .summarization import SummarizationTrigger

__all__ = [
    "ConsolidationEngine", "append_interaction", "validate_interaction", "MemoryEngine",
    "PersonalityEvolver", "increment_version", "PillarMerger", "enforce_pillar_policy",
    "SummarizationTrigger",
]
