from .base import CollaboratorClient, RetryPolicy, SummarizationCollaborator
from .llm_collaborator import LLMCollaborator
from .prompts import (
    EvolutionExtras,
    build_consolidation_prompt,
    build_evolution_prompt,
    build_summary_prompt,
)

__all__ = [
    "CollaboratorClient", "RetryPolicy", "SummarizationCollaborator", "LLMCollaborator",
    "EvolutionExtras", "build_consolidation_prompt", "build_evolution_prompt",
    "build_summary_prompt",
]
