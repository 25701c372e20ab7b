"""agent-memory: bounded conversational memory with summaries and long-term pillars."""

from agent_memory.config import MemorySettings, get_settings
from agent_memory.domain.collaborator import (
    EvolutionExtras,
    LLMCollaborator,
    RetryPolicy,
    SummarizationCollaborator,
)
from agent_memory.domain.memory import MemoryEngine
from agent_memory.domain.models import Interaction, Personality, Pillar, Session, Summary
from agent_memory.domain.session import (
    FileSessionStore,
    InMemorySessionStore,
    SessionManager,
    SessionStore,
)
from agent_memory.infrastructure.observability import configure_tracing, setup_logging

__version__ = "0.1.0"
__all__ = [
    "MemorySettings", "get_settings", "EvolutionExtras", "LLMCollaborator", "RetryPolicy",
    "SummarizationCollaborator", "MemoryEngine", "Interaction", "Personality", "Pillar",
    "Session", "Summary", "FileSessionStore", "InMemorySessionStore", "SessionManager",
    "SessionStore", "build_session_manager", "build_store",
]


def build_store(settings: MemorySettings) -> SessionStore:
    if settings.session_backend == "memory":
        return InMemorySessionStore(
            ttl_seconds=settings.session_ttl_seconds,
            cleanup_interval_seconds=settings.cleanup_interval_seconds
        )
    return FileSessionStore(settings.session_dir)


def build_session_manager(
    settings: MemorySettings = None,
    collaborator: SummarizationCollaborator = None,
    store: SessionStore = None
) -> SessionManager:
    """Wire a SessionManager from settings: logging, tracing, OpenAI collaborator and store.

    Use it as ``async with build_session_manager() as manager:`` so that store
    maintenance (expiring idle in-memory sessions) runs and is stopped on exit.
    """

    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format, settings.service_name, __version__)
    configure_tracing(settings.langfuse_enabled)

    collaborator = collaborator or LLMCollaborator.from_settings(settings)
    store = store or build_store(settings)
    return SessionManager(store, MemoryEngine(collaborator, settings=settings))
