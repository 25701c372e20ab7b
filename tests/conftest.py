"""Pytest configuration and fixtures."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

import pytest

from agent_memory.config import MemorySettings
from agent_memory.domain.collaborator import RetryPolicy, SummarizationCollaborator
from agent_memory.domain.memory import MemoryEngine
from agent_memory.domain.models import (
    ConsolidationResponse,
    EvolutionResponse,
    Personality,
    SummaryResponse,
)
from agent_memory.domain.session import InMemorySessionStore, SessionManager
from agent_memory.infrastructure.observability import configure_tracing, metrics


class ScriptedCollaborator(SummarizationCollaborator):
    """Deterministic stand-in for the text-generation service.

    - ``fail_next[Model] = n`` makes the next n calls for that model raise.
    - ``handlers[Model] = fn(prompt)`` overrides the canned answer.
    - ``delay`` sleeps before answering, to force interleaving.
    """

    def __init__(self):
        self.calls: List[Tuple[str, str]] = []
        self.fail_next: Dict[Type[Any], int] = {}
        self.handlers: Dict[Type[Any], Callable[[str], Any]] = {}
        self.delay: float = 0.0
        self.summary_count = 0

    def names(self) -> List[str]:
        return [name for name, _ in self.calls]

    async def generate(self, prompt: str, response_model: Type[Any]) -> Any:
        self.calls.append((response_model.__name__, prompt))
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.fail_next.get(response_model, 0) > 0:
            self.fail_next[response_model] -= 1
            raise RuntimeError(f"{response_model.__name__} service unavailable")

        if response_model in self.handlers:
            return self.handlers[response_model](prompt)

        if response_model is SummaryResponse:
            self.summary_count += 1
            return {"summary": f"summary #{self.summary_count}"}
        if response_model is ConsolidationResponse:
            return {
                "updatedPillars": [
                    {"category": "User Goals", "details": "Ships the memory engine", "importance": 8},
                ],
                "changelogEntry": "Merged recent summaries into pillars.",
            }
        if response_model is EvolutionResponse:
            return {
                "personality": {"tone": "warmer"},
                "explanation": "The assistant grew warmer.",
            }
        raise AssertionError(f"unexpected response model {response_model}")


@pytest.fixture(autouse=True)
def reset_observability():
    """No tracing and clean metrics for every test."""
    configure_tracing(False)
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def collaborator():
    return ScriptedCollaborator()


@pytest.fixture
def fast_policy():
    """One attempt, no backoff."""
    return RetryPolicy(timeout_seconds=1.0, max_attempts=1, backoff_seconds=0.0)


@pytest.fixture
def settings():
    return MemorySettings(_env_file=None)


@pytest.fixture
def make_engine(collaborator, fast_policy, settings):
    def _make(
        interactions_limit: int = 21,
        summaries_limit: int = 3,
        consolidation_threshold: int = 5,
        policy: Optional[RetryPolicy] = None
    ) -> MemoryEngine:
        return MemoryEngine(
            collaborator,
            settings=settings,
            retry_policy=policy or fast_policy,
            interactions_limit=interactions_limit,
            summaries_limit=summaries_limit,
            consolidation_threshold=consolidation_threshold,
        )
    return _make


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def make_manager(make_engine, store):
    def _make(**limits) -> SessionManager:
        return SessionManager(store, make_engine(**limits))
    return _make


@pytest.fixture
def personality():
    return Personality(
        name="Lumen",
        description="Calm engineering guide",
        version="1.0.0",
        tone="warm",
        style="concise",
        values=["clarity", "ownership"],
        mutable=[{"preference": "Keeps a ledger of decisions", "timestamp": "2026-02-01T00:00:00Z"}],
        audit={
            "createdAt": "2026-02-01T00:00:00Z",
            "updatedAt": "2026-02-01T00:00:00Z",
            "updatedBy": "seed",
            "changeLog": [{"change": "Seed personality", "timestamp": "2026-02-01T00:00:00Z"}],
        },
    )
