from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union
import asyncio

import structlog

from agent_memory.domain.collaborator import EvolutionExtras
from agent_memory.domain.errors import (
    PersonalityImmutableError,
    PersonalityNotFound,
    SummarizationFailure,
)
from agent_memory.domain.memory import MemoryEngine
from agent_memory.domain.models import (
    AppendResult,
    CheckpointReport,
    MemoryContext,
    Personality,
    Reflection,
    Session,
    utcnow,
)
from agent_memory.infrastructure.observability.logging import memory_logger, metrics

from .session_store import SessionStore

logger = structlog.get_logger(__name__)


class SessionManager:
    """Session lifecycle with one writer at a time per session id.

    Every mutation loads the record, changes it and saves it while holding
    that session's lock. Different sessions never wait on each other.
    """

    def __init__(self, store: SessionStore, engine: MemoryEngine):
        self.store = store
        self.engine = engine
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    async def start(self) -> None:
        """Start store maintenance such as expiring idle sessions"""
        await self.store.start()

    async def close(self) -> None:
        await self.store.close()

    async def __aenter__(self) -> "SessionManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def session_lock(self, session_id: str) -> AsyncIterator[None]:
        """Exclusive lock for one session id; released locks are dropped when idle"""

        # no await between lookup and registration, so the event loop cannot interleave
        lock = self._locks.setdefault(session_id, asyncio.Lock())
        self._lock_users[session_id] = self._lock_users.get(session_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[session_id] -= 1
            if self._lock_users[session_id] == 0:
                del self._lock_users[session_id]
                self._locks.pop(session_id, None)

    def active_locks(self) -> int:
        return len(self._locks)

    async def _load(self, session_id: str) -> Session:
        session = await self.store.load(session_id)
        if session is None:
            memory_logger.log_session_update(session_id, "created")
            return Session()
        return session

    @asynccontextmanager
    async def mutate(self, session_id: str) -> AsyncIterator[Session]:
        """Load, yield for mutation, then save once. Nothing is written if the body raises."""

        async with self.session_lock(session_id):
            with structlog.contextvars.bound_contextvars(session_id=session_id):
                session = await self._load(session_id)
                loaded_revision = session.revision
                yield session
                session.updated_at = utcnow()
                await self.store.save(session_id, session, expected_revision=loaded_revision)

    async def get_session(self, session_id: str) -> Session:
        """Snapshot of a session; unseen ids give a fresh, unsaved session"""

        return await self._load(session_id)

    async def append_interaction(
        self,
        session_id: str,
        interaction: Mapping[str, Any],
        require_summary: bool = False
    ) -> AppendResult:
        """Append a turn, run any checkpoints and persist.

        Collaborator failures are reported in the result, not raised. With
        require_summary=True a failed summarization raises SummarizationFailure
        after the appended turn has been saved.
        """

        async with self.mutate(session_id) as session:
            appended, reports = await self.engine.append(session, interaction, session_id)

        result = AppendResult(
            session_id=session_id,
            interaction=appended,
            session=session,
            checkpoints=reports
        )
        if require_summary and result.summarization_error:
            failed = reports[-1].summarization
            raise SummarizationFailure(
                result.summarization_error,
                start_id=failed.batch[0].id if failed.batch else None,
                end_id=failed.batch[-1].id if failed.batch else None
            )
        return result

    async def compact(self, session_id: str) -> List[CheckpointReport]:
        """Retry summarization for a buffer left over cap by an earlier failure"""

        async with self.mutate(session_id) as session:
            reports = await self.engine.run_checkpoints(session, session_id)
        return reports

    async def set_personality(
        self,
        session_id: str,
        personality: Union[Personality, Mapping[str, Any]]
    ) -> Personality:
        """Register or replace the personality of a session"""

        incoming = Personality.model_validate(personality)
        async with self.mutate(session_id) as session:
            existing = session.personality
            if session.personality_immutable and existing is not None:
                if existing.model_dump(mode="json") != incoming.model_dump(mode="json"):
                    raise PersonalityImmutableError("Personality is immutable for this session.")
            session.personality = incoming

        memory_logger.log_session_update(session_id, "personality_set", {"version": incoming.version})
        return incoming

    async def update_flags(
        self,
        session_id: str,
        personality_evolution_enabled: Optional[bool] = None,
        personality_immutable: Optional[bool] = None,
        consolidation_enabled: Optional[bool] = None
    ) -> Session:
        """Change per-session policy flags; None leaves a flag as is"""

        flags = {
            "personality_evolution_enabled": personality_evolution_enabled,
            "personality_immutable": personality_immutable,
            "consolidation_enabled": consolidation_enabled,
        }
        for name, value in flags.items():
            if value is not None and not isinstance(value, bool):
                raise TypeError(f"{name} must be a boolean")

        async with self.mutate(session_id) as session:
            for name, value in flags.items():
                if value is not None:
                    setattr(session, name, value)

        memory_logger.log_session_update(
            session_id, "flags_updated", {k: v for k, v in flags.items() if v is not None}
        )
        return session

    async def reflect(self, session_id: str, extras: Optional[EvolutionExtras] = None) -> Reflection:
        """Reflection over the current session; the session itself is not changed"""

        async with self.session_lock(session_id):
            session = await self._load(session_id)
        if session.personality is None:
            raise PersonalityNotFound("Personality not found. Register one first.")
        return await self.engine.reflect(session, extras)

    async def build_context(self, session_id: str) -> MemoryContext:
        """Memory context for the model"""

        session = await self.get_session(session_id)
        return self.engine.build_context(session)

    async def reset_session(self, session_id: str) -> bool:
        """Forget everything about a session"""

        async with self.session_lock(session_id):
            deleted = await self.store.delete(session_id)
        metrics.forget_session(session_id)

        memory_logger.log_session_update(session_id, "reset", {"existed": deleted})
        return deleted
