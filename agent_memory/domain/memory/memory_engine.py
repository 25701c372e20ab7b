"""Checkpoint pipeline for one session.

append -> [overflow? -> summarize -> evict-or-consolidate -> evolve] per batch.

Stages return typed results. A failed summarization ends the pipeline for this
call (nothing was compressed, so there is nothing to consolidate or evolve);
consolidation and evolution failures are recorded and the pipeline moves on.
"""

from typing import Any, List, Mapping, Optional, Tuple

import structlog

from agent_memory.config import MemorySettings, get_settings
from agent_memory.domain.collaborator import (
    CollaboratorClient,
    EvolutionExtras,
    RetryPolicy,
    SummarizationCollaborator,
)
from agent_memory.domain.models import (
    CheckpointReport,
    Interaction,
    MemoryContext,
    Reflection,
    Session,
    SummarySetAction,
)
from agent_memory.infrastructure.observability.logging import memory_logger, metrics

from .consolidation import ConsolidationEngine
from .interaction_buffer import append_interaction, drop_batch
from .personality_evolver import PersonalityEvolver, can_evolve
from .pillar_merger import PillarMerger
from .summarization import SummarizationTrigger

logger = structlog.get_logger(__name__)


class MemoryEngine:
    """Bounded conversational memory for a single session record"""

    def __init__(
        self,
        collaborator: SummarizationCollaborator,
        settings: Optional[MemorySettings] = None,
        retry_policy: Optional[RetryPolicy] = None,
        interactions_limit: Optional[int] = None,
        summaries_limit: Optional[int] = None,
        consolidation_threshold: Optional[int] = None
    ):
        settings = settings or get_settings()
        self.client = CollaboratorClient(
            collaborator, retry_policy or RetryPolicy.from_settings(settings)
        )
        self.interactions_limit = interactions_limit or settings.interactions_limit
        self.summaries_limit = summaries_limit or settings.summaries_limit
        self.consolidation_threshold = consolidation_threshold or settings.consolidation_threshold

        self.trigger = SummarizationTrigger(self.client, self.interactions_limit)
        self.merger = PillarMerger(self.client)
        self.consolidation = ConsolidationEngine(
            self.merger, self.summaries_limit, self.consolidation_threshold
        )
        self.evolver = PersonalityEvolver(self.client)

    async def append(
        self,
        session: Session,
        payload: Mapping[str, Any],
        session_id: str = ""
    ) -> Tuple[Interaction, List[CheckpointReport]]:
        """Append a turn and run every checkpoint the overflow calls for"""

        interaction = append_interaction(session, payload)
        reports = await self.run_checkpoints(session, session_id)
        return interaction, reports

    async def run_checkpoints(self, session: Session, session_id: str = "") -> List[CheckpointReport]:
        """Summarize while the buffer is over cap; stops at the first summarization failure"""

        reports = []
        while True:
            batch = self.trigger.next_batch(session)
            if not batch:
                break

            report = await self._checkpoint(session, batch, session_id)
            reports.append(report)
            if not report.summarization.success:
                break

        return reports

    async def _checkpoint(self, session: Session, batch: List[Interaction], session_id: str) -> CheckpointReport:
        summarization = await self.trigger.summarize(batch)
        memory_logger.log_checkpoint(
            session_id, "summarize", summarization.success,
            details={"start_id": batch[0].id, "end_id": batch[-1].id},
            error=summarization.error
        )
        if not summarization.success:
            return CheckpointReport(summarization=summarization)

        # summary and truncation land together; the caller persists them in one write
        session.summaries.append(summarization.summary)
        drop_batch(session, batch)

        action, evicted, consolidation = await self.consolidation.after_summary(session)
        metrics.count_checkpoint(action.value)
        memory_logger.log_checkpoint(
            session_id, "summary_set", action != SummarySetAction.CONSOLIDATION_FAILED,
            details={"action": action.value, "evicted": len(evicted), "summaries": len(session.summaries)},
            error=consolidation.error if consolidation else None
        )

        evolution = None
        if can_evolve(session):
            evolution = await self.evolver.evolve(session.personality, batch, session.summaries)
            if not evolution.error and evolution.personality is not None:
                session.personality = evolution.personality
            memory_logger.log_checkpoint(
                session_id, "evolve", not evolution.error,
                details={"version": session.personality.version},
                error=evolution.explanation if evolution.error else None
            )

        metrics.observe_memory(
            session_id,
            interactions=len(session.interactions),
            summaries=len(session.summaries),
            pillars=len(session.personality.pillars) if session.personality else 0
        )
        return CheckpointReport(
            summarization=summarization,
            summary_set_action=action,
            evicted=evicted,
            consolidation=consolidation,
            evolution=evolution
        )

    async def reflect(self, session: Session, extras: Optional[EvolutionExtras] = None) -> Reflection:
        """'Who am I': evolve over the current state without changing the session"""

        if session.personality is None:
            return Reflection(reflection="No personality established yet for this session.")

        result = await self.evolver.evolve(
            session.personality, session.interactions, session.summaries, extras
        )
        return Reflection(
            reflection=result.explanation,
            evolved_personality=result.personality,
            timestamp=result.evolved_at,
            error=result.error
        )

    @staticmethod
    def build_context(session: Session) -> MemoryContext:
        """Context handed to the model: summaries newest first, then the live buffer"""

        return MemoryContext(
            personality=session.personality,
            summaries=list(reversed(session.summaries)),
            interactions=list(session.interactions),
            personality_evolution_enabled=session.personality_evolution_enabled,
            personality_immutable=session.personality_immutable
        )
