"""Consolidation policy: merge summaries into the personality's long-term pillars.

The collaborator proposes the merged pillar set. Whatever it returns, the
merger guarantees the pillar invariants: importance clamped into [1, 10],
pillars below the prune floor dropped, at most PILLAR_CAP pillars kept (the
most important ones), and a fresh ``last_updated`` on anything that changed.
"""

from typing import Dict, List, Optional, Sequence, Tuple
from datetime import datetime

import structlog

from agent_memory.config import (
    IMPORTANCE_MAX,
    IMPORTANCE_MIN,
    PILLAR_CAP,
    PILLAR_PRUNE_FLOOR,
)
from agent_memory.domain.collaborator import CollaboratorClient, build_consolidation_prompt
from agent_memory.domain.errors import CollaboratorError, ConsolidationFailure
from agent_memory.domain.models import (
    ConsolidationResponse,
    ConsolidationResult,
    Personality,
    Pillar,
    PillarDraft,
    Summary,
    utcnow,
)

logger = structlog.get_logger(__name__)


def clamp_importance(importance: int) -> int:
    return max(IMPORTANCE_MIN, min(IMPORTANCE_MAX, int(importance)))


def cap_pillars(pillars: List[Pillar], cap: int = PILLAR_CAP) -> List[Pillar]:
    """Keep the cap most important pillars; ties go to the earlier one, order is preserved"""

    if len(pillars) <= cap:
        return list(pillars)
    ranked = sorted(range(len(pillars)), key=lambda idx: -pillars[idx].importance)
    keep = set(ranked[:cap])
    return [pillar for idx, pillar in enumerate(pillars) if idx in keep]


def enforce_pillar_policy(
    existing: Sequence[Pillar],
    drafts: Sequence[PillarDraft],
    now: Optional[datetime] = None
) -> List[Pillar]:
    """Turn collaborator drafts into pillars that satisfy the pillar invariants"""

    now = now or utcnow()
    unchanged: Dict[Tuple[str, str, int], Pillar] = {
        (p.category, p.details, p.importance): p for p in existing
    }

    pillars = []
    for draft in drafts:
        importance = clamp_importance(draft.importance)
        if importance < PILLAR_PRUNE_FLOOR:
            continue
        prior = unchanged.get((draft.category, draft.details, importance))
        pillars.append(Pillar(
            category=draft.category,
            details=draft.details,
            importance=importance,
            last_updated=prior.last_updated if prior else now
        ))

    return cap_pillars(pillars)


class PillarMerger:
    """Merges a summary set into a personality's pillars via the collaborator"""

    def __init__(self, client: CollaboratorClient):
        self.client = client

    async def consolidate(self, personality: Personality, summaries: Sequence[Summary]) -> ConsolidationResult:
        """Consolidate, returning the unchanged personality on failure"""

        before = len(personality.pillars)
        try:
            evolved, entry = await self.merge(personality, summaries)
        except ConsolidationFailure as e:
            logger.error("Consolidation failed", error=str(e), pillars=before)
            return ConsolidationResult(
                success=False,
                personality=personality,
                pillars_before=before,
                pillars_after=before,
                error=str(e)
            )

        return ConsolidationResult(
            success=True,
            personality=evolved,
            changelog_entry=entry,
            pillars_before=before,
            pillars_after=len(evolved.pillars)
        )

    async def merge(self, personality: Personality, summaries: Sequence[Summary]) -> Tuple[Personality, Optional[str]]:
        """Return an evolved copy of personality; never mutates the input"""

        if not summaries:
            logger.info("No summaries to consolidate")
            return personality, None

        logger.info("Synthesizing summaries into pillars", summaries=len(summaries))
        try:
            response = await self.client.request(
                "consolidate",
                build_consolidation_prompt(personality, summaries),
                ConsolidationResponse
            )
        except CollaboratorError as e:
            raise ConsolidationFailure(f"Pillar merge failed: {e}") from e

        now = utcnow()
        evolved = personality.model_copy(deep=True)
        evolved.pillars = enforce_pillar_policy(personality.pillars, response.updated_pillars, now)
        evolved.audit.record_change(f"[Consolidation] {response.changelog_entry}", at=now)

        logger.info(
            "Consolidation succeeded",
            entry=response.changelog_entry,
            pillars_before=len(personality.pillars),
            pillars_proposed=len(response.updated_pillars),
            pillars_after=len(evolved.pillars)
        )
        return evolved, response.changelog_entry
