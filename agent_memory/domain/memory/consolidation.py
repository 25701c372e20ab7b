from typing import List, Optional, Tuple

import structlog

from agent_memory.config import POST_CONSOLIDATION_RETENTION
from agent_memory.domain.models import (
    ConsolidationResult,
    Session,
    Summary,
    SummarySetAction,
)

from .pillar_merger import PillarMerger

logger = structlog.get_logger(__name__)


class ConsolidationEngine:
    """Keeps the summary set bounded: FIFO eviction, or consolidation into pillars"""

    def __init__(
        self,
        merger: PillarMerger,
        summaries_limit: int = 3,
        consolidation_threshold: int = 5
    ):
        self.merger = merger
        self.summaries_limit = summaries_limit
        self.consolidation_threshold = consolidation_threshold

    def consolidates(self, session: Session) -> bool:
        """Whether this session absorbs summaries into pillars instead of evicting them"""
        return session.personality is not None and session.consolidation_enabled

    async def after_summary(
        self, session: Session
    ) -> Tuple[SummarySetAction, List[Summary], Optional[ConsolidationResult]]:
        """Apply the summary-set policy after a summary was appended"""

        count = len(session.summaries)

        if not self.consolidates(session):
            evicted = self.evict(session)
            action = SummarySetAction.EVICTED if evicted else SummarySetAction.NONE
            return action, evicted, None

        if count < self.consolidation_threshold:
            if count > self.summaries_limit:
                return SummarySetAction.PENDING, [], None
            return SummarySetAction.NONE, [], None

        result = await self.merger.consolidate(session.personality, session.summaries)
        if not result.success:
            # Summaries stay intact so the next checkpoint can retry
            return SummarySetAction.CONSOLIDATION_FAILED, [], result

        session.personality = result.personality
        evicted = self.truncate(session)
        logger.info(
            "Summaries consolidated",
            absorbed=count,
            retained=len(session.summaries),
            pillars=result.pillars_after
        )
        return SummarySetAction.CONSOLIDATED, evicted, result

    def evict(self, session: Session) -> List[Summary]:
        """Drop oldest summaries until the set is within summaries_limit"""

        overflow = len(session.summaries) - self.summaries_limit
        if overflow <= 0:
            return []
        evicted = session.summaries[:overflow]
        session.summaries = session.summaries[overflow:]
        return evicted

    @staticmethod
    def truncate(session: Session) -> List[Summary]:
        """Keep only the most recent summaries after a consolidation"""

        keep = POST_CONSOLIDATION_RETENTION
        evicted = session.summaries[:-keep] if len(session.summaries) > keep else []
        session.summaries = session.summaries[-keep:]
        return evicted
