from typing import List

import structlog

from agent_memory.domain.collaborator import CollaboratorClient, build_summary_prompt
from agent_memory.domain.errors import CollaboratorError, SummarizationFailure
from agent_memory.domain.models import (
    Interaction,
    Session,
    SummarizationResult,
    Summary,
    SummaryRange,
    SummaryResponse,
    utcnow,
)

logger = structlog.get_logger(__name__)


class SummarizationTrigger:
    """Compresses the oldest contiguous batch of an over-cap buffer into a summary"""

    def __init__(self, client: CollaboratorClient, interactions_limit: int = 21):
        self.client = client
        self.interactions_limit = interactions_limit

    def next_batch(self, session: Session) -> List[Interaction]:
        """Oldest interactions_limit turns, or nothing if the buffer is within cap"""

        if len(session.interactions) <= self.interactions_limit:
            return []
        return list(session.interactions[:self.interactions_limit])

    async def summarize(self, batch: List[Interaction]) -> SummarizationResult:
        """Ask the collaborator for a summary of batch"""

        try:
            summary = await self.summarize_or_raise(batch)
        except SummarizationFailure as e:
            return SummarizationResult(success=False, batch=batch, error=str(e))
        return SummarizationResult(success=True, batch=batch, summary=summary)

    async def summarize_or_raise(self, batch: List[Interaction]) -> Summary:
        if not batch:
            raise ValueError("Cannot summarize an empty batch")

        start_id, end_id = batch[0].id, batch[-1].id
        try:
            response = await self.client.request(
                "summarize", build_summary_prompt(batch), SummaryResponse
            )
        except CollaboratorError as e:
            logger.error("Summarization failed", start_id=start_id, end_id=end_id, error=str(e))
            raise SummarizationFailure(
                f"Could not summarize interactions {start_id}-{end_id}: {e}",
                start_id=start_id,
                end_id=end_id
            ) from e

        logger.info("Summarized interactions", start_id=start_id, end_id=end_id, turns=len(batch))
        return Summary(
            range=SummaryRange(start_id=start_id, end_id=end_id),
            text=response.summary,
            timestamp=utcnow()
        )
