from typing import Optional, Sequence

import structlog

from agent_memory.domain.collaborator import (
    CollaboratorClient,
    EvolutionExtras,
    build_evolution_prompt,
)
from agent_memory.domain.errors import CollaboratorError, EvolutionFailure
from agent_memory.domain.models import (
    Audit,
    EvolutionResponse,
    EvolutionResult,
    Interaction,
    Personality,
    Session,
    Summary,
    utcnow,
)

logger = structlog.get_logger(__name__)

UPDATED_BY = "personality_evolver"


def increment_version(version: str) -> str:
    """Bump the patch component of a semver-like string"""

    parts = (version or "").split(".")
    major = parts[0] or "1"
    minor = parts[1] if len(parts) > 1 and parts[1] else "0"
    try:
        patch = int(parts[2])
    except (IndexError, ValueError):
        patch = 0
    return f"{major}.{minor}.{patch + 1}"


def _pick(value, fallback):
    return fallback if value is None else value


def can_evolve(session: Session) -> bool:
    return (
        session.personality is not None
        and session.personality_evolution_enabled
        and not session.personality_immutable
    )


class PersonalityEvolver:
    """Evolves the mutable personality profile at summarization checkpoints"""

    def __init__(self, client: CollaboratorClient):
        self.client = client

    async def evolve(
        self,
        personality: Optional[Personality],
        interactions: Sequence[Interaction],
        summaries: Sequence[Summary],
        extras: Optional[EvolutionExtras] = None
    ) -> EvolutionResult:
        """Evolve personality; on failure the previous one comes back with error set"""

        if personality is None:
            return EvolutionResult(
                personality=None,
                explanation="No previous personality to evolve from."
            )

        try:
            evolved, explanation = await self.evolve_or_raise(personality, interactions, summaries, extras)
        except EvolutionFailure as e:
            logger.error("Error evolving personality", error=str(e))
            return EvolutionResult(
                personality=personality,
                explanation=f"Evolution attempt failed: {e}",
                error=True
            )

        logger.info("Personality evolved", version=evolved.version, explanation=explanation)
        return EvolutionResult(personality=evolved, explanation=explanation)

    async def evolve_or_raise(
        self,
        personality: Personality,
        interactions: Sequence[Interaction],
        summaries: Sequence[Summary],
        extras: Optional[EvolutionExtras] = None
    ):
        prompt = build_evolution_prompt(personality, interactions, summaries, extras)
        try:
            response = await self.client.request("evolve", prompt, EvolutionResponse)
        except CollaboratorError as e:
            raise EvolutionFailure(str(e)) from e

        return self.apply(personality, response), response.explanation

    @staticmethod
    def apply(previous: Personality, response: EvolutionResponse) -> Personality:
        """Merge the collaborator's draft over the previous personality and enforce the audit rules"""

        draft = response.personality
        now = utcnow()

        version = draft.version
        if not version or version == previous.version:
            version = increment_version(previous.version or "1.0.0")

        created_at = previous.audit.created_at
        if draft.audit and "created_at" in draft.audit.model_fields_set:
            created_at = draft.audit.created_at

        audit = Audit(
            created_at=created_at,
            updated_by=UPDATED_BY,
            change_log=list(
                draft.audit.change_log if draft.audit and draft.audit.change_log
                else previous.audit.change_log
            )
        )
        audit.record_change(
            f"Personality evolved at summarization point: {response.explanation}",
            at=now,
            updated_by=UPDATED_BY
        )

        evolved = Personality(
            name=_pick(draft.name, previous.name),
            description=_pick(draft.description, previous.description),
            version=version,
            tone=_pick(draft.tone, previous.tone),
            style=_pick(draft.style, previous.style),
            values=_pick(draft.values, previous.values),
            constraints=_pick(draft.constraints, previous.constraints),
            mutable=_pick(draft.mutable, previous.mutable),
            pillars=previous.pillars,
            audit=audit,
            compatibility=_pick(draft.compatibility, previous.compatibility)
        )
        # detach from previous and from the draft
        return evolved.model_copy(deep=True)
