from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime, timezone
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from agent_memory.config import CHANGELOG_CAP


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


class MemoryModel(BaseModel):
    """Base model: snake_case in Python, camelCase on disk"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InteractionRole(str, Enum):
    """Who produced a dialogue turn"""
    USER = "user"
    AGENT = "agent"


# Older session files recorded agent turns under these names
_ROLE_ALIASES = {"ai": "agent", "assistant": "agent"}


class Interaction(MemoryModel):
    """One dialogue turn"""
    model_config = ConfigDict(frozen=True)

    id: int = Field(description="Assigned from Session.next_id at append time")
    role: InteractionRole
    text: str
    timestamp: datetime = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices("timestamp", "ts"),
    )

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _ROLE_ALIASES.get(value.lower(), value.lower())
        return value

    def render(self) -> str:
        """Role-prefixed line used in prompts"""
        return f"{self.role.value.upper()}: {self.text}"


class SummaryRange(MemoryModel):
    """Inclusive id bounds of the interactions a summary replaces"""
    model_config = ConfigDict(frozen=True)

    start_id: int
    end_id: int


class Summary(MemoryModel):
    """Compressed synthesis of a contiguous batch of interactions"""
    model_config = ConfigDict(frozen=True)

    range: SummaryRange
    text: str
    timestamp: datetime = Field(
        default_factory=utcnow,
        validation_alias=AliasChoices("timestamp", "ts"),
    )

    @property
    def id_span(self) -> Tuple[int, int]:
        return self.range.start_id, self.range.end_id


class Pillar(MemoryModel):
    """Durable knowledge that survives buffer and summary eviction"""
    category: str = Field(description="Knowledge category, e.g. 'Programming Preferences'")
    details: str = Field(description="Synthesized evergreen insight")
    importance: int = Field(ge=1, le=10, description="1 (low) to 10 (high)")
    last_updated: datetime = Field(default_factory=utcnow)


class Constraints(MemoryModel):
    must_not: List[str] = Field(default_factory=list)
    should_avoid: List[str] = Field(default_factory=list)


class MutablePreference(MemoryModel):
    preference: str
    timestamp: datetime = Field(default_factory=utcnow)


class ChangeLogEntry(MemoryModel):
    change: str
    timestamp: datetime = Field(default_factory=utcnow)


class Audit(MemoryModel):
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    updated_by: str = ""
    change_log: List[ChangeLogEntry] = Field(default_factory=list)

    def record_change(self, change: str, at: Optional[datetime] = None, updated_by: Optional[str] = None):
        """Append a changelog entry, keeping only the most recent CHANGELOG_CAP"""
        at = at or utcnow()
        self.change_log.append(ChangeLogEntry(change=change, timestamp=at))
        if len(self.change_log) > CHANGELOG_CAP:
            self.change_log = self.change_log[-CHANGELOG_CAP:]
        self.updated_at = at
        if updated_by:
            self.updated_by = updated_by


class Compatibility(MemoryModel):
    policy: str = ""


class Personality(MemoryModel):
    """Mutable personality profile carrying the long-term pillars"""
    name: str = ""
    description: str = ""
    version: str = "1.0.0"
    tone: str = ""
    style: str = ""
    values: List[str] = Field(default_factory=list, description="Core values, unique")
    constraints: Constraints = Field(default_factory=Constraints)
    mutable: List[MutablePreference] = Field(default_factory=list)
    pillars: List[Pillar] = Field(default_factory=list)
    audit: Audit = Field(default_factory=Audit)
    compatibility: Optional[Compatibility] = None

    @field_validator("values", mode="after")
    @classmethod
    def dedupe_values(cls, values: List[str]) -> List[str]:
        # set semantics, first occurrence wins
        return list(dict.fromkeys(values))


class Session(MemoryModel):
    """Root aggregate for one conversation"""
    interactions: List[Interaction] = Field(default_factory=list)
    summaries: List[Summary] = Field(default_factory=list)
    next_id: int = Field(default=1, ge=1)
    personality: Optional[Personality] = None
    personality_evolution_enabled: bool = True
    personality_immutable: bool = False
    consolidation_enabled: bool = True
    revision: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> "Session":
        """Normalize a raw stored record into a fully populated session"""
        session = cls.model_validate(record or {})
        # Records written before next_id existed, or hand-edited ones
        used = [item.id for item in session.interactions]
        used += [summary.range.end_id for summary in session.summaries]
        if used:
            highest = max(used)
            if session.next_id <= highest:
                session.next_id = highest + 1
        return session

    def to_record(self) -> Dict[str, Any]:
        """Serialize for storage"""
        return self.model_dump(mode="json", by_alias=True)

    def get_state_summary(self) -> Dict[str, Any]:
        """Get a summary of the current memory state"""
        return {
            "interactions": len(self.interactions),
            "summaries": len(self.summaries),
            "next_id": self.next_id,
            "has_personality": self.personality is not None,
            "pillars": len(self.personality.pillars) if self.personality else 0,
            "revision": self.revision,
            "updated_at": self.updated_at.isoformat(),
        }
