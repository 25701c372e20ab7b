"""Error taxonomy for the memory engine."""

from typing import Optional


class MemoryEngineError(Exception):
    """Base class for all memory engine errors"""


class InvalidInteraction(MemoryEngineError):
    """Malformed append input. Raised before the session is touched."""


class CollaboratorError(MemoryEngineError):
    """The summarization collaborator failed or returned malformed output"""

    def __init__(self, message: str, attempts: int = 1, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.cause = cause


class CollaboratorTimeout(CollaboratorError):
    """The summarization collaborator did not answer in time"""


class SummarizationFailure(MemoryEngineError):
    """Overflow could not be summarized; the buffer stays over cap until a retry succeeds"""

    def __init__(self, message: str, start_id: Optional[int] = None, end_id: Optional[int] = None):
        super().__init__(message)
        self.start_id = start_id
        self.end_id = end_id


class ConsolidationFailure(MemoryEngineError):
    """Pillar merge failed; the personality is left unchanged"""


class EvolutionFailure(MemoryEngineError):
    """Personality evolution failed; the previous personality is kept"""


class ConcurrentMutationConflict(MemoryEngineError):
    """A session record was written by someone else between load and save"""

    def __init__(self, session_id: str, expected_revision: int, actual_revision: int):
        super().__init__(
            f"Session {session_id} changed concurrently "
            f"(expected revision {expected_revision}, found {actual_revision})"
        )
        self.session_id = session_id
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision


class PersonalityImmutableError(MemoryEngineError):
    """Personality is immutable for this session"""


class PersonalityNotFound(MemoryEngineError):
    """No personality registered for this session"""
