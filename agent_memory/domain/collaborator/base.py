from abc import ABC, abstractmethod
from typing import Any, Type, TypeVar
import asyncio
import time

from pydantic import BaseModel, ValidationError

from agent_memory.config import MemorySettings
from agent_memory.domain.errors import CollaboratorError, CollaboratorTimeout
from agent_memory.infrastructure.observability.logging import memory_logger, metrics

ResponseT = TypeVar("ResponseT", bound=BaseModel)


class SummarizationCollaborator(ABC):
    """External text-generation service used for summaries, pillars and personalities"""

    @abstractmethod
    async def generate(self, prompt: str, response_model: Type[ResponseT]) -> Any:
        """Answer the prompt with output matching response_model.

        Implementations may return an instance of response_model or a raw
        mapping; the client validates either. Malformed output must raise.
        """
        pass


class RetryPolicy(BaseModel):
    """Timeout and bounded exponential backoff for collaborator calls"""
    timeout_seconds: float = 60.0
    max_attempts: int = 3
    backoff_seconds: float = 0.5
    backoff_multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: MemorySettings) -> "RetryPolicy":
        return cls(
            timeout_seconds=settings.collaborator_timeout_seconds,
            max_attempts=settings.collaborator_max_attempts,
            backoff_seconds=settings.collaborator_backoff_seconds,
            backoff_multiplier=settings.collaborator_backoff_multiplier,
        )

    def delays(self):
        """Sleep before each retry, in seconds"""
        delay = self.backoff_seconds
        for _ in range(self.max_attempts - 1):
            yield delay
            delay *= self.backoff_multiplier


class CollaboratorClient:
    """Calls the collaborator with a timeout, bounded retry and output validation"""

    def __init__(self, collaborator: SummarizationCollaborator, policy: RetryPolicy = None):
        self.collaborator = collaborator
        self.policy = policy or RetryPolicy()

    async def request(self, operation: str, prompt: str, response_model: Type[ResponseT]) -> ResponseT:
        """Run one collaborator operation, raising CollaboratorError once retries are exhausted"""

        delays = self.policy.delays()
        last_error: CollaboratorError = None

        for attempt in range(1, self.policy.max_attempts + 1):
            started = time.perf_counter()
            try:
                raw = await asyncio.wait_for(
                    self.collaborator.generate(prompt, response_model),
                    timeout=self.policy.timeout_seconds
                )
                response = self._validate(raw, response_model)
            except asyncio.TimeoutError as e:
                last_error = CollaboratorTimeout(
                    f"{operation} timed out after {self.policy.timeout_seconds}s",
                    attempts=attempt,
                    cause=e
                )
            except CollaboratorError as e:
                last_error = e
            except Exception as e:
                last_error = CollaboratorError(f"{operation} failed: {e}", attempts=attempt, cause=e)
            else:
                duration_ms = (time.perf_counter() - started) * 1000
                metrics.record_latency(f"collaborator.{operation}", duration_ms)
                memory_logger.log_collaborator_call(operation, attempt, duration_ms)
                return response

            duration_ms = (time.perf_counter() - started) * 1000
            metrics.increment_counter(f"collaborator.{operation}.failures")
            memory_logger.log_collaborator_call(
                operation, attempt, duration_ms, success=False, error=str(last_error)
            )

            delay = next(delays, None)
            if delay is None:
                break
            if delay > 0:
                await asyncio.sleep(delay)

        error_cls = CollaboratorTimeout if isinstance(last_error, CollaboratorTimeout) else CollaboratorError
        raise error_cls(
            f"{operation} failed after {self.policy.max_attempts} attempt(s): {last_error}",
            attempts=self.policy.max_attempts,
            cause=last_error
        )

    @staticmethod
    def _validate(raw: Any, response_model: Type[ResponseT]) -> ResponseT:
        if isinstance(raw, response_model):
            return raw
        if isinstance(raw, BaseModel):
            raw = raw.model_dump()
        try:
            return response_model.model_validate(raw)
        except ValidationError as e:
            raise CollaboratorError(
                f"Malformed {response_model.__name__} from collaborator: {e.error_count()} error(s)",
                cause=e
            ) from e
