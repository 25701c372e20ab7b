# Langfuse integration for collaborator calls
import functools
from typing import Any, Awaitable, Callable, TypeVar

from langfuse import observe

from agent_memory.config import get_settings

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_enabled = None


def configure_tracing(enabled: bool) -> None:
    """Turn Langfuse tracing on or off for the process"""
    global _enabled
    _enabled = enabled


def tracing_enabled() -> bool:
    if _enabled is None:
        return get_settings().langfuse_enabled
    return _enabled


def traced(name: str) -> Callable[[F], F]:
    """Trace an async collaborator call as a Langfuse generation when tracing is on"""

    def decorator(func: F) -> F:
        observed = observe(name=name, as_type="generation")(func)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if tracing_enabled():
                return await observed(*args, **kwargs)
            return await func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator
