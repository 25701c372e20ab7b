import logging
import sys
from typing import Any, Dict, List, Optional

import structlog

# Chatty client libraries that log every HTTP request at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "langfuse", "urllib3")

# Context keys copied onto every event when bound with bind_contextvars
_MEMORY_CONTEXT_KEYS = ("session_id", "trace_id", "operation", "checkpoint")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "agent-memory",
    version: str = "unknown"
) -> None:
    """Configure structlog over stdlib logging for the memory engine"""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name, version=version)


def build_processors(log_format: str) -> List[Any]:
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_memory_context,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def add_memory_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy the session and checkpoint being worked on onto the event; explicit keys win"""

    bound = structlog.contextvars.get_contextvars()
    for key in _MEMORY_CONTEXT_KEYS:
        if key in bound and key not in event_dict:
            event_dict[key] = bound[key]
    return event_dict


class MemoryLogger:
    """Event-style logging for checkpoints, collaborator calls and session lifecycle"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_checkpoint(
        self,
        session_id: str,
        stage: str,
        success: bool,
        details: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None
    ):
        """Log one stage of a summarization checkpoint"""

        log = self.logger.info if success else self.logger.warning
        log(
            "memory_checkpoint",
            session_id=session_id,
            stage=stage,
            success=success,
            details=details or {},
            error=error
        )

    def log_collaborator_call(
        self,
        operation: str,
        attempt: int,
        duration_ms: float,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log a call to the summarization collaborator"""

        log = self.logger.info if success else self.logger.warning
        log(
            "collaborator_call",
            operation=operation,
            attempt=attempt,
            duration_ms=round(duration_ms, 2),
            success=success,
            error=error
        )

    def log_session_update(
        self,
        session_id: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log session lifecycle events"""

        self.logger.info(
            "session_update",
            session_id=session_id,
            action=action,
            details=details or {}
        )


memory_logger = MemoryLogger("agent_memory")


class MetricsCollector:
    """In-process metrics: collaborator latency, failure and checkpoint counters, memory gauges.

    Gauges hold the last observed size of a session's interaction buffer,
    summary set and pillar list, plus the largest value seen for each across
    all sessions. The high-water marks are what show a cap being breached.
    """

    def __init__(self):
        self.latencies: Dict[str, List[float]] = {}
        self.counters: Dict[str, int] = {}
        self.gauges: Dict[str, Dict[str, int]] = {}
        self.peaks: Dict[str, int] = {}

    def record_latency(self, operation: str, duration_ms: float):
        self.latencies.setdefault(operation, []).append(duration_ms)

    def increment_counter(self, name: str, value: int = 1):
        self.counters[name] = self.counters.get(name, 0) + value

    def count_checkpoint(self, action: str):
        """Count a summary-set outcome (evicted, consolidated, pending, ...)"""
        self.increment_counter(f"checkpoint.{action}")

    def observe_memory(self, session_id: str, interactions: int, summaries: int, pillars: int):
        """Record the size of one session's memory after a checkpoint"""

        for name, value in (("interactions", interactions), ("summaries", summaries), ("pillars", pillars)):
            key = f"memory.{name}"
            self.gauges.setdefault(key, {})[session_id] = value
            self.peaks[key] = max(self.peaks.get(key, 0), value)

    def forget_session(self, session_id: str):
        for per_session in self.gauges.values():
            per_session.pop(session_id, None)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Flat summary: latency stats under ``latency.*``, counters, gauge peaks and session counts"""

        summary: Dict[str, Any] = {}
        for operation, samples in self.latencies.items():
            summary[f"latency.{operation}"] = {
                "count": len(samples),
                "avg": sum(samples) / len(samples),
                "min": min(samples),
                "max": max(samples)
            }
        summary.update(self.counters)
        for key, per_session in self.gauges.items():
            summary[key] = {"sessions": len(per_session), "peak": self.peaks.get(key, 0)}
        return summary

    def reset(self):
        self.latencies.clear()
        self.counters.clear()
        self.gauges.clear()
        self.peaks.clear()


metrics = MetricsCollector()
