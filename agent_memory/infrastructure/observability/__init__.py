from .logging import MemoryLogger, MetricsCollector, memory_logger, metrics, setup_logging
from .langfuse_tracing import configure_tracing, traced, tracing_enabled

__all__ = [
    "MemoryLogger", "MetricsCollector", "memory_logger", "metrics", "setup_logging",
    "configure_tracing", "traced", "tracing_enabled",
]
