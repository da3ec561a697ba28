"""Observability utilities: structured log context and per-stage timings."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from functools import wraps
from typing import Any, Callable, Dict, List, Optional


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LogContext:
    """Context carried through one relay call for structured logging."""

    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    operation: str = ""
    component: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_operation(self, operation: str) -> "LogContext":
        """Create new context with operation set."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=operation,
            component=self.component,
            metadata=self.metadata.copy(),
        )

    def with_metadata(self, **kwargs: Any) -> "LogContext":
        """Create new context with additional metadata."""
        new_metadata = self.metadata.copy()
        new_metadata.update(kwargs)
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            metadata=new_metadata,
        )

    def format(self, message: str, **kwargs: Any) -> str:
        """Render ``message`` with the context prefix and metadata suffix."""
        formatted = f"[{self.correlation_id}] {message}"
        if self.operation:
            formatted = f"[{self.operation}] {formatted}"

        extra = {**self.metadata, **kwargs}
        if extra:
            formatted = f"{formatted} ({', '.join(f'{k}={v}' for k, v in extra.items())})"
        return formatted


class StructuredLogger:
    """Wraps a stdlib logger and renders ``LogContext`` into each line."""

    def __init__(self, logger: logging.Logger):
        self._logger = logger

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: Optional[LogContext] = None,
        **kwargs: Any,
    ) -> None:
        if context is not None:
            message = context.format(message, **kwargs)
        elif kwargs:
            message = f"{message} ({', '.join(f'{k}={v}' for k, v in kwargs.items())})"

        getattr(self._logger, level.value.lower())(message)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.ERROR, message, context, **kwargs)


@dataclass
class PerformanceMetrics:
    """Timing of one pipeline stage."""

    operation: str
    start_time: float
    end_time: float
    success: bool
    error_message: Optional[str] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000


class MetricsCollector:
    """Collects stage timings for one process."""

    def __init__(self) -> None:
        self._metrics: List[PerformanceMetrics] = []

    def record_metric(self, metric: PerformanceMetrics) -> None:
        self._metrics.append(metric)

    def get_metrics(self, operation: Optional[str] = None) -> List[PerformanceMetrics]:
        """Get recorded metrics, optionally filtered by operation."""
        if operation:
            return [m for m in self._metrics if m.operation == operation]
        return self._metrics.copy()

    def get_summary(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics for metrics."""
        metrics = self.get_metrics(operation)
        if not metrics:
            return {}

        durations = [m.duration for m in metrics]
        successful = [m for m in metrics if m.success]

        return {
            "total_operations": len(metrics),
            "successful_operations": len(successful),
            "failed_operations": len(metrics) - len(successful),
            "success_rate": len(successful) / len(metrics),
            "avg_duration": sum(durations) / len(durations),
            "max_duration": max(durations),
        }

    def clear_metrics(self) -> None:
        self._metrics.clear()


def timed_operation(
    operation_name: str,
    metrics_collector: Optional[MetricsCollector] = None,
) -> Callable:
    """Decorator recording the duration and outcome of each call."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            start_time = time.time()
            success = False
            error_message = None
            try:
                result = func(*args, **kwargs)
                success = True
                return result
            except Exception as e:
                error_message = str(e)
                raise
            finally:
                if metrics_collector is not None:
                    metrics_collector.record_metric(
                        PerformanceMetrics(
                            operation=operation_name,
                            start_time=start_time,
                            end_time=time.time(),
                            success=success,
                            error_message=error_message,
                        )
                    )

        return wrapper

    return decorator
