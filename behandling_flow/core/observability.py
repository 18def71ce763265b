"""
Observability Infrastructure

Provides logging, tracing, and metrics collection for flow generation.

Modules log through the standard ``logging`` module; the manager routes those
records into loguru sinks. Spans and metrics use the OpenTelemetry SDK with an
in-memory metric reader.
"""

import contextlib
import functools
import inspect
import logging
import sys
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, TypeVar, Union

from loguru import logger
from opentelemetry import metrics, trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

F = TypeVar("F", bound=Callable[..., Any])


class LogLevel(str, Enum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ObservabilityConfig:
    """Configuration for observability."""

    def __init__(
        self,
        service_name: str = "behandling-flow",
        log_level: Union[str, LogLevel] = LogLevel.INFO,
        json_logs: bool = False,
        enable_tracing: bool = True,
        console_spans: bool = False,
        enable_metrics: bool = True,
    ):
        """Initialize observability configuration."""
        self.service_name = service_name
        self.log_level = log_level if isinstance(log_level, str) else log_level.value
        self.json_logs = json_logs
        self.enable_tracing = enable_tracing
        self.console_spans = console_spans
        self.enable_metrics = enable_metrics


class InterceptHandler(logging.Handler):
    """Forwards standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Union[str, int] = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller outside the logging module so loguru reports the right origin
        frame, depth = inspect.currentframe(), 0
        while frame is not None and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


class ObservabilityManager:
    """Centralized observability management."""

    _instance: Optional["ObservabilityManager"] = None

    def __init__(self, config: ObservabilityConfig):
        """Initialize observability manager."""
        self.config = config
        self.instruments: Dict[str, Any] = {}
        self._setup_logging()

        if config.enable_tracing:
            self._setup_tracing()

        if config.enable_metrics:
            self._setup_metrics()

        logger.debug(
            f"Observability initialized: service={config.service_name}, "
            f"log_level={config.log_level}"
        )

    def _setup_logging(self) -> None:
        """Set up loguru sinks and route stdlib logging into them."""
        logger.remove()

        log_format = (
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        )

        # stdout is reserved for command output
        if self.config.json_logs:
            logger.add(sys.stderr, level=self.config.log_level, serialize=True, colorize=False)
        else:
            logger.add(
                sys.stderr,
                format=log_format,
                level=self.config.log_level,
                colorize=True,
                backtrace=True,
                diagnose=False,
            )

        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    def _setup_tracing(self) -> None:
        """Set up OpenTelemetry tracing."""
        resource = Resource(attributes={SERVICE_NAME: self.config.service_name})
        tracer_provider = TracerProvider(resource=resource)

        if self.config.console_spans:
            tracer_provider.add_span_processor(
                SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr))
            )

        trace.set_tracer_provider(tracer_provider)
        self.tracer = trace.get_tracer(__name__)
        logger.debug("OpenTelemetry tracing initialized")

    def _setup_metrics(self) -> None:
        """Set up OpenTelemetry metrics."""
        # In-memory reader; metrics are inspected, not exported
        self.metric_reader = InMemoryMetricReader()
        resource = Resource(attributes={SERVICE_NAME: self.config.service_name})

        meter_provider = MeterProvider(resource=resource, metric_readers=[self.metric_reader])
        metrics.set_meter_provider(meter_provider)
        self.meter = metrics.get_meter(__name__)

        logger.debug("OpenTelemetry metrics initialized")

    def instrument(self, metric_name: str, value: Union[int, float]) -> Any:
        """Counter for ``*_total`` and integer metrics, histogram otherwise."""
        if metric_name not in self.instruments:
            if metric_name.endswith("_total") or isinstance(value, int):
                self.instruments[metric_name] = self.meter.create_counter(metric_name, unit="1")
            else:
                self.instruments[metric_name] = self.meter.create_histogram(metric_name, unit="ms")
        return self.instruments[metric_name]

    @classmethod
    def initialize(cls, config: Optional[ObservabilityConfig] = None) -> "ObservabilityManager":
        """Initialize or get singleton instance.

        Passing a config to an existing instance only reconfigures logging.
        """
        if cls._instance is None:
            cls._instance = cls(config or ObservabilityConfig())
        elif config is not None:
            cls._instance.config.log_level = config.log_level
            cls._instance.config.json_logs = config.json_logs
            cls._instance._setup_logging()
        return cls._instance

    @classmethod
    def get_instance(cls) -> "ObservabilityManager":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls(ObservabilityConfig())
        return cls._instance


@contextlib.contextmanager
def span(name: str, attributes: Optional[Dict[str, Any]] = None):
    """Context manager for creating spans."""
    manager = ObservabilityManager.get_instance()

    if hasattr(manager, "tracer"):
        with manager.tracer.start_as_current_span(name) as span_obj:
            if attributes:
                for key, value in attributes.items():
                    span_obj.set_attribute(key, value)
            yield span_obj
    else:
        yield None


def log_execution(
    level: Union[str, LogLevel] = LogLevel.DEBUG,
    include_result: bool = False,
    include_duration: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for logging function execution.

    Args:
        level: Logging level
        include_result: Whether to log function result
        include_duration: Whether to log and record execution duration
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            log_level = level if isinstance(level, str) else level.value
            func_name = f"{func.__module__}.{func.__qualname__}"
            start_time = time.time()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(f"Function failed: {func_name}: {e}")
                raise

            message = f"Function executed: {func_name}"
            if include_duration:
                duration_ms = (time.time() - start_time) * 1000
                message += f" in {duration_ms:.1f}ms"
                record_metric(f"{func.__name__}_duration", duration_ms)
            if include_result:
                message += f" -> {str(result)[:200]}"

            logger.log(log_level, message)
            return result

        return wrapper  # type: ignore

    return decorator


def record_metric(
    metric_name: str,
    value: Union[int, float],
    attributes: Optional[Dict[str, str]] = None,
) -> None:
    """
    Record a metric value with OpenTelemetry.

    Args:
        metric_name: Name of the metric
        value: Metric value
        attributes: Optional attributes for the metric
    """
    manager = ObservabilityManager.get_instance()

    if hasattr(manager, "meter"):
        instrument = manager.instrument(metric_name, value)
        if hasattr(instrument, "add"):
            instrument.add(value, attributes=attributes or {})
        else:
            instrument.record(value, attributes=attributes or {})

    logger.trace(f"Metric recorded: {metric_name}={value} {attributes or ''}")


class Timer:
    """Context manager for timing operations."""

    def __init__(self, name: str, log: bool = True):
        """Initialize timer."""
        self.name = name
        self.log = log
        self.start_time: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> "Timer":
        """Enter context."""
        self.start_time = time.time()
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context."""
        self.elapsed = time.time() - self.start_time
        if self.log:
            logger.debug(f"Timer '{self.name}': {self.elapsed:.3f}s")
            record_metric(f"{self.name}_duration", self.elapsed * 1000)


__all__ = [
    "LogLevel",
    "ObservabilityConfig",
    "ObservabilityManager",
    "InterceptHandler",
    "span",
    "log_execution",
    "record_metric",
    "Timer",
]
