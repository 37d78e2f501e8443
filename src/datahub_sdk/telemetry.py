"""Structured logging and tracing for the Data Hub SDK.

Every SDK span is named ``datahub.<operation>``. When an SDK error escapes
a span its error code is recorded as ``datahub.error.code`` next to the
exception event, so failed token grants and requests can be told apart in
a trace without parsing messages.

Nothing here changes global logging unless :func:`configure_telemetry` is
called, either directly or by a client whose config names a telemetry
section.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, ParamSpec, TypeVar

import structlog
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from .errors import DataHubError

if TYPE_CHECKING:
    from collections.abc import Generator

    from .config import TelemetryConfig

P = ParamSpec("P")
T = TypeVar("T")

SDK_NAME = "datahub-sdk"
SDK_VERSION = "0.1.0"
SPAN_PREFIX = "datahub."

_tracer: trace.Tracer | None = None
_logger: structlog.BoundLogger | None = None


def get_tracer() -> trace.Tracer:
    """Tracer for SDK spans; the global provider's unless configured."""
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(SDK_NAME, SDK_VERSION)
    return _tracer


def get_logger() -> structlog.BoundLogger:
    """Logger shared by all SDK modules."""
    global _logger
    if _logger is None:
        _logger = structlog.get_logger(SDK_NAME)
    return _logger


def configure_telemetry(config: TelemetryConfig) -> None:
    """Apply a telemetry configuration to the SDK.

    Enabled: structlog renders JSON lines at ``config.log_level`` and spans
    use a tracer named after ``config.service_name``. Disabled: spans go to
    a no-op tracer and the SDK logger drops everything below CRITICAL,
    which the SDK never emits.
    """
    global _tracer, _logger

    if not config.enabled:
        _tracer = trace.NoOpTracer()
        _logger = structlog.wrap_logger(
            structlog.PrintLogger(),
            wrapper_class=structlog.make_filtering_bound_logger(logging.CRITICAL),
        )
        return

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(config.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _tracer = trace.get_tracer(config.service_name, SDK_VERSION)
    _logger = structlog.get_logger(SDK_NAME).bind(service=config.service_name)


@contextmanager
def trace_operation(
    name: str,
    *,
    attributes: dict[str, Any] | None = None,
) -> Generator[trace.Span, None, None]:
    """Run a block inside a ``datahub.<name>`` span.

    Attributes whose value is None are left off the span. An exception
    leaving the block marks the span as failed and is re-raised.
    """
    with get_tracer().start_as_current_span(SPAN_PREFIX + name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        try:
            yield span
        except Exception as e:
            if isinstance(e, DataHubError):
                span.set_attribute("datahub.error.code", e.code)
            span.record_exception(e)
            span.set_status(Status(StatusCode.ERROR, str(e)))
            raise


def traced(name: str | None = None) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Wrap a function in :func:`trace_operation`.

    The span is named after ``name``, or the function's qualified name.
    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        operation = name or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            with trace_operation(operation):
                return func(*args, **kwargs)

        return wrapper

    return decorator
