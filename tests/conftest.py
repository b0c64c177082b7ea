"""Shared test fixtures for all test modules."""

import io
import json
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from opentelemetry import trace
from opentelemetry.context import Context

from cloudlogdriver import HandlerOptions, Logger, new

TRACE_ID = 0x0AF7651916CD43DD8448EB211C80319C
SPAN_ID = 0x00F067AA0BA902B7


@pytest.fixture(autouse=True, scope="session")
def _no_project_env() -> Iterator[None]:
    """Keep the GOOGLE_CLOUD_PROJECT fallback out of tests unless set explicitly."""
    with pytest.MonkeyPatch.context() as mp:
        mp.delenv("GOOGLE_CLOUD_PROJECT", raising=False)
        yield


@pytest.fixture
def stream() -> io.StringIO:
    """Provide an in-memory text sink."""
    return io.StringIO()


@pytest.fixture
def read_entries(stream: io.StringIO) -> Callable[[], list[dict[str, Any]]]:
    """Return a function that decodes every line written to the sink."""

    def _read() -> list[dict[str, Any]]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return _read


@pytest.fixture
def make_logger(stream: io.StringIO) -> Callable[..., Logger]:
    """Factory fixture creating a Logger on the shared sink.

    Keyword arguments are passed to HandlerOptions.
    """

    def _make(**options: Any) -> Logger:
        return new(stream, HandlerOptions(**options))

    return _make


@pytest.fixture
def traced_context() -> Callable[..., Context]:
    """Factory fixture for an OpenTelemetry context holding a span.

    Uses a NonRecordingSpan, so no tracer provider is needed.
    """

    def _context(
        trace_id: int = TRACE_ID, span_id: int = SPAN_ID, sampled: bool = True
    ) -> Context:
        flags = trace.TraceFlags(
            trace.TraceFlags.SAMPLED if sampled else trace.TraceFlags.DEFAULT
        )
        span_context = trace.SpanContext(
            trace_id=trace_id, span_id=span_id, is_remote=False, trace_flags=flags
        )
        return trace.set_span_in_context(trace.NonRecordingSpan(span_context))

    return _context
