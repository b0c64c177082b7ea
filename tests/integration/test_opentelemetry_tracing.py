"""Integration tests with a real OpenTelemetry SDK tracer."""

import io
import json
from typing import Any

import httpx
import pytest
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.sampling import ALWAYS_OFF

from cloudlogdriver import (
    SPAN_ID_KEY,
    TRACE_KEY,
    TRACE_SAMPLED_KEY,
    CloudLoggingMiddleware,
    HandlerOptions,
    new,
)

pytestmark = [pytest.mark.integration, pytest.mark.tier(2)]


def _entries(stream: io.StringIO) -> list[dict[str, Any]]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


@pytest.fixture
def tracer() -> trace.Tracer:
    """Tracer from a private provider; the global provider is left untouched."""
    return TracerProvider().get_tracer(__name__)


class TestOpenTelemetrySpans:
    """Tests for entries logged inside SDK spans."""

    def test_entry_carries_current_span(
        self, tracer: trace.Tracer, stream: io.StringIO
    ) -> None:
        logger = new(stream, HandlerOptions(project_id="my-project"))

        with tracer.start_as_current_span("operation") as span:
            logger.info("inside span")
            span_context = span.get_span_context()

        entry = _entries(stream)[0]
        assert entry[TRACE_KEY] == (
            f"projects/my-project/traces/{trace.format_trace_id(span_context.trace_id)}"
        )
        assert entry[SPAN_ID_KEY] == trace.format_span_id(span_context.span_id)
        assert entry[TRACE_SAMPLED_KEY] is True

    def test_group_and_span_together(
        self, tracer: trace.Tracer, stream: io.StringIO
    ) -> None:
        logger = new(stream, HandlerOptions(project_id="my-project"))

        with tracer.start_as_current_span("operation"):
            logger.with_group("g").info("grouped", k=1)

        entry = _entries(stream)[0]
        assert entry["g"] == {"k": 1}
        assert TRACE_KEY in entry
        assert "g" not in entry[TRACE_KEY]

    def test_unsampled_span(self, stream: io.StringIO) -> None:
        tracer = TracerProvider(sampler=ALWAYS_OFF).get_tracer(__name__)
        logger = new(stream, HandlerOptions(project_id="my-project"))

        with tracer.start_as_current_span("operation"):
            logger.info("not sampled")

        entry = _entries(stream)[0]
        assert TRACE_KEY in entry
        assert entry[TRACE_SAMPLED_KEY] is False

    def test_no_entry_trace_after_span_ends(
        self, tracer: trace.Tracer, stream: io.StringIO
    ) -> None:
        logger = new(stream, HandlerOptions(project_id="my-project"))

        with tracer.start_as_current_span("operation"):
            pass
        logger.info("after")

        assert TRACE_KEY not in _entries(stream)[0]

    async def test_span_wins_over_trace_header(
        self, tracer: trace.Tracer, stream: io.StringIO
    ) -> None:
        logger = new(stream, HandlerOptions(project_id="my-project"))
        seen: dict[str, str] = {}

        async def app(scope, receive, send):
            with tracer.start_as_current_span("handler") as span:
                seen["span_id"] = trace.format_span_id(span.get_span_context().span_id)
                logger.info("handling")
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b""})

        wrapped = CloudLoggingMiddleware(app, logger)
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=wrapped), base_url="http://test"
        ) as client:
            await client.get(
                "/",
                headers={
                    "X-Cloud-Trace-Context": "105445aa7843bc8bf206b12000100000/1;o=1"
                },
            )

        app_entry, request_entry = _entries(stream)
        assert app_entry[SPAN_ID_KEY] == seen["span_id"]
        assert request_entry[SPAN_ID_KEY] == "0000000000000001"
