"""Trace correlation for log entries.

Two tracing systems may populate the ambient OpenTelemetry context: an
OpenTelemetry tracer (the current span) and the Google Cloud
``X-Cloud-Trace-Context`` request header, stored in the context by the ASGI
middleware. Resolvers are tried in a fixed order and the first one that
reports a valid trace id and span id wins.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from opentelemetry import context as otel_context
from opentelemetry import trace

from cloudlogdriver.core.models import TraceInfo
from cloudlogdriver.core.ports import TraceResolver

CLOUD_TRACE_CONTEXT_HEADER = "X-Cloud-Trace-Context"
CLOUD_TRACE_CONTEXT_KEY = otel_context.create_key("cloud-trace-context")

_CLOUD_TRACE_RE = re.compile(
    r"^(?P<trace_id>[0-9a-fA-F]{32})(?:/(?P<span_id>\d+))?(?:;o=(?P<options>\d+))?$"
)
_MAX_SPAN_ID = 2**64 - 1


@dataclass(frozen=True)
class CloudTraceContext:
    """Parsed ``X-Cloud-Trace-Context`` header.

    Attributes:
        trace_id: 32 hex digit trace id, lowercased.
        span_id: Span id as an unsigned 64-bit integer (0 if absent).
        sampled: True when the trace options flag is set (``o=1``).
    """

    trace_id: str
    span_id: int = 0
    sampled: bool = False


def parse_cloud_trace_context(header: str | None) -> CloudTraceContext | None:
    """Parse an ``X-Cloud-Trace-Context`` header value.

    Args:
        header: Header value in the form ``TRACE_ID[/SPAN_ID][;o=OPTIONS]``.

    Returns:
        CloudTraceContext, or None if the header is missing or malformed.
    """
    if not header:
        return None
    match = _CLOUD_TRACE_RE.match(header.strip())
    if match is None:
        return None
    span_id = int(match.group("span_id") or 0)
    if span_id > _MAX_SPAN_ID:
        return None
    options = int(match.group("options") or 0)
    return CloudTraceContext(
        trace_id=match.group("trace_id").lower(),
        span_id=span_id,
        sampled=bool(options & 1),
    )


class OpenTelemetryResolver:
    """Reads the current OpenTelemetry span from the context."""

    def resolve(self, context: Any) -> TraceInfo | None:
        span_context = trace.get_current_span(context).get_span_context()
        if not span_context.is_valid:
            return None
        return TraceInfo(
            trace_id=trace.format_trace_id(span_context.trace_id),
            span_id=trace.format_span_id(span_context.span_id),
            sampled=span_context.trace_flags.sampled,
        )


class CloudTraceContextResolver:
    """Reads a CloudTraceContext stored in the context by the middleware."""

    def resolve(self, context: Any) -> TraceInfo | None:
        value = otel_context.get_value(CLOUD_TRACE_CONTEXT_KEY, context)
        if not isinstance(value, CloudTraceContext):
            return None
        return TraceInfo(
            trace_id=value.trace_id,
            span_id=f"{value.span_id:016x}",
            sampled=value.sampled,
        )


DEFAULT_RESOLVERS: tuple[TraceResolver, ...] = (
    OpenTelemetryResolver(),
    CloudTraceContextResolver(),
)


def _is_zero(hex_id: str) -> bool:
    return not hex_id or set(hex_id) == {"0"}


def resolve_trace(
    context: Any, resolvers: Sequence[TraceResolver] = DEFAULT_RESOLVERS
) -> TraceInfo | None:
    """Resolve trace ids from the first tracing system that populated context.

    Args:
        context: An OpenTelemetry Context. None resolves to nothing.
        resolvers: Resolvers in priority order.

    Returns:
        TraceInfo with non-zero trace and span ids, or None.
    """
    if context is None:
        return None
    for resolver in resolvers:
        info = resolver.resolve(context)
        if info is None or _is_zero(info.trace_id) or _is_zero(info.span_id):
            continue
        return info
    return None


def trace_resource(project_id: str, trace_id: str) -> str:
    """Return the fully-qualified Cloud Trace resource path for a trace id."""
    return f"projects/{project_id}/traces/{trace_id}"
