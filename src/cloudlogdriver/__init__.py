"""cloudlogdriver - Google Cloud Logging structured output for Python logging.

Example:
    ```python
    from cloudlogdriver import Attr, HandlerOptions, labels, new

    options = HandlerOptions(add_source=True, default_labels=(Attr("env", "prod"),))
    logger = new(options=options)
    logger = logger.with_(labels(team="payments"))
    logger.info("charge created", labels(request_id="123"), amount=42)
    ```
"""

from cloudlogdriver.adapters.frameworks.asgi import CloudLoggingMiddleware
from cloudlogdriver.adapters.http import (
    GAELatency,
    HTTPPayload,
    http_attr,
    make_http_attr,
    make_http_payload,
    make_latency,
)
from cloudlogdriver.adapters.logging import (
    CloudLoggingHandler,
    Logger,
    new,
    new_handler,
    setup_logging,
)
from cloudlogdriver.core.models import (
    HTTP_KEY,
    LABELS_KEY,
    MESSAGE_KEY,
    RESERVED_KEYS,
    SEVERITY_KEY,
    SOURCE_LOCATION_KEY,
    SPAN_ID_KEY,
    TRACE_KEY,
    TRACE_SAMPLED_KEY,
    Attr,
    Record,
    SourceLocation,
    TraceInfo,
    group,
    labels,
)
from cloudlogdriver.core.options import HandlerOptions, LevelVar
from cloudlogdriver.core.ports import Leveler, TraceResolver
from cloudlogdriver.core.render import HandlerState, render
from cloudlogdriver.core.severity import (
    ALERT,
    CRITICAL,
    DEBUG,
    DEFAULT,
    EMERGENCY,
    ERROR,
    INFO,
    NOTICE,
    WARNING,
    level_to_severity,
)
from cloudlogdriver.core.trace import (
    CloudTraceContext,
    CloudTraceContextResolver,
    OpenTelemetryResolver,
    parse_cloud_trace_context,
    resolve_trace,
)

__all__ = [
    "ALERT",
    "CRITICAL",
    "DEBUG",
    "DEFAULT",
    "EMERGENCY",
    "ERROR",
    "HTTP_KEY",
    "INFO",
    "LABELS_KEY",
    "MESSAGE_KEY",
    "NOTICE",
    "RESERVED_KEYS",
    "SEVERITY_KEY",
    "SOURCE_LOCATION_KEY",
    "SPAN_ID_KEY",
    "TRACE_KEY",
    "TRACE_SAMPLED_KEY",
    "WARNING",
    "Attr",
    "CloudLoggingHandler",
    "CloudLoggingMiddleware",
    "CloudTraceContext",
    "CloudTraceContextResolver",
    "GAELatency",
    "HTTPPayload",
    "HandlerOptions",
    "HandlerState",
    "LevelVar",
    "Leveler",
    "Logger",
    "OpenTelemetryResolver",
    "Record",
    "SourceLocation",
    "TraceInfo",
    "TraceResolver",
    "group",
    "http_attr",
    "labels",
    "level_to_severity",
    "make_http_attr",
    "make_http_payload",
    "make_latency",
    "new",
    "new_handler",
    "parse_cloud_trace_context",
    "render",
    "resolve_trace",
    "setup_logging",
]
