"""ASGI middleware for request logging and Cloud Trace correlation.

The middleware is framework-agnostic and works with any ASGI server
(uvicorn, hypercorn, daphne). For each HTTP request it attaches the
``X-Cloud-Trace-Context`` header to the OpenTelemetry context, so entries
logged while the request is handled carry its trace and span ids, and logs
one entry with the ``httpRequest`` payload once the response is sent.
"""

import fnmatch
import time
from collections.abc import Callable, Coroutine
from typing import Any

from opentelemetry import context as otel_context

from cloudlogdriver.adapters.http import header_value, make_http_attr, make_latency
from cloudlogdriver.adapters.logging import Logger
from cloudlogdriver.core import severity
from cloudlogdriver.core.trace import (
    CLOUD_TRACE_CONTEXT_HEADER,
    CLOUD_TRACE_CONTEXT_KEY,
    parse_cloud_trace_context,
)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]


def _get_log_level_for_status(status_code: int) -> int:
    """Determine log level based on HTTP status code.

    Maps status codes to log levels:
    - 500-599 (5xx) → ERROR
    - 400-499 (4xx) → WARNING
    - Other → INFO

    Args:
        status_code: HTTP status code from response.

    Returns:
        Numeric log level.
    """
    if 500 <= status_code < 600:
        return severity.ERROR
    if 400 <= status_code < 500:
        return severity.WARNING
    return severity.INFO


class CloudLoggingMiddleware:
    """ASGI middleware that wraps applications with Cloud Logging support.

    Example:
        ```python
        logger = new(options=HandlerOptions(project_id="my-project"))
        app = CloudLoggingMiddleware(app, logger)
        ```
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: Logger,
        exclude_paths: list[str] | None = None,
        log_requests: bool = True,
        is_gke: bool = False,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            logger: Logger the request entries are written to.
            exclude_paths: Paths not to log. Supports exact matches and
                wildcard patterns (e.g., "/internal/*"). Trace context is
                attached for excluded paths too.
            log_requests: Log one entry per request.
            is_gke: Format latency for GKE instead of Cloud Run / App Engine.
        """
        self.app = app
        self.logger = logger
        self.exclude_paths = exclude_paths or []
        self.log_requests = log_requests
        self.is_gke = is_gke

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = time.perf_counter()
        captured: dict[str, Any] = {"status": None, "body_size": 0, "exception": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            elif message["type"] == "http.response.body":
                captured["body_size"] += len(message.get("body", b""))
            await send(message)

        cloud_trace = parse_cloud_trace_context(
            header_value(scope, CLOUD_TRACE_CONTEXT_HEADER)
        )
        token = None
        if cloud_trace is not None:
            token = otel_context.attach(
                otel_context.set_value(CLOUD_TRACE_CONTEXT_KEY, cloud_trace)
            )
        try:
            try:
                await self.app(scope, receive, wrapped_send)
            except Exception as e:
                captured["exception"] = e
                captured["status"] = 500
            duration = time.perf_counter() - start_time
            self._log_request(scope, captured, duration)
        finally:
            if token is not None:
                otel_context.detach(token)

        if captured["exception"] is not None:
            raise captured["exception"]

    def _log_request(
        self, scope: Scope, captured: dict[str, Any], duration: float
    ) -> None:
        """Write the request entry if logging is enabled for the path."""
        if not self.log_requests or self._path_excluded(scope["path"]):
            return
        status = captured["status"] or 0
        attr = make_http_attr(
            scope,
            status=status,
            response_size=captured["body_size"],
            latency=make_latency(duration, is_gke=self.is_gke),
        )
        message = f"{scope['method']} {scope['path']}"
        level = _get_log_level_for_status(status)
        exc = captured["exception"]
        if exc is not None:
            self.logger.log(
                severity.ERROR, message, attr, error=f"{type(exc).__name__}: {exc!s}"
            )
            return
        self.logger.log(level, message, attr)
