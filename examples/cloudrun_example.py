"""Example ASGI application for Cloud Run.

Run with:
    GOOGLE_CLOUD_PROJECT=my-project uvicorn examples.cloudrun_example:app

Endpoints:
    /        - logs an entry correlated with the request's trace
    /fail    - raises, producing an ERROR request entry

Every request is logged with its httpRequest payload. Entries logged while
a request is handled carry the trace of its X-Cloud-Trace-Context header, or
of the current OpenTelemetry span when a tracer provider is configured.
"""

import logging

from opentelemetry import trace

from cloudlogdriver import (
    CloudLoggingMiddleware,
    HandlerOptions,
    Logger,
    labels,
    setup_logging,
)

# Standard library loggers and the structured logger share one handler
handler = setup_logging(HandlerOptions(add_source=True))
logger = Logger(handler).with_(labels(service="cloudrun-example"))

tracer = trace.get_tracer("cloudlogdriver-example")


async def application(scope, receive, send):
    if scope["type"] != "http":
        return
    if scope["path"] == "/fail":
        raise RuntimeError("requested failure")

    with tracer.start_as_current_span("log handle"):
        logger.info("log handle", path=scope["path"])
        logging.getLogger(__name__).warning("standard library entry")

    await send(
        {
            "type": "http.response.start",
            "status": 200,
            "headers": [(b"content-type", b"text/plain")],
        }
    )
    await send({"type": "http.response.body", "body": b"ok"})


app = CloudLoggingMiddleware(application, logger, exclude_paths=["/healthz"])
