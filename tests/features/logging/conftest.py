"""BDD step definitions for Cloud Logging entry features."""

import io
import json
from dataclasses import dataclass, field
from typing import Any

import pytest
from opentelemetry import trace
from pytest_bdd import given, parsers, then, when

from cloudlogdriver import (
    SOURCE_LOCATION_KEY,
    SPAN_ID_KEY,
    TRACE_KEY,
    TRACE_SAMPLED_KEY,
    Attr,
    HandlerOptions,
    Logger,
    labels,
    new,
)


@dataclass
class LoggingScenarioContext:
    """State shared between the steps of one scenario."""

    stream: io.StringIO = field(default_factory=io.StringIO)
    logger: Logger | None = None

    def entry(self) -> dict[str, Any]:
        lines = self.stream.getvalue().splitlines()
        assert len(lines) == 1
        return json.loads(lines[0])


@pytest.fixture
def ctx() -> LoggingScenarioContext:
    """Fresh scenario context for each test."""
    return LoggingScenarioContext()


def _use(ctx: LoggingScenarioContext, options: HandlerOptions) -> None:
    ctx.logger = new(ctx.stream, options)


# === Given ===
@given("a logger")
def step_logger(ctx: LoggingScenarioContext) -> None:
    _use(ctx, HandlerOptions())


@given(parsers.parse('a logger with default label "{key}" set to "{value}"'))
def step_logger_with_default_label(
    ctx: LoggingScenarioContext, key: str, value: str
) -> None:
    _use(ctx, HandlerOptions(default_labels=(Attr(key, value),)))


@given("a logger with source location enabled")
def step_logger_with_source(ctx: LoggingScenarioContext) -> None:
    _use(ctx, HandlerOptions(add_source=True))


@given(parsers.parse('a logger for project "{project}"'))
def step_logger_for_project(ctx: LoggingScenarioContext, project: str) -> None:
    _use(ctx, HandlerOptions(project_id=project))


@given(parsers.parse('the logger is derived with label "{key}" set to "{value}"'))
def step_derive_label(ctx: LoggingScenarioContext, key: str, value: str) -> None:
    assert ctx.logger is not None
    ctx.logger = ctx.logger.with_(labels(Attr(key, value)))


@given(parsers.parse('the logger is derived with group "{name}"'))
def step_derive_group(ctx: LoggingScenarioContext, name: str) -> None:
    assert ctx.logger is not None
    ctx.logger = ctx.logger.with_group(name)


# === When ===
@when(parsers.re(r'the logger logs "(?P<message>[^"]*)"'))
def step_log(ctx: LoggingScenarioContext, message: str) -> None:
    assert ctx.logger is not None
    ctx.logger.info(message)


@when(parsers.parse('the logger logs "{message}" with label "{key}" set to "{value}"'))
def step_log_with_label(
    ctx: LoggingScenarioContext, message: str, key: str, value: str
) -> None:
    assert ctx.logger is not None
    ctx.logger.info(message, labels(Attr(key, value)))


@when(parsers.parse('the logger logs "{message}" with field "{key}" set to {value:d}'))
def step_log_with_field(
    ctx: LoggingScenarioContext, message: str, key: str, value: int
) -> None:
    assert ctx.logger is not None
    ctx.logger.info(message, Attr(key, value))


@when(parsers.parse('the logger logs "{message}" inside a sampled span'))
def step_log_in_span(ctx: LoggingScenarioContext, message: str) -> None:
    assert ctx.logger is not None
    span_context = trace.SpanContext(
        trace_id=0x0AF7651916CD43DD8448EB211C80319C,
        span_id=0x00F067AA0BA902B7,
        is_remote=False,
        trace_flags=trace.TraceFlags(trace.TraceFlags.SAMPLED),
    )
    with trace.use_span(trace.NonRecordingSpan(span_context)):
        ctx.logger.info(message)


# === Then ===
@then("the entry labels are")
def step_labels_are(ctx: LoggingScenarioContext, datatable: list[list[str]]) -> None:
    expected = {key: value for key, value in datatable[1:]}
    assert ctx.entry()["logging.googleapis.com/labels"] == expected


@then(parsers.parse('the entry field "{path}" is {value:d}'))
def step_field_is(ctx: LoggingScenarioContext, path: str, value: int) -> None:
    current: Any = ctx.entry()
    for part in path.split("."):
        current = current[part]
    assert current == value


@then(parsers.parse('the entry has no field "{key}"'))
def step_no_field(ctx: LoggingScenarioContext, key: str) -> None:
    assert key not in ctx.entry()


@then("the entry source location points at the step module")
def step_source_points_here(ctx: LoggingScenarioContext) -> None:
    location = ctx.entry()[SOURCE_LOCATION_KEY]
    assert location["file"].endswith("conftest.py")
    assert location["function"].endswith("step_log")


@then("the entry has no trace fields")
def step_no_trace(ctx: LoggingScenarioContext) -> None:
    entry = ctx.entry()
    for key in (TRACE_KEY, SPAN_ID_KEY, TRACE_SAMPLED_KEY):
        assert key not in entry


@then(parsers.parse('the entry trace is "{resource}"'))
def step_trace_is(ctx: LoggingScenarioContext, resource: str) -> None:
    assert ctx.entry()[TRACE_KEY] == resource


@then(parsers.parse('the entry span id is "{span_id}"'))
def step_span_id_is(ctx: LoggingScenarioContext, span_id: str) -> None:
    assert ctx.entry()[SPAN_ID_KEY] == span_id
