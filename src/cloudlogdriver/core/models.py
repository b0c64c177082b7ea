"""Core domain models for Cloud Logging records."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# Reserved keys with special placement in the emitted entry
MESSAGE_KEY = "message"
SEVERITY_KEY = "severity"
HTTP_KEY = "httpRequest"
SOURCE_LOCATION_KEY = "logging.googleapis.com/sourceLocation"
LABELS_KEY = "logging.googleapis.com/labels"
TRACE_KEY = "logging.googleapis.com/trace"
SPAN_ID_KEY = "logging.googleapis.com/spanId"
TRACE_SAMPLED_KEY = "logging.googleapis.com/trace_sampled"

TIME_KEY = "time"

RESERVED_KEYS = frozenset(
    {
        MESSAGE_KEY,
        SEVERITY_KEY,
        HTTP_KEY,
        SOURCE_LOCATION_KEY,
        LABELS_KEY,
        TRACE_KEY,
        SPAN_ID_KEY,
        TRACE_SAMPLED_KEY,
    }
)


@dataclass(frozen=True)
class Attr:
    """A key paired with a value.

    Attributes:
        key: Attribute name. Keys need not be unique within a record.
        value: A scalar, a duration, a nested group (list/tuple of Attr or a
            dict), an object with ``log_value()``, or an opaque payload.
    """

    key: str
    value: Any = None


@dataclass(frozen=True)
class Record:
    """One log call, as seen by the handler.

    Attributes:
        time: Unix timestamp in seconds.
        level: Numeric level (standard library scale).
        message: The log message. Empty messages are not emitted.
        attrs: Attributes in emission order.
        site: Opaque log-site token (a frame or a logging.LogRecord),
            resolved only when source capture is enabled.
        context: Ambient OpenTelemetry context, or None.
    """

    time: float
    level: int
    message: str
    attrs: tuple[Attr, ...] = ()
    site: Any = None
    context: Any = None


@dataclass(frozen=True)
class SourceLocation:
    """Call location of a log statement."""

    file: str = ""
    line: str = ""
    function: str = ""

    def to_dict(self) -> dict[str, str]:
        out = {"file": self.file, "line": self.line}
        if self.function:
            out["function"] = self.function
        return out


@dataclass(frozen=True)
class TraceInfo:
    """Trace correlation ids read from an ambient context.

    Attributes:
        trace_id: Raw trace id as 32 lowercase hex digits.
        span_id: Span id as 16 lowercase hex digits.
        sampled: Whether the trace is sampled.
    """

    trace_id: str
    span_id: str
    sampled: bool = False


def resolve_value(value: Any) -> Any:
    """Resolve objects implementing ``log_value()`` to their logged value.

    Resolution repeats until a plain value is reached, bounded to avoid
    loops in self-referencing valuers.
    """
    for _ in range(100):
        log_value = getattr(value, "log_value", None)
        if not callable(log_value):
            return value
        value = log_value()
    return value


class GroupValue(tuple):
    """Tuple of Attr marking a group value, even when empty."""


def is_group(value: Any) -> bool:
    """Return True if value is a nested group of attributes."""
    if isinstance(value, (GroupValue, Mapping)):
        return True
    if isinstance(value, (list, tuple)) and value:
        return all(isinstance(item, Attr) for item in value)
    return False


def group_members(value: Any) -> list[Attr]:
    """Return the members of a group value as Attr objects, in order."""
    if isinstance(value, Mapping):
        return [Attr(str(k), v) for k, v in value.items()]
    return list(value)


def to_attrs(*args: Any, **kwargs: Any) -> list[Attr]:
    """Build an ordered attribute list from Attr arguments and keywords.

    Positional arguments may be Attr objects or mappings; keywords follow
    them in call order.

    Raises:
        TypeError: If a positional argument is neither an Attr nor a mapping.
    """
    attrs: list[Attr] = []
    for arg in args:
        if isinstance(arg, Attr):
            attrs.append(arg)
        elif isinstance(arg, Mapping):
            attrs.extend(Attr(str(k), v) for k, v in arg.items())
        else:
            raise TypeError(f"expected Attr or mapping, got {type(arg).__name__}")
    attrs.extend(Attr(k, v) for k, v in kwargs.items())
    return attrs


def group(key: str, *attrs: Any, **kwargs: Any) -> Attr:
    """Create a group attribute named ``key``.

    Example:
        ```python
        logger.info("done", group("request", method="GET", status=200))
        ```
    """
    return Attr(key, GroupValue(to_attrs(*attrs, **kwargs)))


def labels(*attrs: Any, **kwargs: Any) -> Attr:
    """Create an inline label group for one log call or derivation."""
    return group(LABELS_KEY, *attrs, **kwargs)
