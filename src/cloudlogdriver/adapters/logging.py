"""Python logging adapter writing Google Cloud Logging structured entries.

CloudLoggingHandler is a regular ``logging.Handler`` that can be attached to
any standard logger, and the backing handler of the Logger facade, which adds
the "with attributes" / "with group" builder style of structured logging.
Derived handlers share the sink and options of their parent but carry their
own immutable state, so one handler can be shared by any number of threads.
"""

import logging
import sys
import threading
import time
import traceback
from collections.abc import Sequence
from typing import Any, TextIO

from opentelemetry import context as otel_context

from cloudlogdriver.core import severity
from cloudlogdriver.core.encoding.ndjson import encode_entry
from cloudlogdriver.core.models import Attr, Record, to_attrs
from cloudlogdriver.core.options import HandlerOptions
from cloudlogdriver.core.ports import TraceResolver
from cloudlogdriver.core.render import HandlerState, render
from cloudlogdriver.core.trace import DEFAULT_RESOLVERS

# Standard LogRecord attributes that should not be treated as extra fields
_STANDARD_LOGRECORD_ATTRS = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    }
)

# Extra field carrying an ordered list of Attr objects
ATTRS_EXTRA = "attrs"


class _Sink:
    """Text stream shared by a handler and everything derived from it."""

    def __init__(self, stream: TextIO) -> None:
        self.stream = stream
        self.lock = threading.RLock()

    def write(self, line: str) -> None:
        with self.lock:
            self.stream.write(line)
            flush = getattr(self.stream, "flush", None)
            if flush is not None:
                flush()


def _extra_attrs(record: logging.LogRecord) -> list[Attr]:
    """Collect the ``extra`` fields of a LogRecord in insertion order."""
    attrs: list[Attr] = []
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOGRECORD_ATTRS or key.startswith("_"):
            continue
        if (
            key == ATTRS_EXTRA
            and isinstance(value, (list, tuple))
            and all(isinstance(item, Attr) for item in value)
        ):
            attrs.extend(value)
            continue
        attrs.append(Attr(key, value))
    return attrs


class CloudLoggingHandler(logging.Handler):
    """Logging handler that writes Cloud Logging JSON lines to a stream.

    Example:
        ```python
        from cloudlogdriver import CloudLoggingHandler, HandlerOptions

        handler = CloudLoggingHandler(options=HandlerOptions(add_source=True))
        logging.getLogger().addHandler(handler)
        logging.getLogger().info(
            "user signed in",
            extra={"user_id": 42, LABELS_KEY: {"team": "auth"}},
        )
        ```
    """

    def __init__(
        self,
        stream: TextIO | None = None,
        options: HandlerOptions | None = None,
        resolvers: Sequence[TraceResolver] = DEFAULT_RESOLVERS,
    ) -> None:
        """Initialize the handler.

        Args:
            stream: Text stream to write to. Defaults to sys.stdout.
            options: Handler configuration. The project id falls back to
                the GOOGLE_CLOUD_PROJECT environment variable.
            resolvers: Trace resolvers in priority order.
        """
        super().__init__()
        self._sink = _Sink(stream if stream is not None else sys.stdout)
        self._options = (options or HandlerOptions()).resolved()
        self._resolvers = tuple(resolvers)
        self._state = HandlerState()

    @property
    def options(self) -> HandlerOptions:
        return self._options

    @property
    def state(self) -> HandlerState:
        return self._state

    @property
    def stream(self) -> TextIO:
        return self._sink.stream

    def _derive(self, state: HandlerState) -> "CloudLoggingHandler":
        child = type(self).__new__(type(self))
        logging.Handler.__init__(child, self.level)
        child.formatter = self.formatter
        child.filters = list(self.filters)
        child._sink = self._sink
        child._options = self._options
        child._resolvers = self._resolvers
        child._state = state
        return child

    def with_attrs(self, *attrs: Any, **kwargs: Any) -> "CloudLoggingHandler":
        """Return a handler that adds ``attrs`` to every record.

        Attributes under the labels key are merged into the labels of every
        entry; all other attributes are nested in the currently open groups.
        """
        state = self._state.with_attrs(to_attrs(*attrs, **kwargs))
        if state is self._state:
            return self
        return self._derive(state)

    def with_group(self, name: str) -> "CloudLoggingHandler":
        """Return a handler that nests subsequent user fields under ``name``."""
        state = self._state.with_group(name)
        if state is self._state:
            return self
        return self._derive(state)

    def enabled(self, level: int) -> bool:
        """Return True if records at ``level`` are written."""
        return level >= self._options.min_level()

    def handle(self, record: logging.LogRecord) -> bool:
        """Drop records below the minimum level, then handle as usual."""
        if not self.enabled(record.levelno):
            return False
        return super().handle(record)

    def handle_record(self, record: Record) -> None:
        """Render a record and write it to the sink.

        Raises:
            OSError: If writing to the stream fails.
        """
        entry = render(record, self._state, self._options, self._resolvers)
        self._sink.write(encode_entry(entry))

    def to_record(self, record: logging.LogRecord) -> Record:
        """Convert a standard LogRecord into a Record.

        The message is formatted with the handler's formatter, so exception
        and stack information are appended to it.
        """
        return Record(
            time=record.created,
            level=record.levelno,
            message=self.format(record),
            attrs=tuple(_extra_attrs(record)),
            site=record,
            context=otel_context.get_current(),
        )

    def emit(self, record: logging.LogRecord) -> None:
        """Emit a standard log record as a Cloud Logging entry.

        Args:
            record: The log record to emit.
        """
        try:
            self.handle_record(self.to_record(record))
        except RecursionError:
            raise
        except Exception:
            self.handleError(record)

    def __repr__(self) -> str:
        level = logging.getLevelName(self._options.min_level())
        return f"<{type(self).__name__} ({level})>"


class Logger:
    """Structured logger bound to a CloudLoggingHandler.

    Attributes are passed as Attr objects or keywords. ``with_`` and
    ``with_group`` return new loggers; the original is never modified.

    Example:
        ```python
        logger = new(options=HandlerOptions(project_id="my-project"))
        logger = logger.with_(labels(service="api")).with_group("request")
        logger.info("handled", path="/", status=200)
        ```
    """

    def __init__(self, handler: CloudLoggingHandler) -> None:
        self._handler = handler

    @property
    def handler(self) -> CloudLoggingHandler:
        return self._handler

    def enabled(self, level: int) -> bool:
        return self._handler.enabled(level)

    def with_(self, *attrs: Any, **kwargs: Any) -> "Logger":
        """Return a logger whose records all carry ``attrs``."""
        handler = self._handler.with_attrs(*attrs, **kwargs)
        if handler is self._handler:
            return self
        return Logger(handler)

    def with_group(self, name: str) -> "Logger":
        """Return a logger that nests user fields under group ``name``."""
        handler = self._handler.with_group(name)
        if handler is self._handler:
            return self
        return Logger(handler)

    def _log(
        self,
        level: int,
        msg: str,
        attrs: tuple[Any, ...],
        kwargs: dict[str, Any],
        context: Any,
    ) -> None:
        if not self._handler.enabled(level):
            return
        # Frame of the public method's caller; resolved only if add_source is set
        site = sys._getframe(2)
        record = Record(
            time=time.time(),
            level=level,
            message=msg,
            attrs=tuple(to_attrs(*attrs, **kwargs)),
            site=site,
            context=context if context is not None else otel_context.get_current(),
        )
        self._handler.handle_record(record)

    def log(
        self, level: int, msg: str, *attrs: Any, context: Any = None, **kwargs: Any
    ) -> None:
        """Log ``msg`` at an arbitrary numeric level."""
        self._log(level, msg, attrs, kwargs, context)

    def default(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.DEFAULT, msg, attrs, kwargs, context)

    def debug(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.DEBUG, msg, attrs, kwargs, context)

    def info(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.INFO, msg, attrs, kwargs, context)

    def notice(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.NOTICE, msg, attrs, kwargs, context)

    def warning(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.WARNING, msg, attrs, kwargs, context)

    def error(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.ERROR, msg, attrs, kwargs, context)

    def critical(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.CRITICAL, msg, attrs, kwargs, context)

    def alert(self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any) -> None:
        self._log(severity.ALERT, msg, attrs, kwargs, context)

    def emergency(
        self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any
    ) -> None:
        self._log(severity.EMERGENCY, msg, attrs, kwargs, context)

    def exception(
        self, msg: str, *attrs: Any, context: Any = None, **kwargs: Any
    ) -> None:
        """Log at ERROR with the traceback of the exception being handled.

        The traceback is appended to the message so Error Reporting picks
        the entry up.
        """
        if sys.exc_info()[0] is not None:
            formatted = traceback.format_exc().rstrip()
            msg = f"{msg}\n{formatted}" if msg else formatted
        self._log(severity.ERROR, msg, attrs, kwargs, context)


def new_handler(
    stream: TextIO | None = None, options: HandlerOptions | None = None
) -> CloudLoggingHandler:
    """Create a CloudLoggingHandler writing to ``stream`` (stdout by default)."""
    return CloudLoggingHandler(stream, options)


def new(stream: TextIO | None = None, options: HandlerOptions | None = None) -> Logger:
    """Create a Logger writing Cloud Logging entries to ``stream``.

    Args:
        stream: Text stream to write to. Defaults to sys.stdout.
        options: Handler configuration.

    Returns:
        Logger backed by a new CloudLoggingHandler.
    """
    return Logger(new_handler(stream, options))


def setup_logging(
    options: HandlerOptions | None = None,
    stream: TextIO | None = None,
    logger: logging.Logger | None = None,
) -> CloudLoggingHandler:
    """Route a standard logger (the root logger by default) to Cloud Logging.

    Existing handlers of the logger are removed. With a fixed int level the
    logger's own level is set to it; with a dynamic level the logger is set to 1
    so it passes everything and the handler filters.

    Returns:
        The installed handler.
    """
    handler = new_handler(stream, options)
    target = logger if logger is not None else logging.getLogger()
    target.handlers.clear()
    target.addHandler(handler)
    level = handler.options.level
    target.setLevel(level if isinstance(level, int) else 1)
    return handler
