"""Source location resolution for log sites."""

from types import FrameType
from typing import Any

from cloudlogdriver.core.models import SourceLocation


def _frame_function(frame: FrameType) -> str:
    code = frame.f_code
    name = getattr(code, "co_qualname", code.co_name)
    module = frame.f_globals.get("__name__")
    return f"{module}.{name}" if module else name


def resolve_source(site: Any) -> SourceLocation:
    """Resolve a log-site token to a source location.

    Frame inspection is the most expensive step of rendering a record, so
    callers only invoke this when source capture is enabled.

    Args:
        site: A frame captured at the call site, a logging.LogRecord, or None.

    Returns:
        SourceLocation with file, line and function. Empty for unknown sites.
    """
    if isinstance(site, FrameType):
        return SourceLocation(
            file=site.f_code.co_filename,
            line=str(site.f_lineno),
            function=_frame_function(site),
        )
    pathname = getattr(site, "pathname", None)
    if pathname is not None:
        return SourceLocation(
            file=pathname,
            line=str(getattr(site, "lineno", 0)),
            function=getattr(site, "funcName", None) or "",
        )
    return SourceLocation()
