"""NDJSON encoder for rendered log entries."""

import dataclasses
import json
from datetime import date, datetime, time, timedelta
from typing import Any


def _default(obj: Any) -> Any:
    """Convert values the json module cannot encode natively."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return dataclasses.asdict(obj)
    # Durations are encoded as integer nanoseconds
    if isinstance(obj, timedelta):
        return (obj.days * 86_400 + obj.seconds) * 1_000_000_000 + obj.microseconds * 1_000
    if isinstance(obj, (datetime, date, time)):
        return obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj, key=repr)
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    return str(obj)


def encode_entry(entry: dict[str, Any]) -> str:
    """Encode one rendered entry as a single line of JSON.

    Args:
        entry: Rendered entry as returned by render().

    Returns:
        JSON object terminated by a newline. Unknown objects are encoded via
        ``to_dict()``, as dataclasses, or with ``str()``.
    """
    return json.dumps(entry, default=_default, ensure_ascii=False) + "\n"

