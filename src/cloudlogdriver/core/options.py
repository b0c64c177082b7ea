"""Handler configuration."""

import os
import threading
from dataclasses import dataclass, field, replace

from cloudlogdriver.core import severity
from cloudlogdriver.core.models import Attr
from cloudlogdriver.core.ports import Leveler

PROJECT_ENV_VAR = "GOOGLE_CLOUD_PROJECT"


class LevelVar:
    """A minimum level that can be changed while handlers are in use.

    Handlers derived from one another share the same LevelVar, so changing
    it adjusts filtering for all of them.

    Example:
        ```python
        level = LevelVar(INFO)
        logger = new(options=HandlerOptions(level=level))
        level.set(DEBUG)  # debug records now pass
        ```
    """

    def __init__(self, level: int = severity.INFO) -> None:
        self._lock = threading.Lock()
        self._level = self._check(level)

    @staticmethod
    def _check(level: int) -> int:
        if isinstance(level, bool) or not isinstance(level, int):
            raise TypeError(f"level must be an int, got {type(level).__name__}")
        return level

    def level(self) -> int:
        """Return the current minimum level."""
        with self._lock:
            return self._level

    def set(self, level: int) -> None:
        """Set the minimum level.

        Raises:
            TypeError: If level is not an int.
        """
        level = self._check(level)
        with self._lock:
            self._level = level

    def __repr__(self) -> str:
        return f"LevelVar({self.level()})"


@dataclass(frozen=True)
class HandlerOptions:
    """Configuration of a Cloud Logging handler, fixed for its lifetime.

    Attributes:
        project_id: Google Cloud project id. Required for trace correlation;
            falls back to the GOOGLE_CLOUD_PROJECT environment variable.
        add_source: Add a source location entry to every record. Disabled by
            default to skip the cost of resolving the call site.
        level: Minimum level as an int or a Leveler such as LevelVar.
        default_labels: Labels added to every entry, lowest priority.
    """

    project_id: str = ""
    add_source: bool = False
    level: int | Leveler = severity.INFO
    default_labels: tuple[Attr, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept any iterable of labels but store an immutable tuple
        object.__setattr__(self, "default_labels", tuple(self.default_labels))

    def min_level(self) -> int:
        """Return the current minimum level."""
        if isinstance(self.level, Leveler):
            return self.level.level()
        return self.level

    def resolved(self) -> "HandlerOptions":
        """Return options with the project id filled in from the environment."""
        if self.project_id:
            return self
        project_id = os.environ.get(PROJECT_ENV_VAR, "")
        if not project_id:
            return self
        return replace(self, project_id=project_id)
