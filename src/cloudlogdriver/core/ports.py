"""Port interfaces for pluggable collaborators.

These protocols define the contracts the core depends on. Concrete
implementations live next to the code that provides them.
"""

from typing import Any, Protocol, runtime_checkable

from cloudlogdriver.core.models import TraceInfo


@runtime_checkable
class Leveler(Protocol):
    """Port for a minimum level that may change while handlers are in use.

    Examples: LevelVar.
    """

    def level(self) -> int:
        """Return the current minimum level."""
        ...


@runtime_checkable
class TraceResolver(Protocol):
    """Port for reading trace correlation ids from one tracing system.

    Examples: OpenTelemetryResolver, CloudTraceContextResolver.
    """

    def resolve(self, context: Any) -> TraceInfo | None:
        """Return trace ids found in the context.

        Args:
            context: An OpenTelemetry Context.

        Returns:
            TraceInfo if this tracing system populated the context,
            None otherwise.
        """
        ...
