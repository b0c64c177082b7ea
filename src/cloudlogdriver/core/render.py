"""Record rendering: attribute classification, label merging and grouping.

``render`` turns one Record plus the accumulated HandlerState of the handler
that received it into the entry written to Cloud Logging. HandlerState is
immutable; deriving a new state builds new tuples, so a state can be shared
by any number of threads without locking.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

from cloudlogdriver.core.models import (
    LABELS_KEY,
    MESSAGE_KEY,
    RESERVED_KEYS,
    SEVERITY_KEY,
    SOURCE_LOCATION_KEY,
    SPAN_ID_KEY,
    TIME_KEY,
    TRACE_KEY,
    TRACE_SAMPLED_KEY,
    Attr,
    Record,
    group_members,
    is_group,
    resolve_value,
)
from cloudlogdriver.core.options import HandlerOptions
from cloudlogdriver.core.ports import TraceResolver
from cloudlogdriver.core.severity import level_to_severity
from cloudlogdriver.core.source import resolve_source
from cloudlogdriver.core.trace import DEFAULT_RESOLVERS, resolve_trace, trace_resource


def _resolved(attr: Attr) -> Attr:
    value = resolve_value(attr.value)
    return attr if value is attr.value else Attr(attr.key, value)


def _is_label_group(attr: Attr) -> bool:
    return attr.key == LABELS_KEY and is_group(attr.value)


def split_labels(attrs: Iterable[Attr]) -> tuple[list[Attr], list[Attr]]:
    """Separate inline label groups from other attributes.

    Args:
        attrs: Attributes in emission order.

    Returns:
        Tuple of (label members, remaining attributes), both in order.
    """
    found: list[Attr] = []
    rest: list[Attr] = []
    for attr in map(_resolved, attrs):
        if _is_label_group(attr):
            found.extend(group_members(attr.value))
        else:
            rest.append(attr)
    return found, rest


def classify(attrs: Iterable[Attr]) -> tuple[list[Attr], list[Attr], list[Attr]]:
    """Sort a record's attributes into label, reserved and plain buckets.

    A labels-keyed attribute whose value is not a group is malformed and is
    kept as a plain attribute.

    Returns:
        Tuple of (labels, reserved, plain), each in emission order.
    """
    found_labels, rest = split_labels(attrs)
    reserved: list[Attr] = []
    plain: list[Attr] = []
    for attr in rest:
        if attr.key in RESERVED_KEYS and attr.key != LABELS_KEY:
            reserved.append(attr)
        else:
            plain.append(attr)
    return found_labels, reserved, plain


def render_attrs(attrs: Iterable[Attr], out: dict[str, Any]) -> dict[str, Any]:
    """Render attributes into ``out``; later keys overwrite earlier ones.

    Groups become nested dicts, groups with an empty key are inlined, empty
    groups are dropped, and an attribute with an empty key and no value is
    ignored.
    """
    for attr in attrs:
        value = resolve_value(attr.value)
        if is_group(value):
            members = group_members(value)
            if not attr.key:
                render_attrs(members, out)
                continue
            nested = render_attrs(members, {})
            if nested:
                out[attr.key] = nested
            continue
        if not attr.key and value is None:
            continue
        out[attr.key] = value
    return out


@dataclass(frozen=True)
class HandlerState:
    """Accumulated state of one handler.

    Attributes:
        labels: Labels bound by derivation, oldest first.
        groups: Open group names, outermost first.
        attrs: Plain attributes bound by derivation, each paired with the
            number of groups that were open when it was bound.
        reserved: Reserved-key attributes bound by derivation. They are
            written at the top level of every entry, whatever the groups.
    """

    labels: tuple[Attr, ...] = ()
    groups: tuple[str, ...] = ()
    attrs: tuple[tuple[int, Attr], ...] = ()
    reserved: tuple[Attr, ...] = ()

    def with_attrs(self, attrs: Iterable[Attr]) -> "HandlerState":
        """Return a new state with ``attrs`` bound.

        Label groups extend the label sequence and reserved keys the
        top-level reserved attributes; everything else is bound at the
        current group depth.
        """
        found_labels, reserved, plain = classify(attrs)
        if not found_labels and not reserved and not plain:
            return self
        depth = len(self.groups)
        return HandlerState(
            labels=self.labels + tuple(found_labels),
            groups=self.groups,
            attrs=self.attrs + tuple((depth, attr) for attr in plain),
            reserved=self.reserved + tuple(reserved),
        )

    def with_group(self, name: str) -> "HandlerState":
        """Return a new state with ``name`` pushed on the group stack."""
        if not name:
            return self
        return replace(self, groups=self.groups + (name,))


def nest_groups(state: HandlerState, plain: Sequence[Attr]) -> dict[str, Any]:
    """Render plain attributes nested inside the state's open groups.

    The innermost group is the last one pushed. Bound attributes are placed
    at the depth they were bound at, ahead of the record's own attributes.
    """
    depth = len(state.groups)
    by_depth: list[list[Attr]] = [[] for _ in range(depth + 1)]
    for bound_depth, attr in state.attrs:
        by_depth[bound_depth].append(attr)
    by_depth[depth].extend(plain)

    inner = render_attrs(by_depth[depth], {})
    for index in range(depth - 1, -1, -1):
        outer = render_attrs(by_depth[index], {})
        if inner:
            outer[state.groups[index]] = inner
        inner = outer
    return inner


def format_time(timestamp: float) -> str:
    """Format a Unix timestamp as RFC 3339 UTC with microseconds."""
    moment = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return moment.isoformat(timespec="microseconds").replace("+00:00", "Z")


def render(
    record: Record,
    state: HandlerState,
    options: HandlerOptions,
    resolvers: Sequence[TraceResolver] = DEFAULT_RESOLVERS,
) -> dict[str, Any]:
    """Render a record into a Cloud Logging structured entry.

    Args:
        record: The log call.
        state: Accumulated labels, groups and bound attributes.
        options: Handler configuration.
        resolvers: Trace resolvers in priority order.

    Returns:
        Dict ready for JSON encoding. Key order is time, severity, message,
        user fields, labels, reserved fields, source location, trace fields.
        Reserved fields bound by derivation come before the record's own and
        neither is ever nested in a group. A top-level user field named
        ``time`` never replaces the timestamp.
    """
    found_labels, reserved, plain = classify(record.attrs)
    timestamp = format_time(record.time)

    entry: dict[str, Any] = {
        TIME_KEY: timestamp,
        SEVERITY_KEY: level_to_severity(record.level),
    }
    if record.message:
        entry[MESSAGE_KEY] = record.message

    entry.update(nest_groups(state, plain))
    # User fields never replace the timestamp
    entry[TIME_KEY] = timestamp

    merged = [*options.default_labels, *state.labels, *found_labels]
    if merged:
        rendered_labels = render_attrs(merged, {})
        if rendered_labels:
            entry[LABELS_KEY] = rendered_labels

    render_attrs(state.reserved, entry)
    render_attrs(reserved, entry)

    if options.add_source:
        entry[SOURCE_LOCATION_KEY] = resolve_source(record.site)

    if options.project_id and record.context is not None:
        info = resolve_trace(record.context, resolvers)
        if info is not None:
            entry[TRACE_KEY] = trace_resource(options.project_id, info.trace_id)
            entry[SPAN_ID_KEY] = info.span_id
            entry[TRACE_SAMPLED_KEY] = info.sampled

    return entry
