"""Dashboard widget request parsing and result shaping."""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from ..core.enums import TicketStatus, WidgetType

ME_PLACEHOLDER = "$me"
NOT_EQUAL_PREFIX = "!"

# Tenant-scoped tables a widget may read from
ENTITY_TYPES = ("tickets", "documents", "memberships", "activity_events")
DEFAULT_ENTITY_TYPE = "tickets"

TABLE_DEFAULT_LIMIT = 20
TABLE_MAX_LIMIT = 200
FEED_DEFAULT_LIMIT = 10
FEED_MAX_LIMIT = 200
CHART_MAX_ROWS = 1000
CHART_DEFAULT_GROUP_BY = "priority"
CHART_DEFAULT_TYPE = "bar"

PIPELINE_STAGES = tuple(status.value for status in TicketStatus)

FILTER_VALUE_TYPES = (str, int, float, bool, type(None))


class WidgetConfigError(ValueError):
    """Bad widget request; reported to the client as a 400."""


@dataclass(frozen=True)
class FilterClause:
    """A single column filter from a widget config."""

    column: str
    value: Any
    negate: bool = False


def parse_widget_type(widget_type: Optional[str]) -> WidgetType:
    try:
        return WidgetType(widget_type)
    except ValueError:
        raise WidgetConfigError(f"Unknown widget type: {widget_type}")


def resolve_filters(
    filters: Optional[Mapping[str, Any]], person_id: Optional[str]
) -> List[FilterClause]:
    """Turn a config ``filter`` mapping into clauses.

    ``$me`` resolves to the caller's person id and string values starting
    with ``!`` mean "not equal".
    """
    if filters is None:
        return []
    if not isinstance(filters, Mapping):
        raise WidgetConfigError("filter must be an object of column: value pairs")

    clauses = []
    for column, value in filters.items():
        if not isinstance(value, FILTER_VALUE_TYPES):
            raise WidgetConfigError(f"Invalid filter value for column: {column}")
        if value == ME_PLACEHOLDER:
            clauses.append(FilterClause(column, person_id))
        elif isinstance(value, str) and value.startswith(NOT_EQUAL_PREFIX):
            raw = value[len(NOT_EQUAL_PREFIX):]
            if raw == ME_PLACEHOLDER:
                raw = person_id
            clauses.append(FilterClause(column, raw, negate=True))
        else:
            clauses.append(FilterClause(column, value))
    return clauses


def resolve_entity_type(config: Mapping[str, Any]) -> str:
    entity_type = config.get("entity_type") or DEFAULT_ENTITY_TYPE
    if entity_type not in ENTITY_TYPES:
        raise WidgetConfigError(f"Unsupported entity type: {entity_type}")
    return entity_type


def widget_limit(raw: Any, default: int, maximum: int) -> int:
    """Clamp a config ``limit`` to ``[1, maximum]``; bad values use ``default``."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    if value <= 0:
        return default
    return min(value, maximum)


def check_columns(requested: Any, known: Sequence[str]) -> None:
    if not isinstance(requested, list) or not all(isinstance(c, str) for c in requested):
        raise WidgetConfigError("columns must be a list of column names")
    unknown = sorted(set(requested) - set(known))
    if unknown:
        raise WidgetConfigError(f"Unknown column(s): {', '.join(unknown)}")


def group_counts(values: Iterable[Any]) -> List[Dict[str, Any]]:
    """Count values in first-seen order; empty values count as ``unknown``."""
    counts: Dict[str, int] = {}
    for value in values:
        key = "unknown" if value in (None, "") else str(value)
        counts[key] = counts.get(key, 0) + 1
    return [{"name": name, "value": value} for name, value in counts.items()]


def group_pipeline(
    items: Iterable[Mapping[str, Any]], stages: Sequence[str] = PIPELINE_STAGES
) -> List[Dict[str, Any]]:
    """Group ticket dicts by status in fixed stage order."""
    grouped: Dict[str, List[Mapping[str, Any]]] = {stage: [] for stage in stages}
    for item in items:
        bucket = grouped.get(item.get("status"))
        if bucket is not None:
            bucket.append(item)
    return [
        {"name": stage, "position": i, "items": grouped[stage]}
        for i, stage in enumerate(stages)
    ]
