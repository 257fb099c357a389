"""JSON-safe snapshots of ORM rows for audit trails and widget payloads."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional
from uuid import UUID

from sqlalchemy import inspect as sa_inspect


def json_safe(value: Any) -> Any:
    """Convert UUIDs, datetimes and decimals (recursively) to JSON types."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {str(k): json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [json_safe(v) for v in value]
    return value


def model_to_dict(
    obj: Any, columns: Optional[Iterable[str]] = None, exclude: Iterable[str] = ()
) -> Dict[str, Any]:
    """Snapshot a mapped object keyed by database column name.

    Args:
        obj: SQLAlchemy mapped instance
        columns: Optional subset of column names to include
        exclude: Column names to leave out (secrets such as password hashes)
    """
    if obj is None:
        return {}

    wanted = set(columns) if columns is not None else None
    skipped = set(exclude)
    mapper = sa_inspect(obj).mapper
    data: Dict[str, Any] = {}
    for attr in mapper.column_attrs:
        name = attr.columns[0].name
        if name in skipped or (wanted is not None and name not in wanted):
            continue
        data[name] = json_safe(getattr(obj, attr.key))
    return data


def column_names(model) -> list:
    """Database column names of a mapped class."""
    return [c.name for c in sa_inspect(model).columns]


def column_attr(model, column_name: str):
    """Mapped attribute for a database column name (``metadata`` maps to ``meta``)."""
    mapper = sa_inspect(model)
    for attr in mapper.column_attrs:
        if attr.columns[0].name == column_name:
            return getattr(model, attr.key)
    return None
