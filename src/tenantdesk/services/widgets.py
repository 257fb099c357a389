"""Dashboard widget data queries, always scoped to the caller's tenant."""

from typing import Any, Dict, List, Mapping

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import WidgetType
from ..db.models import ActivityEvent, Document, Membership, Ticket
from ..domain import widgets as w
from ..utils.logging_config import get_logger
from .serialization import column_attr, column_names, model_to_dict

logger = get_logger(__name__)

ENTITY_MODELS = {
    "tickets": Ticket,
    "documents": Document,
    "memberships": Membership,
    "activity_events": ActivityEvent,
}

FEED_COLUMNS = ("id", "event_type", "summary", "entity_type", "entity_id", "created_at")
PIPELINE_COLUMNS = ("id", "subject", "priority", "status", "assigned_to_person_id", "created_at")


class WidgetQueryError(RuntimeError):
    """A widget query failed at the database level."""


class WidgetDataService:
    """Runs one widget request for the account and person of a request context."""

    def __init__(self, db: Session, ctx):
        self.db = db
        self.ctx = ctx

    def _filtered(self, model, clauses: List[w.FilterClause]):
        query = self.db.query(model).filter(model.account_id == self.ctx.account_id)
        for clause in clauses:
            column = column_attr(model, clause.column)
            if column is None:
                raise w.WidgetConfigError(f"Unknown filter column: {clause.column}")
            query = query.filter(column != clause.value if clause.negate else column == clause.value)
        return query

    def run(self, widget_type: str, config: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Compute the data for a widget.

        Raises:
            WidgetConfigError: Unknown widget type, entity type, or column
            WidgetQueryError: The database query failed
        """
        kind = w.parse_widget_type(widget_type)
        person_id = str(self.ctx.person_id) if self.ctx.person_id else None
        clauses = w.resolve_filters(config.get("filter"), person_id)

        handler = {
            WidgetType.METRIC: self._metric,
            WidgetType.TABLE: self._table,
            WidgetType.CHART: self._chart,
            WidgetType.ACTIVITY_FEED: self._activity_feed,
            WidgetType.PIPELINE: self._pipeline,
        }[kind]

        try:
            return handler(config, clauses)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"[{self.ctx.request_id}] {kind.value} widget query failed: {e}")
            raise WidgetQueryError(f"Widget query failed: {e}")

    def _metric(self, config, clauses) -> Dict[str, Any]:
        entity_type = w.resolve_entity_type(config)
        model = ENTITY_MODELS[entity_type]
        count = self._filtered(model, clauses).with_entities(func.count(model.id)).scalar()
        return {"value": count or 0, "label": config.get("label") or entity_type}

    def _table(self, config, clauses) -> Dict[str, Any]:
        entity_type = w.resolve_entity_type(config)
        model = ENTITY_MODELS[entity_type]
        columns = config.get("columns") or None
        if columns is not None:
            w.check_columns(columns, column_names(model))
        limit = w.widget_limit(config.get("limit"), w.TABLE_DEFAULT_LIMIT, w.TABLE_MAX_LIMIT)

        rows = (
            self._filtered(model, clauses)
            .order_by(model.created_at.desc())
            .limit(limit)
            .all()
        )
        data = [model_to_dict(row, columns=columns) for row in rows]
        return {"rows": data, "total": len(data)}

    def _chart(self, config, clauses) -> Dict[str, Any]:
        entity_type = w.resolve_entity_type(config)
        model = ENTITY_MODELS[entity_type]
        group_by = config.get("group_by") or w.CHART_DEFAULT_GROUP_BY
        column = column_attr(model, group_by)
        if column is None:
            raise w.WidgetConfigError(f"Unknown column(s): {group_by}")

        values = (
            self._filtered(model, clauses)
            .with_entities(column)
            .limit(w.CHART_MAX_ROWS)
            .all()
        )
        return {
            "data": w.group_counts(v[0] for v in values),
            "chart_type": config.get("chart_type") or w.CHART_DEFAULT_TYPE,
        }

    def _activity_feed(self, config, clauses) -> Dict[str, Any]:
        limit = w.widget_limit(config.get("limit"), w.FEED_DEFAULT_LIMIT, w.FEED_MAX_LIMIT)
        events = (
            self._filtered(ActivityEvent, clauses)
            .order_by(ActivityEvent.created_at.desc())
            .limit(limit)
            .all()
        )
        return {"events": [model_to_dict(e, columns=FEED_COLUMNS) for e in events]}

    def _pipeline(self, config, clauses) -> Dict[str, Any]:
        tickets = (
            self._filtered(Ticket, clauses)
            .filter(Ticket.is_active.is_(True))
            .order_by(Ticket.created_at.desc())
            .all()
        )
        items = [model_to_dict(t, columns=PIPELINE_COLUMNS) for t in tickets]
        return {"stages": w.group_pipeline(items)}
