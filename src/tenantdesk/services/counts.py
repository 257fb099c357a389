"""Denormalised per-account admin counters."""

from datetime import datetime, timezone
from typing import Dict
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db.models import AdminCount, AppDefinition, Document, Membership, Ticket
from ..utils.logging_config import get_logger

logger = get_logger(__name__)


def _get_or_create(db: Session, account_id: UUID, key: str) -> AdminCount:
    row = (
        db.query(AdminCount)
        .filter(AdminCount.account_id == account_id, AdminCount.counter_key == key)
        .first()
    )
    if row is None:
        row = AdminCount(account_id=account_id, counter_key=key, count=0)
        db.add(row)
    return row


def adjust_count(db: Session, account_id: UUID, key: str, delta: int) -> None:
    """Adjust a counter by ``delta``, flooring at zero. Flushes, does not commit."""
    if delta == 0:
        return
    row = _get_or_create(db, account_id, key)
    row.count = max((row.count or 0) + delta, 0)
    row.updated_at = datetime.now(timezone.utc)
    db.flush()


def set_count(db: Session, account_id: UUID, key: str, value: int) -> None:
    """Set a counter to an absolute value (floored at zero)."""
    row = _get_or_create(db, account_id, key)
    row.count = max(value, 0)
    row.updated_at = datetime.now(timezone.utc)
    db.flush()


def _count(db: Session, model, *criteria) -> int:
    return db.query(func.count(model.id)).filter(*criteria).scalar() or 0


def recalc_all_counts(db: Session, account_id: UUID) -> Dict[str, int]:
    """Recompute every counter of an account from the source tables."""
    counts = {
        "members": _count(
            db,
            Membership,
            Membership.account_id == account_id,
            Membership.status == "active",
            Membership.is_test_data.is_(False),
        ),
        "apps": _count(
            db,
            AppDefinition,
            AppDefinition.account_id == account_id,
            AppDefinition.is_active.is_(True),
        ),
        "tickets": _count(
            db, Ticket, Ticket.account_id == account_id, Ticket.is_active.is_(True)
        ),
        "documents": _count(db, Document, Document.account_id == account_id),
    }
    for key, value in counts.items():
        set_count(db, account_id, key, value)
    logger.info(f"Recalculated admin counts for {account_id}: {counts}")
    return counts


def get_counts(db: Session, account_id: UUID) -> Dict[str, int]:
    rows = db.query(AdminCount).filter(AdminCount.account_id == account_id).all()
    return {row.counter_key: row.count for row in rows}
