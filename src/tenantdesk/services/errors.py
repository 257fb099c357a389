"""Persistence of unhandled errors as error events."""

import traceback
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from ..core.errors import classify_error
from ..db.models import ErrorEvent
from ..utils.logging_config import get_logger

logger = get_logger("error")

MAX_MESSAGE_LENGTH = 1000
MAX_STACK_LENGTH = 500


def function_name_from_path(path: str) -> str:
    """``/v1/tickets/123`` -> ``tickets``."""
    parts = [p for p in path.split("/") if p]
    if parts and parts[0] == "v1":
        parts = parts[1:]
    return parts[0] if parts else "unknown"


def stack_summary(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def record_error_event(
    exc: BaseException,
    request_id: str,
    path: str,
    account_id: Optional[UUID] = None,
    metadata: Optional[Dict[str, Any]] = None,
    session_factory=None,
) -> Optional[str]:
    """
    Classify ``exc`` and persist it as an ``error_events`` row.

    Uses its own session so a broken request transaction cannot block it.
    Never raises; returns the error code, or None when persisting failed.
    """
    error_code = classify_error(exc).value
    if session_factory is None:
        from ..db.database import SessionLocal

        session_factory = SessionLocal

    db = session_factory()
    try:
        db.add(
            ErrorEvent(
                account_id=account_id,
                request_id=request_id,
                function_name=function_name_from_path(path),
                error_code=error_code,
                message=(str(exc) or type(exc).__name__)[:MAX_MESSAGE_LENGTH],
                stack_summary=stack_summary(exc)[:MAX_STACK_LENGTH],
                meta=metadata or {},
            )
        )
        db.commit()
        return error_code
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[{request_id}] Failed to persist error event: {e}")
        return None
    finally:
        db.close()
