"""Support ticket API endpoints."""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import page_limit, require_min_role, require_tenant
from ..core.enums import TicketStatus
from ..db.database import get_db
from ..db.models import Ticket
from ..services.audit import emit_activity, emit_audit
from ..services.counts import adjust_count
from ..services.serialization import model_to_dict
from .middleware import ProblemDetailsException
from .schemas import ProblemDetails, TicketCreate, TicketResponse, TicketUpdate

router = APIRouter(prefix="/v1/tickets", tags=["tickets"])


def _get_ticket(db: Session, ctx: RequestContext, ticket_id: UUID) -> Ticket:
    ticket = (
        db.query(Ticket)
        .filter(Ticket.id == ticket_id, Ticket.account_id == ctx.account_id)
        .first()
    )
    if ticket is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_404_NOT_FOUND,
            title="Ticket Not Found",
            detail=f"Ticket with ID {ticket_id} does not exist",
        )
    return ticket


@router.get(
    "",
    responses={200: {"description": "Tickets of the current account, newest first"}},
)
def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    include_inactive: bool = Query(False),
    limit: int = Depends(page_limit),
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """List tickets, optionally filtered by status."""
    query = db.query(Ticket).filter(Ticket.account_id == ctx.account_id)
    if status_filter is not None:
        query = query.filter(Ticket.status == status_filter.value)
    if not (include_inactive and ctx.account_role == "admin"):
        query = query.filter(Ticket.is_active.is_(True))

    tickets = query.order_by(Ticket.created_at.desc()).limit(limit).all()
    return {
        "tickets": [
            TicketResponse.model_validate(t).model_dump(mode="json") for t in tickets
        ]
    }


@router.get(
    "/{ticket_id}",
    response_model=TicketResponse,
    responses={404: {"model": ProblemDetails, "description": "Ticket not found"}},
)
def get_ticket(
    ticket_id: UUID,
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> TicketResponse:
    return TicketResponse.model_validate(_get_ticket(db, ctx, ticket_id))


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Ticket opened"},
        422: {"model": ProblemDetails, "description": "Validation error"},
    },
)
def create_ticket(
    data: TicketCreate,
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> TicketResponse:
    """Open a ticket in the tenant account on behalf of the caller."""
    fields = data.model_dump()
    metadata = fields.pop("metadata")
    ticket = Ticket(
        account_id=ctx.account_id,
        opened_by_person_id=ctx.person_id,
        meta=metadata,
        **fields,
    )
    db.add(ticket)
    adjust_count(db, ctx.account_id, "tickets", 1)
    db.commit()
    db.refresh(ticket)

    emit_audit(db, ctx, "ticket.created", "ticket", ticket.id, after=model_to_dict(ticket))
    emit_activity(
        db,
        ctx,
        "ticket.created",
        f"Opened ticket: {ticket.subject}",
        entity_type="ticket",
        entity_id=ticket.id,
        metadata={"priority": ticket.priority},
    )
    return TicketResponse.model_validate(ticket)


@router.patch(
    "/{ticket_id}",
    response_model=TicketResponse,
    responses={
        403: {"model": ProblemDetails, "description": "Operator role required"},
        404: {"model": ProblemDetails, "description": "Ticket not found"},
    },
)
def update_ticket(
    ticket_id: UUID,
    update: TicketUpdate,
    ctx: RequestContext = Depends(require_min_role("operator")),
    db: Session = Depends(get_db),
) -> TicketResponse:
    """Update a ticket. ``metadata`` is merged into the stored metadata."""
    ticket = _get_ticket(db, ctx, ticket_id)
    before = model_to_dict(ticket)
    was_active = ticket.is_active

    fields = update.model_dump(exclude_unset=True)
    metadata = fields.pop("metadata", None)
    for key, value in fields.items():
        if value is not None or key == "assigned_to_person_id":
            setattr(ticket, key, value)
    if metadata is not None:
        ticket.meta = {**(ticket.meta or {}), **metadata}

    if was_active != ticket.is_active:
        adjust_count(db, ctx.account_id, "tickets", 1 if ticket.is_active else -1)
    db.commit()
    db.refresh(ticket)

    emit_audit(
        db, ctx, "ticket.updated", "ticket", ticket.id,
        before=before, after=model_to_dict(ticket),
    )
    emit_activity(
        db,
        ctx,
        "ticket.updated",
        f"Updated ticket: {ticket.subject}",
        entity_type="ticket",
        entity_id=ticket.id,
        metadata={"fields": sorted(fields) + (["metadata"] if metadata is not None else [])},
    )
    if before["status"] != ticket.status:
        emit_activity(
            db,
            ctx,
            "ticket.status_changed",
            f"Ticket '{ticket.subject}' moved to {ticket.status}",
            entity_type="ticket",
            entity_id=ticket.id,
            metadata={"from": before["status"], "to": ticket.status},
        )
    return TicketResponse.model_validate(ticket)
