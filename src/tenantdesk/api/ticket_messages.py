"""Ticket reply and internal note endpoints."""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.context import RequestContext
from ..auth.dependencies import require_tenant
from ..core.roles import has_min_role, is_portal_user
from ..db.database import get_db
from ..db.models import Ticket, TicketMessage
from ..services.audit import emit_activity, emit_audit
from ..services.serialization import model_to_dict
from .middleware import ProblemDetailsException
from .schemas import ProblemDetails, TicketMessageCreate, TicketMessageResponse

router = APIRouter(prefix="/v1/ticket-messages", tags=["tickets"])


def _ticket_or_404(db: Session, ctx: RequestContext, ticket_id: UUID) -> Ticket:
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
    responses={
        200: {"description": "Messages of the ticket, oldest first"},
        400: {"model": ProblemDetails, "description": "ticket_id missing"},
        404: {"model": ProblemDetails, "description": "Ticket not found"},
    },
)
def list_ticket_messages(
    ticket_id: Optional[UUID] = Query(None),
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """
    List the conversation of a ticket in the tenant account.

    Internal notes are left out for portal users.
    """
    if ticket_id is None:
        raise ProblemDetailsException(
            status_code=status.HTTP_400_BAD_REQUEST,
            title="Bad Request",
            detail="ticket_id is required",
        )
    _ticket_or_404(db, ctx, ticket_id)

    query = db.query(TicketMessage).filter(
        TicketMessage.ticket_id == ticket_id,
        TicketMessage.account_id == ctx.account_id,
    )
    if is_portal_user(ctx):
        query = query.filter(TicketMessage.is_internal.is_(False))

    messages = query.order_by(TicketMessage.created_at.asc()).all()
    return {
        "messages": [
            TicketMessageResponse.model_validate(m).model_dump(mode="json") for m in messages
        ]
    }


@router.post(
    "",
    response_model=TicketMessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        201: {"description": "Reply added"},
        403: {"model": ProblemDetails, "description": "Internal notes need operator role"},
        404: {"model": ProblemDetails, "description": "Ticket not found"},
    },
)
def create_ticket_message(
    data: TicketMessageCreate,
    ctx: RequestContext = Depends(require_tenant),
    db: Session = Depends(get_db),
) -> TicketMessageResponse:
    """Reply to a ticket, or add an internal note (operator and above)."""
    ticket = _ticket_or_404(db, ctx, data.ticket_id)
    if data.is_internal and not has_min_role(ctx, "operator"):
        raise ProblemDetailsException(
            status_code=status.HTTP_403_FORBIDDEN,
            title="Forbidden",
            detail="Internal notes require the operator role",
        )

    message = TicketMessage(
        account_id=ctx.account_id,
        ticket_id=ticket.id,
        person_id=ctx.person_id,
        body=data.body,
        is_internal=data.is_internal,
    )
    db.add(message)
    db.commit()
    db.refresh(message)

    emit_audit(
        db, ctx, "ticket_message.created", "ticket_message", message.id,
        after=model_to_dict(message),
    )
    emit_activity(
        db,
        ctx,
        "ticket.replied",
        f"Replied to ticket: {ticket.subject}",
        entity_type="ticket",
        entity_id=ticket.id,
        metadata={"message_id": message.id, "is_internal": message.is_internal},
    )
    return TicketMessageResponse.model_validate(message)
