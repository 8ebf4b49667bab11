from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from app.api.deps import require_permission
from app.core.db import get_db
from app.core.permissions import Action, Subject
from app.models.user import User
from app.schemas.ticket import InboundMessage, TicketResponse
from app.services.intake import create_ticket_from_inbound

router = APIRouter(prefix="/intake", tags=["Intake"])


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def receive_inbound_message(
    message: InboundMessage,
    db: Session = Depends(get_db),
    caller: User = Depends(require_permission(Action.MANAGE, Subject.ALL)),
):
    """
    Called by channel adapters for every inbound customer message that opens a ticket.
    The ticket is created by the system actor and auto-assigned.
    """
    try:
        ticket = create_ticket_from_inbound(db, message)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket
