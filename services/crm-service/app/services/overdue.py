"""Overdue sweep: flags open tickets whose due date has passed."""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.fsm import TicketState
from app.core.timeutils import utcnow
from app.models.ticket import Ticket
from app.services import users as user_directory
from app.services.tickets import TicketLifecycleEngine

logger = logging.getLogger(__name__)

OPEN_STATES = (TicketState.NEW, TicketState.IN_PROGRESS)


def sweep_overdue_tickets(db: Session, now: Optional[datetime] = None) -> int:
    """
    Mark overdue tickets through the lifecycle engine so each change is audited.
    Does NOT commit. Returns the number of tickets changed.
    """
    now = now or utcnow()
    actor = user_directory.find_system_actor(db, settings.SYSTEM_ACTOR_ROLE)
    if actor is None:
        logger.warning("Overdue sweep skipped: no system actor")
        return 0

    ticket_ids = [
        ticket_id
        for (ticket_id,) in db.query(Ticket.id)
        .filter(
            Ticket.status.in_(OPEN_STATES),
            Ticket.due_date.isnot(None),
            Ticket.due_date < now,
        )
        .order_by(Ticket.id)
        .all()
    ]

    engine = TicketLifecycleEngine(db)
    for ticket_id in ticket_ids:
        engine.update_status(ticket_id, TicketState.OVERDUE, actor)

    if ticket_ids:
        logger.info("Marked %d tickets overdue", len(ticket_ids))
    return len(ticket_ids)
