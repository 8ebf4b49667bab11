from typing import Optional
from sqlalchemy.orm import Session
from app.core.errors import InvalidTransition
from app.core.timeutils import utcnow
from app.models.ticket import Ticket, Comment

class TicketState:
    NEW = "new"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"
    OVERDUE = "overdue"

ALL_STATES = (TicketState.NEW, TicketState.IN_PROGRESS, TicketState.CLOSED, TicketState.OVERDUE)

# Overdue is set by the sweep from open states; a closed ticket can only be re-opened or kept closed.
VALID_TRANSITIONS = {
    TicketState.NEW: list(ALL_STATES),
    TicketState.IN_PROGRESS: list(ALL_STATES),
    TicketState.OVERDUE: list(ALL_STATES),
    TicketState.CLOSED: [TicketState.NEW, TicketState.IN_PROGRESS, TicketState.CLOSED],
}

STATUS_LABELS = {
    TicketState.NEW: "Новый",
    TicketState.IN_PROGRESS: "В работе",
    TicketState.CLOSED: "Закрыт",
    TicketState.OVERDUE: "Просрочен",
}


def status_label(state: str) -> str:
    return STATUS_LABELS.get(state, state)


class TicketStateMachine:
    def __init__(self, db: Session):
        self.db = db

    def validate_transition(self, current_state: str, new_state: str):
        if new_state not in VALID_TRANSITIONS.get(current_state, []):
            raise InvalidTransition(
                f"Transition from {current_state} to {new_state} is not permitted.",
                current_state=current_state,
                attempted_state=new_state,
            )

    def apply_status(self, ticket: Ticket, new_state: str) -> str:
        """
        Write the status and keep closed_at in step with it.
        This is the only place a ticket status is assigned. Returns the previous status.
        """
        self.validate_transition(ticket.status, new_state)

        previous_state = ticket.status
        ticket.status = new_state

        if new_state == TicketState.CLOSED:
            if previous_state != TicketState.CLOSED or ticket.closed_at is None:
                ticket.closed_at = utcnow()
        else:
            ticket.closed_at = None

        return previous_state

    def transition(self, ticket: Ticket, new_state: str, actor_id: int, note: Optional[str] = None) -> Ticket:
        """
        Transition a ticket to a new status and append the internal audit comment within the session.
        Does NOT commit. The caller must commit the transaction.
        """
        previous_state = self.apply_status(ticket, new_state)

        content = f"Статус изменен: {status_label(previous_state)} → {status_label(new_state)}"
        if note:
            content = f"{content}. {note}"

        self.db.add(Comment(ticket_id=ticket.id, user_id=actor_id, content=content, is_internal=True))
        return ticket
