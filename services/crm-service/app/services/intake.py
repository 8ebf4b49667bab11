"""Entry point for channel adapters delivering inbound customer messages."""

import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import BadRequest
from app.models.ticket import Ticket
from app.schemas.ticket import InboundMessage, TicketCreate
from app.services import clients as client_directory
from app.services import users as user_directory
from app.services.tickets import TicketLifecycleEngine

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 255


def build_title(text: str, display_name: str) -> str:
    text = (text or "").strip()
    first_line = text.splitlines()[0].strip() if text else ""
    if not first_line:
        return f"Обращение от {display_name}"[:TITLE_MAX_LENGTH]
    return first_line[:TITLE_MAX_LENGTH]


def create_ticket_from_inbound(db: Session, message: InboundMessage) -> Ticket:
    """
    Open a ticket on behalf of an inbound message.
    Always acts as the system actor and never passes an assignee, so auto-assignment runs.
    """
    actor = user_directory.find_system_actor(db, settings.SYSTEM_ACTOR_ROLE)
    if actor is None:
        raise BadRequest("No system actor available to open tickets")

    channel = message.channel.value
    client = client_directory.find_or_create_by_external_id(db, channel, message.external_id, message.display_name)

    ticket = TicketLifecycleEngine(db).create(
        TicketCreate(
            title=build_title(message.text, message.display_name),
            description=message.text or None,
            client_id=client.id,
            channel=message.channel,
        ),
        actor,
    )
    logger.info("Opened ticket %s from %s message of client %s", ticket.id, channel, client.id)
    return ticket
