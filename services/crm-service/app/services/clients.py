"""Client directory used by channel intake."""

import logging

from sqlalchemy.orm import Session

from app.models.client import Client

logger = logging.getLogger(__name__)


def find_or_create_by_external_id(db: Session, channel: str, external_id: str, display_name: str) -> Client:
    client = (
        db.query(Client)
        .filter(Client.channel == channel, Client.external_id == external_id)
        .first()
    )
    if client:
        if display_name and client.name != display_name:
            client.name = display_name
        return client

    client = Client(name=display_name, channel=channel, external_id=external_id)
    if channel in ("whatsapp", "call"):
        client.phone = external_id
    db.add(client)
    db.flush()
    logger.info("Created client %s for %s:%s", client.id, channel, external_id)
    return client
