"""Operator routing strategies.

Auto-assignment and transfers both reduce a list of candidate operators to one
user; the strategy is chosen per call site instead of being hard-coded.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.fsm import TicketState
from app.models.ticket import Ticket
from app.models.user import User

logger = logging.getLogger(__name__)


def open_ticket_counts(db: Session, user_ids: Iterable[int]) -> Dict[int, int]:
    """Number of non-closed tickets currently assigned to each user."""
    user_ids = list(user_ids)
    if not user_ids:
        return {}
    rows = (
        db.query(Ticket.assigned_to_id, func.count(Ticket.id))
        .filter(Ticket.assigned_to_id.in_(user_ids), Ticket.status != TicketState.CLOSED)
        .group_by(Ticket.assigned_to_id)
        .all()
    )
    counts = {user_id: 0 for user_id in user_ids}
    counts.update({user_id: count for user_id, count in rows})
    return counts


class RoutingStrategy:
    name = "base"

    def pick(self, db: Session, candidates: List[User]) -> Optional[User]:
        raise NotImplementedError


class FirstAvailable(RoutingStrategy):
    """The first candidate in the given order."""
    name = "first_available"

    def pick(self, db: Session, candidates: List[User]) -> Optional[User]:
        return candidates[0] if candidates else None


class LeastLoaded(RoutingStrategy):
    """
    The candidate with the fewest open tickets, recomputed on every call.
    Ties go to the earliest candidate in the given order.
    """
    name = "least_loaded"

    def pick(self, db: Session, candidates: List[User]) -> Optional[User]:
        if not candidates:
            return None
        counts = open_ticket_counts(db, [user.id for user in candidates])
        chosen = min(candidates, key=lambda user: counts[user.id])
        logger.debug("%s picked operator %s with %d open tickets", self.name, chosen.id, counts[chosen.id])
        return chosen


FIRST_AVAILABLE = FirstAvailable()
LEAST_LOADED = LeastLoaded()
