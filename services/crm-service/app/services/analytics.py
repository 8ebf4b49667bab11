"""Read-only aggregates over persisted tickets and transfer history."""

import statistics
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.fsm import TicketState
from app.core.permissions import RoleName
from app.models.ticket import Ticket, TransferHistory
from app.models.user import Role, User
from app.schemas.ticket import TicketChannelEnum
from app.services.funnels import percent, resolve_period


def _hours(ticket: Ticket) -> Optional[float]:
    if not ticket.closed_at or not ticket.created_at:
        return None
    hours = (ticket.closed_at - ticket.created_at).total_seconds() / 3600
    return hours if hours >= 0 else None


def _resolution_hours(tickets: List[Ticket]) -> List[float]:
    return [h for h in (_hours(t) for t in tickets) if h is not None]


def _avg(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _median(values: List[float]) -> float:
    return round(statistics.median(values), 2) if values else 0.0


def _period(start: datetime, end: datetime) -> Dict[str, datetime]:
    return {"start_date": start, "end_date": end}


def _closed_between(db: Session, start: datetime, end: datetime):
    return db.query(Ticket).filter(
        Ticket.status == TicketState.CLOSED,
        Ticket.closed_at.isnot(None),
        Ticket.closed_at >= start,
        Ticket.closed_at <= end,
    )


def calculate_sla(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    start, end = resolve_period(start, end)
    closed = _closed_between(db, start, end).all()
    hours = _resolution_hours(closed)
    on_time = sum(1 for t in closed if t.due_date and t.closed_at <= t.due_date)

    return {
        "average_resolution_time": _avg(hours),
        "median_resolution_time": _median(hours),
        "on_time_closure_rate": percent(on_time, len(closed)),
        "total_closed_tickets": len(closed),
        "on_time_closed_tickets": on_time,
        "period": _period(start, end),
    }


def calculate_kpi(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    start, end = resolve_period(start, end)

    by_status = dict(db.query(Ticket.status, func.count(Ticket.id)).group_by(Ticket.status).all())
    unassigned = (
        db.query(Ticket)
        .filter(Ticket.status != TicketState.CLOSED, Ticket.assigned_to_id.is_(None))
        .count()
    )
    created = db.query(Ticket).filter(Ticket.created_at >= start, Ticket.created_at <= end).count()

    return {
        "active_tickets": sum(count for status, count in by_status.items() if status != TicketState.CLOSED),
        "new_tickets": by_status.get(TicketState.NEW, 0),
        "in_progress_tickets": by_status.get(TicketState.IN_PROGRESS, 0),
        "overdue_tickets": by_status.get(TicketState.OVERDUE, 0),
        "unassigned_active_tickets": unassigned,
        "tickets_created": created,
        "period": _period(start, end),
    }


def calculate_operator_kpi(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> List[dict]:
    start, end = resolve_period(start, end)
    operators = (
        db.query(User)
        .join(Role, User.role_id == Role.id)
        .filter(Role.name != RoleName.ADMIN.value)
        .order_by(User.id)
        .all()
    )

    result = []
    for user in operators:
        created_q = db.query(Ticket).filter(
            Ticket.created_at >= start, Ticket.created_at <= end
        )
        closed = _closed_between(db, start, end).filter(Ticket.assigned_to_id == user.id).all()
        transfers = db.query(TransferHistory).filter(
            TransferHistory.created_at >= start, TransferHistory.created_at <= end
        )

        result.append({
            "operator_id": user.id,
            "operator_name": user.name,
            "operator_email": user.email,
            "role": user.role_name,
            "tickets_created": created_q.filter(Ticket.created_by_id == user.id).count(),
            "tickets_assigned": created_q.filter(Ticket.assigned_to_id == user.id).count(),
            "tickets_closed": len(closed),
            "average_resolution_time": _avg(_resolution_hours(closed)),
            "transfers_in": transfers.filter(TransferHistory.to_user_id == user.id).count(),
            "transfers_out": transfers.filter(TransferHistory.from_user_id == user.id).count(),
        })
    return result


def channel_analytics(db: Session, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
    start, end = resolve_period(start, end)
    tickets = db.query(Ticket).filter(Ticket.created_at >= start, Ticket.created_at <= end).all()

    channels = []
    for channel in TicketChannelEnum:
        in_channel = [t for t in tickets if t.channel == channel.value]
        closed = [t for t in in_channel if t.status == TicketState.CLOSED]
        channels.append({
            "channel": channel.value,
            "total_tickets": len(in_channel),
            "closed_tickets": len(closed),
            "average_resolution_time": _avg(_resolution_hours(closed)),
        })

    all_closed = [t for t in tickets if t.status == TicketState.CLOSED]
    return {
        "channels": channels,
        "summary": {
            "total_tickets": len(tickets),
            "closed_tickets": len(all_closed),
            "average_resolution_time": _avg(_resolution_hours(all_closed)),
        },
        "period": _period(start, end),
    }
