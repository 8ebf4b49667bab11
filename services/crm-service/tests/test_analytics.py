from datetime import timedelta

import pytest
from app.core.fsm import TicketState
from app.core.timeutils import utcnow
from app.models.ticket import Ticket, TransferHistory
from app.services import analytics


@pytest.fixture
def history(db_session, admin, customer, make_user):
    """Two closed tickets (2h and 6h), one open and one overdue, spread over channels."""
    operator = make_user("Operator")
    now = utcnow()

    def add(channel, status, created_hours_ago, closed_hours_ago=None, due_hours_ago=None, assignee=operator):
        ticket = Ticket(
            title="Metric",
            client_id=customer.id,
            created_by_id=admin.id,
            assigned_to_id=assignee.id if assignee else None,
            channel=channel,
            status=status,
            created_at=now - timedelta(hours=created_hours_ago),
            closed_at=now - timedelta(hours=closed_hours_ago) if closed_hours_ago is not None else None,
            due_date=now - timedelta(hours=due_hours_ago) if due_hours_ago is not None else None,
        )
        db_session.add(ticket)
        return ticket

    first = add("telegram", TicketState.CLOSED, 10, closed_hours_ago=8, due_hours_ago=5)
    add("telegram", TicketState.CLOSED, 10, closed_hours_ago=4, due_hours_ago=6)
    add("whatsapp", TicketState.NEW, 1, assignee=None)
    add("call", TicketState.OVERDUE, 30)
    db_session.flush()
    db_session.add(TransferHistory(ticket_id=first.id, from_user_id=admin.id, to_user_id=operator.id))
    db_session.commit()
    return operator


def test_sla_metrics(db_session, history):
    sla = analytics.calculate_sla(db_session)

    assert sla["total_closed_tickets"] == 2
    assert sla["average_resolution_time"] == 4.0
    assert sla["median_resolution_time"] == 4.0
    assert sla["on_time_closed_tickets"] == 1
    assert sla["on_time_closure_rate"] == 50.0


def test_kpi_metrics(db_session, history):
    kpi = analytics.calculate_kpi(db_session)

    assert kpi["active_tickets"] == 2
    assert kpi["new_tickets"] == 1
    assert kpi["in_progress_tickets"] == 0
    assert kpi["overdue_tickets"] == 1
    assert kpi["unassigned_active_tickets"] == 1
    assert kpi["tickets_created"] == 4


def test_operator_kpi_skips_admins(db_session, history, admin):
    rows = analytics.calculate_operator_kpi(db_session)

    assert [row["operator_id"] for row in rows] == [history.id]
    row = rows[0]
    assert row["tickets_assigned"] == 3
    assert row["tickets_closed"] == 2
    assert row["tickets_created"] == 0
    assert row["transfers_in"] == 1
    assert row["transfers_out"] == 0


def test_channel_breakdown(db_session, history):
    report = analytics.channel_analytics(db_session)

    by_channel = {row["channel"]: row for row in report["channels"]}
    assert set(by_channel) == {"whatsapp", "telegram", "instagram", "call", "website"}
    assert by_channel["telegram"]["total_tickets"] == 2
    assert by_channel["telegram"]["closed_tickets"] == 2
    assert by_channel["telegram"]["average_resolution_time"] == 4.0
    assert by_channel["instagram"]["total_tickets"] == 0
    assert report["summary"] == {"total_tickets": 4, "closed_tickets": 2, "average_resolution_time": 4.0}


def test_empty_period_reports_zeroes(db_session, admin):
    start = utcnow() - timedelta(days=2)
    end = utcnow() - timedelta(days=1)

    sla = analytics.calculate_sla(db_session, start, end)
    assert sla["total_closed_tickets"] == 0
    assert sla["average_resolution_time"] == 0.0
    assert sla["on_time_closure_rate"] == 0.0
    assert sla["period"] == {"start_date": start, "end_date": end}
