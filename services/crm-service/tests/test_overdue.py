from datetime import timedelta

from app.core.fsm import TicketState
from app.core.timeutils import utcnow
from app.models.ticket import Comment, Ticket
from app.scheduler import build_scheduler, run_overdue_sweep
from app.services.overdue import sweep_overdue_tickets


def _ticket(db_session, creator, customer, status, due_in_hours):
    ticket = Ticket(
        title="Due",
        client_id=customer.id,
        created_by_id=creator.id,
        channel="website",
        status=status,
        due_date=utcnow() + timedelta(hours=due_in_hours) if due_in_hours is not None else None,
    )
    if status == TicketState.CLOSED:
        ticket.closed_at = utcnow()
    db_session.add(ticket)
    db_session.commit()
    return ticket


def test_sweep_marks_only_open_tickets_past_due(db_session, admin, customer):
    late_new = _ticket(db_session, admin, customer, TicketState.NEW, -2)
    late_working = _ticket(db_session, admin, customer, TicketState.IN_PROGRESS, -1)
    late_closed = _ticket(db_session, admin, customer, TicketState.CLOSED, -5)
    not_due = _ticket(db_session, admin, customer, TicketState.NEW, 3)
    no_deadline = _ticket(db_session, admin, customer, TicketState.NEW, None)

    changed = sweep_overdue_tickets(db_session)
    db_session.commit()

    assert changed == 2
    assert late_new.status == TicketState.OVERDUE
    assert late_working.status == TicketState.OVERDUE
    assert late_closed.status == TicketState.CLOSED
    assert not_due.status == TicketState.NEW
    assert no_deadline.status == TicketState.NEW

    audit = db_session.query(Comment).filter_by(ticket_id=late_new.id).one()
    assert audit.user_id == admin.id
    assert audit.content == "Статус изменен: Новый → Просрочен"


def test_sweep_is_idempotent(db_session, admin, customer):
    _ticket(db_session, admin, customer, TicketState.NEW, -2)

    assert sweep_overdue_tickets(db_session) == 1
    db_session.commit()
    assert sweep_overdue_tickets(db_session) == 0


def test_sweep_without_system_actor_does_nothing(db_session, make_user, customer):
    operator = make_user("Op")
    ticket = _ticket(db_session, operator, customer, TicketState.NEW, -2)

    assert sweep_overdue_tickets(db_session) == 0
    assert ticket.status == TicketState.NEW


def test_scheduled_sweep_commits_in_its_own_session(db_session, admin, customer):
    ticket = _ticket(db_session, admin, customer, TicketState.IN_PROGRESS, -1)

    assert run_overdue_sweep() == 1

    db_session.expire_all()
    assert ticket.status == TicketState.OVERDUE


def test_scheduler_registers_overdue_job():
    scheduler = build_scheduler()
    job = scheduler.get_job("overdue_sweep")
    assert job is not None
    assert job.func is run_overdue_sweep
    assert scheduler.running is False
