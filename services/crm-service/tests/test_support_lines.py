import logging

import pytest
from app.core.errors import CapacityExceeded, DuplicateCode, HasOperators, InvalidRole, NotFound
from app.models.support_line import SupportLine
from app.models.ticket import Ticket
from app.models.user import User
from app.schemas.support_line import SupportLineCreate, SupportLinePolicy, SupportLineUpdate
from app.services.routing import FIRST_AVAILABLE
from app.services.support_lines import SupportLineDirectory


def _open_ticket(db_session, creator, customer, assignee, status="new"):
    ticket = Ticket(
        title="Load",
        client_id=customer.id,
        created_by_id=creator.id,
        assigned_to_id=assignee.id,
        channel="whatsapp",
        status=status,
    )
    db_session.add(ticket)
    db_session.commit()
    return ticket


def test_create_line_rejects_duplicate_code(db_session):
    directory = SupportLineDirectory(db_session)
    line = directory.create_line(SupportLineCreate(name="VIP", code="vip", policy=SupportLinePolicy(priority=9)))
    db_session.commit()
    assert line.policy == {"auto_assign": True, "round_robin": True, "priority": 9}

    with pytest.raises(DuplicateCode) as exc:
        directory.create_line(SupportLineCreate(name="VIP 2", code="vip"))
    assert exc.value.status_code == 409


def test_update_line_checks_code_uniqueness(db_session, make_line):
    first = make_line("a")
    make_line("b")
    directory = SupportLineDirectory(db_session)

    with pytest.raises(DuplicateCode):
        directory.update_line(first.id, SupportLineUpdate(code="b"))

    updated = directory.update_line(first.id, SupportLineUpdate(name="Renamed", policy=SupportLinePolicy(auto_assign=False)))
    assert updated.name == "Renamed"
    assert updated.policy_value("auto_assign") is False


def test_capacity_limit_is_enforced(db_session, make_line, make_user):
    line = make_line("small", max_operators=1)
    first = make_user("First")
    second = make_user("Second")
    directory = SupportLineDirectory(db_session)

    directory.assign_operator(line.id, first.id)
    db_session.commit()

    with pytest.raises(CapacityExceeded):
        directory.assign_operator(line.id, second.id)
    db_session.rollback()

    assert db_session.query(User).filter_by(support_line_id=line.id).count() == 1
    db_session.refresh(second)
    assert second.support_line_id is None


def test_reassigning_the_same_operator_does_not_count_twice(db_session, make_line, make_user):
    line = make_line("small", max_operators=1)
    operator = make_user("Only")
    directory = SupportLineDirectory(db_session)

    directory.assign_operator(line.id, operator.id)
    directory.assign_operator(line.id, operator.id)
    assert directory.operator_count(line.id) == 1


def test_assign_moves_operator_between_lines(db_session, make_line, make_user):
    a = make_line("a")
    b = make_line("b")
    operator = make_user("Mover", line=a)

    SupportLineDirectory(db_session).assign_operator(b.id, operator.id)
    db_session.commit()
    db_session.refresh(operator)
    assert operator.support_line_id == b.id


def test_only_operators_can_join_a_line(db_session, make_line, admin):
    line = make_line("a")
    with pytest.raises(InvalidRole):
        SupportLineDirectory(db_session).assign_operator(line.id, admin.id)


def test_assign_reports_missing_line_or_user(db_session, make_line, make_user):
    line = make_line("a")
    operator = make_user("Op")
    directory = SupportLineDirectory(db_session)

    with pytest.raises(NotFound):
        directory.assign_operator(9999, operator.id)
    with pytest.raises(NotFound):
        directory.assign_operator(line.id, 9999)


def test_unassign_is_idempotent(db_session, make_line, make_user):
    line = make_line("a")
    operator = make_user("Op", line=line)
    directory = SupportLineDirectory(db_session)

    directory.unassign_operator(operator.id)
    db_session.commit()
    assert operator.support_line_id is None

    directory.unassign_operator(operator.id)
    db_session.commit()
    assert operator.support_line_id is None


def test_remove_line_with_operators_fails(db_session, make_line, make_user):
    line = make_line("a")
    operator = make_user("Op", line=line)
    directory = SupportLineDirectory(db_session)

    with pytest.raises(HasOperators):
        directory.remove_line(line.id)

    directory.unassign_operator(operator.id)
    directory.remove_line(line.id)
    db_session.commit()
    assert db_session.query(SupportLine).filter_by(id=line.id).first() is None


def test_pick_operator_prefers_least_loaded(db_session, make_line, make_user, admin, customer):
    line = make_line("a")
    busy = make_user("Busy", line=line)
    idle = make_user("Idle", line=line)
    _open_ticket(db_session, admin, customer, busy)
    _open_ticket(db_session, admin, customer, idle, status="closed")

    assert SupportLineDirectory(db_session).pick_operator(line.id).id == idle.id


def test_pick_operator_breaks_ties_by_registration_order(db_session, make_line, make_user):
    line = make_line("a")
    first = make_user("First", line=line)
    make_user("Second", line=line)

    assert SupportLineDirectory(db_session).pick_operator(line.id).id == first.id


def test_pick_operator_without_round_robin_takes_first(db_session, make_line, make_user, admin, customer):
    line = make_line("a", round_robin=False)
    first = make_user("First", line=line)
    make_user("Second", line=line)
    _open_ticket(db_session, admin, customer, first)

    directory = SupportLineDirectory(db_session)
    assert directory.pick_operator(line.id).id == first.id
    assert directory.pick_operator(line.id, strategy=FIRST_AVAILABLE).id == first.id


def test_pick_operator_skips_inactive_lines_and_users(db_session, make_line, make_user):
    inactive_line = make_line("off", is_active=False)
    make_user("Op", line=inactive_line)
    empty_line = make_line("empty")
    make_user("Blocked", line=empty_line, status="blocked")

    directory = SupportLineDirectory(db_session)
    assert directory.pick_operator(inactive_line.id) is None
    assert directory.pick_operator(empty_line.id) is None


def test_default_lines_are_seeded_once(db_session):
    directory = SupportLineDirectory(db_session)
    directory.initialize_default_lines()
    directory.initialize_default_lines()
    db_session.commit()

    codes = [line.code for line in directory.list_lines()]
    assert codes == ["operator1", "operator2", "operator3"]


def test_pick_operator_logs_the_strategy(db_session, make_line, make_user, caplog):
    line = make_line("a", round_robin=False)
    make_user("Op", line=line)

    with caplog.at_level(logging.DEBUG, logger="app.services.support_lines"):
        SupportLineDirectory(db_session).pick_operator(line.id)

    assert "first_available" in caplog.text
