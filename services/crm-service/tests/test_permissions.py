import pytest
from app.core.permissions import (
    RULE_SETS,
    Action,
    Subject,
    build_rule_set,
    describe,
    evaluate,
)


def test_admin_can_manage_everything():
    for subject in Subject:
        for action in Action:
            assert evaluate("admin", action, subject) is True


@pytest.mark.parametrize("role", ["operator1", "operator2", "operator3"])
def test_operator_work_subjects(role):
    for subject in ("Client", "Ticket", "Message", "Call", "Task", "Comment"):
        for action in ("read", "create", "update"):
            assert evaluate(role, action, subject) is True

    assert evaluate(role, "read", "QuickReply") is True
    assert evaluate(role, "read", "MediaFile") is True
    assert evaluate(role, "update", "QuickReply") is False
    assert evaluate(role, "create", "MediaFile") is False


def test_operator_explicit_denials_override_everything():
    for subject in ("User", "Role", "AiSetting", "Settings"):
        for action in Action:
            assert evaluate("operator2", action, subject) is False


def test_operator_cannot_manage_lines_or_read_analytics():
    assert evaluate("operator1", "manage", "SupportLine") is False
    assert evaluate("operator1", "manage", "Funnel") is False
    assert evaluate("operator1", "read", "Analytics") is False
    # manage is not granted just because every concrete action on Ticket is
    assert evaluate("operator1", "manage", "Ticket") is False


def test_deny_wins_over_allow():
    rules = build_rule_set("operator1")
    assert (Action.MANAGE, Subject.USER) in rules.denied
    assert rules.can(Action.READ, Subject.USER) is False


def test_unknown_role_and_garbage_input_are_denied():
    assert evaluate("guest", "read", "Ticket") is False
    assert evaluate(None, "read", "Ticket") is False
    assert evaluate("admin", "fly", "Ticket") is False
    assert evaluate("admin", "read", "Spaceship") is False


def test_rule_sets_are_pure_and_read_only():
    assert build_rule_set("operator3") == build_rule_set("operator3")
    assert RULE_SETS["operator3"] == build_rule_set("operator3")
    with pytest.raises(TypeError):
        RULE_SETS["guest"] = build_rule_set("admin")


def test_describe_lists_effective_actions():
    summary = describe("operator1")
    assert summary["Ticket"] == ["create", "read", "update"]
    assert summary["QuickReply"] == ["read"]
    assert "User" not in summary
