"""Role-based permission engine.

Every role maps to an immutable rule set of (action, subject) pairs.
Resolution order: deny > allow > default deny.
``manage`` matches every action and ``all`` matches every subject.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional, Tuple


class Action(str, Enum):
    MANAGE = "manage"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Subject(str, Enum):
    ALL = "all"
    USER = "User"
    CLIENT = "Client"
    TICKET = "Ticket"
    MESSAGE = "Message"
    CALL = "Call"
    TASK = "Task"
    COMMENT = "Comment"
    QUICK_REPLY = "QuickReply"
    MEDIA_FILE = "MediaFile"
    AI_SETTING = "AiSetting"
    ROLE = "Role"
    SETTINGS = "Settings"
    SUPPORT_LINE = "SupportLine"
    FUNNEL = "Funnel"
    ANALYTICS = "Analytics"


class RoleName(str, Enum):
    ADMIN = "admin"
    OPERATOR1 = "operator1"
    OPERATOR2 = "operator2"
    OPERATOR3 = "operator3"


OPERATOR_ROLES = frozenset({RoleName.OPERATOR1.value, RoleName.OPERATOR2.value, RoleName.OPERATOR3.value})

ROLE_DESCRIPTIONS = {
    RoleName.ADMIN.value: "Администратор: полный доступ",
    RoleName.OPERATOR1.value: "Оператор линии поддержки №1",
    RoleName.OPERATOR2.value: "Оператор линии поддержки №2",
    RoleName.OPERATOR3.value: "Оператор линии поддержки №3",
}

Rule = Tuple[Action, Subject]

_OPERATOR_WORK_SUBJECTS = (
    Subject.CLIENT,
    Subject.TICKET,
    Subject.MESSAGE,
    Subject.CALL,
    Subject.TASK,
    Subject.COMMENT,
)


@dataclass(frozen=True)
class RuleSet:
    allowed: FrozenSet[Rule] = frozenset()
    denied: FrozenSet[Rule] = frozenset()

    @staticmethod
    def _matches(rules: FrozenSet[Rule], action: Action, subject: Subject) -> bool:
        return any(
            (a, s) in rules
            for a in (action, Action.MANAGE)
            for s in (subject, Subject.ALL)
        )

    def can(self, action: Action, subject: Subject) -> bool:
        if self._matches(self.denied, action, subject):
            return False
        return self._matches(self.allowed, action, subject)


def _rules(actions: Iterable[Action], subjects: Iterable[Subject]) -> FrozenSet[Rule]:
    subjects = tuple(subjects)
    return frozenset((a, s) for a in actions for s in subjects)


def build_rule_set(role: Optional[str]) -> RuleSet:
    """Derive the rule set for a role name. Pure: same input, same output."""
    if role == RoleName.ADMIN.value:
        return RuleSet(allowed=frozenset({(Action.MANAGE, Subject.ALL)}))

    if role in OPERATOR_ROLES:
        allowed = (
            _rules((Action.READ, Action.CREATE, Action.UPDATE), _OPERATOR_WORK_SUBJECTS)
            | _rules((Action.READ,), (Subject.QUICK_REPLY, Subject.MEDIA_FILE))
            | _rules((Action.DELETE,), (Subject.CLIENT, Subject.COMMENT))
        )
        denied = _rules(
            (Action.MANAGE,),
            (Subject.USER, Subject.ROLE, Subject.AI_SETTING, Subject.SETTINGS),
        )
        return RuleSet(allowed=allowed, denied=denied)

    return RuleSet()


# Built once at import, read-only afterwards.
RULE_SETS: Mapping[str, RuleSet] = MappingProxyType({role.value: build_rule_set(role.value) for role in RoleName})


def rule_set_for(role: Optional[str]) -> RuleSet:
    if role is None:
        return RuleSet()
    return RULE_SETS.get(role) or build_rule_set(role)


def evaluate(role: Optional[str], action, subject) -> bool:
    """
    Return whether ``role`` may perform ``action`` on ``subject``.
    Unknown roles, actions or subjects evaluate to False; this never raises.
    """
    try:
        action = Action(action)
        subject = Subject(subject)
    except ValueError:
        return False
    return rule_set_for(role).can(action, subject)


def is_operator_role(role: Optional[str]) -> bool:
    return role in OPERATOR_ROLES


def describe(role: Optional[str]) -> dict:
    """Flatten a role's effective permissions into ``{subject: [actions]}``."""
    concrete_actions = [a for a in Action if a is not Action.MANAGE]
    summary = {}
    for subject in Subject:
        if subject is Subject.ALL:
            continue
        actions = [a.value for a in concrete_actions if evaluate(role, a, subject)]
        if actions:
            summary[subject.value] = actions
    return summary
