"""Support-line directory: operator membership and per-line routing policy."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import CapacityExceeded, DuplicateCode, HasOperators, InvalidRole, NotFound
from app.core.permissions import RoleName, is_operator_role
from app.models.support_line import SupportLine
from app.models.user import User
from app.schemas.support_line import SupportLineCreate, SupportLinePolicy, SupportLineUpdate
from app.services import users as user_directory
from app.services.routing import FIRST_AVAILABLE, LEAST_LOADED, RoutingStrategy

logger = logging.getLogger(__name__)

DEFAULT_LINES = [
    {
        "name": "Линия поддержки №1",
        "code": RoleName.OPERATOR1.value,
        "description": "Основная линия поддержки",
        "policy": {"auto_assign": True, "round_robin": True, "priority": 1},
    },
    {
        "name": "Линия поддержки №2",
        "code": RoleName.OPERATOR2.value,
        "description": "Вторая линия поддержки",
        "policy": {"auto_assign": True, "round_robin": True, "priority": 2},
    },
    {
        "name": "Линия поддержки №3",
        "code": RoleName.OPERATOR3.value,
        "description": "Третья линия поддержки",
        "policy": {"auto_assign": True, "round_robin": True, "priority": 3},
    },
]


class SupportLineDirectory:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------ lookup

    def get_line(self, line_id: int, for_update: bool = False) -> SupportLine:
        query = self.db.query(SupportLine).filter(SupportLine.id == line_id)
        if for_update:
            query = query.with_for_update()
        line = query.first()
        if not line:
            raise NotFound(f"Support line {line_id} not found", line_id=line_id)
        return line

    def get_line_by_code(self, code: str) -> Optional[SupportLine]:
        return self.db.query(SupportLine).filter(SupportLine.code == code).first()

    def list_lines(self) -> List[SupportLine]:
        return self.db.query(SupportLine).order_by(SupportLine.code).all()

    def first_active_line(self) -> Optional[SupportLine]:
        return (
            self.db.query(SupportLine)
            .filter(SupportLine.is_active.is_(True))
            .order_by(SupportLine.code)
            .first()
        )

    def operator_count(self, line_id: int) -> int:
        return self.db.query(User).filter(User.support_line_id == line_id).count()

    # --------------------------------------------------------------- mutation

    def create_line(self, data: SupportLineCreate) -> SupportLine:
        if self.get_line_by_code(data.code):
            raise DuplicateCode(f"Support line with code {data.code} already exists", code=data.code)

        line = SupportLine(
            name=data.name,
            code=data.code,
            description=data.description,
            is_active=data.is_active,
            max_operators=data.max_operators,
            policy=data.policy.model_dump(),
        )
        self.db.add(line)
        self.db.flush()
        logger.info("Created support line %s (%s)", line.id, line.code)
        return line

    def update_line(self, line_id: int, data: SupportLineUpdate) -> SupportLine:
        line = self.get_line(line_id)
        changes = data.model_dump(exclude_unset=True)

        new_code = changes.get("code")
        if new_code and new_code != line.code and self.get_line_by_code(new_code):
            raise DuplicateCode(f"Support line with code {new_code} already exists", code=new_code)

        if "policy" in changes and changes["policy"] is not None:
            changes["policy"] = SupportLinePolicy(**changes["policy"]).model_dump()

        for field, value in changes.items():
            if value is not None:
                setattr(line, field, value)
        self.db.flush()
        return line

    def remove_line(self, line_id: int) -> None:
        line = self.get_line(line_id)
        operators = self.operator_count(line_id)
        if operators > 0:
            raise HasOperators(
                f"Cannot remove support line: {operators} operators are still assigned",
                line_id=line_id,
                operators=operators,
            )
        self.db.delete(line)
        self.db.flush()
        logger.info("Removed support line %s", line_id)

    def assign_operator(self, line_id: int, user_id: int) -> User:
        # Row lock on the line serializes concurrent capacity checks where the backend supports it.
        line = self.get_line(line_id, for_update=True)
        user = user_directory.get_user(self.db, user_id)

        if not is_operator_role(user.role_name):
            raise InvalidRole("Only operators can be assigned to a support line", user_id=user_id, role=user.role_name)

        if user.support_line_id == line.id:
            return user

        current = self.operator_count(line.id)
        if line.max_operators > 0 and current >= line.max_operators:
            raise CapacityExceeded(
                f"Support line operator limit reached ({line.max_operators})",
                line_id=line.id,
                max_operators=line.max_operators,
            )

        user.support_line_id = line.id
        self.db.flush()
        logger.info("Assigned operator %s to support line %s", user.id, line.id)
        return user

    def unassign_operator(self, user_id: int) -> User:
        user = user_directory.get_user(self.db, user_id)
        if user.support_line_id is not None:
            logger.info("Unassigned operator %s from support line %s", user.id, user.support_line_id)
            user.support_line_id = None
            self.db.flush()
        return user

    # ---------------------------------------------------------------- routing

    def active_operators(self, line_id: int) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.support_line_id == line_id, User.status == user_directory.ACTIVE)
            .order_by(User.id)
            .all()
        )

    def strategy_for(self, line: SupportLine) -> RoutingStrategy:
        return LEAST_LOADED if line.policy_value("round_robin") else FIRST_AVAILABLE

    def pick_operator(self, line_id: int, strategy: Optional[RoutingStrategy] = None) -> Optional[User]:
        """
        Choose an operator of an active line for a new ticket.
        Returns None when the line is inactive or has no active operators.
        """
        line = self.get_line(line_id)
        if not line.is_active:
            return None

        operators = self.active_operators(line.id)
        if not operators:
            return None

        strategy = strategy or self.strategy_for(line)
        operator = strategy.pick(self.db, operators)
        logger.debug("Line %s picked operator %s (%s)", line.code, operator.id, strategy.name)
        return operator

    # ---------------------------------------------------------------- seeding

    def initialize_default_lines(self) -> None:
        for line_data in DEFAULT_LINES:
            if not self.get_line_by_code(line_data["code"]):
                self.db.add(SupportLine(is_active=True, max_operators=0, **line_data))
                logger.info("Seeded support line %s", line_data["code"])
        self.db.flush()
