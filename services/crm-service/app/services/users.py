"""User/Role directory and role seeding."""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.core.permissions import ROLE_DESCRIPTIONS, RoleName
from app.models.user import Role, User

logger = logging.getLogger(__name__)

ACTIVE = "active"


def seed_roles(db: Session) -> None:
    """Create the fixed role set. Safe to call on every start-up."""
    existing = {name for (name,) in db.query(Role.name).all()}
    for role in RoleName:
        if role.value not in existing:
            db.add(Role(name=role.value, description=ROLE_DESCRIPTIONS[role.value]))
            logger.info("Seeded role %s", role.value)
    db.flush()


def find_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user(db: Session, user_id: int) -> User:
    user = find_by_id(db, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found", user_id=user_id)
    return user


def find_all_by_role(db: Session, role_name: str, active_only: bool = True) -> List[User]:
    """Users holding ``role_name`` in registration order."""
    query = db.query(User).join(Role, User.role_id == Role.id).filter(Role.name == role_name)
    if active_only:
        query = query.filter(User.status == ACTIVE)
    return query.order_by(User.id).all()


def find_system_actor(db: Session, role_name: str = RoleName.ADMIN.value) -> Optional[User]:
    """The identity used by channel adapters and periodic jobs."""
    users = find_all_by_role(db, role_name)
    return users[0] if users else None
