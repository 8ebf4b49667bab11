from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from app.core.db import get_db
from app.core.errors import Forbidden
from app.core.permissions import Action, Subject, evaluate
from app.models.user import User
from app.services import users as user_directory


def get_current_user(
    x_user_id: Optional[int] = Header(None, description="Authenticated actor id, set by the auth gateway."),
    db: Session = Depends(get_db),
) -> User:
    if x_user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-ID header")
    user = user_directory.find_by_id(db, x_user_id)
    if not user or user.status != user_directory.ACTIVE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown or inactive user")
    return user


def require_permission(action: Action, subject: Subject):
    """Route dependency: the actor's role must allow ``action`` on ``subject``."""
    def checker(user: User = Depends(get_current_user)) -> User:
        if not evaluate(user.role_name, action, subject):
            raise Forbidden(
                f"Role {user.role_name} cannot {action.value} {subject.value}",
                action=action.value,
                subject=subject.value,
            )
        return user
    return checker
