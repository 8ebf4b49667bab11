from typing import List
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from app.api.deps import require_permission
from app.core.db import get_db
from app.core.permissions import Action, Subject
from app.models.user import User
from app.schemas.support_line import (
    OperatorAssignRequest,
    OperatorResponse,
    SupportLineCreate,
    SupportLineResponse,
    SupportLineUpdate,
)
from app.services.support_lines import SupportLineDirectory

router = APIRouter(prefix="/support-lines", tags=["Support Lines"])

manage_lines = require_permission(Action.MANAGE, Subject.SUPPORT_LINE)


@router.get("", response_model=List[SupportLineResponse])
def list_support_lines(db: Session = Depends(get_db), actor: User = Depends(manage_lines)):
    return SupportLineDirectory(db).list_lines()


@router.post("", response_model=SupportLineResponse, status_code=status.HTTP_201_CREATED)
def create_support_line(line_in: SupportLineCreate, db: Session = Depends(get_db), actor: User = Depends(manage_lines)):
    try:
        line = SupportLineDirectory(db).create_line(line_in)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(line)
    return line


@router.get("/{line_id}", response_model=SupportLineResponse)
def get_support_line(line_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_lines)):
    return SupportLineDirectory(db).get_line(line_id)


@router.patch("/{line_id}", response_model=SupportLineResponse)
def update_support_line(
    line_id: int,
    line_in: SupportLineUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(manage_lines),
):
    try:
        line = SupportLineDirectory(db).update_line(line_id, line_in)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(line)
    return line


@router.delete("/{line_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_support_line(line_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_lines)):
    try:
        SupportLineDirectory(db).remove_line(line_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{line_id}/operators", response_model=OperatorResponse)
def assign_operator(
    line_id: int,
    request: OperatorAssignRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(manage_lines),
):
    """
    Put an operator on a line, moving them off any previous line.
    Fails when the line is at its operator limit.
    """
    try:
        user = SupportLineDirectory(db).assign_operator(line_id, request.user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


@router.delete("/operators/{user_id}", response_model=OperatorResponse)
def unassign_operator(user_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_lines)):
    try:
        user = SupportLineDirectory(db).unassign_operator(user_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(user)
    return user


@router.get("/{line_id}/next-operator", response_model=OperatorResponse)
def preview_next_operator(line_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_lines)):
    """
    The operator the line would pick for the next auto-assigned ticket.
    """
    user = SupportLineDirectory(db).pick_operator(line_id)
    if user is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return user
