from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from app.api.deps import require_permission
from app.core.db import get_db
from app.core.permissions import Action, Subject
from app.models.user import User
from app.schemas.ticket import (
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    MoveStageRequest,
    StatusUpdateRequest,
    TicketCategoryEnum,
    TicketChannelEnum,
    TicketCreate,
    TicketResponse,
    TicketStatusEnum,
    TicketUpdate,
    TransferHistoryResponse,
    TransferRequest,
)
from app.services.tickets import TicketLifecycleEngine

router = APIRouter(prefix="/tickets", tags=["Tickets"])


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    ticket_in: TicketCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.CREATE, Subject.TICKET)),
):
    """
    Create a ticket. Category and priority are derived from the text when omitted,
    and the ticket is auto-assigned when no assignee is given.
    """
    try:
        ticket = TicketLifecycleEngine(db).create(ticket_in, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


@router.get("", response_model=List[TicketResponse])
def get_tickets(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    status: Optional[TicketStatusEnum] = None,
    channel: Optional[TicketChannelEnum] = None,
    category: Optional[TicketCategoryEnum] = None,
    client_id: Optional[int] = None,
    created_by_id: Optional[int] = None,
    assigned_to_id: Optional[int] = None,
    support_line_id: Optional[int] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.READ, Subject.TICKET)),
):
    """
    Retrieve a list of tickets with optional filtering.
    """
    return TicketLifecycleEngine(db).list(
        skip=skip,
        limit=limit,
        status=status.value if status else None,
        channel=channel.value if channel else None,
        category=category.value if category else None,
        client_id=client_id,
        created_by_id=created_by_id,
        assigned_to_id=assigned_to_id,
        support_line_id=support_line_id,
        search=search,
    )


@router.get("/{ticket_id}", response_model=TicketResponse)
def get_ticket(
    ticket_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.READ, Subject.TICKET)),
):
    return TicketLifecycleEngine(db).get(ticket_id)


@router.patch("/{ticket_id}", response_model=TicketResponse)
def update_ticket(
    ticket_id: int,
    update_data: TicketUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.UPDATE, Subject.TICKET)),
):
    """
    Partially update descriptive fields on a ticket.
    Status and assignment MUST go through /status and /transfer so they are audited.
    """
    try:
        ticket = TicketLifecycleEngine(db).update(ticket_id, update_data, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


@router.post("/{ticket_id}/status", response_model=TicketResponse)
def update_ticket_status(
    ticket_id: int,
    request: StatusUpdateRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.UPDATE, Subject.TICKET)),
):
    try:
        ticket = TicketLifecycleEngine(db).update_status(ticket_id, request.status.value, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


@router.post("/{ticket_id}/transfer", response_model=TicketResponse)
def transfer_ticket(
    ticket_id: int,
    request: TransferRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.UPDATE, Subject.TICKET)),
):
    """
    Reassign a ticket to a user, or to the first active user holding a role.
    Records the transfer history and an internal comment.
    """
    try:
        ticket = TicketLifecycleEngine(db).transfer(ticket_id, request, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


@router.post("/{ticket_id}/stage/next", response_model=TicketResponse)
def move_ticket_to_next_stage(
    ticket_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.UPDATE, Subject.TICKET)),
):
    try:
        ticket = TicketLifecycleEngine(db).move_to_next_stage(ticket_id, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


@router.post("/{ticket_id}/stage", response_model=TicketResponse)
def move_ticket_to_stage(
    ticket_id: int,
    request: MoveStageRequest,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.UPDATE, Subject.TICKET)),
):
    try:
        ticket = TicketLifecycleEngine(db).move_to_stage(ticket_id, request.stage_id, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(ticket)
    return ticket


@router.get("/{ticket_id}/transfers", response_model=List[TransferHistoryResponse])
def get_ticket_transfers(
    ticket_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.READ, Subject.TICKET)),
):
    return TicketLifecycleEngine(db).list_transfers(ticket_id)


@router.get("/{ticket_id}/comments", response_model=List[CommentResponse])
def get_ticket_comments(
    ticket_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.READ, Subject.COMMENT)),
):
    return TicketLifecycleEngine(db).list_comments(ticket_id)


@router.post("/{ticket_id}/comments", response_model=CommentResponse, status_code=status.HTTP_201_CREATED)
def add_ticket_comment(
    ticket_id: int,
    comment_in: CommentCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.CREATE, Subject.COMMENT)),
):
    try:
        comment = TicketLifecycleEngine(db).add_comment(ticket_id, comment_in, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(comment)
    return comment


@router.patch("/{ticket_id}/comments/{comment_id}", response_model=CommentResponse)
def edit_ticket_comment(
    ticket_id: int,
    comment_id: int,
    comment_in: CommentUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.UPDATE, Subject.COMMENT)),
):
    try:
        comment = TicketLifecycleEngine(db).edit_comment(ticket_id, comment_id, comment_in.content, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(comment)
    return comment


@router.delete("/{ticket_id}/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_ticket_comment(
    ticket_id: int,
    comment_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_permission(Action.DELETE, Subject.COMMENT)),
):
    try:
        TicketLifecycleEngine(db).remove_comment(ticket_id, comment_id, actor)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)
