"""Ticket lifecycle engine.

Owns ticket creation (with classification and auto-assignment), status
changes, transfers and funnel-stage moves. Every mutation leaves an internal
comment or a transfer-history row behind. Methods flush but never commit:
the caller owns the transaction.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import BadRequest, CRMError, Forbidden, NotFound
from app.core.fsm import TicketState, TicketStateMachine
from app.core.permissions import RoleName
from app.models.client import Client
from app.models.funnel import FunnelStage
from app.models.support_line import SupportLine
from app.models.ticket import Comment, Ticket, TransferHistory
from app.models.user import User
from app.schemas.ticket import CommentCreate, TicketCreate, TicketUpdate, TransferRequest, enum_value
from app.services import classification
from app.services import users as user_directory
from app.services.funnels import FunnelModel
from app.services.routing import FIRST_AVAILABLE, RoutingStrategy
from app.services.support_lines import SupportLineDirectory

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "channel", "category", "priority", "due_date")
NULLABLE_FIELDS = ("description", "category", "due_date")


def is_admin(user: User) -> bool:
    return user.role_name == RoleName.ADMIN.value


class TicketLifecycleEngine:
    def __init__(self, db: Session, transfer_strategy: RoutingStrategy = FIRST_AVAILABLE):
        self.db = db
        self.fsm = TicketStateMachine(db)
        self.lines = SupportLineDirectory(db)
        self.funnels = FunnelModel(db)
        self.transfer_strategy = transfer_strategy

    # ------------------------------------------------------------------ reads

    def get(self, ticket_id: int) -> Ticket:
        ticket = self.db.query(Ticket).filter(Ticket.id == ticket_id).first()
        if not ticket:
            raise NotFound(f"Ticket {ticket_id} not found", ticket_id=ticket_id)
        return ticket

    def list(
        self,
        skip: int = 0,
        limit: int = 100,
        status: Optional[str] = None,
        channel: Optional[str] = None,
        category: Optional[str] = None,
        client_id: Optional[int] = None,
        created_by_id: Optional[int] = None,
        assigned_to_id: Optional[int] = None,
        support_line_id: Optional[int] = None,
        search: Optional[str] = None,
    ) -> List[Ticket]:
        query = self.db.query(Ticket)

        if status is not None:
            query = query.filter(Ticket.status == status)
        if channel is not None:
            query = query.filter(Ticket.channel == channel)
        if category is not None:
            query = query.filter(Ticket.category == category)
        if client_id is not None:
            query = query.filter(Ticket.client_id == client_id)
        if created_by_id is not None:
            query = query.filter(Ticket.created_by_id == created_by_id)
        if assigned_to_id is not None:
            query = query.filter(Ticket.assigned_to_id == assigned_to_id)
        if support_line_id is not None:
            query = query.filter(Ticket.support_line_id == support_line_id)
        if search:
            pattern = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
            query = query.filter(Ticket.title.ilike(f"%{pattern}%", escape="\\"))

        return query.order_by(Ticket.created_at.desc(), Ticket.id.desc()).offset(skip).limit(limit).all()

    def list_comments(self, ticket_id: int) -> List[Comment]:
        self.get(ticket_id)
        return (
            self.db.query(Comment)
            .filter(Comment.ticket_id == ticket_id)
            .order_by(Comment.created_at, Comment.id)
            .all()
        )

    def list_transfers(self, ticket_id: int) -> List[TransferHistory]:
        self.get(ticket_id)
        return (
            self.db.query(TransferHistory)
            .filter(TransferHistory.ticket_id == ticket_id)
            .order_by(TransferHistory.created_at, TransferHistory.id)
            .all()
        )

    # ---------------------------------------------------------- authorization

    def authorize(self, ticket: Ticket, actor: User, action: str) -> None:
        """Only the creator, the current assignee or an admin may mutate a ticket."""
        if ticket.created_by_id == actor.id or ticket.assigned_to_id == actor.id or is_admin(actor):
            return
        logger.warning("User %s denied %s on ticket %s", actor.id, action, ticket.id)
        raise Forbidden(f"Not allowed to {action} this ticket", ticket_id=ticket.id)

    def _add_internal_comment(self, ticket: Ticket, author_id: int, content: str) -> Comment:
        comment = Comment(ticket_id=ticket.id, user_id=author_id, content=content, is_internal=True)
        self.db.add(comment)
        return comment

    # --------------------------------------------------------------- creation

    def create(self, data: TicketCreate, actor: User) -> Ticket:
        if not self.db.query(Client).filter(Client.id == data.client_id).first():
            raise NotFound(f"Client {data.client_id} not found", client_id=data.client_id)
        if data.assigned_to_id is not None:
            user_directory.get_user(self.db, data.assigned_to_id)
        stage = None
        if data.funnel_stage_id is not None:
            stage = self.funnels.get_stage(data.funnel_stage_id)

        category = enum_value(data.category) or classification.classify(data.title, data.description)
        priority = data.priority
        if priority is None:
            priority = classification.derive_priority(category, data.title, data.description)

        ticket = Ticket(
            title=data.title,
            description=data.description,
            client_id=data.client_id,
            created_by_id=actor.id,
            assigned_to_id=data.assigned_to_id,
            status=TicketState.NEW,
            channel=enum_value(data.channel),
            category=category,
            priority=priority,
            due_date=data.due_date,
            closed_at=None,
        )
        self.db.add(ticket)
        self.db.flush()
        logger.info("Created ticket %s (category=%s, priority=%s) by user %s", ticket.id, category, priority, actor.id)

        if stage is not None:
            # The initial stage is entered like any later one, so a final stage closes the ticket.
            self._enter_stage(ticket, stage, actor)

        if ticket.assigned_to_id is None and ticket.status != TicketState.CLOSED:
            # Routing is best effort and never blocks ticket creation.
            try:
                self.auto_assign(ticket)
            except CRMError as exc:
                logger.warning("Auto-assignment failed for ticket %s: %s", ticket.id, exc.message)

        return ticket

    def _resolve_line(self, ticket: Ticket) -> Optional[SupportLine]:
        creator = user_directory.find_by_id(self.db, ticket.created_by_id)
        if creator is not None and creator.support_line_id is not None:
            return self.lines.get_line(creator.support_line_id)
        return self.lines.first_active_line()

    def auto_assign(self, ticket: Ticket) -> Optional[User]:
        """
        Assign an unassigned ticket to an operator of the creator's line, or of the first active line.
        Returns the operator, or None when the ticket stays unassigned.
        """
        if ticket.assigned_to_id is not None:
            return None

        line = self._resolve_line(ticket)
        if line is None:
            logger.info("No support line available for ticket %s", ticket.id)
            return None
        if not line.policy_value("auto_assign"):
            logger.info("Auto-assignment disabled on line %s, ticket %s left unassigned", line.code, ticket.id)
            return None

        operator = self.lines.pick_operator(line.id)
        if operator is None:
            logger.info("No operator available on line %s for ticket %s", line.code, ticket.id)
            return None

        ticket.assigned_to_id = operator.id
        ticket.support_line_id = line.id
        self._add_internal_comment(
            ticket,
            ticket.created_by_id,
            f"Тикет автоматически назначен оператору {operator.name} (линия: {line.name})",
        )
        self.db.flush()
        logger.info("Ticket %s auto-assigned to user %s on line %s", ticket.id, operator.id, line.code)
        return operator

    # --------------------------------------------------------------- mutation

    def update(self, ticket_id: int, data: TicketUpdate, actor: User) -> Ticket:
        """Edit descriptive fields. Assignment and status have their own audited operations."""
        ticket = self.get(ticket_id)
        self.authorize(ticket, actor, "update")

        changes = data.model_dump(exclude_unset=True)
        if changes.get("assigned_to_id") is not None or changes.get("status") is not None:
            raise BadRequest("Assignment and status cannot be updated directly. Use /transfer or /status.")

        for field in UPDATABLE_FIELDS:
            if field not in changes:
                continue
            value = changes[field]
            # explicit null clears a nullable field
            if value is None and field not in NULLABLE_FIELDS:
                continue
            setattr(ticket, field, enum_value(value))
        self.db.flush()
        return ticket

    def update_status(self, ticket_id: int, new_status: str, actor: User) -> Ticket:
        ticket = self.get(ticket_id)
        self.authorize(ticket, actor, "change the status of")

        new_status = enum_value(new_status)
        previous_status = ticket.status
        self.fsm.transition(ticket, new_status, actor.id)

        # Re-opening a ticket that reached a final stage takes it out of that stage.
        if previous_status == TicketState.CLOSED and new_status != TicketState.CLOSED and ticket.funnel_stage_id:
            stage = self.db.query(FunnelStage).filter(FunnelStage.id == ticket.funnel_stage_id).first()
            if stage is not None and stage.is_final:
                ticket.funnel_stage_id = None

        self.db.flush()
        logger.info("Ticket %s status %s -> %s by user %s", ticket.id, previous_status, new_status, actor.id)
        return ticket

    def _resolve_transfer_target(self, request: TransferRequest) -> User:
        if (request.to_user_id is None) == (request.to_role_name is None):
            raise BadRequest("Exactly one of to_user_id or to_role_name must be given")

        if request.to_user_id is not None:
            return user_directory.get_user(self.db, request.to_user_id)

        if request.to_role_name not in {role.value for role in RoleName}:
            raise BadRequest(f"Unknown role {request.to_role_name}", role=request.to_role_name)
        candidates = user_directory.find_all_by_role(self.db, request.to_role_name)
        target = self.transfer_strategy.pick(self.db, candidates)
        logger.debug("Role %s resolved with %s", request.to_role_name, self.transfer_strategy.name)
        if target is None:
            raise NotFound(f"No active user with role {request.to_role_name}", role=request.to_role_name)
        return target

    def transfer(self, ticket_id: int, request: TransferRequest, actor: User) -> Ticket:
        ticket = self.get(ticket_id)
        self.authorize(ticket, actor, "transfer")
        target = self._resolve_transfer_target(request)

        self.db.add(
            TransferHistory(
                ticket_id=ticket.id,
                from_user_id=actor.id,
                to_user_id=target.id,
                reason=request.reason,
            )
        )

        content = f"Тикет передан оператору {target.name}"
        if request.reason:
            content = f"{content}. Причина: {request.reason}"
        self._add_internal_comment(ticket, actor.id, content)

        ticket.assigned_to_id = target.id
        self.db.flush()
        logger.info("Ticket %s transferred from user %s to user %s", ticket.id, actor.id, target.id)
        return ticket

    # ------------------------------------------------------------ funnel moves

    def move_to_next_stage(self, ticket_id: int, actor: User) -> Ticket:
        ticket = self.get(ticket_id)
        self.authorize(ticket, actor, "move")
        if ticket.funnel_stage_id is None:
            raise BadRequest("Ticket is not in a funnel", ticket_id=ticket.id)

        stage = self.funnels.next_stage(ticket.funnel_stage_id)
        return self._enter_stage(ticket, stage, actor)

    def move_to_stage(self, ticket_id: int, stage_id: int, actor: User) -> Ticket:
        ticket = self.get(ticket_id)
        self.authorize(ticket, actor, "move")

        stage = self.funnels.get_stage(stage_id)
        if not stage.is_active:
            raise BadRequest(f"Funnel stage {stage_id} is not active", stage_id=stage_id)
        return self._enter_stage(ticket, stage, actor)

    def _enter_stage(self, ticket: Ticket, stage: FunnelStage, actor: User) -> Ticket:
        previous_name = None
        if ticket.funnel_stage_id is not None:
            previous_name = self.funnels.get_stage(ticket.funnel_stage_id).name

        ticket.funnel_stage_id = stage.id

        if stage.is_final:
            target_status = TicketState.CLOSED
        else:
            target_status = stage.ticket_status

        if target_status and target_status != ticket.status:
            self.fsm.transition(ticket, target_status, actor.id, note=f"Этап воронки: {stage.name}")

        self._add_internal_comment(
            ticket,
            actor.id,
            f"Этап воронки изменен: {previous_name or '—'} → {stage.name}",
        )
        self.db.flush()
        logger.info("Ticket %s moved to stage %s (status %s)", ticket.id, stage.id, ticket.status)
        return ticket

    # --------------------------------------------------------------- comments

    def _get_comment(self, ticket_id: int, comment_id: int) -> Comment:
        comment = (
            self.db.query(Comment)
            .filter(Comment.id == comment_id, Comment.ticket_id == ticket_id)
            .first()
        )
        if not comment:
            raise NotFound(f"Comment {comment_id} not found", comment_id=comment_id)
        return comment

    def add_comment(self, ticket_id: int, data: CommentCreate, actor: User) -> Comment:
        ticket = self.get(ticket_id)
        comment = Comment(ticket_id=ticket.id, user_id=actor.id, content=data.content, is_internal=data.is_internal)
        self.db.add(comment)
        self.db.flush()
        return comment

    def edit_comment(self, ticket_id: int, comment_id: int, content: str, actor: User) -> Comment:
        comment = self._get_comment(ticket_id, comment_id)
        if comment.is_internal:
            raise BadRequest("Internal entries cannot be edited", comment_id=comment_id)
        if comment.user_id != actor.id:
            raise Forbidden("Only the author can edit a comment", comment_id=comment_id)
        comment.content = content
        self.db.flush()
        return comment

    def remove_comment(self, ticket_id: int, comment_id: int, actor: User) -> None:
        comment = self._get_comment(ticket_id, comment_id)
        if comment.user_id != actor.id and not is_admin(actor):
            raise Forbidden("Only the author or an admin can remove a comment", comment_id=comment_id)
        self.db.delete(comment)
        self.db.flush()
        logger.info("Comment %s removed from ticket %s by user %s", comment_id, ticket_id, actor.id)
