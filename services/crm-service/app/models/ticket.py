from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, Boolean, Index
from sqlalchemy.orm import relationship
from app.core.db import Base
from app.core.timeutils import utcnow

class Ticket(Base):
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_to_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(50), nullable=False, default="new", index=True)
    channel = Column(String(50), nullable=False, index=True)
    category = Column(String(50), nullable=True, index=True)
    funnel_stage_id = Column(Integer, ForeignKey("funnel_stages.id"), nullable=True, index=True)
    support_line_id = Column(Integer, ForeignKey("support_lines.id"), nullable=True, index=True)
    priority = Column(Integer, nullable=False, default=0)
    due_date = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, index=True)

    client = relationship("Client")
    created_by = relationship("User", foreign_keys=[created_by_id])
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    funnel_stage = relationship("FunnelStage")
    support_line = relationship("SupportLine")

class Comment(Base):
    """
    Ticket comments. Internal entries double as the system audit trail
    (assignment, status and stage changes) and are never edited in place.
    """
    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    is_internal = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User")

class TransferHistory(Base):
    """
    Immutable record of every explicit reassignment of a ticket.
    """
    __tablename__ = "transfer_history"
    __table_args__ = (Index("ix_transfer_history_ticket_created", "ticket_id", "created_at"),)

    id = Column(Integer, primary_key=True, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    to_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
