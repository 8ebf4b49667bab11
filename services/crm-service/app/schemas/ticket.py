from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from enum import Enum

class TicketStatusEnum(str, Enum):
    NEW = "new"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"
    OVERDUE = "overdue"

class TicketChannelEnum(str, Enum):
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"
    INSTAGRAM = "instagram"
    CALL = "call"
    WEBSITE = "website"

class TicketCategoryEnum(str, Enum):
    COMPLAINT = "complaint"
    SALES = "sales"
    QUESTION = "question"
    REQUEST = "request"
    TECHNICAL = "technical"
    OTHER = "other"


def enum_value(value):
    """Plain value of a schema enum; other values pass through."""
    return value.value if isinstance(value, Enum) else value


class TicketCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255, description="Short subject of the ticket.")
    description: Optional[str] = Field(None, description="Full text of the customer request.")
    client_id: int = Field(..., description="The client the ticket belongs to.")
    channel: TicketChannelEnum = Field(..., description="The channel the request arrived from.")
    category: Optional[TicketCategoryEnum] = Field(None, description="Explicit category; classified from the text when omitted.")
    priority: Optional[int] = Field(None, ge=0, le=5, description="Explicit priority 0-5; derived from the text when omitted.")
    due_date: Optional[datetime] = Field(None, description="Deadline after which the ticket becomes overdue.")
    assigned_to_id: Optional[int] = Field(None, description="Explicit assignee; auto-assignment runs when omitted.")
    funnel_stage_id: Optional[int] = Field(None, description="Initial funnel stage.")

class TicketUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    channel: Optional[TicketChannelEnum] = None
    category: Optional[TicketCategoryEnum] = None
    priority: Optional[int] = Field(None, ge=0, le=5)
    due_date: Optional[datetime] = None
    # Accepted only so they can be rejected explicitly: use /status and /transfer.
    assigned_to_id: Optional[int] = None
    status: Optional[TicketStatusEnum] = None

class StatusUpdateRequest(BaseModel):
    status: TicketStatusEnum = Field(..., description="The target status for the ticket.")

class TransferRequest(BaseModel):
    to_user_id: Optional[int] = Field(None, description="Transfer to this user. Mutually exclusive with to_role_name.")
    to_role_name: Optional[str] = Field(None, description="Transfer to the first active user with this role.")
    reason: Optional[str] = Field(None, description="The reason for the transfer.")

class MoveStageRequest(BaseModel):
    stage_id: int = Field(..., description="The funnel stage to move the ticket to.")

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)
    is_internal: bool = Field(False, description="Internal notes are not visible to the customer.")

class CommentUpdate(BaseModel):
    content: str = Field(..., min_length=1)


class TicketResponse(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    client_id: int
    created_by_id: int
    assigned_to_id: Optional[int] = None
    status: TicketStatusEnum
    channel: str
    category: Optional[str] = None
    funnel_stage_id: Optional[int] = None
    support_line_id: Optional[int] = None
    priority: int
    due_date: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class CommentResponse(BaseModel):
    id: int
    ticket_id: int
    user_id: int
    content: str
    is_internal: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

class TransferHistoryResponse(BaseModel):
    id: int
    ticket_id: int
    from_user_id: int
    to_user_id: int
    reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InboundMessage(BaseModel):
    channel: TicketChannelEnum = Field(..., description="The channel adapter delivering the message.")
    external_id: str = Field(..., min_length=1, description="The sender id on the channel (phone, chat id, username).")
    display_name: str = Field(..., min_length=1, description="The sender display name.")
    text: str = Field("", description="The message body.")
