from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from app.schemas.ticket import TicketStatusEnum

class FunnelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: bool = True
    order: int = 0

class FunnelUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    order: Optional[int] = None

class FunnelStageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    order: int = Field(..., description="Position of the stage within the funnel.")
    ticket_status: Optional[TicketStatusEnum] = Field(None, description="Ticket status applied on entering the stage.")
    is_final: bool = Field(False, description="Entering this stage closes the ticket.")
    is_active: bool = True

class FunnelStageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    order: Optional[int] = None
    ticket_status: Optional[TicketStatusEnum] = None
    is_final: Optional[bool] = None
    is_active: Optional[bool] = None

class FunnelStageResponse(BaseModel):
    id: int
    funnel_id: int
    name: str
    description: Optional[str] = None
    order: int
    ticket_status: Optional[TicketStatusEnum] = None
    is_final: bool
    is_active: bool

    model_config = ConfigDict(from_attributes=True)

class FunnelResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    order: int
    stages: List[FunnelStageResponse] = []
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

class StageStats(BaseModel):
    stage_id: int
    name: str
    order: int
    is_final: bool
    count: int
    percentage: float

class Period(BaseModel):
    start_date: datetime
    end_date: datetime

class FunnelStatsResponse(BaseModel):
    funnel_id: int
    total_tickets: int
    final_tickets: int
    conversion_rate: float
    stages: List[StageStats]
    period: Period
