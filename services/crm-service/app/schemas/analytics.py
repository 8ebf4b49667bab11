from pydantic import BaseModel, Field
from typing import List, Optional
from app.schemas.funnel import Period

class SLAMetrics(BaseModel):
    average_resolution_time: float = Field(..., description="Average hours from creation to closing.")
    median_resolution_time: float = Field(..., description="Median hours from creation to closing.")
    on_time_closure_rate: float = Field(..., description="Percent of closed tickets closed before their due date.")
    total_closed_tickets: int
    on_time_closed_tickets: int
    period: Period

class KPIMetrics(BaseModel):
    active_tickets: int
    new_tickets: int
    in_progress_tickets: int
    overdue_tickets: int
    unassigned_active_tickets: int
    tickets_created: int
    period: Period

class OperatorKPI(BaseModel):
    operator_id: int
    operator_name: str
    operator_email: str
    role: Optional[str] = None
    tickets_created: int
    tickets_assigned: int
    tickets_closed: int
    average_resolution_time: float
    transfers_in: int
    transfers_out: int

class ChannelStats(BaseModel):
    channel: str
    total_tickets: int
    closed_tickets: int
    average_resolution_time: float

class ChannelSummary(BaseModel):
    total_tickets: int
    closed_tickets: int
    average_resolution_time: float

class ChannelAnalytics(BaseModel):
    channels: List[ChannelStats]
    summary: ChannelSummary
    period: Period
