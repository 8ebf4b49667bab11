from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.deps import require_permission
from app.core.db import get_db
from app.core.permissions import Action, Subject
from app.models.user import User
from app.schemas.analytics import ChannelAnalytics, KPIMetrics, OperatorKPI, SLAMetrics
from app.services import analytics

router = APIRouter(prefix="/analytics", tags=["Analytics"])

read_analytics = require_permission(Action.READ, Subject.ANALYTICS)


@router.get("/sla", response_model=SLAMetrics)
def get_sla(
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(read_analytics),
):
    return analytics.calculate_sla(db, date_start, date_end)


@router.get("/kpi", response_model=KPIMetrics)
def get_kpi(
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(read_analytics),
):
    return analytics.calculate_kpi(db, date_start, date_end)


@router.get("/operators", response_model=List[OperatorKPI])
def get_operator_kpi(
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(read_analytics),
):
    return analytics.calculate_operator_kpi(db, date_start, date_end)


@router.get("/channels", response_model=ChannelAnalytics)
def get_channel_analytics(
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(read_analytics),
):
    return analytics.channel_analytics(db, date_start, date_end)
