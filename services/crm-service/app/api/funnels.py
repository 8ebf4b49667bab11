from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session
from app.api.deps import require_permission
from app.core.db import get_db
from app.core.permissions import Action, Subject
from app.models.user import User
from app.schemas.funnel import (
    FunnelCreate,
    FunnelResponse,
    FunnelStageCreate,
    FunnelStageResponse,
    FunnelStageUpdate,
    FunnelStatsResponse,
    FunnelUpdate,
)
from app.services.funnels import FunnelModel

router = APIRouter(prefix="/funnels", tags=["Funnels"])

manage_funnels = require_permission(Action.MANAGE, Subject.FUNNEL)


@router.get("", response_model=List[FunnelResponse])
def list_funnels(active_only: bool = False, db: Session = Depends(get_db), actor: User = Depends(manage_funnels)):
    return FunnelModel(db).list_funnels(active_only=active_only)


@router.post("", response_model=FunnelResponse, status_code=status.HTTP_201_CREATED)
def create_funnel(funnel_in: FunnelCreate, db: Session = Depends(get_db), actor: User = Depends(manage_funnels)):
    try:
        funnel = FunnelModel(db).create_funnel(funnel_in)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(funnel)
    return funnel


@router.get("/{funnel_id}", response_model=FunnelResponse)
def get_funnel(funnel_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_funnels)):
    return FunnelModel(db).get_funnel(funnel_id)


@router.patch("/{funnel_id}", response_model=FunnelResponse)
def update_funnel(
    funnel_id: int,
    funnel_in: FunnelUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(manage_funnels),
):
    try:
        funnel = FunnelModel(db).update_funnel(funnel_id, funnel_in)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(funnel)
    return funnel


@router.delete("/{funnel_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_funnel(funnel_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_funnels)):
    try:
        FunnelModel(db).remove_funnel(funnel_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{funnel_id}/stages", response_model=List[FunnelStageResponse])
def list_stages(funnel_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_funnels)):
    return FunnelModel(db).list_stages(funnel_id)


@router.post("/{funnel_id}/stages", response_model=FunnelStageResponse, status_code=status.HTTP_201_CREATED)
def create_stage(
    funnel_id: int,
    stage_in: FunnelStageCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(manage_funnels),
):
    try:
        stage = FunnelModel(db).create_stage(funnel_id, stage_in)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(stage)
    return stage


@router.patch("/stages/{stage_id}", response_model=FunnelStageResponse)
def update_stage(
    stage_id: int,
    stage_in: FunnelStageUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(manage_funnels),
):
    try:
        stage = FunnelModel(db).update_stage(stage_id, stage_in)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(stage)
    return stage


@router.delete("/stages/{stage_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_stage(stage_id: int, db: Session = Depends(get_db), actor: User = Depends(manage_funnels)):
    try:
        FunnelModel(db).remove_stage(stage_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{funnel_id}/stats", response_model=FunnelStatsResponse)
def get_funnel_stats(
    funnel_id: int,
    date_start: Optional[datetime] = None,
    date_end: Optional[datetime] = None,
    db: Session = Depends(get_db),
    actor: User = Depends(manage_funnels),
):
    """
    Ticket distribution across the funnel's stages and its conversion rate.
    """
    return FunnelModel(db).stats(funnel_id, date_start, date_end)
