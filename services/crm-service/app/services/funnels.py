"""Funnels and their ordered stages."""

import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InUse, NoNextStage, NotFound
from app.core.timeutils import utcnow
from app.models.funnel import Funnel, FunnelStage
from app.models.ticket import Ticket
from app.schemas.funnel import FunnelCreate, FunnelStageCreate, FunnelStageUpdate, FunnelUpdate
from app.schemas.ticket import enum_value

logger = logging.getLogger(__name__)


def resolve_period(start: Optional[datetime] = None, end: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Fill missing bounds with the default reporting window ending now."""
    end = end or utcnow()
    start = start or end - timedelta(days=settings.ANALYTICS_DEFAULT_PERIOD_DAYS)
    return start, end


def percent(part: int, whole: int) -> float:
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 2)


class FunnelModel:
    def __init__(self, db: Session):
        self.db = db

    # ----------------------------------------------------------------- funnels

    def get_funnel(self, funnel_id: int) -> Funnel:
        funnel = self.db.query(Funnel).filter(Funnel.id == funnel_id).first()
        if not funnel:
            raise NotFound(f"Funnel {funnel_id} not found", funnel_id=funnel_id)
        return funnel

    def list_funnels(self, active_only: bool = False) -> List[Funnel]:
        query = self.db.query(Funnel)
        if active_only:
            query = query.filter(Funnel.is_active.is_(True))
        return query.order_by(Funnel.order, Funnel.created_at).all()

    def create_funnel(self, data: FunnelCreate) -> Funnel:
        funnel = Funnel(**data.model_dump())
        self.db.add(funnel)
        self.db.flush()
        logger.info("Created funnel %s", funnel.id)
        return funnel

    def update_funnel(self, funnel_id: int, data: FunnelUpdate) -> Funnel:
        funnel = self.get_funnel(funnel_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(funnel, field, value)
        self.db.flush()
        return funnel

    def remove_funnel(self, funnel_id: int) -> None:
        funnel = self.get_funnel(funnel_id)
        stage_ids = [stage.id for stage in funnel.stages]
        in_use = 0
        if stage_ids:
            in_use = self.db.query(Ticket).filter(Ticket.funnel_stage_id.in_(stage_ids)).count()
        if in_use:
            raise InUse(
                f"Cannot remove funnel: {in_use} tickets are in its stages",
                funnel_id=funnel_id,
                tickets=in_use,
            )
        self.db.delete(funnel)
        self.db.flush()
        logger.info("Removed funnel %s", funnel_id)

    # ------------------------------------------------------------------ stages

    def get_stage(self, stage_id: int) -> FunnelStage:
        stage = self.db.query(FunnelStage).filter(FunnelStage.id == stage_id).first()
        if not stage:
            raise NotFound(f"Funnel stage {stage_id} not found", stage_id=stage_id)
        return stage

    def list_stages(self, funnel_id: int) -> List[FunnelStage]:
        self.get_funnel(funnel_id)
        return (
            self.db.query(FunnelStage)
            .filter(FunnelStage.funnel_id == funnel_id)
            .order_by(FunnelStage.order)
            .all()
        )

    def create_stage(self, funnel_id: int, data: FunnelStageCreate) -> FunnelStage:
        self.get_funnel(funnel_id)
        values = data.model_dump()
        values["ticket_status"] = enum_value(values["ticket_status"])
        stage = FunnelStage(funnel_id=funnel_id, **values)
        self.db.add(stage)
        self.db.flush()
        logger.info("Created stage %s in funnel %s at order %s", stage.id, funnel_id, stage.order)
        return stage

    def update_stage(self, stage_id: int, data: FunnelStageUpdate) -> FunnelStage:
        stage = self.get_stage(stage_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if field == "ticket_status":
                # explicit null clears the mapped status
                setattr(stage, field, enum_value(value))
            elif value is not None:
                setattr(stage, field, value)
        self.db.flush()
        return stage

    def remove_stage(self, stage_id: int) -> None:
        stage = self.get_stage(stage_id)
        in_use = self.db.query(Ticket).filter(Ticket.funnel_stage_id == stage_id).count()
        if in_use:
            raise InUse(
                f"Cannot remove stage: {in_use} tickets are in it",
                stage_id=stage_id,
                tickets=in_use,
            )
        self.db.delete(stage)
        self.db.flush()

    def next_stage(self, stage_id: int) -> FunnelStage:
        current = self.get_stage(stage_id)
        nxt = (
            self.db.query(FunnelStage)
            .filter(
                FunnelStage.funnel_id == current.funnel_id,
                FunnelStage.order == current.order + 1,
                FunnelStage.is_active.is_(True),
            )
            .first()
        )
        if not nxt:
            raise NoNextStage("The ticket is already at the last stage of the funnel", stage_id=stage_id)
        return nxt

    # ------------------------------------------------------------------- stats

    def stats(self, funnel_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None) -> dict:
        """
        Per-stage ticket distribution for tickets created in the period,
        plus the share of them that reached a final stage.
        """
        stages = self.list_stages(funnel_id)
        start, end = resolve_period(start, end)

        counts = {}
        stage_ids = [stage.id for stage in stages]
        if stage_ids:
            rows = (
                self.db.query(Ticket.funnel_stage_id, func.count(Ticket.id))
                .filter(
                    Ticket.funnel_stage_id.in_(stage_ids),
                    Ticket.created_at >= start,
                    Ticket.created_at <= end,
                )
                .group_by(Ticket.funnel_stage_id)
                .all()
            )
            counts = dict(rows)

        total = sum(counts.values())
        final = sum(counts.get(stage.id, 0) for stage in stages if stage.is_final)

        return {
            "funnel_id": funnel_id,
            "total_tickets": total,
            "final_tickets": final,
            "conversion_rate": percent(final, total),
            "stages": [
                {
                    "stage_id": stage.id,
                    "name": stage.name,
                    "order": stage.order,
                    "is_final": stage.is_final,
                    "count": counts.get(stage.id, 0),
                    "percentage": percent(counts.get(stage.id, 0), total),
                }
                for stage in stages
            ],
            "period": {"start_date": start, "end_date": end},
        }
