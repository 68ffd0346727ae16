from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from database import get_db
from schemas.rate_plan import (
    RateMatchRequest,
    RatePlanMatchSchema,
    RatePlanResponse,
    SimulationRequest,
    SimulationResponse,
)
from services.amortization import amortization_schedule, monthly_installment
from services.rate_selection import list_promotional_rates, load_active_rate_plans, match_rate_plans

router = APIRouter(prefix="/api/rates", tags=["rates"])


@router.get("", response_model=list[RatePlanResponse])
async def list_rates(db: AsyncSession = Depends(get_db)):
    return [RatePlanResponse.model_validate(p) for p in await load_active_rate_plans(db)]


@router.get("/promotional", response_model=list[RatePlanResponse])
async def promotional_rates(as_of: Optional[date] = Query(None, alias="asOf"), db: AsyncSession = Depends(get_db)):
    plans = await list_promotional_rates(db, as_of or date.today())
    return [RatePlanResponse.model_validate(p) for p in plans]


@router.post("/simulate", response_model=SimulationResponse)
async def simulate(body: SimulationRequest):
    """Installment (and optionally the full schedule) for arbitrary loan terms."""
    if body.include_schedule:
        schedule = amortization_schedule(body.principal, body.annual_rate, body.term_years, settings.monthly_rate_scale)
        return SimulationResponse(monthly_installment=schedule.monthly_installment, schedule=schedule)
    installment = monthly_installment(body.principal, body.annual_rate, body.term_years, settings.monthly_rate_scale)
    return SimulationResponse(monthly_installment=installment)


@router.post("/match", response_model=list[RatePlanMatchSchema])
async def match(body: RateMatchRequest, db: AsyncSession = Depends(get_db)):
    return await match_rate_plans(db, body)
