from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import Field

from models.enums import CustomerSegment, PropertyType, PropertyTypeFilter, RateType
from schemas.application import RepaymentSchedule
from schemas.base import CamelModel


class RatePlanResponse(CamelModel):
    id: str
    name: str
    rate_type: RateType
    property_type: PropertyTypeFilter
    customer_segment: CustomerSegment
    base_rate: Decimal
    margin: Decimal
    effective_rate: Decimal
    min_loan_amount: Decimal
    max_loan_amount: Decimal
    min_term_years: int
    max_term_years: int
    max_ltv_ratio: Optional[Decimal] = None
    min_income: Decimal
    max_age: Optional[int] = None
    min_down_payment_percent: Optional[Decimal] = None
    admin_fee: Decimal
    appraisal_fee: Decimal
    insurance_rate: Decimal
    notary_fee_percent: Decimal
    is_promotional: bool
    promo_description: Optional[str] = None
    promo_start_date: Optional[date] = None
    promo_end_date: Optional[date] = None
    is_active: bool
    effective_date: date
    expiry_date: Optional[date] = None


class ApprovalLevelResponse(CamelModel):
    id: int
    level_name: str
    level_order: int
    role_required: str
    min_loan_amount: Decimal
    max_loan_amount: Optional[Decimal] = None
    is_required: bool
    can_skip: bool
    timeout_hours: int
    description: Optional[str] = None
    is_active: bool


class SimulationRequest(CamelModel):
    principal: Decimal = Field(..., gt=0)
    annual_rate: Decimal = Field(..., gt=0, le=100)
    term_years: int = Field(..., ge=1, le=50)
    include_schedule: bool = False


class SimulationResponse(CamelModel):
    monthly_installment: Decimal
    schedule: Optional[RepaymentSchedule] = None


class RateMatchRequest(CamelModel):
    """Hypothetical borrower/loan profile to check against the catalog."""

    property_type: PropertyType
    loan_amount: Decimal = Field(..., gt=0)
    term_years: int = Field(..., ge=1, le=50)
    customer_segment: CustomerSegment = CustomerSegment.ALL
    monthly_income: Optional[Decimal] = Field(None, ge=0)
    age: Optional[int] = Field(None, ge=0)
    property_value: Optional[Decimal] = Field(None, gt=0)
    as_of: Optional[date] = None


class CriterionResultSchema(CamelModel):
    name: str
    met: bool
    reason: str
    expected: Optional[str] = None
    actual: Optional[str] = None


class RatePlanMatchSchema(CamelModel):
    rate_plan_id: str
    rate_plan_name: str
    effective_rate: Decimal
    eligible: bool
    rejection_reasons: list[str] = Field(default_factory=list)
    criteria_results: list[CriterionResultSchema] = Field(default_factory=list)
