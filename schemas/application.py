from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import ConfigDict, Field, model_validator

from models.enums import ApplicationPurpose, ApplicationStatus, PropertyType
from schemas.base import CamelModel


class ApplicationSubmit(CamelModel):
    user_id: int
    property_id: int
    down_payment: Decimal = Field(..., ge=0, max_digits=18, decimal_places=2)
    loan_term_years: int = Field(..., ge=1, le=50)
    purpose: ApplicationPurpose = ApplicationPurpose.PRIMARY_RESIDENCE
    # Optional client-side figure; must equal price - down payment when supplied
    loan_amount: Optional[Decimal] = Field(None, gt=0, max_digits=18, decimal_places=2)


class FinancialTerms(CamelModel):
    """Immutable snapshot of the terms an application was submitted with."""

    model_config = ConfigDict(frozen=True)

    property_value: Decimal
    down_payment: Decimal
    loan_amount: Decimal
    loan_term_years: int
    interest_rate: Decimal
    monthly_installment: Decimal
    ltv_ratio: Decimal
    rate_plan_id: str

    @model_validator(mode="after")
    def _loan_amount_matches(self) -> "FinancialTerms":
        if self.loan_amount != self.property_value - self.down_payment:
            raise ValueError(
                f"loan_amount {self.loan_amount} != property_value {self.property_value} "
                f"- down_payment {self.down_payment}"
            )
        return self


class ApplicationSummary(CamelModel):
    application_id: str
    application_number: str
    status: ApplicationStatus
    monthly_installment: Decimal
    interest_rate: Decimal


class ApplicationResponse(CamelModel):
    id: str
    application_number: str
    user_id: int
    property_id: int
    rate_plan_id: str
    property_type: PropertyType
    property_value: Decimal
    down_payment: Decimal
    loan_amount: Decimal
    loan_term_years: int
    interest_rate: Decimal
    monthly_installment: Decimal
    ltv_ratio: Decimal
    purpose: ApplicationPurpose
    status: ApplicationStatus
    current_approval_level: Optional[int] = None
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ApplicationCancel(CamelModel):
    actor_id: Optional[int] = None
    reason: Optional[str] = None


class ScheduleRow(CamelModel):
    period: int
    payment: Decimal
    interest: Decimal
    principal: Decimal
    balance: Decimal


class RepaymentSchedule(CamelModel):
    principal: Decimal
    annual_rate: Decimal
    term_years: int
    monthly_installment: Decimal
    total_payment: Decimal
    total_interest: Decimal
    rows: list[ScheduleRow] = Field(default_factory=list)
